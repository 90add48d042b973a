from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Mapping

from nativebuild.framework.descriptor import BinaryDescriptor, descriptor_from_config
from nativebuild.framework.errors import ConfigurationError
from nativebuild.framework.toolchain import CURRENT_PLATFORM
from stagekit.config_namespace import ConfigNamespace

LogLevel = Literal["debug", "info", "warning", "error"]
ALLOWED_LOG_LEVELS: tuple[str, ...] = ("debug", "info", "warning", "error")


@dataclass(frozen=True)
class LoggingConfig:
    level: LogLevel = "info"
    log_path: str | None = None


@dataclass(frozen=True)
class BuildSettings:
    build_dir: str
    platform: str
    language: str
    project_name: str | None
    logging: LoggingConfig
    binaries: tuple[BinaryDescriptor, ...]

    @staticmethod
    def from_dict(cfg: Mapping[str, Any]) -> tuple["BuildSettings", list[str]]:
        """
        Parse and validate a build configuration, returning (BuildSettings, warnings).

        Unknown keys at any level fail fast with their dotted path.

        Raises:
            ValueError/TypeError: if keys are missing, unknown, or of the wrong type.
        """

        if not isinstance(cfg, Mapping):
            raise ValueError("Config must be a mapping")

        root = ConfigNamespace(dict(cfg), path="")
        warnings: list[str] = []

        build_ns = root.namespace("build")
        build_dir = str(build_ns.get_str("dir", default="build"))
        platform = str(build_ns.get_str("platform", default=CURRENT_PLATFORM))
        language = str(build_ns.get_str("language", default="swift"))

        project_ns = root.namespace("project")
        project_name = project_ns.get_str("name", default=None)

        logging_ns = root.namespace("logging")
        logging_cfg = LoggingConfig(
            level=logging_ns.get_choice("level", choices=ALLOWED_LOG_LEVELS, default="info"),  # type: ignore[arg-type]
            log_path=logging_ns.get_str("log_path", default=None),
        )

        binaries: list[BinaryDescriptor] = []
        seen: set[str] = set()
        for entry in root.namespaces("binaries"):
            descriptor = descriptor_from_config(entry)
            if descriptor.name in seen:
                raise ConfigurationError(
                    f"Duplicate binary name under {entry.path}", binary=descriptor.name, field="name"
                )
            seen.add(descriptor.name)
            if not descriptor.module.is_resolved and project_name is None:
                warnings.append(
                    f"{entry.path}: no module and no project.name; "
                    f"{descriptor.name} cannot be finalized until a module name is set"
                )
            binaries.append(descriptor)

        if not binaries:
            warnings.append("No binaries configured")

        root.assert_consumed()

        return (
            BuildSettings(
                build_dir=build_dir,
                platform=platform,
                language=language,
                project_name=project_name,
                logging=logging_cfg,
                binaries=tuple(binaries),
            ),
            warnings,
        )

    def select(self, names: tuple[str, ...] | list[str]) -> tuple[BinaryDescriptor, ...]:
        if not names:
            return self.binaries
        by_name = {descriptor.name: descriptor for descriptor in self.binaries}
        selected: list[BinaryDescriptor] = []
        for name in names:
            descriptor = by_name.get(name)
            if descriptor is None:
                available = ", ".join(by_name) or "<none>"
                raise ConfigurationError(
                    f"Unknown binary (available: {available})", binary=name, field="name"
                )
            selected.append(descriptor)
        return tuple(selected)


def apply_project_conventions(settings: BuildSettings) -> list[str]:
    """Give binaries without an explicit module the project name; return the names updated."""

    if settings.project_name is None:
        return []
    updated: list[str] = []
    for descriptor in settings.binaries:
        if not descriptor.module.is_resolved:
            descriptor.set_module_name(settings.project_name)
            updated.append(descriptor.name)
    return updated
