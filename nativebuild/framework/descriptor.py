from __future__ import annotations

from dataclasses import InitVar, dataclass, field
from typing import Iterable, Literal, TypeAlias

from stagekit.config_namespace import ConfigNamespace
from stagekit.deferred import DeferredValue

BinaryKind: TypeAlias = Literal["executable", "shared_library"]
ALLOWED_BINARY_KINDS: tuple[str, ...] = ("executable", "shared_library")


@dataclass(frozen=True)
class BinaryFlags:
    debuggable: bool = False
    optimized: bool = False
    testable: bool = False

    def __post_init__(self) -> None:
        for attr in ("debuggable", "optimized", "testable"):
            value = getattr(self, attr)
            if not isinstance(value, bool):
                raise TypeError(f"BinaryFlags.{attr} must be a boolean (type={type(value).__name__})")

    @property
    def strips_symbols(self) -> bool:
        return self.debuggable and self.optimized


def _unique(values: Iterable[str], *, path: str) -> tuple[str, ...]:
    out: list[str] = []
    seen: set[str] = set()
    for value in values:
        if not isinstance(value, str) or not value.strip():
            raise TypeError(f"{path} entries must be non-empty strings (got {value!r})")
        normalized = value.strip()
        if normalized in seen:
            continue
        seen.add(normalized)
        out.append(normalized)
    return tuple(out)


def _ordered(values: Iterable[str], *, path: str) -> tuple[str, ...]:
    out: list[str] = []
    for value in values:
        if not isinstance(value, str) or not value.strip():
            raise TypeError(f"{path} entries must be non-empty strings (got {value!r})")
        out.append(value.strip())
    return tuple(out)


@dataclass
class BinaryDescriptor:
    """Input description of one binary variant.

    `sources` and `compile_modules` behave as sets (duplicates dropped, first
    occurrence wins); `link_libraries` and `runtime_libraries` keep their order.
    The module name is a deferred slot: it may be supplied after the pipeline
    was configured, as long as it is set before the graph is finalized.
    """

    name: str
    kind: BinaryKind
    sources: tuple[str, ...] = ()
    compile_modules: tuple[str, ...] = ()
    link_libraries: tuple[str, ...] = ()
    runtime_libraries: tuple[str, ...] = ()
    flags: BinaryFlags = field(default_factory=BinaryFlags)
    module_name: InitVar[str | None] = None
    module: DeferredValue[str] = field(init=False, repr=False)

    def __post_init__(self, module_name: str | None) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise TypeError("BinaryDescriptor.name must be a non-empty string")
        self.name = self.name.strip()
        if self.kind not in ALLOWED_BINARY_KINDS:
            raise ValueError(
                f"BinaryDescriptor.kind must be one of: {', '.join(ALLOWED_BINARY_KINDS)} (got {self.kind!r})"
            )
        if not isinstance(self.flags, BinaryFlags):
            raise TypeError(f"BinaryDescriptor.flags must be BinaryFlags (type={type(self.flags).__name__})")

        self.sources = _unique(self.sources, path=f"{self.name}.sources")
        self.compile_modules = _unique(self.compile_modules, path=f"{self.name}.compile_modules")
        self.link_libraries = _ordered(self.link_libraries, path=f"{self.name}.link_libraries")
        self.runtime_libraries = _ordered(self.runtime_libraries, path=f"{self.name}.runtime_libraries")

        self.module = DeferredValue(f"{self.name}.module_name")
        if module_name is not None:
            self.set_module_name(module_name)

    def set_module_name(self, value: str) -> None:
        if not isinstance(value, str) or not value.strip():
            raise TypeError(f"{self.name}.module_name must be a non-empty string")
        self.module.set(value.strip())


def descriptor_from_config(ns: ConfigNamespace) -> BinaryDescriptor:
    """Parse one `binaries[]` entry; unknown keys fail fast with their path."""

    descriptor = BinaryDescriptor(
        name=str(ns.get_str("name")),
        kind=ns.get_choice("kind", choices=ALLOWED_BINARY_KINDS, default="executable"),  # type: ignore[arg-type]
        sources=ns.get_str_list("sources"),
        compile_modules=ns.get_str_list("compile_modules"),
        link_libraries=ns.get_str_list("link_libraries"),
        runtime_libraries=ns.get_str_list("runtime_libraries"),
        flags=BinaryFlags(
            debuggable=ns.get_bool("debuggable", default=False),
            optimized=ns.get_bool("optimized", default=False),
            testable=ns.get_bool("testable", default=False),
        ),
        module_name=ns.get_str("module", default=None),
    )
    ns.assert_consumed()
    return descriptor
