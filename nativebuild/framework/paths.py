"""Output location templates for binary stages.

Every function returns a `LazyValue[str]`: the template is expanded on each
read, so a module name supplied after the path was requested is still picked
up. Reading a path whose module name is still unset raises
`ConfigurationError` naming the binary.

Templates (relative to the build directory):

    obj/<dir>                                  object directory
    modules/<dir><module>.module               compiled module file
    exe/<dir><module>                          executable (platform-named)
    lib/<dir><module>                          shared library (platform-named)
    <exe|lib>/<dir>stripped/<module>           stripped binary (executable-named)
    <stripped binary><symbol extension>        extracted debug symbols
    install/<dir>                              install directory
    install/<dir><module>                      run script (platform-named)
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass

from nativebuild.framework.descriptor import BinaryKind
from nativebuild.framework.errors import ConfigurationError
from nativebuild.framework.names import Names
from nativebuild.framework.toolchain import ToolProvider
from stagekit.deferred import DeferredValue, LazyValue, UnresolvedValueError

MODULE_FILE_EXTENSION = ".module"


def _read_module(names: Names, module: DeferredValue[str]) -> str:
    try:
        return module.get()
    except UnresolvedValueError as exc:
        raise ConfigurationError(
            "Module name is not set; it must be resolved before output paths are finalized",
            binary=names.binary,
            field="module_name",
        ) from exc


def module_name_value(names: Names, module: DeferredValue[str]) -> LazyValue[str]:
    return LazyValue(lambda: _read_module(names, module), description=f"module name of {names.binary}")


def _binary_dir(kind: BinaryKind) -> str:
    if kind == "executable":
        return "exe"
    if kind == "shared_library":
        return "lib"
    raise AssertionError(f"Unhandled binary kind: {kind}")


def _platform_name(kind: BinaryKind, provider: ToolProvider, base: str) -> str:
    if kind == "executable":
        return provider.executable_name(base)
    if kind == "shared_library":
        return provider.shared_library_name(base)
    raise AssertionError(f"Unhandled binary kind: {kind}")


@dataclass(frozen=True)
class PathPolicy:
    build_dir: str = "build"

    def __post_init__(self) -> None:
        if not isinstance(self.build_dir, str) or not self.build_dir.strip():
            raise ValueError("PathPolicy.build_dir must be a non-empty string")
        object.__setattr__(self, "build_dir", self.build_dir.strip().rstrip("/") or "/")

    def _under_root(self, relative: str) -> str:
        return posixpath.join(self.build_dir, relative)

    def object_dir(self, names: Names) -> LazyValue[str]:
        return LazyValue(
            lambda: self._under_root(f"obj/{names.dir_segment}").rstrip("/"),
            description=f"object dir of {names.binary}",
        )

    def module_file(self, names: Names, module: DeferredValue[str]) -> LazyValue[str]:
        return LazyValue(
            lambda: self._under_root(
                f"modules/{names.dir_segment}{_read_module(names, module)}{MODULE_FILE_EXTENSION}"
            ),
            description=f"module file of {names.binary}",
        )

    def executable_file(
        self, names: Names, module: DeferredValue[str], provider: ToolProvider
    ) -> LazyValue[str]:
        return self.binary_file("executable", names, module, provider)

    def shared_library_file(
        self, names: Names, module: DeferredValue[str], provider: ToolProvider
    ) -> LazyValue[str]:
        return self.binary_file("shared_library", names, module, provider)

    def binary_file(
        self,
        kind: BinaryKind,
        names: Names,
        module: DeferredValue[str],
        provider: ToolProvider,
    ) -> LazyValue[str]:
        subdir = _binary_dir(kind)
        return LazyValue(
            lambda: self._under_root(
                _platform_name(
                    kind, provider, f"{subdir}/{names.dir_segment}{_read_module(names, module)}"
                )
            ),
            description=f"{kind} of {names.binary}",
        )

    def stripped_binary_file(
        self,
        kind: BinaryKind,
        names: Names,
        module: DeferredValue[str],
        provider: ToolProvider,
    ) -> LazyValue[str]:
        subdir = _binary_dir(kind)
        # Stripped outputs of both kinds take executable naming.
        return LazyValue(
            lambda: self._under_root(
                provider.executable_name(
                    f"{subdir}/{names.dir_segment}stripped/{_read_module(names, module)}"
                )
            ),
            description=f"stripped {kind} of {names.binary}",
        )

    def stripped_symbol_file(
        self,
        kind: BinaryKind,
        names: Names,
        module: DeferredValue[str],
        provider: ToolProvider,
    ) -> LazyValue[str]:
        return self.stripped_binary_file(kind, names, module, provider).map(
            lambda path: f"{path}{provider.symbol_file_extension}",
            description=f"symbol file of {names.binary}",
        )

    def install_dir(self, names: Names) -> LazyValue[str]:
        return LazyValue(
            lambda: self._under_root(f"install/{names.dir_segment}").rstrip("/"),
            description=f"install dir of {names.binary}",
        )

    def run_script_file(
        self, names: Names, module: DeferredValue[str], provider: ToolProvider
    ) -> LazyValue[str]:
        return LazyValue(
            lambda: self._under_root(
                provider.run_script_name(f"install/{names.dir_segment}{_read_module(names, module)}")
            ),
            description=f"run script of {names.binary}",
        )
