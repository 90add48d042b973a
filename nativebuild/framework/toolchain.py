"""Platform tool providers and the registry that resolves them.

A `ToolProvider` only knows how to name things for its platform: executables,
shared libraries, debug-symbol files and install run scripts. It never runs a
tool; invocation belongs to the execution engine.
"""

from __future__ import annotations

import difflib
import logging
import posixpath
import sys
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Protocol

from nativebuild.framework.errors import NoToolchainFound

CURRENT_PLATFORM = "current"

logger = logging.getLogger(__name__)


class ToolProvider(Protocol):
    toolchain: str
    platform: str
    symbol_file_extension: str

    def executable_name(self, base: str) -> str:
        ...

    def shared_library_name(self, base: str) -> str:
        ...

    def run_script_name(self, base: str) -> str:
        ...


class ToolchainResolver(Protocol):
    def resolve(self, platform: str) -> ToolProvider:
        """Return the provider for `platform` or raise `NoToolchainFound`."""


def _rename_last(path: str, fn: Callable[[str], str]) -> str:
    head, tail = posixpath.split(path)
    if not tail:
        raise ValueError(f"Cannot derive a file name from directory path: {path!r}")
    return posixpath.join(head, fn(tail)) if head else fn(tail)


@dataclass(frozen=True)
class PlatformToolProvider:
    toolchain: str
    platform: str
    symbol_file_extension: str
    executable_suffix: str = ""
    library_prefix: str = ""
    library_suffix: str = ""
    script_suffix: str = ""

    def executable_name(self, base: str) -> str:
        return _rename_last(base, lambda name: f"{name}{self.executable_suffix}")

    def shared_library_name(self, base: str) -> str:
        return _rename_last(base, lambda name: f"{self.library_prefix}{name}{self.library_suffix}")

    def run_script_name(self, base: str) -> str:
        return _rename_last(base, lambda name: f"{name}{self.script_suffix}")


LINUX_GCC = PlatformToolProvider(
    toolchain="gcc",
    platform="linux",
    symbol_file_extension=".debug",
    library_prefix="lib",
    library_suffix=".so",
)
MACOS_CLANG = PlatformToolProvider(
    toolchain="clang",
    platform="macos",
    symbol_file_extension=".dwarf",
    library_prefix="lib",
    library_suffix=".dylib",
)
WINDOWS_VISUALCPP = PlatformToolProvider(
    toolchain="visualCpp",
    platform="windows",
    symbol_file_extension=".pdb",
    executable_suffix=".exe",
    library_suffix=".dll",
    script_suffix=".bat",
)

BUILTIN_PROVIDERS: tuple[PlatformToolProvider, ...] = (LINUX_GCC, MACOS_CLANG, WINDOWS_VISUALCPP)


def host_platform() -> str:
    if sys.platform.startswith("win") or sys.platform == "cygwin":
        return "windows"
    if sys.platform == "darwin":
        return "macos"
    return "linux"


@dataclass(frozen=True)
class ToolchainRegistry:
    _by_platform: dict[str, ToolProvider]

    @classmethod
    def from_providers(cls, providers: Iterable[ToolProvider]) -> "ToolchainRegistry":
        entries: dict[str, ToolProvider] = {}
        for provider in providers:
            key = provider.platform.strip().lower()
            if key == CURRENT_PLATFORM:
                raise ValueError(f"'{CURRENT_PLATFORM}' is reserved and cannot be registered")
            if key in entries:
                raise ValueError(f"Duplicate toolchain for platform: {key}")
            entries[key] = provider
        return cls(_by_platform=entries)

    @classmethod
    def default(cls) -> "ToolchainRegistry":
        return cls.from_providers(BUILTIN_PROVIDERS)

    def available(self) -> tuple[str, ...]:
        return tuple(sorted(self._by_platform.keys()))

    def describe(self) -> tuple[dict[str, Any], ...]:
        rows: list[dict[str, Any]] = []
        for key in self.available():
            provider = self._by_platform[key]
            rows.append(
                {
                    "platform": key,
                    "toolchain": provider.toolchain,
                    "executable": provider.executable_name("app"),
                    "shared_library": provider.shared_library_name("app"),
                    "symbol_file_extension": provider.symbol_file_extension,
                }
            )
        return tuple(rows)

    def normalize_platform(self, platform: str) -> str:
        if not isinstance(platform, str) or not platform.strip():
            raise ValueError("platform must be a non-empty string")
        key = platform.strip().lower()
        if key == CURRENT_PLATFORM:
            return host_platform()
        return key

    def resolve(self, platform: str) -> ToolProvider:
        key = self.normalize_platform(platform)
        provider = self._by_platform.get(key)
        if provider is None:
            raise NoToolchainFound(
                platform,
                available=self.available(),
                suggestions=self.suggest(key),
            )
        logger.debug("Resolved toolchain %s for platform %s", provider.toolchain, key)
        return provider

    def suggest(self, platform: str, *, limit: int = 3) -> tuple[str, ...]:
        key = (platform or "").strip().lower()
        if not key:
            return ()
        return tuple(difflib.get_close_matches(key, list(self.available()), n=limit))
