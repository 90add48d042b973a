"""Strict configuration reader with consumed-keys enforcement.

Every accessor marks its key as consumed. After parsing, `assert_consumed()`
walks the namespace tree and rejects any key nobody asked for, naming its
dotted path (`binaries[1]: optimised`).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Iterable

_MISSING = object()


@dataclass
class ConfigNamespace:
    data: Mapping[str, Any]
    path: str
    _consumed: set[str] = field(default_factory=set, init=False, repr=False)
    _children: list["ConfigNamespace"] = field(default_factory=list, init=False, repr=False)

    def __post_init__(self) -> None:
        if not isinstance(self.data, Mapping):
            raise TypeError(f"{self.label} must be a mapping (type={type(self.data).__name__})")
        bad = [key for key in self.data if not isinstance(key, str)]
        if bad:
            raise TypeError(f"{self.label} has non-string key: {bad[0]!r}")

    @property
    def label(self) -> str:
        return self.path or "<root>"

    def _where(self, key: str) -> str:
        return f"{self.path}.{key}" if self.path else key

    def _child(self, data: Mapping[str, Any], path: str) -> "ConfigNamespace":
        child = ConfigNamespace(dict(data), path=path)
        self._children.append(child)
        return child

    def consumed_keys(self) -> tuple[str, ...]:
        return tuple(sorted(self._consumed))

    def unconsumed_keys(self) -> tuple[str, ...]:
        return tuple(sorted(set(self.data) - self._consumed))

    def assert_consumed(self) -> None:
        unknown = self.unconsumed_keys()
        if unknown:
            raise ValueError(
                f"Unknown config keys under {self.label}: {', '.join(unknown)} "
                f"(consumed: {', '.join(self.consumed_keys()) or '<none>'})"
            )
        for child in self._children:
            child.assert_consumed()

    def _take(self, key: str, default: Any) -> tuple[str, Any]:
        """Consume `key`; a missing or null value yields `default` or fails when required."""

        if not isinstance(key, str) or not key.strip():
            raise TypeError("ConfigNamespace key must be a non-empty string")
        name = key.strip()
        self._consumed.add(name)
        value = self.data.get(name)
        if value is not None:
            return name, value
        if default is _MISSING:
            raise ValueError(f"Missing required config key: {self._where(name)}")
        return name, default

    def namespace(self, key: str, *, required: bool = False) -> "ConfigNamespace":
        name, raw = self._take(key, _MISSING if required else {})
        if not isinstance(raw, Mapping):
            raise TypeError(f"{self._where(name)} must be a mapping (type={type(raw).__name__})")
        return self._child(raw, self._where(name))

    def namespaces(self, key: str) -> list["ConfigNamespace"]:
        """Read a list of mappings; each element is returned as its own namespace."""

        name, raw = self._take(key, [])
        if not isinstance(raw, (list, tuple)):
            raise TypeError(f"{self._where(name)} must be a list (type={type(raw).__name__})")
        items: list[ConfigNamespace] = []
        for idx, item in enumerate(raw):
            item_path = f"{self._where(name)}[{idx}]"
            if not isinstance(item, Mapping):
                raise TypeError(f"{item_path} must be a mapping (type={type(item).__name__})")
            items.append(self._child(item, item_path))
        return items

    def get_str(self, key: str, *, default: str | None | object = _MISSING) -> str | None:
        name, raw = self._take(key, default)
        if raw is default and default is not _MISSING:
            return raw  # type: ignore[return-value]
        if not isinstance(raw, str):
            raise TypeError(f"{self._where(name)} must be a string (type={type(raw).__name__})")
        if not raw.strip():
            raise ValueError(f"{self._where(name)} cannot be empty")
        return raw.strip()

    def get_bool(self, key: str, *, default: bool | object = _MISSING) -> bool:
        # Strict: "yes"/1 are rejected rather than coerced.
        name, raw = self._take(key, default)
        if not isinstance(raw, bool):
            raise TypeError(f"{self._where(name)} must be a boolean (type={type(raw).__name__})")
        return raw

    def get_choice(
        self,
        key: str,
        *,
        choices: Iterable[str],
        default: str | object = _MISSING,
    ) -> str:
        allowed = tuple(choices)
        value = self.get_str(key, default=default)
        choice = str(value).strip().lower()
        if choice not in allowed:
            raise ValueError(
                f"{self._where(key.strip())} must be one of: {', '.join(allowed)} (got {value!r})"
            )
        return choice

    def get_str_list(self, key: str, *, default: Iterable[str] = ()) -> tuple[str, ...]:
        name, raw = self._take(key, tuple(default))
        if isinstance(raw, str) or not isinstance(raw, (list, tuple)):
            raise TypeError(f"{self._where(name)} must be a list of strings (type={type(raw).__name__})")
        bad = [idx for idx, item in enumerate(raw) if not isinstance(item, str) or not item.strip()]
        if bad:
            raise TypeError(f"{self._where(name)}[{bad[0]}] must be a non-empty string")
        return tuple(item.strip() for item in raw)
