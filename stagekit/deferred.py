"""Deferred and lazily-evaluated values for stage configuration.

Stage outputs are frequently described before every input is known. Two small
primitives cover this:

- `DeferredValue`: a resolve-once slot. Reading it before it is set fails with
  `UnresolvedValueError` (carrying a human label), rather than returning None.
- `LazyValue`: an expression recomputed on every read. Nothing is cached, so a
  value read after a deferred input was set observes the new input.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Generic, TypeVar

T = TypeVar("T")
U = TypeVar("U")

_UNSET = object()


class UnresolvedValueError(ValueError):
    """Raised when a deferred value is read before it was resolved."""

    def __init__(self, label: str) -> None:
        self.label = label
        super().__init__(f"Value is not resolved: {label}")


@dataclass
class DeferredValue(Generic[T]):
    label: str
    _value: Any = field(default=_UNSET, init=False, repr=False)

    def __post_init__(self) -> None:
        if not isinstance(self.label, str) or not self.label.strip():
            raise TypeError("DeferredValue.label must be a non-empty string")
        self.label = self.label.strip()

    @classmethod
    def of(cls, value: T, *, label: str) -> "DeferredValue[T]":
        cell: DeferredValue[T] = cls(label)
        cell.set(value)
        return cell

    @property
    def is_resolved(self) -> bool:
        return self._value is not _UNSET

    def set(self, value: T) -> None:
        if value is None:
            raise ValueError(f"{self.label} cannot be set to None")
        if self._value is not _UNSET:
            raise ValueError(f"{self.label} is already resolved (value={self._value!r})")
        self._value = value

    def get(self) -> T:
        if self._value is _UNSET:
            raise UnresolvedValueError(self.label)
        return self._value

    def get_or(self, default: U) -> T | U:
        if self._value is _UNSET:
            return default
        return self._value


class LazyValue(Generic[T]):
    """A zero-argument expression that is evaluated on every `get()`."""

    __slots__ = ("_compute", "description")

    def __init__(self, compute: Callable[[], T], *, description: str) -> None:
        if not callable(compute):
            raise TypeError(f"LazyValue compute must be callable (type={type(compute).__name__})")
        self._compute = compute
        self.description = description

    def get(self) -> T:
        return self._compute()

    def map(self, fn: Callable[[T], U], *, description: str | None = None) -> "LazyValue[U]":
        return LazyValue(lambda: fn(self._compute()), description=description or self.description)

    def __repr__(self) -> str:
        return f"LazyValue({self.description})"
