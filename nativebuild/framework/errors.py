from __future__ import annotations

from typing import Iterable


class ConfigurationError(ValueError):
    """A binary cannot be turned into a stage graph with its current configuration."""

    def __init__(self, message: str, *, binary: str | None = None, field: str | None = None) -> None:
        self.binary = binary
        self.field = field
        context: list[str] = []
        if binary is not None:
            context.append(f"binary={binary}")
        if field is not None:
            context.append(f"field={field}")
        if context:
            message = f"{message} ({' '.join(context)})"
        super().__init__(message)


class NoToolchainFound(ConfigurationError):
    def __init__(
        self,
        platform: str,
        *,
        available: Iterable[str] = (),
        suggestions: Iterable[str] = (),
        binary: str | None = None,
    ) -> None:
        self.platform = platform
        self.available = tuple(available)
        self.suggestions = tuple(suggestions)
        message = (
            f"No toolchain registered for platform {platform!r} "
            f"(available: {', '.join(self.available) or '<none>'})"
        )
        if self.suggestions:
            message += f" (did you mean: {', '.join(self.suggestions)})"
        super().__init__(message, binary=binary, field="toolchain")
