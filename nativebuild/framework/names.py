"""Stage-name and directory derivation for binary variants."""

from __future__ import annotations

from dataclasses import dataclass

MAIN_VARIANT = "main"


def _capitalize(value: str) -> str:
    if not value:
        return value
    return value[0].upper() + value[1:]


def _dir_segment(name: str) -> str:
    # Every uppercase letter after the first character starts a new directory.
    parts: list[str] = []
    for idx, ch in enumerate(name):
        if ch.isupper() and idx > 0:
            parts.append("/")
        parts.append(ch.lower())
    parts.append("/")
    return "".join(parts)


@dataclass(frozen=True)
class Names:
    """Naming conventions shared by every stage of one binary.

    `task_prefix` is appended to stage actions (`link` + `Release`), and
    `dir_segment` is the per-variant directory used in every output path
    (always ends with `/`). The `main` variant has an empty prefix so its
    stages read `link`, `install`, ... and its directory is `main/`.

    Derivation never fails; binary names are validated by `BinaryDescriptor`.
    """

    binary: str
    task_prefix: str
    dir_segment: str

    @classmethod
    def of(cls, name: str) -> "Names":
        if name == MAIN_VARIANT:
            return cls(binary=name, task_prefix="", dir_segment="main/")
        return cls(binary=name, task_prefix=_capitalize(name), dir_segment=_dir_segment(name))

    def task_name(self, action: str) -> str:
        return f"{action}{self.task_prefix}"

    def compile_task_name(self, language: str) -> str:
        return f"compile{self.task_prefix}{_capitalize(language)}"


def derive(binary_name: str) -> Names:
    return Names.of(binary_name)
