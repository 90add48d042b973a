"""YAML build-config discovery and loading.

A build config is read from exactly one of:

1. an explicit path (single file)
2. the file named by the `NATIVEBUILD_CONFIG` environment variable (single file)
3. `<repo_root>/config/build.yaml`, with `build.local.yaml` from the same
   directory deep-merged on top when present

Overlays replace lists wholesale and merge mappings key by key. An overlay may
not change the shape of a value (mapping vs list vs scalar).
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

DEFAULT_ENV_VAR = "NATIVEBUILD_CONFIG"
REPO_MARKERS: tuple[str, ...] = ("pyproject.toml", ".git")


def find_repo_root(start: str | os.PathLike[str] | None = None) -> str:
    origin = Path(start or os.getcwd()).resolve()
    if origin.is_file():
        origin = origin.parent

    for directory in (origin, *origin.parents):
        if (directory / "pyproject.toml").is_file() or (directory / ".git").exists():
            return str(directory)

    raise FileNotFoundError(f"Cannot locate repo root above {origin} (markers: {', '.join(REPO_MARKERS)})")


@dataclass(frozen=True)
class ConfigLayer:
    path: str
    data: dict[str, Any]

    @classmethod
    def read(cls, path: str) -> "ConfigLayer":
        absolute = os.path.abspath(path)
        with open(absolute, "r", encoding="utf-8") as handle:
            try:
                payload = yaml.safe_load(handle)
            except yaml.YAMLError as exc:
                raise ValueError(f"Invalid YAML in {absolute}: {exc}") from exc

        if payload is None:
            return cls(absolute, {})
        if not isinstance(payload, Mapping):
            raise ValueError(f"Config file must contain a YAML mapping: {absolute}")
        return cls(absolute, dict(payload))


def _shape(value: Any) -> str:
    if isinstance(value, Mapping):
        return "mapping"
    if isinstance(value, (list, tuple)):
        return "list"
    return type(value).__name__


def deep_merge(base: Any, overlay: Any, *, path: str) -> Any:
    """Merge `overlay` onto `base`; `path` names the position for error messages."""

    if overlay is None or base is None:
        return overlay

    base_shape, overlay_shape = _shape(base), _shape(overlay)
    structured = {"mapping", "list"}
    if (base_shape in structured or overlay_shape in structured) and base_shape != overlay_shape:
        raise ValueError(
            f"Invalid config overlay merge at {path or '<root>'}: "
            f"base is {base_shape} but overlay is {overlay_shape}"
        )

    if base_shape == "list":
        return list(overlay)
    if base_shape != "mapping":
        return overlay

    merged: dict[str, Any] = dict(base)
    for key, value in overlay.items():
        child_path = f"{path}.{key}" if path else str(key)
        merged[key] = deep_merge(base[key], value, path=child_path) if key in base else value
    return merged


def _explicit_path(config_path: str | os.PathLike[str] | None, env_var: str | None) -> tuple[str | None, str]:
    if config_path is not None:
        return (str(config_path).strip() or None), "explicit"
    if env_var:
        return (os.environ.get(env_var, "").strip() or None), "env"
    return None, "env"


def load_config(
    *,
    config_path: str | os.PathLike[str] | None = None,
    env_var: str | None = DEFAULT_ENV_VAR,
    config_dir: str = "config",
    config_name: str = "build",
    start_dir: str | None = None,
) -> tuple[dict[str, Any], dict[str, Any]]:
    """
    Load the build configuration, returning (config_mapping, load_metadata).

    `load_metadata["mode"]` is one of `explicit`, `env`, `base`, `base+local`.
    A relative `config_dir` is resolved from the repo root found above
    `start_dir` (default: the working directory).
    """

    single, mode = _explicit_path(config_path, env_var)
    if single:
        layer = ConfigLayer.read(os.path.expandvars(os.path.expanduser(single)))
        return layer.data, {"mode": mode, "paths": [layer.path], "env_var": env_var, "repo_root": None}

    repo_root: str | None = None
    directory = config_dir
    if not os.path.isabs(config_dir):
        repo_root = find_repo_root(start_dir)
        directory = os.path.join(repo_root, config_dir)

    base_path = os.path.join(directory, f"{config_name}.yaml")
    if not os.path.exists(base_path):
        raise FileNotFoundError(f"Missing base config file: {base_path}")

    layers = [ConfigLayer.read(base_path)]
    local_path = os.path.join(directory, f"{config_name}.local.yaml")
    if os.path.exists(local_path):
        layers.append(ConfigLayer.read(local_path))

    cfg: dict[str, Any] = {}
    for layer in layers:
        cfg = deep_merge(cfg, layer.data, path="")

    meta = {
        "mode": "base+local" if len(layers) > 1 else "base",
        "paths": [layer.path for layer in layers],
        "env_var": env_var,
        "repo_root": repo_root,
    }
    return cfg, meta
