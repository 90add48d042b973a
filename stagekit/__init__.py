"""Reusable stage-graph kernel (deferred values + graph primitives + config reader).

This package is intentionally independent of `nativebuild.*`. Build policy (which
stages exist, how they are named, where their outputs live) must live in the
consuming application.
"""

from stagekit.config_namespace import ConfigNamespace
from stagekit.deferred import DeferredValue, LazyValue, UnresolvedValueError
from stagekit.graph import (
    ALLOWED_DEPENDENCY_KINDS,
    ArtifactRef,
    Dependency,
    DependencyKind,
    GraphBuilder,
    StageGraph,
    StageNode,
)

__all__ = [
    "ALLOWED_DEPENDENCY_KINDS",
    "ArtifactRef",
    "ConfigNamespace",
    "DeferredValue",
    "Dependency",
    "DependencyKind",
    "GraphBuilder",
    "LazyValue",
    "StageGraph",
    "StageNode",
    "UnresolvedValueError",
]
