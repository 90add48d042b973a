"""Stage graph primitives handed to an external execution engine.

This module is intentionally app-agnostic and must not import `nativebuild.*`.

A graph is assembled with `GraphBuilder` while artifact locations may still be
lazy. `GraphBuilder.build()` expands every location and validates the result;
a `StageGraph` is only ever produced whole.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Literal, TypeAlias

from stagekit.deferred import LazyValue

DependencyKind: TypeAlias = Literal["data", "ordering"]
ALLOWED_DEPENDENCY_KINDS: tuple[str, ...] = ("data", "ordering")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ArtifactRef:
    """A symbolic file location, optionally produced by a stage in the same graph."""

    location: str | LazyValue[str]
    produced_by: str | None = None
    role: str | None = None

    def __post_init__(self) -> None:
        if isinstance(self.location, str):
            if not self.location.strip():
                raise ValueError("ArtifactRef.location cannot be empty")
        elif not isinstance(self.location, LazyValue):
            raise TypeError(
                f"ArtifactRef.location must be a string or LazyValue (type={type(self.location).__name__})"
            )
        if self.produced_by is not None and (
            not isinstance(self.produced_by, str) or not self.produced_by.strip()
        ):
            raise TypeError("ArtifactRef.produced_by must be a non-empty string or None")

    @property
    def is_resolved(self) -> bool:
        return isinstance(self.location, str)

    @property
    def logical_path(self) -> str:
        if isinstance(self.location, str):
            return self.location
        value = self.location.get()
        if not isinstance(value, str) or not value.strip():
            raise ValueError(
                f"Artifact location evaluated to an invalid path: {self.location.description} -> {value!r}"
            )
        return value

    def resolve(self) -> "ArtifactRef":
        if self.is_resolved:
            return self
        return ArtifactRef(location=self.logical_path, produced_by=self.produced_by, role=self.role)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"path": self.logical_path}
        if self.produced_by is not None:
            out["produced_by"] = self.produced_by
        if self.role is not None:
            out["role"] = self.role
        return out


@dataclass(frozen=True)
class Dependency:
    stage: str
    kind: DependencyKind = "data"

    def __post_init__(self) -> None:
        if not isinstance(self.stage, str) or not self.stage.strip():
            raise TypeError("Dependency.stage must be a non-empty string")
        object.__setattr__(self, "stage", self.stage.strip())
        if self.kind not in ALLOWED_DEPENDENCY_KINDS:
            raise ValueError(f"Invalid dependency kind: {self.kind}")


@dataclass(frozen=True)
class StageNode:
    id: str
    kind: str
    owner: str
    inputs: tuple[ArtifactRef, ...] = ()
    outputs: tuple[ArtifactRef, ...] = ()
    dependencies: tuple[Dependency, ...] = ()
    properties: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for attr in ("id", "kind", "owner"):
            value = getattr(self, attr)
            if not isinstance(value, str) or not value.strip():
                raise TypeError(f"StageNode.{attr} must be a non-empty string")
            object.__setattr__(self, attr, value.strip())

        object.__setattr__(self, "inputs", tuple(self.inputs))
        object.__setattr__(self, "outputs", tuple(self.outputs))
        object.__setattr__(self, "dependencies", tuple(self.dependencies))
        object.__setattr__(self, "properties", dict(self.properties))

        seen: set[str] = set()
        for dep in self.dependencies:
            if dep.stage == self.id:
                raise ValueError(f"Stage {self.id} cannot depend on itself")
            if dep.stage in seen:
                raise ValueError(f"Stage {self.id} declares duplicate dependency on {dep.stage}")
            seen.add(dep.stage)

        for artifact in self.outputs:
            if artifact.produced_by != self.id:
                raise ValueError(
                    f"Stage {self.id} output must be produced_by={self.id} (got {artifact.produced_by!r})"
                )

    @property
    def depends_on(self) -> frozenset[str]:
        return frozenset(dep.stage for dep in self.dependencies)

    def dependency_kind(self, stage_id: str) -> DependencyKind | None:
        for dep in self.dependencies:
            if dep.stage == stage_id:
                return dep.kind
        return None

    def output(self, role: str) -> ArtifactRef:
        for artifact in self.outputs:
            if artifact.role == role:
                return artifact
        roles = ", ".join(str(a.role) for a in self.outputs) or "<none>"
        raise KeyError(f"Stage {self.id} has no output with role={role} (roles: {roles})")

    def resolve(self) -> "StageNode":
        return StageNode(
            id=self.id,
            kind=self.kind,
            owner=self.owner,
            inputs=tuple(artifact.resolve() for artifact in self.inputs),
            outputs=tuple(artifact.resolve() for artifact in self.outputs),
            dependencies=self.dependencies,
            properties={
                key: value.get() if isinstance(value, LazyValue) else value
                for key, value in self.properties.items()
            },
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind,
            "owner": self.owner,
            "inputs": [artifact.to_dict() for artifact in self.inputs],
            "outputs": [artifact.to_dict() for artifact in self.outputs],
            "depends_on": [{"stage": dep.stage, "kind": dep.kind} for dep in self.dependencies],
            "properties": _jsonable(self.properties),
        }


def _jsonable(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(v) for v in value]
    return value


@dataclass(frozen=True)
class StageGraph:
    """A validated, fully resolved set of stages plus named published outputs."""

    stages: tuple[StageNode, ...]
    outputs: Mapping[str, ArtifactRef] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "stages", tuple(self.stages))
        object.__setattr__(self, "outputs", dict(self.outputs))
        _validate(self.stages)

    @classmethod
    def union(cls, graphs: Iterable["StageGraph"]) -> "StageGraph":
        stages: list[StageNode] = []
        outputs: dict[str, ArtifactRef] = {}
        for graph in graphs:
            stages.extend(graph.stages)
            for key, artifact in graph.outputs.items():
                if key in outputs:
                    raise ValueError(f"Duplicate published output key: {key}")
                outputs[key] = artifact
        return cls(stages=tuple(stages), outputs=outputs)

    @property
    def stage_ids(self) -> tuple[str, ...]:
        return tuple(stage.id for stage in self.stages)

    def get(self, stage_id: str) -> StageNode:
        for stage in self.stages:
            if stage.id == stage_id:
                return stage
        available = ", ".join(self.stage_ids) or "<none>"
        raise KeyError(f"Unknown stage id: {stage_id} (available: {available})")

    def output(self, key: str) -> ArtifactRef:
        artifact = self.outputs.get(key)
        if artifact is None:
            available = ", ".join(sorted(self.outputs)) or "<none>"
            raise KeyError(f"No published output {key} (available: {available})")
        return artifact

    def by_kind(self, kind: str) -> tuple[StageNode, ...]:
        return tuple(stage for stage in self.stages if stage.kind == kind)

    def owned_by(self, owner: str) -> tuple[StageNode, ...]:
        return tuple(stage for stage in self.stages if stage.owner == owner)

    def edges(self) -> tuple[tuple[str, str, DependencyKind], ...]:
        """Return (upstream, downstream, kind) triples in stage order."""

        return tuple(
            (dep.stage, stage.id, dep.kind) for stage in self.stages for dep in stage.dependencies
        )

    def topological_order(self) -> tuple[StageNode, ...]:
        return _topological_order(self.stages)

    def to_dict(self) -> dict[str, Any]:
        return {
            "stages": [stage.to_dict() for stage in self.topological_order()],
            "outputs": {key: artifact.to_dict() for key, artifact in self.outputs.items()},
        }


def _validate(stages: tuple[StageNode, ...]) -> None:
    ids: set[str] = set()
    duplicates: set[str] = set()
    for stage in stages:
        if not isinstance(stage, StageNode):
            raise TypeError(f"StageGraph stages must be StageNode (type={type(stage).__name__})")
        if stage.id in ids:
            duplicates.add(stage.id)
        ids.add(stage.id)
    if duplicates:
        raise ValueError(f"Duplicate stage id: {sorted(duplicates)[0]}")

    for stage in stages:
        unknown = sorted(dep.stage for dep in stage.dependencies if dep.stage not in ids)
        if unknown:
            raise ValueError(f"Stage {stage.id} depends on unknown stage(s): {', '.join(unknown)}")
        for artifact in stage.inputs:
            if artifact.produced_by is not None and artifact.produced_by not in ids:
                raise ValueError(
                    f"Stage {stage.id} consumes an artifact from unknown stage {artifact.produced_by}"
                )

    _topological_order(stages)


def _topological_order(stages: tuple[StageNode, ...]) -> tuple[StageNode, ...]:
    # Kahn's algorithm; ties broken by declaration order so output is stable.
    position = {stage.id: idx for idx, stage in enumerate(stages)}
    remaining = {stage.id: len(stage.dependencies) for stage in stages}
    dependents: dict[str, list[str]] = {stage.id: [] for stage in stages}
    for stage in stages:
        for dep in stage.dependencies:
            dependents[dep.stage].append(stage.id)

    ready = sorted((sid for sid, count in remaining.items() if count == 0), key=position.__getitem__)
    ordered: list[StageNode] = []
    while ready:
        current = ready.pop(0)
        ordered.append(stages[position[current]])
        for downstream in dependents[current]:
            remaining[downstream] -= 1
            if remaining[downstream] == 0:
                ready.append(downstream)
                ready.sort(key=position.__getitem__)

    if len(ordered) != len(stages):
        cyclic = sorted(sid for sid, count in remaining.items() if count > 0)
        raise ValueError(f"Stage graph contains a cycle among: {', '.join(cyclic)}")
    return tuple(ordered)


class GraphBuilder:
    """Collects configured stages; `build()` resolves and publishes them atomically."""

    def __init__(self, *, owner: str) -> None:
        if not isinstance(owner, str) or not owner.strip():
            raise TypeError("GraphBuilder owner must be a non-empty string")
        self.owner = owner.strip()
        self._stages: dict[str, StageNode] = {}
        self._outputs: dict[str, ArtifactRef] = {}

    @property
    def stages(self) -> tuple[StageNode, ...]:
        return tuple(self._stages.values())

    def add(self, stage: StageNode) -> StageNode:
        if stage.owner != self.owner:
            raise ValueError(f"Stage {stage.id} belongs to {stage.owner}, not {self.owner}")
        if stage.id in self._stages:
            raise ValueError(f"Duplicate stage id: {stage.id}")
        for dep in stage.dependencies:
            if dep.stage not in self._stages:
                raise ValueError(f"Stage {stage.id} depends on unknown stage {dep.stage}")
        self._stages[stage.id] = stage
        logger.debug("Configured stage %s (kind=%s owner=%s)", stage.id, stage.kind, stage.owner)
        return stage

    def publish(self, key: str, artifact: ArtifactRef) -> None:
        if not isinstance(key, str) or not key.strip():
            raise TypeError("Published output key must be a non-empty string")
        self._outputs[key.strip()] = artifact

    def published(self, key: str) -> ArtifactRef:
        artifact = self._outputs.get(key)
        if artifact is None:
            available = ", ".join(sorted(self._outputs)) or "<none>"
            raise KeyError(f"No published output {key} (owner={self.owner}; available: {available})")
        return artifact

    def build(self) -> StageGraph:
        stages = tuple(stage.resolve() for stage in self._stages.values())
        outputs = {key: artifact.resolve() for key, artifact in self._outputs.items()}
        return StageGraph(stages=stages, outputs=outputs)
