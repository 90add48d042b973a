"""`stagekit` invariants and boundaries.

Generic invariants:

1) `stagekit` must not import `nativebuild.*`.
2) `stagekit` provides graph primitives (StageNode/StageGraph/GraphBuilder), deferred
   value cells, and a strict config reader.
3) `stagekit` does not define build conventions like:
   - which stage kinds exist or when a stage is created
   - how stage ids or artifact paths are derived
   - which platforms or toolchains are available

A `StageGraph` carries two dependency kinds. A "data" dependency means the
downstream stage consumes an output of the upstream stage. An "ordering"
dependency only constrains execution order; no artifact flows along it.
"""
