"""Native binary build policy.

This package decides which stages a binary needs, how they are named, where
their outputs live, and how they depend on one another. It never executes a
stage: the resulting `stagekit.StageGraph` is handed to an execution engine.

Common entrypoints:

- `nativebuild.framework.pipeline_builder.PipelineBuilder`: configure/finalize stage graphs
- `nativebuild.framework.descriptor.BinaryDescriptor`: input description of one binary
- `nativebuild.framework.toolchain.ToolchainRegistry`: platform tool providers

For generic graph primitives, use `stagekit`.
"""

from nativebuild.framework.descriptor import BinaryDescriptor, BinaryFlags, BinaryKind
from nativebuild.framework.errors import ConfigurationError, NoToolchainFound
from nativebuild.framework.names import Names
from nativebuild.framework.paths import PathPolicy
from nativebuild.framework.pipeline_builder import BinaryPipeline, PipelineBuilder
from nativebuild.framework.toolchain import PlatformToolProvider, ToolchainRegistry, ToolProvider

__all__ = [
    "BinaryDescriptor",
    "BinaryFlags",
    "BinaryKind",
    "BinaryPipeline",
    "ConfigurationError",
    "Names",
    "NoToolchainFound",
    "PathPolicy",
    "PipelineBuilder",
    "PlatformToolProvider",
    "ToolProvider",
    "ToolchainRegistry",
]
