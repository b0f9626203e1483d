# World-editing tools for the executor stage and their Claude tool schemas.

from vibebuild.tools.voxel_world import VoxelWorld

from vibebuild.tools.build_tools import (
    BUILD_PLANNER_TOOL,
    BUILD_TOOLS,
    BuildToolExecutor,
)

from vibebuild.tools.redstone_tools import (
    REDSTONE_PLANNER_TOOL,
    REDSTONE_TOOLS,
    RedstoneToolExecutor,
)

from vibebuild.tools.schematic import SchematicExporter, paste_clipboard

__all__ = [
    "VoxelWorld",
    # General builder
    "BUILD_PLANNER_TOOL",
    "BUILD_TOOLS",
    "BuildToolExecutor",
    # Redstone builder
    "REDSTONE_PLANNER_TOOL",
    "REDSTONE_TOOLS",
    "RedstoneToolExecutor",
    # Export
    "SchematicExporter",
    "paste_clipboard",
]
