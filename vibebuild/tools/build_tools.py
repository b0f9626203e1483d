"""
Building tools for the general builder profile.

These are the world-editing operations the executor model can call during a
build step, plus the planner's submit_plan contract. Each tool maps to a
deterministic VoxelWorld operation; the model decides what to build and this
code does the block math.
"""

import json
import logging

from vibebuild.errors import ToolFailure
from vibebuild.models import Position, ToolResult
from vibebuild.tools.specs import DIRECTIONS, submit_plan_tool, tool, vec3
from vibebuild.tools.voxel_world import DIRECTION_OFFSETS, VoxelWorld, normalize_block


logger = logging.getLogger(__name__)


# ============================================================================
# Claude Tool Definitions
# ============================================================================

BUILD_PLANNER_TOOL = submit_plan_tool(
    description="Submit the build plan. Call this exactly once with the complete feature list.",
    title_description="Short title for the build",
    origin_description="Build origin coordinates",
    steps_description="Ordered list of features to build",
    step_id_description="Short kebab-case id like 'foundation' or 'roof'",
    feature_description="What this feature is",
    details_description="Creative details for the executor: materials, dimensions, coordinates, block states, etc.",
)

_PATTERN = {"type": "string", "description": "Block to use, e.g. 'stone_bricks' or 'oak_stairs[facing=east]'"}

BUILD_TOOLS = [
    tool(
        "set",
        "Set all blocks within a cuboid region to a block. Replaces EVERY block including air.",
        {"pos1": vec3("First corner"), "pos2": vec3("Opposite corner"), "pattern": _PATTERN},
        ["pos1", "pos2", "pattern"],
    ),
    tool(
        "we_replace",
        "Replace blocks matching a mask with a new block within a cuboid region.",
        {
            "pos1": vec3("First corner"),
            "pos2": vec3("Opposite corner"),
            "from": {"type": "string", "description": "Block to replace (omit to replace all non-air)"},
            "to": {"type": "string", "description": "Block to replace with"},
        },
        ["pos1", "pos2", "to"],
    ),
    tool(
        "we_walls",
        "Build the four vertical walls of a cuboid region. Floor and ceiling are left untouched.",
        {"pos1": vec3("First corner"), "pos2": vec3("Opposite corner"), "pattern": _PATTERN},
        ["pos1", "pos2", "pattern"],
    ),
    tool(
        "we_faces",
        "Build all six faces of a cuboid region (a hollow box).",
        {"pos1": vec3("First corner"), "pos2": vec3("Opposite corner"), "pattern": _PATTERN},
        ["pos1", "pos2", "pattern"],
    ),
    tool(
        "we_line",
        "Draw a straight line of blocks between two points.",
        {"pos1": vec3("Start point"), "pos2": vec3("End point"), "pattern": _PATTERN},
        ["pos1", "pos2", "pattern"],
    ),
    tool(
        "we_cyl",
        "Generate a vertical cylinder standing on the center position.",
        {
            "center": vec3("Center of the bottom layer"),
            "radiusNS": {"type": "integer", "description": "Radius in blocks"},
            "height": {"type": "integer", "description": "Height in blocks (default 1)"},
            "pattern": _PATTERN,
            "hollow": {"type": "boolean", "description": "Only the outer shell (default false)"},
        },
        ["center", "radiusNS", "pattern"],
    ),
    tool(
        "we_stack",
        "Repeat/stack cuboid contents multiple times in a direction.",
        {
            "pos1": vec3("First corner"),
            "pos2": vec3("Opposite corner"),
            "count": {"type": "integer", "description": "Number of repetitions"},
            "direction": {"type": "string", "enum": DIRECTIONS, "description": "Cardinal or vertical direction"},
            "ignoreAir": {"type": "boolean", "description": "Skip air blocks (default true)"},
        },
        ["pos1", "pos2", "count", "direction"],
    ),
    tool(
        "place_block",
        "Place a single block, with optional block state.",
        {"position": vec3("Where to place the block"), "block": _PATTERN},
        ["position", "block"],
    ),
    tool(
        "place_sign",
        "Place a sign with up to four lines of text.",
        {
            "position": vec3("Where to place the sign"),
            "lines": {"type": "array", "items": {"type": "string"}, "description": "Up to 4 lines of text"},
            "block": {"type": "string", "description": "Sign block (default 'oak_sign')"},
        },
        ["position", "lines"],
    ),
]


# ============================================================================
# Argument Helpers
# ============================================================================

def require_pos(args: dict, key: str) -> Position:
    position = Position.from_args(args, key)
    if position is None:
        raise ToolFailure(f"Missing or invalid '{key}' (expected {{x, y, z}} integers)")
    return position


def require_block(args: dict, key: str) -> str:
    value = args.get(key)
    if not isinstance(value, str):
        raise ToolFailure(f"Missing '{key}'")
    return normalize_block(value)


def int_arg(args: dict, key: str, default: int) -> int:
    value = args.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ToolFailure(f"'{key}' must be an integer")
    return int(value)


# ============================================================================
# Executor
# ============================================================================

class BuildToolExecutor:
    """Routes build tool calls to the voxel world. World thread only."""

    def __init__(self, world: VoxelWorld):
        self.world = world

    def execute(self, actor, session, tool_name: str, args: dict) -> ToolResult:
        try:
            return ToolResult.ok(self._dispatch(tool_name, args))
        except (ToolFailure, KeyError, TypeError, ValueError) as e:
            logger.error("[VB] Tool '%s' failed: %s", tool_name, e)
            return ToolResult.fail(str(e))

    def _dispatch(self, name: str, a: dict) -> str:
        world = self.world
        if name == "set":
            count = world.set_region(require_pos(a, "pos1"), require_pos(a, "pos2"), require_block(a, "pattern"))
            return f"Set {count} blocks"
        elif name == "we_replace":
            from_ = normalize_block(a["from"]) if a.get("from") else None
            count = world.replace(require_pos(a, "pos1"), require_pos(a, "pos2"), require_block(a, "to"), from_)
            return f"Replaced {count} blocks"
        elif name == "we_walls":
            count = world.walls(require_pos(a, "pos1"), require_pos(a, "pos2"), require_block(a, "pattern"))
            return f"Built walls ({count} blocks)"
        elif name == "we_faces":
            count = world.faces(require_pos(a, "pos1"), require_pos(a, "pos2"), require_block(a, "pattern"))
            return f"Built faces ({count} blocks)"
        elif name == "we_line":
            count = world.line(require_pos(a, "pos1"), require_pos(a, "pos2"), require_block(a, "pattern"))
            return f"Drew line ({count} blocks)"
        elif name == "we_cyl":
            count = world.cylinder(
                require_pos(a, "center"),
                int_arg(a, "radiusNS", 0),
                int_arg(a, "height", 1),
                require_block(a, "pattern"),
                hollow=bool(a.get("hollow", False)),
            )
            return f"Generated cylinder ({count} blocks)"
        elif name == "we_stack":
            count = world.stack(
                require_pos(a, "pos1"),
                require_pos(a, "pos2"),
                int_arg(a, "count", 1),
                a.get("direction", ""),
                ignore_air=bool(a.get("ignoreAir", True)),
            )
            return f"Stacked {count} blocks"
        elif name == "place_block":
            position = require_pos(a, "position")
            block = require_block(a, "block")
            world.set(position.as_tuple(), block)
            return f"Placed {block} at {position}"
        elif name == "place_sign":
            return self._place_sign(a)
        raise ToolFailure(f"Unknown tool: {name}")

    def _place_sign(self, a: dict) -> str:
        position = require_pos(a, "position")
        lines = a.get("lines") or []
        if not isinstance(lines, list) or len(lines) > 4:
            raise ToolFailure("'lines' must be a list of at most 4 strings")
        block = normalize_block(a.get("block") or "oak_sign")
        if "sign" not in block:
            raise ToolFailure(f"Not a sign block: {block}")
        self.world.set(position.as_tuple(), block)
        self.world.signs[position.as_tuple()] = tuple(str(line)[:90] for line in lines)
        return f"Placed sign at {position}: {json.dumps(lines)}"

    def update_bounds(self, session, tool_name: str, args: dict) -> None:
        """Expand session bounds from the positional arguments of a successful call."""
        p1 = Position.from_args(args, "pos1")
        p2 = Position.from_args(args, "pos2")
        if p1 is not None and p2 is not None:
            session.expand_bounds(p1, p2)
            if tool_name == "we_stack":
                self._expand_stack_bounds(session, p1, p2, args)

        center = Position.from_args(args, "center")
        if center is not None:
            r = _safe_int(args.get("radiusNS"), 0)
            h = _safe_int(args.get("height"), 1)
            session.expand_bounds(center.offset(-r, 0, -r), center.offset(r, max(h - 1, 0), r))

        position = Position.from_args(args, "position")
        if position is not None:
            session.expand_bounds(position, position)

    def _expand_stack_bounds(self, session, p1: Position, p2: Position, args: dict) -> None:
        count = _safe_int(args.get("count"), 0)
        direction = str(args.get("direction", "")).lower()
        if count < 1 or direction not in DIRECTION_OFFSETS:
            return
        ox, oy, oz = DIRECTION_OFFSETS[direction]
        sx = (abs(p2.x - p1.x) + 1) * count
        sy = (abs(p2.y - p1.y) + 1) * count
        sz = (abs(p2.z - p1.z) + 1) * count
        session.expand_bounds(p1.offset(ox * sx, oy * sy, oz * sz), p2.offset(ox * sx, oy * sy, oz * sz))


def _safe_int(value, default: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default
