"""
Redstone tools for the circuit builder profile.

Shares the bulk region tools with the general builder (delegated to the
BuildToolExecutor) and adds component placement, dust lines, repeater chains
and read-only inspection tools. Read-only tools never affect build bounds.
"""

import json
import logging
from collections import Counter

from vibebuild.errors import ToolFailure
from vibebuild.models import Position, ToolResult
from vibebuild.tools.build_tools import (
    BUILD_TOOLS,
    BuildToolExecutor,
    int_arg,
    require_pos,
)
from vibebuild.tools.specs import HORIZONTAL_DIRECTIONS, submit_plan_tool, tool, vec3
from vibebuild.tools.voxel_world import AIR, DIRECTION_OFFSETS, VoxelWorld, block_id, normalize_block


logger = logging.getLogger(__name__)


SHARED_TOOLS = {"set", "we_replace", "we_line", "we_stack"}

READ_ONLY_TOOLS = {"read_block", "read_region"}

COMPONENTS = [
    "redstone_wire", "redstone_torch", "redstone_wall_torch",
    "repeater", "comparator",
    "piston", "sticky_piston", "observer",
    "dropper", "dispenser", "hopper",
    "lever", "stone_button", "oak_button",
    "redstone_lamp", "target", "daylight_detector",
    "tripwire_hook", "trapped_chest", "note_block", "tnt",
    "redstone_block", "slime_block", "honey_block",
]

# Components that pop off without a solid block underneath.
_NEEDS_SUPPORT = {"redstone_wire", "repeater", "comparator"}

MAX_REPEATER_SPACING = 14
DEFAULT_READ_LIMIT = 1000
MAX_READ_LIMIT = 5000


# ============================================================================
# Claude Tool Definitions
# ============================================================================

REDSTONE_PLANNER_TOOL = submit_plan_tool(
    description="Submit the redstone circuit plan. Call this exactly once with the complete plan.",
    title_description="Short title for the circuit",
    origin_description="Circuit origin coordinates",
    steps_description=(
        "Ordered list of circuit subsystems to build "
        "(signal flow order: inputs, logic, transmission, output)"
    ),
    step_id_description="Short kebab-case id like 'input-lever' or 'signal-line'",
    feature_description="What this circuit subsystem is",
    details_description="Precise details: component types, positions, facing, delays, signal path, support blocks",
)

REDSTONE_TOOLS = [t for t in BUILD_TOOLS if t["name"] in SHARED_TOOLS] + [
    tool(
        "place_redstone_component",
        "Place a single redstone component at a position with full block state control. "
        "The blockState string sets properties like facing, delay, mode.",
        {
            "position": vec3("Position to place the component"),
            "component": {"type": "string", "enum": COMPONENTS, "description": "Redstone component type"},
            "blockState": {
                "type": "string",
                "description": "Block state properties as key=value pairs separated by commas, "
                               "e.g. 'facing=north,delay=2' for a repeater. Omit for defaults.",
            },
        },
        ["position", "component"],
    ),
    tool(
        "place_redstone_line",
        "Place a straight line of redstone dust on solid support blocks from pos1 to pos2. "
        "Places support blocks beneath each dust position if missing. Axis-aligned lines only.",
        {
            "pos1": vec3("Start position (where dust sits, not the support block)"),
            "pos2": vec3("End position"),
            "supportBlock": {"type": "string", "description": "Block beneath dust if needed (default: stone)"},
        },
        ["pos1", "pos2"],
    ),
    tool(
        "place_repeater_chain",
        "Place a chain of repeaters with redstone dust between them along a straight line. "
        "Places support blocks beneath. Repeaters face the signal flow direction.",
        {
            "start": vec3("Starting position"),
            "direction": {"type": "string", "enum": HORIZONTAL_DIRECTIONS, "description": "Direction of signal flow"},
            "count": {"type": "integer", "description": "Number of repeaters to place"},
            "delay": {"type": "integer", "description": "Repeater delay 1-4 ticks (default 1)"},
            "spacing": {"type": "integer", "description": "Blocks of dust between repeaters (default 14, max 14)"},
            "supportBlock": {"type": "string", "description": "Block beneath components (default: stone)"},
        },
        ["start", "direction", "count"],
    ),
    tool(
        "read_block",
        "Read one block at a position for verification. Returns x/y/z, isAir, blockId and full state.",
        {"position": vec3("Position to read")},
        ["position"],
    ),
    tool(
        "read_region",
        "Read non-air blocks in a cuboid region for auditing. "
        "Returns countsByBlock, the blocks themselves and truncation metadata.",
        {
            "pos1": vec3("First corner"),
            "pos2": vec3("Opposite corner"),
            "maxBlocks": {"type": "integer", "description": "Maximum block entries to return (default 1000, max 5000)"},
        },
        ["pos1", "pos2"],
    ),
]


def chain_length(count: int, spacing: int) -> int:
    """Blocks covered by a repeater chain, repeaters and dust included, minus the start block."""
    if count <= 0:
        return 0
    spacing = max(0, min(MAX_REPEATER_SPACING, spacing))
    return count + (count - 1) * spacing - 1


def _horizontal(direction: str) -> tuple[int, int, int]:
    direction = (direction or "").lower()
    if direction not in HORIZONTAL_DIRECTIONS:
        raise ToolFailure(f"Direction must be one of {', '.join(HORIZONTAL_DIRECTIONS)}")
    return DIRECTION_OFFSETS[direction]


# ============================================================================
# Executor
# ============================================================================

class RedstoneToolExecutor:
    """Routes redstone tool calls. Shared bulk tools go to the build executor."""

    def __init__(self, world: VoxelWorld, build_executor: BuildToolExecutor | None = None):
        self.world = world
        self.build_executor = build_executor or BuildToolExecutor(world)

    def execute(self, actor, session, tool_name: str, args: dict) -> ToolResult:
        if tool_name in SHARED_TOOLS:
            return self.build_executor.execute(actor, session, tool_name, args)

        try:
            if tool_name == "place_redstone_component":
                message = self._place_component(args)
            elif tool_name == "place_redstone_line":
                message = self._place_line(args)
            elif tool_name == "place_repeater_chain":
                message = self._place_repeater_chain(args)
            elif tool_name == "read_block":
                message = self._read_block(args)
            elif tool_name == "read_region":
                message = self._read_region(args)
            else:
                raise ToolFailure(f"Unknown redstone tool: {tool_name}")
        except (ToolFailure, KeyError, TypeError, ValueError) as e:
            logger.error("[VB-RS] Tool '%s' failed: %s", tool_name, e)
            return ToolResult.fail(str(e))
        return ToolResult.ok(message)

    def update_bounds(self, session, tool_name: str, args: dict) -> None:
        """Expand session bounds for mutating tools only."""
        if tool_name in READ_ONLY_TOOLS:
            return
        if tool_name in SHARED_TOOLS:
            self.build_executor.update_bounds(session, tool_name, args)
            return

        p1 = Position.from_args(args, "pos1")
        p2 = Position.from_args(args, "pos2")
        if p1 is not None and p2 is not None:
            # Dust lines also place support blocks one below.
            session.expand_bounds(p1.offset(0, -1, 0), p2)
            return

        position = Position.from_args(args, "position")
        if position is not None:
            session.expand_bounds(position, position)

        start = Position.from_args(args, "start")
        if start is not None:
            end = start
            direction = str(args.get("direction", "")).lower()
            if tool_name == "place_repeater_chain" and direction in HORIZONTAL_DIRECTIONS:
                length = chain_length(_int_or(args.get("count"), 0), _int_or(args.get("spacing"), MAX_REPEATER_SPACING))
                dx, _, dz = DIRECTION_OFFSETS[direction]
                end = start.offset(dx * length, 0, dz * length)
            session.expand_bounds(start.offset(0, -1, 0), end)

    # -- Tool implementations --

    def _place_component(self, args: dict) -> str:
        position = require_pos(args, "position")
        component = str(args.get("component", "")).lower()
        if component not in COMPONENTS:
            raise ToolFailure(f"Unknown redstone component: {component}")

        state = component
        block_state = (args.get("blockState") or "").replace(" ", "")
        if block_state:
            state = normalize_block(f"{component}[{block_state}]")

        if component in _NEEDS_SUPPORT and self.world.get(position.offset(0, -1, 0).as_tuple()) == AIR:
            raise ToolFailure(
                f"Placement rejected: {component} needs a solid support block below {position}"
            )

        self.world.set(position.as_tuple(), state)
        return f"Placed {state} at {position}"

    def _place_line(self, args: dict) -> str:
        p1 = require_pos(args, "pos1")
        p2 = require_pos(args, "pos2")
        if p1.y != p2.y or (p1.x != p2.x and p1.z != p2.z):
            raise ToolFailure("Redstone lines must be axis-aligned at a single Y level")
        support = normalize_block(args.get("supportBlock") or "stone")

        placed = 0
        supports = 0
        for pos in _axis_line(p1, p2):
            below = (pos[0], pos[1] - 1, pos[2])
            if self.world.get(below) == AIR:
                self.world.set(below, support)
                supports += 1
            self.world.set(pos, "redstone_wire")
            placed += 1
        return f"Placed {placed} redstone dust ({supports} support blocks added)"

    def _place_repeater_chain(self, args: dict) -> str:
        start = require_pos(args, "start")
        direction = str(args.get("direction", "")).lower()
        dx, _, dz = _horizontal(direction)
        count = int_arg(args, "count", 0)
        if count < 1:
            raise ToolFailure("count must be >= 1")
        delay = int_arg(args, "delay", 1)
        if not 1 <= delay <= 4:
            raise ToolFailure("delay must be between 1 and 4")
        spacing = max(0, min(MAX_REPEATER_SPACING, int_arg(args, "spacing", MAX_REPEATER_SPACING)))
        support = normalize_block(args.get("supportBlock") or "stone")

        # Repeater "facing" points at the block the signal comes from.
        opposite = {"north": "south", "south": "north", "east": "west", "west": "east"}[direction]
        repeater = f"repeater[delay={delay},facing={opposite}]"

        length = chain_length(count, spacing)
        for i in range(length + 1):
            pos = (start.x + dx * i, start.y, start.z + dz * i)
            below = (pos[0], pos[1] - 1, pos[2])
            if self.world.get(below) == AIR:
                self.world.set(below, support)
            is_repeater = i % (spacing + 1) == 0
            self.world.set(pos, repeater if is_repeater else "redstone_wire")
        return f"Placed {count} repeaters over {length + 1} blocks heading {direction}"

    def _read_block(self, args: dict) -> str:
        position = require_pos(args, "position")
        state = self.world.get(position.as_tuple())
        return json.dumps({
            "x": position.x,
            "y": position.y,
            "z": position.z,
            "isAir": state == AIR,
            "blockId": block_id(state),
            "state": state,
        })

    def _read_region(self, args: dict) -> str:
        p1 = require_pos(args, "pos1")
        p2 = require_pos(args, "pos2")
        limit = max(1, min(MAX_READ_LIMIT, int_arg(args, "maxBlocks", DEFAULT_READ_LIMIT)))

        blocks = sorted(self.world.blocks_in(p1, p2).items())
        counts = Counter(block_id(state) for _, state in blocks)
        returned = [{"x": x, "y": y, "z": z, "state": state} for (x, y, z), state in blocks[:limit]]
        return json.dumps({
            "countsByBlock": dict(sorted(counts.items())),
            "totalNonAir": len(blocks),
            "returned": len(returned),
            "truncated": len(blocks) > limit,
            "blocks": returned,
        })


def _axis_line(p1: Position, p2: Position):
    if p1.x != p2.x:
        step = 1 if p2.x > p1.x else -1
        for x in range(p1.x, p2.x + step, step):
            yield (x, p1.y, p1.z)
    else:
        step = 1 if p2.z >= p1.z else -1
        for z in range(p1.z, p2.z + step, step):
            yield (p1.x, p1.y, z)


def _int_or(value, default: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default
