import json

import pytest

from vibebuild.errors import ToolFailure
from vibebuild.models import Position
from vibebuild.session import BuildSession
from vibebuild.tools.build_tools import BUILD_TOOLS
from vibebuild.tools.redstone_tools import READ_ONLY_TOOLS, REDSTONE_TOOLS, chain_length
from vibebuild.tools.voxel_world import AIR, VoxelWorld, normalize_block

from fakes import RecordingActor, pos


P = Position


def tool_names(tools):
    return {t["name"] for t in tools}


@pytest.fixture
def session():
    return BuildSession("steve")


@pytest.fixture
def actor():
    return RecordingActor("steve")


def bounds(session):
    return session.build_min.as_tuple(), session.build_max.as_tuple()


# ============================================================================
# Voxel world
# ============================================================================

def test_normalize_block():
    assert normalize_block("minecraft:Stone_Bricks") == "stone_bricks"
    assert normalize_block("oak_stairs[facing=east,half=top]") == "oak_stairs[facing=east,half=top]"
    with pytest.raises(ToolFailure):
        normalize_block("stone bricks")
    with pytest.raises(ToolFailure):
        normalize_block("")


def test_set_region_and_air_removal():
    world = VoxelWorld()
    assert world.set_region(P(x=0, y=64, z=0), P(x=2, y=66, z=2), "stone") == 27
    assert len(world) == 27

    world.set_region(P(x=1, y=64, z=1), P(x=1, y=66, z=1), "air")
    assert len(world) == 24
    assert world.get((1, 65, 1)) == AIR


def test_walls_and_faces():
    world = VoxelWorld()
    assert world.walls(P(x=0, y=0, z=0), P(x=2, y=2, z=2), "stone") == 24
    assert world.get((1, 1, 1)) == AIR

    world = VoxelWorld()
    assert world.faces(P(x=0, y=0, z=0), P(x=2, y=2, z=2), "stone") == 26
    assert world.get((1, 1, 1)) == AIR
    assert world.get((1, 0, 1)) == "stone"


def test_line_includes_both_ends():
    world = VoxelWorld()
    assert world.line(P(x=0, y=64, z=0), P(x=3, y=64, z=0), "oak_fence") == 4
    assert world.get((3, 64, 0)) == "oak_fence"


def test_hollow_cylinder_ring():
    world = VoxelWorld()
    assert world.cylinder(P(x=0, y=64, z=0), 2, 1, "stone", hollow=True) == 12
    assert world.get((0, 64, 0)) == AIR
    assert world.get((2, 64, 0)) == "stone"
    with pytest.raises(ToolFailure):
        world.cylinder(P(x=0, y=64, z=0), 2, 0, "stone")


def test_replace_with_and_without_mask():
    world = VoxelWorld()
    world.set_region(P(x=0, y=0, z=0), P(x=1, y=0, z=0), "stone")
    world.set((2, 0, 0), "dirt")

    assert world.replace(P(x=0, y=0, z=0), P(x=2, y=0, z=0), "cobblestone", "stone") == 2
    assert world.get((2, 0, 0)) == "dirt"
    assert world.replace(P(x=0, y=0, z=0), P(x=2, y=0, z=0), "glass") == 3


def test_stack_copies_region():
    world = VoxelWorld()
    world.set((0, 64, 0), "stone")

    written = world.stack(P(x=0, y=64, z=0), P(x=1, y=64, z=0), 2, "east")

    assert written == 2
    assert world.get((2, 64, 0)) == "stone"
    assert world.get((4, 64, 0)) == "stone"
    with pytest.raises(ToolFailure):
        world.stack(P(x=0, y=64, z=0), P(x=1, y=64, z=0), 1, "sideways")


def test_region_size_is_capped():
    with pytest.raises(ToolFailure, match="Region too large"):
        VoxelWorld().set_region(P(x=0, y=0, z=0), P(x=999, y=999, z=999), "stone")


# ============================================================================
# Build tools
# ============================================================================

def test_build_catalog_names():
    assert tool_names(BUILD_TOOLS) == {
        "set", "we_replace", "we_walls", "we_faces", "we_line", "we_cyl", "we_stack", "place_block", "place_sign",
    }


def test_execute_set(build_executor, voxels, actor, session):
    result = build_executor.execute(actor, session, "set", {"pos1": pos(0, 64, 0), "pos2": pos(2, 66, 2), "pattern": "stone"})
    assert result.success
    assert result.message == "Set 27 blocks"
    assert len(voxels) == 27


def test_execute_reports_failures(build_executor, actor, session):
    bad_block = build_executor.execute(actor, session, "place_block", {"position": pos(0, 0, 0), "block": "not a block"})
    assert not bad_block.success
    assert "Invalid block" in bad_block.message

    unknown = build_executor.execute(actor, session, "explode", {})
    assert not unknown.success
    assert unknown.message == "Unknown tool: explode"

    bad_count = build_executor.execute(
        actor, session, "we_stack", {"pos1": pos(0, 0, 0), "pos2": pos(0, 0, 0), "count": "lots", "direction": "up"},
    )
    assert not bad_count.success


def test_place_sign(build_executor, voxels, actor, session):
    result = build_executor.execute(actor, session, "place_sign", {"position": pos(1, 64, 1), "lines": ["Welcome", "home"]})
    assert result.success
    assert voxels.get((1, 64, 1)) == "oak_sign"
    assert voxels.signs[(1, 64, 1)] == ("Welcome", "home")

    too_many = build_executor.execute(actor, session, "place_sign", {"position": pos(1, 64, 1), "lines": ["a"] * 5})
    assert not too_many.success


def test_bounds_from_corners(build_executor, session):
    build_executor.update_bounds(session, "set", {"pos1": pos(2, 66, 2), "pos2": pos(0, 64, 0)})
    assert bounds(session) == ((0, 64, 0), (2, 66, 2))


def test_bounds_from_cylinder(build_executor, session):
    build_executor.update_bounds(session, "we_cyl", {"center": pos(0, 64, 0), "radiusNS": 2, "height": 3})
    assert bounds(session) == ((-2, 64, -2), (2, 66, 2))


def test_bounds_from_single_position(build_executor, session):
    build_executor.update_bounds(session, "place_block", {"position": pos(5, 70, -5)})
    assert bounds(session) == ((5, 70, -5), (5, 70, -5))


def test_bounds_include_stacked_copies(build_executor, session):
    build_executor.update_bounds(
        session, "we_stack", {"pos1": pos(0, 64, 0), "pos2": pos(1, 65, 1), "count": 2, "direction": "up"},
    )
    assert bounds(session) == ((0, 64, 0), (1, 69, 1))


def test_bounds_ignore_calls_without_positions(build_executor, session):
    build_executor.update_bounds(session, "set", {"pattern": "stone"})
    assert session.build_min is None


def test_bounds_are_monotonic_across_tool_calls(build_executor, session):
    calls = [
        ("set", {"pos1": pos(0, 64, 0), "pos2": pos(2, 66, 2)}),
        ("place_block", {"position": pos(1, 65, 1)}),
        ("we_cyl", {"center": pos(10, 60, 10), "radiusNS": 3, "height": 4}),
        ("we_line", {"pos1": pos(-4, 64, 0), "pos2": pos(0, 64, 0)}),
        ("place_sign", {"position": pos(0, 80, 0)}),
    ]
    previous = None
    for name, args in calls:
        build_executor.update_bounds(session, name, args)
        current = bounds(session)
        if previous is not None:
            assert all(c <= p for c, p in zip(current[0], previous[0]))
            assert all(c >= p for c, p in zip(current[1], previous[1]))
        previous = current
    assert previous == ((-4, 60, 0), (13, 80, 13))


# ============================================================================
# Redstone tools
# ============================================================================

def test_redstone_catalog_shares_bulk_tools():
    names = tool_names(REDSTONE_TOOLS)
    assert {"set", "we_replace", "we_line", "we_stack"} <= names
    assert "we_walls" not in names
    assert READ_ONLY_TOOLS <= names


def test_shared_tools_delegate_to_build_executor(redstone_executor, voxels, actor, session):
    result = redstone_executor.execute(actor, session, "set", {"pos1": pos(0, 63, 0), "pos2": pos(3, 63, 0), "pattern": "stone"})
    assert result.success
    assert len(voxels) == 4


def test_component_needs_support(redstone_executor, voxels, actor, session):
    rejected = redstone_executor.execute(actor, session, "place_redstone_component",
                                         {"position": pos(0, 64, 0), "component": "repeater"})
    assert not rejected.success
    assert "support" in rejected.message

    voxels.set((0, 63, 0), "stone")
    placed = redstone_executor.execute(actor, session, "place_redstone_component",
                                       {"position": pos(0, 64, 0), "component": "repeater", "blockState": "facing=north, delay=2"})
    assert placed.success
    assert voxels.get((0, 64, 0)) == "repeater[facing=north,delay=2]"

    lever = redstone_executor.execute(actor, session, "place_redstone_component",
                                      {"position": pos(5, 70, 5), "component": "lever"})
    assert lever.success


def test_redstone_line_adds_supports(redstone_executor, voxels, actor, session):
    voxels.set((1, 63, 0), "dirt")

    result = redstone_executor.execute(actor, session, "place_redstone_line",
                                       {"pos1": pos(0, 64, 0), "pos2": pos(3, 64, 0)})

    assert result.message == "Placed 4 redstone dust (3 support blocks added)"
    assert voxels.get((1, 63, 0)) == "dirt"
    assert voxels.get((3, 63, 0)) == "stone"

    diagonal = redstone_executor.execute(actor, session, "place_redstone_line",
                                         {"pos1": pos(0, 64, 0), "pos2": pos(3, 64, 3)})
    assert not diagonal.success


def test_repeater_chain_layout(redstone_executor, voxels, actor, session):
    result = redstone_executor.execute(actor, session, "place_repeater_chain",
                                       {"start": pos(0, 64, 0), "direction": "east", "count": 2, "spacing": 2, "delay": 3})

    assert result.success
    assert voxels.get((0, 64, 0)) == "repeater[delay=3,facing=west]"
    assert voxels.get((1, 64, 0)) == "redstone_wire"
    assert voxels.get((2, 64, 0)) == "redstone_wire"
    assert voxels.get((3, 64, 0)) == "repeater[delay=3,facing=west]"
    assert voxels.get((4, 64, 0)) == AIR
    assert voxels.get((3, 63, 0)) == "stone"


def test_repeater_chain_rejects_bad_delay(redstone_executor, actor, session):
    result = redstone_executor.execute(actor, session, "place_repeater_chain",
                                       {"start": pos(0, 64, 0), "direction": "east", "count": 2, "delay": 5})
    assert not result.success


def test_chain_length():
    assert chain_length(1, 14) == 0
    assert chain_length(2, 2) == 3
    assert chain_length(3, 40) == 3 + 2 * 14 - 1


def test_repeater_chain_bounds(redstone_executor, session):
    redstone_executor.update_bounds(session, "place_repeater_chain",
                                    {"start": pos(0, 64, 0), "direction": "north", "count": 2, "spacing": 2})
    assert bounds(session) == ((0, 63, -3), (0, 64, 0))


def test_redstone_line_bounds_cover_supports(redstone_executor, session):
    redstone_executor.update_bounds(session, "place_redstone_line", {"pos1": pos(0, 64, 0), "pos2": pos(3, 64, 0)})
    assert bounds(session) == ((0, 63, 0), (3, 64, 0))


def test_read_only_tools_never_touch_bounds(redstone_executor, session):
    redstone_executor.update_bounds(session, "read_block", {"position": pos(9, 9, 9)})
    redstone_executor.update_bounds(session, "read_region", {"pos1": pos(0, 0, 0), "pos2": pos(9, 9, 9)})
    assert session.build_min is None


def test_read_block(redstone_executor, voxels, actor, session):
    voxels.set((1, 2, 3), "comparator[mode=subtract]")

    result = json.loads(redstone_executor.execute(actor, session, "read_block", {"position": pos(1, 2, 3)}).message)

    assert result == {
        "x": 1, "y": 2, "z": 3, "isAir": False, "blockId": "comparator", "state": "comparator[mode=subtract]",
    }


def test_read_region_truncates(redstone_executor, voxels, actor, session):
    voxels.set_region(P(x=0, y=0, z=0), P(x=4, y=0, z=0), "stone")
    voxels.set((5, 0, 0), "redstone_wire")

    result = json.loads(redstone_executor.execute(
        actor, session, "read_region", {"pos1": pos(0, 0, 0), "pos2": pos(9, 0, 0), "maxBlocks": 2},
    ).message)

    assert result["countsByBlock"] == {"redstone_wire": 1, "stone": 5}
    assert result["totalNonAir"] == 6
    assert result["returned"] == 2
    assert result["truncated"] is True
