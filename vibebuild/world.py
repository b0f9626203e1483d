"""
Scratch build world bookkeeping.

Builds happen in a dedicated empty world so the player's own world is never
touched until they place the result. This module moves the player in and out
of that world, points their view at the build and wipes old builds.

All methods run on the world thread.
"""

import logging
import math

from vibebuild.models import Position
from vibebuild.tools.voxel_world import VoxelWorld


logger = logging.getLogger(__name__)

BUILD_WORLD = "build_world"

# Default build origin when no origin is known yet.
DEFAULT_BUILD_CENTER = (0.5, 64.0, 0.5)

# Spectator distance from the build center.
SPECTATOR_OFFSET = 30.0
SPECTATOR_HEIGHT_OFFSET = 15.0


def look_at(src: tuple[float, float, float], dst: tuple[float, float, float]) -> tuple[float, float]:
    """Yaw and pitch in degrees to look from src toward dst."""
    dx = dst[0] - src[0]
    dy = dst[1] - src[1]
    dz = dst[2] - src[2]
    dist = math.sqrt(dx * dx + dz * dz)
    yaw = math.degrees(math.atan2(-dx, dz))
    pitch = math.degrees(-math.atan2(dy, dist))
    return yaw, pitch


class BuildWorld:
    """The scratch world plus player teleport state."""

    def __init__(self, voxels: VoxelWorld):
        self.voxels = voxels

    def save_player_state(self, actor, session) -> None:
        """Remember where the player was so teleport_back can restore it."""
        session.original_world = actor.world
        session.original_position = tuple(actor.position)
        session.original_rotation = (actor.yaw, actor.pitch)
        session.original_game_mode = actor.game_mode

    def teleport_to_build_world(self, actor, session) -> None:
        """Move the player into the scratch world as a spectator facing the build area."""
        if session.build_origin is not None:
            o = session.build_origin
            center = (o.x + 0.5, float(o.y), o.z + 0.5)
        else:
            center = DEFAULT_BUILD_CENTER

        # South-west of the build, looking north-east.
        spawn = (center[0] - SPECTATOR_OFFSET, center[1] + SPECTATOR_HEIGHT_OFFSET, center[2] + SPECTATOR_OFFSET)
        self._teleport(actor, BUILD_WORLD, spawn, look_at(spawn, center))
        actor.game_mode = "spectator"
        session.in_build_world = True
        logger.info("[VB] Teleported %s to build world (spectator)", session.player_name)

    def reposition_to_face_build(self, actor, session, origin: Position) -> None:
        """Point the spectator at a plan origin once the plan is known."""
        center = (origin.x + 0.5, float(origin.y), origin.z + 0.5)
        spawn = (
            center[0] - SPECTATOR_OFFSET * 0.7,
            center[1] + SPECTATOR_HEIGHT_OFFSET,
            center[2] + SPECTATOR_OFFSET * 0.7,
        )
        self._teleport(actor, BUILD_WORLD, spawn, look_at(spawn, center))

    def teleport_back(self, actor, session) -> None:
        """Return the player to where they were before entering the scratch world."""
        session.in_build_world = False
        session.has_been_positioned = False
        if session.original_world is None:
            return

        rotation = session.original_rotation or (0.0, 0.0)
        self._teleport(actor, session.original_world, session.original_position, rotation)
        actor.game_mode = session.original_game_mode or "survival"
        logger.info("[VB] Teleported %s back to %s", session.player_name, session.original_world)
        session.original_world = None

    def reset_build_world(self, session) -> int:
        """Clear every block inside the last build bounds, then forget the bounds."""
        if session.build_min is None or session.build_max is None:
            return 0
        count = self.voxels.clear_region(session.build_min, session.build_max)
        logger.info(
            "[VB] Reset build world: cleared %d blocks (%s -> %s) for %s",
            count, session.build_min, session.build_max, session.player_name,
        )
        session.reset_bounds()
        return count

    @staticmethod
    def _teleport(actor, world: str, position, rotation: tuple[float, float]) -> None:
        actor.world = world
        actor.position = tuple(position)
        actor.yaw, actor.pitch = rotation
