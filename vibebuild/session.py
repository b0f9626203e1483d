"""
Per-player session state.

A session is shared between the caller's command handling and the background
pipeline task. `phase`, bounds and positioning are only mutated on the world
thread; `cancelled` and `in_progress` are read and written from both sides
and are backed by thread-safe primitives.

A "build world session" begins when the player sends a prompt from their own
world and ends only on confirm or cancel. During it the player stays in the
scratch world and can reprompt freely.
"""

import logging
import threading
from enum import Enum

from vibebuild.models import HistoryMessage, ImageData, Position


logger = logging.getLogger(__name__)


class Phase(str, Enum):
    IDLE = "idle"
    CONNECTED = "connected"
    PLANNING = "planning"        # producing a plan
    BUILDING = "building"        # executor is running tool calls
    REVIEWING = "reviewing"      # build done, player reviewing in the scratch world
    PREVIEWING = "previewing"    # player confirmed, back home, placing the build


# Phases in which a new prompt is accepted.
_PROMPT_PHASES = {Phase.CONNECTED, Phase.REVIEWING}


class BuildSession:
    """All per-player state for one session."""

    def __init__(self, player_name: str):
        self.player_name = player_name
        self.phase = Phase.IDLE

        self._cancelled = threading.Event()
        self._run_lock = threading.Lock()
        self._in_progress = False

        # Planner memory, one independent list per domain.
        self._histories: dict[str, list[HistoryMessage]] = {}

        # Reference image for the current request only.
        self.image: ImageData | None = None

        # Build world session state.
        self.in_build_world = False
        self.has_been_positioned = False
        self.original_world: str | None = None
        self.original_position: tuple[float, float, float] | None = None
        self.original_rotation: tuple[float, float] | None = None
        self.original_game_mode: str | None = None

        # Build state.
        self.build_origin: Position | None = None
        self.build_min: Position | None = None
        self.build_max: Position | None = None

        # Last exported build, relative to build_min.
        self.clipboard: dict[tuple[int, int, int], str] | None = None
        self.last_export_path = None

    # -- Cross-thread flags --

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def in_progress(self) -> bool:
        with self._run_lock:
            return self._in_progress

    def try_begin_run(self) -> bool:
        """Atomically claim the session for a new run. False if one is already in flight."""
        with self._run_lock:
            if self._in_progress:
                return False
            self._in_progress = True
            self._cancelled.clear()
            return True

    def finish_run(self) -> None:
        with self._run_lock:
            self._in_progress = False

    # -- History --

    def history_for(self, key: str) -> list[HistoryMessage]:
        return self._histories.setdefault(key, [])

    # -- Phase helpers --

    def accepts_prompt(self) -> bool:
        return self.phase in _PROMPT_PHASES

    # -- Bounds --

    def expand_bounds(self, a: Position, b: Position) -> None:
        """Grow the build bounding box to cover the box spanned by a and b."""
        lo = Position(x=min(a.x, b.x), y=min(a.y, b.y), z=min(a.z, b.z))
        hi = Position(x=max(a.x, b.x), y=max(a.y, b.y), z=max(a.z, b.z))

        if self.build_min is None or self.build_max is None:
            self.build_min = lo
            self.build_max = hi
            return

        self.build_min = Position(
            x=min(self.build_min.x, lo.x),
            y=min(self.build_min.y, lo.y),
            z=min(self.build_min.z, lo.z),
        )
        self.build_max = Position(
            x=max(self.build_max.x, hi.x),
            y=max(self.build_max.y, hi.y),
            z=max(self.build_max.z, hi.z),
        )

    def reset_bounds(self) -> None:
        self.build_min = None
        self.build_max = None


class SessionRegistry:
    """
    Sessions and connected players, keyed by player name.

    Stands in for the server's player list: the runner looks players up by
    name on every world-thread dispatch so a disconnect is noticed mid-run.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._sessions: dict[str, BuildSession] = {}
        self._players: dict[str, object] = {}

    def connect(self, actor) -> BuildSession:
        """Register a player and return their session (created on first connect)."""
        with self._lock:
            self._players[actor.name] = actor
            session = self._sessions.get(actor.name)
            if session is None:
                session = BuildSession(actor.name)
                self._sessions[actor.name] = session
            if session.phase == Phase.IDLE:
                session.phase = Phase.CONNECTED
        logger.info("[VB] %s connected", actor.name)
        return session

    def disconnect(self, name: str) -> None:
        """Remove a player. Any outstanding run observes cancellation and stops."""
        with self._lock:
            self._players.pop(name, None)
            session = self._sessions.pop(name, None)
        if session is not None:
            session.cancel()
            logger.info("[VB] %s disconnected, session removed", name)

    def get(self, name: str) -> BuildSession | None:
        with self._lock:
            return self._sessions.get(name)

    def get_player(self, name: str):
        with self._lock:
            return self._players.get(name)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
