"""
Player commands: the caller side of the session state machine.

    /vb <prompt>            start or refine a build
    /vb cancel              abort and return to your world
    /vb confirm             accept the reviewed build and go back to place it
    /vb paste x y z [rot]   place the confirmed build
    /vb apikey <key>        set the API key
    /vb model [name]        show or set the model

Commands touch session phase and player position, so they run on the world
thread. Each returns True when accepted and tells the player why otherwise.
"""

import logging
import math

from vibebuild.agents.profile import PipelineProfile
from vibebuild.chat import vb, vb_error
from vibebuild.config import mask_api_key
from vibebuild.context import PipelineContext
from vibebuild.errors import InvalidCommand
from vibebuild.models import ImageData, Position
from vibebuild.pipeline import SharedPipelineRunner
from vibebuild.session import BuildSession, Phase
from vibebuild.tools.schematic import paste_clipboard, rotate_clipboard
from vibebuild.tools.voxel_world import VoxelWorld


logger = logging.getLogger(__name__)


def block_position(position: tuple[float, float, float]) -> Position:
    """Round a player position to the nearest block."""
    x, y, z = position
    return Position(x=math.floor(x + 0.5), y=math.floor(y + 0.5), z=math.floor(z + 0.5))


class CommandHandler:

    def __init__(self, context: PipelineContext, runner: SharedPipelineRunner,
                 profiles: dict[str, PipelineProfile]):
        self.context = context
        self.runner = runner
        self.profiles = profiles

    def _handle(self, actor, fn) -> bool:
        """Run fn on the world thread; InvalidCommand becomes a message to the player."""
        def work() -> bool:
            try:
                return fn()
            except InvalidCommand as e:
                actor.send_message(vb_error(str(e)))
                return False

        return self.context.world_thread.call(work, self.context.setup_timeout)

    def _session(self, actor) -> BuildSession:
        session = self.context.sessions.get(actor.name)
        if session is None:
            raise InvalidCommand("No active session. Rejoin the server.")
        return session

    # ========================================================================
    # Build flow
    # ========================================================================

    def prompt(self, actor, text: str, profile: str = "build", image: ImageData | None = None) -> bool:
        def run() -> bool:
            session = self._session(actor)
            chosen = self.profiles.get(profile)
            if chosen is None:
                raise InvalidCommand(f"Unknown profile '{profile}'. Choose from: {', '.join(sorted(self.profiles))}")
            if not text.strip():
                raise InvalidCommand("Usage: /vb <prompt>")
            if not session.accepts_prompt():
                raise InvalidCommand("Busy: wait for the current build to finish, or /vb cancel.")
            if image is not None and not chosen.supports_images:
                raise InvalidCommand(f"The {profile} profile does not accept images.")

            # Reprompts are positioned relative to where the player came from.
            if session.in_build_world and session.original_position is not None:
                position = block_position(session.original_position)
            else:
                position = block_position(actor.position)

            actor.send_message(vb(f"Sending: {text}"))
            return self.runner.launch(actor, session, chosen, text, position, image) is not None

        return self._handle(actor, run)

    def cancel(self, actor) -> bool:
        def run() -> bool:
            session = self._session(actor)
            running = session.in_progress
            if session.phase in (Phase.CONNECTED, Phase.IDLE) and not running:
                raise InvalidCommand("Nothing to cancel.")

            # A launched run may not have reached its first dispatch yet.
            if running:
                self.runner.cancel(session)

            build_world = self.context.build_world
            build_world.teleport_back(actor, session)
            build_world.reset_build_world(session)
            session.phase = Phase.CONNECTED

            actor.send_message(vb("Build cancelled. Returned to your world."))
            logger.info("[VB] %s cancelled their build", actor.name)
            return True

        return self._handle(actor, run)

    def confirm(self, actor) -> bool:
        def run() -> bool:
            session = self._session(actor)
            if session.phase != Phase.REVIEWING:
                raise InvalidCommand("Nothing to confirm. Build something first with /vb <prompt>.")

            self.context.build_world.teleport_back(actor, session)
            session.phase = Phase.PREVIEWING

            actor.send_message(vb("Build confirmed! Use /vb paste <x> <y> <z> [rotation] to place it."))
            logger.info("[VB] %s confirmed their build", actor.name)
            return True

        return self._handle(actor, run)

    def place(self, actor, position: Position, world: VoxelWorld, rotation: int = 0) -> bool:
        """Paste the confirmed build into `world` with its minimum corner at `position`."""
        def run() -> bool:
            session = self._session(actor)
            if session.phase != Phase.PREVIEWING:
                raise InvalidCommand("Nothing to place. Confirm a build first with /vb confirm.")
            if not session.clipboard:
                raise InvalidCommand("Clipboard is empty. Use /vb cancel and build again.")
            if rotation not in (0, 90, 180, 270):
                raise InvalidCommand("Rotation must be 0, 90, 180 or 270.")

            count = paste_clipboard(world, rotate_clipboard(session.clipboard, rotation), position)
            session.phase = Phase.CONNECTED

            actor.send_message(vb("Build placed! Enjoy."))
            logger.info("[VB] %s placed %d blocks at %s", actor.name, count, position)
            return True

        return self._handle(actor, run)

    # ========================================================================
    # Configuration
    # ========================================================================

    def set_api_key(self, actor, key: str) -> bool:
        def run() -> bool:
            key_value = key.strip()
            if not key_value:
                raise InvalidCommand("Usage: /vb apikey <key>")
            self.context.config.set_api_key(key_value)
            actor.send_message(vb(f"API key set: {mask_api_key(key_value)}"))
            return True

        return self._handle(actor, run)

    def show_model(self, actor) -> bool:
        def run() -> bool:
            actor.send_message(vb(f"Current model: {self.context.config.model}"))
            return True

        return self._handle(actor, run)

    def set_model(self, actor, name: str) -> bool:
        def run() -> bool:
            model_name = name.strip()
            if not model_name:
                raise InvalidCommand("Usage: /vb model <name>")
            self.context.config.set_model(model_name)
            actor.send_message(vb(f"Model set to: {model_name}"))
            return True

        return self._handle(actor, run)
