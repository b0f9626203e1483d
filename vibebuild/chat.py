"""
Player-facing chat messages.

Every message carries the [VibeBuild] prefix. Body style distinguishes normal
progress, low-importance info (gray) and errors (red). Actors render them;
the console actor uses rich markup.
"""

from dataclasses import dataclass, field
from enum import Enum

from rich.console import Console
from rich.markup import escape


class ChatStyle(str, Enum):
    INFO = "white"
    GRAY = "grey50"
    ERROR = "red"


@dataclass(frozen=True)
class ChatLine:
    text: str
    style: ChatStyle = ChatStyle.INFO


def vb(text: str) -> ChatLine:
    """A prefixed chat message: [VibeBuild] <text>."""
    return ChatLine(text, ChatStyle.INFO)


def vb_gray(text: str) -> ChatLine:
    """A prefixed message with a gray body, for less important info."""
    return ChatLine(text, ChatStyle.GRAY)


def vb_error(text: str) -> ChatLine:
    """A prefixed error message."""
    return ChatLine(text, ChatStyle.ERROR)


@dataclass
class ConsoleActor:
    """
    A local player whose chat goes to a rich console.

    Position and world are updated by the scratch-world bookkeeping when the
    player is teleported in and out.
    """
    name: str
    console: Console = field(default_factory=Console)
    world: str = "overworld"
    position: tuple[float, float, float] = (0.0, 64.0, 0.0)
    yaw: float = 0.0
    pitch: float = 0.0
    game_mode: str = "creative"

    def send_message(self, line: ChatLine) -> None:
        self.console.print(
            f"[bold gold1]\\[VibeBuild][/bold gold1] [{line.style.value}]{escape(line.text)}[/{line.style.value}]"
        )
