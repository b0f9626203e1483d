"""Fake collaborators shared by the test modules."""

from dataclasses import dataclass, field

from vibebuild.chat import ChatLine, ChatStyle
from vibebuild.llm import ChatResponse, ToolCall, UsageStats


PLAN_ARGS = {
    "planTitle": "Tiny House",
    "origin": {"x": 0, "y": 64, "z": 0},
    "steps": [{"id": "walls", "feature": "Walls", "details": "3x3x3 stone cube"}],
}


def pos(x: int, y: int, z: int) -> dict:
    return {"x": x, "y": y, "z": z}


def plan_response(args: dict | None = None, name: str = "submit_plan") -> ChatResponse:
    return ChatResponse(tool_calls=[ToolCall(id="plan-1", name=name, arguments=args or PLAN_ARGS)])


def tool_response(name: str, args: dict, call_id: str = "call-1") -> ChatResponse:
    return ChatResponse(tool_calls=[ToolCall(id=call_id, name=name, arguments=args)])


def text_response(text: str = "") -> ChatResponse:
    return ChatResponse(text=text)


class ScriptedChatModel:
    """
    Returns canned responses in order and records every request.

    A response may be an exception instance, which is raised instead. Once
    the script runs out every call returns an empty text response. `on_chat`
    is called with the 1-based call number before the response is returned.
    """

    def __init__(self, responses=None, on_chat=None):
        self.responses = list(responses or [])
        self.on_chat = on_chat
        self.calls: list[tuple[list, list | None]] = []
        self.usage = UsageStats()
        self.max_tokens = None

    def chat(self, messages, tools=None) -> ChatResponse:
        self.calls.append((list(messages), tools))
        self.usage.api_calls += 1
        if self.on_chat is not None:
            self.on_chat(len(self.calls))
        if not self.responses:
            return ChatResponse()
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@dataclass
class RecordingActor:
    """A player that records the chat lines sent to it."""
    name: str = "steve"
    world: str = "overworld"
    position: tuple[float, float, float] = (0.0, 64.0, 0.0)
    yaw: float = 0.0
    pitch: float = 0.0
    game_mode: str = "survival"
    messages: list[ChatLine] = field(default_factory=list)

    def send_message(self, line: ChatLine) -> None:
        self.messages.append(line)

    @property
    def texts(self) -> list[str]:
        return [m.text for m in self.messages]

    @property
    def errors(self) -> list[str]:
        return [m.text for m in self.messages if m.style == ChatStyle.ERROR]
