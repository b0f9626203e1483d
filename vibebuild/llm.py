"""
Chat model client for the pipeline stages.

The runner builds provider-neutral ChatMessage lists; AnthropicChatModel maps
them onto the Messages API (system blocks with prompt caching, base64 image
blocks, tool_use / tool_result round trips) and maps the response back.
"""

import json
import logging
import threading
from dataclasses import dataclass, field
from typing import Literal

import anthropic

from vibebuild.models import ImageData


logger = logging.getLogger(__name__)

# Model calls can legitimately take minutes; the pipeline never interrupts one.
REQUEST_TIMEOUT_SECONDS = 3600.0


# ============================================================================
# Message Types
# ============================================================================

@dataclass(frozen=True)
class ToolCall:
    """One tool invocation requested by the model."""
    id: str
    name: str
    arguments: dict = field(default_factory=dict)


@dataclass
class ChatMessage:
    role: Literal["system", "user", "assistant", "tool"]
    text: str = ""
    image: ImageData | None = None
    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_call_id: str | None = None


def system_message(text: str) -> ChatMessage:
    return ChatMessage(role="system", text=text)


def user_message(text: str, image: ImageData | None = None) -> ChatMessage:
    return ChatMessage(role="user", text=text, image=image)


def assistant_message(text: str, tool_calls: list[ToolCall] | None = None) -> ChatMessage:
    return ChatMessage(role="assistant", text=text, tool_calls=list(tool_calls or []))


def tool_result_message(call: ToolCall, result: str) -> ChatMessage:
    return ChatMessage(role="tool", text=result, tool_call_id=call.id)


@dataclass
class ChatResponse:
    text: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)

    def to_message(self) -> ChatMessage:
        return assistant_message(self.text, self.tool_calls)


@dataclass
class UsageStats:
    """Token and call accounting across one model's lifetime."""
    api_calls: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_tokens: int = 0
    cache_write_tokens: int = 0

    def summary(self) -> str:
        cache_info = ""
        if self.cache_read_tokens > 0:
            cache_info = f" ({self.cache_read_tokens:,} cached)"
        return (
            f"{self.api_calls} API calls, "
            f"{self.input_tokens:,} input{cache_info} / {self.output_tokens:,} output tokens"
        )


# ============================================================================
# Anthropic Mapping
# ============================================================================

def _user_content(message: ChatMessage) -> str | list[dict]:
    if message.image is None:
        return message.text
    return [
        {"type": "text", "text": message.text},
        {
            "type": "image",
            "source": {
                "type": "base64",
                "media_type": message.image.mime_type,
                "data": message.image.to_base64(),
            },
        },
    ]


def _assistant_content(message: ChatMessage) -> str | list[dict]:
    if not message.tool_calls:
        return message.text
    blocks: list[dict] = []
    if message.text:
        blocks.append({"type": "text", "text": message.text})
    for call in message.tool_calls:
        blocks.append({"type": "tool_use", "id": call.id, "name": call.name, "input": call.arguments})
    return blocks


def to_anthropic_request(messages: list[ChatMessage]) -> tuple[list[dict], list[dict]]:
    """
    Split a message list into (system blocks, conversation turns).

    System messages may appear anywhere; they are collected in order. The last
    system block is marked for prompt caching. Consecutive tool results are
    merged into a single user turn, as the API requires.
    """
    system: list[dict] = []
    turns: list[dict] = []

    for message in messages:
        if message.role == "system":
            system.append({"type": "text", "text": message.text})
        elif message.role == "user":
            turns.append({"role": "user", "content": _user_content(message)})
        elif message.role == "assistant":
            turns.append({"role": "assistant", "content": _assistant_content(message)})
        else:
            block = {"type": "tool_result", "tool_use_id": message.tool_call_id, "content": message.text}
            previous = turns[-1] if turns else None
            if (
                previous is not None
                and previous["role"] == "user"
                and isinstance(previous["content"], list)
                and previous["content"]
                and previous["content"][0].get("type") == "tool_result"
            ):
                previous["content"].append(block)
            else:
                turns.append({"role": "user", "content": [block]})

    if system:
        system[-1]["cache_control"] = {"type": "ephemeral"}
    return system, turns


def from_anthropic_response(response) -> ChatResponse:
    texts = []
    calls = []
    for block in response.content:
        if block.type == "text":
            texts.append(block.text)
        elif block.type == "tool_use":
            arguments = block.input
            if isinstance(arguments, str):
                arguments = json.loads(arguments) if arguments.strip() else {}
            calls.append(ToolCall(id=block.id, name=block.name, arguments=arguments or {}))
    return ChatResponse(text="\n".join(texts).strip(), tool_calls=calls)


# ============================================================================
# Client
# ============================================================================

class AnthropicChatModel:
    """A chat model bound to one API key, model name and output-token budget."""

    def __init__(self, api_key: str, model: str, max_tokens: int, client=None):
        self.model = model
        self.max_tokens = max_tokens
        self.usage = UsageStats()
        self._usage_lock = threading.Lock()
        self._client = client or anthropic.Anthropic(api_key=api_key, timeout=REQUEST_TIMEOUT_SECONDS)

    def chat(self, messages: list[ChatMessage], tools: list[dict] | None = None) -> ChatResponse:
        system, turns = to_anthropic_request(messages)
        kwargs = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": turns,
        }
        if system:
            kwargs["system"] = system
        if tools:
            kwargs["tools"] = tools

        response = self._client.messages.create(**kwargs)
        self._track_usage(response)

        logger.debug("Stop reason: %s", response.stop_reason)
        return from_anthropic_response(response)

    def _track_usage(self, response) -> None:
        usage = getattr(response, "usage", None)
        with self._usage_lock:
            self.usage.api_calls += 1
            if usage is None:
                return
            self.usage.input_tokens += usage.input_tokens
            self.usage.output_tokens += usage.output_tokens
            self.usage.cache_read_tokens += getattr(usage, "cache_read_input_tokens", 0) or 0
            self.usage.cache_write_tokens += getattr(usage, "cache_creation_input_tokens", 0) or 0


def create_chat_model(api_key: str, model: str, max_tokens: int) -> AnthropicChatModel:
    """Build the chat model used by one pipeline run."""
    return AnthropicChatModel(api_key=api_key, model=model, max_tokens=max_tokens)
