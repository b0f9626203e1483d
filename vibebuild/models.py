"""
Pydantic models for VibeBuild pipeline data.

These models define the structure for world coordinates, the planner's build
plan, conversation history entries and tool results. Used throughout the
pipeline for validation.
"""

import base64
import json
import mimetypes
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from vibebuild.errors import EmptyPlan, MalformedPlan


class Position(BaseModel):
    """A block coordinate. Y is up."""
    model_config = ConfigDict(frozen=True)

    x: int
    y: int
    z: int

    @classmethod
    def from_args(cls, args: dict, key: str) -> "Position | None":
        """Read a {x, y, z} object out of tool arguments, or None if absent/invalid."""
        raw = args.get(key)
        if not isinstance(raw, dict):
            return None
        try:
            return cls.model_validate(raw)
        except ValidationError:
            return None

    def offset(self, dx: int, dy: int, dz: int) -> "Position":
        return Position(x=self.x + dx, y=self.y + dy, z=self.z + dz)

    def as_tuple(self) -> tuple[int, int, int]:
        return (self.x, self.y, self.z)

    def __str__(self) -> str:
        return f"{self.x}, {self.y}, {self.z}"


class Step(BaseModel):
    """
    A single build step produced by the planner.

    `id` is a short free-form label unique within the plan, `feature` is the
    brief label shown to the player, `details` are instructions for the executor.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    feature: str
    details: str


class Plan(BaseModel):
    """
    A build plan produced by the planner stage.

    The wire format follows the planner tool contract (planTitle, origin, steps).
    Steps are executed in order. A plan is never mutated once parsed.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    title: str = Field(alias="planTitle")
    anchor: Position = Field(alias="origin")
    steps: tuple[Step, ...]


def parse_plan(raw: str | dict) -> Plan:
    """
    Parse a Plan from the planner's structured output.

    Accepts either the decoded tool arguments or a JSON string. Raises
    MalformedPlan when fields are missing or wrong-typed and EmptyPlan when
    the step list is empty.
    """
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise MalformedPlan(f"Plan is not valid JSON: {e.msg}") from e

    if not isinstance(raw, dict):
        raise MalformedPlan(f"Plan must be a JSON object, got {type(raw).__name__}")

    try:
        plan = Plan.model_validate(raw)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise MalformedPlan(f"Invalid plan fields: {fields}") from e

    if not plan.steps:
        raise EmptyPlan("Planner returned a plan with no steps")

    return plan


class HistoryMessage(BaseModel):
    """One entry of a domain's planner history."""
    role: Literal["user", "assistant"]
    content: str


# Image types the model API accepts.
_IMAGE_TYPES = {"image/png", "image/jpeg", "image/gif", "image/webp"}


class ImageData(BaseModel):
    """A reference image attached to the current request."""
    model_config = ConfigDict(frozen=True)

    data: bytes
    mime_type: str

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    @classmethod
    def from_path(cls, path: Path) -> "ImageData":
        """Load an image file, guessing the MIME type from its suffix."""
        mime_type, _ = mimetypes.guess_type(path.name)
        if mime_type not in _IMAGE_TYPES:
            raise ValueError(f"Unsupported image type for {path.name}: {mime_type}")
        return cls(data=path.read_bytes(), mime_type=mime_type)


class ToolResult(BaseModel):
    """Standard {success, message} payload returned by every tool call."""
    success: bool
    message: str = ""

    def to_json(self) -> str:
        return json.dumps({"success": self.success, "message": self.message})

    @classmethod
    def ok(cls, message: str) -> "ToolResult":
        return cls(success=True, message=message)

    @classmethod
    def fail(cls, message: str | None) -> "ToolResult":
        return cls(success=False, message=message or "unknown")


class RunResult(BaseModel):
    """Summary of one completed pipeline run."""
    title: str
    steps: int
    tool_count: int
    elapsed_seconds: int
