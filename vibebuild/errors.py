"""
Exception types for the VibeBuild pipeline.

Every fatal category funnels into the runner's single failure handler.
Tool failures are not raised across the runner: they travel back to the
model as {success: false} payloads.
"""


class PipelineError(Exception):
    """Base class for all pipeline errors."""


class MissingCredential(PipelineError):
    """No API key is configured."""


class PlannerContractViolation(PipelineError):
    """The planner did not return a usable plan."""


class MalformedPlan(PipelineError):
    """The planner's output is missing required fields or has wrong types."""


class EmptyPlan(MalformedPlan):
    """The planner returned a plan with zero steps."""


class DispatchTimeout(PipelineError):
    """A world-thread dispatch did not complete within its bound."""


class PipelineCancelled(PipelineError):
    """The player cancelled the run. Never reported as an error."""


class PlayerGone(PipelineError):
    """The player disconnected while the run was in progress."""


class ToolFailure(PipelineError):
    """A single tool call failed. Converted into a failure payload by the bridge."""


class InvalidCommand(Exception):
    """A player command was rejected in the current session state."""


def describe_error(error: BaseException) -> str:
    """Render an error for the player: class name plus message, no stack trace."""
    message = str(error)
    name = type(error).__name__
    return f"{name}: {message}" if message else name
