"""
Pipeline profiles: the per-domain configuration of the shared runner.

The runner only orchestrates (planner -> executor -> finalizer). Everything
domain specific, like chat text, prompt ids, the planner tool contract, the
executor tool catalog and which tool executor to call, lives in a profile.
Profiles are immutable and shared across concurrent runs.
"""

from dataclasses import dataclass
from typing import Callable

from vibebuild.models import HistoryMessage, Plan, ToolResult


@dataclass(frozen=True)
class PipelineStrings:
    """
    Labels, chat text and prompt ids for one domain.

    Template fields use str.format placeholders:
      - planning_complete_template: {steps}
      - completion_template: {steps}, {tools}, {seconds}
      - done_log_template: {tools}, {steps}, {seconds}

    Image fields are None for profiles without image input.
    """
    log_prefix: str
    planning_start_message: str
    planning_complete_template: str
    completion_template: str
    review_message: str
    review_command_hint_message: str
    done_log_template: str
    cancelled_message: str
    request_label: str
    origin_label: str
    completed_steps_label: str
    current_step_label: str
    finalizer_units_label: str
    finalizer_built_label: str
    plan_history_label: str
    spatial_prompt: str
    planner_prompt: str
    executor_prompt: str
    finalizer_prompt: str
    planner_image_derived_prompt: str | None = None
    image_prompt: str | None = None
    image_analysis_message: str | None = None

    def planning_complete_message(self, steps: int) -> str:
        return self.planning_complete_template.format(steps=steps)

    def completion_message(self, steps: int, tools: int, seconds: int) -> str:
        return self.completion_template.format(steps=steps, tools=tools, seconds=seconds)

    def done_log_message(self, tools: int, steps: int, seconds: int) -> str:
        return self.done_log_template.format(tools=tools, steps=steps, seconds=seconds)


@dataclass(frozen=True)
class ToolBridge:
    """
    The two tool-executor calls the runner needs. Both run on the world thread.

    execute(actor, session, name, args) performs one world operation.
    update_bounds(session, name, args) grows the build bounds after a
    successful mutating call and ignores anything without positions.
    """
    execute: Callable[..., ToolResult]
    update_bounds: Callable[..., None]


@dataclass(frozen=True)
class PipelineProfile:
    strings: PipelineStrings
    planner_tool: dict
    executor_tools: list[dict]
    tool_bridge: ToolBridge
    history_key: str
    max_tokens: int = 16384
    allow_planner_text_fallback: bool = False
    # Attach the raw image to the planner when the image rewrite fails.
    forward_raw_image: bool = True

    @property
    def name(self) -> str:
        return self.history_key

    @property
    def supports_images(self) -> bool:
        return self.strings.image_prompt is not None

    def planner_history(self, session) -> list[HistoryMessage]:
        """This domain's planner memory inside the session."""
        return session.history_for(self.history_key)

    def format_plan_history_summary(self, plan: Plan) -> str:
        """
        Summarize a parsed plan for the planner history.

        Appended as an assistant entry so later reprompts can refine the
        existing work.
        """
        anchor = plan.anchor
        lines = [f'{self.strings.plan_history_label}: "{plan.title}" at ({anchor.x}, {anchor.y}, {anchor.z})']
        for step in plan.steps:
            lines.append(f"- {step.id}: {step.feature}: {step.details}")
        return "\n".join(lines)
