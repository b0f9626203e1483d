"""
General builder profile.

Plans a structure as an ordered list of features, then builds each feature
with the region-editing tools. Accepts a reference image, which is first
rewritten into a concrete text request.
"""

from vibebuild.agents.profile import PipelineProfile, PipelineStrings, ToolBridge
from vibebuild.tools.build_tools import BUILD_PLANNER_TOOL, BUILD_TOOLS, BuildToolExecutor


BUILD_STRINGS = PipelineStrings(
    log_prefix="[VB]",
    planning_start_message="Planning your build...",
    planning_complete_template="Planning complete: {steps} features to build.",
    completion_template="Build complete! {steps} steps, {tools} commands in {seconds}s.",
    review_message="Fly around to review your build.",
    review_command_hint_message="Type /vb confirm to accept, /vb cancel to discard.",
    done_log_template="{tools} commands across {steps} features in {seconds}s",
    cancelled_message="Build cancelled by player",
    request_label="Build request",
    origin_label="Build origin",
    completed_steps_label="All completed steps",
    current_step_label="Current step",
    finalizer_units_label="features",
    finalizer_built_label="Features built",
    plan_history_label="Plan",
    spatial_prompt="build/spatial.txt",
    planner_prompt="build/planner.txt",
    executor_prompt="build/executor.txt",
    finalizer_prompt="build/finalizer.txt",
    planner_image_derived_prompt="build/planner-image-derived.txt",
    image_prompt="build/image.txt",
    image_analysis_message="Analyzing reference image...",
)


def make_build_profile(executor: BuildToolExecutor) -> PipelineProfile:
    """Bind the general builder profile to a tool executor."""
    return PipelineProfile(
        strings=BUILD_STRINGS,
        planner_tool=BUILD_PLANNER_TOOL,
        executor_tools=BUILD_TOOLS,
        tool_bridge=ToolBridge(execute=executor.execute, update_bounds=executor.update_bounds),
        history_key="build",
        allow_planner_text_fallback=True,
    )
