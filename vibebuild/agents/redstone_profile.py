"""
Redstone circuit profile.

Plans a circuit as subsystems in signal-flow order and builds them with the
redstone tools. No image input, and the planner must use its tool.
"""

from vibebuild.agents.profile import PipelineProfile, PipelineStrings, ToolBridge
from vibebuild.tools.redstone_tools import REDSTONE_PLANNER_TOOL, REDSTONE_TOOLS, RedstoneToolExecutor


REDSTONE_STRINGS = PipelineStrings(
    log_prefix="[VB-RS]",
    planning_start_message="Planning your redstone circuit...",
    planning_complete_template="Circuit planned: {steps} subsystems to build.",
    completion_template="Circuit complete! {steps} subsystems, {tools} commands in {seconds}s.",
    review_message="Fly around to review your circuit.",
    review_command_hint_message="Type /vb confirm to accept, /vb cancel to discard.",
    done_log_template="{tools} commands across {steps} subsystems in {seconds}s",
    cancelled_message="Circuit build cancelled by player",
    request_label="Circuit request",
    origin_label="Circuit origin",
    completed_steps_label="All completed subsystems",
    current_step_label="Current subsystem",
    finalizer_units_label="subsystems",
    finalizer_built_label="Subsystems built",
    plan_history_label="Circuit plan",
    spatial_prompt="redstone/spatial.txt",
    planner_prompt="redstone/planner.txt",
    executor_prompt="redstone/executor.txt",
    finalizer_prompt="redstone/finalizer.txt",
)


def make_redstone_profile(executor: RedstoneToolExecutor) -> PipelineProfile:
    """Bind the redstone profile to a tool executor."""
    return PipelineProfile(
        strings=REDSTONE_STRINGS,
        planner_tool=REDSTONE_PLANNER_TOOL,
        executor_tools=REDSTONE_TOOLS,
        tool_bridge=ToolBridge(execute=executor.execute, update_bounds=executor.update_bounds),
        history_key="redstone",
    )
