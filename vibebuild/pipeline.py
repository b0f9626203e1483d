"""
Shared pipeline runner for all VibeBuild agent domains.

Coordinates the three stages:
    Planner -> Executor (one tool loop per plan step) -> Finalizer.
Handles the background task lifecycle, world-thread dispatch of tool calls,
session phase transitions and cancellation. Everything domain specific comes
from the PipelineProfile.

Model calls run on a worker thread. Anything that touches world state, the
session phase or the player goes through the world thread, either as a
bounded blocking call or as a fire-and-forget post.
"""

import json
import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable

from vibebuild.agents.profile import PipelineProfile
from vibebuild.chat import vb, vb_error, vb_gray
from vibebuild.config import mask_api_key
from vibebuild.context import PipelineContext
from vibebuild.errors import (
    DispatchTimeout,
    MissingCredential,
    PipelineCancelled,
    PlannerContractViolation,
    PlayerGone,
    describe_error,
)
from vibebuild.llm import (
    ChatResponse,
    ToolCall,
    assistant_message,
    system_message,
    tool_result_message,
    user_message,
)
from vibebuild.models import HistoryMessage, ImageData, Plan, Position, RunResult, ToolResult, parse_plan
from vibebuild.session import BuildSession, Phase


logger = logging.getLogger(__name__)

PLAN_MARKER = '"planTitle"'

TOOL_TIMEOUT_RESULT = json.dumps({"success": False, "message": "Tool execution timed out"})


# ============================================================================
# Helpers
# ============================================================================

def preview(text: str | None, max_chars: int) -> str:
    """Truncate text for log lines."""
    if text is None:
        return "null"
    return text if len(text) <= max_chars else text[:max_chars]


def strip_code_fence(text: str) -> str:
    """Remove one surrounding ``` fence (with optional language tag) if present."""
    if not text.startswith("```"):
        return text
    first_newline = text.find("\n")
    last_fence = text.rfind("```")
    if first_newline != -1 and last_fence > first_newline:
        return text[first_newline + 1:last_fence].strip()
    return text


def extract_plan_payload(response: ChatResponse, profile: PipelineProfile) -> dict | str:
    """
    Pull the raw plan out of a planner response.

    The planner must call its tool exactly once. When the profile allows it,
    a response with no tool call but plan-shaped text is accepted instead.
    """
    planner_name = profile.planner_tool["name"]

    if response.has_tool_calls:
        if len(response.tool_calls) != 1:
            raise PlannerContractViolation(
                f"Planner returned {len(response.tool_calls)} tool calls, expected exactly one"
            )
        call = response.tool_calls[0]
        if call.name != planner_name:
            raise PlannerContractViolation(f"Planner called unexpected tool: {call.name}")
        return call.arguments

    if profile.allow_planner_text_fallback and PLAN_MARKER in (response.text or ""):
        logger.warning(
            "%s [PLANNER] Model returned plan text instead of tool call; parsing directly",
            profile.strings.log_prefix,
        )
        return strip_code_fence(response.text.strip())

    raise PlannerContractViolation(f"Planner did not return a plan. Response: {preview(response.text, 200)}")


def build_recent_steps(plan: Plan, current_index: int) -> str:
    """Compact digest of the steps before current_index, for executor prompts."""
    if current_index == 0:
        return "none"
    return " | ".join(
        f"{i + 1}. {step.id}: {step.feature}" for i, step in enumerate(plan.steps[:current_index])
    )


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


# ============================================================================
# Runner
# ============================================================================

class SharedPipelineRunner:
    """Starts and runs pipeline tasks. One in-flight run per session."""

    def __init__(self, context: PipelineContext, max_workers: int = 4):
        self.context = context
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="vibebuild-pipeline")

    def launch(self, actor, session: BuildSession, profile: PipelineProfile, request: str,
               position: Position, image: ImageData | None = None) -> Future | None:
        """
        Start one pipeline run in the background.

        Returns the run's Future, or None when the session already has a run
        in flight (the player is told, nothing else changes).
        """
        if not session.try_begin_run():
            actor.send_message(vb_error("Build already in progress. Wait or /vb cancel."))
            return None

        session.image = image
        logger.info("%s Starting %s pipeline for %s", profile.strings.log_prefix, profile.name, actor.name)
        try:
            return self._executor.submit(self._run_guarded, actor.name, session, profile, request, position)
        except RuntimeError:
            # Executor already shut down.
            session.image = None
            session.finish_run()
            raise

    def cancel(self, session: BuildSession) -> None:
        """Ask the session's run to stop at its next cancellation check."""
        session.cancel()

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    # ========================================================================
    # Lifecycle
    # ========================================================================

    def _run_guarded(self, player_name: str, session: BuildSession, profile: PipelineProfile,
                     request: str, position: Position) -> RunResult | None:
        try:
            return self._run(player_name, session, profile, request, position)
        except Exception as e:
            self._handle_failure(player_name, session, profile, e)
            return None
        finally:
            session.image = None
            session.finish_run()

    def _handle_failure(self, player_name: str, session: BuildSession, profile: PipelineProfile,
                        error: Exception) -> None:
        """Single funnel for every fatal error: log, tell the player, restore the phase."""
        strings = profile.strings
        cancelled = isinstance(error, PipelineCancelled)
        if cancelled:
            logger.info("%s Run cancelled for %s", strings.log_prefix, player_name)
        else:
            logger.error(
                "%s Pipeline error for %s: %s",
                strings.log_prefix, player_name, describe_error(error), exc_info=error,
            )

        def restore() -> None:
            actor = self.context.sessions.get_player(player_name)
            if actor is not None:
                if cancelled:
                    actor.send_message(vb(strings.cancelled_message))
                else:
                    actor.send_message(vb_error(describe_error(error)))

            if session.in_build_world:
                session.phase = Phase.REVIEWING
                if actor is not None and not cancelled:
                    actor.send_message(vb("You can reprompt or /vb cancel to return."))
            else:
                session.phase = Phase.CONNECTED

        try:
            self.context.world_thread.call(restore, self.context.setup_timeout)
        except DispatchTimeout as e:
            logger.error("%s Could not restore session for %s: %s", strings.log_prefix, player_name, e)

    def _check_cancelled(self, session: BuildSession, profile: PipelineProfile) -> None:
        if session.cancelled:
            raise PipelineCancelled(profile.strings.cancelled_message)

    # ========================================================================
    # World-thread dispatch
    # ========================================================================

    def _dispatch(self, player_name: str, fn: Callable[[Any], Any]) -> Any:
        """Run fn(actor) on the world thread and wait for it. PlayerGone if the player left."""
        def work():
            actor = self.context.sessions.get_player(player_name)
            if actor is None:
                raise PlayerGone("Player disconnected")
            return fn(actor)

        return self.context.world_thread.call(work, self.context.setup_timeout)

    def _post(self, player_name: str, fn: Callable[[Any], Any]) -> None:
        """Queue fn(actor) on the world thread without waiting. Skipped if the player left."""
        def work():
            actor = self.context.sessions.get_player(player_name)
            if actor is not None:
                fn(actor)

        self.context.world_thread.submit(work)

    def _execute_tool_on_world_thread(self, player_name: str, session: BuildSession,
                                      call: ToolCall, profile: PipelineProfile) -> str:
        """
        Execute one tool call on the world thread and return its JSON result.

        Never raises: a timeout or an unexpected error becomes a failure
        payload that goes back to the model like any other tool result.
        """
        bridge = profile.tool_bridge

        def work() -> str:
            actor = self.context.sessions.get_player(player_name)
            if actor is None:
                return ToolResult.fail("Player disconnected").to_json()

            args = call.arguments if isinstance(call.arguments, dict) else {}
            result = bridge.execute(actor, session, call.name, args)
            if result.success:
                bridge.update_bounds(session, call.name, args)
            else:
                actor.send_message(vb_error(f"Tool {call.name} failed: {result.message}"))
            return result.to_json()

        try:
            return self.context.world_thread.call(work, self.context.tool_timeout)
        except DispatchTimeout:
            logger.warning("%s Tool '%s' timed out after %gs", profile.strings.log_prefix, call.name,
                           self.context.tool_timeout)
            self._warn_tool_failed(player_name, call, "Tool execution timed out")
            return TOOL_TIMEOUT_RESULT
        except Exception as e:
            logger.error("%s Tool '%s' raised: %s", profile.strings.log_prefix, call.name, e, exc_info=e)
            self._warn_tool_failed(player_name, call, str(e))
            return ToolResult.fail(str(e)).to_json()

    def _warn_tool_failed(self, player_name: str, call: ToolCall, message: str) -> None:
        self._post(player_name, lambda actor: actor.send_message(vb_error(f"Tool {call.name} failed: {message}")))

    # ========================================================================
    # Run
    # ========================================================================

    def _run(self, player_name: str, session: BuildSession, profile: PipelineProfile,
             request: str, position: Position) -> RunResult:
        """
        Run the full lifecycle on a worker thread.

        Lifecycle: model setup -> enter scratch world -> optional image rewrite
        -> planner -> per-step executor loop -> finalizer -> export and review.
        """
        ctx = self.context
        strings = profile.strings
        prefix = strings.log_prefix

        api_key = ctx.config.get_api_key()
        if not api_key:
            raise MissingCredential("No API key set. Use /vb apikey <key> to set one.")

        model_name = ctx.config.model
        logger.info("%s Building chat model with model='%s' apiKey=%s", prefix, model_name, mask_api_key(api_key))
        model = ctx.model_factory(api_key, model_name, profile.max_tokens)

        self._check_cancelled(session, profile)

        # Enter the scratch world and start planning. Rechecked on the world
        # thread, which orders it against a queued /vb cancel.
        def enter(actor) -> None:
            self._check_cancelled(session, profile)
            session.phase = Phase.PLANNING
            actor.send_message(vb(strings.planning_start_message))
            if not session.in_build_world:
                ctx.build_world.reset_build_world(session)
                session.has_been_positioned = False
                session.build_origin = None
                session.reset_bounds()
                ctx.build_world.save_player_state(actor, session)
                ctx.build_world.teleport_to_build_world(actor, session)

        self._dispatch(player_name, enter)

        t0 = time.monotonic()

        # ====================================================================
        # Optional image -> request rewrite
        # ====================================================================

        self._check_cancelled(session, profile)

        request_for_planner = request
        image = session.image
        image_mode = profile.supports_images and image is not None
        include_raw_image = image_mode and profile.forward_raw_image

        if image_mode:
            if strings.image_analysis_message:
                message = strings.image_analysis_message
                self._post(player_name, lambda actor: actor.send_message(vb(message)))

            started = time.monotonic()
            try:
                request_for_planner = self._run_image_to_request(model, request, image, profile)
                include_raw_image = False
                logger.info("%s [IMAGE] Converted image + notes to request in %dms", prefix, _elapsed_ms(started))
            except Exception as e:
                logger.warning(
                    "%s [IMAGE] Prompt synthesis failed, falling back to the original request: %s", prefix, e
                )

        # ====================================================================
        # Stage 1: Planner
        # ====================================================================

        self._check_cancelled(session, profile)

        logger.info("%s [PLANNER] Starting for '%s' with model '%s'", prefix, request_for_planner, model_name)
        plan = self._run_planner(model, session, request_for_planner, position, include_raw_image, image_mode, profile)
        logger.info(
            "%s [PLANNER] Done in %dms, plan '%s' with %d steps",
            prefix, _elapsed_ms(t0), plan.title, len(plan.steps),
        )

        self._check_cancelled(session, profile)

        def position_player(actor) -> None:
            if not session.has_been_positioned:
                session.build_origin = plan.anchor
                ctx.build_world.reposition_to_face_build(actor, session, plan.anchor)
                session.has_been_positioned = True
            actor.send_message(vb(strings.planning_complete_message(len(plan.steps))))

        self._dispatch(player_name, position_player)

        # ====================================================================
        # Stage 2: Executor
        # ====================================================================

        total_steps = len(plan.steps)
        logger.info("%s [EXECUTOR] Starting %d steps", prefix, total_steps)
        total_tool_count = 0

        for index, step in enumerate(plan.steps):
            self._check_cancelled(session, profile)

            progress = f"[{index + 1}/{total_steps}] {step.feature}"

            def announce(actor, progress=progress) -> None:
                session.phase = Phase.BUILDING
                actor.send_message(vb(progress))

            self._post(player_name, announce)

            step_tools = self._run_executor(model, player_name, session, request_for_planner, plan, index, profile)
            total_tool_count += step_tools
            logger.info("%s [STEP %d/%d] %s: %d tools", prefix, index + 1, total_steps, step.id, step_tools)

        # ====================================================================
        # Stage 3: Finalizer
        # ====================================================================

        self._check_cancelled(session, profile)

        started = time.monotonic()
        logger.info("%s [FINALIZER] Generating summary...", prefix)
        summary = self._run_finalizer(model, request_for_planner, plan, total_tool_count, profile)
        logger.info("%s [FINALIZER] Done in %dms", prefix, _elapsed_ms(started))

        elapsed = int(time.monotonic() - t0)

        # ====================================================================
        # Completion
        # ====================================================================

        self._check_cancelled(session, profile)

        def complete(actor) -> None:
            if summary:
                actor.send_message(vb_gray(summary))

            saved = ctx.exporter.export(actor, session)

            session.phase = Phase.REVIEWING
            actor.send_message(vb(strings.completion_message(total_steps, total_tool_count, elapsed)))

            if saved:
                actor.send_message(vb(strings.review_message))
                actor.send_message(vb(strings.review_command_hint_message))
            else:
                actor.send_message(vb_error("Could not save schematic. Use /vb cancel to return."))

        self._dispatch(player_name, complete)

        usage = getattr(model, "usage", None)
        usage_info = f" ({usage.summary()})" if usage is not None else ""
        logger.info(
            "%s [DONE] %s%s",
            prefix, strings.done_log_message(total_tool_count, total_steps, elapsed), usage_info,
        )

        return RunResult(title=plan.title, steps=total_steps, tool_count=total_tool_count, elapsed_seconds=elapsed)

    # ========================================================================
    # Stage implementations
    # ========================================================================

    def _run_image_to_request(self, model, notes: str, image: ImageData, profile: PipelineProfile) -> str:
        """Turn a reference image plus the player's notes into one concrete text request."""
        notes = notes if notes and notes.strip() else "none"
        user_text = (
            f"Player notes: {notes}\n"
            "Generate one concrete Minecraft build request based on this reference image."
        )
        response = model.chat([
            system_message(self.context.load_prompt(profile.strings.image_prompt)),
            user_message(user_text, image),
        ])
        rewritten = (response.text or "").strip()
        if not rewritten:
            raise ValueError("Image prompt stage returned empty text")
        return rewritten

    def _run_planner(self, model, session: BuildSession, request: str, position: Position,
                     include_raw_image: bool, image_mode: bool, profile: PipelineProfile) -> Plan:
        """Planner stage: turn the request (and prior plans) into a structured Plan."""
        strings = profile.strings
        load_prompt = self.context.load_prompt

        history = profile.planner_history(session)
        history.append(HistoryMessage(role="user", content=f"Player position: {position}\n{strings.request_label}: {request}"))

        messages = [
            system_message(load_prompt(strings.spatial_prompt)),
            system_message(load_prompt(strings.planner_prompt)),
        ]
        if image_mode and strings.planner_image_derived_prompt:
            messages.append(system_message(load_prompt(strings.planner_image_derived_prompt)))

        last = len(history) - 1
        for i, entry in enumerate(history):
            if entry.role == "user":
                attach = include_raw_image and i == last and session.image is not None
                messages.append(user_message(entry.content, session.image if attach else None))
            else:
                messages.append(assistant_message(entry.content))

        logger.info("%s [PLANNER] Sending chat request (%d messages)...", strings.log_prefix, len(messages))
        response = model.chat(messages, tools=[profile.planner_tool])
        logger.info("%s [PLANNER] Got response. hasToolCalls=%s", strings.log_prefix, response.has_tool_calls)

        plan = parse_plan(extract_plan_payload(response, profile))

        history.append(HistoryMessage(role="assistant", content=profile.format_plan_history_summary(plan)))
        return plan

    def _run_executor(self, model, player_name: str, session: BuildSession, request: str,
                      plan: Plan, index: int, profile: PipelineProfile) -> int:
        """
        Executor stage for one plan step.

        Calls the model with the full tool catalog until it stops asking for
        tools. Returns the number of tool calls made.
        """
        strings = profile.strings
        prefix = strings.log_prefix
        step = plan.steps[index]
        step_num = index + 1
        total_steps = len(plan.steps)

        user_text = (
            f"{strings.request_label}: {request}\n"
            f"{strings.origin_label}: {plan.anchor}\n"
            f"{strings.completed_steps_label}: {build_recent_steps(plan, index)}\n"
            "\n"
            f"{strings.current_step_label} ({step_num}/{total_steps}):\n"
            f"Feature: {step.feature}\n"
            f"Details: {step.details}"
        )

        messages = [
            system_message(self.context.load_prompt(strings.spatial_prompt)),
            system_message(self.context.load_prompt(strings.executor_prompt)),
            user_message(user_text),
        ]

        tool_count = 0
        api_call = 0
        while True:
            self._check_cancelled(session, profile)
            api_call += 1

            logger.info(
                "%s [EXECUTOR] Step %d/%d, API call #%d (%d messages)...",
                prefix, step_num, total_steps, api_call, len(messages),
            )
            started = time.monotonic()
            response = model.chat(messages, tools=profile.executor_tools)
            logger.info(
                "%s [EXECUTOR] API call #%d returned in %dms, hasToolCalls=%s",
                prefix, api_call, _elapsed_ms(started), response.has_tool_calls,
            )

            messages.append(response.to_message())

            if not response.has_tool_calls:
                logger.info(
                    "%s [EXECUTOR] Step %d/%d done, no more tool calls. AI text: %s",
                    prefix, step_num, total_steps, preview(response.text, 100),
                )
                break

            for call in response.tool_calls:
                self._check_cancelled(session, profile)
                tool_count += 1

                logger.info("%s   [TOOL #%d] %s args=%s", prefix, tool_count, call.name,
                            preview(json.dumps(call.arguments), 200))
                started = time.monotonic()
                result = self._execute_tool_on_world_thread(player_name, session, call, profile)
                logger.info("%s   [TOOL #%d] %s completed in %dms result=%s", prefix, tool_count, call.name,
                            _elapsed_ms(started), preview(result, 200))

                messages.append(tool_result_message(call, result))

        return tool_count

    def _run_finalizer(self, model, request: str, plan: Plan, total_tool_count: int,
                       profile: PipelineProfile) -> str:
        """Finalizer stage: a short player-facing summary. May be blank."""
        strings = profile.strings
        user_text = (
            f"{strings.request_label}: {request}\n"
            f"Completed: {len(plan.steps)} {strings.finalizer_units_label}, {total_tool_count} total commands\n"
            f"{strings.finalizer_built_label}: {', '.join(step.feature for step in plan.steps)}"
        )

        logger.info("%s [FINALIZER] Sending chat request...", strings.log_prefix)
        response = model.chat([
            system_message(self.context.load_prompt(strings.finalizer_prompt)),
            user_message(user_text),
        ])
        return (response.text or "").strip()
