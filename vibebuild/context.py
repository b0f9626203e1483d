"""
Everything a pipeline run needs from its host, passed in explicitly.

One context per host process. Tests build their own with fake collaborators.
"""

from dataclasses import dataclass, field
from typing import Callable

from vibebuild.config import ConfigStore
from vibebuild.llm import create_chat_model
from vibebuild.prompt_loader import load_prompt as load_packaged_prompt
from vibebuild.session import SessionRegistry
from vibebuild.tools.schematic import SchematicExporter
from vibebuild.world import BuildWorld
from vibebuild.world_thread import WorldThread


# Bound on setup, status and completion dispatches.
SETUP_TIMEOUT_SECONDS = 10.0

# Bound on each tool-call dispatch.
TOOL_TIMEOUT_SECONDS = 30.0


@dataclass
class PipelineContext:
    world_thread: WorldThread
    sessions: SessionRegistry
    config: ConfigStore
    build_world: BuildWorld
    exporter: SchematicExporter
    # prompt id -> prompt text
    load_prompt: Callable[[str], str] = field(default=load_packaged_prompt)
    # (api_key, model, max_tokens) -> chat model
    model_factory: Callable = field(default=create_chat_model)
    setup_timeout: float = SETUP_TIMEOUT_SECONDS
    tool_timeout: float = TOOL_TIMEOUT_SECONDS
