# Pipeline profiles for the shared runner.
from vibebuild.agents.profile import PipelineProfile, PipelineStrings, ToolBridge
from vibebuild.agents.build_profile import make_build_profile
from vibebuild.agents.redstone_profile import make_redstone_profile

__all__ = ["PipelineProfile", "PipelineStrings", "ToolBridge", "make_build_profile", "make_redstone_profile"]
