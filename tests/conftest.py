import pytest

from vibebuild.agents import make_build_profile, make_redstone_profile
from vibebuild.config import ConfigStore
from vibebuild.context import PipelineContext
from vibebuild.pipeline import SharedPipelineRunner
from vibebuild.session import SessionRegistry
from vibebuild.tools import BuildToolExecutor, RedstoneToolExecutor, SchematicExporter, VoxelWorld
from vibebuild.world import BuildWorld
from vibebuild.world_thread import WorldThread

from fakes import RecordingActor, ScriptedChatModel


@pytest.fixture
def world_thread():
    thread = WorldThread("test-world").start()
    yield thread
    thread.stop()


@pytest.fixture
def voxels():
    return VoxelWorld()


@pytest.fixture
def config(tmp_path, monkeypatch):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    store = ConfigStore(tmp_path / "vibe-build.json")
    store.set_api_key("sk-ant-test-0123456789")
    return store


@pytest.fixture
def model():
    return ScriptedChatModel()


@pytest.fixture
def context(world_thread, voxels, config, model, tmp_path):
    def model_factory(api_key, model_name, max_tokens):
        model.max_tokens = max_tokens
        return model

    return PipelineContext(
        world_thread=world_thread,
        sessions=SessionRegistry(),
        config=config,
        build_world=BuildWorld(voxels),
        exporter=SchematicExporter(voxels, tmp_path / "schematics"),
        load_prompt=lambda prompt_id: f"<prompt {prompt_id}>",
        model_factory=model_factory,
        setup_timeout=5.0,
        tool_timeout=5.0,
    )


@pytest.fixture
def runner(context):
    runner = SharedPipelineRunner(context)
    yield runner
    runner.shutdown(wait=True)


@pytest.fixture
def actor():
    return RecordingActor("steve")


@pytest.fixture
def session(context, actor):
    return context.sessions.connect(actor)


@pytest.fixture
def build_executor(voxels):
    return BuildToolExecutor(voxels)


@pytest.fixture
def redstone_executor(voxels, build_executor):
    return RedstoneToolExecutor(voxels, build_executor)


@pytest.fixture
def build_profile(build_executor):
    return make_build_profile(build_executor)


@pytest.fixture
def redstone_profile(redstone_executor):
    return make_redstone_profile(redstone_executor)
