import random

from vibebuild.models import HistoryMessage, Position
from vibebuild.session import BuildSession, Phase, SessionRegistry

from fakes import RecordingActor


def test_new_session_is_idle():
    session = BuildSession("alex")
    assert session.phase == Phase.IDLE
    assert not session.cancelled
    assert not session.in_progress
    assert session.build_min is None and session.build_max is None


def test_connect_creates_connected_session():
    registry = SessionRegistry()
    actor = RecordingActor("alex")

    session = registry.connect(actor)

    assert session.phase == Phase.CONNECTED
    assert registry.get("alex") is session
    assert registry.get_player("alex") is actor
    assert len(registry) == 1
    # Reconnecting keeps the same session.
    assert registry.connect(actor) is session


def test_disconnect_removes_and_cancels():
    registry = SessionRegistry()
    session = registry.connect(RecordingActor("alex"))

    registry.disconnect("alex")

    assert session.cancelled
    assert registry.get("alex") is None
    assert registry.get_player("alex") is None
    assert len(registry) == 0
    registry.disconnect("alex")


def test_prompts_accepted_only_when_connected_or_reviewing():
    session = BuildSession("alex")
    accepted = set()
    for phase in Phase:
        session.phase = phase
        if session.accepts_prompt():
            accepted.add(phase)
    assert accepted == {Phase.CONNECTED, Phase.REVIEWING}


def test_single_flight_claim():
    session = BuildSession("alex")
    session.cancel()

    assert session.try_begin_run()
    assert not session.cancelled
    assert session.in_progress
    assert not session.try_begin_run()

    session.finish_run()
    assert not session.in_progress
    assert session.try_begin_run()


def test_histories_are_independent_per_domain():
    session = BuildSession("alex")
    session.history_for("build").append(HistoryMessage(role="user", content="a house"))

    assert len(session.history_for("build")) == 1
    assert session.history_for("redstone") == []


def test_expand_bounds_covers_both_corners():
    session = BuildSession("alex")
    session.expand_bounds(Position(x=5, y=70, z=-1), Position(x=1, y=64, z=3))

    assert session.build_min == Position(x=1, y=64, z=-1)
    assert session.build_max == Position(x=5, y=70, z=3)

    session.reset_bounds()
    assert session.build_min is None and session.build_max is None


def test_bounds_never_shrink():
    rng = random.Random(1234)
    session = BuildSession("alex")

    for _ in range(200):
        a = Position(x=rng.randint(-50, 50), y=rng.randint(0, 128), z=rng.randint(-50, 50))
        b = Position(x=rng.randint(-50, 50), y=rng.randint(0, 128), z=rng.randint(-50, 50))
        before = (session.build_min, session.build_max)

        session.expand_bounds(a, b)

        lo, hi = session.build_min, session.build_max
        for p in (a, b):
            assert lo.x <= p.x <= hi.x and lo.y <= p.y <= hi.y and lo.z <= p.z <= hi.z
        if before[0] is not None:
            assert lo.x <= before[0].x and lo.y <= before[0].y and lo.z <= before[0].z
            assert hi.x >= before[1].x and hi.y >= before[1].y and hi.z >= before[1].z
