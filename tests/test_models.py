import json

import pytest

from vibebuild.errors import EmptyPlan, MalformedPlan, describe_error, PipelineCancelled
from vibebuild.models import ImageData, Position, ToolResult, parse_plan

from fakes import PLAN_ARGS


def test_parse_plan_from_tool_arguments():
    plan = parse_plan(PLAN_ARGS)

    assert plan.title == "Tiny House"
    assert plan.anchor == Position(x=0, y=64, z=0)
    assert [s.id for s in plan.steps] == ["walls"]
    assert plan.steps[0].feature == "Walls"


def test_parse_plan_from_json_text():
    assert parse_plan(json.dumps(PLAN_ARGS)) == parse_plan(PLAN_ARGS)


def test_parse_plan_accepts_field_names():
    plan = parse_plan({"title": "T", "anchor": {"x": 1, "y": 2, "z": 3}, "steps": PLAN_ARGS["steps"]})
    assert plan.anchor.as_tuple() == (1, 2, 3)


def test_plan_is_immutable():
    plan = parse_plan(PLAN_ARGS)
    with pytest.raises(Exception):
        plan.title = "Changed"


@pytest.mark.parametrize("missing", ["planTitle", "origin", "steps"])
def test_missing_field_is_malformed(missing):
    raw = {k: v for k, v in PLAN_ARGS.items() if k != missing}
    with pytest.raises(MalformedPlan, match=missing):
        parse_plan(raw)


def test_wrong_types_are_malformed():
    with pytest.raises(MalformedPlan):
        parse_plan({**PLAN_ARGS, "origin": {"x": "left", "y": 64, "z": 0}})
    with pytest.raises(MalformedPlan):
        parse_plan({**PLAN_ARGS, "steps": [{"id": "a"}]})


def test_empty_steps_is_empty_plan():
    with pytest.raises(EmptyPlan):
        parse_plan({**PLAN_ARGS, "steps": []})
    assert issubclass(EmptyPlan, MalformedPlan)


def test_invalid_json_and_non_objects():
    with pytest.raises(MalformedPlan, match="not valid JSON"):
        parse_plan("{planTitle:")
    with pytest.raises(MalformedPlan, match="JSON object"):
        parse_plan("[1, 2, 3]")


def test_position_from_args():
    assert Position.from_args({"pos1": {"x": 1, "y": 2, "z": 3}}, "pos1") == Position(x=1, y=2, z=3)
    assert Position.from_args({}, "pos1") is None
    assert Position.from_args({"pos1": [1, 2, 3]}, "pos1") is None
    assert Position.from_args({"pos1": {"x": 1, "y": 2}}, "pos1") is None
    assert str(Position(x=1, y=-2, z=3)) == "1, -2, 3"
    assert Position(x=1, y=2, z=3).offset(1, -1, 0) == Position(x=2, y=1, z=3)


def test_tool_result_payloads():
    assert json.loads(ToolResult.ok("Placed").to_json()) == {"success": True, "message": "Placed"}
    assert ToolResult.fail(None).message == "unknown"
    assert ToolResult.fail("").message == "unknown"


def test_image_from_path(tmp_path):
    png = tmp_path / "ref.png"
    png.write_bytes(b"\x89PNG\r\n")

    image = ImageData.from_path(png)

    assert image.mime_type == "image/png"
    assert image.to_base64() == "iVBORw0K"


def test_image_from_unsupported_path(tmp_path):
    text = tmp_path / "notes.txt"
    text.write_text("hi")
    with pytest.raises(ValueError, match="Unsupported image type"):
        ImageData.from_path(text)


def test_describe_error():
    assert describe_error(EmptyPlan("no steps")) == "EmptyPlan: no steps"
    assert describe_error(PipelineCancelled()) == "PipelineCancelled"
