"""
Shared schema fragments for Claude tool definitions.

Tool catalogs are plain Messages API tool dicts (name, description,
input_schema). The orchestrator only cares about their names; the model
sees the full schema.
"""


DIRECTIONS = ["north", "south", "east", "west", "up", "down"]
HORIZONTAL_DIRECTIONS = ["north", "south", "east", "west"]


def vec3(description: str) -> dict:
    """Integer block coordinate object."""
    return {
        "type": "object",
        "description": description,
        "properties": {
            "x": {"type": "integer", "description": "X coordinate (east/west)"},
            "y": {"type": "integer", "description": "Y coordinate (up/down)"},
            "z": {"type": "integer", "description": "Z coordinate (north/south)"},
        },
        "required": ["x", "y", "z"],
    }


def tool(name: str, description: str, properties: dict, required: list[str]) -> dict:
    return {
        "name": name,
        "description": description,
        "input_schema": {
            "type": "object",
            "properties": properties,
            "required": required,
        },
    }


def submit_plan_tool(description: str, title_description: str, origin_description: str,
                     steps_description: str, step_id_description: str,
                     feature_description: str, details_description: str) -> dict:
    """The planner's single tool contract. Field names match the Plan wire format."""
    step_schema = {
        "type": "object",
        "properties": {
            "id": {"type": "string", "description": step_id_description},
            "feature": {"type": "string", "description": feature_description},
            "details": {"type": "string", "description": details_description},
        },
        "required": ["id", "feature", "details"],
    }
    return tool(
        "submit_plan",
        description,
        {
            "planTitle": {"type": "string", "description": title_description},
            "origin": vec3(origin_description),
            "steps": {"type": "array", "description": steps_description, "items": step_schema},
        },
        ["planTitle", "origin", "steps"],
    )
