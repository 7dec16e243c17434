"""Schema definitions for the image breakdown tool."""

from typing import Any, Dict

FUNCTION_NAME = "describe_image_components"

FUNCTION_DEFINITION: Dict[str, Any] = {
    "type": "function",
    "name": FUNCTION_NAME,
    "description": (
        "Return the written analysis of the image and the labelled components with their positions."
    ),
    "parameters": {
        "type": "object",
        "properties": {
            "analysis": {
                "type": "string",
                "description": "Overview of what the image shows and how its components work together.",
            },
            "components": {
                "type": "array",
                "description": "Main visible components, in reading order.",
                "items": {
                    "type": "object",
                    "properties": {
                        "name": {"type": "string", "description": "Short component name."},
                        "x": {"type": "number", "description": "Centre x as a percentage of image width (0-100)."},
                        "y": {"type": "number", "description": "Centre y as a percentage of image height (0-100)."},
                    },
                    "required": ["name", "x", "y"],
                    "additionalProperties": False,
                },
            },
        },
        "required": ["analysis", "components"],
        "additionalProperties": False,
    },
    "strict": True,
}
