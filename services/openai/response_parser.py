"""Helpers to parse Responses API outputs."""

import json
from typing import Any, Dict, List, Optional


def _clamp_percent(value: Any) -> float:
    return max(0.0, min(100.0, float(value)))


def parse_function_call(response: Any, *, tool_name: str) -> Dict[str, Any]:
    """Extract the analysis and components from the named function call."""
    for item in getattr(response, "output", None) or []:
        if getattr(item, "type", None) == "function_call" and getattr(item, "name", None) == tool_name:
            args = json.loads(getattr(item, "arguments", "{}") or "{}")
            components: List[Dict[str, Any]] = []
            for raw in args.get("components") or []:
                name = str(raw.get("name") or "").strip()
                if not name:
                    continue
                components.append({"name": name, "x": _clamp_percent(raw.get("x", 0)), "y": _clamp_percent(raw.get("y", 0))})
            return {"analysis": args.get("analysis", ""), "components": components}
    raise RuntimeError(f"No function_call output for '{tool_name}' found in Responses API output.")


def extract_text(response: Any) -> str:
    """Return the concatenated output text of a response."""
    text = getattr(response, "output_text", None)
    if text:
        return text
    parts = []
    for item in getattr(response, "output", None) or []:
        if getattr(item, "type", None) != "message":
            continue
        for content in getattr(item, "content", None) or []:
            if getattr(content, "type", None) == "output_text":
                parts.append(getattr(content, "text", ""))
    return "".join(parts)


def extract_usage(response: Any) -> Dict[str, Optional[int]]:
    """Return token usage information from the response, if present."""
    usage = getattr(response, "usage", None)
    return {
        "input_tokens": getattr(usage, "input_tokens", None) if usage else None,
        "output_tokens": getattr(usage, "output_tokens", None) if usage else None,
    }
