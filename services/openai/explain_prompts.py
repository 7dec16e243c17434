"""Prompt builders for image explanation and follow-up conversation."""

from typing import Optional

from models.session_models import DEFAULT_DIFFICULTY, TapPoint

DIFFICULTY_GUIDANCE = {
    "Novice": "Use simple explanations with everyday analogies. Avoid jargon entirely.",
    "Beginner": "Use basic technical terms and explain each one with a clear example.",
    "Intermediate": "Give balanced detail suitable for a hobbyist who knows the fundamentals.",
    "Advanced": "Give an in-depth technical analysis and use precise terminology.",
    "Expert": "Speak at expert level: include specifications, standards and underlying theory.",
}


def difficulty_guidance(difficulty: str) -> str:
    return DIFFICULTY_GUIDANCE.get(difficulty, DIFFICULTY_GUIDANCE[DEFAULT_DIFFICULTY])


def build_system_prompt(difficulty: str) -> str:
    """Return the system prompt shared by every request for a session."""
    return (
        "You are a patient visual explainer. You look at a single image of a device, "
        "machine, structure or scene and explain how its parts work and fit together. "
        "Stay grounded in what is visible in the image and say so when you are unsure. "
        f"Explanation level: {difficulty}. {difficulty_guidance(difficulty)}"
    )


def build_analysis_prompt() -> str:
    """Return the user prompt for the initial breakdown of an image."""
    return (
        "Identify what this image shows and break it down into its main components. "
        "Write an overview explaining what each component does and how they work together. "
        "For every component give its name and the position of its centre as percentages "
        "of the image width (x) and height (y), from 0 to 100, measured from the top-left corner."
    )


def build_follow_up_prompt(question: str, tap_point: Optional[TapPoint]) -> str:
    """Return the user prompt for a follow-up question, scoped to a tap point when given."""
    if tap_point is None:
        return question
    return (
        f"The user tapped the image at x={tap_point.x:.1f}%, y={tap_point.y:.1f}% "
        "(percent of width and height from the top-left corner). "
        "Focus your answer on whatever is at that location.\n\n"
        f"Question: {question}"
    )


def build_what_if_prompt(scenario: str) -> str:
    """Return the user prompt for a hypothetical scenario."""
    return (
        "Answer a hypothetical 'what if' question about the object in the image. "
        "Reason about the consequences step by step: which components are affected, "
        "what would change in how it works, and any safety concerns. "
        "Make clear which parts are speculation.\n\n"
        f"What if: {scenario}"
    )
