"""Session domain models for image conversations."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

DIFFICULTY_LEVELS = ("Novice", "Beginner", "Intermediate", "Advanced", "Expert")
DEFAULT_DIFFICULTY = DIFFICULTY_LEVELS[1]

# Fields a caller may change after the session has been created.
MUTABLE_FIELDS = frozenset({"conversation_history", "components", "difficulty", "image_description"})


def normalize_difficulty(value: Optional[str]) -> str:
	"""Return a known difficulty level, falling back to the default."""
	if not value:
		return DEFAULT_DIFFICULTY
	for level in DIFFICULTY_LEVELS:
		if level.lower() == str(value).strip().lower():
			return level
	return DEFAULT_DIFFICULTY


@dataclass
class TapPoint:
	"""Percentage coordinate on the image the user tapped."""

	x: float
	y: float

	def to_dict(self) -> Dict[str, float]:
		return {"x": self.x, "y": self.y}

	@classmethod
	def from_dict(cls, data: Mapping[str, Any]) -> "TapPoint":
		return cls(x=float(data["x"]), y=float(data["y"]))


@dataclass
class Component:
	"""Labelled part of the image placed at percentage coordinates."""

	name: str
	x: float
	y: float

	def to_dict(self) -> Dict[str, Any]:
		return {"name": self.name, "x": self.x, "y": self.y}

	@classmethod
	def from_dict(cls, data: Mapping[str, Any]) -> "Component":
		return cls(name=str(data["name"]), x=float(data["x"]), y=float(data["y"]))


@dataclass
class ConversationTurn:
	"""One message in the conversation, in the order it was spoken."""

	role: str
	content: str
	tap_point: Optional[TapPoint] = None
	is_what_if: bool = False

	def to_dict(self) -> Dict[str, Any]:
		"""Serialize with the camelCase keys shared with the frontend."""
		data: Dict[str, Any] = {"role": self.role, "content": self.content}
		if self.tap_point is not None:
			data["tapPoint"] = self.tap_point.to_dict()
		if self.is_what_if:
			data["isWhatIf"] = True
		return data

	@classmethod
	def from_dict(cls, data: Mapping[str, Any]) -> "ConversationTurn":
		tap_point = data.get("tapPoint")
		return cls(
			role=str(data["role"]),
			content=str(data.get("content") or ""),
			tap_point=TapPoint.from_dict(tap_point) if tap_point else None,
			is_what_if=bool(data.get("isWhatIf", False)),
		)


def coerce_components(items: Optional[List[Any]]) -> List[Component]:
	"""Accept Component instances or plain mappings."""
	return [item if isinstance(item, Component) else Component.from_dict(item) for item in items or []]


def coerce_history(items: Optional[List[Any]]) -> List[ConversationTurn]:
	"""Accept ConversationTurn instances or plain mappings, keeping their order."""
	return [
		item if isinstance(item, ConversationTurn) else ConversationTurn.from_dict(item) for item in items or []
	]


@dataclass
class SessionRecord:
	"""Image, analysis and conversation bound to one opaque session id.

	`image_data` and `image_type` never change after creation. The
	conversation history is append-only and its order is the conversation
	order; nothing in the storage layer reorders or trims it.
	"""

	session_id: str
	image_data: str
	image_type: str
	image_description: Optional[str] = None
	components: List[Component] = field(default_factory=list)
	conversation_history: List[ConversationTurn] = field(default_factory=list)
	difficulty: str = DEFAULT_DIFFICULTY
	expires_at: float = 0.0

	@classmethod
	def from_data(cls, session_id: str, data: Mapping[str, Any], expires_at: float) -> "SessionRecord":
		"""Build a new record from creation data, applying defaults."""
		image_data = data.get("image_data")
		image_type = data.get("image_type")
		if not image_data or not image_type:
			raise ValueError("Session data requires image_data and image_type.")
		return cls(
			session_id=session_id,
			image_data=image_data,
			image_type=image_type,
			image_description=data.get("image_description"),
			components=coerce_components(data.get("components")),
			conversation_history=coerce_history(data.get("conversation_history")),
			difficulty=normalize_difficulty(data.get("difficulty")),
			expires_at=expires_at,
		)

	def add_turn(
		self,
		role: str,
		content: str,
		*,
		tap_point: Optional[TapPoint] = None,
		is_what_if: bool = False,
	) -> ConversationTurn:
		"""Append a turn to the end of the conversation and return it."""
		if role not in ("user", "assistant"):
			raise ValueError(f"Unsupported conversation role: {role}")
		turn = ConversationTurn(role=role, content=content.strip(), tap_point=tap_point, is_what_if=is_what_if)
		self.conversation_history.append(turn)
		return turn

	def history_as_dicts(self) -> List[Dict[str, Any]]:
		return [turn.to_dict() for turn in self.conversation_history]

	def components_as_dicts(self) -> List[Dict[str, Any]]:
		return [component.to_dict() for component in self.components]
