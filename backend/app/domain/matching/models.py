"""Domain models for users, likes, matches and blocks."""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple


class Gender(str, Enum):
	MALE = "male"
	FEMALE = "female"
	NON_BINARY = "non-binary"
	PREFER_NOT_TO_SAY = "prefer_not_to_say"


RELATIONSHIP_GOALS = frozenset({"something_casual", "something_serious", "not_sure", "just_exploring"})

DEFAULT_PREFERENCES: Dict[str, Any] = {
	"age_range": {"min": 18, "max": 50},
	"distance_miles": 25,
	"gender_preferences": [],
	"relationship_goal": "not_sure",
}

_TRUE_STRINGS = frozenset({"yes", "true", "1"})
_FALSE_STRINGS = frozenset({"no", "false", "0"})


def default_preferences() -> Dict[str, Any]:
	return json.loads(json.dumps(DEFAULT_PREFERENCES))


def canonical_user_id(value: Any) -> str:
	"""Lower-case hyphenated form for UUIDs; other ids are only stripped."""
	text = str(value or "").strip()
	try:
		return str(uuid.UUID(text))
	except ValueError:
		return text


def normalize_boolean(value: Any) -> Optional[bool]:
	"""Map stored yes/no style answers to a bool, None when unknown."""
	if isinstance(value, bool):
		return value
	if isinstance(value, str):
		lowered = value.strip().lower()
		if lowered in _TRUE_STRINGS:
			return True
		if lowered in _FALSE_STRINGS:
			return False
	return None


def _parse_decimal(value: Any) -> Optional[float]:
	if isinstance(value, bool) or value is None:
		return None
	if isinstance(value, (int, float)):
		return float(value)
	try:
		text = str(value).strip()
		return float(text) if text else None
	except ValueError:
		return None


def _parse_gender(value: Any) -> Gender:
	try:
		return Gender(value)
	except ValueError:
		return Gender.PREFER_NOT_TO_SAY


def _parse_preferences(value: Any) -> Dict[str, Any]:
	if value is None:
		return default_preferences()
	if isinstance(value, (str, bytes)):
		# asyncpg hands back jsonb as text unless a codec is registered
		value = json.loads(value)
	return dict(value)


def _text(value: Any) -> Optional[str]:
	return str(value) if value is not None else None


def ordered_pair(user_a: str, user_b: str) -> Tuple[str, str]:
	"""Return the pair in the (least, greatest) order matches are keyed by."""
	return (user_a, user_b) if user_a <= user_b else (user_b, user_a)


@dataclass(slots=True)
class UserProfile:
	"""Read model for a user joined with optional profile details."""

	id: str
	full_name: str
	email: Optional[str] = None
	gender: Gender = Gender.PREFER_NOT_TO_SAY
	birthdate: Optional[date] = None
	bio: str = ""
	profile_picture_url: Optional[str] = None
	preferences: Dict[str, Any] = field(default_factory=default_preferences)
	location_lat: Optional[float] = None
	location_lng: Optional[float] = None
	is_online: bool = False
	last_active_at: Optional[datetime] = None
	verified_at: Optional[datetime] = None
	created_at: Optional[datetime] = None
	updated_at: Optional[datetime] = None
	height_cm: Optional[int] = None
	education: Optional[str] = None
	occupation: Optional[str] = None
	relationship_goal: Optional[str] = None
	smoking: Optional[bool] = None
	drinking: Optional[bool] = None
	children: Optional[str] = None

	@classmethod
	def from_record(cls, record: Mapping[str, Any]) -> "UserProfile":
		goal = record.get("relationship_goal")
		return cls(
			id=str(record["id"]),
			full_name=record.get("full_name") or "",
			email=record.get("email"),
			gender=_parse_gender(record.get("gender")),
			birthdate=record.get("birthdate"),
			bio=record.get("bio") or "",
			profile_picture_url=record.get("profile_picture_url"),
			preferences=_parse_preferences(record.get("preferences")),
			location_lat=_parse_decimal(record.get("location_lat")),
			location_lng=_parse_decimal(record.get("location_lng")),
			is_online=bool(record.get("is_online")),
			last_active_at=record.get("last_active_at"),
			verified_at=record.get("verified_at"),
			created_at=record.get("created_at"),
			updated_at=record.get("updated_at"),
			height_cm=record.get("height_cm"),
			education=record.get("education"),
			occupation=record.get("occupation"),
			relationship_goal=goal if goal in RELATIONSHIP_GOALS else None,
			smoking=normalize_boolean(record.get("smoking")),
			drinking=normalize_boolean(record.get("drinking")),
			children=record.get("children"),
		)

	def accepted_genders(self) -> Tuple[str, ...]:
		raw = self.preferences.get("gender_preferences") or ()
		return tuple(str(item) for item in raw)


@dataclass(slots=True)
class Like:
	from_user_id: str
	to_user_id: str
	is_active: bool
	created_at: Optional[datetime] = None
	unliked_at: Optional[datetime] = None

	@classmethod
	def from_record(cls, record: Mapping[str, Any]) -> "Like":
		return cls(
			from_user_id=str(record["from_user_id"]),
			to_user_id=str(record["to_user_id"]),
			is_active=bool(record["is_active"]),
			created_at=record.get("created_at"),
			unliked_at=record.get("unliked_at"),
		)


@dataclass(slots=True)
class Match:
	"""Unordered pair stored as (least, greatest)."""

	user1_id: str
	user2_id: str
	is_active: bool
	created_at: Optional[datetime] = None
	ended_at: Optional[datetime] = None

	@classmethod
	def from_record(cls, record: Mapping[str, Any]) -> "Match":
		return cls(
			user1_id=str(record["user1_id"]),
			user2_id=str(record["user2_id"]),
			is_active=bool(record["is_active"]),
			created_at=record.get("created_at"),
			ended_at=record.get("ended_at"),
		)

	def other(self, user_id: str) -> str:
		if canonical_user_id(self.user1_id) == canonical_user_id(user_id):
			return self.user2_id
		return self.user1_id


@dataclass(slots=True)
class Block:
	blocker_id: str
	blocked_id: str
	reason: Optional[str] = None
	created_at: Optional[datetime] = None

	@classmethod
	def from_record(cls, record: Mapping[str, Any]) -> "Block":
		return cls(
			blocker_id=str(record["blocker_id"]),
			blocked_id=str(record["blocked_id"]),
			reason=_text(record.get("reason")),
			created_at=record.get("created_at"),
		)


@dataclass(slots=True)
class BlockedUser:
	profile: UserProfile
	blocked_at: Optional[datetime]
	reason: Optional[str]


@dataclass(slots=True)
class LikeOutcome:
	is_match: bool
	matched_user: Optional[UserProfile] = None
