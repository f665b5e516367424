"""Pydantic schemas for discovery, matches and blocks."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .models import BlockedUser, LikeOutcome, UserProfile


class UserProfileOut(BaseModel):
	id: str
	full_name: str
	gender: str
	birthdate: Optional[date] = None
	bio: str = ""
	profile_picture_url: Optional[str] = None
	preferences: Dict[str, Any] = Field(default_factory=dict)
	location_lat: Optional[float] = None
	location_lng: Optional[float] = None
	is_online: bool = False
	last_active_at: Optional[datetime] = None
	verified_at: Optional[datetime] = None
	height_cm: Optional[int] = None
	education: Optional[str] = None
	occupation: Optional[str] = None
	relationship_goal: Optional[str] = None
	smoking: Optional[bool] = None
	drinking: Optional[bool] = None
	children: Optional[str] = None

	@classmethod
	def from_model(cls, profile: UserProfile) -> "UserProfileOut":
		return cls(
			id=profile.id,
			full_name=profile.full_name,
			gender=profile.gender.value,
			birthdate=profile.birthdate,
			bio=profile.bio,
			profile_picture_url=profile.profile_picture_url,
			preferences=profile.preferences,
			location_lat=profile.location_lat,
			location_lng=profile.location_lng,
			is_online=profile.is_online,
			last_active_at=profile.last_active_at,
			verified_at=profile.verified_at,
			height_cm=profile.height_cm,
			education=profile.education,
			occupation=profile.occupation,
			relationship_goal=profile.relationship_goal,
			smoking=profile.smoking,
			drinking=profile.drinking,
			children=profile.children,
		)


class TargetRequest(BaseModel):
	target_id: str = Field(..., min_length=1, description="User the swipe applies to")


class LikeResponse(BaseModel):
	success: bool = True
	is_match: bool
	matched_user: Optional[UserProfileOut] = None

	@classmethod
	def from_model(cls, outcome: LikeOutcome) -> "LikeResponse":
		matched = UserProfileOut.from_model(outcome.matched_user) if outcome.matched_user else None
		return cls(is_match=outcome.is_match, matched_user=matched)


class BlockRequest(BaseModel):
	reason: Optional[str] = Field(default=None, max_length=500)


class BlockedUserOut(UserProfileOut):
	blocked_at: Optional[datetime] = None
	reason: Optional[str] = None

	@classmethod
	def from_blocked(cls, entry: BlockedUser) -> "BlockedUserOut":
		base = UserProfileOut.from_model(entry.profile).model_dump()
		return cls(**base, blocked_at=entry.blocked_at, reason=entry.reason)


class StatusResponse(BaseModel):
	status: str = "ok"
	changed: Optional[bool] = None


def profiles_out(profiles: List[UserProfile]) -> List[UserProfileOut]:
	return [UserProfileOut.from_model(profile) for profile in profiles]
