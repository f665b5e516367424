"""Discovery endpoints: candidate pool and swipes."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends

from app.api.errors import map_error
from app.domain.common.errors import RelationshipError
from app.domain.matching import service
from app.domain.matching.schemas import (
	LikeResponse,
	StatusResponse,
	TargetRequest,
	UserProfileOut,
	profiles_out,
)
from app.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/discovery", tags=["discovery"])


@router.get("/candidates", response_model=List[UserProfileOut])
async def candidates(auth_user: AuthenticatedUser = Depends(get_current_user)) -> List[UserProfileOut]:
	try:
		profiles = await service.potential_matches_for(auth_user)
	except RelationshipError as exc:
		raise map_error(exc) from None
	return profiles_out(profiles)


@router.post("/like", response_model=LikeResponse)
async def like(
	payload: TargetRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> LikeResponse:
	try:
		outcome = await service.like(auth_user, payload.target_id)
	except RelationshipError as exc:
		raise map_error(exc) from None
	return LikeResponse.from_model(outcome)


@router.post("/pass", response_model=StatusResponse)
async def pass_user(
	payload: TargetRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> StatusResponse:
	try:
		await service.pass_user(auth_user, payload.target_id)
	except RelationshipError as exc:
		raise map_error(exc) from None
	return StatusResponse()


@router.post("/unlike", response_model=StatusResponse)
async def unlike(
	payload: TargetRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> StatusResponse:
	try:
		changed = await service.unlike(auth_user, payload.target_id)
	except RelationshipError as exc:
		raise map_error(exc) from None
	return StatusResponse(changed=changed)
