"""REST API surface for matches and blocks."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Body, Depends

from app.api.errors import map_error
from app.domain.common.errors import RelationshipError
from app.domain.matching import service
from app.domain.matching.schemas import (
	BlockedUserOut,
	BlockRequest,
	StatusResponse,
	UserProfileOut,
	profiles_out,
)
from app.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(tags=["social"])


@router.get("/matches", response_model=List[UserProfileOut])
async def list_matches(auth_user: AuthenticatedUser = Depends(get_current_user)) -> List[UserProfileOut]:
	try:
		profiles = await service.matches_of(auth_user)
	except RelationshipError as exc:
		raise map_error(exc) from None
	return profiles_out(profiles)


@router.post("/matches/{user_id}/unmatch", response_model=StatusResponse)
async def unmatch(
	user_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> StatusResponse:
	try:
		await service.unmatch(auth_user, user_id)
	except RelationshipError as exc:
		raise map_error(exc) from None
	return StatusResponse()


@router.get("/blocks", response_model=List[BlockedUserOut])
async def list_blocks(auth_user: AuthenticatedUser = Depends(get_current_user)) -> List[BlockedUserOut]:
	try:
		entries = await service.list_blocked(auth_user)
	except RelationshipError as exc:
		raise map_error(exc) from None
	return [BlockedUserOut.from_blocked(entry) for entry in entries]


@router.post("/blocks/{user_id}", response_model=StatusResponse)
async def block_user(
	user_id: str,
	payload: Optional[BlockRequest] = Body(default=None),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> StatusResponse:
	reason = payload.reason if payload else None
	try:
		await service.block_user(auth_user, user_id, reason)
	except RelationshipError as exc:
		raise map_error(exc) from None
	return StatusResponse()


@router.delete("/blocks/{user_id}", response_model=StatusResponse)
async def unblock_user(
	user_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> StatusResponse:
	try:
		removed = await service.unblock_user(auth_user, user_id)
	except RelationshipError as exc:
		raise map_error(exc) from None
	return StatusResponse(changed=removed)
