"""Chat endpoints: transport credentials and match-gated conversations."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from app.api.errors import map_error
from app.domain.chat import service
from app.domain.chat.schemas import (
	CallSessionResponse,
	ConversationResponse,
	LastMessageResponse,
	MessageResponse,
	SendMessageRequest,
	TransportTokenResponse,
)
from app.domain.common.errors import RelationshipError
from app.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/chat", tags=["chat"])


@router.get("/token", response_model=TransportTokenResponse)
async def transport_token(auth_user: AuthenticatedUser = Depends(get_current_user)) -> TransportTokenResponse:
	try:
		credentials = await service.issue_credentials(auth_user)
	except RelationshipError as exc:
		raise map_error(exc) from None
	return TransportTokenResponse.from_model(credentials)


@router.post("/conversations/{user_id}", response_model=ConversationResponse)
async def ensure_conversation(
	user_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> ConversationResponse:
	try:
		channel_id = await service.ensure_conversation(auth_user, user_id)
	except RelationshipError as exc:
		raise map_error(exc) from None
	return ConversationResponse(channel_id=channel_id)


@router.get("/conversations/{user_id}/last-message", response_model=Optional[LastMessageResponse])
async def last_message(
	user_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> Optional[LastMessageResponse]:
	try:
		message = await service.last_message(auth_user, user_id)
	except RelationshipError as exc:
		raise map_error(exc) from None
	return LastMessageResponse.from_model(message) if message else None


@router.post("/conversations/{user_id}/messages", response_model=MessageResponse)
async def send_message(
	user_id: str,
	payload: SendMessageRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> MessageResponse:
	try:
		message = await service.send_message(auth_user, user_id, payload.text)
	except RelationshipError as exc:
		raise map_error(exc) from None
	return MessageResponse(
		id=message.id,
		channel_id=message.channel_id,
		sender_id=message.sender_id,
		text=message.text,
		created_at=message.created_at,
	)


@router.post("/calls/{user_id}", response_model=CallSessionResponse)
async def ensure_call_session(
	user_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> CallSessionResponse:
	try:
		call_id = await service.ensure_call_session(auth_user, user_id)
	except RelationshipError as exc:
		raise map_error(exc) from None
	return CallSessionResponse(call_id=call_id)


@router.post("/calls/{user_id}/invite", response_model=CallSessionResponse)
async def invite_to_call(
	user_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> CallSessionResponse:
	try:
		call_id = await service.invite_to_call(auth_user, user_id)
	except RelationshipError as exc:
		raise map_error(exc) from None
	return CallSessionResponse(call_id=call_id)
