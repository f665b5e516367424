"""Conversation provisioning and message helpers backed by the chat transport."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from app.domain.chat.models import LastMessage, TransportCredentials, TransportMessage
from app.domain.chat.provisioner import ChannelProvisioner, transport_user
from app.domain.chat.redis_transport import RedisChatTransport
from app.domain.chat.transport import ChatTransport
from app.domain.common.errors import StorageError, ValidationError
from app.domain.matching import store
from app.domain.matching.models import canonical_user_id
from app.domain.matching.store import Repository
from app.infra.auth import AuthenticatedUser

LOGGER = logging.getLogger(__name__)

CALL_INVITATION_TEXT = "📹 Video call invitation"

_TRANSPORT: Optional[ChatTransport] = None


def get_transport() -> ChatTransport:
	global _TRANSPORT
	if _TRANSPORT is None:
		_TRANSPORT = RedisChatTransport()
	return _TRANSPORT


def set_transport(transport: Optional[ChatTransport]) -> None:
	global _TRANSPORT
	_TRANSPORT = transport


class ChatService:
	def __init__(
		self,
		repository: Repository | None = None,
		transport: ChatTransport | None = None,
	) -> None:
		self._repository = repository
		self._transport = transport

	@property
	def repository(self) -> Repository:
		return self._repository or store.get_repository()

	@property
	def transport(self) -> ChatTransport:
		return self._transport or get_transport()

	@property
	def provisioner(self) -> ChannelProvisioner:
		return ChannelProvisioner(self.repository, self.transport)

	async def issue_credentials(self, auth_user: AuthenticatedUser) -> TransportCredentials:
		profile = await self.repository.get_profile(auth_user.id)
		if profile is None:
			raise StorageError("profile_unavailable")
		token = await self.transport.issue_token(auth_user.id)
		user = transport_user(profile)
		await self.transport.upsert_user(user)
		return TransportCredentials(token=token, user_id=user.id, user_name=user.name, user_image=user.image)

	async def ensure_conversation(self, auth_user: AuthenticatedUser, other_user_id: str) -> str:
		return await self.provisioner.ensure_conversation(auth_user.id, canonical_user_id(other_user_id))

	async def ensure_call_session(self, auth_user: AuthenticatedUser, other_user_id: str) -> str:
		return await self.provisioner.ensure_call_session(auth_user.id, canonical_user_id(other_user_id))

	async def close_conversation(self, user_a: str, user_b: str) -> bool:
		return await self.provisioner.close_conversation(user_a, user_b)

	async def last_message(self, auth_user: AuthenticatedUser, other_user_id: str) -> Optional[LastMessage]:
		other_user_id = canonical_user_id(other_user_id)
		if not other_user_id:
			raise ValidationError("missing_user_id")
		channel_id = self.provisioner.identity.conversation_id(auth_user.id, other_user_id)
		message = await self.transport.query_last_message(channel_id)
		if message is None:
			return None
		return LastMessage.from_message(message, now=datetime.now(timezone.utc))

	async def send_message(self, auth_user: AuthenticatedUser, other_user_id: str, text: str) -> TransportMessage:
		body = (text or "").strip()
		if not body:
			raise ValidationError("empty_message")
		other_user_id = canonical_user_id(other_user_id)
		channel_id = await self.provisioner.ensure_conversation(auth_user.id, other_user_id)
		return await self.transport.publish_message(channel_id, sender_id=auth_user.id, text=body)

	async def invite_to_call(self, auth_user: AuthenticatedUser, other_user_id: str) -> str:
		"""Drop the call invitation into the pair's conversation and return the call id."""
		other_user_id = canonical_user_id(other_user_id)
		provisioner = self.provisioner
		call_id = await provisioner.ensure_call_session(auth_user.id, other_user_id)
		channel_id = await provisioner.ensure_conversation(auth_user.id, other_user_id)
		await self.transport.publish_message(
			channel_id,
			sender_id=auth_user.id,
			text=CALL_INVITATION_TEXT,
			extra={"call_id": call_id},
		)
		LOGGER.info("chat.call_invited", extra={"call_id": call_id, "from_user_id": auth_user.id})
		return call_id


_SERVICE = ChatService()


async def issue_credentials(auth_user: AuthenticatedUser) -> TransportCredentials:
	return await _SERVICE.issue_credentials(auth_user)


async def ensure_conversation(auth_user: AuthenticatedUser, other_user_id: str) -> str:
	return await _SERVICE.ensure_conversation(auth_user, other_user_id)


async def ensure_call_session(auth_user: AuthenticatedUser, other_user_id: str) -> str:
	return await _SERVICE.ensure_call_session(auth_user, other_user_id)


async def close_conversation(user_a: str, user_b: str) -> bool:
	return await _SERVICE.close_conversation(user_a, user_b)


async def last_message(auth_user: AuthenticatedUser, other_user_id: str) -> Optional[LastMessage]:
	return await _SERVICE.last_message(auth_user, other_user_id)


async def send_message(auth_user: AuthenticatedUser, other_user_id: str, text: str) -> TransportMessage:
	return await _SERVICE.send_message(auth_user, other_user_id, text)


async def invite_to_call(auth_user: AuthenticatedUser, other_user_id: str) -> str:
	return await _SERVICE.invite_to_call(auth_user, other_user_id)
