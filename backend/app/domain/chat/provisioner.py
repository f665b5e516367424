"""Match-gated provisioning of conversations in the chat transport."""

from __future__ import annotations

import logging
from typing import Optional

from app.domain.chat.identity import ConversationIdentity
from app.domain.chat.models import ConversationKey, TransportUser
from app.domain.chat.transport import ChatTransport
from app.domain.common.errors import (
	ChannelAlreadyExists,
	ChannelNotFound,
	NotMatchedError,
	SelfInteractionError,
	StorageError,
	ValidationError,
)
from app.domain.matching.models import UserProfile
from app.domain.matching.store import Repository
from app.obs import metrics

LOGGER = logging.getLogger(__name__)


def transport_user(profile: UserProfile) -> TransportUser:
	return TransportUser(id=profile.id, name=profile.full_name, image=profile.profile_picture_url)


class ChannelProvisioner:
	"""Creating a channel grants both members send rights, so every entry
	point checks for an active match first."""

	def __init__(
		self,
		repository: Repository,
		transport: ChatTransport,
		*,
		identity: Optional[ConversationIdentity] = None,
	) -> None:
		self._repository = repository
		self._transport = transport
		self._identity = identity or ConversationIdentity()

	@property
	def identity(self) -> ConversationIdentity:
		return self._identity

	def key_for(self, user_a: str, user_b: str) -> ConversationKey:
		return ConversationKey(
			user_a=user_a,
			user_b=user_b,
			conversation_id=self._identity.conversation_id(user_a, user_b),
			call_id=self._identity.call_id(user_a, user_b),
		)

	async def require_match(self, requester_id: str, other_user_id: str) -> None:
		if not requester_id or not other_user_id:
			raise ValidationError("missing_user_id")
		if requester_id == other_user_id:
			raise SelfInteractionError()
		if not await self._repository.has_active_match(requester_id, other_user_id):
			metrics.inc_conversation_provision("refused")
			raise NotMatchedError()

	async def ensure_conversation(self, requester_id: str, other_user_id: str) -> str:
		await self.require_match(requester_id, other_user_id)
		conversation_id = self._identity.conversation_id(requester_id, other_user_id)
		other = await self._repository.get_profile(other_user_id)
		if other is None:
			raise StorageError("profile_unavailable")
		await self._transport.upsert_user(transport_user(other))
		try:
			await self._transport.create_channel(
				conversation_id,
				members=[requester_id, other_user_id],
				created_by=requester_id,
			)
		except ChannelAlreadyExists:
			metrics.inc_conversation_provision("existing")
			return conversation_id
		metrics.inc_conversation_provision("created")
		LOGGER.info(
			"chat.conversation_created",
			extra={"conversation_id": conversation_id, "created_by": requester_id},
		)
		return conversation_id

	async def ensure_call_session(self, requester_id: str, other_user_id: str) -> str:
		# the call creates its own session when it starts
		await self.require_match(requester_id, other_user_id)
		return self._identity.call_id(requester_id, other_user_id)

	async def close_conversation(self, user_a: str, user_b: str) -> bool:
		"""Remove the pair's conversation; returns False when none existed."""
		conversation_id = self._identity.conversation_id(user_a, user_b)
		try:
			await self._transport.delete_channel(conversation_id)
		except ChannelNotFound:
			return False
		return True
