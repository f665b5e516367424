"""Discovery, like/match and block operations for authenticated users."""

from __future__ import annotations

import logging
from typing import List, Optional, Protocol

from app.domain.chat import service as chat_service
from app.domain.common.errors import SelfInteractionError, TransportError, ValidationError
from app.domain.matching import store
from app.domain.matching.blocks import BlockIndex
from app.domain.matching.candidates import CandidateResolver
from app.domain.matching.likes import LikeLedger
from app.domain.matching.models import BlockedUser, LikeOutcome, UserProfile, canonical_user_id
from app.domain.matching.store import Repository
from app.infra.auth import AuthenticatedUser
from app.obs import metrics
from app.settings import settings

LOGGER = logging.getLogger(__name__)


class ConversationCloser(Protocol):
	async def close_conversation(self, user_a: str, user_b: str) -> bool:
		...


def _require_target(auth_user: AuthenticatedUser, target_id: str) -> str:
	target = canonical_user_id(target_id)
	if not target:
		raise ValidationError("missing_user_id")
	if target == auth_user.id:
		raise SelfInteractionError()
	return target


class MatchingService:
	def __init__(
		self,
		repository: Repository | None = None,
		conversations: ConversationCloser | None = None,
		*,
		page_size: int | None = None,
	) -> None:
		self._repository = repository
		self._conversations = conversations
		self._page_size = page_size

	@property
	def repository(self) -> Repository:
		return self._repository or store.get_repository()

	@property
	def conversations(self) -> ConversationCloser:
		return self._conversations or chat_service.ChatService(self._repository)

	async def potential_matches_for(self, auth_user: AuthenticatedUser) -> List[UserProfile]:
		resolver = CandidateResolver(
			self.repository,
			page_size=self._page_size or settings.discovery_page_size,
		)
		return await resolver.potential_matches_for(auth_user.id)

	async def like(self, auth_user: AuthenticatedUser, target_id: str) -> LikeOutcome:
		return await LikeLedger(self.repository).like(auth_user.id, canonical_user_id(target_id))

	async def pass_user(self, auth_user: AuthenticatedUser, target_id: str) -> None:
		await LikeLedger(self.repository).pass_user(auth_user.id, canonical_user_id(target_id))

	async def unlike(self, auth_user: AuthenticatedUser, target_id: str) -> bool:
		return await LikeLedger(self.repository).unlike(auth_user.id, canonical_user_id(target_id))

	async def matches_of(self, auth_user: AuthenticatedUser) -> List[UserProfile]:
		repository = self.repository
		blocked = await BlockIndex(repository).blocked_peers_of(auth_user.id)
		matches = await repository.list_active_matches(auth_user.id)
		peer_ids = [match.other(auth_user.id) for match in matches]
		peer_ids = [peer_id for peer_id in peer_ids if peer_id not in blocked]
		profiles = await repository.get_profiles(peer_ids)
		# peers whose profile cannot be read are left out
		return [profiles[peer_id] for peer_id in peer_ids if peer_id in profiles]

	async def _sever(self, user_id: str, other_id: str) -> None:
		repository = self.repository
		await repository.end_match(user_id, other_id)
		await repository.deactivate_like(user_id, other_id)
		await repository.deactivate_like(other_id, user_id)

	async def _close_conversation(self, user_id: str, other_id: str) -> None:
		try:
			await self.conversations.close_conversation(user_id, other_id)
		except TransportError:
			LOGGER.warning(
				"matching.conversation_close_failed",
				extra={"user_id": user_id, "other_user_id": other_id},
				exc_info=True,
			)

	async def block_user(self, auth_user: AuthenticatedUser, blocked_id: str, reason: Optional[str] = None) -> None:
		blocked_id = _require_target(auth_user, blocked_id)
		repository = self.repository
		async with repository.atomic():
			await repository.upsert_block(auth_user.id, blocked_id, reason)
			await self._sever(auth_user.id, blocked_id)
		metrics.inc_block("block")
		LOGGER.info("matching.block", extra={"blocker_id": auth_user.id, "blocked_id": blocked_id})
		await self._close_conversation(auth_user.id, blocked_id)

	async def unblock_user(self, auth_user: AuthenticatedUser, blocked_id: str) -> bool:
		blocked_id = _require_target(auth_user, blocked_id)
		removed = await self.repository.delete_block(auth_user.id, blocked_id)
		metrics.inc_block("unblock")
		LOGGER.info(
			"matching.unblock",
			extra={"blocker_id": auth_user.id, "blocked_id": blocked_id, "removed": removed},
		)
		return removed

	async def list_blocked(self, auth_user: AuthenticatedUser) -> List[BlockedUser]:
		repository = self.repository
		blocks = await repository.list_blocks_by(auth_user.id)
		if not blocks:
			return []
		profiles = await repository.get_profiles([block.blocked_id for block in blocks])
		return [
			BlockedUser(profile=profiles[block.blocked_id], blocked_at=block.created_at, reason=block.reason)
			for block in blocks
			if block.blocked_id in profiles
		]

	async def unmatch(self, auth_user: AuthenticatedUser, other_id: str) -> None:
		other_id = _require_target(auth_user, other_id)
		repository = self.repository
		async with repository.atomic():
			await self._sever(auth_user.id, other_id)
			# keep a swipe record so the peer stays out of discovery
			await repository.record_pass(auth_user.id, other_id)
		LOGGER.info("matching.unmatch", extra={"user_id": auth_user.id, "other_user_id": other_id})
		await self._close_conversation(auth_user.id, other_id)


_SERVICE = MatchingService()


async def potential_matches_for(auth_user: AuthenticatedUser) -> List[UserProfile]:
	return await _SERVICE.potential_matches_for(auth_user)


async def like(auth_user: AuthenticatedUser, target_id: str) -> LikeOutcome:
	return await _SERVICE.like(auth_user, target_id)


async def pass_user(auth_user: AuthenticatedUser, target_id: str) -> None:
	await _SERVICE.pass_user(auth_user, target_id)


async def unlike(auth_user: AuthenticatedUser, target_id: str) -> bool:
	return await _SERVICE.unlike(auth_user, target_id)


async def matches_of(auth_user: AuthenticatedUser) -> List[UserProfile]:
	return await _SERVICE.matches_of(auth_user)


async def block_user(auth_user: AuthenticatedUser, blocked_id: str, reason: Optional[str] = None) -> None:
	await _SERVICE.block_user(auth_user, blocked_id, reason)


async def unblock_user(auth_user: AuthenticatedUser, blocked_id: str) -> bool:
	return await _SERVICE.unblock_user(auth_user, blocked_id)


async def list_blocked(auth_user: AuthenticatedUser) -> List[BlockedUser]:
	return await _SERVICE.list_blocked(auth_user)


async def unmatch(auth_user: AuthenticatedUser, other_id: str) -> None:
	await _SERVICE.unmatch(auth_user, other_id)
