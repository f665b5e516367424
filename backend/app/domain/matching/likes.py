"""Directed like edges and the matches they produce."""

from __future__ import annotations

import logging

from app.domain.common.errors import (
	BlockedInteractionError,
	SelfInteractionError,
	StorageError,
	ValidationError,
)
from app.domain.matching.blocks import BlockIndex
from app.domain.matching.models import LikeOutcome
from app.domain.matching.store import Repository
from app.obs import metrics

LOGGER = logging.getLogger(__name__)


def _check_pair(from_user_id: str, to_user_id: str) -> None:
	if not from_user_id or not to_user_id:
		raise ValidationError("missing_user_id")
	if from_user_id == to_user_id:
		raise SelfInteractionError()


class LikeLedger:
	"""Records swipes and materialises a Match on reciprocity.

	Each write runs inside one repository transaction; a failure at any step
	leaves no like or match behind.
	"""

	def __init__(self, repository: Repository, *, blocks: BlockIndex | None = None) -> None:
		self._repository = repository
		self._blocks = blocks or BlockIndex(repository)

	async def _ensure_not_blocked(self, from_user_id: str, to_user_id: str) -> None:
		if await self._blocks.is_blocked(from_user_id, to_user_id):
			raise BlockedInteractionError()

	async def like(self, from_user_id: str, to_user_id: str) -> LikeOutcome:
		_check_pair(from_user_id, to_user_id)
		await self._ensure_not_blocked(from_user_id, to_user_id)
		async with self._repository.atomic():
			state = await self._repository.record_like(from_user_id, to_user_id)
			if not await self._repository.has_active_like(to_user_id, from_user_id):
				outcome = LikeOutcome(is_match=False)
			else:
				await self._repository.upsert_match(from_user_id, to_user_id)
				matched = await self._repository.get_profile(to_user_id)
				if matched is None:
					raise StorageError("matched_profile_unavailable")
				outcome = LikeOutcome(is_match=True, matched_user=matched)
		metrics.inc_like("match" if outcome.is_match else "no_match")
		LOGGER.info(
			"matching.like",
			extra={
				"from_user_id": from_user_id,
				"to_user_id": to_user_id,
				"like_state": state,
				"is_match": outcome.is_match,
			},
		)
		return outcome

	async def pass_user(self, from_user_id: str, to_user_id: str) -> None:
		"""Remember a left swipe so the peer is not shown again."""
		_check_pair(from_user_id, to_user_id)
		await self._ensure_not_blocked(from_user_id, to_user_id)
		await self._repository.record_pass(from_user_id, to_user_id)
		metrics.inc_like("pass")

	async def unlike(self, from_user_id: str, to_user_id: str) -> bool:
		_check_pair(from_user_id, to_user_id)
		async with self._repository.atomic():
			changed = await self._repository.deactivate_like(from_user_id, to_user_id)
			ended = await self._repository.end_match(from_user_id, to_user_id)
		metrics.inc_like("unlike")
		LOGGER.info(
			"matching.unlike",
			extra={"from_user_id": from_user_id, "to_user_id": to_user_id, "match_ended": ended},
		)
		return changed
