"""Discovery candidate pool."""

from __future__ import annotations

import logging
from typing import List

from app.domain.common.errors import StorageError
from app.domain.matching.blocks import BlockIndex
from app.domain.matching.interactions import InteractionIndex
from app.domain.matching.models import UserProfile
from app.domain.matching.store import Repository
from app.obs import metrics

LOGGER = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50


class CandidateResolver:
	"""Filters one storage-ordered page of users for a viewer.

	Filters apply in order: blocked peers, already interacted peers, then the
	viewer's accepted genders (an empty list accepts everyone). No ranking.
	"""

	def __init__(
		self,
		repository: Repository,
		*,
		blocks: BlockIndex | None = None,
		interactions: InteractionIndex | None = None,
		page_size: int = DEFAULT_PAGE_SIZE,
	) -> None:
		self._repository = repository
		self._blocks = blocks or BlockIndex(repository)
		self._interactions = interactions or InteractionIndex(repository)
		self._page_size = page_size

	async def potential_matches_for(self, user_id: str) -> List[UserProfile]:
		blocked = await self._blocks.blocked_peers_of(user_id)
		interacted = await self._interactions.interacted_peers_of(user_id)
		page = await self._repository.list_users_excluding(user_id, limit=self._page_size)
		preferences = await self._repository.get_preferences(user_id)
		if preferences is None:
			# no partial personalisation without the viewer's preferences
			raise StorageError("preferences_unavailable")
		accepted = {str(item) for item in preferences.get("gender_preferences") or ()}

		candidates: List[UserProfile] = []
		for profile in page:
			if profile.id == user_id or profile.id in blocked or profile.id in interacted:
				continue
			if accepted and profile.gender.value not in accepted:
				continue
			candidates.append(profile)
		metrics.observe_candidates(len(candidates))
		LOGGER.debug(
			"discovery.candidates",
			extra={"user_id": user_id, "page": len(page), "returned": len(candidates)},
		)
		return candidates
