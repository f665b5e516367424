"""Peers a user must not be shown again."""

from __future__ import annotations

from typing import Set

from app.domain.matching.store import Repository


class InteractionIndex:
	def __init__(self, repository: Repository) -> None:
		self._repository = repository

	async def interacted_peers_of(self, user_id: str) -> Set[str]:
		# likes and passes count regardless of is_active
		peers = await self._repository.liked_peer_ids(user_id)
		peers |= await self._repository.active_match_peer_ids(user_id)
		return peers
