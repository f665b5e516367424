"""Undirected view over directed block edges."""

from __future__ import annotations

from typing import Set

from app.domain.matching.store import Repository


class BlockIndex:
	def __init__(self, repository: Repository) -> None:
		self._repository = repository

	async def blocked_peers_of(self, user_id: str) -> Set[str]:
		"""Everyone `user_id` blocked or was blocked by.

		Storage failures propagate as StorageError; an empty set on failure
		would expose blocked users.
		"""
		return await self._repository.blocked_peer_ids(user_id)

	async def is_blocked(self, user_a: str, user_b: str) -> bool:
		return user_b in await self.blocked_peers_of(user_a)
