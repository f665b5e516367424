"""In-process relationship store used for local tooling and tests."""

from __future__ import annotations

import asyncio
import copy
from contextlib import asynccontextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from app.domain.matching import models


def _now() -> datetime:
	return datetime.now(timezone.utc)


class InMemoryRelationshipRepository:
	"""Mirrors RelationshipRepository over plain dicts.

	Likes are unique per ordered pair, matches per (least, greatest) pair.
	`atomic()` restores the previous state when the block raises.
	"""

	def __init__(self) -> None:
		self._users: Dict[str, Dict[str, Any]] = {}
		self._likes: Dict[Tuple[str, str], models.Like] = {}
		self._matches: Dict[Tuple[str, str], models.Match] = {}
		self._blocks: Dict[Tuple[str, str], models.Block] = {}
		self._lock = asyncio.Lock()
		self._in_atomic: ContextVar[bool] = ContextVar("memory_relationship_atomic", default=False)

	def add_user(self, record: Mapping[str, Any]) -> models.UserProfile:
		"""Store a users row (profile columns may be inlined)."""
		row = dict(record)
		row["id"] = str(row["id"])
		row.setdefault("created_at", _now())
		self._users[row["id"]] = row
		return models.UserProfile.from_record(row)

	def reset(self) -> None:
		self._users.clear()
		self._likes.clear()
		self._matches.clear()
		self._blocks.clear()

	def likes(self) -> List[models.Like]:
		return list(self._likes.values())

	def matches(self) -> List[models.Match]:
		return list(self._matches.values())

	@asynccontextmanager
	async def atomic(self) -> AsyncIterator[None]:
		if self._in_atomic.get():
			yield
			return
		async with self._lock:
			snapshot = copy.deepcopy((self._likes, self._matches, self._blocks))
			token = self._in_atomic.set(True)
			try:
				yield
			except BaseException:
				self._likes, self._matches, self._blocks = snapshot
				raise
			finally:
				self._in_atomic.reset(token)

	# Users -----------------------------------------------------------------

	async def list_users_excluding(self, user_id: str, *, limit: int) -> List[models.UserProfile]:
		rows = [row for uid, row in self._users.items() if uid != user_id]
		return [models.UserProfile.from_record(row) for row in rows[:limit]]

	async def get_profile(self, user_id: str) -> Optional[models.UserProfile]:
		row = self._users.get(user_id)
		return models.UserProfile.from_record(row) if row else None

	async def get_profiles(self, user_ids: Iterable[str]) -> Dict[str, models.UserProfile]:
		found: Dict[str, models.UserProfile] = {}
		for user_id in user_ids:
			row = self._users.get(user_id)
			if row:
				found[user_id] = models.UserProfile.from_record(row)
		return found

	async def get_preferences(self, user_id: str) -> Optional[dict]:
		row = self._users.get(user_id)
		if row is None:
			return None
		return models.UserProfile.from_record(row).preferences

	# Blocks ----------------------------------------------------------------

	async def blocked_peer_ids(self, user_id: str) -> Set[str]:
		peers: Set[str] = set()
		for blocker, blocked in self._blocks:
			if blocker == user_id:
				peers.add(blocked)
			if blocked == user_id:
				peers.add(blocker)
		return peers

	async def upsert_block(self, blocker_id: str, blocked_id: str, reason: Optional[str]) -> None:
		self._blocks[(blocker_id, blocked_id)] = models.Block(
			blocker_id=blocker_id,
			blocked_id=blocked_id,
			reason=reason,
			created_at=_now(),
		)

	async def delete_block(self, blocker_id: str, blocked_id: str) -> bool:
		return self._blocks.pop((blocker_id, blocked_id), None) is not None

	async def list_blocks_by(self, blocker_id: str) -> List[models.Block]:
		blocks = [block for block in self._blocks.values() if block.blocker_id == blocker_id]
		return sorted(blocks, key=lambda block: block.created_at or _now(), reverse=True)

	# Likes -----------------------------------------------------------------

	async def liked_peer_ids(self, user_id: str) -> Set[str]:
		return {to_user for from_user, to_user in self._likes if from_user == user_id}

	async def record_like(self, from_user_id: str, to_user_id: str) -> str:
		existing = self._likes.get((from_user_id, to_user_id))
		if existing is not None:
			existing.is_active = True
			existing.unliked_at = None
			return "reactivated"
		self._likes[(from_user_id, to_user_id)] = models.Like(
			from_user_id=from_user_id,
			to_user_id=to_user_id,
			is_active=True,
			created_at=_now(),
		)
		return "created"

	async def record_pass(self, from_user_id: str, to_user_id: str) -> bool:
		key = (from_user_id, to_user_id)
		if key in self._likes:
			return False
		now = _now()
		self._likes[key] = models.Like(
			from_user_id=from_user_id,
			to_user_id=to_user_id,
			is_active=False,
			created_at=now,
			unliked_at=now,
		)
		return True

	async def has_active_like(self, from_user_id: str, to_user_id: str) -> bool:
		like = self._likes.get((from_user_id, to_user_id))
		return bool(like and like.is_active)

	async def deactivate_like(self, from_user_id: str, to_user_id: str) -> bool:
		like = self._likes.get((from_user_id, to_user_id))
		if like is None or not like.is_active:
			return False
		like.is_active = False
		like.unliked_at = _now()
		return True

	# Matches ---------------------------------------------------------------

	async def active_match_peer_ids(self, user_id: str) -> Set[str]:
		return {match.other(user_id) for match in await self.list_active_matches(user_id)}

	async def list_active_matches(self, user_id: str) -> List[models.Match]:
		found = [
			match
			for match in self._matches.values()
			if match.is_active and user_id in (match.user1_id, match.user2_id)
		]
		return sorted(found, key=lambda match: match.created_at or _now(), reverse=True)

	async def has_active_match(self, user_a: str, user_b: str) -> bool:
		match = self._matches.get(models.ordered_pair(user_a, user_b))
		return bool(match and match.is_active)

	async def upsert_match(self, user_a: str, user_b: str) -> None:
		key = models.ordered_pair(user_a, user_b)
		match = self._matches.get(key)
		if match is None:
			self._matches[key] = models.Match(user1_id=key[0], user2_id=key[1], is_active=True, created_at=_now())
			return
		match.is_active = True
		match.ended_at = None

	async def end_match(self, user_a: str, user_b: str) -> bool:
		match = self._matches.get(models.ordered_pair(user_a, user_b))
		if match is None or not match.is_active:
			return False
		match.is_active = False
		match.ended_at = _now()
		return True
