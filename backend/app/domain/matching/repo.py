"""asyncpg-backed persistence for likes, matches and blocks."""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import AsyncIterator, Dict, Iterable, List, Optional, Set

import asyncpg

from app.domain.common.errors import StorageError, ValidationError
from app.domain.matching import models
from app.infra.postgres import get_pool

LOGGER = logging.getLogger(__name__)

_DB_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


def _match_pair(user_a: str, user_b: str) -> tuple[str, str]:
	# canonical text sorts the same way the uuid column does
	try:
		return models.ordered_pair(str(uuid.UUID(user_a)), str(uuid.UUID(user_b)))
	except ValueError:
		raise ValidationError("invalid_user_id") from None


_PROFILE_SELECT = """
SELECT u.id, u.full_name, u.email, u.gender::text AS gender, u.birthdate, u.bio,
	u.preferences, u.location_lat, u.location_lng, u.is_online, u.last_active_at,
	u.verified_at, u.created_at, u.updated_at,
	COALESCE(p.profile_picture_url, u.profile_picture_url) AS profile_picture_url,
	p.height_cm, p.education, p.occupation, p.relationship_goal::text AS relationship_goal,
	p.smoking, p.drinking, p.children
FROM users u
LEFT JOIN profiles p ON p.user_id = u.id
"""


class RelationshipRepository:
	"""Raw SQL access to the relationship tables.

	Every call runs on its own pooled connection unless it happens inside
	`atomic()`, in which case the transaction's connection is reused.
	"""

	def __init__(self) -> None:
		self._bound: ContextVar[Optional[asyncpg.Connection]] = ContextVar(
			"relationship_conn", default=None
		)

	@asynccontextmanager
	async def _connection(self) -> AsyncIterator[asyncpg.Connection]:
		bound = self._bound.get()
		try:
			if bound is not None:
				yield bound
			else:
				pool = await get_pool()
				async with pool.acquire() as conn:
					yield conn
		except (asyncpg.DataError, ValueError):
			# bad argument encoding or text cast, e.g. a malformed uuid
			raise ValidationError("invalid_user_id") from None
		except _DB_ERRORS as exc:
			LOGGER.warning("relationships.storage_failed", extra={"error": type(exc).__name__})
			raise StorageError() from exc

	@asynccontextmanager
	async def atomic(self) -> AsyncIterator[None]:
		if self._bound.get() is not None:
			yield
			return
		async with self._connection() as conn:
			async with conn.transaction():
				token = self._bound.set(conn)
				try:
					yield
				finally:
					self._bound.reset(token)

	# Users -----------------------------------------------------------------

	async def list_users_excluding(self, user_id: str, *, limit: int) -> List[models.UserProfile]:
		async with self._connection() as conn:
			rows = await conn.fetch(
				_PROFILE_SELECT + " WHERE u.id <> $1::uuid ORDER BY u.created_at, u.id LIMIT $2",
				user_id,
				limit,
			)
		return [models.UserProfile.from_record(row) for row in rows]

	async def get_profile(self, user_id: str) -> Optional[models.UserProfile]:
		async with self._connection() as conn:
			row = await conn.fetchrow(_PROFILE_SELECT + " WHERE u.id = $1::uuid", user_id)
		return models.UserProfile.from_record(row) if row else None

	async def get_profiles(self, user_ids: Iterable[str]) -> Dict[str, models.UserProfile]:
		ids = list(user_ids)
		if not ids:
			return {}
		async with self._connection() as conn:
			rows = await conn.fetch(_PROFILE_SELECT + " WHERE u.id = ANY($1::uuid[])", ids)
		profiles = [models.UserProfile.from_record(row) for row in rows]
		return {profile.id: profile for profile in profiles}

	async def get_preferences(self, user_id: str) -> Optional[dict]:
		async with self._connection() as conn:
			row = await conn.fetchrow("SELECT preferences FROM users WHERE id = $1::uuid", user_id)
		if row is None:
			return None
		return models.UserProfile.from_record({"id": user_id, "preferences": row["preferences"]}).preferences

	# Blocks ----------------------------------------------------------------

	async def blocked_peer_ids(self, user_id: str) -> Set[str]:
		async with self._connection() as conn:
			rows = await conn.fetch(
				"""
				SELECT blocker_id, blocked_id FROM blocks
				WHERE blocker_id = $1::uuid OR blocked_id = $1::uuid
				""",
				user_id,
			)
		peers: Set[str] = set()
		user_id = models.canonical_user_id(user_id)
		for row in rows:
			blocker, blocked = str(row["blocker_id"]), str(row["blocked_id"])
			if blocker == user_id:
				peers.add(blocked)
			if blocked == user_id:
				peers.add(blocker)
		return peers

	async def upsert_block(self, blocker_id: str, blocked_id: str, reason: Optional[str]) -> None:
		async with self._connection() as conn:
			await conn.execute(
				"""
				INSERT INTO blocks (blocker_id, blocked_id, reason)
				VALUES ($1::uuid, $2::uuid, $3)
				ON CONFLICT (blocker_id, blocked_id)
				DO UPDATE SET reason = EXCLUDED.reason, created_at = NOW()
				""",
				blocker_id,
				blocked_id,
				reason,
			)

	async def delete_block(self, blocker_id: str, blocked_id: str) -> bool:
		async with self._connection() as conn:
			status = await conn.execute(
				"DELETE FROM blocks WHERE blocker_id = $1::uuid AND blocked_id = $2::uuid",
				blocker_id,
				blocked_id,
			)
		return status.endswith(" 1")

	async def list_blocks_by(self, blocker_id: str) -> List[models.Block]:
		async with self._connection() as conn:
			rows = await conn.fetch(
				"""
				SELECT blocker_id, blocked_id, reason, created_at FROM blocks
				WHERE blocker_id = $1::uuid
				ORDER BY created_at DESC
				""",
				blocker_id,
			)
		return [models.Block.from_record(row) for row in rows]

	# Likes -----------------------------------------------------------------

	async def liked_peer_ids(self, user_id: str) -> Set[str]:
		"""Everyone `user_id` has swiped on, active or not."""
		async with self._connection() as conn:
			rows = await conn.fetch("SELECT to_user_id FROM likes WHERE from_user_id = $1::uuid", user_id)
		return {str(row["to_user_id"]) for row in rows}

	async def record_like(self, from_user_id: str, to_user_id: str) -> str:
		"""Insert an active like, reactivating the existing row on conflict.

		Returns "created" or "reactivated".
		"""
		async with self._connection() as conn:
			try:
				# savepoint so the conflict does not abort an enclosing transaction
				async with conn.transaction():
					await conn.execute(
						"INSERT INTO likes (from_user_id, to_user_id) VALUES ($1::uuid, $2::uuid)",
						from_user_id,
						to_user_id,
					)
				return "created"
			except asyncpg.UniqueViolationError:
				await conn.execute(
					"""
					UPDATE likes SET is_active = TRUE, unliked_at = NULL
					WHERE from_user_id = $1::uuid AND to_user_id = $2::uuid
					""",
					from_user_id,
					to_user_id,
				)
				return "reactivated"

	async def record_pass(self, from_user_id: str, to_user_id: str) -> bool:
		async with self._connection() as conn:
			status = await conn.execute(
				"""
				INSERT INTO likes (from_user_id, to_user_id, is_active, unliked_at)
				VALUES ($1::uuid, $2::uuid, FALSE, NOW())
				ON CONFLICT (from_user_id, to_user_id) DO NOTHING
				""",
				from_user_id,
				to_user_id,
			)
		return status.endswith(" 1")

	async def has_active_like(self, from_user_id: str, to_user_id: str) -> bool:
		async with self._connection() as conn:
			found = await conn.fetchval(
				"""
				SELECT 1 FROM likes
				WHERE from_user_id = $1::uuid AND to_user_id = $2::uuid AND is_active = TRUE
				""",
				from_user_id,
				to_user_id,
			)
		return found is not None

	async def deactivate_like(self, from_user_id: str, to_user_id: str) -> bool:
		async with self._connection() as conn:
			status = await conn.execute(
				"""
				UPDATE likes SET is_active = FALSE, unliked_at = NOW()
				WHERE from_user_id = $1::uuid AND to_user_id = $2::uuid AND is_active = TRUE
				""",
				from_user_id,
				to_user_id,
			)
		return not status.endswith(" 0")

	# Matches ---------------------------------------------------------------

	async def active_match_peer_ids(self, user_id: str) -> Set[str]:
		return {match.other(user_id) for match in await self.list_active_matches(user_id)}

	async def list_active_matches(self, user_id: str) -> List[models.Match]:
		async with self._connection() as conn:
			rows = await conn.fetch(
				"""
				SELECT user1_id, user2_id, is_active, created_at, ended_at FROM matches
				WHERE (user1_id = $1::uuid OR user2_id = $1::uuid) AND is_active = TRUE
				ORDER BY created_at DESC
				""",
				user_id,
			)
		return [models.Match.from_record(row) for row in rows]

	async def has_active_match(self, user_a: str, user_b: str) -> bool:
		low, high = _match_pair(user_a, user_b)
		async with self._connection() as conn:
			found = await conn.fetchval(
				"""
				SELECT 1 FROM matches
				WHERE user1_id = $1::uuid AND user2_id = $2::uuid AND is_active = TRUE
				""",
				low,
				high,
			)
		return found is not None

	async def upsert_match(self, user_a: str, user_b: str) -> None:
		low, high = _match_pair(user_a, user_b)
		async with self._connection() as conn:
			await conn.execute(
				"""
				INSERT INTO matches (user1_id, user2_id, is_active)
				VALUES ($1::uuid, $2::uuid, TRUE)
				ON CONFLICT (user1_id, user2_id)
				DO UPDATE SET is_active = TRUE, ended_at = NULL
				""",
				low,
				high,
			)

	async def end_match(self, user_a: str, user_b: str) -> bool:
		low, high = _match_pair(user_a, user_b)
		async with self._connection() as conn:
			status = await conn.execute(
				"""
				UPDATE matches SET is_active = FALSE, ended_at = NOW()
				WHERE user1_id = $1::uuid AND user2_id = $2::uuid AND is_active = TRUE
				""",
				low,
				high,
			)
		return not status.endswith(" 0")
