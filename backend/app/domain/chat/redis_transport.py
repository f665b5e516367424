"""Redis-backed chat transport.

Layout:
	transport:user:{id}                 hash of display fields
	transport:user:{id}:channels        set of channel ids
	transport:user:{id}:notifications   stream of membership notices
	transport:channel:{id}              hash of channel metadata
	transport:channel:{id}:members      set of member ids
	transport:channel:{id}:messages     stream of messages
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional

import ulid
from jwt import InvalidTokenError
from redis.exceptions import RedisError, WatchError

from app.domain.chat.models import (
	ADDED_TO_CHANNEL,
	MESSAGE_NEW,
	TransportEvent,
	TransportMessage,
	TransportUser,
)
from app.domain.chat.transport import EventHandler, Unsubscribe
from app.domain.common.errors import ChannelAlreadyExists, ChannelNotFound, TransportError
from app.infra import jwt as jwt_helper
from app.infra.redis import redis_client
from app.settings import settings

LOGGER = logging.getLogger(__name__)

_READ_COUNT = 100
_RETRY_DELAY_SECONDS = 1.0


def user_key(user_id: str) -> str:
	return f"transport:user:{user_id}"


def user_channels_key(user_id: str) -> str:
	return f"transport:user:{user_id}:channels"


def user_notifications_key(user_id: str) -> str:
	return f"transport:user:{user_id}:notifications"


def channel_key(channel_id: str) -> str:
	return f"transport:channel:{channel_id}"


def channel_members_key(channel_id: str) -> str:
	return f"transport:channel:{channel_id}:members"


def channel_messages_key(channel_id: str) -> str:
	return f"transport:channel:{channel_id}:messages"


def _now_iso() -> str:
	return datetime.now(timezone.utc).isoformat()


@contextmanager
def _transport_errors(operation: str) -> Iterator[None]:
	try:
		yield
	except RedisError as exc:
		LOGGER.warning("transport.redis_failed", extra={"operation": operation, "error": type(exc).__name__})
		raise TransportError() from exc


def _stream_items(response: Any) -> List[tuple]:
	if not response:
		return []
	if isinstance(response, dict):
		return list(response.items())
	return [(item[0], item[1]) for item in response]


class RedisChatTransport:
	def __init__(self, redis: Any = None, *, poll_block_ms: Optional[int] = None) -> None:
		self._redis = redis if redis is not None else redis_client
		self._poll_block_ms = poll_block_ms if poll_block_ms is not None else settings.transport_poll_block_ms

	async def issue_token(self, user_id: str) -> str:
		return jwt_helper.encode_transport(user_id)

	async def upsert_user(self, user: TransportUser) -> None:
		with _transport_errors("upsert_user"):
			await self._redis.hset(user_key(user.id), mapping=user.to_fields())

	async def get_user(self, user_id: str) -> Optional[TransportUser]:
		with _transport_errors("get_user"):
			fields = await self._redis.hgetall(user_key(user_id))
		if not fields:
			return None
		return TransportUser(id=user_id, name=fields.get("name", ""), image=fields.get("image") or None)

	async def create_channel(self, channel_id: str, *, members: Iterable[str], created_by: str) -> None:
		member_ids = list(dict.fromkeys(members))
		with _transport_errors("create_channel"):
			try:
				await self._write_channel(channel_id, member_ids, created_by)
			except WatchError as exc:
				raise ChannelAlreadyExists() from exc
		LOGGER.info("transport.channel_created", extra={"channel_id": channel_id, "members": member_ids})

	async def _write_channel(self, channel_id: str, member_ids: List[str], created_by: str) -> None:
		# the channel and every membership land in one MULTI or not at all
		async with self._redis.pipeline(transaction=True) as pipe:
			await pipe.watch(channel_key(channel_id))
			if await pipe.exists(channel_key(channel_id)):
				raise ChannelAlreadyExists()
			pipe.multi()
			pipe.hset(
				channel_key(channel_id),
				mapping={"id": channel_id, "created_by": created_by, "created_at": _now_iso()},
			)
			pipe.sadd(channel_members_key(channel_id), *member_ids)
			for member_id in member_ids:
				pipe.sadd(user_channels_key(member_id), channel_id)
				pipe.xadd(
					user_notifications_key(member_id),
					{"type": ADDED_TO_CHANNEL, "channel_id": channel_id},
				)
			await pipe.execute()

	async def delete_channel(self, channel_id: str) -> None:
		with _transport_errors("delete_channel"):
			if not await self._redis.exists(channel_key(channel_id)):
				raise ChannelNotFound()
			members = await self._redis.smembers(channel_members_key(channel_id))
			pipe = self._redis.pipeline()
			for member_id in members:
				pipe.srem(user_channels_key(member_id), channel_id)
			pipe.delete(channel_key(channel_id), channel_members_key(channel_id), channel_messages_key(channel_id))
			await pipe.execute()
		LOGGER.info("transport.channel_deleted", extra={"channel_id": channel_id})

	async def channel_members(self, channel_id: str) -> List[str]:
		with _transport_errors("channel_members"):
			return sorted(await self._redis.smembers(channel_members_key(channel_id)))

	async def publish_message(
		self,
		channel_id: str,
		*,
		sender_id: str,
		text: str,
		extra: Optional[Mapping[str, str]] = None,
	) -> TransportMessage:
		message = TransportMessage(
			id=str(ulid.new()),
			channel_id=channel_id,
			sender_id=sender_id,
			text=text,
			created_at=_now_iso(),
			extra=dict(extra or {}),
		)
		with _transport_errors("publish_message"):
			if not await self._redis.exists(channel_key(channel_id)):
				raise ChannelNotFound()
			await self._redis.xadd(channel_messages_key(channel_id), message.to_fields())
		return message

	async def query_last_message(self, channel_id: str) -> Optional[TransportMessage]:
		with _transport_errors("query_last_message"):
			entries = await self._redis.xrevrange(channel_messages_key(channel_id), count=1)
		if not entries:
			return None
		entry_id, fields = entries[0]
		return TransportMessage.from_fields(entry_id, channel_id, fields)

	def open_session(self) -> "RedisTransportSession":
		return RedisTransportSession(self._redis, poll_block_ms=self._poll_block_ms)


@dataclass(slots=True, eq=False)
class _Registration:
	event_type: str
	channel_id: Optional[str]
	handler: EventHandler

	def matches(self, event: TransportEvent) -> bool:
		if self.event_type != event.type:
			return False
		return self.channel_id is None or self.channel_id == event.channel_id


class RedisTransportSession:
	"""Reads the watched streams with XREAD and fans events out to handlers.

	Each stream keeps its own cursor, so a watch only sees entries appended
	after it started unless it asks to replay from the start.
	"""

	def __init__(self, redis: Any, *, poll_block_ms: int = 1000, autostart: bool = True) -> None:
		self._redis = redis
		self._poll_block_ms = poll_block_ms
		self._autostart = autostart
		self._user_id: Optional[str] = None
		self._cursors: Dict[str, str] = {}
		self._stream_channels: Dict[str, str] = {}
		self._registrations: List[_Registration] = []
		self._pump: Optional[asyncio.Task] = None

	@property
	def user_id(self) -> Optional[str]:
		return self._user_id

	@property
	def watched_channels(self) -> List[str]:
		return sorted(self._stream_channels.values())

	@property
	def handler_count(self) -> int:
		return len(self._registrations)

	async def _tail_id(self, stream: str) -> str:
		entries = await self._redis.xrevrange(stream, count=1)
		return entries[0][0] if entries else "0-0"

	async def connect(self, user_id: str, token: str) -> None:
		try:
			claimed = jwt_helper.decode_transport(token)
		except InvalidTokenError as exc:
			raise TransportError("invalid_token") from exc
		if claimed != user_id:
			raise TransportError("token_mismatch")
		stream = user_notifications_key(user_id)
		with _transport_errors("connect"):
			self._cursors[stream] = await self._tail_id(stream)
		self._user_id = user_id
		if self._autostart:
			self._pump = asyncio.create_task(self._run(), name=f"transport-pump:{user_id}")

	async def query_channels(self) -> List[str]:
		if self._user_id is None:
			raise TransportError("not_connected")
		with _transport_errors("query_channels"):
			return sorted(await self._redis.smembers(user_channels_key(self._user_id)))

	async def watch(self, channel_id: str, *, from_start: bool = False) -> None:
		if self._user_id is None:
			raise TransportError("not_connected")
		stream = channel_messages_key(channel_id)
		if stream in self._cursors:
			return
		with _transport_errors("watch"):
			if not await self._redis.sismember(channel_members_key(channel_id), self._user_id):
				raise TransportError("not_a_member")
			self._cursors[stream] = "0-0" if from_start else await self._tail_id(stream)
		self._stream_channels[stream] = channel_id

	async def stop_watching(self, channel_id: str) -> None:
		stream = channel_messages_key(channel_id)
		self._cursors.pop(stream, None)
		self._stream_channels.pop(stream, None)

	def on(self, event_type: str, handler: EventHandler, *, channel_id: Optional[str] = None) -> Unsubscribe:
		registration = _Registration(event_type=event_type, channel_id=channel_id, handler=handler)
		self._registrations.append(registration)

		def _off() -> None:
			if registration in self._registrations:
				self._registrations.remove(registration)

		return _off

	async def disconnect(self) -> None:
		pump, self._pump = self._pump, None
		if pump is not None:
			pump.cancel()
			try:
				await pump
			except asyncio.CancelledError:
				pass
		self._cursors.clear()
		self._stream_channels.clear()
		self._registrations.clear()
		self._user_id = None

	async def poll_once(self, *, block: Optional[int] = None) -> int:
		"""Read pending entries once and dispatch them. Returns the number handled."""
		if not self._cursors:
			return 0
		with _transport_errors("poll"):
			response = await self._redis.xread(dict(self._cursors), count=_READ_COUNT, block=block)
		handled = 0
		for stream, entries in _stream_items(response):
			for entry_id, fields in entries:
				if stream not in self._cursors:
					# unwatched while this batch was being dispatched
					break
				self._cursors[stream] = entry_id
				await self._dispatch(self._to_event(stream, entry_id, fields))
				handled += 1
		return handled

	def _to_event(self, stream: str, entry_id: str, fields: Mapping[str, Any]) -> TransportEvent:
		channel_id = self._stream_channels.get(stream)
		if channel_id is None:
			return TransportEvent(type=str(fields.get("type") or ""), channel_id=fields.get("channel_id"))
		message = TransportMessage.from_fields(entry_id, channel_id, fields)
		return TransportEvent(type=MESSAGE_NEW, channel_id=channel_id, message=message)

	async def _dispatch(self, event: TransportEvent) -> None:
		for registration in list(self._registrations):
			# a handler removed by an earlier one in this pass must not fire
			if registration not in self._registrations or not registration.matches(event):
				continue
			try:
				await registration.handler(event)
			except Exception:
				LOGGER.exception(
					"transport.handler_failed",
					extra={"event_type": event.type, "channel_id": event.channel_id},
				)

	async def _run(self) -> None:
		while True:
			if not self._cursors:
				await asyncio.sleep(self._poll_block_ms / 1000)
				continue
			try:
				await self.poll_once(block=self._poll_block_ms)
			except TransportError:
				await asyncio.sleep(_RETRY_DELAY_SECONDS)
