"""Per-session routing of incoming chat messages to UI notifications.

A router is owned by one signed-in session. It connects a transport session,
watches every conversation the user belongs to, and turns `message.new`
events into at most one `NotificationEvent` per message.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Protocol

from app.domain.chat.models import ADDED_TO_CHANNEL, MESSAGE_NEW, TransportEvent, TransportMessage
from app.domain.chat.transport import TransportSession, Unsubscribe
from app.domain.common.errors import RelationshipError
from app.domain.notifications.models import (
	NotificationEvent,
	RouterState,
	SenderDisplay,
	normalize_sent_at,
)
from app.obs import metrics
from app.settings import settings

LOGGER = logging.getLogger(__name__)

DEFAULT_PREVIEW = "New message"

NotificationListener = Callable[[NotificationEvent], Awaitable[None]]
SessionFactory = Callable[[], TransportSession]
TokenProvider = Callable[[str], Awaitable[str]]


class ProfileAccessor(Protocol):
	async def display_of(self, user_id: str) -> Optional[SenderDisplay]:
		...


class NotificationRouter:
	"""State machine: disconnected -> connecting -> watching -> disconnected.

	`start` and `stop` are serialised; starting for a different identity tears
	the previous subscription down first. Failures while starting are logged
	and leave the router disconnected rather than raising into the caller.
	"""

	def __init__(
		self,
		session_factory: SessionFactory,
		token_provider: TokenProvider,
		profiles: ProfileAccessor,
		*,
		control_markers: Optional[Iterable[str]] = None,
		chat_path_prefix: Optional[str] = None,
	) -> None:
		self._session_factory = session_factory
		self._token_provider = token_provider
		self._profiles = profiles
		markers = settings.notification_control_markers if control_markers is None else control_markers
		self._control_markers = tuple(marker for marker in markers if marker)
		self._chat_path_prefix = chat_path_prefix or settings.chat_path_prefix
		self._lock = asyncio.Lock()
		self._state = RouterState.DISCONNECTED
		self._user_id: Optional[str] = None
		self._session: Optional[TransportSession] = None
		self._channel_handlers: Dict[str, Unsubscribe] = {}
		self._global_handlers: List[Unsubscribe] = []
		self._listeners: List[NotificationListener] = []
		self._sender_cache: Dict[str, SenderDisplay] = {}
		self._last_message_id: Optional[str] = None
		self._current_path = ""
		self._current: Optional[NotificationEvent] = None

	@property
	def state(self) -> RouterState:
		return self._state

	@property
	def user_id(self) -> Optional[str]:
		return self._user_id

	@property
	def current_notification(self) -> Optional[NotificationEvent]:
		return self._current

	@property
	def watched_channels(self) -> List[str]:
		return sorted(self._channel_handlers)

	# UI inputs -------------------------------------------------------------

	def subscribe(self, listener: NotificationListener) -> Unsubscribe:
		self._listeners.append(listener)

		def _unsubscribe() -> None:
			if listener in self._listeners:
				self._listeners.remove(listener)

		return _unsubscribe

	def chat_path(self, user_id: str) -> str:
		return f"{self._chat_path_prefix}{user_id}"

	def set_current_path(self, path: str) -> None:
		self._current_path = path or ""
		if self._current_path.startswith(self._chat_path_prefix.rstrip("/")):
			self._current = None

	def dismiss(self) -> None:
		self._current = None

	def open_conversation(self, sender_id: str) -> str:
		"""Clear the toast and return the path the UI should navigate to."""
		self._current = None
		return self.chat_path(sender_id)

	# Lifecycle -------------------------------------------------------------

	async def start(self, user_id: str) -> None:
		async with self._lock:
			if self._user_id == user_id and self._state is RouterState.WATCHING:
				return
			if self._state is not RouterState.DISCONNECTED:
				await self._teardown()
			self._state = RouterState.CONNECTING
			self._user_id = user_id
			session = self._session_factory()
			self._session = session
			try:
				token = await self._token_provider(user_id)
				await session.connect(user_id, token)
				self._global_handlers.append(session.on(ADDED_TO_CHANNEL, self._on_added_to_channel))
				for channel_id in await session.query_channels():
					await self._watch(channel_id)
			except RelationshipError as exc:
				LOGGER.warning(
					"notifications.start_failed",
					extra={"user_id": user_id, "reason": exc.reason},
				)
				await self._teardown()
				return
			self._state = RouterState.WATCHING
			metrics.router_started()
			LOGGER.info(
				"notifications.watching",
				extra={"user_id": user_id, "channels": len(self._channel_handlers)},
			)

	async def stop(self) -> None:
		async with self._lock:
			await self._teardown()

	async def _teardown(self) -> None:
		was_watching = self._state is RouterState.WATCHING
		session, self._session = self._session, None
		for unsubscribe in self._channel_handlers.values():
			unsubscribe()
		for unsubscribe in self._global_handlers:
			unsubscribe()
		channel_ids = list(self._channel_handlers)
		self._channel_handlers.clear()
		self._global_handlers.clear()
		if session is not None:
			for channel_id in channel_ids:
				await session.stop_watching(channel_id)
			try:
				await session.disconnect()
			except RelationshipError:
				LOGGER.warning("notifications.disconnect_failed", extra={"user_id": self._user_id})
		self._state = RouterState.DISCONNECTED
		self._user_id = None
		self._sender_cache.clear()
		self._last_message_id = None
		self._current = None
		if was_watching:
			metrics.router_stopped()

	async def _watch(self, channel_id: str, *, from_start: bool = False) -> None:
		session = self._session
		if session is None or channel_id in self._channel_handlers:
			return
		unsubscribe = session.on(MESSAGE_NEW, self._on_message, channel_id=channel_id)
		self._channel_handlers[channel_id] = unsubscribe
		try:
			await session.watch(channel_id, from_start=from_start)
		except RelationshipError:
			# a later notice or restart may retry this channel
			self._channel_handlers.pop(channel_id, None)
			unsubscribe()
			raise

	# Transport callbacks ---------------------------------------------------

	async def _on_added_to_channel(self, event: TransportEvent) -> None:
		if not event.channel_id:
			return
		try:
			# the notice can trail the channel's first messages
			await self._watch(event.channel_id, from_start=True)
		except RelationshipError as exc:
			LOGGER.warning(
				"notifications.watch_failed",
				extra={"channel_id": event.channel_id, "reason": exc.reason},
			)
			return
		LOGGER.info("notifications.channel_added", extra={"channel_id": event.channel_id})

	async def _on_message(self, event: TransportEvent) -> None:
		if event.message is None:
			return
		await self.handle_message(event.message)

	def _is_control(self, text: str) -> bool:
		return any(marker in text for marker in self._control_markers)

	def _classify(self, message: TransportMessage) -> Optional[str]:
		if not message.id:
			return "invalid"
		if message.sender_id is not None and message.sender_id == self._user_id:
			return "echo"
		if message.id == self._last_message_id:
			return "duplicate"
		if self._is_control(message.text):
			return "control"
		if not message.sender_id:
			return "no_sender"
		if self._current_path == self.chat_path(message.sender_id):
			return "suppressed"
		return None

	async def _sender_display(self, sender_id: str) -> Optional[SenderDisplay]:
		cached = self._sender_cache.get(sender_id)
		if cached is not None:
			return cached
		display = await self._profiles.display_of(sender_id)
		if display is not None:
			self._sender_cache[sender_id] = display
		return display

	async def handle_message(self, message: TransportMessage) -> Optional[NotificationEvent]:
		"""Apply filtering to one message and emit a notification if it survives."""
		skipped = self._classify(message)
		if skipped is not None:
			metrics.inc_notification_event(skipped)
			return None
		self._last_message_id = message.id
		sender_id = message.sender_id or ""
		try:
			display = await self._sender_display(sender_id)
		except RelationshipError as exc:
			metrics.inc_notification_event("failed")
			LOGGER.warning(
				"notifications.sender_lookup_failed",
				extra={"sender_id": sender_id, "reason": exc.reason},
			)
			return None
		if display is None:
			metrics.inc_notification_event("profile_missing")
			return None

		notification = NotificationEvent(
			sender_id=sender_id,
			sender_name=display.name,
			sender_avatar=display.avatar,
			message_preview=message.text or DEFAULT_PREVIEW,
			sent_at=normalize_sent_at(message.created_at),
		)
		self._current = notification
		metrics.inc_notification_event("emitted")
		for listener in list(self._listeners):
			try:
				await listener(notification)
			except Exception:
				LOGGER.exception("notifications.listener_failed", extra={"sender_id": sender_id})
		return notification
