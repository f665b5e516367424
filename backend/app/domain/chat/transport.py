"""Narrow interfaces over the hosted real-time messaging service."""

from __future__ import annotations

from typing import Awaitable, Callable, Iterable, List, Mapping, Optional, Protocol

from app.domain.chat.models import TransportEvent, TransportMessage, TransportUser

EventHandler = Callable[[TransportEvent], Awaitable[None]]
Unsubscribe = Callable[[], None]


class TransportSession(Protocol):
	"""One listener's live connection.

	Handlers registered with `on` are invoked in delivery order per channel.
	"""

	@property
	def user_id(self) -> Optional[str]:
		...

	async def connect(self, user_id: str, token: str) -> None:
		...

	async def query_channels(self) -> List[str]:
		...

	async def watch(self, channel_id: str, *, from_start: bool = False) -> None:
		"""Deliver new messages on `channel_id`; `from_start` replays the whole stream."""
		...

	async def stop_watching(self, channel_id: str) -> None:
		...

	def on(self, event_type: str, handler: EventHandler, *, channel_id: Optional[str] = None) -> Unsubscribe:
		...

	async def disconnect(self) -> None:
		...


class ChatTransport(Protocol):
	"""Server-side administration of users, channels and messages."""

	async def issue_token(self, user_id: str) -> str:
		...

	async def upsert_user(self, user: TransportUser) -> None:
		...

	async def create_channel(self, channel_id: str, *, members: Iterable[str], created_by: str) -> None:
		"""Raise ChannelAlreadyExists when the id is taken."""
		...

	async def delete_channel(self, channel_id: str) -> None:
		"""Raise ChannelNotFound when there is nothing to delete."""
		...

	async def publish_message(
		self,
		channel_id: str,
		*,
		sender_id: str,
		text: str,
		extra: Optional[Mapping[str, str]] = None,
	) -> TransportMessage:
		...

	async def query_last_message(self, channel_id: str) -> Optional[TransportMessage]:
		...

	def open_session(self) -> TransportSession:
		...
