"""Domain models exchanged with the chat transport."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Tuple

MESSAGE_NEW = "message.new"
ADDED_TO_CHANNEL = "notification.added_to_channel"


@dataclass(slots=True)
class ConversationKey:
	"""Canonical representation of a 1:1 conversation and its transport ids."""

	user_a: str
	user_b: str
	conversation_id: str
	call_id: str

	def participants(self) -> Tuple[str, str]:
		return (self.user_a, self.user_b)


@dataclass(slots=True)
class TransportUser:
	id: str
	name: str
	image: Optional[str] = None

	def to_fields(self) -> Dict[str, str]:
		return {"id": self.id, "name": self.name, "image": self.image or ""}


@dataclass(slots=True)
class TransportMessage:
	id: str
	channel_id: str
	sender_id: Optional[str]
	text: str
	created_at: Optional[str] = None
	extra: Dict[str, str] = field(default_factory=dict)

	@classmethod
	def from_fields(cls, entry_id: str, channel_id: str, fields: Mapping[str, Any]) -> "TransportMessage":
		extra = {
			str(key): str(value)
			for key, value in fields.items()
			if key not in ("id", "sender_id", "text", "created_at")
		}
		return cls(
			id=str(fields.get("id") or entry_id),
			channel_id=channel_id,
			sender_id=str(fields["sender_id"]) if fields.get("sender_id") else None,
			text=str(fields.get("text") or ""),
			created_at=str(fields["created_at"]) if fields.get("created_at") else None,
			extra=extra,
		)

	def to_fields(self) -> Dict[str, str]:
		fields = dict(self.extra)
		fields.update(
			{
				"id": self.id,
				"sender_id": self.sender_id or "",
				"text": self.text,
				"created_at": self.created_at or "",
			}
		)
		return fields


@dataclass(slots=True)
class TransportEvent:
	type: str
	channel_id: Optional[str] = None
	message: Optional[TransportMessage] = None


@dataclass(slots=True)
class TransportCredentials:
	token: str
	user_id: str
	user_name: str
	user_image: Optional[str] = None


@dataclass(slots=True)
class LastMessage:
	text: str
	timestamp: str

	@classmethod
	def from_message(cls, message: TransportMessage, *, now: datetime) -> "LastMessage":
		return cls(text=message.text or "", timestamp=message.created_at or now.isoformat())
