"""Transient notification payloads and router states."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional


class RouterState(str, Enum):
	DISCONNECTED = "disconnected"
	CONNECTING = "connecting"
	WATCHING = "watching"


@dataclass(slots=True)
class SenderDisplay:
	name: str
	avatar: Optional[str] = None


@dataclass(slots=True)
class NotificationEvent:
	"""One toast. Never persisted."""

	sender_id: str
	sender_name: str
	sender_avatar: Optional[str]
	message_preview: str
	sent_at: Optional[str] = None

	def to_payload(self) -> Dict[str, Optional[str]]:
		return {
			"sender_id": self.sender_id,
			"sender_name": self.sender_name,
			"sender_avatar": self.sender_avatar,
			"message_preview": self.message_preview,
			"sent_at": self.sent_at,
		}


def normalize_sent_at(raw: Optional[str]) -> Optional[str]:
	"""ISO-8601 UTC rendering of a transport timestamp, None when unparseable."""
	if not raw:
		return None
	text = raw.strip()
	if text.endswith("Z"):
		text = text[:-1] + "+00:00"
	try:
		parsed = datetime.fromisoformat(text)
	except ValueError:
		return None
	if parsed.tzinfo is None:
		parsed = parsed.replace(tzinfo=timezone.utc)
	return parsed.astimezone(timezone.utc).isoformat()
