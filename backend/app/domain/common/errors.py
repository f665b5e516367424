"""Typed failures shared by the matching, chat and notification domains."""

from __future__ import annotations


class RelationshipError(Exception):
	"""Base class for relationship layer errors."""

	reason: str = "unknown"

	def __init__(self, reason: str | None = None) -> None:
		super().__init__(reason or self.reason)
		if reason:
			self.reason = reason


class AuthenticationRequired(RelationshipError):
	reason = "authentication_required"


class ValidationError(RelationshipError):
	reason = "invalid_input"


class SelfInteractionError(RelationshipError):
	reason = "self_interaction"


class BlockedInteractionError(RelationshipError):
	reason = "blocked"


class NotMatchedError(RelationshipError):
	reason = "not_matched"


class StorageError(RelationshipError):
	reason = "storage_unavailable"


class TransportError(RelationshipError):
	reason = "transport_unavailable"


class ChannelAlreadyExists(TransportError):
	reason = "channel_exists"


class ChannelNotFound(TransportError):
	reason = "channel_not_found"
