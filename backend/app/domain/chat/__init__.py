"""Chat domain exports."""

from .service import ensure_call_session, ensure_conversation, issue_credentials, last_message

__all__ = [
	"ensure_call_session",
	"ensure_conversation",
	"issue_credentials",
	"last_message",
]
