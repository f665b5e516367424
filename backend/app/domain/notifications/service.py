"""Wiring for notification routers."""

from __future__ import annotations

from typing import Optional

from app.domain.chat import service as chat_service
from app.domain.chat.transport import ChatTransport
from app.domain.matching import store
from app.domain.matching.store import Repository
from app.domain.notifications.models import SenderDisplay
from app.domain.notifications.router import NotificationRouter


class RepositoryProfileAccessor:
	"""Reads sender display data from the relationship store."""

	def __init__(self, repository: Repository | None = None) -> None:
		self._repository = repository

	async def display_of(self, user_id: str) -> Optional[SenderDisplay]:
		repository = self._repository or store.get_repository()
		profile = await repository.get_profile(user_id)
		if profile is None:
			return None
		return SenderDisplay(name=profile.full_name, avatar=profile.profile_picture_url)


def build_router(
	transport: ChatTransport | None = None,
	repository: Repository | None = None,
) -> NotificationRouter:
	transport = transport or chat_service.get_transport()
	return NotificationRouter(
		session_factory=transport.open_session,
		token_provider=transport.issue_token,
		profiles=RepositoryProfileAccessor(repository),
	)
