import pytest

from app.domain.chat.redis_transport import RedisTransportSession
from app.domain.chat.service import ChatService
from app.domain.notifications.models import RouterState
from app.domain.notifications.router import NotificationRouter
from app.domain.notifications.service import RepositoryProfileAccessor
from app.infra.auth import AuthenticatedUser


@pytest.fixture
def matched_pair(memory_repo, add_user):
	add_user("a", name="Ada", profile_picture_url="https://cdn.example.com/a.png")
	add_user("b", name="Ben")

	async def _match():
		await memory_repo.record_like("a", "b")
		await memory_repo.record_like("b", "a")
		await memory_repo.upsert_match("a", "b")

	return _match


@pytest.fixture
def live_router(memory_repo, transport, fake_redis):
	sessions = []

	def _factory():
		session = RedisTransportSession(fake_redis, autostart=False)
		sessions.append(session)
		return session

	router = NotificationRouter(
		_factory,
		transport.issue_token,
		RepositoryProfileAccessor(memory_repo),
		chat_path_prefix="/chat/",
	)
	return router, sessions


async def _drain(session, rounds=3):
	handled = 0
	for _ in range(rounds):
		handled += await session.poll_once()
	return handled


@pytest.mark.asyncio
async def test_first_message_of_new_conversation_is_notified(memory_repo, transport, matched_pair, live_router):
	await matched_pair()
	router, sessions = live_router
	received = []

	async def _listener(event):
		received.append(event)

	router.subscribe(_listener)
	await router.start("b")
	router.set_current_path("/discover")
	assert router.state is RouterState.WATCHING
	assert router.watched_channels == []

	await ChatService(memory_repo, transport).send_message(AuthenticatedUser(id="a"), "b", "hi b")
	await _drain(sessions[0])

	assert router.watched_channels == ["match_229w"]
	assert [event.message_preview for event in received] == ["hi b"]
	assert received[0].sender_id == "a"
	assert received[0].sender_name == "Ada"
	await router.stop()


@pytest.mark.asyncio
async def test_existing_conversation_skips_history(memory_repo, transport, matched_pair, live_router):
	await matched_pair()
	service = ChatService(memory_repo, transport)
	ada = AuthenticatedUser(id="a")
	await service.send_message(ada, "b", "sent while offline")
	router, sessions = live_router
	received = []

	async def _listener(event):
		received.append(event)

	router.subscribe(_listener)
	await router.start("b")
	await service.send_message(ada, "b", "you there?")
	await _drain(sessions[0])

	assert [event.message_preview for event in received] == ["you there?"]
	await router.stop()
