import pytest
from redis.asyncio.client import Pipeline
from redis.exceptions import ConnectionError as RedisConnectionError

from app.domain.chat.provisioner import ChannelProvisioner
from app.domain.chat.redis_transport import channel_key, channel_members_key, user_channels_key
from app.domain.chat.service import CALL_INVITATION_TEXT, ChatService
from app.domain.common.errors import NotMatchedError, SelfInteractionError, TransportError, ValidationError
from app.infra import jwt as jwt_helper
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


@pytest.mark.asyncio
async def test_conversation_requires_active_match(memory_repo, transport, matched_pair, fake_redis):
	provisioner = ChannelProvisioner(memory_repo, transport)

	with pytest.raises(NotMatchedError):
		await provisioner.ensure_conversation("a", "b")
	assert not await fake_redis.exists("transport:channel:match_229w")


@pytest.mark.asyncio
async def test_conversation_created_once(memory_repo, transport, matched_pair, fake_redis):
	await matched_pair()
	provisioner = ChannelProvisioner(memory_repo, transport)

	first = await provisioner.ensure_conversation("a", "b")
	second = await provisioner.ensure_conversation("b", "a")

	assert first == second == "match_229w"
	assert await fake_redis.smembers(channel_members_key(first)) == {"a", "b"}
	stored = await transport.get_user("a")
	assert stored.name == "Ada"


@pytest.mark.asyncio
async def test_call_session_is_gated_and_deterministic(memory_repo, transport, matched_pair):
	provisioner = ChannelProvisioner(memory_repo, transport)
	with pytest.raises(NotMatchedError):
		await provisioner.ensure_call_session("b", "a")

	await matched_pair()

	assert await provisioner.ensure_call_session("b", "a") == "call_229w"


@pytest.mark.asyncio
async def test_self_pair_rejected(memory_repo, transport, matched_pair):
	provisioner = ChannelProvisioner(memory_repo, transport)
	with pytest.raises(SelfInteractionError):
		await provisioner.ensure_conversation("a", "a")
	with pytest.raises(ValidationError):
		await provisioner.ensure_call_session("a", "")


@pytest.mark.asyncio
async def test_ended_match_revokes_new_provisioning(memory_repo, transport, matched_pair):
	await matched_pair()
	provisioner = ChannelProvisioner(memory_repo, transport)
	await provisioner.ensure_conversation("a", "b")
	await memory_repo.end_match("a", "b")

	with pytest.raises(NotMatchedError):
		await provisioner.ensure_conversation("a", "b")
	assert await provisioner.close_conversation("a", "b") is True
	assert await provisioner.close_conversation("a", "b") is False


@pytest.mark.asyncio
async def test_credentials_bind_token_to_user(memory_repo, transport, matched_pair):
	service = ChatService(memory_repo, transport)

	credentials = await service.issue_credentials(AuthenticatedUser(id="a"))

	assert credentials.user_id == "a"
	assert credentials.user_name == "Ada"
	assert credentials.user_image == "https://cdn.example.com/a.png"
	assert jwt_helper.decode_transport(credentials.token) == "a"


@pytest.mark.asyncio
async def test_last_message_and_call_invitation(memory_repo, transport, matched_pair):
	await matched_pair()
	service = ChatService(memory_repo, transport)
	ada = AuthenticatedUser(id="a")

	assert await service.last_message(ada, "b") is None

	await service.send_message(ada, "b", "  hello there ")
	latest = await service.last_message(AuthenticatedUser(id="b"), "a")
	assert latest.text == "hello there"

	call_id = await service.invite_to_call(ada, "b")
	assert call_id == "call_229w"
	message = await transport.query_last_message("match_229w")
	assert message.text == CALL_INVITATION_TEXT
	assert message.extra["call_id"] == "call_229w"


@pytest.mark.asyncio
async def test_blank_message_rejected(memory_repo, transport, matched_pair):
	await matched_pair()
	with pytest.raises(ValidationError):
		await ChatService(memory_repo, transport).send_message(AuthenticatedUser(id="a"), "b", "   ")


@pytest.mark.asyncio
async def test_failed_channel_write_leaves_nothing_behind(memory_repo, transport, matched_pair, fake_redis, monkeypatch):
	await matched_pair()
	provisioner = ChannelProvisioner(memory_repo, transport)
	original_execute = Pipeline.execute
	failures = []

	async def _flaky_execute(self, raise_on_error=True):
		if not failures:
			failures.append(True)
			raise RedisConnectionError("connection reset")
		return await original_execute(self, raise_on_error=raise_on_error)

	monkeypatch.setattr(Pipeline, "execute", _flaky_execute)

	with pytest.raises(TransportError):
		await provisioner.ensure_conversation("a", "b")
	assert not await fake_redis.exists(channel_key("match_229w"))
	assert await fake_redis.smembers(user_channels_key("a")) == set()

	assert await provisioner.ensure_conversation("a", "b") == "match_229w"
	assert await transport.channel_members("match_229w") == ["a", "b"]
	assert await fake_redis.smembers(user_channels_key("b")) == {"match_229w"}
