import pytest

from app.domain.chat.models import ADDED_TO_CHANNEL, MESSAGE_NEW
from app.domain.chat.redis_transport import RedisTransportSession
from app.domain.common.errors import ChannelAlreadyExists, ChannelNotFound, TransportError
from app.infra import jwt as jwt_helper


async def _session(fake_redis, user_id):
	session = RedisTransportSession(fake_redis, autostart=False)
	await session.connect(user_id, jwt_helper.encode_transport(user_id))
	return session


@pytest.mark.asyncio
async def test_create_channel_is_exclusive(transport):
	await transport.create_channel("match_1", members=["a", "b"], created_by="a")

	with pytest.raises(ChannelAlreadyExists):
		await transport.create_channel("match_1", members=["a", "b"], created_by="b")
	assert await transport.channel_members("match_1") == ["a", "b"]


@pytest.mark.asyncio
async def test_connect_rejects_foreign_token(fake_redis):
	session = RedisTransportSession(fake_redis, autostart=False)

	with pytest.raises(TransportError) as excinfo:
		await session.connect("a", jwt_helper.encode_transport("b"))
	assert excinfo.value.reason == "token_mismatch"

	with pytest.raises(TransportError) as excinfo:
		await session.connect("a", "garbage")
	assert excinfo.value.reason == "invalid_token"


@pytest.mark.asyncio
async def test_watch_requires_membership(transport, fake_redis):
	await transport.create_channel("match_1", members=["a", "b"], created_by="a")
	session = await _session(fake_redis, "c")

	with pytest.raises(TransportError) as excinfo:
		await session.watch("match_1")
	assert excinfo.value.reason == "not_a_member"


@pytest.mark.asyncio
async def test_watch_delivers_only_new_messages(transport, fake_redis):
	await transport.create_channel("match_1", members=["a", "b"], created_by="a")
	await transport.publish_message("match_1", sender_id="a", text="before")
	session = await _session(fake_redis, "b")
	assert await session.query_channels() == ["match_1"]
	received = []

	async def _handler(event):
		received.append(event)

	session.on(MESSAGE_NEW, _handler, channel_id="match_1")
	await session.watch("match_1")
	published = await transport.publish_message("match_1", sender_id="a", text="after")

	handled = await session.poll_once()

	assert handled == 1
	assert [event.message.text for event in received] == ["after"]
	assert received[0].message.id == published.id
	assert received[0].channel_id == "match_1"
	assert await session.poll_once() == 0
	await session.disconnect()


@pytest.mark.asyncio
async def test_added_to_channel_notice(transport, fake_redis):
	session = await _session(fake_redis, "b")
	notices = []

	async def _handler(event):
		notices.append(event.channel_id)

	session.on(ADDED_TO_CHANNEL, _handler)
	await transport.create_channel("match_2", members=["a", "b"], created_by="a")

	await session.poll_once()

	assert notices == ["match_2"]


@pytest.mark.asyncio
async def test_unsubscribed_handler_is_not_called(transport, fake_redis):
	await transport.create_channel("match_1", members=["a", "b"], created_by="a")
	session = await _session(fake_redis, "b")
	calls = []

	async def _first(event):
		calls.append("first")
		off_second()

	async def _second(event):
		calls.append("second")

	session.on(MESSAGE_NEW, _first, channel_id="match_1")
	off_second = session.on(MESSAGE_NEW, _second, channel_id="match_1")
	await session.watch("match_1")
	await transport.publish_message("match_1", sender_id="a", text="hi")

	await session.poll_once()

	assert calls == ["first"]
	assert session.handler_count == 1


@pytest.mark.asyncio
async def test_handler_failure_does_not_stop_dispatch(transport, fake_redis):
	await transport.create_channel("match_1", members=["a", "b"], created_by="a")
	session = await _session(fake_redis, "b")
	seen = []

	async def _broken(event):
		raise RuntimeError("boom")

	async def _ok(event):
		seen.append(event.message.text)

	session.on(MESSAGE_NEW, _broken, channel_id="match_1")
	session.on(MESSAGE_NEW, _ok, channel_id="match_1")
	await session.watch("match_1")
	await transport.publish_message("match_1", sender_id="a", text="one")

	await session.poll_once()

	assert seen == ["one"]


@pytest.mark.asyncio
async def test_delete_and_publish_on_missing_channel(transport):
	with pytest.raises(ChannelNotFound):
		await transport.delete_channel("match_9")
	with pytest.raises(ChannelNotFound):
		await transport.publish_message("match_9", sender_id="a", text="hi")
	assert await transport.query_last_message("match_9") is None


@pytest.mark.asyncio
async def test_watch_from_start_replays_history(transport, fake_redis):
	await transport.create_channel("match_1", members=["a", "b"], created_by="a")
	await transport.publish_message("match_1", sender_id="a", text="first")
	await transport.publish_message("match_1", sender_id="a", text="second")
	session = await _session(fake_redis, "b")
	received = []

	async def _handler(event):
		received.append(event.message.text)

	session.on(MESSAGE_NEW, _handler, channel_id="match_1")
	await session.watch("match_1", from_start=True)

	assert await session.poll_once() == 2
	assert received == ["first", "second"]
	await session.disconnect()
