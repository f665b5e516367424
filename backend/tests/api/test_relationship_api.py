import pytest

from app.infra import jwt as jwt_helper


def _as(user_id: str) -> dict:
	return {"X-User-Id": user_id}


@pytest.fixture
def people(add_user):
	add_user("alice", accepts=("male",))
	add_user("bob", gender="male", full_name="Bob Stone", smoking="no")
	add_user("carol")


@pytest.mark.asyncio
async def test_requires_identity(api_client, people):
	resp = await api_client.get("/discovery/candidates")

	assert resp.status_code == 401
	assert resp.json()["detail"] == "authentication_required"
	assert resp.headers["X-Request-Id"]


@pytest.mark.asyncio
async def test_dev_header_ignored_outside_dev(api_client, people):
	from app.settings import settings

	settings.environment = "production"
	resp = await api_client.get("/discovery/candidates", headers=_as("alice"))

	assert resp.status_code == 401


@pytest.mark.asyncio
async def test_bearer_token_accepted(api_client, people):
	token = jwt_helper.encode_access({"sub": "alice", "exp": 4102444800})

	resp = await api_client.get("/discovery/candidates", headers={"Authorization": f"Bearer {token}"})

	assert resp.status_code == 200
	assert [row["id"] for row in resp.json()] == ["bob"]


@pytest.mark.asyncio
async def test_like_flow_produces_match(api_client, people):
	first = await api_client.post("/discovery/like", json={"target_id": "bob"}, headers=_as("alice"))
	assert first.status_code == 200
	assert first.json() == {"success": True, "is_match": False, "matched_user": None}

	second = await api_client.post("/discovery/like", json={"target_id": "alice"}, headers=_as("bob"))
	body = second.json()
	assert body["is_match"] is True
	assert body["matched_user"]["id"] == "alice"

	matches = await api_client.get("/matches", headers=_as("alice"))
	assert [row["id"] for row in matches.json()] == ["bob"]
	assert matches.json()[0]["smoking"] is False


@pytest.mark.asyncio
async def test_self_like_conflict(api_client, people):
	resp = await api_client.post("/discovery/like", json={"target_id": "alice"}, headers=_as("alice"))

	assert resp.status_code == 409
	assert resp.json()["detail"] == "self_interaction"


@pytest.mark.asyncio
async def test_missing_target_is_validation_error(api_client, people):
	resp = await api_client.post("/discovery/like", json={}, headers=_as("alice"))

	assert resp.status_code == 422
	assert resp.json()["detail"] == "validation_error"


@pytest.mark.asyncio
async def test_conversation_gated_on_match(api_client, people, transport):
	refused = await api_client.post("/chat/conversations/bob", headers=_as("alice"))
	assert refused.status_code == 403
	assert refused.json()["detail"] == "not_matched"

	await api_client.post("/discovery/like", json={"target_id": "bob"}, headers=_as("alice"))
	await api_client.post("/discovery/like", json={"target_id": "alice"}, headers=_as("bob"))

	created = await api_client.post("/chat/conversations/bob", headers=_as("alice"))
	assert created.status_code == 200
	channel_id = created.json()["channel_id"]
	assert created.json()["channel_type"] == "messaging"

	again = await api_client.post("/chat/conversations/alice", headers=_as("bob"))
	assert again.json()["channel_id"] == channel_id

	empty = await api_client.get("/chat/conversations/bob/last-message", headers=_as("alice"))
	assert empty.status_code == 200
	assert empty.json() is None

	sent = await api_client.post("/chat/conversations/bob/messages", json={"text": "hi bob"}, headers=_as("alice"))
	assert sent.status_code == 200
	last = await api_client.get("/chat/conversations/alice/last-message", headers=_as("bob"))
	assert last.json()["text"] == "hi bob"

	call = await api_client.post("/chat/calls/alice", headers=_as("bob"))
	assert call.json() == {"call_type": "default", "call_id": channel_id.replace("match_", "call_", 1)}


@pytest.mark.asyncio
async def test_block_hides_and_forbids(api_client, people, transport):
	blocked = await api_client.post("/blocks/bob", json={"reason": "spam"}, headers=_as("alice"))
	assert blocked.status_code == 200

	listed = await api_client.get("/blocks", headers=_as("alice"))
	assert [(row["id"], row["reason"]) for row in listed.json()] == [("bob", "spam")]

	like = await api_client.post("/discovery/like", json={"target_id": "alice"}, headers=_as("bob"))
	assert like.status_code == 403
	assert like.json()["detail"] == "blocked"

	candidates = await api_client.get("/discovery/candidates", headers=_as("alice"))
	assert candidates.json() == []

	removed = await api_client.delete("/blocks/bob", headers=_as("alice"))
	assert removed.json() == {"status": "ok", "changed": True}


@pytest.mark.asyncio
async def test_block_without_body(api_client, people, transport):
	resp = await api_client.post("/blocks/carol", headers=_as("alice"))

	assert resp.status_code == 200


@pytest.mark.asyncio
async def test_transport_token_for_known_user(api_client, people, transport):
	resp = await api_client.get("/chat/token", headers=_as("bob"))

	assert resp.status_code == 200
	body = resp.json()
	assert body["user_id"] == "bob"
	assert body["user_name"] == "Bob Stone"
	assert jwt_helper.decode_transport(body["token"]) == "bob"


@pytest.mark.asyncio
async def test_health_and_metrics(api_client):
	live = await api_client.get("/health/live")
	assert live.json() == {"status": "ok"}

	ready = await api_client.get("/health/ready")
	assert ready.status_code == 200
	assert "postgres" not in ready.json()["checks"]

	metrics = await api_client.get("/metrics")
	assert "heartline_http_requests_total" in metrics.text
