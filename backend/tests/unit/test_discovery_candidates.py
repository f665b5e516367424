import pytest

from app.domain.common.errors import StorageError
from app.domain.matching.blocks import BlockIndex
from app.domain.matching.candidates import CandidateResolver
from app.domain.matching.interactions import InteractionIndex


def _ids(profiles):
	return [profile.id for profile in profiles]


@pytest.mark.asyncio
async def test_block_index_is_symmetric(memory_repo, add_user):
	add_user("alice")
	add_user("bob")
	await memory_repo.upsert_block("alice", "bob", None)
	blocks = BlockIndex(memory_repo)

	assert await blocks.blocked_peers_of("alice") == {"bob"}
	assert await blocks.blocked_peers_of("bob") == {"alice"}
	assert await blocks.is_blocked("bob", "alice")


@pytest.mark.asyncio
async def test_interactions_include_passes_and_matches(memory_repo, add_user):
	for user_id in ("alice", "bob", "carol", "dave"):
		add_user(user_id)
	await memory_repo.record_like("alice", "bob")
	await memory_repo.record_pass("alice", "carol")
	await memory_repo.upsert_match("dave", "alice")

	peers = await InteractionIndex(memory_repo).interacted_peers_of("alice")

	assert peers == {"bob", "carol", "dave"}


@pytest.mark.asyncio
async def test_candidates_exclude_self_blocked_and_interacted(memory_repo, add_user):
	add_user("viewer", gender="male")
	for user_id in ("ann", "blocked", "blocker", "liked", "passed", "zoe"):
		add_user(user_id)
	await memory_repo.upsert_block("viewer", "blocked", None)
	await memory_repo.upsert_block("blocker", "viewer", "spam")
	await memory_repo.record_like("viewer", "liked")
	await memory_repo.record_pass("viewer", "passed")

	candidates = await CandidateResolver(memory_repo).potential_matches_for("viewer")

	assert _ids(candidates) == ["ann", "zoe"]


@pytest.mark.asyncio
async def test_incoming_like_does_not_hide_candidate(memory_repo, add_user):
	add_user("viewer")
	add_user("admirer")
	await memory_repo.record_like("admirer", "viewer")

	candidates = await CandidateResolver(memory_repo).potential_matches_for("viewer")

	assert _ids(candidates) == ["admirer"]


@pytest.mark.asyncio
async def test_candidates_filtered_by_accepted_genders(memory_repo, add_user):
	add_user("viewer", accepts=("female", "non-binary"))
	add_user("f1", gender="female")
	add_user("m1", gender="male")
	add_user("nb1", gender="non-binary")
	add_user("x1", gender="prefer_not_to_say")

	candidates = await CandidateResolver(memory_repo).potential_matches_for("viewer")

	assert _ids(candidates) == ["f1", "nb1"]


@pytest.mark.asyncio
async def test_empty_gender_preferences_accept_everyone(memory_repo, add_user):
	add_user("viewer", accepts=())
	add_user("m1", gender="male")
	add_user("x1", gender="prefer_not_to_say")

	candidates = await CandidateResolver(memory_repo).potential_matches_for("viewer")

	assert _ids(candidates) == ["m1", "x1"]


@pytest.mark.asyncio
async def test_page_is_filtered_after_fetch(memory_repo, add_user):
	add_user("viewer")
	for index in range(4):
		add_user(f"user{index}")
	await memory_repo.record_pass("viewer", "user0")

	candidates = await CandidateResolver(memory_repo, page_size=3).potential_matches_for("viewer")

	assert _ids(candidates) == ["user1", "user2"]


@pytest.mark.asyncio
async def test_missing_viewer_preferences_raise(memory_repo, add_user):
	add_user("someone")

	with pytest.raises(StorageError) as excinfo:
		await CandidateResolver(memory_repo).potential_matches_for("ghost")

	assert excinfo.value.reason == "preferences_unavailable"


@pytest.mark.asyncio
async def test_block_lookup_failure_propagates(memory_repo, add_user, monkeypatch):
	add_user("viewer")
	add_user("other")

	async def _boom(user_id):
		raise StorageError()

	monkeypatch.setattr(memory_repo, "blocked_peer_ids", _boom)

	with pytest.raises(StorageError):
		await CandidateResolver(memory_repo).potential_matches_for("viewer")
