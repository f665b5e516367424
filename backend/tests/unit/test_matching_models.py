import json

import pytest

from app.domain.matching.models import (
	DEFAULT_PREFERENCES,
	Gender,
	Match,
	UserProfile,
	canonical_user_id,
	normalize_boolean,
	ordered_pair,
)


@pytest.mark.parametrize(
	"raw, expected",
	[(True, True), (False, False), ("yes", True), ("No", False), (" 1 ", True), ("0", False), ("maybe", None), (None, None), (1, None)],
)
def test_normalize_boolean(raw, expected):
	assert normalize_boolean(raw) is expected


def test_profile_from_record_maps_unknown_values():
	profile = UserProfile.from_record(
		{
			"id": 7,
			"full_name": "Robin",
			"gender": "robot",
			"preferences": None,
			"location_lat": "45.50170000",
			"location_lng": "",
			"relationship_goal": "forever",
			"smoking": "no",
			"drinking": "sometimes",
		}
	)
	assert profile.id == "7"
	assert profile.gender is Gender.PREFER_NOT_TO_SAY
	assert profile.preferences == DEFAULT_PREFERENCES
	assert profile.location_lat == pytest.approx(45.5017)
	assert profile.location_lng is None
	assert profile.relationship_goal is None
	assert profile.smoking is False
	assert profile.drinking is None
	assert profile.bio == ""


def test_preferences_decoded_from_json_text():
	raw = json.dumps({"gender_preferences": ["female", "non-binary"]})
	profile = UserProfile.from_record({"id": "u1", "full_name": "Sam", "gender": "non-binary", "preferences": raw})
	assert profile.gender is Gender.NON_BINARY
	assert profile.accepted_genders() == ("female", "non-binary")


def test_default_preferences_are_not_shared():
	first = UserProfile.from_record({"id": "a", "full_name": "A"})
	second = UserProfile.from_record({"id": "b", "full_name": "B"})
	first.preferences["gender_preferences"].append("male")
	assert second.preferences["gender_preferences"] == []
	assert DEFAULT_PREFERENCES["gender_preferences"] == []


def test_match_pair_ordering():
	assert ordered_pair("b", "a") == ("a", "b")
	match = Match(user1_id="a", user2_id="b", is_active=True)
	assert match.other("a") == "b"
	assert match.other("b") == "a"


def test_match_other_ignores_uuid_spelling():
	first = "0b7e2c6a-3f51-4d1e-9a4e-2f7c8d9b1a10"
	second = "5c1d9e7f-8a2b-4c3d-9e0f-1a2b3c4d5e6f"
	match = Match(user1_id=first, user2_id=second, is_active=True)

	assert match.other(first.upper()) == second
	assert match.other(f"{{{second.upper()}}}") == first
	assert canonical_user_id(f"  {first.upper()} ") == first
	assert canonical_user_id(" alice ") == "alice"
	assert canonical_user_id(None) == ""
