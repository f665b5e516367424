"""Deterministic conversation and call ids for a pair of users.

The id is not stored anywhere; every client recomputes it from the pair, so
the derivation has to stay bit-compatible with ids already in use:

	sort the two ids by UTF-16 code units, join with "_", run a 32-bit
	signed rolling hash (h = h * 31 + unit), take abs, render base-36.

A 32-bit space collides eventually. Callers only depend on
`ConversationIdentity`, so a keyed derivation can replace it later.
"""

from __future__ import annotations

from typing import Iterable

CONVERSATION_PREFIX = "match"
CALL_PREFIX = "call"

_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def _utf16_units(text: str) -> Iterable[int]:
	encoded = text.encode("utf-16-be")
	for index in range(0, len(encoded), 2):
		yield (encoded[index] << 8) | encoded[index + 1]


def _to_int32(value: int) -> int:
	value &= 0xFFFFFFFF
	return value - 0x100000000 if value & 0x80000000 else value


def rolling_hash(text: str) -> int:
	"""Signed 32-bit `h * 31 + unit` over the UTF-16 code units of `text`."""
	value = 0
	for unit in _utf16_units(text):
		value = _to_int32((value << 5) - value + unit)
	return value


def to_base36(value: int) -> str:
	if value < 0:
		raise ValueError("value must be non-negative")
	if value == 0:
		return "0"
	digits = []
	while value:
		value, remainder = divmod(value, 36)
		digits.append(_DIGITS[remainder])
	return "".join(reversed(digits))


def pair_key(user_a: str, user_b: str) -> str:
	# JS-compatible ordering compares UTF-16 code units, not code points
	first, second = sorted((user_a, user_b), key=lambda value: value.encode("utf-16-be"))
	return f"{first}_{second}"


class ConversationIdentity:
	"""Maps an unordered pair of user ids to prefixed transport ids."""

	def derive_id(self, prefix: str, user_a: str, user_b: str) -> str:
		digest = abs(rolling_hash(pair_key(user_a, user_b)))
		return f"{prefix}_{to_base36(digest)}"

	def conversation_id(self, user_a: str, user_b: str) -> str:
		return self.derive_id(CONVERSATION_PREFIX, user_a, user_b)

	def call_id(self, user_a: str, user_b: str) -> str:
		return self.derive_id(CALL_PREFIX, user_a, user_b)
