"""Process-wide relationship repository selection."""

from __future__ import annotations

from typing import Optional, Union

from app.domain.matching.memory import InMemoryRelationshipRepository
from app.domain.matching.repo import RelationshipRepository
from app.settings import settings

Repository = Union[RelationshipRepository, InMemoryRelationshipRepository]

_REPOSITORY: Optional[Repository] = None


def build_repository(kind: Optional[str] = None) -> Repository:
	kind = (kind or settings.relationship_store).lower()
	if kind == "memory":
		return InMemoryRelationshipRepository()
	if kind == "postgres":
		return RelationshipRepository()
	raise ValueError(f"unknown relationship store: {kind}")


def get_repository() -> Repository:
	global _REPOSITORY
	if _REPOSITORY is None:
		_REPOSITORY = build_repository()
	return _REPOSITORY


def set_repository(repository: Optional[Repository]) -> None:
	"""Swap the shared repository; None rebuilds it from settings on next use."""
	global _REPOSITORY
	_REPOSITORY = repository
