"""Authentication helpers for FastAPI endpoints and socket handshakes.

- Access JWTs (HS256) are verified against settings.secret_key.
- Dev headers are only respected in development.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from fastapi import Depends, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.domain.common.errors import AuthenticationRequired
from app.domain.matching.models import canonical_user_id
from app.infra import jwt as jwt_helper
from app.settings import settings


@dataclass(slots=True)
class AuthenticatedUser:
	id: str
	display_name: Optional[str] = None
	roles: Tuple[str, ...] = ()
	session_id: Optional[str] = None

	def has_role(self, role: str) -> bool:
		return role in self.roles


_bearer_scheme = HTTPBearer(auto_error=False)


def verify_access_jwt(token: str) -> AuthenticatedUser:
	"""Decode and validate an access JWT and return an AuthenticatedUser.

	Requirements:
	- issuer="heartline-api", audience="heartline-fe"
	- required claims: sub, exp, iat
	- roles can be list[str] or comma-separated string.
	"""
	try:
		payload = jwt_helper.decode_access(token)
	except Exception:
		# Normalise all decode failures to invalid_token for the API surface
		raise AuthenticationRequired("invalid_token") from None

	sub = canonical_user_id(payload.get("sub"))
	if not sub:
		raise AuthenticationRequired("invalid_token")

	display_name = payload.get("name") or payload.get("display_name")
	roles_claim = payload.get("roles") or payload.get("role")
	roles: Tuple[str, ...]
	if isinstance(roles_claim, (list, tuple)):
		roles = tuple(str(r).strip() for r in roles_claim if str(r).strip())
	elif isinstance(roles_claim, str):
		roles = tuple(part.strip() for part in roles_claim.split(",") if part.strip())
	else:
		roles = ()

	session_id = payload.get("sid")

	return AuthenticatedUser(
		id=sub,
		display_name=str(display_name) if display_name is not None else None,
		roles=roles,
		session_id=str(session_id).strip() if session_id is not None else None,
	)


def resolve_identity(*, token: Optional[str], dev_user_id: Optional[str]) -> AuthenticatedUser:
	"""Resolve a user from a bearer token, or from a dev header in development."""
	if token:
		return verify_access_jwt(token)
	dev_id = canonical_user_id(dev_user_id) if settings.is_dev() else ""
	if dev_id:
		return AuthenticatedUser(id=dev_id)
	raise AuthenticationRequired()


async def get_current_user(
	x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
	credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> AuthenticatedUser:
	"""Resolve the authenticated user.

	In development we allow the X-User-Id header. In all other environments the
	header is ignored and a valid Bearer JWT is required.
	"""
	token = None
	if credentials and credentials.scheme.lower() == "bearer":
		token = credentials.credentials
	return resolve_identity(token=token, dev_user_id=x_user_id)
