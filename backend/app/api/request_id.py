"""Request id helpers shared by the middleware and error handlers."""

from __future__ import annotations

from uuid import uuid4

from fastapi import Request

REQUEST_ID_HEADER = "X-Request-Id"
REQUEST_ID_ATTR = "request_id"


def get_request_id(request: Request) -> str:
	"""Return the id bound to this request, assigning one on first use."""
	existing = getattr(request.state, REQUEST_ID_ATTR, None)
	if existing:
		return existing
	rid = request.headers.get(REQUEST_ID_HEADER) or str(uuid4())
	setattr(request.state, REQUEST_ID_ATTR, rid)
	return rid
