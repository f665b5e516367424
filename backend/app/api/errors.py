"""Global error handlers ensuring request_id is included in JSON responses."""

from __future__ import annotations

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.request_id import REQUEST_ID_HEADER, get_request_id
from app.domain.common.errors import (
	AuthenticationRequired,
	BlockedInteractionError,
	NotMatchedError,
	RelationshipError,
	SelfInteractionError,
	StorageError,
	TransportError,
	ValidationError,
)

_STATUS_BY_ERROR = (
	(AuthenticationRequired, status.HTTP_401_UNAUTHORIZED),
	(SelfInteractionError, status.HTTP_409_CONFLICT),
	(BlockedInteractionError, status.HTTP_403_FORBIDDEN),
	(NotMatchedError, status.HTTP_403_FORBIDDEN),
	(ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
	(StorageError, status.HTTP_503_SERVICE_UNAVAILABLE),
	(TransportError, status.HTTP_502_BAD_GATEWAY),
)


def map_error(exc: RelationshipError) -> HTTPException:
	for error_type, status_code in _STATUS_BY_ERROR:
		if isinstance(exc, error_type):
			headers = {"WWW-Authenticate": "Bearer"} if status_code == status.HTTP_401_UNAUTHORIZED else None
			return HTTPException(status_code, detail=exc.reason, headers=headers)
	return HTTPException(status.HTTP_400_BAD_REQUEST, detail=exc.reason)


def _json(request: Request, status_code: int, payload: dict, headers: dict | None = None) -> JSONResponse:
	rid = get_request_id(request)
	payload["request_id"] = rid
	merged = dict(headers or {})
	merged[REQUEST_ID_HEADER] = rid
	return JSONResponse(status_code=status_code, content=payload, headers=merged)


def install_error_handlers(app: FastAPI) -> None:
	@app.exception_handler(StarletteHTTPException)
	async def http_exc_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
		return _json(request, exc.status_code, {"detail": exc.detail}, getattr(exc, "headers", None))

	@app.exception_handler(RequestValidationError)
	async def validation_exc_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
		return _json(request, 422, {"detail": "validation_error", "errors": jsonable_encoder(exc.errors())})

	@app.exception_handler(RelationshipError)
	async def domain_exc_handler(request: Request, exc: RelationshipError):  # type: ignore[override]
		mapped = map_error(exc)
		return _json(request, mapped.status_code, {"detail": mapped.detail}, mapped.headers)
