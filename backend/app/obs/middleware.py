"""ASGI middleware for metrics, logging, and trace propagation."""

from __future__ import annotations

import time
from typing import Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from app.api.request_id import REQUEST_ID_HEADER, get_request_id
from app.obs import logging as obs_logging
from app.obs import metrics
from app.settings import settings

try:  # pragma: no cover - optional dependency
	from opentelemetry import trace
except ImportError:  # pragma: no cover - otel optional
	trace = None  # type: ignore


def _route_template(request: Request) -> str:
	route = request.scope.get("route")
	if route and getattr(route, "path", None):
		return route.path  # type: ignore[return-value]
	return request.url.path


def _trace_headers() -> dict[str, str]:
	if trace is None:
		return {}
	span = trace.get_current_span()
	context = span.get_span_context() if span else None
	if not context or not getattr(context, "is_valid", False):
		return {}
	return {"traceparent": f"00-{context.trace_id:032x}-{context.span_id:016x}-01"}


class ObservabilityMiddleware(BaseHTTPMiddleware):
	"""Instrument requests with metrics, structured logs, and trace context."""

	def __init__(self, app, *, enabled: bool = True) -> None:
		super().__init__(app)
		self._enabled = enabled
		self._logger = obs_logging.get_logger("heartline.http")

	async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
		if not settings.obs_enabled or not self._enabled:
			return await call_next(request)

		request_id = get_request_id(request)
		client = request.client
		client_ip = client.host if client else None
		tokens = obs_logging.bind_context(
			request_id=request_id,
			route=request.url.path,
			user_id=request.headers.get("X-User-Id"),
			client_ip=client_ip,
		)
		start = time.perf_counter()
		status_code = 500
		response: Optional[Response] = None
		try:
			try:
				response = await call_next(request)
				status_code = response.status_code
			except Exception:
				self._logger.exception(
					"http_request_error",
					extra={"method": request.method, "path": request.url.path},
				)
				raise
			finally:
				elapsed_seconds = time.perf_counter() - start
				# route is only resolved once the router has run
				route_template = _route_template(request)
				metrics.observe_request(route_template, request.method, status_code, elapsed_seconds)

			response.headers.setdefault(REQUEST_ID_HEADER, request_id)
			for key, value in _trace_headers().items():
				response.headers.setdefault(key, value)
			self._logger.info(
				"http_request",
				extra={
					"status": status_code,
					"method": request.method,
					"latency_ms": round(elapsed_seconds * 1000, 3),
					"route": route_template,
				},
			)
			return response
		finally:
			obs_logging.reset_context(tokens)


def install(app, *, enabled: bool = True) -> None:
	app.add_middleware(ObservabilityMiddleware, enabled=enabled)
