"""Socket.IO namespace that hosts one notification router per connection."""

from __future__ import annotations

import logging
from typing import Callable, Dict, Optional

import socketio

from app.domain.common.errors import AuthenticationRequired
from app.domain.notifications.models import NotificationEvent
from app.domain.notifications.router import NotificationRouter
from app.domain.notifications.service import build_router
from app.infra.auth import AuthenticatedUser, resolve_identity
from app.obs import metrics as obs_metrics

LOGGER = logging.getLogger(__name__)

_namespace: "NotificationsNamespace" | None = None


def _header(scope: dict, name: str) -> Optional[str]:
	target = name.encode().lower()
	for key, value in scope.get("headers", []):
		if key.lower() == target:
			return value.decode()
	return None


def _bearer(scope: dict) -> Optional[str]:
	header = _header(scope, "authorization")
	if header and header.lower().startswith("bearer "):
		return header.split(" ", 1)[1].strip()
	return None


class NotificationsNamespace(socketio.AsyncNamespace):
	"""Connect signs the session in, disconnect signs it out."""

	def __init__(self, router_factory: Callable[[], NotificationRouter] | None = None) -> None:
		super().__init__("/notifications")
		self._router_factory = router_factory or build_router
		self._sessions: Dict[str, AuthenticatedUser] = {}
		self._routers: Dict[str, NotificationRouter] = {}

	def router_for(self, sid: str) -> Optional[NotificationRouter]:
		return self._routers.get(sid)

	async def on_connect(self, sid: str, environ: dict, auth: Optional[dict] = None) -> None:
		scope = environ.get("asgi.scope", environ)
		auth_payload = auth or environ.get("auth") or scope.get("auth") or {}
		token = auth_payload.get("token") or _bearer(scope)
		dev_user_id = auth_payload.get("userId") or _header(scope, "x-user-id")
		try:
			user = resolve_identity(token=token, dev_user_id=dev_user_id)
		except AuthenticationRequired:
			raise ConnectionRefusedError("unauthorized") from None

		obs_metrics.socket_connected(self.namespace)
		router = self._router_factory()

		async def _forward(event: NotificationEvent) -> None:
			obs_metrics.socket_event(self.namespace, "notification:new")
			await self.emit("notification:new", event.to_payload(), room=sid)

		router.subscribe(_forward)
		self._sessions[sid] = user
		self._routers[sid] = router
		await self.enter_room(sid, self.user_room(user.id))
		await router.start(user.id)
		await self.emit("notifications:ack", {"ok": True, "state": router.state.value}, room=sid)

	async def on_disconnect(self, sid: str, reason: Optional[str] = None) -> None:
		user = self._sessions.pop(sid, None)
		router = self._routers.pop(sid, None)
		if user is None:
			return
		obs_metrics.socket_disconnected(self.namespace)
		if router is not None:
			await router.stop()
		await self.leave_room(sid, self.user_room(user.id))
		LOGGER.debug("notifications.socket_closed", extra={"user_id": user.id, "disconnect_reason": reason})

	def _require_router(self, sid: str) -> NotificationRouter:
		router = self._routers.get(sid)
		if router is None:
			raise ConnectionRefusedError("unauthenticated")
		return router

	async def on_view(self, sid: str, payload: dict | None = None) -> None:
		obs_metrics.socket_event(self.namespace, "view")
		router = self._require_router(sid)
		router.set_current_path(str((payload or {}).get("path") or ""))

	async def on_open(self, sid: str, payload: dict | None = None) -> None:
		obs_metrics.socket_event(self.namespace, "open")
		router = self._require_router(sid)
		sender_id = str((payload or {}).get("sender_id") or "")
		if not sender_id:
			await self.emit("notifications:error", {"detail": "missing_sender_id"}, room=sid)
			return
		path = router.open_conversation(sender_id)
		await self.emit("notification:navigate", {"path": path}, room=sid)

	async def on_dismiss(self, sid: str, payload: dict | None = None) -> None:
		obs_metrics.socket_event(self.namespace, "dismiss")
		self._require_router(sid).dismiss()

	async def shutdown(self) -> None:
		"""Stop every router; used on application shutdown."""
		for sid in list(self._routers):
			router = self._routers.pop(sid)
			self._sessions.pop(sid, None)
			await router.stop()

	@staticmethod
	def user_room(user_id: str) -> str:
		return f"user:{user_id}"


def set_namespace(ns: NotificationsNamespace) -> None:
	global _namespace
	_namespace = ns


def get_namespace() -> Optional[NotificationsNamespace]:
	return _namespace
