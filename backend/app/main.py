"""FastAPI application entrypoint.

Serve `app.main:socket_app` so REST routes and Socket.IO namespaces share one
ASGI process.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import socketio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api import chat, discovery, ops, social
from app.api.errors import install_error_handlers
from app.domain.notifications.sockets import NotificationsNamespace, set_namespace
from app.infra import postgres
from app.infra.redis import close_redis
from app.obs import init as obs_init
from app.obs import tracing
from app.settings import settings

LOGGER = logging.getLogger(__name__)

_DEV_ORIGINS = [
	"http://localhost:3000",
	"http://127.0.0.1:3000",
	"http://localhost:5173",
	"http://127.0.0.1:5173",
]


@asynccontextmanager
async def lifespan(app: FastAPI):
	if settings.relationship_store == "postgres":
		await postgres.init_pool()
	LOGGER.info("app.started", extra={"relationship_store": settings.relationship_store})
	try:
		yield
	finally:
		await notifications_namespace.shutdown()
		await postgres.close_pool()
		await close_redis()
		tracing.shutdown_tracing()


app = FastAPI(title="Heartline Relationships API", lifespan=lifespan)
install_error_handlers(app)

allow_origins = list(settings.cors_allow_origins or [])
if not allow_origins:
	allow_origins = list(_DEV_ORIGINS) if settings.is_dev() else []

# Starlette disallows wildcard '*' with allow_credentials=True. Replace '*' with explicit origins.
if "*" in allow_origins:
	allow_origins = list(_DEV_ORIGINS) if settings.is_dev() else [origin for origin in allow_origins if origin != "*"]

app.add_middleware(
	CORSMiddleware,
	allow_origins=allow_origins,
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)

# Use the same allowed origins for Socket.IO as for the REST API
sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins=allow_origins)
notifications_namespace = NotificationsNamespace()
sio.register_namespace(notifications_namespace)
set_namespace(notifications_namespace)
socket_app = socketio.ASGIApp(sio, other_asgi_app=app)
obs_init(app)

app.include_router(discovery.router)
app.include_router(social.router)
app.include_router(chat.router)
app.include_router(ops.router)
