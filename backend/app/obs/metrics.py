"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

import logging

from prometheus_client import Counter, Gauge, Histogram, Summary

log = logging.getLogger(__name__)


REQUEST_COUNTER = Counter(
	"heartline_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"heartline_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

SOCKET_CLIENTS = Gauge(
	"heartline_socketio_clients",
	"Active Socket.IO clients per namespace",
	["namespace"],
)

SOCKET_EVENTS = Counter(
	"heartline_socketio_events_total",
	"Socket.IO events emitted per namespace",
	["namespace", "event"],
)

LIKES_TOTAL = Counter(
	"heartline_likes_total",
	"Like ledger writes by result",
	["result"],
)

BLOCKS_TOTAL = Counter(
	"heartline_blocks_total",
	"Block operations",
	["action"],
)

CANDIDATE_QUERIES = Counter(
	"heartline_candidate_queries_total",
	"Discovery candidate resolutions",
)

CANDIDATE_RESULTS = Summary(
	"heartline_candidate_results",
	"Candidates returned per resolution",
)

CONVERSATION_PROVISION = Counter(
	"heartline_conversation_provision_total",
	"Conversation provisioning outcomes",
	["result"],
)

NOTIFICATION_EVENTS = Counter(
	"heartline_notification_events_total",
	"Incoming message events by routing outcome",
	["outcome"],
)

NOTIFICATION_ROUTERS = Gauge(
	"heartline_notification_routers",
	"Notification routers currently watching conversations",
)

REDIS_UP = Gauge("heartline_redis_up", "Redis availability (1=up,0=down)")
REDIS_LATENCY = Summary("heartline_redis_latency_seconds", "Redis ping latency (seconds)")

POSTGRES_UP = Gauge("heartline_postgres_up", "Postgres availability (1=up,0=down)")
POSTGRES_LATENCY = Summary("heartline_postgres_latency_seconds", "Postgres ping latency (seconds)")


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def socket_connected(namespace: str) -> None:
	SOCKET_CLIENTS.labels(namespace=namespace).inc()


def socket_disconnected(namespace: str) -> None:
	SOCKET_CLIENTS.labels(namespace=namespace).dec()


def socket_event(namespace: str, event: str) -> None:
	SOCKET_EVENTS.labels(namespace=namespace, event=event).inc()


def inc_like(result: str) -> None:
	LIKES_TOTAL.labels(result=result).inc()


def inc_block(action: str) -> None:
	BLOCKS_TOTAL.labels(action=action).inc()


def observe_candidates(count: int) -> None:
	CANDIDATE_QUERIES.inc()
	CANDIDATE_RESULTS.observe(count)


def inc_conversation_provision(result: str) -> None:
	CONVERSATION_PROVISION.labels(result=result).inc()


def inc_notification_event(outcome: str) -> None:
	NOTIFICATION_EVENTS.labels(outcome=outcome).inc()


def router_started() -> None:
	NOTIFICATION_ROUTERS.inc()


def router_stopped() -> None:
	NOTIFICATION_ROUTERS.dec()


def mark_redis(ok: bool, *, latency_seconds: float | None = None) -> None:
	REDIS_UP.set(1 if ok else 0)
	if latency_seconds is not None:
		REDIS_LATENCY.observe(latency_seconds)


def mark_postgres(ok: bool, *, latency_seconds: float | None = None) -> None:
	POSTGRES_UP.set(1 if ok else 0)
	if latency_seconds is not None:
		POSTGRES_LATENCY.observe(latency_seconds)
