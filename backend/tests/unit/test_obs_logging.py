import json
import logging

from app.api.errors import map_error
from app.domain.common.errors import (
	AuthenticationRequired,
	ChannelNotFound,
	NotMatchedError,
	RelationshipError,
	StorageError,
)
from app.obs.logging import JSONLogFormatter, bind_context, reset_context


def _record(**extra) -> logging.LogRecord:
	record = logging.LogRecord("heartline.test", logging.INFO, __file__, 1, "matching.like", None, None)
	for key, value in extra.items():
		setattr(record, key, value)
	return record


def test_formatter_redacts_sensitive_fields():
	record = _record(token="abc", message_preview="hello", text="hi", user_id="u1", location_lat=45.5)

	payload = json.loads(JSONLogFormatter().format(record))

	assert payload["msg"] == "matching.like"
	assert payload["token"] == "[redacted]"
	assert payload["message_preview"] == "[redacted]"
	assert payload["text"] == "[redacted]"
	assert payload["location_lat"] == "[redacted]"
	assert payload["user_id"] == "u1"


def test_formatter_includes_bound_request_id():
	tokens = bind_context(request_id="req-1")
	try:
		payload = json.loads(JSONLogFormatter().format(_record()))
	finally:
		reset_context(tokens)

	assert payload["request_id"] == "req-1"


def test_error_mapping():
	unauthorized = map_error(AuthenticationRequired())
	assert unauthorized.status_code == 401
	assert unauthorized.headers == {"WWW-Authenticate": "Bearer"}
	assert map_error(NotMatchedError()).status_code == 403
	assert map_error(StorageError()).status_code == 503
	assert map_error(ChannelNotFound()).status_code == 502
	fallback = map_error(RelationshipError("odd"))
	assert (fallback.status_code, fallback.detail) == (400, "odd")
