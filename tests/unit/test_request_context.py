"""Unit tests for request correlation: path user extraction and the log filter."""

import logging
import uuid

from studybuddy.api.middleware.request_id import user_id_from_path
from studybuddy.logging_config import RequestIdFilter, request_id_var, request_user_var


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("studybuddy.test", logging.INFO, __file__, 1, "msg", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestUserIdFromPath:
    def test_user_route(self):
        uid = uuid.uuid4()
        assert user_id_from_path(f"/api/v1/users/{uid}/xp/history") == str(uid)

    def test_non_user_route(self):
        assert user_id_from_path("/health") is None

    def test_malformed_user_id(self):
        assert user_id_from_path("/api/v1/users/not-a-uuid/progression") is None


class TestRequestIdFilter:
    def test_fills_request_and_user(self):
        id_token = request_id_var.set("req-1")
        user_token = request_user_var.set("user-1")
        try:
            record = _record()
            assert RequestIdFilter().filter(record) is True
        finally:
            request_user_var.reset(user_token)
            request_id_var.reset(id_token)

        assert record.request_id == "req-1"
        assert record.user_id == "user-1"

    def test_explicit_user_id_wins(self):
        token = request_user_var.set("from-path")
        try:
            record = _record(user_id="from-extra")
            RequestIdFilter().filter(record)
        finally:
            request_user_var.reset(token)

        assert record.user_id == "from-extra"

    def test_outside_a_request(self):
        record = _record()
        RequestIdFilter().filter(record)
        assert record.request_id == "-"
        assert record.user_id is None
