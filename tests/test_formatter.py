"""Tests for log formatting, redaction and SQL parameter filling"""
import datetime
import json
from decimal import Decimal
import pytest

from logs.formatter import (
    LogFormatter,
    fill_sql_params,
    redact,
    sanitize,
    status_to_log_level,
)
from logs.models import EventType, LogLevel


class TestLogLevels:

    @pytest.mark.parametrize("status_code, level", [
        (200, "info"),
        (302, "info"),
        (400, "warn"),
        (404, "warn"),
        (500, "error"),
        (503, "error"),
        (None, "info"),
    ])
    def test_status_to_log_level(self, status_code, level):
        assert status_to_log_level(status_code).value == level


class TestRedaction:
    """Password values never reach the serialized payload"""

    def test_top_level_password(self):
        result = sanitize({"password": "supersecret123"})

        assert '"password": "*****"' in result
        assert "supersecret123" not in result

    def test_nested_and_mixed_case_keys(self):
        payload = {
            "user": {"email": "d@jwt.com", "Password": "diner-pass"},
            "admins": [{"PASSWORD": "admin-pass"}],
        }

        result = sanitize(payload)

        assert "diner-pass" not in result
        assert "admin-pass" not in result
        assert json.loads(result)["user"]["email"] == "d@jwt.com"

    def test_escaped_json_inside_string(self):
        """Bodies that were already serialized are masked textually"""
        body = json.dumps({"email": "a@jwt.com", "password": "toomanysecrets"})

        result = sanitize({"reqBody": body})

        assert "toomanysecrets" not in result
        assert '\\"password\\": \\"*****\\"' in result
        assert json.loads(json.loads(result)["reqBody"])["password"] == "*****"

    def test_doubly_escaped_json(self):
        inner = json.dumps({"reqBody": json.dumps({"password": "deeper-secret"})})

        result = sanitize({"resBody": inner})

        assert "deeper-secret" not in result

    def test_non_password_fields_untouched(self):
        payload = {"name": "pizza diner", "passwordHint": "pets"}

        assert json.loads(sanitize(payload)) == payload

    def test_redact_does_not_mutate_input(self):
        payload = {"password": "a", "nested": {"password": "b"}}

        redact(payload)

        assert payload == {"password": "a", "nested": {"password": "b"}}


class TestFillSqlParams:
    """Bound parameters rendered into readable SQL"""

    def test_long_password_masked(self):
        sql = fill_sql_params("SELECT * FROM users WHERE password = ?", ["longsecretvalue"])

        assert sql == "SELECT * FROM users WHERE password = '*******'"

    def test_short_value_not_masked(self):
        sql = fill_sql_params("SELECT * FROM users WHERE PASSWORD = ?", ["short"])

        assert sql == "SELECT * FROM users WHERE PASSWORD = 'short'"

    def test_number(self):
        assert fill_sql_params("SELECT * FROM t WHERE id = ?", [5]) == "SELECT * FROM t WHERE id = 5"

    def test_types(self):
        sql = fill_sql_params(
            "INSERT INTO t VALUES (?, ?, ?, ?, ?, ?)",
            [None, "O'Brien", True, False, 9.99, Decimal("0.0038")],
        )

        assert sql == "INSERT INTO t VALUES (NULL, 'O''Brien', 1, 0, 9.99, 0.0038)"

    def test_datetime(self):
        when = datetime.datetime(2024, 3, 1, 12, 30, 0)

        sql = fill_sql_params("SELECT * FROM dinerOrder WHERE date > ?", [when])

        assert sql == "SELECT * FROM dinerOrder WHERE date > '2024-03-01T12:30:00'"

    def test_unsupported_type_quoted(self):
        class Token:
            def __str__(self):
                return "tok'en"

        assert fill_sql_params("SELECT ?", [Token()]) == "SELECT 'tok''en'"

    def test_surplus_placeholders_left_literal(self):
        sql = fill_sql_params("SELECT * FROM t WHERE a = ? AND b = ?", [1])

        assert sql == "SELECT * FROM t WHERE a = 1 AND b = ?"

    def test_no_params(self):
        sql = "SELECT * FROM menu WHERE id = ?"

        assert fill_sql_params(sql, []) == sql
        assert fill_sql_params(sql, None) == sql

    def test_extra_params_ignored(self):
        assert fill_sql_params("SELECT ?", [1, 2]) == "SELECT 1"


class TestLogFormatter:
    """Labels and payload shapes per event type"""

    def setup_method(self):
        self.formatter = LogFormatter("pizza-test")

    def test_http_event(self):
        event = self.formatter.http_event(
            "PUT", "/api/auth", 404, authorized=False,
            req_body={"email": "x@jwt.com", "password": "bad"},
            res_body={"message": "unknown user"},
        )

        payload = json.loads(event.payload)
        assert event.labels == {"component": "pizza-test", "level": "warn", "type": "http"}
        assert payload["authorized"] is False
        assert payload["path"] == "/api/auth"
        assert payload["method"] == "PUT"
        assert payload["statusCode"] == 404
        assert payload["reqBody"]["password"] == "*****"
        assert payload["resBody"] == {"message": "unknown user"}

    def test_db_query_event(self):
        event = self.formatter.db_query_event("SELECT * FROM user WHERE password=?", ["averylongpassword"])

        payload = json.loads(event.payload)
        assert event.labels["type"] == "db query"
        assert event.labels["level"] == "info"
        assert payload["reqBody"] == "SELECT * FROM user WHERE password='*******'"
        assert payload["statusCode"] is None

    def test_factory_event_levels(self):
        ok = self.formatter.factory_event(200, {"order": 1}, {"jwt": "abc"})
        failed = self.formatter.factory_event(500, {"order": 1}, {"message": "oven on fire"})

        assert ok.labels["level"] == "info"
        assert failed.labels["level"] == "error"
        assert ok.labels["type"] == "factory request"
        assert json.loads(ok.payload)["path"] == "/api/order"
        assert json.loads(ok.payload)["method"] == "POST"

    def test_unhandled_error_event(self):
        event = self.formatter.unhandled_error_event(500, "boom", "Traceback ...")

        payload = json.loads(event.payload)
        assert event.labels["level"] == "error"
        assert event.labels["type"] == "unhandled error"
        assert payload["path"] == "Traceback ..."
        assert payload["resBody"] == {"message": "boom"}

    def test_format_validates_labels(self):
        with pytest.raises(ValueError):
            self.formatter.format("verbose", EventType.HTTP, {})

        event = self.formatter.format(LogLevel.WARN, "http", {"a": 1})
        assert event.labels["level"] == "warn"

    def test_timestamp_is_nanoseconds_string(self):
        event = self.formatter.http_event("GET", "/", 200, authorized=True)

        assert isinstance(event.timestamp, str)
        assert len(event.timestamp) >= 19

    def test_push_body(self):
        event = self.formatter.http_event("GET", "/api/order/menu", 200, authorized=True)

        body = event.to_push_body()

        assert body["streams"][0]["stream"] == event.labels
        assert body["streams"][0]["values"] == [[event.timestamp, event.payload]]
