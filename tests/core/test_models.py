"""Tests for notification data types."""

from dataclasses import FrozenInstanceError

import pytest

from hookrelay.core.models import (
    NO_RESPONSE,
    InspectionRule,
    NotificationEvent,
    ResponseStatus,
    dedup_key,
)


class TestResponseStatus:
    """Tests for status classes."""

    @pytest.mark.parametrize(
        ("status", "code", "expected"),
        [
            (ResponseStatus.SUCCESS, 200, True),
            (ResponseStatus.SUCCESS, 299, True),
            (ResponseStatus.SUCCESS, 300, False),
            (ResponseStatus.CLIENT_ERROR, 404, True),
            (ResponseStatus.CLIENT_ERROR, 500, False),
            (ResponseStatus.SERVER_ERROR, 503, True),
            (ResponseStatus.INFORMATIONAL, 101, True),
            (ResponseStatus.REDIRECTION, 301, True),
        ],
    )
    def test_matches(self, status, code, expected):
        """Each class covers its hundred."""
        assert status.matches(code) is expected

    def test_unknown_matches_everything(self):
        """UNKNOWN matches any code, including no response."""
        assert ResponseStatus.UNKNOWN.matches(NO_RESPONSE)
        assert ResponseStatus.UNKNOWN.matches(200)


class TestNotificationEvent:
    """Tests for NotificationEvent."""

    def test_method_is_upper_cased(self):
        """Method is normalized on creation."""
        event = NotificationEvent("post", "/orders", 500)
        assert event.method == "POST"

    def test_signature(self):
        """Signature is method plus URI."""
        assert NotificationEvent("get", "/users", 500).signature == "GET /users"

    def test_defaults(self):
        """Status defaults to no response; timestamp is UTC."""
        event = NotificationEvent("GET", "/x")
        assert event.status_code == NO_RESPONSE
        assert event.created_at.tzinfo is not None

    def test_is_immutable(self):
        """Events are frozen, including their extra mapping."""
        event = NotificationEvent("GET", "/x", 500, extra={"k": "v"})
        with pytest.raises(FrozenInstanceError):
            event.status_code = 200  # type: ignore[misc]
        with pytest.raises(TypeError):
            event.extra["k"] = "changed"  # type: ignore[index]

    def test_to_dict_omits_empty_optionals(self):
        """Optional fields appear only when set."""
        data = NotificationEvent("GET", "/x", 500).to_dict()
        assert set(data) == {"method", "uri", "status_code", "created_at"}

    def test_to_dict_full(self):
        """All populated fields are serialized."""
        event = NotificationEvent(
            "GET",
            "/x",
            502,
            response_body={"detail": "bad gateway"},
            error="upstream",
            duration_ms=120,
            extra={"trace_id": "abc"},
        )
        data = event.to_dict()
        assert data["response_body"] == {"detail": "bad gateway"}
        assert data["error"] == "upstream"
        assert data["duration_ms"] == 120
        assert data["extra"] == {"trace_id": "abc"}

    def test_dedup_key(self):
        """Dedup key combines destination and signature."""
        event = NotificationEvent("GET", "/users", 500)
        assert dedup_key("discord:1", event) == "discord:1|GET /users"


class TestInspectionRule:
    """Tests for InspectionRule."""

    def test_default_matches_errors_only(self):
        """By default only 4xx and 5xx match."""
        rule = InspectionRule()
        assert rule.matches(NotificationEvent("GET", "/x", 404))
        assert rule.matches(NotificationEvent("GET", "/x", 500))
        assert not rule.matches(NotificationEvent("GET", "/x", 200))

    def test_all_matches_everything(self):
        """InspectionRule.all() accepts any event."""
        rule = InspectionRule.all()
        assert rule.matches(NotificationEvent("GET", "/x", 200))
        assert rule.matches(NotificationEvent("GET", "/x"))

    def test_include_uris(self):
        """URIs must contain one of the include patterns."""
        rule = InspectionRule(include_uris=("/api/",))
        assert rule.matches(NotificationEvent("GET", "https://h/api/users", 500))
        assert not rule.matches(NotificationEvent("GET", "https://h/static/app.js", 500))

    def test_exclude_uris(self):
        """Excluded patterns win over includes."""
        rule = InspectionRule(include_uris=("/api/",), exclude_uris=("/health",))
        assert not rule.matches(NotificationEvent("GET", "https://h/api/health", 500))
