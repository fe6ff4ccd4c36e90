import structlog

from app.utils.logger import bind_session, redact_contact_details


class TestRedaction:
    def test_contact_fields_masked(self):
        event = redact_contact_details(
            None,
            "info",
            {"event": "sent", "phone": "+15551234567", "email": "jane@example.com"},
        )
        assert event["phone"] == "***4567"
        assert event["email"] == "***.com"
        assert event["event"] == "sent"

    def test_short_values_fully_masked(self):
        event = redact_contact_details(None, "info", {"code": "1234"})
        assert event["code"] == "***"

    def test_none_left_alone(self):
        event = redact_contact_details(None, "info", {"phone": None})
        assert event["phone"] is None


class TestBindSession:
    def test_context_bound_and_restored(self):
        with bind_session("abc", phase="intent"):
            bound = structlog.contextvars.get_contextvars()
            assert bound["session_id"] == "abc"
            assert bound["phase"] == "intent"

        assert "session_id" not in structlog.contextvars.get_contextvars()

    def test_nested_sessions_restore_outer(self):
        with bind_session("outer"):
            with bind_session("inner"):
                assert structlog.contextvars.get_contextvars()["session_id"] == "inner"
            assert structlog.contextvars.get_contextvars()["session_id"] == "outer"
