"""
Tests for pipeline.py and claims.py
"""
import datetime as dt

import claims
from pipeline import Effect, contained, run_effects


class TestRunEffects:
    def test_failure_does_not_stop_siblings(self):
        ran = []

        def boom():
            raise RuntimeError("store unavailable")

        report = run_effects([
            Effect("first", lambda: ran.append("first")),
            Effect("broken", boom),
            Effect("last", lambda: ran.append("last")),
        ], context="test")

        assert ran == ["first", "last"]
        assert report.completed == ["first", "last"]
        assert report.failed_names == ["broken"]
        assert not report.ok

    def test_all_ok(self):
        report = run_effects([Effect("only", lambda: None)])
        assert report.ok


class TestContained:
    def test_swallows_and_returns_none(self):
        @contained("test handler")
        def handler():
            raise RuntimeError("lookup failed")

        assert handler() is None

    def test_passes_result_through(self):
        @contained("test handler")
        def handler(value, scale=1):
            return value * scale

        assert handler(2, scale=3) == 6
        assert handler.__name__ == "handler"


class TestClaimOnce:
    def test_first_claim_wins(self, fake_db):
        assert claims.claim_once(fake_db, "task-created-evt1")
        assert not claims.claim_once(fake_db, "task-created-evt1")
        assert fake_db.data("processedEvents", "task-created-evt1")["kind"] == "event"

    def test_marker_expires_after_a_week(self, fake_db, now):
        claims.claim_once(fake_db, "task-updated-evt2", now=now)
        marker = fake_db.data("processedEvents", "task-updated-evt2")
        assert marker["expireAt"] == now + dt.timedelta(days=7)

    def test_no_key_always_claims(self, fake_db):
        assert claims.claim_once(fake_db, None)
        assert claims.claim_once(fake_db, None)
        assert fake_db.all("processedEvents") == []

    def test_event_key(self):
        assert claims.event_key("comment-created", "abc") == "comment-created-abc"
        assert claims.event_key("comment-created", None) is None
