"""
Global test configuration and fixtures
"""
import datetime as dt
import os
import sys

import pytest

# Add the functions directory to the Python path
ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)
TESTS_DIR = os.path.dirname(os.path.abspath(__file__))
if TESTS_DIR not in sys.path:
    sys.path.insert(0, TESTS_DIR)

from clients import Clients  # noqa: E402
from fake_firestore import FakeFirestore  # noqa: E402
from push import DeliveryResult  # noqa: E402

UTC = dt.timezone.utc


class FakePushGateway:
    """Records every payload instead of talking to FCM."""

    def __init__(self):
        self.sent = []
        self.error = None
        self.failures_per_send = 0

    def send_multicast(self, payload):
        if self.error is not None:
            raise self.error
        self.sent.append(payload)
        failed = min(self.failures_per_send, len(payload.tokens))
        return DeliveryResult(len(payload.tokens) - failed, failed)

    def sent_to(self, token):
        return [p for p in self.sent if token in p.tokens]


@pytest.fixture
def fake_db():
    """Create a fake Firestore database"""
    return FakeFirestore()


@pytest.fixture
def fake_push():
    return FakePushGateway()


@pytest.fixture
def clients(fake_db, fake_push):
    return Clients(db=fake_db, push=fake_push)


@pytest.fixture
def now():
    # Monday 2026-10-19 10:00 in Seoul
    return dt.datetime(2026, 10, 19, 1, 0, tzinfo=UTC)


@pytest.fixture
def seed_users(fake_db):
    """u1 and u2 with one device each, u3 without devices."""
    fake_db.seed("users", "u1", {"displayName": "Mina", "fcmTokens": ["tok-u1"], "stats": {}})
    fake_db.seed("users", "u2", {"displayName": "Joon", "fcmTokens": ["tok-u2"], "stats": {}})
    fake_db.seed("users", "u3", {"displayName": "Hana", "fcmTokens": []})
    return fake_db
