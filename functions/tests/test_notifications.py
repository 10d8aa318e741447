"""
Tests for notifications.py - in-app notification records.
"""
import pytest

import notifications


class TestAddNotification:
    """Test storing Notification records"""

    def test_record_is_unread_with_timestamp(self, fake_db):
        stored = notifications.add_notification(fake_db, {
            "userId": "u1",
            "title": "Hello",
            "message": "World",
            "type": "task_assigned",
            "priority": "medium",
            "data": notifications.notification_data("t1", None, "/tasks/t1"),
        })

        doc = fake_db.data("notifications", stored["id"])
        assert doc["status"] == "unread"
        assert doc["userId"] == "u1"
        assert doc["type"] == "task_assigned"
        assert doc["createdAt"] is not None

    def test_empty_data_entries_dropped(self, fake_db):
        stored = notifications.add_notification(fake_db, {
            "userId": "u1", "title": "t", "message": "m", "type": "weekly_summary",
            "priority": "low",
            "data": notifications.notification_data(None, "g1", "/statistics"),
        })

        assert fake_db.data("notifications", stored["id"])["data"] == {
            "groupId": "g1", "actionUrl": "/statistics",
        }

    def test_priority_defaults_to_medium(self, fake_db):
        stored = notifications.add_notification(fake_db, {"userId": "u1", "title": "t", "message": "m"})
        assert stored["priority"] == "medium"

    def test_unknown_priority_rejected(self, fake_db):
        with pytest.raises(ValueError):
            notifications.add_notification(fake_db, {"userId": "u1", "priority": "urgent"})
        assert fake_db.all("notifications") == []
