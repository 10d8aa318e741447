"""
Tests for task_events.py - task created / updated trigger handling.
"""
import datetime as dt

import pytest

import task_events

UTC = dt.timezone.utc


@pytest.fixture
def family(seed_users):
    seed_users.seed("groups", "g1", {"name": "Home", "memberIds": ["u1", "u2"]})
    seed_users.seed("groups", "g2", {"name": "Cabin", "memberIds": ["u1", "u2"]})
    return seed_users


def _task(**kwargs):
    task = {"title": "Dishes", "userId": "u1", "assigneeId": "u2", "groupId": "g1", "status": "pending"}
    task.update(kwargs)
    return task


def _notifications_for(db, user_id):
    return [n for n in db.all("notifications") if n["userId"] == user_id]


class TestTaskCreated:
    def test_assignee_notified(self, clients, family, fake_push, now):
        task = _task()
        family.seed("tasks", "t1", task)

        report = task_events.handle_task_created(clients, "t1", task, event_id="e1", now=now)

        assert report.ok
        notes = _notifications_for(family, "u2")
        assert len(notes) == 1
        assert notes[0]["type"] == "task_assigned"
        assert notes[0]["priority"] == "medium"
        assert fake_push.sent[0].tokens == ["tok-u2"]
        assert family.data("groups", "g1")["totalTasks"] == 1
        activities = family.all("activities")
        assert [a["action"] for a in activities] == ["created"]
        assert activities[0]["userId"] == "u1"

    def test_self_assignment_not_notified(self, clients, family, fake_push, now):
        task = _task(assigneeId="u1")
        family.seed("tasks", "t1", task)

        task_events.handle_task_created(clients, "t1", task, now=now)

        assert family.all("notifications") == []
        assert fake_push.sent == []

    def test_personal_task_skips_group_stats(self, clients, family, now):
        task = _task(groupId="personal", assigneeId=None)
        report = task_events.handle_task_created(clients, "t1", task, now=now)

        assert "group_stats" not in report.completed
        assert report.completed == ["activity_created"]

    def test_reminders_scheduled(self, clients, family, now):
        task = _task(dueDate=now + dt.timedelta(days=1),
                     reminders=[{"offsetMinutes": 30}, {"offsetMinutes": 60 * 48}])

        task_events.handle_task_created(clients, "t1", task, now=now)

        reminders = family.all("scheduledReminders")
        assert len(reminders) == 1
        assert reminders[0]["offsetMinutes"] == 30

    def test_missing_payload(self, clients, family):
        assert task_events.handle_task_created(clients, "t1", None) is None

    def test_redelivered_event_is_noop(self, clients, family, fake_push, now):
        task = _task()
        family.seed("tasks", "t1", task)

        task_events.handle_task_created(clients, "t1", task, event_id="e1", now=now)
        second = task_events.handle_task_created(clients, "t1", task, event_id="e1", now=now)

        assert second is None
        assert len(_notifications_for(family, "u2")) == 1
        assert len(fake_push.sent) == 1
        assert len(family.all("activities")) == 1


class TestTaskCompleted:
    def test_completion_scenario(self, clients, family, fake_push, now):
        """u2 completes u1's task: u1 notified once, activity logged, u2's stats bumped."""
        before = _task()
        after = _task(status="completed", completedBy="u2")
        family.seed("tasks", "t1", after)

        report = task_events.handle_task_updated(clients, "t1", before, after, event_id="e2", now=now)

        assert report.ok
        notes = _notifications_for(family, "u1")
        assert len(notes) == 1
        assert notes[0]["type"] == "task_completed"
        assert notes[0]["priority"] == "low"
        assert [p.tokens for p in fake_push.sent] == [["tok-u1"]]
        assert [a["action"] for a in family.all("activities")] == ["completed"]
        u2_stats = family.data("users", "u2")["stats"]
        assert u2_stats["totalTasksCompleted"] == 1
        assert u2_stats["lastCompletionDate"] == "2026-10-19"
        assert family.data("groups", "g1")["completedTasks"] == 1

    def test_completing_own_task_not_notified(self, clients, family, now):
        before = _task()
        after = _task(status="completed", completedBy="u1")
        family.seed("tasks", "t1", after)

        task_events.handle_task_updated(clients, "t1", before, after, now=now)

        assert family.all("notifications") == []
        assert family.data("users", "u1")["stats"]["totalTasksCompleted"] == 1

    def test_already_completed_is_not_a_completion(self, clients, family, now):
        before = _task(status="completed", completedBy="u2")
        after = _task(status="completed", completedBy="u2", title="Dishes!")
        family.seed("tasks", "t1", after)

        report = task_events.handle_task_updated(clients, "t1", before, after, now=now)

        assert "user_stats" not in report.completed
        assert family.all("notifications") == []

    def test_redelivered_completion_counts_once(self, clients, family, now):
        before = _task()
        after = _task(status="completed", completedBy="u2")
        family.seed("tasks", "t1", after)

        task_events.handle_task_updated(clients, "t1", before, after, event_id="e3", now=now)
        task_events.handle_task_updated(clients, "t1", before, after, event_id="e3", now=now)

        assert family.data("users", "u2")["stats"]["totalTasksCompleted"] == 1
        assert len(family.all("notifications")) == 1

    def test_stats_failure_does_not_block_notification(self, clients, family, now, monkeypatch):
        import stats

        def broken(*args, **kwargs):
            raise stats.StatsConflictError("contention")

        monkeypatch.setattr(stats, "record_completion", broken)
        before = _task()
        after = _task(status="completed", completedBy="u2")
        family.seed("tasks", "t1", after)

        report = task_events.handle_task_updated(clients, "t1", before, after, now=now)

        assert report.failed_names == ["user_stats"]
        assert len(_notifications_for(family, "u1")) == 1
        assert len(family.all("activities")) == 1


class TestTaskUpdated:
    def test_reopen_logged(self, clients, family, now):
        before = _task(status="completed", completedBy="u2")
        after = _task(status="in_progress", updatedBy="u1")
        family.seed("tasks", "t1", after)

        task_events.handle_task_updated(clients, "t1", before, after, now=now)

        activities = family.all("activities")
        assert [a["action"] for a in activities] == ["updated"]
        assert activities[0]["details"]["statusTo"] == "in_progress"

    def test_reassignment_notifies_new_assignee(self, clients, family, now):
        before = _task()
        after = _task(assigneeId="u3", updatedBy="u1")
        family.seed("tasks", "t1", after)

        task_events.handle_task_updated(clients, "t1", before, after, now=now)

        notes = _notifications_for(family, "u3")
        assert len(notes) == 1
        assert notes[0]["type"] == "task_reassigned"
        assert _notifications_for(family, "u2") == []

    def test_unassignment_not_notified(self, clients, family, now):
        before = _task()
        after = _task(assigneeId=None)
        family.seed("tasks", "t1", after)

        task_events.handle_task_updated(clients, "t1", before, after, now=now)

        assert family.all("notifications") == []

    def test_group_move_recounts_both_groups(self, clients, family, now):
        family.seed("tasks", "t1", _task(groupId="g2"))
        family.seed("tasks", "t2", _task(groupId="g1"))

        report = task_events.handle_task_updated(
            clients, "t1", _task(groupId="g1"), _task(groupId="g2"), now=now)

        assert {"group_stats", "previous_group_stats"} <= set(report.completed)
        assert family.data("groups", "g1")["totalTasks"] == 1
        assert family.data("groups", "g2")["totalTasks"] == 1

    def test_due_date_change_reschedules(self, clients, family, now):
        due = now + dt.timedelta(days=2)
        before = _task(dueDate=due, reminders=[{"offsetMinutes": 60}])
        task_events.handle_task_created(clients, "t1", before, now=now)
        after = dict(before, dueDate=due + dt.timedelta(days=1))

        task_events.handle_task_updated(clients, "t1", before, after, now=now)

        reminders = family.all("scheduledReminders")
        assert len(reminders) == 1
        assert reminders[0]["reminderTime"] == due + dt.timedelta(days=1) - dt.timedelta(minutes=60)

    def test_missing_before_or_after(self, clients, family):
        assert task_events.handle_task_updated(clients, "t1", None, _task()) is None
        assert task_events.handle_task_updated(clients, "t1", _task(), None) is None
