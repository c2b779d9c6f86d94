from datetime import datetime, timedelta

import pytest

PASSWORD = "Password123!"

SENT_AT = datetime(2026, 1, 1, 0, 0)


def _auth(client, email):
    resp = client.post("/api/auth/login", data={"username": email, "password": PASSWORD})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


def _message(deadline=None):
    from educonnect.models.message import Message

    return Message(id=1, sender_id=1, title="t", content="c", created_at=SENT_AT, deadline=deadline)


def _reminder(**fields):
    from educonnect.schemas.message import ReminderSettings

    return ReminderSettings(enabled=True, **fields)


# ── Due slots ─────────────────────────────────────────────────

class TestDueReminderSlots:
    def test_nothing_due_right_after_sending(self):
        from educonnect.jobs.message_reminders import due_reminder_slots

        reminder = _reminder(timing=[{"type": "after_send", "value": 6}], frequency="periodic")
        assert due_reminder_slots(_message(), reminder, SENT_AT + timedelta(hours=1)) == []

    def test_date_timing_and_periodic(self):
        from educonnect.jobs.message_reminders import due_reminder_slots

        reminder = _reminder(
            reminder_date=SENT_AT + timedelta(hours=12),
            timing=[{"type": "after_send", "value": 6}, {"type": "before_deadline", "value": 1}],
            frequency="periodic",
        )
        slots = due_reminder_slots(_message(), reminder, SENT_AT + timedelta(hours=25))
        # No deadline, so the before-deadline timing never fires
        assert slots == ["date", "timing:0", "repeat:1"]

    def test_before_deadline(self):
        from educonnect.jobs.message_reminders import due_reminder_slots

        message = _message(deadline=SENT_AT + timedelta(days=2))
        reminder = _reminder(timing=[{"type": "before_deadline", "value": 24}])
        assert due_reminder_slots(message, reminder, SENT_AT + timedelta(hours=23)) == []
        assert due_reminder_slots(message, reminder, SENT_AT + timedelta(hours=24)) == ["timing:0"]

    def test_custom_frequency_uses_latest_period(self):
        from educonnect.jobs.message_reminders import due_reminder_slots

        reminder = _reminder(frequency="custom", custom_frequency=6)
        assert due_reminder_slots(_message(), reminder, SENT_AT + timedelta(hours=13)) == ["repeat:2"]

    def test_nothing_after_deadline(self):
        from educonnect.jobs.message_reminders import due_reminder_slots

        message = _message(deadline=SENT_AT + timedelta(hours=2))
        reminder = _reminder(reminder_date=SENT_AT + timedelta(hours=1), frequency="periodic")
        assert due_reminder_slots(message, reminder, SENT_AT + timedelta(days=3)) == []


# ── Scheduled check ───────────────────────────────────────────

class TestRunReminderCheck:
    @pytest.fixture()
    def teacher_headers(self, client, make_user):
        make_user("remind_teacher@test.com", role="teacher", full_name="Reminder Teacher")
        return _auth(client, "remind_teacher@test.com")

    def _reminders_for(self, db_session, message_id):
        from educonnect.models.notification import Notification, NotificationType

        return (
            db_session.query(Notification)
            .filter(
                Notification.related_message_id == message_id,
                Notification.type == NotificationType.MANUAL_REMINDER,
            )
            .all()
        )

    def test_sends_once_per_slot_to_unread(self, client, teacher_headers, make_user, db_session):
        from educonnect.jobs.message_reminders import run_reminder_check
        from educonnect.models.message import ReminderDispatch

        reader = make_user("remind_reader@test.com")
        slacker = make_user("remind_slacker@test.com")
        resp = client.post("/api/teacher/messages", headers=teacher_headers, json={
            "recipient_ids": [reader.id, slacker.id],
            "title": "Permission slip",
            "content": "Please bring it signed.",
            "reminder": {
                "enabled": True,
                "message": "Don't forget the slip",
                "timing": [{"type": "after_send", "value": 0}],
            },
        })
        assert resp.status_code == 201, resp.text
        message_id = resp.json()["id"]
        client.put(f"/api/student/messages/{message_id}/read", headers=_auth(client, reader.email))

        db_session.expire_all()
        assert run_reminder_check(db_session) >= 1

        reminders = self._reminders_for(db_session, message_id)
        assert [n.user_id for n in reminders] == [slacker.id]
        assert reminders[0].content == "Don't forget the slip"
        assert reminders[0].extra["reminder_type"] == "auto"

        keys = [
            row.key for row in
            db_session.query(ReminderDispatch).filter(ReminderDispatch.message_id == message_id).all()
        ]
        assert keys == ["timing:0"]

        # Same slot is never sent twice
        run_reminder_check(db_session)
        assert len(self._reminders_for(db_session, message_id)) == 1

    def test_remind_if_no_reply_includes_readers(self, client, teacher_headers, make_user, db_session):
        from educonnect.jobs.message_reminders import run_reminder_check

        reader = make_user("remind_noreply_reader@test.com")
        replier = make_user("remind_noreply_replier@test.com")
        resp = client.post("/api/teacher/messages", headers=teacher_headers, json={
            "recipient_ids": [reader.id, replier.id],
            "title": "Survey",
            "content": "Fill in the survey.",
            "reminder": {
                "enabled": True,
                "remind_if_no_reply": True,
                "timing": [{"type": "after_send", "value": 0}],
            },
        })
        message_id = resp.json()["id"]
        client.put(f"/api/student/messages/{message_id}/read", headers=_auth(client, reader.email))
        client.post(f"/api/student/messages/{message_id}/reply", headers=_auth(client, replier.email), json={
            "content": "Done",
        })

        db_session.expire_all()
        run_reminder_check(db_session)
        assert [n.user_id for n in self._reminders_for(db_session, message_id)] == [reader.id]

    def test_disabled_reminder_is_ignored(self, client, teacher_headers, make_user, db_session):
        from educonnect.jobs.message_reminders import run_reminder_check

        student = make_user("remind_disabled@test.com")
        resp = client.post("/api/teacher/messages", headers=teacher_headers, json={
            "recipient_ids": [student.id],
            "title": "Quiet",
            "content": "No reminders here.",
            "reminder": {"enabled": False, "timing": [{"type": "after_send", "value": 0}]},
        })
        message_id = resp.json()["id"]

        db_session.expire_all()
        run_reminder_check(db_session)
        assert self._reminders_for(db_session, message_id) == []
