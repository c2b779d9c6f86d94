from datetime import datetime, timedelta

import pytest

PASSWORD = "Password123!"


def _auth(client, email):
    resp = client.post("/api/auth/login", data={"username": email, "password": PASSWORD})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


@pytest.fixture()
def teacher(make_user):
    return make_user("msg_teacher@test.com", role="teacher", full_name="Ms Sato")


@pytest.fixture()
def teacher_headers(client, teacher):
    return _auth(client, teacher.email)


@pytest.fixture()
def students(make_user):
    return [
        make_user("msg_student_1@test.com", full_name="Student One"),
        make_user("msg_student_2@test.com", full_name="Student Two"),
    ]


def _send(client, headers, recipients, **fields):
    payload = {
        "recipient_ids": [s.id for s in recipients],
        "title": "Field trip",
        "content": "Bring a packed lunch.",
        **fields,
    }
    resp = client.post("/api/teacher/messages", headers=headers, json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()


# ── Sending ───────────────────────────────────────────────────

class TestSendMessage:
    def test_send_creates_recipients_and_notifications(self, client, teacher_headers, students, db_session):
        from educonnect.models.notification import Notification, NotificationType

        body = _send(client, teacher_headers, students, attachments=["http://localhost:8000/uploads/a.pdf"])
        assert body["sender_name"] == "Ms Sato"
        assert body["attachments"] == ["http://localhost:8000/uploads/a.pdf"]
        assert {r["user_id"] for r in body["recipients"]} == {s.id for s in students}
        assert all(r["is_read"] is False for r in body["recipients"])
        assert body["reply_count"] == 0

        notifications = (
            db_session.query(Notification)
            .filter(Notification.related_message_id == body["id"])
            .all()
        )
        assert {n.user_id for n in notifications} == {s.id for s in students}
        assert all(n.type == NotificationType.NEW_MESSAGE for n in notifications)
        assert all(n.title == "New message" for n in notifications)
        assert notifications[0].extra["sender_name"] == "Ms Sato"

    def test_requires_recipients(self, client, teacher_headers):
        resp = client.post("/api/teacher/messages", headers=teacher_headers, json={
            "recipient_ids": [], "title": "Hi", "content": "There",
        })
        assert resp.status_code == 400

    def test_requires_title_and_content(self, client, teacher_headers, students):
        resp = client.post("/api/teacher/messages", headers=teacher_headers, json={
            "recipient_ids": [students[0].id], "title": "  ", "content": "There",
        })
        assert resp.status_code == 400

    def test_rejects_non_student_recipient(self, client, teacher_headers, make_user):
        colleague = make_user("msg_colleague@test.com", role="teacher")
        resp = client.post("/api/teacher/messages", headers=teacher_headers, json={
            "recipient_ids": [colleague.id], "title": "Hi", "content": "There",
        })
        assert resp.status_code == 400

    def test_recipient_with_app_notifications_off_gets_none(self, client, teacher_headers, make_user, db_session):
        from educonnect.models.notification import Notification

        quiet = make_user("msg_quiet@test.com", app_notifications=False)
        body = _send(client, teacher_headers, [quiet])
        count = (
            db_session.query(Notification)
            .filter(Notification.related_message_id == body["id"], Notification.user_id == quiet.id)
            .count()
        )
        assert count == 0

    def test_custom_reminder_needs_interval(self, client, teacher_headers, students):
        resp = client.post("/api/teacher/messages", headers=teacher_headers, json={
            "recipient_ids": [students[0].id], "title": "Hi", "content": "There",
            "reminder": {"enabled": True, "frequency": "custom"},
        })
        assert resp.status_code == 422

    def test_students_cannot_send(self, client, students):
        headers = _auth(client, students[0].email)
        resp = client.post("/api/teacher/messages", headers=headers, json={
            "recipient_ids": [students[1].id], "title": "Hi", "content": "There",
        })
        assert resp.status_code == 403


# ── Listing ───────────────────────────────────────────────────

class TestListMessages:
    def test_list_search_and_status(self, client, make_user, students):
        make_user("msg_list_teacher@test.com", role="teacher")
        headers = _auth(client, "msg_list_teacher@test.com")

        read_msg = _send(client, headers, [students[0]], title="Sports day notice")
        unread_msg = _send(client, headers, [students[0]], title="Library hours")
        client.put(f"/api/student/messages/{read_msg['id']}/read", headers=_auth(client, students[0].email))

        everything = client.get("/api/teacher/messages", headers=headers).json()
        assert [m["id"] for m in everything] == [unread_msg["id"], read_msg["id"]]

        found = client.get("/api/teacher/messages", headers=headers, params={"search": "sports"}).json()
        assert [m["id"] for m in found] == [read_msg["id"]]

        unread = client.get("/api/teacher/messages", headers=headers, params={"status": "unread"}).json()
        assert [m["id"] for m in unread] == [unread_msg["id"]]

        read = client.get("/api/teacher/messages", headers=headers, params={"status": "read"}).json()
        assert [m["id"] for m in read] == [read_msg["id"]]

    def test_invalid_status_filter(self, client, teacher_headers):
        resp = client.get("/api/teacher/messages", headers=teacher_headers, params={"status": "archived"})
        assert resp.status_code == 422

    def test_recent_limits_results(self, client, teacher_headers, students):
        for i in range(3):
            _send(client, teacher_headers, students, title=f"Recent {i}")
        resp = client.get("/api/teacher/messages/recent", headers=teacher_headers, params={"limit": 2})
        assert resp.status_code == 200
        assert len(resp.json()) == 2

    def test_other_teacher_cannot_read(self, client, teacher_headers, students, make_user):
        body = _send(client, teacher_headers, students)
        make_user("msg_other_teacher@test.com", role="teacher")
        other = _auth(client, "msg_other_teacher@test.com")
        assert client.get(f"/api/teacher/messages/{body['id']}", headers=other).status_code == 404


# ── Editing & deleting ────────────────────────────────────────

class TestEditMessage:
    def test_update_notifies_recipients(self, client, teacher_headers, students, db_session):
        from educonnect.models.notification import Notification

        body = _send(client, teacher_headers, students)
        resp = client.put(f"/api/teacher/messages/{body['id']}", headers=teacher_headers, json={
            "title": "Field trip (updated)",
        })
        assert resp.status_code == 200, resp.text
        assert resp.json()["title"] == "Field trip (updated)"
        assert resp.json()["content"] == "Bring a packed lunch."

        updates = (
            db_session.query(Notification)
            .filter(Notification.related_message_id == body["id"], Notification.title == "Message updated")
            .count()
        )
        assert updates == len(students)

    def test_update_rejects_blank_content(self, client, teacher_headers, students):
        body = _send(client, teacher_headers, students)
        resp = client.put(f"/api/teacher/messages/{body['id']}", headers=teacher_headers, json={"content": ""})
        assert resp.status_code == 400

    def test_clear_deadline(self, client, teacher_headers, students):
        deadline = (datetime.utcnow() + timedelta(days=2)).isoformat()
        body = _send(client, teacher_headers, students, deadline=deadline)
        assert body["deadline"] is not None

        resp = client.put(f"/api/teacher/messages/{body['id']}", headers=teacher_headers, json={"deadline": None})
        assert resp.status_code == 200
        assert resp.json()["deadline"] is None

    def test_delete_removes_message_and_notifications(self, client, teacher_headers, students, db_session):
        from educonnect.models.message import Message
        from educonnect.models.notification import Notification

        body = _send(client, teacher_headers, students)
        resp = client.delete(f"/api/teacher/messages/{body['id']}", headers=teacher_headers)
        assert resp.status_code == 200, resp.text

        assert db_session.get(Message, body["id"]) is None
        assert db_session.query(Notification).filter(Notification.related_message_id == body["id"]).count() == 0
        assert client.get(f"/api/teacher/messages/{body['id']}", headers=teacher_headers).status_code == 404

    def test_update_reminder_settings(self, client, teacher_headers, students):
        body = _send(client, teacher_headers, students)
        resp = client.put(f"/api/teacher/messages/{body['id']}/reminder", headers=teacher_headers, json={
            "enabled": True, "frequency": "periodic", "timing": [{"type": "after_send", "value": 12}],
        })
        assert resp.status_code == 200, resp.text
        reminder = resp.json()["reminder"]
        assert reminder["enabled"] is True
        assert reminder["frequency"] == "periodic"
        assert reminder["timing"] == [{"type": "after_send", "value": 12.0}]


# ── Replies & reminders ───────────────────────────────────────

class TestRepliesAndReminders:
    def test_replies_listed_and_reply_id_resolves_to_parent(self, client, teacher_headers, students):
        body = _send(client, teacher_headers, students)
        student_headers = _auth(client, students[0].email)
        reply = client.post(f"/api/student/messages/{body['id']}/reply", headers=student_headers, json={
            "content": "Got it, thanks!",
        }).json()

        replies = client.get(f"/api/teacher/messages/{body['id']}/replies", headers=teacher_headers)
        assert replies.status_code == 200
        assert [r["id"] for r in replies.json()] == [reply["id"]]
        assert replies.json()[0]["sender_name"] == "Student One"

        via_reply = client.get(f"/api/teacher/messages/{reply['id']}", headers=teacher_headers)
        assert via_reply.status_code == 200
        assert via_reply.json()["id"] == body["id"]
        assert via_reply.json()["reply_count"] == 1

    def test_manual_reminder_targets_unread(self, client, teacher_headers, students, db_session):
        from educonnect.models.notification import Notification, NotificationType

        body = _send(client, teacher_headers, students)
        client.put(f"/api/student/messages/{body['id']}/read", headers=_auth(client, students[0].email))

        resp = client.post(f"/api/teacher/messages/{body['id']}/manual-reminder", headers=teacher_headers, json={
            "target": "unread",
        })
        assert resp.status_code == 200, resp.text
        assert resp.json()["count"] == 1

        reminders = (
            db_session.query(Notification)
            .filter(
                Notification.related_message_id == body["id"],
                Notification.type == NotificationType.MANUAL_REMINDER,
            )
            .all()
        )
        assert [n.user_id for n in reminders] == [students[1].id]
        assert reminders[0].extra["reminder_type"] == "unread"

    def test_manual_reminder_read_no_reply(self, client, teacher_headers, students):
        body = _send(client, teacher_headers, students)
        first = _auth(client, students[0].email)
        second = _auth(client, students[1].email)
        client.put(f"/api/student/messages/{body['id']}/read", headers=first)
        client.put(f"/api/student/messages/{body['id']}/read", headers=second)
        client.post(f"/api/student/messages/{body['id']}/reply", headers=second, json={"content": "Done"})

        resp = client.post(f"/api/teacher/messages/{body['id']}/manual-reminder", headers=teacher_headers, json={
            "target": "read_no_reply",
        })
        assert resp.status_code == 200, resp.text
        assert resp.json()["count"] == 1

    def test_manual_reminder_with_nobody_to_remind(self, client, teacher_headers, students):
        body = _send(client, teacher_headers, [students[0]])
        client.put(f"/api/student/messages/{body['id']}/read", headers=_auth(client, students[0].email))

        resp = client.post(f"/api/teacher/messages/{body['id']}/manual-reminder", headers=teacher_headers, json={
            "target": "unread",
        })
        assert resp.status_code == 400
        assert resp.json()["detail"] == "No recipients need a reminder"


# ── Dashboard & profile ───────────────────────────────────────

class TestTeacherDashboard:
    def test_dashboard_stats(self, client, make_user, students):
        make_user("msg_dash_teacher@test.com", role="teacher")
        headers = _auth(client, "msg_dash_teacher@test.com")
        _send(client, headers, students)

        resp = client.get("/api/teacher/dashboard/stats", headers=headers)
        assert resp.status_code == 200, resp.text
        body = resp.json()
        assert body["student_count"] >= 2
        assert body["unread_count"] == 1
        assert len(body["recent_messages"]) == 1

    def test_profile_update(self, client, teacher_headers):
        resp = client.put("/api/teacher/profile", headers=teacher_headers, json={
            "phone": " 090-1234-5678 ",
            "gender": "female",
            "date_of_birth": "1985-04-01",
            "notification_settings": {"email": False},
        })
        assert resp.status_code == 200, resp.text
        body = resp.json()
        assert body["phone"] == "090-1234-5678"
        assert body["gender"] == "female"
        assert body["date_of_birth"] == "1985-04-01"
        assert body["notification_settings"] == {"email": False, "app": True}

        cleared = client.put("/api/teacher/profile", headers=teacher_headers, json={"gender": ""})
        assert cleared.status_code == 200
        assert cleared.json()["gender"] is None
        assert cleared.json()["phone"] == "090-1234-5678"

    def test_profile_lists_classes(self, client, teacher_headers):
        client.post("/api/teacher/classes", headers=teacher_headers, json={"name": "Profile Class"})
        resp = client.get("/api/teacher/profile", headers=teacher_headers)
        assert resp.status_code == 200
        assert "Profile Class" in [c["name"] for c in resp.json()["classes"]]
