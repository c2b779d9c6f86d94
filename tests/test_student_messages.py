from datetime import datetime, timedelta, timezone

import pytest

PASSWORD = "Password123!"


def _auth(client, email):
    resp = client.post("/api/auth/login", data={"username": email, "password": PASSWORD})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


@pytest.fixture()
def teacher_headers(client, make_user):
    make_user("inbox_teacher@test.com", role="teacher", full_name="Mr Tanaka")
    return _auth(client, "inbox_teacher@test.com")


def _send(client, headers, recipients, **fields):
    payload = {
        "recipient_ids": [s.id for s in recipients],
        "title": "Homework",
        "content": "Finish page 12.",
        **fields,
    }
    resp = client.post("/api/teacher/messages", headers=headers, json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()


# ── Inbox ─────────────────────────────────────────────────────

class TestInbox:
    def test_inbox_and_read_filter(self, client, teacher_headers, make_user):
        student = make_user("inbox_filter@test.com")
        headers = _auth(client, student.email)
        first = _send(client, teacher_headers, [student], title="First")
        second = _send(client, teacher_headers, [student], title="Second")

        inbox = client.get("/api/student/messages", headers=headers)
        assert inbox.status_code == 200, inbox.text
        assert [m["id"] for m in inbox.json()] == [second["id"], first["id"]]
        assert inbox.json()[0]["sender_name"] == "Mr Tanaka"

        marked = client.put(f"/api/student/messages/{first['id']}/read", headers=headers)
        assert marked.status_code == 200
        assert marked.json()["is_read"] is True
        assert marked.json()["read_at"] is not None

        new = client.get("/api/student/messages", headers=headers, params={"filter": "new"}).json()
        assert [m["id"] for m in new] == [second["id"]]
        read = client.get("/api/student/messages", headers=headers, params={"filter": "read"}).json()
        assert [m["id"] for m in read] == [first["id"]]

    def test_only_own_messages_visible(self, client, teacher_headers, make_user):
        mine = make_user("inbox_mine@test.com")
        other = make_user("inbox_other@test.com")
        body = _send(client, teacher_headers, [other])

        headers = _auth(client, mine.email)
        assert body["id"] not in [m["id"] for m in client.get("/api/student/messages", headers=headers).json()]
        assert client.get(f"/api/student/messages/{body['id']}", headers=headers).status_code == 404

    def test_mark_read_is_idempotent(self, client, teacher_headers, make_user):
        student = make_user("inbox_idem@test.com")
        headers = _auth(client, student.email)
        body = _send(client, teacher_headers, [student])

        first = client.put(f"/api/student/messages/{body['id']}/read", headers=headers).json()
        second = client.put(f"/api/student/messages/{body['id']}/read", headers=headers).json()
        assert first["read_at"] == second["read_at"]

    def test_hide_removes_from_inbox_only(self, client, teacher_headers, make_user):
        student = make_user("inbox_hide@test.com")
        headers = _auth(client, student.email)
        body = _send(client, teacher_headers, [student])

        resp = client.delete(f"/api/student/messages/{body['id']}", headers=headers)
        assert resp.status_code == 200
        assert client.get(f"/api/student/messages/{body['id']}", headers=headers).status_code == 404
        assert body["id"] not in [m["id"] for m in client.get("/api/student/messages", headers=headers).json()]

        teacher_view = client.get(f"/api/teacher/messages/{body['id']}", headers=teacher_headers).json()
        assert teacher_view["recipients"][0]["hidden"] is True

    def test_dashboard_unread_count(self, client, teacher_headers, make_user):
        student = make_user("inbox_dash@test.com")
        headers = _auth(client, student.email)
        a = _send(client, teacher_headers, [student])
        _send(client, teacher_headers, [student])
        client.put(f"/api/student/messages/{a['id']}/read", headers=headers)

        resp = client.get("/api/student/dashboard/stats", headers=headers)
        assert resp.status_code == 200
        assert resp.json() == {"unread_count": 1}

    def test_teachers_cannot_use_student_inbox(self, client, teacher_headers):
        assert client.get("/api/student/messages", headers=teacher_headers).status_code == 403


# ── Replies ───────────────────────────────────────────────────

class TestReplies:
    def test_reply_notifies_teacher_and_marks_read(self, client, teacher_headers, make_user, db_session):
        from educonnect.models.notification import Notification, NotificationType

        student = make_user("reply_basic@test.com", full_name="Replier")
        headers = _auth(client, student.email)
        body = _send(client, teacher_headers, [student])

        resp = client.post(f"/api/student/messages/{body['id']}/reply", headers=headers, json={
            "content": "  Finished!  ",
        })
        assert resp.status_code == 201, resp.text
        reply = resp.json()
        assert reply["title"] == "Re: Homework"
        assert reply["content"] == "Finished!"
        assert reply["parent_message_id"] == body["id"]

        detail = client.get(f"/api/student/messages/{body['id']}", headers=headers).json()
        assert detail["is_read"] is True
        assert detail["has_replied"] is True

        notes = (
            db_session.query(Notification)
            .filter(
                Notification.related_message_id == body["id"],
                Notification.type == NotificationType.MESSAGE_REPLY,
            )
            .all()
        )
        assert len(notes) == 1
        assert notes[0].sender_id == student.id
        assert "Replier" in notes[0].content

    def test_second_reply_replaces_notification(self, client, teacher_headers, make_user, db_session):
        from educonnect.models.notification import Notification, NotificationType

        student = make_user("reply_twice@test.com")
        headers = _auth(client, student.email)
        body = _send(client, teacher_headers, [student])

        client.post(f"/api/student/messages/{body['id']}/reply", headers=headers, json={"content": "One"})
        client.post(f"/api/student/messages/{body['id']}/reply", headers=headers, json={"content": "Two"})

        count = (
            db_session.query(Notification)
            .filter(
                Notification.related_message_id == body["id"],
                Notification.type == NotificationType.MESSAGE_REPLY,
            )
            .count()
        )
        assert count == 1

        mine = client.get(f"/api/student/messages/{body['id']}/my-reply", headers=headers)
        assert mine.status_code == 200
        assert mine.json()["content"] == "Two"

    def test_empty_reply_rejected(self, client, teacher_headers, make_user):
        student = make_user("reply_empty@test.com")
        headers = _auth(client, student.email)
        body = _send(client, teacher_headers, [student])
        resp = client.post(f"/api/student/messages/{body['id']}/reply", headers=headers, json={"content": "  "})
        assert resp.status_code == 400

    def test_attachment_only_reply_allowed(self, client, teacher_headers, make_user):
        student = make_user("reply_attach@test.com")
        headers = _auth(client, student.email)
        body = _send(client, teacher_headers, [student])
        resp = client.post(f"/api/student/messages/{body['id']}/reply", headers=headers, json={
            "attachments": ["http://localhost:8000/uploads/answer.pdf"],
        })
        assert resp.status_code == 201, resp.text

    def test_my_reply_is_null_before_replying(self, client, teacher_headers, make_user):
        student = make_user("reply_none@test.com")
        headers = _auth(client, student.email)
        body = _send(client, teacher_headers, [student])
        resp = client.get(f"/api/student/messages/{body['id']}/my-reply", headers=headers)
        assert resp.status_code == 200
        assert resp.json() is None

    def test_edit_reply(self, client, teacher_headers, make_user):
        student = make_user("reply_edit@test.com")
        headers = _auth(client, student.email)
        body = _send(client, teacher_headers, [student])

        missing = client.put(f"/api/student/messages/{body['id']}/reply", headers=headers, json={"content": "x"})
        assert missing.status_code == 404

        client.post(f"/api/student/messages/{body['id']}/reply", headers=headers, json={"content": "Draft"})
        resp = client.put(f"/api/student/messages/{body['id']}/reply", headers=headers, json={"content": "Final"})
        assert resp.status_code == 200, resp.text
        assert resp.json()["content"] == "Final"

    def test_locked_after_deadline(self, client, teacher_headers, make_user):
        student = make_user("reply_locked@test.com")
        headers = _auth(client, student.email)
        past = (datetime.utcnow() - timedelta(hours=1)).isoformat()
        body = _send(client, teacher_headers, [student], deadline=past, lock_response_after_deadline=True)

        resp = client.post(f"/api/student/messages/{body['id']}/reply", headers=headers, json={"content": "Late"})
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Responses are locked after the deadline"

    def test_deadline_with_offset_is_stored_as_utc(self, client, teacher_headers, make_user):
        student = make_user("reply_locked_jst@test.com")
        headers = _auth(client, student.email)
        past_utc = datetime.now(timezone.utc) - timedelta(hours=1)
        past_jst = past_utc.astimezone(timezone(timedelta(hours=9))).isoformat()
        body = _send(client, teacher_headers, [student], deadline=past_jst, lock_response_after_deadline=True)
        assert body["deadline"].startswith(past_utc.replace(tzinfo=None).isoformat()[:19])

        resp = client.post(f"/api/student/messages/{body['id']}/reply", headers=headers, json={"content": "Late"})
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Responses are locked after the deadline"

    def test_edited_deadline_with_offset_is_stored_as_utc(self, client, teacher_headers, make_user):
        student = make_user("reply_edit_jst@test.com")
        body = _send(client, teacher_headers, [student])
        future_utc = datetime.now(timezone.utc) + timedelta(hours=2)
        future_jst = future_utc.astimezone(timezone(timedelta(hours=9))).isoformat()

        resp = client.put(f"/api/teacher/messages/{body['id']}", headers=teacher_headers, json={
            "deadline": future_jst,
        })
        assert resp.status_code == 200, resp.text
        assert resp.json()["deadline"].startswith(future_utc.replace(tzinfo=None).isoformat()[:19])

    def test_past_deadline_without_lock_still_accepts(self, client, teacher_headers, make_user):
        student = make_user("reply_unlocked@test.com")
        headers = _auth(client, student.email)
        past = (datetime.utcnow() - timedelta(hours=1)).isoformat()
        body = _send(client, teacher_headers, [student], deadline=past)

        resp = client.post(f"/api/student/messages/{body['id']}/reply", headers=headers, json={"content": "Late"})
        assert resp.status_code == 201


# ── Reactions ─────────────────────────────────────────────────

class TestReactions:
    def test_first_reaction_notifies_change_does_not(self, client, teacher_headers, make_user, db_session):
        from educonnect.models.notification import Notification, NotificationType

        student = make_user("react_basic@test.com", full_name="Reactor")
        headers = _auth(client, student.email)
        body = _send(client, teacher_headers, [student])

        added = client.post(f"/api/student/messages/{body['id']}/reaction", headers=headers, json={"reaction": "like"})
        assert added.status_code == 200, added.text
        assert added.json() == {"message": "Reaction added", "reaction": "like"}

        changed = client.post(f"/api/student/messages/{body['id']}/reaction", headers=headers, json={"reaction": "star"})
        assert changed.json() == {"message": "Reaction updated", "reaction": "star"}

        notes = (
            db_session.query(Notification)
            .filter(
                Notification.related_message_id == body["id"],
                Notification.type == NotificationType.MESSAGE_REACTION,
            )
            .all()
        )
        assert len(notes) == 1
        assert notes[0].extra["reaction_type"] == "like"
        assert notes[0].content == 'Reactor liked your message "Homework"'

        detail = client.get(f"/api/student/messages/{body['id']}", headers=headers).json()
        assert detail["my_reaction"] == "star"

        teacher_view = client.get(f"/api/teacher/messages/{body['id']}", headers=teacher_headers).json()
        assert teacher_view["reactions"][0]["reaction"] == "star"

    def test_put_reaction_requires_existing(self, client, teacher_headers, make_user):
        student = make_user("react_put@test.com")
        headers = _auth(client, student.email)
        body = _send(client, teacher_headers, [student])

        missing = client.put(f"/api/student/messages/{body['id']}/reaction", headers=headers, json={"reaction": "done"})
        assert missing.status_code == 404

        client.post(f"/api/student/messages/{body['id']}/reaction", headers=headers, json={"reaction": "idea"})
        resp = client.put(f"/api/student/messages/{body['id']}/reaction", headers=headers, json={"reaction": "done"})
        assert resp.status_code == 200
        assert resp.json()["reaction"] == "done"

    def test_unknown_reaction_rejected(self, client, teacher_headers, make_user):
        student = make_user("react_unknown@test.com")
        headers = _auth(client, student.email)
        body = _send(client, teacher_headers, [student])
        resp = client.post(f"/api/student/messages/{body['id']}/reaction", headers=headers, json={"reaction": "angry"})
        assert resp.status_code == 422


# ── Profile ───────────────────────────────────────────────────

class TestStudentProfile:
    def test_profile_shows_classes(self, client, make_user):
        make_user("prof_teacher@test.com", role="teacher")
        teacher_headers = _auth(client, "prof_teacher@test.com")
        student = make_user("prof_student@test.com")
        client.post("/api/teacher/classes", headers=teacher_headers, json={
            "name": "Profile Room", "student_ids": [student.id],
        })

        resp = client.get("/api/student/profile", headers=_auth(client, student.email))
        assert resp.status_code == 200, resp.text
        assert resp.json()["class_name"] == "Profile Room"
        assert [c["name"] for c in resp.json()["classes"]] == ["Profile Room"]

    def test_profile_update_student_fields(self, client, make_user):
        student = make_user("prof_update@test.com")
        headers = _auth(client, student.email)
        resp = client.put("/api/student/profile", headers=headers, json={
            "name_kana": " ヤマダ ",
            "address": "Hanoi",
            "notification_settings": {"app": False},
        })
        assert resp.status_code == 200, resp.text
        body = resp.json()
        assert body["name_kana"] == "ヤマダ"
        assert body["address"] == "Hanoi"
        assert body["notification_settings"] == {"email": True, "app": False}

    def test_student_cannot_change_class_via_profile(self, client, make_user):
        student = make_user("prof_sneaky@test.com", class_name="1A")
        headers = _auth(client, student.email)
        resp = client.put("/api/student/profile", headers=headers, json={"class_name": "9Z"})
        assert resp.status_code == 200
        assert resp.json()["class_name"] == "1A"
