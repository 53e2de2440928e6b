# tests/test_api.py
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from dept_helpdesk.backend.app.auth import create_access_token, get_password_hash
from dept_helpdesk.backend.app.db import get_db, utcnow
from dept_helpdesk.backend.app.main import create_app
from dept_helpdesk.backend.app.models.email_log import EmailLog


@pytest.fixture
def client(sender, session_factory):
    app = create_app(sender=sender, session_factory=session_factory, run_scheduler=False)

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


def auth_headers(user):
    token = create_access_token({"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


def create_ticket(client, user, department, **extra):
    body = {
        "title": "Brake noise",
        "description": "Squeal when stopping",
        "assigned_department_id": department.id,
    }
    body.update(extra)
    response = client.post("/tickets", json=body, headers=auth_headers(user))
    assert response.status_code == 201, response.text
    return response.json()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_login_returns_token_usable_for_me(client, make_user):
    user = make_user("Dana", password_hash=get_password_hash("s3cret"))

    response = client.post("/auth/login", json={"email": user.email, "password": "s3cret"})

    assert response.status_code == 200
    token = response.json()["access_token"]
    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.json()["email"] == "dana@example.com"


def test_login_rejects_bad_password(client, make_user):
    user = make_user("Dana", password_hash=get_password_hash("s3cret"))

    response = client.post("/auth/login", json={"email": user.email, "password": "nope"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid email or password"


def test_deactivated_user_cannot_log_in(client, make_user):
    user = make_user("Gone", is_active=False, password_hash=get_password_hash("s3cret"))

    response = client.post("/auth/login", json={"email": user.email, "password": "s3cret"})

    assert response.status_code == 403


def test_requests_without_token_are_rejected(client):
    assert client.get("/tickets").status_code == 401


def test_cookie_token_is_accepted(client, workshop):
    client.cookies.set(
        "access_token", create_access_token({"sub": str(workshop["agent1"].id)})
    )
    assert client.get("/tickets").status_code == 200


def test_create_ticket(client, sender, workshop):
    data = create_ticket(client, workshop["creator"], workshop["service"])

    assert data["status"] == "Open"
    assert data["department_name"] == "Service"
    assert data["creator_name"] == "Creator"
    assert data["closed_at"] is None
    assert sender.sent[0].subject == "Ticket Assigned: Brake noise"

    history = client.get(
        f"/tickets/{data['id']}/history", headers=auth_headers(workshop["creator"])
    ).json()
    assert [entry["change_type"] for entry in history] == ["created", "email_sent"]
    assert history[0]["changer_name"] == "Creator"


def test_create_ticket_unknown_department(client, workshop):
    response = client.post(
        "/tickets",
        json={"title": "x", "description": "y", "assigned_department_id": 9999},
        headers=auth_headers(workshop["creator"]),
    )
    assert response.status_code == 400


def test_create_ticket_missing_title_is_rejected(client, workshop):
    response = client.post(
        "/tickets",
        json={"description": "y", "assigned_department_id": workshop["service"].id},
        headers=auth_headers(workshop["creator"]),
    )
    assert response.status_code == 422


def test_get_ticket_not_found(client, workshop):
    response = client.get("/tickets/4242", headers=auth_headers(workshop["agent1"]))
    assert response.status_code == 404


def test_update_not_found(client, workshop):
    response = client.patch(
        "/tickets/4242", json={"title": "x"}, headers=auth_headers(workshop["admin"])
    )
    assert response.status_code == 404
    assert response.json()["detail"] == "Ticket not found"


def test_put_and_patch_both_update(client, workshop):
    ticket = create_ticket(client, workshop["creator"], workshop["service"])
    headers = auth_headers(workshop["agent1"])

    first = client.put(f"/tickets/{ticket['id']}", json={"status": "Pending"}, headers=headers)
    second = client.patch(f"/tickets/{ticket['id']}", json={"title": "Brakes"}, headers=headers)

    assert first.json()["status"] == "Pending"
    assert second.json()["title"] == "Brakes"
    assert second.json()["status"] == "Pending"


def test_non_admin_cannot_edit_description(client, workshop):
    ticket = create_ticket(client, workshop["creator"], workshop["service"])

    response = client.patch(
        f"/tickets/{ticket['id']}",
        json={"description": "rewritten"},
        headers=auth_headers(workshop["creator"]),
    )

    assert response.status_code == 403


def test_only_creator_or_admin_moves_deadline(client, workshop):
    ticket = create_ticket(client, workshop["creator"], workshop["service"])
    body = {"deadline": "2031-01-01T09:00:00Z"}
    url = f"/tickets/{ticket['id']}"

    other = client.patch(url, json=body, headers=auth_headers(workshop["agent1"]))
    own = client.patch(url, json=body, headers=auth_headers(workshop["creator"]))

    assert other.status_code == 403
    assert own.status_code == 200
    assert own.json()["deadline"].startswith("2031-01-01T09:00:00")


def test_update_unknown_department(client, workshop):
    ticket = create_ticket(client, workshop["creator"], workshop["service"])

    response = client.patch(
        f"/tickets/{ticket['id']}",
        json={"assigned_department_id": 9999},
        headers=auth_headers(workshop["admin"]),
    )

    assert response.status_code == 400


def test_empty_update_is_rejected(client, workshop):
    ticket = create_ticket(client, workshop["creator"], workshop["service"])

    response = client.patch(
        f"/tickets/{ticket['id']}", json={}, headers=auth_headers(workshop["admin"])
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "No updates provided"


def test_null_title_is_rejected(client, workshop):
    ticket = create_ticket(client, workshop["creator"], workshop["service"])

    response = client.patch(
        f"/tickets/{ticket['id']}", json={"title": None}, headers=auth_headers(workshop["admin"])
    )

    assert response.status_code == 400


def test_unknown_update_field_is_rejected(client, workshop):
    ticket = create_ticket(client, workshop["creator"], workshop["service"])

    response = client.patch(
        f"/tickets/{ticket['id']}",
        json={"created_by": workshop["agent1"].id},
        headers=auth_headers(workshop["admin"]),
    )

    assert response.status_code == 422


def test_invalid_status_value_is_rejected(client, workshop):
    ticket = create_ticket(client, workshop["creator"], workshop["service"])

    response = client.patch(
        f"/tickets/{ticket['id']}", json={"status": "Done"}, headers=auth_headers(workshop["admin"])
    )

    assert response.status_code == 422


def test_close_sends_mail_to_creator(client, sender, workshop):
    ticket = create_ticket(client, workshop["creator"], workshop["service"])

    response = client.patch(
        f"/tickets/{ticket['id']}",
        json={"status": "Closed"},
        headers=auth_headers(workshop["agent1"]),
    )

    assert response.json()["closed_at"] is not None
    assert sender.sent[-1].recipients == [workshop["creator"].email]
    assert sender.sent[-1].subject == "Ticket Closed: Brake noise"


def test_status_filters(client, workshop):
    headers = auth_headers(workshop["admin"])
    open_ticket = create_ticket(client, workshop["creator"], workshop["service"], title="A")
    pending = create_ticket(client, workshop["creator"], workshop["service"], title="B")
    closed = create_ticket(client, workshop["creator"], workshop["service"], title="C")
    client.patch(f"/tickets/{pending['id']}", json={"status": "Pending"}, headers=headers)
    client.patch(f"/tickets/{closed['id']}", json={"status": "Closed"}, headers=headers)

    open_ids = {t["id"] for t in client.get("/tickets/status/open", headers=headers).json()}
    closed_ids = {t["id"] for t in client.get("/tickets/status/closed", headers=headers).json()}

    assert open_ids == {open_ticket["id"], pending["id"]}
    assert closed_ids == {closed["id"]}
    assert client.get("/tickets/status/stale", headers=headers).status_code == 400


def test_list_is_newest_first(client, workshop):
    first = create_ticket(client, workshop["creator"], workshop["service"], title="Old")
    second = create_ticket(client, workshop["creator"], workshop["service"], title="New")
    ids = [t["id"] for t in client.get("/tickets", headers=auth_headers(workshop["agent1"])).json()]
    assert ids == [second["id"], first["id"]]


def test_my_department(client, workshop):
    mine = create_ticket(client, workshop["creator"], workshop["service"])
    create_ticket(client, workshop["creator"], workshop["sales"])

    agent = client.get("/tickets/my-department", headers=auth_headers(workshop["agent1"])).json()
    loner = client.get("/tickets/my-department", headers=auth_headers(workshop["creator"])).json()

    assert [t["id"] for t in agent] == [mine["id"]]
    assert loner == []


def test_history_lists_field_changes_newest_first(client, workshop):
    ticket = create_ticket(client, workshop["creator"], workshop["service"])
    client.patch(
        f"/tickets/{ticket['id']}",
        json={"assigned_department_id": workshop["sales"].id},
        headers=auth_headers(workshop["agent1"]),
    )

    history = client.get(
        f"/tickets/{ticket['id']}/history", headers=auth_headers(workshop["agent1"])
    ).json()

    reassigned = [entry for entry in history if entry["change_type"] == "reassigned"]
    assert reassigned[0]["old_value"] == "Service"
    assert reassigned[0]["new_value"] == "Sales"
    assert reassigned[0]["changer_department"] == "Service"
    # newest first; the assignment mail is stored before the creation entry
    assert [entry["change_type"] for entry in history[-2:]] == ["created", "email_sent"]


def test_departments_listed_by_name(client, workshop):
    response = client.get("/departments", headers=auth_headers(workshop["agent1"]))
    names = [d["name"] for d in response.json()]
    assert names == ["Procurement", "Sales", "Service"]


def test_email_endpoints_are_admin_only(client, workshop):
    headers = auth_headers(workshop["agent1"])
    assert client.get("/email-logs/stats", headers=headers).status_code == 403
    assert client.get("/email-logs", headers=headers).status_code == 403
    assert client.post("/admin/overdue-sweep", headers=headers).status_code == 403


def test_email_stats_count_today(client, sender, workshop):
    create_ticket(client, workshop["creator"], workshop["service"])
    sender.fail_with = RuntimeError("smtp down")
    create_ticket(client, workshop["creator"], workshop["service"], title="Second")

    stats = client.get("/email-logs/stats", headers=auth_headers(workshop["admin"])).json()

    assert stats["today"]["total"] == 2
    assert stats["today"]["successful"] == 1
    assert stats["today"]["failed"] == 1
    assert stats["today"]["byType"] == [{"email_type": "assigned", "count": 2}]
    assert stats["month"]["total"] >= 2


def test_email_logs_filter_by_ticket(client, workshop):
    first = create_ticket(client, workshop["creator"], workshop["service"])
    create_ticket(client, workshop["creator"], workshop["service"], title="Other")

    logs = client.get(
        "/email-logs", params={"ticket_id": first["id"]}, headers=auth_headers(workshop["admin"])
    ).json()

    assert [log["ticket_id"] for log in logs] == [first["id"]]


def test_admin_can_trigger_overdue_sweep(client, sender, workshop, db_session):
    ticket = create_ticket(
        client,
        workshop["creator"],
        workshop["service"],
        deadline=(utcnow() - timedelta(hours=1)).isoformat(),
    )

    response = client.post("/admin/overdue-sweep", headers=auth_headers(workshop["admin"]))

    assert response.status_code == 200
    assert response.json()["notified"] == [ticket["id"]]
    assert sender.sent[-1].subject == "OVERDUE: Brake noise"
    assert db_session.query(EmailLog).filter_by(email_type="overdue").count() == 1


def _offset(value):
    return datetime.fromisoformat(value.replace("Z", "+00:00")).utcoffset()


def test_timestamps_carry_utc_offset(client, workshop):
    ticket = create_ticket(client, workshop["creator"], workshop["service"])
    headers = auth_headers(workshop["admin"])
    closed = client.patch(
        f"/tickets/{ticket['id']}", json={"status": "Closed"}, headers=headers
    ).json()
    history = client.get(f"/tickets/{ticket['id']}/history", headers=headers).json()
    logs = client.get("/email-logs", headers=headers).json()

    for key in ("deadline", "created_at", "updated_at", "closed_at"):
        assert _offset(closed[key]) == timedelta(0)
    assert _offset(history[0]["created_at"]) == timedelta(0)
    assert _offset(logs[0]["sent_at"]) == timedelta(0)


def test_offset_deadline_is_stored_as_utc(client, workshop):
    ticket = create_ticket(
        client, workshop["creator"], workshop["service"], deadline="2031-01-01T12:00:00+03:00"
    )
    assert ticket["deadline"].startswith("2031-01-01T09:00:00")
    assert _offset(ticket["deadline"]) == timedelta(0)


def test_change_password_clears_flag(client, make_user, db_session):
    user = make_user("Dana", password_hash=get_password_hash("password"))
    user.must_change_password = True
    db_session.commit()

    response = client.post(
        "/auth/change-password",
        json={"current_password": "password", "new_password": "n3w-secret"},
        headers=auth_headers(user),
    )
    assert response.status_code == 200

    old = client.post("/auth/login", json={"email": user.email, "password": "password"})
    new = client.post("/auth/login", json={"email": user.email, "password": "n3w-secret"})
    assert old.status_code == 401
    assert new.json()["must_change_password"] is False


def test_change_password_requires_current_password(client, make_user):
    user = make_user("Dana", password_hash=get_password_hash("password"))

    wrong = client.post(
        "/auth/change-password",
        json={"current_password": "guess", "new_password": "n3w-secret"},
        headers=auth_headers(user),
    )
    short = client.post(
        "/auth/change-password",
        json={"current_password": "password", "new_password": "abc"},
        headers=auth_headers(user),
    )

    assert wrong.status_code == 401
    assert wrong.json()["detail"] == "Current password is incorrect"
    assert short.status_code == 422


def test_user_management_is_admin_only(client, workshop):
    headers = auth_headers(workshop["agent1"])
    body = {"name": "New", "email": "new@example.com", "password": "secret1"}

    assert client.get("/users", headers=headers).status_code == 403
    assert client.post("/users", json=body, headers=headers).status_code == 403
    assert client.post("/departments", json={"name": "IT"}, headers=headers).status_code == 403


def test_created_user_logs_in_and_receives_assignment_mail(client, sender, workshop):
    headers = auth_headers(workshop["admin"])
    department = client.post("/departments", json={"name": "Finance"}, headers=headers)
    assert department.status_code == 201
    department_id = department.json()["id"]

    created = client.post(
        "/users",
        json={
            "name": "Fay",
            "email": "fay@example.com",
            "password": "secret1",
            "department_id": department_id,
        },
        headers=headers,
    )
    assert created.status_code == 201
    assert created.json()["department_name"] == "Finance"

    login = client.post("/auth/login", json={"email": "fay@example.com", "password": "secret1"})
    assert login.status_code == 200

    client.post(
        "/tickets",
        json={
            "title": "Invoice",
            "description": "Missing",
            "assigned_department_id": department_id,
        },
        headers=auth_headers(workshop["creator"]),
    )
    assert sender.sent[-1].recipients == ["fay@example.com"]


def test_create_user_rejects_duplicates_and_bad_department(client, workshop):
    headers = auth_headers(workshop["admin"])
    duplicate = client.post(
        "/users",
        json={"name": "Copy", "email": workshop["agent1"].email, "password": "secret1"},
        headers=headers,
    )
    bad_department = client.post(
        "/users",
        json={
            "name": "Lost",
            "email": "lost@example.com",
            "password": "secret1",
            "department_id": 9999,
        },
        headers=headers,
    )

    assert duplicate.json()["detail"] == "Email already exists"
    assert bad_department.json()["detail"] == "Invalid department ID"


def test_update_user_moves_department(client, workshop):
    headers = auth_headers(workshop["admin"])
    agent = workshop["agent1"]

    response = client.put(
        f"/users/{agent.id}",
        json={"department_id": workshop["sales"].id, "name": "Agent Uno"},
        headers=headers,
    )

    assert response.status_code == 200
    assert response.json()["name"] == "Agent Uno"
    assert response.json()["department_name"] == "Sales"
    assert client.patch(f"/users/{agent.id}", json={}, headers=headers).status_code == 400
    assert client.patch("/users/9999", json={"name": "x"}, headers=headers).status_code == 404
    taken = client.patch(
        f"/users/{agent.id}", json={"email": workshop["seller"].email}, headers=headers
    )
    assert taken.status_code == 400


def test_deactivated_user_is_locked_out_and_skipped(client, workshop):
    headers = auth_headers(workshop["admin"])
    agent = workshop["agent1"]

    response = client.post(f"/users/{agent.id}/deactivate", headers=headers)

    assert response.json()["is_active"] is False
    assert client.get("/tickets", headers=auth_headers(agent)).status_code == 401
    members = client.get(f"/departments/{workshop['service'].id}/users", headers=headers).json()
    assert [m["name"] for m in members] == ["Agent Two"]

    client.post(f"/users/{agent.id}/activate", headers=headers)
    assert client.get("/tickets", headers=auth_headers(agent)).status_code == 200


def test_admin_cannot_deactivate_self(client, workshop):
    admin = workshop["admin"]
    response = client.post(f"/users/{admin.id}/deactivate", headers=auth_headers(admin))
    assert response.status_code == 400


def test_admin_password_reset_forces_change(client, make_user, workshop):
    user = make_user("Dana", password_hash=get_password_hash("password"))

    response = client.post(
        f"/users/{user.id}/change-password",
        json={"new_password": "temp123"},
        headers=auth_headers(workshop["admin"]),
    )

    assert response.json()["must_change_password"] is True
    login = client.post("/auth/login", json={"email": user.email, "password": "temp123"})
    assert login.json()["must_change_password"] is True


def test_create_department_rejects_duplicates(client, workshop):
    headers = auth_headers(workshop["admin"])
    assert client.post("/departments", json={"name": "Service"}, headers=headers).status_code == 400
    assert client.post("/departments", json={"name": "  "}, headers=headers).status_code == 400
