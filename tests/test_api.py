"""
HTTP API tests over the Flask test client (relational backend, in-memory SQLite).

Covers:
  - Login / session / logout, 401 without a session, blocked accounts
  - Users: create, duplicate username (409), self-edit limits, delete rules
  - Projects: CRUD with derived progress, tasks, toggle, comments, status, stats
  - Agenda
  - Sync: export download, import round trip, corrupt import (422), admin only,
    change script download / push, status
  - Health probes and JSON 404s
"""

import io
import json

import pytest

from prosync.services.sync_service import SyncResult


def _login(client, username, password):
    res = client.post("/api/v1/auth/login", json={"username": username, "password": password})
    assert res.status_code == 200, res.get_json()
    return {"Authorization": f"Bearer {res.get_json()['token']}"}


@pytest.fixture()
def member_headers(client, auth_headers):
    res = client.post("/api/v1/users", json={
        "name": "Maria Silva", "username": "maria", "role": "Engineer", "password": "pw123",
    }, headers=auth_headers)
    assert res.status_code == 201, res.get_json()
    return _login(client, "maria", "pw123")


def _create_project(client, headers, **fields):
    body = {"title": "Kitchen remodel", **fields}
    res = client.post("/api/v1/projects", json=body, headers=headers)
    assert res.status_code == 201, res.get_json()
    return res.get_json()


# ── Auth ─────────────────────────────────────────────────────────────────


class TestAuth:
    def test_login_returns_token_and_public_user(self, client):
        res = client.post("/api/v1/auth/login", json={"username": "admin", "password": "admin"})
        assert res.status_code == 200
        data = res.get_json()
        assert data["token_type"] == "Bearer"
        assert data["user"]["username"] == "admin"
        assert "passwordHash" not in data["user"]

    def test_login_missing_fields(self, client):
        res = client.post("/api/v1/auth/login", json={"username": "admin"})
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_REQUIRED"

    def test_login_wrong_password(self, client):
        res = client.post("/api/v1/auth/login", json={"username": "admin", "password": "nope"})
        assert res.status_code == 401

    def test_session_endpoint(self, client, auth_headers):
        res = client.get("/api/v1/auth/session", headers=auth_headers)
        assert res.status_code == 200
        assert res.get_json()["user"]["isAdmin"] is True

    def test_session_without_token(self, client):
        assert client.get("/api/v1/auth/session").status_code == 401

    def test_session_from_other_device(self, client, auth_headers):
        res = client.get("/api/v1/auth/session", headers={**auth_headers, "User-Agent": "other-device"})
        assert res.status_code == 401

    def test_protected_endpoint_requires_session(self, client):
        res = client.get("/api/v1/projects")
        assert res.status_code == 401
        assert res.get_json()["code"] == "ERR_UNAUTHORIZED"

    def test_logout(self, client, auth_headers):
        assert client.post("/api/v1/auth/logout", headers=auth_headers).status_code == 200

    def test_blocked_user_cannot_log_in(self, client, auth_headers, member_headers):
        users = client.get("/api/v1/users", headers=auth_headers).get_json()
        maria = next(u for u in users if u["username"] == "maria")
        res = client.put(f"/api/v1/users/{maria['id']}", json={"status": "BLOCKED"}, headers=auth_headers)
        assert res.status_code == 200

        res = client.post("/api/v1/auth/login", json={"username": "maria", "password": "pw123"})
        assert res.status_code == 403
        # An existing session of a blocked user stops working too.
        assert client.get("/api/v1/projects", headers=member_headers).status_code == 401


# ── Users ────────────────────────────────────────────────────────────────


class TestUsers:
    def test_list_hides_password_hashes(self, client, auth_headers):
        users = client.get("/api/v1/users", headers=auth_headers).get_json()
        assert [u["username"] for u in users] == ["admin"]
        assert all("passwordHash" not in u for u in users)

    def test_duplicate_username_conflicts(self, client, auth_headers):
        res = client.post("/api/v1/users", json={"name": "Other", "username": "ADMIN", "password": "x"},
                          headers=auth_headers)
        assert res.status_code == 409
        assert res.get_json()["details"] == {"field": "username"}

    def test_create_requires_password(self, client, auth_headers):
        res = client.post("/api/v1/users", json={"name": "No Pass", "username": "nopass"}, headers=auth_headers)
        assert res.status_code == 422

    def test_member_cannot_create_users(self, client, member_headers):
        res = client.post("/api/v1/users", json={"name": "X", "username": "x", "password": "x"},
                          headers=member_headers)
        assert res.status_code == 403

    def test_member_can_edit_own_profile_only(self, client, auth_headers, member_headers):
        users = client.get("/api/v1/users", headers=member_headers).get_json()
        maria = next(u for u in users if u["username"] == "maria")
        admin = next(u for u in users if u["username"] == "admin")

        res = client.put(f"/api/v1/users/{maria['id']}", json={"role": "Lead Engineer"}, headers=member_headers)
        assert res.status_code == 200
        assert res.get_json()["role"] == "Lead Engineer"

        res = client.put(f"/api/v1/users/{maria['id']}", json={"isAdmin": True}, headers=member_headers)
        assert res.status_code == 403
        res = client.put(f"/api/v1/users/{admin['id']}", json={"name": "Hacked"}, headers=member_headers)
        assert res.status_code == 403

    def test_password_change(self, client, member_headers):
        me = client.get("/api/v1/auth/session", headers=member_headers).get_json()["user"]
        res = client.put(f"/api/v1/users/{me['id']}", json={"password": "new-pw"}, headers=member_headers)
        assert res.status_code == 200
        _login(client, "maria", "new-pw")

    def test_delete_user(self, client, auth_headers, member_headers):
        me = client.get("/api/v1/auth/session", headers=member_headers).get_json()["user"]
        res = client.delete(f"/api/v1/users/{me['id']}", headers=auth_headers)
        assert res.status_code == 200
        assert res.get_json() == {"deleted": me["id"], "policy": "hard"}
        assert client.delete(f"/api/v1/users/{me['id']}", headers=auth_headers).status_code == 404

    def test_admin_cannot_delete_self(self, client, auth_headers):
        me = client.get("/api/v1/auth/session", headers=auth_headers).get_json()["user"]
        assert client.delete(f"/api/v1/users/{me['id']}", headers=auth_headers).status_code == 422


# ── Projects ─────────────────────────────────────────────────────────────


class TestProjects:
    def test_list_includes_seeded_project_with_progress(self, client, auth_headers):
        cards = client.get("/api/v1/projects", headers=auth_headers).get_json()
        assert len(cards) == 1
        assert cards[0]["title"] == "Welcome Project"
        assert cards[0]["progress"] == 10
        assert cards[0]["responsibleName"] == "System Administrator"

    def test_create_defaults_responsible_to_caller(self, client, auth_headers):
        card = _create_project(client, auth_headers, address="Main St", number="42")
        me = client.get("/api/v1/auth/session", headers=auth_headers).get_json()["user"]

        assert card["responsibleId"] == me["id"]
        assert card["number"] == "42"
        assert card["progress"] == 0
        assert card["comments"] == []
        assert card["createdAt"] and card["updatedAt"]

    def test_create_with_tasks_and_progress(self, client, auth_headers):
        card = _create_project(client, auth_headers, tasks=[
            {"title": "Survey", "stage": "SURVEY", "completed": True},
            {"title": "Finish", "stage": "FINALIZATION", "completed": True},
            {"title": "Build", "stage": "EXECUTION"},
        ])
        assert card["progress"] == 60
        assert all(t["id"] for t in card["tasks"])

    def test_create_requires_title(self, client, auth_headers):
        res = client.post("/api/v1/projects", json={"title": " "}, headers=auth_headers)
        assert res.status_code == 422

    def test_create_rejects_unknown_stage(self, client, auth_headers):
        res = client.post("/api/v1/projects", json={"title": "x", "tasks": [{"title": "t", "stage": "QA"}]},
                          headers=auth_headers)
        assert res.status_code == 422

    def test_get_update_delete(self, client, auth_headers):
        card = _create_project(client, auth_headers)
        url = f"/api/v1/projects/{card['id']}"

        assert client.get(url, headers=auth_headers).get_json()["title"] == "Kitchen remodel"

        res = client.put(url, json={"title": "Kitchen + pantry", "neighborhood": "Centre"}, headers=auth_headers)
        assert res.status_code == 200
        updated = res.get_json()
        assert updated["title"] == "Kitchen + pantry"
        assert updated["neighborhood"] == "Centre"
        assert updated["createdAt"] == card["createdAt"]

        assert client.delete(url, headers=auth_headers).status_code == 200
        assert client.get(url, headers=auth_headers).status_code == 404

    def test_update_replaces_task_list(self, client, auth_headers):
        card = _create_project(client, auth_headers, tasks=[{"title": "a"}, {"title": "b"}])
        url = f"/api/v1/projects/{card['id']}"
        res = client.put(url, json={"tasks": [card["tasks"][1]]}, headers=auth_headers)
        assert [t["title"] for t in res.get_json()["tasks"]] == ["b"]

    def test_task_lifecycle(self, client, auth_headers):
        card = _create_project(client, auth_headers)
        base = f"/api/v1/projects/{card['id']}/tasks"

        res = client.post(base, json={"title": "Tiles", "stage": "EXECUTION"}, headers=auth_headers)
        assert res.status_code == 201
        task = res.get_json()["tasks"][0]
        assert task["responsibleId"] == card["responsibleId"]

        res = client.post(f"{base}/{task['id']}/toggle", headers=auth_headers)
        toggled = res.get_json()
        assert toggled["tasks"][0]["completed"] is True
        assert toggled["tasks"][0]["completedAt"]
        assert toggled["progress"] == 25

        res = client.put(f"{base}/{task['id']}", json={"observations": "Blue tiles", "completed": False},
                         headers=auth_headers)
        edited = res.get_json()["tasks"][0]
        assert edited["observations"] == "Blue tiles"
        assert edited["completedAt"] is None

        res = client.delete(f"{base}/{task['id']}", headers=auth_headers)
        assert res.get_json()["tasks"] == []
        assert client.post(f"{base}/{task['id']}/toggle", headers=auth_headers).status_code == 404

    def test_task_completed_accepts_text_flag(self, client, auth_headers):
        card = _create_project(client, auth_headers, tasks=[{"title": "Tiles", "completed": True}])
        url = f"/api/v1/projects/{card['id']}/tasks/{card['tasks'][0]['id']}"

        res = client.put(url, json={"completed": "false"}, headers=auth_headers)

        assert res.status_code == 200
        assert res.get_json()["tasks"][0]["completed"] is False
        assert res.get_json()["progress"] == 0

    def test_add_task_requires_title(self, client, auth_headers):
        card = _create_project(client, auth_headers)
        res = client.post(f"/api/v1/projects/{card['id']}/tasks", json={}, headers=auth_headers)
        assert res.status_code == 400

    def test_comments(self, client, auth_headers):
        card = _create_project(client, auth_headers)
        url = f"/api/v1/projects/{card['id']}/comments"

        res = client.post(url, json={"content": "Materials ordered"}, headers=auth_headers)
        assert res.status_code == 201
        comment = res.get_json()
        assert comment["authorName"] == "System Administrator"
        assert comment["projectId"] == card["id"]

        assert client.post(url, json={"content": ""}, headers=auth_headers).status_code == 422

        # A project update never drops comments.
        client.put(f"/api/v1/projects/{card['id']}", json={"title": "Renamed", "comments": []},
                   headers=auth_headers)
        stored = client.get(f"/api/v1/projects/{card['id']}", headers=auth_headers).get_json()
        assert [c["content"] for c in stored["comments"]] == ["Materials ordered"]

    def test_status_change(self, client, auth_headers):
        card = _create_project(client, auth_headers)
        url = f"/api/v1/projects/{card['id']}/status"
        assert client.put(url, json={"status": "REVIEW"}, headers=auth_headers).get_json()["status"] == "REVIEW"
        assert client.put(url, json={"status": "ARCHIVED"}, headers=auth_headers).status_code == 422
        assert client.put(url, json={}, headers=auth_headers).status_code == 400

    def test_stats_and_stages(self, client, auth_headers):
        stats = client.get("/api/v1/projects/stats", headers=auth_headers).get_json()
        assert stats["total"] == 1
        assert stats["inProgress"] == 1

        stages = client.get("/api/v1/projects/stages", headers=auth_headers).get_json()
        assert [s["stage"] for s in stages] == ["SURVEY", "PLANNING", "EXECUTION", "FINALIZATION"]
        assert sum(s["weight"] for s in stages) == pytest.approx(1.0)

    def test_removed_responsible_reads_as_placeholder(self, client, auth_headers, member_headers):
        me = client.get("/api/v1/auth/session", headers=member_headers).get_json()["user"]
        card = _create_project(client, member_headers)
        client.delete(f"/api/v1/users/{me['id']}", headers=auth_headers)

        stored = client.get(f"/api/v1/projects/{card['id']}", headers=auth_headers).get_json()
        assert stored["responsibleId"] == me["id"]
        assert stored["responsibleName"] == "Removed user"


# ── Agenda ───────────────────────────────────────────────────────────────


class TestAgenda:
    def test_create_list_delete(self, client, auth_headers):
        res = client.post("/api/v1/agenda", json={
            "title": "Site visit", "date": "2024-06-03T14:00:00Z", "type": "VISIT",
        }, headers=auth_headers)
        assert res.status_code == 201
        item = res.get_json()
        me = client.get("/api/v1/auth/session", headers=auth_headers).get_json()["user"]
        assert item["userId"] == me["id"]

        items = client.get(f"/api/v1/agenda?userId={me['id']}", headers=auth_headers).get_json()
        assert [i["title"] for i in items] == ["Site visit"]

        assert client.delete(f"/api/v1/agenda/{item['id']}", headers=auth_headers).status_code == 200
        assert client.get("/api/v1/agenda", headers=auth_headers).get_json() == []

    def test_create_requires_date(self, client, auth_headers):
        res = client.post("/api/v1/agenda", json={"title": "Someday"}, headers=auth_headers)
        assert res.status_code == 422


# ── Sync ─────────────────────────────────────────────────────────────────


class TestSync:
    def test_export_download(self, client, auth_headers):
        res = client.get("/api/v1/sync/export", headers=auth_headers)
        assert res.status_code == 200
        assert res.mimetype == "application/json"
        assert "Backup_Projects_" in res.headers["Content-Disposition"]
        doc = json.loads(res.data)
        assert set(doc) == {"users", "projects", "agenda", "exportedAt"}

    def test_import_round_trip(self, client, auth_headers):
        _create_project(client, auth_headers, tasks=[{"title": "a", "completed": True}])
        exported = json.loads(client.get("/api/v1/sync/export", headers=auth_headers).data)

        client.delete(f"/api/v1/projects/{exported['projects'][0]['id']}", headers=auth_headers)
        res = client.post("/api/v1/sync/import", data=json.dumps(exported),
                          content_type="application/json", headers=auth_headers)
        assert res.status_code == 200, res.get_json()
        assert res.get_json()["counts"] == {"users": 1, "projects": 2, "agenda": 0}

        again = json.loads(client.get("/api/v1/sync/export", headers=auth_headers).data)
        exported.pop("exportedAt")
        again.pop("exportedAt")
        assert again == exported

    def test_import_file_upload(self, client, auth_headers):
        exported = client.get("/api/v1/sync/export", headers=auth_headers).data
        exported_doc = json.loads(exported)
        exported_doc["projects"] = []
        res = client.post(
            "/api/v1/sync/import",
            data={"file": (io.BytesIO(json.dumps(exported_doc).encode()), "backup.json")},
            content_type="multipart/form-data",
            headers=auth_headers,
        )
        assert res.status_code == 200
        assert client.get("/api/v1/projects", headers=auth_headers).get_json() == []

    def test_corrupt_import_is_rejected(self, client, auth_headers):
        res = client.post("/api/v1/sync/import", data='{"users": [], "projects": 5}',
                          content_type="application/json", headers=auth_headers)
        assert res.status_code == 422
        assert res.get_json()["code"] == "ERR_CORRUPT_SNAPSHOT"
        assert len(client.get("/api/v1/projects", headers=auth_headers).get_json()) == 1

    def test_empty_import(self, client, auth_headers):
        res = client.post("/api/v1/sync/import", data="", headers=auth_headers)
        assert res.status_code == 400

    def test_import_requires_admin(self, client, member_headers):
        res = client.post("/api/v1/sync/import", data="{}", content_type="application/json",
                          headers=member_headers)
        assert res.status_code == 403

    def test_pull_without_remote(self, client, auth_headers):
        res = client.post("/api/v1/sync/pull", headers=auth_headers)
        assert res.status_code == 502
        assert res.get_json()["code"] == "ERR_REMOTE"

    def test_change_script_download(self, client, auth_headers):
        res = client.get("/api/v1/sync/change-script", headers=auth_headers)
        assert res.status_code == 200
        assert res.mimetype == "application/sql"
        script = res.get_data(as_text=True)
        assert "BEGIN;" in script
        assert "INSERT INTO projects" in script

    def test_change_script_push_falls_back_to_sink(self, app, client, auth_headers, sink, monkeypatch):
        monkeypatch.setattr(app.extensions["sync"], "sink", sink)
        res = client.post("/api/v1/sync/change-script", headers=auth_headers)
        assert res.status_code == 200
        body = res.get_json()
        assert body["direct"] is False
        assert body["location"].startswith("memory://Change_Script_")

    def test_export_to_sink(self, app, client, auth_headers, sink, monkeypatch):
        monkeypatch.setattr(app.extensions["sync"], "sink", sink)
        res = client.post("/api/v1/sync/export", headers=auth_headers)
        assert res.get_json()["counts"]["projects"] == 1

    def test_busy_answers_409(self, app, client, auth_headers, monkeypatch):
        busy = SyncResult("export", "busy", message="export already in progress")
        monkeypatch.setattr(app.extensions["sync"], "export_to_sink", lambda: busy)
        res = client.post("/api/v1/sync/export", headers=auth_headers)
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_SYNC_BUSY"

    def test_status(self, client, auth_headers):
        status = client.get("/api/v1/sync/status", headers=auth_headers).get_json()
        assert set(status) == {"export", "import", "pull", "change_script"}


# ── Health & errors ──────────────────────────────────────────────────────


class TestHealth:
    def test_ready(self, client):
        assert client.get("/api/v1/health/ready").get_json() == {"status": "ok"}

    def test_live(self, client):
        res = client.get("/api/v1/health/live")
        assert res.status_code == 200
        assert res.get_json()["checks"]["storage"]["backend"] == "relational"

    def test_unknown_api_route_is_json(self, client, auth_headers):
        res = client.get("/api/v1/nothing-here", headers=auth_headers)
        assert res.status_code == 404
        assert "error" in res.get_json()

    def test_request_id_header(self, client):
        res = client.get("/api/v1/health/ready", headers={"X-Request-ID": "abc-123"})
        assert res.headers["X-Request-ID"] == "abc-123"
