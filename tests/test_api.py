"""Tests for the HTTP API."""

import io

from sqlalchemy import func, select

from auth import create_access_token
from models import Agent, Task

SCENARIO_CSV = b"FirstName,Phone,Notes\nAlice,+11234567890,call back\n,+1999,x\nBob,555-1212,\n"


def _csv_file(content=SCENARIO_CSV, name="contacts.csv", ctype="text/csv"):
    return {"file": (name, io.BytesIO(content), ctype)}


class TestHealth:

    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["success"] is True


class TestAuth:

    def test_register_then_login(self, client):
        response = client.post(
            "/api/auth/register",
            json={"name": "Root", "email": "Root@Example.com", "password": "secret123"},
        )
        assert response.status_code == 201
        data = response.json()
        assert data["token"]
        assert data["user"]["email"] == "root@example.com"
        assert data["user"]["role"] == "admin"

        response = client.post("/api/auth/login", json={"email": "root@example.com", "password": "secret123"})
        assert response.status_code == 200
        token = response.json()["token"]

        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200
        assert response.json()["user"]["name"] == "Root"

    def test_register_duplicate_email(self, client, admin):
        response = client.post(
            "/api/auth/register",
            json={"name": "Again", "email": "admin@example.com", "password": "secret123"},
        )
        assert response.status_code == 400
        assert response.json()["message"] == "User with this email already exists"

    def test_register_validation(self, client):
        response = client.post("/api/auth/register", json={"name": "R", "email": "nope", "password": "1"})
        assert response.status_code == 400
        data = response.json()
        assert data["success"] is False
        assert data["message"] == "Validation error"
        assert len(data["errors"]) == 3

    def test_login_wrong_password(self, client, admin):
        response = client.post("/api/auth/login", json={"email": "admin@example.com", "password": "wrong-one"})
        assert response.status_code == 401

    def test_missing_token(self, client):
        response = client.get("/api/agents")
        assert response.status_code == 401
        assert response.json()["message"] == "No token provided, authorization denied"

    def test_garbage_token(self, client):
        response = client.get("/api/agents", headers={"Authorization": "Bearer not.a.jwt"})
        assert response.status_code == 401
        assert response.json()["message"] == "Token is not valid"

    def test_expired_token(self, client, admin):
        token = create_access_token(admin.id, expires_hours=-1)
        response = client.get("/api/agents", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json()["message"] == "Token has expired"

    def test_token_for_deleted_user(self, client):
        token = create_access_token(9999)
        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert "user not found" in response.json()["message"]

    def test_non_admin_cannot_manage_agents(self, client, user_headers):
        response = client.get("/api/agents", headers=user_headers)
        assert response.status_code == 403


class TestAgents:

    payload = {"name": "Ann Agent", "email": "Ann@Example.com", "mobile": "+15551234567", "password": "secret123"}

    def test_create_and_list(self, client, admin_headers):
        response = client.post("/api/agents", json=self.payload, headers=admin_headers)
        assert response.status_code == 201
        agent = response.json()["agent"]
        assert agent["email"] == "ann@example.com"
        assert "password" not in agent and "password_hash" not in agent

        response = client.get("/api/agents", headers=admin_headers)
        data = response.json()
        assert data["count"] == 1
        assert data["agents"][0]["id"] == agent["id"]

    def test_password_is_hashed(self, client, admin_headers, db_session):
        client.post("/api/agents", json=self.payload, headers=admin_headers)
        stored = db_session.execute(select(Agent.password_hash)).scalar_one()
        assert stored != "secret123"
        assert stored.startswith("$2")

    def test_duplicate_email(self, client, admin_headers):
        client.post("/api/agents", json=self.payload, headers=admin_headers)
        response = client.post("/api/agents", json=self.payload, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["message"] == "Agent with this email already exists"

    def test_invalid_mobile(self, client, admin_headers):
        response = client.post("/api/agents", json={**self.payload, "mobile": "5551234567"}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["message"] == "Validation error"

    def test_get_update_delete(self, client, admin_headers):
        agent_id = client.post("/api/agents", json=self.payload, headers=admin_headers).json()["agent"]["id"]

        response = client.get(f"/api/agents/{agent_id}", headers=admin_headers)
        assert response.json()["agent"]["name"] == "Ann Agent"

        response = client.put(f"/api/agents/{agent_id}", json={"name": "Ann B"}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["agent"]["name"] == "Ann B"
        assert response.json()["agent"]["mobile"] == "+15551234567"

        response = client.delete(f"/api/agents/{agent_id}", headers=admin_headers)
        assert response.status_code == 200

        response = client.get(f"/api/agents/{agent_id}", headers=admin_headers)
        assert response.status_code == 404
        assert response.json()["message"] == "Agent not found"

    def test_update_to_taken_email(self, client, admin_headers):
        client.post("/api/agents", json=self.payload, headers=admin_headers)
        other = {**self.payload, "email": "bo@example.com"}
        other_id = client.post("/api/agents", json=other, headers=admin_headers).json()["agent"]["id"]

        response = client.put(f"/api/agents/{other_id}", json={"email": "ann@example.com"}, headers=admin_headers)
        assert response.status_code == 400

    def test_missing_agent(self, client, admin_headers):
        assert client.put("/api/agents/404", json={"name": "X"}, headers=admin_headers).status_code == 404
        assert client.delete("/api/agents/404", headers=admin_headers).status_code == 404


class TestUpload:

    def test_upload_distributes(self, client, admin_headers, make_agents, upload_dir, db_session):
        agents = make_agents(2)

        response = client.post("/api/upload", files=_csv_file(), headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["message"] == "Successfully uploaded and distributed 2 tasks"
        summary = data["summary"]
        assert summary["total_records"] == 2
        assert summary["validation_errors"] == ["Row 2: First Name is required"]
        assignments = {
            d["agent_id"]: [r["first_name"] for r in d["sample_records"]] for d in summary["distribution"]
        }
        assert assignments == {agents[0].id: ["Alice"], agents[1].id: ["Bob"]}
        assert db_session.execute(select(func.count(Task.id))).scalar_one() == 2
        assert list(upload_dir.iterdir()) == []

    def test_upload_requires_auth(self, client):
        response = client.post("/api/upload", files=_csv_file())
        assert response.status_code == 401

    def test_upload_without_file(self, client, admin_headers):
        response = client.post("/api/upload", headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["message"] == "Please select a file to upload"

    def test_upload_wrong_type(self, client, admin_headers, make_agents):
        make_agents(1)
        response = client.post(
            "/api/upload", files=_csv_file(b"hello", "notes.txt", "text/plain"), headers=admin_headers
        )
        assert response.status_code == 400
        assert "CSV, XLS, or XLSX" in response.json()["message"]

    def test_upload_without_agents(self, client, admin_headers, upload_dir, db_session):
        response = client.post("/api/upload", files=_csv_file(), headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["message"].startswith("No agents found")
        assert db_session.execute(select(func.count(Task.id))).scalar_one() == 0
        assert list(upload_dir.iterdir()) == []

    def test_upload_no_valid_rows(self, client, admin_headers, make_agents, upload_dir):
        make_agents(1)
        response = client.post(
            "/api/upload", files=_csv_file(b"FirstName,Phone\n,5551234567\n"), headers=admin_headers
        )

        assert response.status_code == 400
        data = response.json()
        assert data["message"] == "No valid tasks found in the file"
        assert data["errors"] == ["Row 1: First Name is required"]
        assert list(upload_dir.iterdir()) == []

    def test_upload_too_large(self, client, admin_headers, upload_dir, monkeypatch):
        import upload

        monkeypatch.setattr(upload, "MAX_UPLOAD_BYTES", 16)
        response = client.post("/api/upload", files=_csv_file(), headers=admin_headers)

        assert response.status_code == 413
        assert list(upload_dir.iterdir()) == []

    def test_task_views(self, client, admin_headers, make_agents):
        make_agents(2)
        client.post("/api/upload", files=_csv_file(), headers=admin_headers)

        response = client.get("/api/upload/tasks", headers=admin_headers)
        data = response.json()
        assert data["count"] == 2
        assert {t["agent"]["name"] for t in data["tasks"]} == {"Agent 1", "Agent 2"}

        response = client.get("/api/upload/tasks/by-agent", headers=admin_headers)
        distribution = response.json()["distribution"]
        assert [d["agent_name"] for d in distribution] == ["Agent 1", "Agent 2"]
        assert [d["record_count"] for d in distribution] == [1, 1]
