"""
Field-force - Auth & role gates
Run: cd backend && pytest tests/test_auth.py -v
"""

import pytest

from tests.conftest import PASSWORD, make_user


class TestLogin:
    @pytest.mark.asyncio
    async def test_login_me_logout(self, client, db):
        user = await make_user("Manager", "Meera Manager")
        r = await client.post("/api/auth/login", json={"email": user["email"].upper(), "password": PASSWORD})
        assert r.status_code == 200, r.text
        token = r.json()["data"]["token"]
        headers = {"Authorization": f"Bearer {token}"}

        me = await client.get("/api/auth/me", headers=headers)
        assert me.json()["data"]["user"]["name"] == "Meera Manager"
        assert "password" not in me.json()["data"]["user"]
        assert await db.activity_logs.count_documents({"action": "login"}) == 1

        assert (await client.post("/api/auth/logout", headers=headers)).status_code == 200
        assert (await client.get("/api/auth/me", headers=headers)).status_code == 401

    @pytest.mark.asyncio
    async def test_wrong_password(self, client):
        user = await make_user("MR")
        r = await client.post("/api/auth/login", json={"email": user["email"], "password": "nope"})
        assert r.status_code == 401

    @pytest.mark.asyncio
    async def test_inactive_user_rejected(self, client):
        user = await make_user("MR", is_active=False)
        r = await client.post("/api/auth/login", json={"email": user["email"], "password": PASSWORD})
        assert r.status_code == 403

    @pytest.mark.asyncio
    async def test_no_token(self, client):
        assert (await client.get("/api/visits")).status_code == 401

    @pytest.mark.asyncio
    async def test_expired_session(self, client, db):
        user = await make_user("Owner")
        await db.sessions.insert_one({
            "token": "expired", "user_id": user["id"],
            "created_at": "2024-01-01T00:00:00.000+00:00",
            "expires_at": "2024-01-08T00:00:00.000+00:00",
        })
        r = await client.get("/api/auth/me", headers={"Authorization": "Bearer expired"})
        assert r.status_code == 401


class TestRoleGate:
    @pytest.mark.asyncio
    async def test_mr_blocked_from_summary(self, client, team):
        r = await client.get("/api/coverage/summary", headers=team["h_mr1"])
        assert r.status_code == 403
        assert "Allowed roles" in r.json()["detail"]

    @pytest.mark.asyncio
    async def test_error_envelope(self, client, team):
        r = await client.get("/api/visits/unknown", headers=team["h_owner"])
        assert r.json() == {"success": False, "message": "Visit not found", "detail": "Visit not found"}
