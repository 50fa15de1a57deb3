"""Tests for auth endpoints: register, login, refresh, logout, logout-all and the access-token gate."""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient

from app.config import Settings, get_settings
from app.core.auth import TokenCodec
from app.main import app as fastapi_app
from conftest import USER, bearer, login, register


@pytest.mark.asyncio
async def test_register(client: AsyncClient):
    resp = await register(client)
    assert resp.status_code == 201
    assert resp.json() == {"message": "User registered"}


@pytest.mark.asyncio
async def test_register_duplicate_username(client: AsyncClient):
    assert (await register(client)).status_code == 201
    resp = await register(client, password="anotherpass")
    assert resp.status_code == 409
    assert resp.json() == {"message": "Username already exists"}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body, field",
    [
        ({"username": "ab", "password": "testpass"}, "username"),
        ({"username": "x" * 51, "password": "testpass"}, "username"),
        ({"username": "bad name!", "password": "testpass"}, "username"),
        ({"username": "testuser", "password": "short"}, "password"),
        ({"username": "testuser", "password": "p" * 101}, "password"),
        ({"password": "testpass"}, "username"),
        ({"username": "testuser"}, "password"),
    ],
)
async def test_register_validation(client: AsyncClient, body, field):
    resp = await client.post("/public/register", json=body)
    assert resp.status_code == 400
    data = resp.json()
    assert data["message"] == "Validation error"
    assert field in [d["field"] for d in data["details"]]


@pytest.mark.asyncio
async def test_register_invalid_json(client: AsyncClient):
    resp = await client.post(
        "/public/register",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_production_requires_mixed_password(client: AsyncClient, settings):
    fastapi_app.dependency_overrides[get_settings] = lambda: Settings(app_env="production")
    weak = await client.post("/public/register", json={"username": "produser", "password": "password123"})
    assert weak.status_code == 400
    assert weak.json()["details"][0]["field"] == "password"
    strong = await client.post("/public/register", json={"username": "produser", "password": "Password123"})
    assert strong.status_code == 201


@pytest.mark.asyncio
async def test_login_returns_distinct_valid_tokens(client: AsyncClient, settings):
    await register(client)
    resp = await login(client)
    assert resp.status_code == 200
    data = resp.json()
    assert set(data) == {"accessToken", "refreshToken"}
    assert data["accessToken"] != data["refreshToken"]
    codec = TokenCodec(settings)
    assert codec.verify_access(data["accessToken"]).payload["username"] == USER["username"]
    assert codec.verify_refresh(data["refreshToken"]).payload["username"] == USER["username"]


@pytest.mark.asyncio
async def test_login_failures_share_one_shape(client: AsyncClient):
    await register(client)
    wrong_password = await login(client, password="wrongpass")
    unknown_user = await login(client, username="nobody")
    assert wrong_password.status_code == unknown_user.status_code == 401
    assert wrong_password.json() == unknown_user.json() == {"message": "Invalid credentials"}


@pytest.mark.asyncio
async def test_gate_accepts_fresh_access_token(client: AsyncClient, tokens):
    access, _ = tokens
    resp = await client.get("/auth", headers=bearer(access))
    assert resp.status_code == 200
    assert resp.text == f"Hello {USER['username']}"


@pytest.mark.asyncio
@pytest.mark.parametrize("headers", [None, {"Authorization": ""}, {"Authorization": "Bearer"}, {"Authorization": "Basic abc"}])
async def test_gate_without_token(client: AsyncClient, headers):
    resp = await client.get("/auth", headers=headers)
    assert resp.status_code == 401
    assert resp.json() == {"message": "No token"}


@pytest.mark.asyncio
async def test_gate_rejects_corrupted_token(client: AsyncClient, tokens):
    access, _ = tokens
    header, payload, _ = access.split(".")
    resp = await client.get("/auth", headers=bearer(f"{header}.{payload}.{'A' * 43}"))
    assert resp.status_code == 403
    assert resp.json() == {"message": "Invalid token"}


@pytest.mark.asyncio
async def test_gate_rejects_expired_token(client: AsyncClient, settings):
    stale = TokenCodec(settings).mint_access("testuser", now=datetime.now(timezone.utc) - timedelta(hours=1))
    resp = await client.get("/auth", headers=bearer(stale))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_gate_rejects_refresh_token(client: AsyncClient, tokens):
    _, refresh = tokens
    resp = await client.get("/auth", headers=bearer(refresh))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_gate_needs_no_user_record(client: AsyncClient, settings):
    """Access tokens are stateless: a validly signed token passes without a stored user."""
    token = TokenCodec(settings).mint_access("ghost")
    resp = await client.get("/auth", headers=bearer(token))
    assert resp.status_code == 200
    assert resp.text == "Hello ghost"


@pytest.mark.asyncio
async def test_refresh_issues_working_access_token(client: AsyncClient, tokens):
    _, refresh = tokens
    resp = await client.post("/public/refresh", json={"refreshToken": refresh})
    assert resp.status_code == 200
    new_access = resp.json()["accessToken"]
    gated = await client.get("/auth", headers=bearer(new_access))
    assert gated.status_code == 200
    # Not rotated: the same refresh token keeps working
    again = await client.post("/public/refresh", json={"refreshToken": refresh})
    assert again.status_code == 200


@pytest.mark.asyncio
async def test_refresh_touches_last_used(client: AsyncClient, tokens):
    access, refresh = tokens
    before = (await client.get("/auth/sessions", headers=bearer(access))).json()[0]
    assert before["createdAt"] == before["lastUsed"]
    await client.post("/public/refresh", json={"refreshToken": refresh})
    after = (await client.get("/auth/sessions", headers=bearer(access))).json()[0]
    assert after["createdAt"] == before["createdAt"]
    assert after["lastUsed"] > before["lastUsed"]


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["/public/refresh", "/public/logout", "/public/logout-all"])
async def test_garbage_refresh_token(client: AsyncClient, path):
    resp = await client.post(path, json={"refreshToken": "garbage"})
    assert resp.status_code == 401
    assert resp.json() == {"message": "Invalid refresh token"}


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["/public/refresh", "/public/logout", "/public/logout-all"])
@pytest.mark.parametrize("body", [{}, {"refreshToken": ""}])
async def test_refresh_token_body_required(client: AsyncClient, path, body):
    resp = await client.post(path, json=body)
    assert resp.status_code == 400
    assert resp.json()["message"] == "Validation error"


@pytest.mark.asyncio
async def test_refresh_with_expired_token(client: AsyncClient, settings):
    stale = TokenCodec(settings).mint_refresh(
        "testuser", "0" * 64, now=datetime.now(timezone.utc) - timedelta(days=8)
    )
    resp = await client.post("/public/refresh", json={"refreshToken": stale})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_signed_refresh_token_without_record_is_rejected(client: AsyncClient, settings, tokens):
    forged = TokenCodec(settings).mint_refresh(USER["username"], "f" * 64)
    resp = await client.post("/public/refresh", json={"refreshToken": forged})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_logout_revokes_only_that_token(client: AsyncClient, tokens):
    _, first = tokens
    second = (await login(client)).json()["refreshToken"]
    resp = await client.post("/public/logout", json={"refreshToken": first})
    assert resp.status_code == 200
    assert resp.json() == {"message": "Logged out"}
    assert (await client.post("/public/refresh", json={"refreshToken": first})).status_code == 401
    assert (await client.post("/public/refresh", json={"refreshToken": second})).status_code == 200


@pytest.mark.asyncio
async def test_logout_is_idempotent(client: AsyncClient, tokens):
    _, refresh = tokens
    assert (await client.post("/public/logout", json={"refreshToken": refresh})).status_code == 200
    assert (await client.post("/public/logout", json={"refreshToken": refresh})).status_code == 200


@pytest.mark.asyncio
async def test_logout_all_revokes_every_token(client: AsyncClient, tokens):
    _, first = tokens
    others = [(await login(client)).json()["refreshToken"] for _ in range(2)]
    resp = await client.post("/public/logout-all", json={"refreshToken": first})
    assert resp.status_code == 200
    assert resp.json() == {"message": "Logged out from all devices"}
    for token in [first, *others]:
        assert (await client.post("/public/refresh", json={"refreshToken": token})).status_code == 401


@pytest.mark.asyncio
async def test_logout_all_leaves_other_users_alone(client: AsyncClient, tokens):
    _, mine = tokens
    await register(client, username="otheruser", password="otherpass")
    theirs = (await login(client, username="otheruser", password="otherpass")).json()["refreshToken"]
    await client.post("/public/logout-all", json={"refreshToken": mine})
    assert (await client.post("/public/refresh", json={"refreshToken": theirs})).status_code == 200


@pytest.mark.asyncio
async def test_access_token_survives_logout(client: AsyncClient, tokens):
    """Access tokens cannot be revoked before expiry."""
    access, refresh = tokens
    await client.post("/public/logout-all", json={"refreshToken": refresh})
    assert (await client.get("/auth", headers=bearer(access))).status_code == 200


@pytest.mark.asyncio
async def test_retention_cap_evicts_oldest_first(client: AsyncClient):
    await register(client)
    issued = [(await login(client, device=f"device-{i}")).json() for i in range(6)]
    refresh_tokens = [pair["refreshToken"] for pair in issued]
    assert len(set(refresh_tokens)) == 6

    sessions = (await client.get("/auth/sessions", headers=bearer(issued[-1]["accessToken"]))).json()
    assert [s["deviceInfo"] for s in sessions] == [f"device-{i}" for i in range(1, 6)]

    assert (await client.post("/public/refresh", json={"refreshToken": refresh_tokens[0]})).status_code == 401
    for token in refresh_tokens[1:]:
        assert (await client.post("/public/refresh", json={"refreshToken": token})).status_code == 200


@pytest.mark.asyncio
async def test_retention_cap_ignores_recent_use(client: AsyncClient):
    """Eviction follows login order even if the oldest session was just refreshed."""
    await register(client)
    oldest = (await login(client)).json()["refreshToken"]
    for _ in range(4):
        await login(client)
    assert (await client.post("/public/refresh", json={"refreshToken": oldest})).status_code == 200
    await login(client)
    assert (await client.post("/public/refresh", json={"refreshToken": oldest})).status_code == 401


@pytest.mark.asyncio
async def test_sessions_hide_token_and_default_device(client: AsyncClient):
    await register(client)
    access = (await login(client, device="")).json()["accessToken"]
    resp = await client.get("/auth/sessions", headers=bearer(access))
    assert resp.status_code == 200
    [session] = resp.json()
    assert session["deviceInfo"] == "Unknown"
    assert set(session) == {"tokenId", "deviceInfo", "createdAt", "lastUsed"}


@pytest.mark.asyncio
async def test_sessions_requires_token(client: AsyncClient):
    assert (await client.get("/auth/sessions")).status_code == 401


@pytest.mark.asyncio
async def test_root_and_health(client: AsyncClient):
    assert (await client.get("/")).text == "Hello World!"
    assert (await client.get("/health")).json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_long_user_agent_is_truncated_to_column_size(client: AsyncClient):
    await register(client)
    resp = await login(client, device="A" * 600)
    assert resp.status_code == 200
    [session] = (await client.get("/auth/sessions", headers=bearer(resp.json()["accessToken"]))).json()
    assert session["deviceInfo"] == "A" * 512


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["/public/register", "/public/login"])
async def test_openapi_documents_credentials_body(client: AsyncClient, path):
    spec = (await client.get("/openapi.json")).json()
    body = spec["paths"][path]["post"]["requestBody"]
    assert body["required"] is True
    schema = body["content"]["application/json"]["schema"]
    assert set(schema["properties"]) == {"username", "password"}
