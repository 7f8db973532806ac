from __future__ import annotations

import pytest
from httpx import AsyncClient

from conftest import login
from taskflow.config import settings

pytestmark = pytest.mark.anyio


async def test_register_logs_the_new_user_in(client: AsyncClient) -> None:
  res = await client.post(
    "/api/auth/register",
    json={"username": "carol", "password": "carol1234", "email": "Carol@Example.com", "firstName": "Carol"},
  )
  assert res.status_code == 200, res.text
  body = res.json()
  assert body["username"] == "carol"
  assert body["email"] == "carol@example.com"
  assert "passwordHash" not in body and "password_hash" not in body

  me = await client.get("/api/auth/user")
  assert me.status_code == 200, me.text
  assert me.json()["id"] == body["id"]


async def test_register_rejects_duplicates(client: AsyncClient) -> None:
  res = await client.post("/api/auth/register", json={"username": "alice", "password": "whatever"})
  assert res.status_code == 400
  assert res.json() == {"message": "Username already taken"}

  res = await client.post("/api/auth/register", json={"username": "alice2", "password": "x", "email": "bob@taskflow.local"})
  assert res.status_code == 400
  assert res.json() == {"message": "Email already in use"}


async def test_login_and_logout(client: AsyncClient) -> None:
  user = await login(client, "alice")
  assert user["username"] == "alice"
  assert (await client.get("/api/auth/user")).status_code == 200

  res = await client.post("/api/auth/logout")
  assert res.status_code == 200
  assert res.json() == {"success": True}

  client.cookies.clear()
  res = await client.get("/api/auth/user")
  assert res.status_code == 401
  assert res.json() == {"message": "Not authenticated"}


async def test_logout_invalidates_the_session_server_side(client: AsyncClient) -> None:
  await login(client, "alice")
  sid = client.cookies.get("tf_session")
  assert sid
  await client.post("/api/auth/logout")

  client.cookies.clear()
  res = await client.get("/api/auth/user", headers={"Cookie": f"tf_session={sid}"})
  assert res.status_code == 401


async def test_login_with_wrong_password(client: AsyncClient) -> None:
  res = await client.post("/api/auth/login", json={"username": "alice", "password": "nope"})
  assert res.status_code == 401
  assert res.json() == {"message": "Invalid username or password"}


async def test_protected_routes_require_a_session(client: AsyncClient) -> None:
  for path in ("/api/boards", "/api/tasks/my", "/api/notifications", "/api/reminders", "/api/reminders/due"):
    res = await client.get(path)
    assert res.status_code == 401, path
    assert res.json()["message"] == "Not authenticated"


async def test_login_rate_limited(client: AsyncClient) -> None:
  orig_ip = settings.rate_limit_login_ip_per_minute
  orig_user = settings.rate_limit_login_username_per_minute
  settings.rate_limit_login_ip_per_minute = 3
  settings.rate_limit_login_username_per_minute = 3
  try:
    for _ in range(3):
      r = await client.post("/api/auth/login", json={"username": "nobody", "password": "bad"})
      assert r.status_code == 401, r.text
    r = await client.post("/api/auth/login", json={"username": "nobody", "password": "bad"})
    assert r.status_code == 429, r.text
    assert r.headers.get("retry-after")
    assert r.json() == {"message": "Too many requests"}
  finally:
    settings.rate_limit_login_ip_per_minute = orig_ip
    settings.rate_limit_login_username_per_minute = orig_user
