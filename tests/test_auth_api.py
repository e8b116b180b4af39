"""End-to-end tests for the /api/auth routes.

Requests go through the real app (routing, dependencies, validation,
exception handlers) with the database swapped for in-memory SQLite.
"""

import httpx
from sqlalchemy.exc import OperationalError

from conftest import cookie_header, cookie_value
from device_auth.core.database import get_db
from device_auth.main import app

REGISTER = "/api/auth/register"
LOGIN = "/api/auth/login"
LOGOUT = "/api/auth/logout"
REFRESH = "/api/auth/refresh-token"
HISTORY = "/api/auth/history-session"


def _device(device_id: str = "D1", **extra: str) -> dict[str, str]:
    return {"X-Device-Id": device_id, **extra}


def _bearer(token: str, device_id: str = "D1") -> dict[str, str]:
    return {**_device(device_id), "Authorization": f"Bearer {token}"}


async def _register(client: httpx.AsyncClient, account_name: str = "alice", password: str = "secret123"):
    return await client.post(REGISTER, json={"account_name": account_name, "password": password, "name": "Alice"})


async def _login(client: httpx.AsyncClient, device_id: str = "D1", account_name: str = "alice", password: str = "secret123"):
    return await client.post(
        LOGIN,
        json={"account_name": account_name, "password": password},
        headers=_device(device_id, **{"X-Mac-Id": "aa:bb", "User-Agent": "api-test/1.0"}),
    )


async def _refresh(client: httpx.AsyncClient, cookie: str | None, device_id: str = "D1"):
    # send exactly the cookie under test, never whatever the jar holds
    client.cookies.clear()
    headers = _device(device_id)
    if cookie is not None:
        headers["Cookie"] = f"refreshToken={cookie}"
    return await client.post(REFRESH, headers=headers)


async def test_health(client: httpx.AsyncClient) -> None:
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


class TestRegister:
    async def test_register(self, client: httpx.AsyncClient) -> None:
        resp = await _register(client)
        assert resp.status_code == 200
        assert resp.json() is True

    async def test_duplicate_is_400(self, client: httpx.AsyncClient) -> None:
        await _register(client)
        resp = await _register(client)
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Account already registered"

    async def test_short_password_is_422(self, client: httpx.AsyncClient) -> None:
        resp = await _register(client, password="123")
        assert resp.status_code == 422

    async def test_bad_email_is_422(self, client: httpx.AsyncClient) -> None:
        resp = await client.post(
            REGISTER, json={"account_name": "alice", "password": "secret123", "email": "not-an-email"},
        )
        assert resp.status_code == 422


class TestLogin:
    async def test_login_returns_user_and_cookie(self, client: httpx.AsyncClient) -> None:
        await _register(client)
        resp = await _login(client)

        assert resp.status_code == 200
        body = resp.json()
        assert body["account_name"] == "alice"
        assert body["name"] == "Alice"
        assert body["access_token"]
        assert "password_hash" not in body
        assert cookie_value(resp)
        assert "httponly" in cookie_header(resp).lower()

    async def test_missing_device_header_is_400(self, client: httpx.AsyncClient) -> None:
        await _register(client)
        resp = await client.post(LOGIN, json={"account_name": "alice", "password": "secret123"})
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Missing device identifier"

    async def test_oversized_device_header_is_400(self, client: httpx.AsyncClient) -> None:
        await _register(client)
        resp = await _login(client, device_id="x" * 300)
        assert resp.status_code == 400

    async def test_unknown_account_and_wrong_password_look_alike(self, client: httpx.AsyncClient) -> None:
        await _register(client)
        unknown = await _login(client, account_name="ghost")
        wrong = await _login(client, password="wrong-password")

        assert unknown.status_code == wrong.status_code == 400
        assert unknown.json() == wrong.json()


class TestRefresh:
    async def test_refresh_rotates_and_old_cookie_dies(self, client: httpx.AsyncClient) -> None:
        await _register(client)
        login = await _login(client)
        r1 = cookie_value(login)

        first = await _refresh(client, r1)
        assert first.status_code == 200
        r2 = cookie_value(first)
        assert r2 and r2 != r1
        assert first.json()["access_token"] != login.json()["access_token"]

        reused = await _refresh(client, r1)
        assert reused.status_code == 400
        assert reused.json()["detail"] == "Refresh token is not valid"

        second = await _refresh(client, r2)
        assert second.status_code == 200

    async def test_missing_cookie(self, client: httpx.AsyncClient) -> None:
        resp = await _refresh(client, None)
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Refresh token not found"

    async def test_garbage_cookie(self, client: httpx.AsyncClient) -> None:
        resp = await _refresh(client, "not-a-token")
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Refresh token is not valid"


class TestAccessGuard:
    async def test_old_access_token_rejected_after_refresh(self, client: httpx.AsyncClient) -> None:
        await _register(client)
        login = await _login(client)
        t1 = login.json()["access_token"]

        assert (await client.get(HISTORY, headers=_bearer(t1))).status_code == 200

        refreshed = await _refresh(client, cookie_value(login))
        t2 = refreshed.json()["access_token"]

        assert (await client.get(HISTORY, headers=_bearer(t1))).status_code == 401
        assert (await client.get(HISTORY, headers=_bearer(t2))).status_code == 200

    async def test_no_token_is_401(self, client: httpx.AsyncClient) -> None:
        resp = await client.get(HISTORY, headers=_device())
        assert resp.status_code == 401

    async def test_malformed_token_is_401(self, client: httpx.AsyncClient) -> None:
        resp = await client.get(HISTORY, headers=_bearer("abc.def.ghi"))
        assert resp.status_code == 401
        assert resp.headers["www-authenticate"] == "Bearer"


class TestLogout:
    async def test_logout_clears_cookie_and_revokes_tokens(self, client: httpx.AsyncClient) -> None:
        await _register(client)
        login = await _login(client)
        token = login.json()["access_token"]

        resp = await client.post(LOGOUT, headers=_bearer(token))
        assert resp.status_code == 200
        assert resp.json() == {"detail": "Logged out successfully"}
        assert "max-age=0" in cookie_header(resp).lower()

        assert (await client.get(HISTORY, headers=_bearer(token))).status_code == 401
        assert (await _refresh(client, cookie_value(login))).status_code == 400

    async def test_logout_other_device_is_403(self, client: httpx.AsyncClient) -> None:
        await _register(client)
        token = (await _login(client, "D1")).json()["access_token"]

        # the token is valid for D1, but the request claims D2, which has no session
        resp = await client.post(LOGOUT, headers={**_bearer(token), "X-Device-Id": "D2"})
        assert resp.status_code == 403

        assert (await client.get(HISTORY, headers=_bearer(token))).status_code == 200


class TestHistory:
    async def test_two_devices(self, client: httpx.AsyncClient) -> None:
        await _register(client)
        token = (await _login(client, "D1")).json()["access_token"]
        await _login(client, "D2")

        resp = await client.get(HISTORY, headers=_bearer(token))
        assert resp.status_code == 200
        sessions = resp.json()
        assert sorted(s["device_id"] for s in sessions) == ["D1", "D2"]
        for s in sessions:
            assert "secret_key" not in s
            assert "refresh_token" not in s
        d1 = next(s for s in sessions if s["device_id"] == "D1")
        assert d1["mac_id"] == "aa:bb"
        assert d1["user_agent"] == "api-test/1.0"


async def test_storage_failure_is_opaque_500(client: httpx.AsyncClient) -> None:
    async def _broken_db():
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    app.dependency_overrides[get_db] = _broken_db
    resp = await _register(client)

    assert resp.status_code == 500
    assert resp.json() == {"detail": "Internal server error"}
