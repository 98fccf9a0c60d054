"""
Test cases for the identity endpoints.
"""
import pytest
from httpx import AsyncClient, ASGITransport

from marketplace.identity.service import TASKER_REGISTERED_MESSAGE

PASSWORD = "Secret123!"


def client_for(app):
    return AsyncClient(base_url="http://test", transport=ASGITransport(app=app))


@pytest.mark.asyncio
async def test_identity_ping(api):
    """Test that the identity service is responding."""
    async with client_for(api) as ac:
        response = await ac.get("/auth/ping")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert response.json()["message"] == "Identity service is alive"
        assert "timestamp" in response.json()["data"]


@pytest.mark.asyncio
async def test_register_then_me(api):
    """Registering returns a token that /auth/me accepts."""
    async with client_for(api) as ac:
        response = await ac.post("/auth/register", json={
            "full_name": "Jane Doe",
            "email": "jane@x.com",
            "username": "janed",
            "password": PASSWORD
        })

        assert response.status_code == 200
        assert response.json()["message"] == "User registered successfully"
        token = response.json()["data"]["token"]

        me_response = await ac.get(
            "/auth/me",
            headers={"Authorization": f"Bearer {token}"}
        )

        assert me_response.status_code == 200
        data = me_response.json()["data"]
        assert data["username"] == "janed"
        assert data["email"] == "jane@x.com"
        assert data["jti"]


@pytest.mark.asyncio
async def test_register_duplicate_is_bad_request(api):
    payload = {
        "full_name": "Jane Doe",
        "email": "jane@x.com",
        "username": "janed",
        "password": PASSWORD
    }
    async with client_for(api) as ac:
        first = await ac.post("/auth/register", json=payload)
        second = await ac.post("/auth/register", json=payload)

    assert first.status_code == 200
    assert second.status_code == 400
    assert second.json()["detail"] == "User with email jane@x.com or username janed already exists."


@pytest.mark.asyncio
async def test_register_weak_password_is_bad_request(api):
    async with client_for(api) as ac:
        response = await ac.post("/auth/register", json={
            "full_name": "Jane Doe",
            "email": "jane@x.com",
            "username": "janed",
            "password": "password"
        })

    assert response.status_code == 400
    assert response.json()["detail"].startswith("Unable to register user janed errors: ")


@pytest.mark.asyncio
async def test_login_with_username_and_email(api):
    async with client_for(api) as ac:
        await ac.post("/auth/register", json={
            "full_name": "Jane Doe",
            "email": "jane@x.com",
            "username": "janed",
            "password": PASSWORD
        })
        by_name = await ac.post("/auth/login", json={"username": "janed", "password": PASSWORD})
        by_email = await ac.post("/auth/login", json={"username": "jane@x.com", "password": PASSWORD})

    assert by_name.status_code == 200
    assert by_email.status_code == 200
    assert by_name.json()["data"]["token"] != by_email.json()["data"]["token"]


@pytest.mark.asyncio
async def test_invalid_login(api):
    """Unknown users and wrong passwords get the same 401."""
    async with client_for(api) as ac:
        await ac.post("/auth/register", json={
            "full_name": "Jane Doe",
            "email": "jane@x.com",
            "username": "janed",
            "password": PASSWORD
        })
        wrong_password = await ac.post("/auth/login", json={"username": "janed", "password": "Wrong123!"})
        unknown = await ac.post("/auth/login", json={"username": "janed2", "password": PASSWORD})

    assert wrong_password.status_code == 401
    assert unknown.status_code == 401
    assert wrong_password.json()["detail"] == "Unable to authenticate user janed"
    assert unknown.json()["detail"] == "Unable to authenticate user janed2"
    assert wrong_password.headers["www-authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_register_tasker(api, identity_db):
    async with client_for(api) as ac:
        response = await ac.post("/auth/register-tasker", json={
            "username": "bob_fixes",
            "email": "bob@x.com",
            "full_name": "Bob Builder",
            "password": PASSWORD,
            "skills": ["plumbing"],
            "experience_level": "Intermediate",
            "hourly_rate": "25.00",
            "selected_category": "Home Repair",
            "category_id": 3
        })

    assert response.status_code == 200
    assert response.json()["message"] == TASKER_REGISTERED_MESSAGE
    assert response.json()["data"] is None
    assert len(identity_db.profiles) == 1
    assert identity_db.profiles[0].category_id == 3


@pytest.mark.asyncio
async def test_register_tasker_rejection_is_bad_request(api):
    async with client_for(api) as ac:
        response = await ac.post("/auth/register-tasker", json={
            "username": "bob fixes",
            "email": "bob@x.com",
            "full_name": "Bob Builder",
            "password": PASSWORD
        })

    assert response.status_code == 400
    assert response.json()["detail"] == "Username 'bob fixes' is invalid, can only contain letters or digits."


@pytest.mark.asyncio
async def test_register_tasker_negative_rate_is_rejected(api):
    async with client_for(api) as ac:
        response = await ac.post("/auth/register-tasker", json={
            "username": "bob_fixes",
            "email": "bob@x.com",
            "full_name": "Bob Builder",
            "password": PASSWORD,
            "hourly_rate": "-1"
        })

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_protected_endpoints_unauthorized(api):
    """Test that /auth/me rejects missing and invalid tokens."""
    async with client_for(api) as ac:
        response = await ac.get("/auth/me")
        assert response.status_code == 401

        response = await ac.get(
            "/auth/me",
            headers={"Authorization": "Bearer invalid.token.here"}
        )
        assert response.status_code == 401


@pytest.mark.asyncio
async def test_expired_token_is_rejected(api, clock):
    async with client_for(api) as ac:
        response = await ac.post("/auth/register", json={
            "full_name": "Jane Doe",
            "email": "jane@x.com",
            "username": "janed",
            "password": PASSWORD
        })
        token = response.json()["data"]["token"]

        clock.advance(hours=3, seconds=1)
        me_response = await ac.get("/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert me_response.status_code == 401


@pytest.mark.asyncio
async def test_register_overlong_password_is_bad_request(api):
    async with client_for(api) as ac:
        response = await ac.post("/auth/register", json={
            "full_name": "Jane Doe",
            "email": "jane@x.com",
            "username": "janed",
            "password": "Aa1!" + "x" * 80
        })

    assert response.status_code == 400
    assert "Passwords must be at most 72 bytes." in response.json()["detail"]


@pytest.mark.asyncio
@pytest.mark.parametrize("hourly_rate", ["42.555", "123456789.00"])
async def test_register_tasker_rate_outside_column_precision_is_rejected(api, identity_db, hourly_rate):
    async with client_for(api) as ac:
        response = await ac.post("/auth/register-tasker", json={
            "username": "bob_fixes",
            "email": "bob@x.com",
            "full_name": "Bob Builder",
            "password": PASSWORD,
            "hourly_rate": hourly_rate
        })

    assert response.status_code == 422
    assert identity_db.profiles == []
