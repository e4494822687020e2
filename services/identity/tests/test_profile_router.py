import pytest


@pytest.mark.asyncio
async def test_get_profile(async_client, verified_user) -> None:
    token = await verified_user("profile@example.com")
    response = await async_client.get(
        "/api/v1/users/profile", headers={"Authorization": f"Bearer {token}"}
    )
    assert response.status_code == 200
    user = response.json()["user"]
    assert user["email"] == "profile@example.com"
    assert user["lastName"] == "Lovelace"
    assert "passwordHash" not in user
    assert "otpCode" not in user


@pytest.mark.asyncio
async def test_update_profile_partial(async_client, verified_user) -> None:
    token = await verified_user("rename@example.com")
    headers = {"Authorization": f"Bearer {token}"}

    response = await async_client.put(
        "/api/v1/users/profile", json={"firstName": "  Augusta "}, headers=headers
    )
    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "Profile updated successfully"
    assert data["user"]["firstName"] == "Augusta"
    assert data["user"]["lastName"] == "Lovelace"

    again = await async_client.get("/api/v1/users/profile", headers=headers)
    assert again.json()["user"]["firstName"] == "Augusta"


@pytest.mark.asyncio
async def test_update_profile_cannot_touch_credentials(async_client, verified_user) -> None:
    token = await verified_user("sneaky@example.com")
    response = await async_client.put(
        "/api/v1/users/profile",
        json={"email": "other@example.com"},
        headers={"Authorization": f"Bearer {token}"},
    )
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "validation_error"


@pytest.mark.asyncio
async def test_update_profile_name_too_short(async_client, verified_user) -> None:
    token = await verified_user("short@example.com")
    response = await async_client.put(
        "/api/v1/users/profile",
        json={"lastName": "L"},
        headers={"Authorization": f"Bearer {token}"},
    )
    assert response.status_code == 400
    assert "lastName" in response.json()["error"]["fields"]


@pytest.mark.asyncio
async def test_profile_requires_token(async_client) -> None:
    response = await async_client.get("/api/v1/users/profile")
    assert response.status_code == 401
