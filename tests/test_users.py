import pytest

pytestmark = pytest.mark.anyio("asyncio")

ADA = {
    "firstName": "Ada",
    "lastName": "Lovelace",
    "email": "ada@x.com",
    "walletId": "A" * 58,
    "role": "learner",
}


@pytest.mark.anyio
async def test_signup_echoes_profile_and_rejects_same_email(async_client, users):
    response = await async_client.post("/api/signup", json=ADA)
    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "User created successfully"
    assert body["user"]["firstName"] == "Ada"
    assert body["user"]["lastName"] == "Lovelace"
    assert body["user"]["email"] == "ada@x.com"
    assert body["user"]["role"] == "learner"
    assert body["user"]["id"]

    again = await async_client.post(
        "/api/signup", json={**ADA, "walletId": "B" * 58, "email": "ADA@x.com"}
    )
    assert again.status_code == 409
    assert again.json()["error"] == "User with this email already exists"


@pytest.mark.anyio
async def test_signup_rejects_registered_wallet(async_client, users):
    await async_client.post("/api/signup", json=ADA)

    response = await async_client.post(
        "/api/signup", json={**ADA, "email": "countess@x.com"}
    )
    assert response.status_code == 409
    assert response.json()["errorCode"] == "DUPLICATE_USER"


@pytest.mark.anyio
async def test_signup_requires_names_and_email(async_client, users):
    response = await async_client.post("/api/signup", json={"firstName": "Ada"})
    assert response.status_code == 400
    assert response.json()["error"] == "First name, last name, and email are required"
    assert users.documents == {}


@pytest.mark.anyio
async def test_wallet_check(async_client, users):
    missing = await async_client.post("/api/wallet-check", json={})
    assert missing.status_code == 400
    assert missing.json()["error"] == "Wallet ID is required"

    unknown = await async_client.post("/api/wallet-check", json={"walletId": "Z" * 58})
    assert unknown.status_code == 200
    assert unknown.json()["exists"] is False
    assert unknown.json()["message"] == "Wallet not found in database"

    await async_client.post("/api/signup", json=ADA)
    known = await async_client.post("/api/wallet-check", json={"walletId": ADA["walletId"]})
    assert known.json()["exists"] is True
    assert known.json()["user"]["email"] == "ada@x.com"


@pytest.mark.anyio
async def test_update_profile_changes_only_profile_fields(async_client, users):
    await async_client.post("/api/signup", json=ADA)

    response = await async_client.put(
        "/api/update-profile",
        json={
            "walletId": ADA["walletId"],
            "skills": [" analytical engines ", ""],
            "location": "London",
            "email": "hijack@x.com",
            "role": "admin",
        },
    )
    assert response.status_code == 200
    user = response.json()["user"]
    assert user["skills"] == ["analytical engines"]
    assert user["location"] == "London"
    assert user["email"] == "ada@x.com"
    assert user["role"] == "learner"


@pytest.mark.anyio
async def test_update_profile_errors(async_client, users):
    missing = await async_client.put("/api/update-profile", json={"bio": "hi"})
    assert missing.status_code == 400
    assert missing.json()["error"] == "Wallet ID is required"

    unknown = await async_client.put(
        "/api/update-profile", json={"walletId": "Q" * 58, "bio": "hi"}
    )
    assert unknown.status_code == 404
    assert unknown.json()["error"] == "User not found"
