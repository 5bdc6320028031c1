import json
import re

import pytest

from app.api.services.metadata_service import build_certificate_metadata
from app.core.config import settings

pytestmark = pytest.mark.anyio("asyncio")

ISO_MILLIS = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$")


def test_metadata_defaults_and_omits_absent_values():
    metadata = build_certificate_metadata("Ada Lovelace", "Analytical Engines", "Babbage Institute")

    assert metadata["standard"] == "arc69"
    assert metadata["description"] == "Certificate of completion for Analytical Engines"
    assert metadata["external_url"] == f"{settings.PUBLIC_BASE_URL}/verify"

    properties = metadata["properties"]
    assert properties["certificate_type"] == "course_completion"
    assert properties["skills"] == []
    assert properties["learner_name"] == "Ada Lovelace"
    assert ISO_MILLIS.match(properties["issue_date"])
    assert properties["valid_from"] == properties["issue_date"]
    for absent in ("valid_until", "grade", "score"):
        assert absent not in properties


@pytest.mark.anyio
async def test_upload_metadata_pins_document(async_client, pinata):
    response = await async_client.post(
        "/api/uploadMetadata",
        json={
            "learnerName": "Ada Lovelace",
            "courseName": "Analytical Engines",
            "organizationName": "Babbage Institute",
            "skills": ["programming"],
            "grade": "A",
            "score": 97,
            "validUntil": "2030-01-01T00:00:00Z",
        },
    )
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Metadata uploaded successfully"
    assert body["ipfsHash"] in pinata.pinned
    assert pinata.pinned[body["ipfsHash"]] == body["metadata"]

    properties = body["metadata"]["properties"]
    assert properties["grade"] == "A"
    assert properties["score"] == 97
    assert properties["valid_until"] == "2030-01-01T00:00:00.000Z"

    request = pinata.requests[0]
    assert request.headers["Authorization"] == "Bearer test-jwt"
    payload = json.loads(request.content)
    assert payload["pinataMetadata"]["name"] == "Certificate-Ada Lovelace-Analytical Engines"


@pytest.mark.anyio
async def test_upload_metadata_requires_fields(async_client, pinata):
    response = await async_client.post("/api/uploadMetadata", json={"learnerName": "Ada"})
    assert response.status_code == 400
    assert response.json()["error"] == (
        "Learner name, course name, and organization name are required"
    )
    assert pinata.requests == []


@pytest.mark.anyio
async def test_upload_metadata_rejects_blank_fields(async_client, pinata):
    response = await async_client.post(
        "/api/uploadMetadata",
        json={"learnerName": "Ada", "courseName": "   ", "organizationName": "BI"},
    )
    assert response.status_code == 400
    assert response.json()["error"] == (
        "Learner name, course name, and organization name are required"
    )
    assert pinata.requests == []


@pytest.mark.anyio
async def test_upload_metadata_without_credentials(async_client, pinata, monkeypatch):
    monkeypatch.setattr(settings, "PINATA_JWT", None)
    monkeypatch.setattr(settings, "PINATA_API_KEY", None)
    monkeypatch.setattr(settings, "PINATA_SECRET_API_KEY", None)

    response = await async_client.post(
        "/api/uploadMetadata",
        json={"learnerName": "Ada", "courseName": "Engines", "organizationName": "BI"},
    )
    assert response.status_code == 500
    assert response.json()["errorCode"] == "CONFIGURATION_ERROR"
    assert pinata.requests == []


@pytest.mark.anyio
async def test_upload_metadata_uses_key_pair_without_jwt(async_client, pinata, monkeypatch):
    monkeypatch.setattr(settings, "PINATA_JWT", None)
    monkeypatch.setattr(settings, "PINATA_API_KEY", "key")
    monkeypatch.setattr(settings, "PINATA_SECRET_API_KEY", "secret")

    response = await async_client.post(
        "/api/uploadMetadata",
        json={"learnerName": "Ada", "courseName": "Engines", "organizationName": "BI"},
    )
    assert response.status_code == 200
    headers = pinata.requests[0].headers
    assert headers["pinata_api_key"] == "key"
    assert headers["pinata_secret_api_key"] == "secret"


@pytest.mark.anyio
async def test_upload_metadata_surfaces_pinning_rejection(async_client, pinata):
    pinata.fail_with = 401

    response = await async_client.post(
        "/api/uploadMetadata",
        json={"learnerName": "Ada", "courseName": "Engines", "organizationName": "BI"},
    )
    assert response.status_code == 500
    body = response.json()
    assert body["errorCode"] == "UPLOAD_ERROR"
    assert body["error"] == "Failed to upload to IPFS: 401 Invalid authentication"


@pytest.mark.anyio
async def test_upload_metadata_rejects_unreadable_pinning_reply(async_client, pinata):
    pinata.garbled = True

    response = await async_client.post(
        "/api/uploadMetadata",
        json={"learnerName": "Ada", "courseName": "Engines", "organizationName": "BI"},
    )
    assert response.status_code == 500
    body = response.json()
    assert body["errorCode"] == "UPLOAD_ERROR"
    assert body["error"] == "Failed to upload to IPFS: 200 <html>Bad Gateway</html>"
