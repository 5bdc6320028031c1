from datetime import datetime, timedelta, timezone

import pytest
from bson import ObjectId
from mongomock_motor import AsyncMongoMockClient

from app.api.services.certificate_service import certificate_service
from app.core.exceptions import DuplicateCertificateError, DuplicateUserError
from app.domain.models.certificate import CertificateModel, CertificateStatus
from app.domain.models.issuance import IssuanceCheckpoint, IssuanceState
from app.domain.models.user import UserModel, UserRole
from app.domain.repositories import base
from app.domain.repositories.certificate_repository import CertificateRepository
from app.domain.repositories.issuance_repository import IssuanceCheckpointRepository
from app.domain.repositories.user_repository import UserRepository

pytestmark = pytest.mark.anyio("asyncio")

ISSUER = "ISSUERWALLET"
LEARNER = "LEARNERWALLET"


@pytest.fixture(autouse=True)
def mongo(monkeypatch):
    """Every repository connects to an in-memory MongoDB."""
    monkeypatch.setattr(base, "AsyncIOMotorClient", AsyncMongoMockClient)


def certificate(course, asset_id, days_ago=0, organization="Babbage Institute", **fields):
    issued_at = datetime.now(timezone.utc) - timedelta(days=days_ago)
    return CertificateModel(
        learner_name="Ada Lovelace",
        learner_wallet=LEARNER,
        course_name=course,
        issuer_wallet=ISSUER,
        organization_name=organization,
        asset_id=asset_id,
        ipfs_hash=f"QmHash{asset_id}",
        transaction_id=f"TX{asset_id}",
        issued_at=issued_at,
        **fields,
    )


@pytest.mark.anyio
async def test_active_duplicate_ignores_revoked_records():
    repository = CertificateRepository()
    issued = await repository.create_certificate(certificate("Engines", 1000))

    found = await repository.find_active_duplicate(f" {LEARNER} ", "Engines ", ISSUER)
    assert found["_id"] == issued["_id"]

    with pytest.raises(DuplicateCertificateError) as exc_info:
        await repository.create_certificate(certificate("Engines", 1001))
    assert exc_info.value.details["certificateId"] == str(issued["_id"])

    await repository.collection.update_one(
        {"_id": issued["_id"]}, {"$set": {"status": CertificateStatus.REVOKED.value}}
    )
    assert await repository.find_active_duplicate(LEARNER, "Engines", ISSUER) is None

    reissued = await repository.create_certificate(certificate("Engines", 1001))
    assert reissued["_id"] != issued["_id"]


@pytest.mark.anyio
async def test_reused_asset_id_is_a_duplicate():
    repository = CertificateRepository()
    await repository.create_certificate(certificate("Engines", 1000))

    with pytest.raises(DuplicateCertificateError) as exc_info:
        await repository.create_certificate(certificate("Tables", 1000))
    assert exc_info.value.message == "Certificate with this asset ID already exists"
    assert await repository.collection.count_documents({}) == 1


@pytest.mark.anyio
async def test_pending_transfers_newest_first_with_total():
    repository = CertificateRepository()
    await repository.create_certificate(certificate("Engines", 1000, days_ago=2))
    await repository.create_certificate(certificate("Tables", 1001, days_ago=1))
    newest = await repository.create_certificate(certificate("Notes", 1002))

    page, total = await repository.list_pending_transfers(limit=1, offset=0)
    assert total == 3
    assert [doc["_id"] for doc in page] == [newest["_id"]]

    page, total = await repository.list_pending_transfers(limit=2, offset=1)
    assert [doc["course_name"] for doc in page] == ["Tables", "Engines"]

    page, total = await repository.list_pending_transfers(organization_name="Nobody")
    assert (page, total) == ([], 0)


@pytest.mark.anyio
async def test_pending_endpoint_reads_stored_records(async_client, monkeypatch):
    repository = CertificateRepository()
    monkeypatch.setattr(certificate_service, "certificates", repository)
    for asset_id, days_ago in ((1000, 2), (1001, 1), (1002, 0)):
        await repository.create_certificate(
            certificate(f"Course {asset_id}", asset_id, days_ago=days_ago)
        )

    response = await async_client.get(
        "/api/certificates/pending", params={"limit": 1, "offset": 0}
    )
    assert response.status_code == 200
    body = response.json()
    assert [c["assetId"] for c in body["certificates"]] == [1002]
    assert body["pagination"]["total"] == 3
    assert body["pagination"]["hasMore"] is True


@pytest.mark.anyio
async def test_transfer_flag_moves_record_in_and_out_of_pending():
    repository = CertificateRepository()
    stored = await repository.create_certificate(certificate("Engines", 1000))
    certificate_id = str(stored["_id"])

    transferred = await repository.mark_transferred(
        certificate_id, "TRANSFERTX", learner_wallet=f"{LEARNER} "
    )
    assert transferred["transferred_to_learner"] is True
    assert transferred["transfer_tx_id"] == "TRANSFERTX"
    assert transferred["status"] == CertificateStatus.TRANSFERRED.value
    assert transferred["learner_wallet"] == LEARNER
    assert (await repository.list_pending_transfers())[1] == 0
    assert await repository.count_by_learner_wallet(LEARNER) == 1

    reset = await repository.set_transfer_flag(certificate_id, False)
    assert reset["transferred_to_learner"] is False
    assert reset["transferred_at"] is None
    assert reset["status"] == CertificateStatus.ISSUED.value
    assert (await repository.list_pending_transfers())[1] == 1
    assert await repository.list_by_learner_wallet(LEARNER) == []

    assert await repository.mark_transferred("not-an-id", "TX") is None
    assert await repository.set_transfer_flag(str(ObjectId()), True) is None


@pytest.mark.anyio
async def test_user_email_and_wallet_are_unique():
    repository = UserRepository()
    created = await repository.create_user(
        UserModel(first_name="Ada", last_name="Lovelace", email="Ada@X.com", wallet_id=LEARNER)
    )
    assert created["email"] == "ada@x.com"
    assert (await repository.get_by_email(" ADA@x.com "))["_id"] == created["_id"]

    with pytest.raises(DuplicateUserError) as exc_info:
        await repository.create_user(
            UserModel(first_name="A", last_name="L", email="ada@x.com", wallet_id=ISSUER)
        )
    assert exc_info.value.message == "User with this email already exists"

    with pytest.raises(DuplicateUserError) as exc_info:
        await repository.create_user(
            UserModel(first_name="A", last_name="L", email="other@x.com", wallet_id=LEARNER)
        )
    assert exc_info.value.message == "User with this wallet already exists"


@pytest.mark.anyio
async def test_certificate_back_references_are_not_repeated():
    repository = UserRepository()
    await repository.create_user(
        UserModel(
            first_name="Charles",
            last_name="Babbage",
            email="charles@x.com",
            wallet_id=ISSUER,
            role=UserRole.ORGANIZATION,
        )
    )
    certificate_id = str(ObjectId())

    assert await repository.add_certificate(ISSUER, certificate_id) is True
    assert await repository.add_certificate(ISSUER, certificate_id) is True
    assert await repository.add_certificate("UNKNOWN", certificate_id) is False

    user = await repository.get_by_wallet(ISSUER)
    assert user["certificates"] == [ObjectId(certificate_id)]

    updated = await repository.update_profile(ISSUER, {"bio": "Engines"})
    assert updated["bio"] == "Engines"
    assert await repository.update_profile("UNKNOWN", {"bio": "x"}) is None


@pytest.mark.anyio
async def test_checkpoints_keep_earlier_fields():
    repository = IssuanceCheckpointRepository()
    await repository.record(
        IssuanceCheckpoint(
            attempt_id="attempt-1", state=IssuanceState.STARTED, learner_wallet=LEARNER
        )
    )
    await repository.record(
        IssuanceCheckpoint(
            attempt_id="attempt-1", state=IssuanceState.ASSET_MINTED, asset_id=1000
        )
    )

    checkpoint = await repository.get("attempt-1")
    assert checkpoint.state == IssuanceState.ASSET_MINTED
    assert checkpoint.learner_wallet == LEARNER
    assert checkpoint.asset_id == 1000
    assert await repository.collection.count_documents({}) == 1
    assert await repository.get("attempt-2") is None
