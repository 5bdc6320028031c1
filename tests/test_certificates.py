from datetime import datetime, timedelta, timezone

import pytest

from app.domain.models.certificate import CertificateModel
from tests.fakes import Wallet

pytestmark = pytest.mark.anyio("asyncio")


async def seed(certificates, learner_wallet, course, asset_id, days_ago=0, organization="Babbage Institute", issuer_wallet=None, **fields):
    return await certificates.create_certificate(
        CertificateModel(
            learner_name="Ada Lovelace",
            learner_wallet=learner_wallet,
            course_name=course,
            issuer_wallet=issuer_wallet or Wallet().address,
            organization_name=organization,
            asset_id=asset_id,
            ipfs_hash=f"QmSeeded{asset_id}",
            transaction_id=f"TX{asset_id}",
            issued_at=datetime.now(timezone.utc) - timedelta(days=days_ago),
            **fields,
        )
    )


@pytest.mark.anyio
async def test_verify_unknown_hash(async_client, stores):
    response = await async_client.get("/api/certificates/verify", params={"hash": "QmNope"})
    assert response.status_code == 404
    assert response.json()["error"] == "Certificate not found"

    missing = await async_client.get("/api/certificates/verify")
    assert missing.status_code == 400
    assert missing.json()["error"] == "Certificate hash is required"


@pytest.mark.anyio
async def test_verify_describes_learner_and_issuer(async_client, stores, learner, issuer):
    certificates, _, _ = stores
    await async_client.post(
        "/api/signup",
        json={
            "firstName": "Ada",
            "lastName": "Lovelace",
            "email": "ada@x.com",
            "walletId": learner.address,
        },
    )
    await seed(certificates, learner.address, "Engines", 1000, issuer_wallet=issuer.address)

    response = await async_client.get("/api/certificates/verify", params={"hash": "QmSeeded1000"})
    assert response.status_code == 200
    certificate = response.json()["certificate"]
    assert certificate["assetId"] == 1000
    assert certificate["learner"]["registered"] is True
    assert certificate["learner"]["email"] == "ada@x.com"
    assert certificate["issuer"]["registered"] is False
    assert certificate["issuer"]["name"] == "Babbage Institute"
    assert certificate["issuer"]["walletId"] == issuer.address


@pytest.mark.anyio
async def test_pending_transfers_paginate(async_client, stores, learner):
    certificates, _, _ = stores
    for index, course in enumerate(["Engines", "Looms", "Tables"]):
        await seed(certificates, learner.address, course, 1000 + index, days_ago=index)
    await seed(
        certificates, learner.address, "Done", 2000, transferred_to_learner=True
    )

    response = await async_client.get("/api/certificates/pending", params={"limit": 1})
    assert response.status_code == 200
    body = response.json()
    assert [c["courseName"] for c in body["certificates"]] == ["Engines"]
    assert body["pagination"] == {"total": 3, "limit": 1, "offset": 0, "hasMore": True}

    last = await async_client.get("/api/certificates/pending", params={"limit": 1, "offset": 2})
    assert last.json()["pagination"]["hasMore"] is False
    assert last.json()["certificates"][0]["courseName"] == "Tables"

    other = await async_client.get("/api/certificates/pending", params={"organization": "Nobody"})
    assert other.json()["certificates"] == []

    too_many = await async_client.get("/api/certificates/pending", params={"limit": 500})
    assert too_many.status_code == 400


@pytest.mark.anyio
async def test_update_status_errors(async_client, stores):
    missing = await async_client.post(
        "/api/certificates/update-status", json={"transferredToLearner": True}
    )
    assert missing.status_code == 400
    assert missing.json()["error"] == "Certificate ID is required"

    unknown = await async_client.post(
        "/api/certificates/update-status",
        json={"certificateId": "64b000000000000000000000", "transferredToLearner": True},
    )
    assert unknown.status_code == 404


@pytest.mark.anyio
async def test_update_status_can_reset_flag(async_client, stores, learner):
    certificates, _, _ = stores
    document = await seed(certificates, learner.address, "Engines", 1000, transferred_to_learner=True)

    response = await async_client.post(
        "/api/certificates/update-status",
        json={"certificateId": str(document["_id"]), "transferredToLearner": False},
    )
    assert response.status_code == 200
    certificate = response.json()["certificate"]
    assert certificate["transferredToLearner"] is False
    assert certificate["transferredAt"] is None
    assert certificate["status"] == "issued"


@pytest.mark.anyio
async def test_verify_nft_validates_asset_id(async_client, algod, stores):
    missing = await async_client.get("/api/verify/nft")
    assert missing.status_code == 400
    assert missing.json()["error"] == "Asset ID is required"

    malformed = await async_client.get("/api/verify/nft", params={"assetId": "abc"})
    assert malformed.status_code == 400
    assert malformed.json()["error"] == "Invalid Asset ID"

    unknown = await async_client.get("/api/verify/nft", params={"assetId": "999"})
    assert unknown.status_code == 404
    assert unknown.json()["error"] == "Asset does not exist on the blockchain"

    algod.unreachable = True
    offline = await async_client.get("/api/verify/nft", params={"assetId": "999"})
    assert offline.status_code == 503
    assert offline.json()["error"] == "Network error while connecting to blockchain"


@pytest.mark.anyio
async def test_verify_nft_reads_ledger_and_metadata(async_client, pinata, algod, stores, issuer, learner):
    certificates, _, _ = stores
    upload = await async_client.post(
        "/api/uploadMetadata",
        json={"learnerName": "Ada", "courseName": "Engines", "organizationName": "BI"},
    )
    ipfs_hash = upload.json()["ipfsHash"]
    metadata = upload.json()["metadata"]

    unsigned = await async_client.post(
        "/api/transactions/asset-creation",
        json={"issuerWallet": issuer.address, "ipfsHash": ipfs_hash, "courseName": "Engines"},
    )
    await async_client.post(
        "/api/issueCertificate",
        json={
            "learnerName": "Ada",
            "learnerWallet": learner.address,
            "courseName": "Engines",
            "issuerWallet": issuer.address,
            "ipfsHash": ipfs_hash,
            "signedTxn": issuer.sign_b64(unsigned.json()["transaction"]),
            "metadata": metadata,
        },
    )

    response = await async_client.get("/api/verify/nft", params={"assetId": "1000"})
    assert response.status_code == 200
    body = response.json()
    assert body["source"] == "blockchain"

    details = body["nftDetails"]
    assert details["isNFT"] is True
    assert details["total"] == 1
    assert details["decimals"] == 0
    assert details["unitName"] == "CERT"
    assert details["assetName"] == "Engines Certificate"
    assert details["creator"] == issuer.address
    assert details["manager"] == issuer.address
    assert details["ipfsHash"] == ipfs_hash
    assert details["metadata"] == pinata.pinned[ipfs_hash]
    assert details["certificate"]["assetId"] == 1000

    verified = await async_client.get("/api/certificates/verify", params={"hash": ipfs_hash})
    assert verified.json()["certificate"]["metadata"] == pinata.pinned[ipfs_hash]


@pytest.mark.anyio
async def test_learner_certificates_only_lists_transferred(async_client, stores, learner):
    certificates, _, _ = stores
    await seed(certificates, learner.address, "Engines", 1000, transferred_to_learner=True)
    await seed(certificates, learner.address, "Looms", 1001)

    listing = await async_client.get("/api/certificates/learner", params={"walletId": learner.address})
    assert listing.status_code == 200
    assert listing.json()["count"] == 1
    assert listing.json()["certificates"][0]["courseName"] == "Engines"

    count = await async_client.get("/api/certificates/count", params={"walletId": learner.address})
    assert count.json()["count"] == 1

    missing = await async_client.get("/api/certificates/count")
    assert missing.status_code == 400
    assert missing.json()["error"] == "Wallet ID is required"

    malformed = await async_client.get("/api/certificates/learner", params={"walletId": "nope"})
    assert malformed.status_code == 400


@pytest.mark.anyio
async def test_user_certificates_for_unknown_user(async_client, stores, learner):
    response = await async_client.get("/api/users/certificates", params={"walletId": learner.address})
    assert response.status_code == 404
    assert response.json()["error"] == "User not found"
