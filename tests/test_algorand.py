import asyncio

import pytest
from algosdk import encoding
from algosdk.error import AlgodHTTPError

from app.core.config import settings
from app.core.exceptions import (
    ExternalServiceError,
    InvalidAddressError,
    LedgerUnavailableError,
    NetworkParamError,
    NotFoundError,
    SignerMismatchError,
    SubmissionError,
    SubmissionFailure,
    UserRejectedError,
    ValidationError,
    WalletUnavailableError,
)
from app.infrastructure.algorand.opt_in_checker import opt_in_checker
from app.infrastructure.algorand.submitter import (
    TransactionKind,
    classify_submission_error,
    submission_error,
    transaction_submitter,
)
from app.infrastructure.algorand.transaction_builder import (
    transaction_builder,
    truncate_asset_name,
)
from app.infrastructure.wallet.signer_bridge import signer_bridge
from app.infrastructure.wallet.signing_broker import (
    BrokeredWalletSession,
    SigningRequestBroker,
)
from tests.fakes import FakeWalletSession, Wallet, is_base64

pytestmark = pytest.mark.anyio("asyncio")


@pytest.mark.parametrize(
    "raw,failure",
    [
        ("TransactionPool.Remember: overspend (account X)", SubmissionFailure.OVERSPEND),
        ("receiver error: must optin, asset 5 missing from X", SubmissionFailure.NOT_OPTED_IN),
        ("asset 5 does not exist or has been deleted", SubmissionFailure.ASSET_NOT_FOUND),
        ("underflow on subtracting 1 from sender amount 0", SubmissionFailure.INSUFFICIENT_ASSET_BALANCE),
        ("account already opted in to asset", SubmissionFailure.ALREADY_OPTED_IN),
        ("txn dead: round 10 outside of 1--5", SubmissionFailure.REJECTED),
    ],
)
def test_classify_submission_error(raw, failure):
    assert classify_submission_error(raw) is failure


def test_submission_messages_depend_on_transaction_kind():
    create = submission_error(TransactionKind.ASSET_CREATE, "overspend")
    assert create.message == "Insufficient funds in organization wallet to create certificate"

    opt_in = submission_error(TransactionKind.ASSET_OPT_IN, "overspend")
    assert opt_in.message == "Insufficient funds in learner wallet for opt-in transaction"

    generic = submission_error(TransactionKind.ASSET_TRANSFER, "txn dead")
    assert generic.failure is SubmissionFailure.REJECTED
    assert generic.message == "Failed to submit transaction to blockchain: txn dead"
    assert generic.details == "txn dead"


@pytest.mark.anyio
async def test_submitter_rejects_non_base64_payload(algod):
    with pytest.raises(ValidationError):
        await transaction_submitter.submit("not base64!", TransactionKind.ASSET_CREATE)
    assert algod.sent == []


@pytest.mark.anyio
async def test_submitter_maps_unreachable_node(algod, issuer):
    unsigned = await transaction_builder.build_asset_creation(issuer.address, "QmHash", "Engines")
    algod.unreachable = True

    with pytest.raises(LedgerUnavailableError):
        await transaction_submitter.submit(
            issuer.sign_b64(unsigned.encoded), TransactionKind.ASSET_CREATE
        )


@pytest.mark.anyio
async def test_submitter_returns_created_asset(algod, issuer):
    unsigned = await transaction_builder.build_asset_creation(issuer.address, "QmHash", "Engines")

    result = await transaction_submitter.submit(
        issuer.sign_b64(unsigned.encoded), TransactionKind.ASSET_CREATE
    )
    assert result.model_dump() == {
        "tx_id": unsigned.tx_id,
        "confirmed_round": 12,
        "asset_id": 1000,
    }


@pytest.mark.anyio
async def test_opt_in_check(algod, learner):
    assert await opt_in_checker.is_opted_in(learner.address, 1000) is False

    algod.holdings[learner.address] = {1000}
    assert await opt_in_checker.is_opted_in(learner.address, 1000) is True


@pytest.mark.anyio
async def test_opt_in_check_maps_node_http_errors(algod, learner):
    algod.account_error = AlgodHTTPError("internal node error", 500)
    with pytest.raises(ExternalServiceError) as exc_info:
        await opt_in_checker.is_opted_in(learner.address, 1000)
    assert exc_info.value.message == "Failed to fetch account from blockchain"
    assert "internal node error" in exc_info.value.details


@pytest.mark.anyio
async def test_opt_in_check_rejects_malformed_address_before_network(algod):
    algod.unreachable = True
    with pytest.raises(InvalidAddressError):
        await opt_in_checker.is_opted_in("not-an-address", 1000)


def test_truncate_asset_name_respects_byte_limit():
    assert truncate_asset_name("Engines Certificate") == "Engines Certificate"
    truncated = truncate_asset_name("Ü" * 20)
    assert len(truncated.encode("utf-8")) <= 32
    assert truncated == "Ü" * 16


@pytest.mark.anyio
async def test_build_asset_creation(algod, issuer):
    course = "A Very Long Course About Difference Engines"
    unsigned = await transaction_builder.build_asset_creation(issuer.address, "QmHash", course)

    txn = unsigned.txn
    assert txn.total == 1
    assert txn.decimals == 0
    assert txn.unit_name == "CERT"
    assert txn.asset_name == truncate_asset_name(f"{course} Certificate")
    assert len(txn.asset_name.encode("utf-8")) == 32
    assert txn.url == f"{settings.IPFS_GATEWAY_URL}/QmHash"
    assert txn.manager == issuer.address
    assert txn.reserve == issuer.address
    assert not txn.freeze
    assert not txn.clawback
    assert unsigned.sender == issuer.address
    assert is_base64(unsigned.encoded)
    assert encoding.msgpack_decode(unsigned.encoded).get_txid() == unsigned.tx_id


@pytest.mark.anyio
async def test_builder_validates_inputs(algod, issuer, learner):
    with pytest.raises(InvalidAddressError):
        await transaction_builder.build_asset_transfer(issuer.address, "bad", 1000)
    with pytest.raises(ValidationError):
        await transaction_builder.build_asset_opt_in(learner.address, 0)

    algod.unreachable = True
    with pytest.raises(NetworkParamError):
        await transaction_builder.build_asset_opt_in(learner.address, 1000)


@pytest.mark.anyio
async def test_signer_bridge_returns_signed_blob(algod, issuer):
    unsigned = await transaction_builder.build_asset_creation(issuer.address, "QmHash", "Engines")
    session = FakeWalletSession(issuer)

    signed = await signer_bridge.sign(session, unsigned.txn, issuer.address, "Create")
    assert signed.tx_id == unsigned.tx_id
    assert session.requests == ["Create"]


@pytest.mark.anyio
async def test_signer_bridge_failures(algod, issuer, learner):
    unsigned = await transaction_builder.build_asset_creation(issuer.address, "QmHash", "Engines")

    with pytest.raises(WalletUnavailableError):
        await signer_bridge.sign(None, unsigned.txn, issuer.address)

    with pytest.raises(SignerMismatchError):
        await signer_bridge.sign(FakeWalletSession(learner), unsigned.txn, issuer.address)

    with pytest.raises(SignerMismatchError):
        await signer_bridge.sign(FakeWalletSession(issuer, empty=True), unsigned.txn, issuer.address)

    with pytest.raises(UserRejectedError):
        await signer_bridge.sign(FakeWalletSession(issuer, reject=True), unsigned.txn, issuer.address)


@pytest.mark.anyio
async def test_broker_delivers_signatures():
    broker = SigningRequestBroker()
    wallet = Wallet()
    session = BrokeredWalletSession(wallet.address, broker)

    task = asyncio.create_task(session.sign_transactions(["dW5zaWduZWQ="], "Create"))
    await asyncio.sleep(0)

    pending = broker.list_pending(wallet.address)
    assert [request.description for request in pending] == ["Create"]
    assert "future" not in pending[0].model_dump()
    assert broker.list_pending(Wallet().address) == []

    with pytest.raises(ValidationError):
        broker.submit_signatures(pending[0].id, wallet.address, [])
    with pytest.raises(NotFoundError):
        broker.submit_signatures(pending[0].id, Wallet().address, ["c2lnbmVk"])

    broker.submit_signatures(pending[0].id, wallet.address, ["c2lnbmVk"])
    assert await task == ["c2lnbmVk"]
    assert broker.list_pending(wallet.address) == []


@pytest.mark.anyio
async def test_broker_rejection_and_timeout():
    wallet = Wallet()

    broker = SigningRequestBroker()
    task = asyncio.create_task(broker.request_signatures(wallet.address, ["dA=="]))
    await asyncio.sleep(0)
    request = broker.list_pending(wallet.address)[0]
    broker.reject(request.id, wallet.address, "no")
    with pytest.raises(UserRejectedError):
        await task

    with pytest.raises(NotFoundError):
        broker.reject(request.id, wallet.address)

    expiring = SigningRequestBroker(timeout=0.01)
    with pytest.raises(WalletUnavailableError):
        await expiring.request_signatures(wallet.address, ["dA=="])
    assert expiring.list_pending(wallet.address) == []
