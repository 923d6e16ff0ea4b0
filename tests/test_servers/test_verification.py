"""
Tests for the verification engine: local and delegated modes, server-side
expectations, staleness and replay.
"""
from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import ValidationError

from fastx402.adapters.bases import VerificationAuthority
from fastx402.adapters.evm import sign_payment_challenge
from fastx402.schemas.payments import PaymentConfig, VerificationResult
from fastx402.servers.challenges import create_challenge, expected_challenge_fields
from fastx402.servers.verification import ConsumedPaymentCache, VerificationEngine

from conftest import MERCHANT_ADDRESS, NOW, OTHER_KEY, PAYER_ADDRESS, PAYER_KEY


def signed_payload(route_config, config, key=PAYER_KEY, now=NOW):
    challenge = create_challenge(route_config, config, now=lambda: now)
    assertion = sign_payment_challenge(challenge, key)
    return assertion.model_dump(mode="json", exclude={"message_hash"})


def make_engine(config, now=NOW):
    return VerificationEngine(config, clock=lambda: now)


def make_authority(**methods):
    authority = MagicMock(spec=VerificationAuthority)
    for name, mock in methods.items():
        setattr(authority, name, mock)
    return authority


@pytest.mark.asyncio
async def test_local_success(payment_config, route_config):
    engine = make_engine(payment_config)
    result = await engine.verify(signed_payload(route_config, payment_config))
    assert result.valid
    assert result.signer == PAYER_ADDRESS
    assert result.error is None


@pytest.mark.asyncio
async def test_local_success_with_expected_fields(payment_config, route_config):
    engine = make_engine(payment_config)
    expected = expected_challenge_fields(route_config, payment_config)
    result = await engine.verify(signed_payload(route_config, payment_config), expected)
    assert result.valid


@pytest.mark.asyncio
async def test_signer_mismatch(payment_config, route_config):
    payload = signed_payload(route_config, payment_config, key=OTHER_KEY)
    payload["signer"] = PAYER_ADDRESS

    result = await make_engine(payment_config).verify(payload)

    assert not result.valid
    assert result.error == "Signature verification failed"


@pytest.mark.asyncio
async def test_tampered_challenge_fails_signature(payment_config, route_config):
    payload = signed_payload(route_config, payment_config)
    payload["challenge"]["price"] = "0.0001"

    result = await make_engine(payment_config).verify(payload)

    assert result.error == "Signature verification failed"


@pytest.mark.parametrize(
    "field, value",
    [
        ("price", "0.0001"),
        ("currency", "DAI"),
        ("chain_id", 1),
        ("merchant", PAYER_ADDRESS),
    ],
)
@pytest.mark.asyncio
async def test_challenge_mismatch(payment_config, route_config, field, value):
    challenge = create_challenge(route_config, payment_config, now=lambda: NOW)
    forged = challenge.model_copy(update={field: value})
    payload = sign_payment_challenge(forged, PAYER_KEY).model_dump(mode="json", exclude={"message_hash"})

    expected = expected_challenge_fields(route_config, payment_config)
    result = await make_engine(payment_config).verify(payload, expected)

    assert result.error == f"Challenge mismatch: {field}"


@pytest.mark.parametrize(
    "payload",
    [
        None,
        [],
        "string",
        {},
        {"signature": "0x00", "signer": PAYER_ADDRESS},
        {"signature": "", "signer": PAYER_ADDRESS, "challenge": {"price": "1"}},
        {"signature": "0x00", "signer": PAYER_ADDRESS, "challenge": {"price": "1"}},
    ],
)
@pytest.mark.asyncio
async def test_invalid_payload_shape(payment_config, payload):
    result = await make_engine(payment_config).verify(payload)
    assert result.error == "Invalid payment header format"


@pytest.mark.asyncio
async def test_malformed_signature_is_a_verification_failure(payment_config, route_config):
    payload = signed_payload(route_config, payment_config)
    payload["signature"] = "0xdeadbeef"
    result = await make_engine(payment_config).verify(payload)
    assert result.error == "Signature verification failed"


@pytest.mark.asyncio
async def test_expired_challenge(payment_config, route_config):
    payload = signed_payload(route_config, payment_config, now=NOW)
    result = await make_engine(payment_config, now=NOW + 301).verify(payload)
    assert result.error == "Challenge expired"


@pytest.mark.asyncio
async def test_challenge_from_the_future(payment_config, route_config):
    payload = signed_payload(route_config, payment_config, now=NOW + 31)
    result = await make_engine(payment_config, now=NOW).verify(payload)
    assert result.error == "Challenge timestamp is in the future"


@pytest.mark.asyncio
async def test_clock_skew_tolerated(payment_config, route_config):
    payload = signed_payload(route_config, payment_config, now=NOW + 30)
    assert (await make_engine(payment_config, now=NOW).verify(payload)).valid


@pytest.mark.asyncio
async def test_staleness_disabled(route_config):
    config = PaymentConfig(merchant_address=MERCHANT_ADDRESS, max_challenge_age=None)
    payload = signed_payload(route_config, config, now=0)
    assert (await make_engine(config, now=NOW).verify(payload)).valid


@pytest.mark.asyncio
async def test_replayed_payment_rejected(route_config):
    config = PaymentConfig(merchant_address=MERCHANT_ADDRESS, replay_protection=True)
    engine = make_engine(config)
    payload = signed_payload(route_config, config)

    assert (await engine.verify(payload)).valid
    second = await engine.verify(payload)

    assert not second.valid
    assert second.error == "Payment already used"


@pytest.mark.asyncio
async def test_replay_protection_off_by_default(route_config):
    config = PaymentConfig(merchant_address=MERCHANT_ADDRESS)
    assert not config.replay_protection
    engine = make_engine(config)
    payload = signed_payload(route_config, config)

    assert (await engine.verify(payload)).valid
    assert (await engine.verify(payload)).valid


@pytest.mark.asyncio
async def test_same_second_challenges_are_separate_payments(route_config):
    config = PaymentConfig(merchant_address=MERCHANT_ADDRESS, replay_protection=True)
    engine = make_engine(config)
    first = signed_payload(route_config, config)
    second = signed_payload(route_config, config)

    assert first["signature"] == second["signature"]
    assert first["challenge"]["nonce"] != second["challenge"]["nonce"]
    assert (await engine.verify(first)).valid
    assert (await engine.verify(second)).valid
    assert (await engine.verify(second)).error == "Payment already used"


@pytest.mark.asyncio
async def test_failed_attempt_does_not_consume(route_config):
    payment_config = PaymentConfig(merchant_address=MERCHANT_ADDRESS, replay_protection=True)
    engine = make_engine(payment_config)
    payload = signed_payload(route_config, payment_config)
    bad = dict(payload, signer=MERCHANT_ADDRESS)

    assert not (await engine.verify(bad)).valid
    assert (await engine.verify(payload)).valid


@pytest.mark.asyncio
async def test_delegated_result_returned_unchanged(route_config):
    delegated = VerificationResult(valid=True, signer=PAYER_ADDRESS, tx_hash="0xabc")
    authority = make_authority(verify_payment=AsyncMock(return_value=delegated))
    config = PaymentConfig(merchant_address=MERCHANT_ADDRESS, mode="embedded", authority=authority)

    payload = signed_payload(route_config, config)
    result = await make_engine(config).verify(payload)

    assert result == delegated
    challenge, signature, signer = authority.verify_payment.await_args.args
    assert challenge.price == "0.01"
    assert signature == payload["signature"]
    assert signer == PAYER_ADDRESS


@pytest.mark.asyncio
async def test_delegated_failure_passed_through(route_config):
    authority = make_authority(
        verify_payment=AsyncMock(return_value=VerificationResult.failure("Insufficient balance"))
    )
    config = PaymentConfig(merchant_address=MERCHANT_ADDRESS, mode="delegated", authority=authority)

    result = await make_engine(config).verify(signed_payload(route_config, config))

    assert result.error == "Insufficient balance"


@pytest.mark.asyncio
async def test_delegated_exception_becomes_verification_error(route_config):
    authority = make_authority(verify_payment=AsyncMock(side_effect=RuntimeError("provider down")))
    config = PaymentConfig(merchant_address=MERCHANT_ADDRESS, mode="delegated", authority=authority)

    result = await make_engine(config).verify(signed_payload(route_config, config))

    assert not result.valid
    assert result.error == "Verification error: provider down"


@pytest.mark.asyncio
async def test_delegated_without_authority_verifies_locally(route_config):
    config = PaymentConfig(merchant_address=MERCHANT_ADDRESS, mode="delegated")
    assert not config.delegates
    assert (await make_engine(config).verify(signed_payload(route_config, config))).valid


def test_config_is_frozen(payment_config):
    with pytest.raises(ValidationError):
        payment_config.merchant_address = PAYER_ADDRESS


def test_config_rejects_non_authority():
    with pytest.raises(ValidationError):
        PaymentConfig(merchant_address=MERCHANT_ADDRESS, authority=object())


def test_invalid_result_requires_error():
    with pytest.raises(ValidationError):
        VerificationResult(valid=False)


def test_consumed_cache_expiry_and_bound():
    clock = [0.0]
    cache = ConsumedPaymentCache(ttl=10, max_size=2, clock=lambda: clock[0])

    assert cache.claim("a")
    assert not cache.claim("a")

    clock[0] = 11
    assert cache.claim("a")

    assert cache.claim("b")
    assert cache.claim("c")
    assert len(cache) == 2
    assert "a" not in cache
