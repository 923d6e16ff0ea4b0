"""
Tests for the concrete verification authorities and their registry.
"""
import httpx
import pytest

from fastx402.adapters.authorities import LocalAuthority, PrivyAuthority
from fastx402.adapters.bases import VerificationAuthority
from fastx402.adapters.evm import encode_payment_message, recover_signer, sign_payment_challenge
from fastx402.adapters.registry import AuthorityRegistry, create_authority
from fastx402.engine.exceptions import ConfigurationError
from fastx402.servers.challenges import create_challenge

from conftest import OTHER_ADDRESS, PAYER_ADDRESS, PAYER_KEY


@pytest.fixture
def challenge(payment_config, route_config):
    return create_challenge(route_config, payment_config)


@pytest.mark.asyncio
async def test_local_authority_signs_and_verifies(challenge):
    authority = LocalAuthority({"alice": PAYER_KEY})

    assert await authority.get_wallet_address("alice") == PAYER_ADDRESS
    signature = await authority.sign_payment(challenge, "alice")
    assert recover_signer(signature, encode_payment_message(challenge)) == PAYER_ADDRESS

    assert (await authority.verify_payment(challenge, signature, PAYER_ADDRESS)).valid
    rejected = await authority.verify_payment(challenge, signature, OTHER_ADDRESS)
    assert not rejected.valid and rejected.error


@pytest.mark.asyncio
async def test_local_authority_unknown_user(challenge):
    authority = LocalAuthority()
    assert await authority.get_wallet_address("bob") is None
    assert await authority.sign_payment(challenge, "bob") is None


@pytest.mark.asyncio
async def test_privy_wallet_lookup():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"id": "did:privy:1", "wallets": [{"address": PAYER_ADDRESS}]})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        authority = PrivyAuthority("app-id", "app-secret", http_client=http)
        address = await authority.get_wallet_address("did:privy:1")

    assert address == PAYER_ADDRESS
    request = seen[0]
    assert request.url == "https://auth.privy.io/api/v1/users/did:privy:1"
    assert request.headers["authorization"] == "Bearer app-secret"
    assert request.headers["privy-app-id"] == "app-id"


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(404, json={"error": "not found"}),
        httpx.Response(200, json={"wallets": []}),
    ],
)
@pytest.mark.asyncio
async def test_privy_wallet_lookup_misses(response):
    async with httpx.AsyncClient(transport=httpx.MockTransport(lambda request: response)) as http:
        authority = PrivyAuthority("app-id", "app-secret", base_url="https://privy.test/", http_client=http)
        assert await authority.get_wallet_address("user") is None


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, text="<html>maintenance</html>"),
        httpx.Response(200, json=["not", "an", "object"]),
        httpx.Response(200, json={"wallets": ["0xnotadict"]}),
    ],
)
@pytest.mark.asyncio
async def test_privy_unexpected_payload_returns_none(response):
    async with httpx.AsyncClient(transport=httpx.MockTransport(lambda request: response)) as http:
        authority = PrivyAuthority("app-id", "app-secret", http_client=http)
        assert await authority.get_wallet_address("u1") is None


@pytest.mark.asyncio
async def test_privy_accepts_any_success_status():
    response = httpx.Response(203, json={"wallets": [{"address": PAYER_ADDRESS}]})
    async with httpx.AsyncClient(transport=httpx.MockTransport(lambda request: response)) as http:
        authority = PrivyAuthority("app-id", "app-secret", http_client=http)
        assert await authority.get_wallet_address("u1") == PAYER_ADDRESS


@pytest.mark.asyncio
async def test_privy_network_error_returns_none():
    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        authority = PrivyAuthority("app-id", "app-secret", http_client=http)
        assert await authority.get_wallet_address("user") is None


@pytest.mark.asyncio
async def test_privy_verifies_locally_and_does_not_sign(challenge):
    authority = PrivyAuthority("app-id", "app-secret")
    assertion = sign_payment_challenge(challenge, PAYER_KEY)

    assert (await authority.verify_payment(challenge, assertion.signature, PAYER_ADDRESS)).valid
    assert await authority.sign_payment(challenge, "user") is None


def test_privy_requires_credentials():
    with pytest.raises(ConfigurationError):
        PrivyAuthority("", "secret")


def test_registry():
    assert isinstance(create_authority("local"), LocalAuthority)
    assert isinstance(create_authority(" Privy ", app_id="a", app_secret="b"), PrivyAuthority)

    with pytest.raises(ConfigurationError):
        create_authority("coinbase")
    with pytest.raises(ConfigurationError):
        create_authority("local", unexpected=True)


def test_custom_registry():
    class StaticAuthority(VerificationAuthority):
        name = "static"

        async def verify_payment(self, challenge, signature, signer):
            raise NotImplementedError

        async def get_wallet_address(self, user_id):
            return None

        async def sign_payment(self, challenge, user_id):
            return None

    registry = AuthorityRegistry()
    registry.register("static", StaticAuthority)

    assert registry.names() == ["static"]
    assert isinstance(registry.create("STATIC"), StaticAuthority)
    with pytest.raises(ValueError):
        registry.register("  ", StaticAuthority)
