import pytest
from eth_account import Account

from fastx402.schemas.payments import PaymentConfig, RouteConfig

PAYER_KEY = "0x" + "11" * 32
OTHER_KEY = "0x" + "33" * 32
MERCHANT_KEY = "0x" + "22" * 32

PAYER_ADDRESS = Account.from_key(PAYER_KEY).address
OTHER_ADDRESS = Account.from_key(OTHER_KEY).address
MERCHANT_ADDRESS = Account.from_key(MERCHANT_KEY).address

NOW = 1_700_000_000


@pytest.fixture
def merchant_address():
    return MERCHANT_ADDRESS


@pytest.fixture
def payment_config():
    return PaymentConfig(merchant_address=MERCHANT_ADDRESS)


@pytest.fixture
def route_config():
    return RouteConfig(price="0.01", description="Premium data")
