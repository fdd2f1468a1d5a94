"""Global test configuration — runs before any test module imports."""
import base64
import json
import os

import pytest

# slowapi reads this at init, so it must be set before trust_gateway is imported
os.environ["RATELIMIT_ENABLED"] = "False"

from trust_gateway.config import GatewayConfig
from trust_gateway.registry import InMemoryRegistryClient
from trust_gateway.x402 import PaymentVerifier, SettleResult, VerifyResult

OWNER = "0x1111111111111111111111111111111111111111"
AGENT_WALLET = "0x2222222222222222222222222222222222222222"
PAY_TO = "0x9999999999999999999999999999999999999999"


def pytest_configure(config):
    """Disable rate limiter after all imports."""
    from trust_gateway.security import limiter
    limiter.enabled = False


def data_uri(doc: dict) -> str:
    return "data:application/json;base64," + base64.b64encode(json.dumps(doc).encode()).decode()


def payment_header(payload: dict = None) -> str:
    payload = payload or {"x402Version": 1, "scheme": "exact", "network": "base-sepolia",
                          "payload": {"signature": "0xsig"}}
    return base64.b64encode(json.dumps(payload).encode()).decode()


SAMPLE_REGISTRATION = {
    "type": "https://eips.ethereum.org/EIPS/eip-8004#registration-v1",
    "name": "Sample Agent",
    "description": "A sample agent used to exercise the trust gateway end to end in tests.",
    "endpoints": [{"name": "A2A", "endpoint": "https://agent.example/a2a", "version": "0.3.0"}],
    "supportedTrust": ["reputation"],
    "registrations": [{"agentId": 42, "agentRegistry": "eip155:8453:0x8004A169FB4a3325136EB29fA0ceB6D2e539a432"}],
}


class FakeVerifier(PaymentVerifier):
    """Records calls; accepts every proof unless told otherwise."""

    def __init__(self, valid: bool = True, reason: str = None, settle_ok: bool = True):
        self.valid = valid
        self.reason = reason
        self.settle_ok = settle_ok
        self.verify_calls = []
        self.settle_calls = []

    async def verify(self, payment, requirements):
        self.verify_calls.append((payment, requirements))
        return VerifyResult(is_valid=self.valid, invalid_reason=self.reason, payer=OWNER)

    async def settle(self, payment, requirements):
        self.settle_calls.append((payment, requirements))
        return SettleResult(success=self.settle_ok, transaction="0xtx", network=requirements.network,
                            payer=OWNER)


@pytest.fixture
def config():
    return GatewayConfig(wallet_address=PAY_TO, agent_url="https://gateway.example")


@pytest.fixture
def registry():
    reg = InMemoryRegistryClient()
    reg.register(42, data_uri(SAMPLE_REGISTRATION), OWNER, agentWallet=AGENT_WALLET)
    return reg


@pytest.fixture
def verifier():
    return FakeVerifier()
