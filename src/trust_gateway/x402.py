"""
trust_gateway.x402 — HTTP 402 payment requirements, headers and facilitator calls.

Wire format follows x402 v1:
- 402 body: ``{"x402Version": 1, "error": ..., "accepts": [PaymentRequirements]}``
- client proof: ``X-PAYMENT`` header, base64-encoded JSON payment payload
- settlement echo: ``X-PAYMENT-RESPONSE`` header, base64-encoded JSON

Verification and settlement are delegated to a facilitator service; the
gateway never touches funds itself.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Sequence

import httpx

logger = logging.getLogger(__name__)

X402_VERSION = 1
PAYMENT_HEADER = "X-PAYMENT"
PAYMENT_RESPONSE_HEADER = "X-PAYMENT-RESPONSE"
USDC_DECIMALS = 6

# CAIP-2 chain ids -> x402 network names
CAIP2_NETWORKS = {
    "eip155:8453": "base",
    "eip155:84532": "base-sepolia",
    "eip155:1": "ethereum",
    "eip155:11155111": "sepolia",
}

# USDC contract + EIP-712 domain name per network
USDC_ASSETS = {
    "base": ("0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913", "USD Coin"),
    "base-sepolia": ("0x036CbD53842c5426634e7929541eC2318f3dCF7e", "USDC"),
    "ethereum": ("0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48", "USD Coin"),
    "sepolia": ("0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238", "USDC"),
}


class InvalidPaymentHeader(ValueError):
    """The X-PAYMENT header is not base64-encoded JSON."""


class FacilitatorError(Exception):
    """The facilitator could not be reached or answered garbage."""


def network_name(network: str) -> str:
    """Accept CAIP-2 (``eip155:84532``) or plain names (``base-sepolia``)."""
    return CAIP2_NETWORKS.get(network, network)


def parse_price(price: str) -> Decimal:
    """``"$0.01"`` -> ``Decimal("0.01")``."""
    cleaned = price.strip().lstrip("$").strip()
    try:
        value = Decimal(cleaned)
    except InvalidOperation as e:
        raise ValueError(f"Invalid price {price!r}") from e
    if value < 0:
        raise ValueError(f"Negative price {price!r}")
    return value


def to_atomic_units(amount: Decimal, decimals: int = USDC_DECIMALS) -> str:
    return str(int((amount * (10 ** decimals)).to_integral_value()))


# ---------------------------------------------------------------------------
# Price table
# ---------------------------------------------------------------------------

def _route_regex(pattern: str) -> re.Pattern:
    parts = []
    for token in re.split(r"(\{[A-Za-z0-9_]+\}|\*)", pattern):
        if token == "*":
            parts.append(".*")
        elif token.startswith("{") and token.endswith("}"):
            parts.append("[^/]+")
        else:
            parts.append(re.escape(token))
    return re.compile("^" + "".join(parts) + "$")


@dataclass(frozen=True)
class PriceEntry:
    """A priced route: ``"POST /api/agent/score/invoke"``, ``"$0.01"``."""
    route: str
    price: str
    description: str

    @property
    def method(self) -> str:
        return self.route.split(" ", 1)[0].upper()

    @property
    def path(self) -> str:
        return self.route.split(" ", 1)[1]

    @property
    def amount(self) -> Decimal:
        return parse_price(self.price)

    def matches(self, method: str, path: str) -> bool:
        return method.upper() == self.method and bool(_route_regex(self.path).match(path))


class PriceTable:
    """Immutable list of priced routes plus a fallback for unlisted paid paths."""

    def __init__(self, entries: Sequence[PriceEntry], fallback: PriceEntry):
        self._entries = tuple(entries)
        self._fallback = fallback
        for entry in (*self._entries, fallback):
            parse_price(entry.price)

    @property
    def entries(self) -> tuple[PriceEntry, ...]:
        return self._entries

    @property
    def fallback(self) -> PriceEntry:
        return self._fallback

    def match(self, method: str, path: str) -> Optional[PriceEntry]:
        for entry in self._entries:
            if entry.matches(method, path):
                return entry
        return None

    def price_for(self, method: str, path: str) -> PriceEntry:
        return self.match(method, path) or self._fallback

    def by_route(self, route: str) -> Optional[PriceEntry]:
        for entry in self._entries:
            if entry.route == route:
                return entry
        return None


# ---------------------------------------------------------------------------
# Requirements / headers
# ---------------------------------------------------------------------------

@dataclass
class PaymentRequirements:
    """x402 PaymentRequirements advertised in 402 responses."""
    network: str
    max_amount_required: str  # smallest unit (USDC has 6 decimals)
    resource: str
    description: str
    pay_to: str
    asset: str
    scheme: str = "exact"
    mime_type: str = "application/json"
    max_timeout_seconds: int = 60
    extra: dict = field(default_factory=dict)

    @classmethod
    def for_entry(cls, entry: PriceEntry, network: str, pay_to: str, resource: str) -> "PaymentRequirements":
        name = network_name(network)
        asset, token_name = USDC_ASSETS.get(name, ("", "USDC"))
        return cls(
            network=name,
            max_amount_required=to_atomic_units(entry.amount),
            resource=resource,
            description=entry.description,
            pay_to=pay_to,
            asset=asset,
            extra={"name": token_name, "version": "2"},
        )

    def to_dict(self) -> dict:
        return {
            "scheme": self.scheme,
            "network": self.network,
            "maxAmountRequired": self.max_amount_required,
            "resource": self.resource,
            "description": self.description,
            "mimeType": self.mime_type,
            "payTo": self.pay_to,
            "maxTimeoutSeconds": self.max_timeout_seconds,
            "asset": self.asset,
            "extra": dict(self.extra),
        }


def payment_required_body(requirements: PaymentRequirements, error: str) -> dict:
    return {"x402Version": X402_VERSION, "error": error, "accepts": [requirements.to_dict()]}


def decode_payment_header(value: str) -> dict:
    """Decode the X-PAYMENT header into the payment payload dict."""
    try:
        decoded = base64.b64decode(value.strip(), validate=True)
        payload = json.loads(decoded)
    except (binascii.Error, ValueError) as e:
        raise InvalidPaymentHeader("X-PAYMENT is not base64 JSON") from e
    if not isinstance(payload, dict):
        raise InvalidPaymentHeader("X-PAYMENT payload must be an object")
    return payload


def encode_payment_header(payload: dict) -> str:
    return base64.b64encode(json.dumps(payload, separators=(",", ":")).encode()).decode()


encode_settlement_header = encode_payment_header


# ---------------------------------------------------------------------------
# Verification capability
# ---------------------------------------------------------------------------

@dataclass
class VerifyResult:
    is_valid: bool
    invalid_reason: Optional[str] = None
    payer: Optional[str] = None


@dataclass
class SettleResult:
    success: bool
    transaction: str = ""
    network: str = ""
    payer: Optional[str] = None
    error_reason: Optional[str] = None

    def to_dict(self) -> dict:
        d: dict[str, Any] = {
            "success": self.success,
            "transaction": self.transaction,
            "network": self.network,
        }
        if self.payer:
            d["payer"] = self.payer
        if self.error_reason:
            d["errorReason"] = self.error_reason
        return d


class PaymentVerifier(ABC):
    """Validates and settles payment proofs against a price."""

    @abstractmethod
    async def verify(self, payment: dict, requirements: PaymentRequirements) -> VerifyResult:
        ...

    @abstractmethod
    async def settle(self, payment: dict, requirements: PaymentRequirements) -> SettleResult:
        ...


class FacilitatorClient(PaymentVerifier):
    """x402 facilitator over HTTP (``POST /verify``, ``POST /settle``)."""

    def __init__(self, url: str, http_client: httpx.AsyncClient, timeout: float = 10.0):
        self.url = url.rstrip("/")
        self._http = http_client
        self._timeout = timeout

    async def _post(self, op: str, payment: dict, requirements: PaymentRequirements) -> dict:
        body = {
            "x402Version": X402_VERSION,
            "paymentPayload": payment,
            "paymentRequirements": requirements.to_dict(),
        }
        try:
            resp = await self._http.post(f"{self.url}/{op}", json=body, timeout=self._timeout)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Facilitator %s failed: %s", op, type(e).__name__)
            raise FacilitatorError(f"Facilitator {op} failed") from e
        if not isinstance(data, dict):
            raise FacilitatorError(f"Facilitator {op} returned a non-object")
        return data

    async def verify(self, payment: dict, requirements: PaymentRequirements) -> VerifyResult:
        data = await self._post("verify", payment, requirements)
        return VerifyResult(
            is_valid=bool(data.get("isValid")),
            invalid_reason=data.get("invalidReason"),
            payer=data.get("payer"),
        )

    async def settle(self, payment: dict, requirements: PaymentRequirements) -> SettleResult:
        data = await self._post("settle", payment, requirements)
        return SettleResult(
            success=bool(data.get("success")),
            transaction=data.get("transaction", "") or "",
            network=data.get("network", requirements.network) or requirements.network,
            payer=data.get("payer"),
            error_reason=data.get("errorReason"),
        )
