"""
trust_gateway.payment_gate — Decides which requests must carry x402 payment.

Pricing is per route for REST and per JSON-RPC method for ``POST /a2a``:
only ``message/send`` and ``message/stream`` are paid there, so task
polling and cancellation stay free. The gate is evaluated before any
handler runs; a rejection short-circuits with HTTP 402.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from trust_gateway.config import GatewayConfig
from trust_gateway.jsonrpc import peek_method
from trust_gateway.x402 import (
    PAYMENT_HEADER,
    PAYMENT_RESPONSE_HEADER,
    FacilitatorError,
    InvalidPaymentHeader,
    PaymentRequirements,
    PaymentVerifier,
    PriceEntry,
    PriceTable,
    SettleResult,
    VerifyResult,
    decode_payment_header,
    encode_settlement_header,
    payment_required_body,
)

logger = logging.getLogger(__name__)

A2A_PATH = "/a2a"
PAID_PREFIX = "/api/"
FREE_PATHS = frozenset({"/api/health"})


class Transport(str, Enum):
    REST = "rest"
    JSONRPC = "jsonrpc"


class A2AMethod(str, Enum):
    MESSAGE_SEND = "message/send"
    MESSAGE_STREAM = "message/stream"
    TASKS_GET = "tasks/get"
    TASKS_CANCEL = "tasks/cancel"
    TASKS_RESUBSCRIBE = "tasks/resubscribe"
    PUSH_CONFIG_SET = "tasks/pushNotificationConfig/set"
    PUSH_CONFIG_GET = "tasks/pushNotificationConfig/get"
    PUSH_CONFIG_LIST = "tasks/pushNotificationConfig/list"
    PUSH_CONFIG_DELETE = "tasks/pushNotificationConfig/delete"
    UNKNOWN = "unknown"

    @classmethod
    def classify(cls, name: Optional[str]) -> "A2AMethod":
        if not name or name == cls.UNKNOWN.value:
            return cls.UNKNOWN
        try:
            return cls(name)
        except ValueError:
            return cls.UNKNOWN

    @property
    def paid(self) -> bool:
        return self in PAID_A2A_METHODS


PAID_A2A_METHODS = frozenset({A2AMethod.MESSAGE_SEND, A2AMethod.MESSAGE_STREAM})


def default_price_table() -> PriceTable:
    return PriceTable(
        [
            PriceEntry("GET /api/agent/{id}/profile", "$0.001",
                       "Fetch agent identity and registration file"),
            PriceEntry("POST /api/agent/profile/invoke", "$0.001",
                       "Fetch agent identity (A2A invoke format)"),
            PriceEntry("POST /api/agent/score/invoke", "$0.01",
                       "Compute trust score from reputation data"),
            PriceEntry("POST /api/agent/validate/invoke", "$0.03",
                       "Deep validation of agent endpoints and attestations"),
            PriceEntry("POST /a2a", "$0.01", "A2A task execution"),
        ],
        fallback=PriceEntry("GET /api/*", "$0.01", "Paid API access"),
    )


@dataclass(frozen=True)
class RequestDescriptor:
    transport: Transport
    http_method: str
    path: str
    rpc_method: Optional[str] = None
    payment_header: Optional[str] = None


@dataclass
class Allow:
    requirements: Optional[PaymentRequirements] = None
    payment: Optional[dict] = None
    verification: Optional[VerifyResult] = None

    @property
    def paid(self) -> bool:
        return self.payment is not None


@dataclass
class Reject:
    reason: str
    requirements: PaymentRequirements

    status_code = 402

    def body(self) -> dict:
        return payment_required_body(self.requirements, self.reason)


GateOutcome = Union[Allow, Reject]


def requirements_for(entry: PriceEntry, config: GatewayConfig, path: str) -> PaymentRequirements:
    return PaymentRequirements.for_entry(
        entry,
        network=config.network,
        pay_to=config.wallet_address,
        resource=config.public_base_url + path,
    )


class PaymentGate:
    """Classifies requests as free or paid and verifies payment proofs."""

    def __init__(self, config: GatewayConfig, price_table: PriceTable, verifier: PaymentVerifier):
        self.config = config
        self.price_table = price_table
        self.verifier = verifier

    def requires_payment(self, descriptor: RequestDescriptor) -> bool:
        if self.config.bypass_payments:
            return False
        if descriptor.transport is Transport.JSONRPC:
            return A2AMethod.classify(descriptor.rpc_method).paid
        if descriptor.path in FREE_PATHS:
            return False
        return descriptor.path.startswith(PAID_PREFIX)

    def price_for(self, descriptor: RequestDescriptor) -> PriceEntry:
        # HEAD is priced like the GET it mirrors
        method = "GET" if descriptor.http_method.upper() == "HEAD" else descriptor.http_method
        return self.price_table.price_for(method, descriptor.path)

    async def enforce(self, descriptor: RequestDescriptor) -> GateOutcome:
        if not self.requires_payment(descriptor):
            return Allow()

        requirements = requirements_for(self.price_for(descriptor), self.config, descriptor.path)
        if not descriptor.payment_header:
            return Reject(f"{PAYMENT_HEADER} header is required", requirements)

        try:
            payment = decode_payment_header(descriptor.payment_header)
        except InvalidPaymentHeader:
            return Reject("invalid_payment_header", requirements)

        try:
            result = await self.verifier.verify(payment, requirements)
        except FacilitatorError:
            return Reject("facilitator_unavailable", requirements)

        if not result.is_valid:
            logger.info("Payment rejected", extra={
                "path": descriptor.path, "reason": result.invalid_reason, "payer": result.payer,
            })
            return Reject(result.invalid_reason or "invalid_payment", requirements)
        return Allow(requirements, payment, result)

    async def settle(self, outcome: Allow) -> Optional[SettleResult]:
        """Settle a verified payment. Failures are logged, never raised."""
        if not outcome.paid:
            return None
        try:
            result = await self.verifier.settle(outcome.payment, outcome.requirements)
        except FacilitatorError as e:
            logger.warning("Settlement failed: %s", e)
            return None
        if not result.success:
            logger.warning("Settlement rejected: %s", result.error_reason)
        return result


# ---------------------------------------------------------------------------
# ASGI middleware
# ---------------------------------------------------------------------------

async def describe_request(request: Request) -> Optional[RequestDescriptor]:
    """Build a RequestDescriptor, or None for requests the gate never sees."""
    path = request.url.path
    header = request.headers.get(PAYMENT_HEADER)
    if request.method == "OPTIONS":
        return None
    if path == A2A_PATH and request.method == "POST":
        body = await request.body()
        return RequestDescriptor(
            Transport.JSONRPC, "POST", path,
            rpc_method=peek_method(body, request.headers.get("content-type")),
            payment_header=header,
        )
    if path.startswith(PAID_PREFIX):
        return RequestDescriptor(Transport.REST, request.method, path, payment_header=header)
    return None


class PaymentMiddleware(BaseHTTPMiddleware):
    """Runs the PaymentGate before routing and settles after a successful response."""

    def __init__(self, app, gate: PaymentGate):
        super().__init__(app)
        self.gate = gate

    async def dispatch(self, request: Request, call_next):
        descriptor = await describe_request(request)
        if descriptor is None:
            return await call_next(request)

        outcome = await self.gate.enforce(descriptor)
        if isinstance(outcome, Reject):
            return JSONResponse(status_code=outcome.status_code, content=outcome.body())

        response = await call_next(request)
        if outcome.paid and response.status_code < 400:
            settlement = await self.gate.settle(outcome)
            if settlement is not None and settlement.success:
                response.headers[PAYMENT_RESPONSE_HEADER] = encode_settlement_header(settlement.to_dict())
        return response

