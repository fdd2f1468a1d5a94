"""
Agent Trust Gateway — HTTP surface.

Free:
  GET  /health                        — liveness
  GET  /api/health                    — service health
  GET  /.well-known/agent-card.json   — A2A card + priced entrypoints
Paid (x402, X-PAYMENT header):
  GET  /api/agent/{id}/profile        — $0.001
  POST /api/agent/profile/invoke      — $0.001
  POST /api/agent/score/invoke        — $0.01
  POST /api/agent/validate/invoke     — $0.03
  POST /a2a                           — $0.01 for message/send and message/stream only
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.responses import JSONResponse

from trust_gateway.a2a import A2ARuntime
from trust_gateway.card import discovery_document
from trust_gateway.config import GatewayConfig
from trust_gateway.executor import TrustGatewayExecutor
from trust_gateway.jsonrpc import INTERNAL_ERROR, JSONRPCError, error_response, parse_envelope, request_id_of
from trust_gateway.models import ProfileInput, ScoreInput, ValidateInput, parse_agent_id, parse_invoke
from trust_gateway.payment_gate import PaymentGate, PaymentMiddleware, default_price_table
from trust_gateway.security import PAID_RATE_LIMIT, apply_security, limiter, setup_structured_logging
from trust_gateway.service import RegistryFactory, TrustService
from trust_gateway.x402 import FacilitatorClient, PaymentVerifier, PriceTable

logger = logging.getLogger(__name__)

SERVICE_NAME = "agent-trust-gateway"

router = APIRouter()


def _service(request: Request) -> TrustService:
    return request.app.state.service


async def _json_body(request: Request):
    try:
        return await request.json()
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Health / discovery
# ---------------------------------------------------------------------------

@router.get("/health")
async def health(request: Request):
    config: GatewayConfig = request.app.state.config
    return {"status": "ok", "service": SERVICE_NAME, "version": config.agent_version,
            "timestamp": time.time()}


@router.get("/api/health")
async def api_health():
    return {"ok": True, "service": SERVICE_NAME}


@router.get("/.well-known/agent-card.json")
async def agent_card(request: Request):
    return discovery_document(request.app.state.config, request.app.state.gate.price_table)


# ---------------------------------------------------------------------------
# Paid REST operations
# ---------------------------------------------------------------------------

@router.get("/api/agent/{agent_id}/profile")
@limiter.limit(PAID_RATE_LIMIT)
async def agent_profile(agent_id: str, request: Request, chain: Optional[str] = Query(None)):
    """Identity profile by path parameter."""
    parsed = parse_agent_id(agent_id)
    return await _service(request).get_profile(parsed, chain)


@router.post("/api/agent/profile/invoke")
@limiter.limit(PAID_RATE_LIMIT)
async def invoke_profile(request: Request):
    args = parse_invoke(await _json_body(request), ProfileInput)
    return {"output": await _service(request).get_profile(args.agent_id, args.chain)}


@router.post("/api/agent/score/invoke")
@limiter.limit(PAID_RATE_LIMIT)
async def invoke_score(request: Request):
    args = parse_invoke(await _json_body(request), ScoreInput)
    return {"output": await _service(request).get_score(args.agent_id, args.chain)}


@router.post("/api/agent/validate/invoke")
@limiter.limit(PAID_RATE_LIMIT)
async def invoke_validate(request: Request):
    args = parse_invoke(await _json_body(request), ValidateInput)
    return {"output": await _service(request).validate(args.agent_id, args.chain, args.checks)}


# ---------------------------------------------------------------------------
# A2A JSON-RPC
# ---------------------------------------------------------------------------

@router.post("/a2a")
async def a2a(request: Request):
    """JSON-RPC errors are always delivered in an HTTP 200 envelope."""
    raw = await request.body()
    try:
        body = parse_envelope(raw, request.headers.get("content-type"))
    except JSONRPCError as e:
        return JSONResponse(error_response(None, e))

    runtime: A2ARuntime = request.app.state.runtime
    try:
        result = await runtime.handle(body)
    except Exception:
        logger.exception("A2A dispatch failed")
        result = error_response(request_id_of(body), JSONRPCError(INTERNAL_ERROR, "Internal error"))
    return JSONResponse(result)


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------

def create_app(
    config: Optional[GatewayConfig] = None,
    *,
    registry_factory: Optional[RegistryFactory] = None,
    verifier: Optional[PaymentVerifier] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    price_table: Optional[PriceTable] = None,
) -> FastAPI:
    """Build the gateway app. Everything not passed in is built from ``config``."""
    config = config or GatewayConfig.from_env()
    setup_structured_logging(config.log_level)

    owns_client = http_client is None
    client = http_client or httpx.AsyncClient(timeout=config.fetch_timeout)
    price_table = price_table or default_price_table()
    verifier = verifier or FacilitatorClient(config.facilitator_url, client, timeout=config.fetch_timeout)
    service = TrustService(config, client, registry_factory=registry_factory)
    gate = PaymentGate(config, price_table, verifier)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Gateway starting", extra={
            "network": config.network, "pay_to": config.wallet_address,
            "bypass_payments": config.bypass_payments, "default_chain": service.chains.default,
        })
        if config.bypass_payments:
            logger.warning("BYPASS_PAYMENTS is set; paid routes are served for free")
        try:
            yield
        finally:
            await service.aclose()
            if owns_client:
                await client.aclose()

    app = FastAPI(
        title=config.agent_name,
        description=config.agent_description,
        version=config.agent_version,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.service = service
    app.state.gate = gate
    app.state.runtime = A2ARuntime(TrustGatewayExecutor(service))

    app.add_middleware(PaymentMiddleware, gate=gate)
    apply_security(app, config.allowed_origins)
    app.include_router(router)
    return app
