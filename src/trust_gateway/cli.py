#!/usr/bin/env python3
"""
trust-gateway CLI — run the gateway or query agents directly.

Commands:
    serve     - Start the HTTP gateway (uvicorn)
    profile   - Fetch an agent's identity profile
    score     - Compute an agent's trust score
    validate  - Run validation checks against an agent
    card      - Print the agent card with entrypoints

Query commands talk to the registries directly; no payment is involved.
"""

import argparse
import asyncio
import json
import sys
from typing import Optional

import httpx

from trust_gateway.card import discovery_document
from trust_gateway.config import GatewayConfig
from trust_gateway.errors import GatewayError
from trust_gateway.executor import render_profile, render_score, render_validation
from trust_gateway.models import parse_agent_id
from trust_gateway.payment_gate import default_price_table
from trust_gateway.service import TrustService
from trust_gateway.validation import Check


def _output(data: dict, args: argparse.Namespace, human_fn=None):
    """Output data as JSON or pretty-printed."""
    if getattr(args, "json", False) or human_fn is None:
        print(json.dumps(data, indent=2, default=str))
    else:
        print(human_fn(data))


def _config(args: argparse.Namespace) -> GatewayConfig:
    return GatewayConfig.from_env()


def make_service(config: GatewayConfig, client: httpx.AsyncClient) -> TrustService:
    return TrustService(config, client)


async def _query(args: argparse.Namespace) -> dict:
    config = _config(args)
    agent_id = parse_agent_id(args.agent_id)
    async with httpx.AsyncClient(timeout=config.fetch_timeout) as client:
        service = make_service(config, client)
        try:
            if args.command == "score":
                return await service.get_score(agent_id, args.chain)
            if args.command == "validate":
                return await service.validate(agent_id, args.chain, args.checks)
            return await service.get_profile(agent_id, args.chain)
        finally:
            await service.aclose()


# ─── Commands ──────────────────────────────────────────────────────

def cmd_profile(args):
    """Fetch an agent's identity profile."""
    result = asyncio.run(_query(args))
    _output(result, args, render_profile)
    return result


def cmd_score(args):
    result = asyncio.run(_query(args))
    _output(result, args, render_score)
    return result


def cmd_validate(args):
    result = asyncio.run(_query(args))
    _output(result, args, render_validation)
    return result


def cmd_card(args):
    """Print the discovery document served at /.well-known/agent-card.json."""
    result = discovery_document(_config(args), default_price_table())
    _output(result, args)
    return result


def cmd_serve(args):
    import uvicorn

    from trust_gateway.api import create_app

    config = _config(args)
    app = create_app(config)
    uvicorn.run(app, host=args.host, port=args.port or config.port)


# ─── Parser ────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="trust-gateway",
        description="Agent Trust Gateway — trust evaluation for ERC-8004 agents",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--json", action="store_true", help="Machine-readable JSON output")

    sub = parser.add_subparsers(dest="command", help="Available commands")

    # serve
    p = sub.add_parser("serve", help="Start the HTTP gateway")
    p.add_argument("--host", default="0.0.0.0", help="Bind address")
    p.add_argument("--port", type=int, default=None, help="Port (default: $PORT or 3000)")

    # profile / score
    for name, help_text in (("profile", "Fetch an agent's identity profile"),
                            ("score", "Compute an agent's trust score")):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("agent_id", help="ERC-8004 token ID")
        p.add_argument("-c", "--chain", default=None, help="base, base-sepolia, ethereum or sepolia")

    # validate
    p = sub.add_parser("validate", help="Run validation checks against an agent")
    p.add_argument("agent_id", help="ERC-8004 token ID")
    p.add_argument("-c", "--chain", default=None, help="base, base-sepolia, ethereum or sepolia")
    p.add_argument("--checks", nargs="+", choices=[c.value for c in Check], default=None,
                   help="Checks to run (default: endpoints wallet)")

    # card
    sub.add_parser("card", help="Print the agent card with entrypoints")

    return parser


def main(argv: Optional[list[str]] = None) -> Optional[dict]:
    """CLI entry point. Returns result dict for testing."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    commands = {
        "serve": cmd_serve,
        "profile": cmd_profile,
        "score": cmd_score,
        "validate": cmd_validate,
        "card": cmd_card,
    }

    try:
        return commands[args.command](args)
    except GatewayError as e:
        print(f"❌ {e.error}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
