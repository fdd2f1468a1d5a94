"""Tests for trust_gateway.executor — intent parsing and Markdown replies."""

import httpx
import pytest

from conftest import OWNER
from trust_gateway.executor import USAGE_HINT, Intent, TrustGatewayExecutor, parse_intent
from trust_gateway.registry import InMemoryRegistryClient
from trust_gateway.service import TrustService


class TestParseIntent:
    @pytest.mark.parametrize("text,expected", [
        ("What's the trust score for agent 42?", ("42", Intent.SCORE)),
        ("Validate agent #100", ("100", Intent.VALIDATE)),
        ("Show me agent 7's identity", ("7", Intent.PROFILE)),
        ("agent 5", ("5", Intent.PROFILE)),
        ("Check agent 9 health", ("9", Intent.VALIDATE)),
    ])
    def test_intents(self, text, expected):
        assert parse_intent(text) == expected

    def test_profile_wins_over_score(self):
        assert parse_intent("profile and trust score for agent 3")[1] is Intent.PROFILE

    def test_no_agent_id(self):
        assert parse_intent("how are you?") == (None, Intent.PROFILE)


class TestExecute:
    @pytest.mark.asyncio
    async def test_usage_hint_without_id(self, config, registry):
        async with httpx.AsyncClient() as client:
            executor = TrustGatewayExecutor(TrustService(config, client, registry_factory=lambda c: registry))
            assert await executor.execute("tell me something") == USAGE_HINT
        assert registry.calls == []

    @pytest.mark.asyncio
    async def test_profile_reply(self, config, registry):
        async with httpx.AsyncClient() as client:
            executor = TrustGatewayExecutor(TrustService(config, client, registry_factory=lambda c: registry))
            reply = await executor.execute("Get the profile for agent 42")
        assert reply.startswith("**Agent #42 Profile**")
        assert "**Name:** Sample Agent" in reply
        assert f"**Owner:** {OWNER}" in reply
        assert "A2A (https://agent.example/a2a)" in reply

    @pytest.mark.asyncio
    async def test_score_reply(self, config, registry):
        registry.give_feedback(42, 90, OWNER)
        async with httpx.AsyncClient() as client:
            executor = TrustGatewayExecutor(TrustService(config, client, registry_factory=lambda c: registry))
            reply = await executor.execute("What's the trust score for agent 42?")
        assert "**Agent #42 Trust Score**" in reply
        assert "- Total Feedback: 1" in reply

    @pytest.mark.asyncio
    async def test_validation_reply_wallet_only_endpoints(self, config):
        registry = InMemoryRegistryClient()
        registry.register(8, 'data:application/json;base64,eyJuYW1lIjogIk5vIEVuZHBvaW50cyJ9', OWNER)
        async with httpx.AsyncClient() as client:
            executor = TrustGatewayExecutor(TrustService(config, client, registry_factory=lambda c: registry))
            reply = await executor.execute("Validate agent 8")
        assert "**Overall:** validated" in reply
        assert "No endpoints declared" in reply

    @pytest.mark.asyncio
    async def test_unknown_agent_is_error_text(self, config):
        async with httpx.AsyncClient() as client:
            executor = TrustGatewayExecutor(
                TrustService(config, client, registry_factory=lambda c: InMemoryRegistryClient()))
            reply = await executor.execute("profile of agent 404")
        assert reply == "Error: Agent registration not found"

    @pytest.mark.asyncio
    async def test_unexpected_failure_is_generic(self, config):
        class Broken(InMemoryRegistryClient):
            async def token_uri(self, agent_id):
                raise KeyError("boom")

        async with httpx.AsyncClient() as client:
            executor = TrustGatewayExecutor(TrustService(config, client, registry_factory=lambda c: Broken()))
            reply = await executor.execute("profile of agent 1")
        assert reply == "Error: Unknown error occurred"
