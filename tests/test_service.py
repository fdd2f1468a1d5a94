"""Tests for TrustService and the input models it relies on."""

import httpx
import pytest

from conftest import AGENT_WALLET, OWNER
from trust_gateway.errors import InputValidationError, NotFoundError, UpstreamError
from trust_gateway.models import ValidateInput, parse_agent_id, parse_invoke
from trust_gateway.registry import InMemoryRegistryClient, RegistryError
from trust_gateway.service import FEEDBACK_UNAVAILABLE_WARNING, TrustService


class TestAgentId:
    @pytest.mark.parametrize("value,expected", [("42", 42), (42, 42), ("0", 0)])
    def test_accepts(self, value, expected):
        assert parse_agent_id(value) == expected

    @pytest.mark.parametrize("value", ["0x2a", "-1", "4.2", "", " 42", True, None, 2**256])
    def test_rejects(self, value):
        with pytest.raises(InputValidationError) as exc:
            parse_agent_id(value)
        assert exc.value.status_code == 400
        assert exc.value.details[0]["field"] == "agentId"

    def test_validate_input_default_checks(self):
        args = parse_invoke({"input": {"agentId": "7"}}, ValidateInput)
        assert args.agent_id == 7
        assert args.checks == ["endpoints", "wallet"]

    def test_extra_fields_rejected(self):
        with pytest.raises(InputValidationError):
            parse_invoke({"input": {"agentId": 7, "verbose": True}}, ValidateInput)


class TestTrustService:
    @pytest.mark.asyncio
    async def test_profile_uses_agent_wallet_metadata(self, config, registry):
        async with httpx.AsyncClient() as client:
            profile = await TrustService(config, client, registry_factory=lambda c: registry).get_profile(42)
        assert profile["wallet"] == AGENT_WALLET
        assert profile["owner"] == OWNER
        assert profile["active"] is True
        assert profile["endpoints"] == [{"name": "A2A", "endpoint": "https://agent.example/a2a", "version": "0.3.0"}]

    @pytest.mark.asyncio
    async def test_unknown_chain_uses_default(self, config, registry):
        seen = []

        def factory(chain):
            seen.append(chain.name)
            return registry

        async with httpx.AsyncClient() as client:
            profile = await TrustService(config, client, registry_factory=factory).get_profile(42, "polygon")
        assert profile["chain"] == "base"
        assert seen == ["base"]

    @pytest.mark.asyncio
    async def test_one_registry_per_chain_closed_on_aclose(self, config, registry):
        built = []

        class Closing(InMemoryRegistryClient):
            closed = 0

            async def aclose(self):
                self.closed += 1

        def factory(chain):
            client = Closing()
            client._uris, client._owners, client._metadata = registry._uris, registry._owners, registry._metadata
            built.append((chain.name, client))
            return client

        async with httpx.AsyncClient() as client:
            service = TrustService(config, client, registry_factory=factory)
            await service.get_profile(42)
            await service.get_score(42)
            await service.get_profile(42, "sepolia")
            await service.aclose()
        assert [name for name, _ in built] == ["base", "sepolia"]
        assert [c.closed for _, c in built] == [1, 1]

    @pytest.mark.asyncio
    async def test_score_survives_feedback_outage(self, config, registry):
        class NoFeedback(InMemoryRegistryClient):
            async def read_all_feedback(self, agent_id):
                raise RegistryError("reputation rpc down")

        flaky = NoFeedback()
        flaky._uris, flaky._owners, flaky._metadata = registry._uris, registry._owners, registry._metadata
        async with httpx.AsyncClient() as client:
            score = await TrustService(config, client, registry_factory=lambda c: flaky).get_score(42)
        assert score["warnings"] == [FEEDBACK_UNAVAILABLE_WARNING]
        assert score["feedbackSummary"]["count"] == 0
        assert score["breakdown"]["feedbackScore"] == 50

    @pytest.mark.asyncio
    async def test_unregistered_is_not_found(self, config):
        async with httpx.AsyncClient() as client:
            service = TrustService(config, client, registry_factory=lambda c: InMemoryRegistryClient())
            with pytest.raises(NotFoundError):
                await service.get_score(1)

    @pytest.mark.asyncio
    async def test_owner_read_failure_is_upstream(self, config, registry):
        class NoOwner(InMemoryRegistryClient):
            async def owner_of(self, agent_id):
                raise RegistryError("timeout")

        broken = NoOwner()
        broken._uris = registry._uris
        async with httpx.AsyncClient() as client:
            service = TrustService(config, client, registry_factory=lambda c: broken)
            with pytest.raises(UpstreamError) as exc:
                await service.get_profile(42)
        assert "timeout" not in exc.value.message

    @pytest.mark.asyncio
    async def test_validate_merges_report(self, config, registry):
        async with httpx.AsyncClient() as client:
            result = await TrustService(config, client, registry_factory=lambda c: registry).validate(
                42, checks=["wallet"])
        assert result["agentId"] == "42"
        assert result["agentName"] == "Sample Agent"
        assert result["walletStatus"]["address"] == AGENT_WALLET
