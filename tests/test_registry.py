"""Tests for trust_gateway.registry — metadata decoding and client lifecycle."""

import pytest
from web3 import AsyncHTTPProvider, AsyncWeb3

from conftest import OWNER
from trust_gateway.chains import ChainTable
from trust_gateway.config import GatewayConfig
from trust_gateway.registry import InMemoryRegistryClient, Web3RegistryClient, decode_metadata


class RecordingProvider(AsyncHTTPProvider):
    def __init__(self):
        super().__init__("http://127.0.0.1:1")
        self.disconnects = 0

    async def disconnect(self):
        self.disconnects += 1


class TestDecodeMetadata:
    def test_raw_address(self):
        raw = bytes.fromhex("11" * 20)
        assert decode_metadata(raw) == AsyncWeb3.to_checksum_address("0x" + "11" * 20)

    def test_padded_address(self):
        raw = b"\x00" * 12 + bytes.fromhex("22" * 20)
        assert decode_metadata(raw).lower() == "0x" + "22" * 20

    def test_utf8(self):
        assert decode_metadata(b"hello\x00\x00") == "hello"


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_web3_client_disconnects_provider(self):
        provider = RecordingProvider()
        chain = ChainTable.from_config(GatewayConfig()).resolve("base-sepolia")
        client = Web3RegistryClient(chain, w3=AsyncWeb3(provider))
        await client.aclose()
        assert provider.disconnects == 1

    @pytest.mark.asyncio
    async def test_in_memory_close_is_noop(self):
        registry = InMemoryRegistryClient()
        registry.register(1, "ipfs://x", OWNER)
        await registry.aclose()
        assert await registry.owner_of(1) == OWNER
