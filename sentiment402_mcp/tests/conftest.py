"""Shared pytest fixtures for sentiment402_mcp tests."""

import pytest

from sentiment402_mcp.config import AdapterConfig
from sentiment402_mcp.core.cache import TtlCache
from sentiment402_mcp.types import PaymentRequiredEnvelope

from .helpers import API_BASE_URL, FakePaymentClient, envelope_dict, requirement_dict


@pytest.fixture
def sample_envelope():
    """Create a sample x402 v2 envelope with one affordable option."""
    return PaymentRequiredEnvelope.model_validate(envelope_dict(requirement_dict()))


@pytest.fixture
def fake_payer():
    return FakePaymentClient()


@pytest.fixture
def cache():
    return TtlCache(ttl_ms=60_000)


@pytest.fixture
def adapter_config():
    return AdapterConfig(api_base_url=API_BASE_URL)
