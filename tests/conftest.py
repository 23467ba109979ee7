"""
Test configuration - pytest fixtures
"""

import pytest

from fakes import make_news, make_quote
from heights_ai.config import Settings
from heights_ai.gateway.provider_gateway import ProviderGateway
from heights_ai.orchestrator import Orchestrator


# ==================== Fixtures ====================

@pytest.fixture
def settings():
    """Deterministic settings: no retries, no waiting"""
    return Settings(max_retries=0, retry_delay=0.0, reasoning_timeout=2.0, data_timeout=2.0)


@pytest.fixture
def btc_quote():
    return make_quote()


@pytest.fixture
def news_items():
    return [make_news(), make_news("Regulators weigh new crypto rules")]


@pytest.fixture
def make_orchestrator(settings):
    """Factory: orchestrator over a bare gateway holding the given fakes"""
    def factory(*providers, **overrides):
        gateway = ProviderGateway(providers, retry_delay=0.0)
        return Orchestrator(gateway, settings=overrides.get("settings", settings))
    return factory
