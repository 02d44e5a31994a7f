"""Pytest configuration and fixtures for provider-ledger."""

import pytest

from provider_ledger import LedgerConfig, LedgerService
from provider_ledger.harness import (
    AccessPolicy,
    EventBus,
    RegisterKeyRegistry,
    TimeController,
    TokenVault,
)

from tests.test_constants import DEPLOYER, T0


# =============================================================================
# Pytest configuration
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "prio1: Priority 1 (critical) tests")
    config.addinivalue_line("markers", "prio2: Priority 2 (important) tests")
    config.addinivalue_line("markers", "prio3: Priority 3 (nice to have) tests")
    config.addinivalue_line("markers", "case(id): Test case identifier (e.g., LS-SUB-001)")


# =============================================================================
# Collaborators
# =============================================================================

@pytest.fixture
def time_ctl():
    """Clock frozen at T0."""
    ctl = TimeController()
    ctl.freeze_at(T0)
    return ctl


@pytest.fixture
def vault():
    """Token vault standing in for the ERC20 transfer service."""
    return TokenVault()


@pytest.fixture
def keys():
    return RegisterKeyRegistry()


@pytest.fixture
def bus(time_ctl):
    return EventBus(time_ctl)


@pytest.fixture
def cfg():
    return LedgerConfig()


# =============================================================================
# Ledger
# =============================================================================

@pytest.fixture
def service(vault, keys, bus, time_ctl, cfg):
    """LedgerService wired to in-memory collaborators, admin = deployer."""
    return LedgerService(
        transfer=vault,
        keys=keys,
        access=AccessPolicy(admin=DEPLOYER),
        events=bus,
        time=time_ctl,
        cfg=cfg,
    )
