"""
NameGuard Test Suite - Shared Pytest Fixtures

This conftest.py provides fixtures for all test categories including:
- Configuration with a fixed HMAC secret
- Fingerprint and login attempt factories
- In-memory registry and an orchestrator with a stubbed context processor
- GeoIP reader mocking utilities

Usage:
    pytest tests/ -v
"""

from contextlib import contextmanager
from typing import Dict, Optional
from unittest.mock import MagicMock, patch

import pytest

from core.config import GuardConfig
from core.orchestrator import VerificationOrchestrator
from core.schemas.fingerprint import AccountType, Fingerprint
from core.schemas.inputs import LoginAttempt
from persistence.binding_store import MemoryBindingStore
from persistence.registry import BindingRegistry


TEST_SECRET = "test-secret-0123456789"


# =============================================================================
# Clock
# =============================================================================

class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start_ms: int = 1_700_000_000_000) -> None:
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()


# =============================================================================
# Config
# =============================================================================

def make_config(**overrides) -> GuardConfig:
    """GuardConfig from camelCase overrides, with a fixed secret."""
    raw = {"security": {"hmacSecret": TEST_SECRET}}
    raw.update(overrides)
    return GuardConfig.model_validate(raw)


@pytest.fixture
def config() -> GuardConfig:
    return make_config()


# =============================================================================
# Factories
# =============================================================================

def make_fingerprint(**fields) -> Fingerprint:
    """
    Native fingerprint from a typical residential connection.

    Scores 136 against itself with default weights: 100 from client and
    network signals plus 36 from geo.
    """
    base = dict(
        account_type=AccountType.NATIVE,
        ip_version="v4",
        hashed_prefix="prefix-a",
        hashed_pseudo_asn="pasn-a",
        hashed_ptr="ptr-a",
        client_brand="vanilla",
        device_os="windows",
        country_code="DE",
        city="Berlin",
        region="Berlin",
        asn="3320",
    )
    base.update(fields)
    return Fingerprint(**base)


def make_attempt(username: str = "Steve", ip_address: str = "203.0.113.7", **fields) -> LoginAttempt:
    return LoginAttempt(username=username, ip_address=ip_address, **fields)


# =============================================================================
# Persistence & Engine
# =============================================================================

@pytest.fixture
def store() -> MemoryBindingStore:
    return MemoryBindingStore()


@pytest.fixture
def registry(store, clock) -> BindingRegistry:
    return BindingRegistry(store, purge_after_ms=0, clock=clock)


@pytest.fixture
def context_processor():
    """Context processor stub; set ``.build.return_value`` per test."""
    processor = MagicMock()
    processor.build.return_value = make_fingerprint()
    return processor


@pytest.fixture
def notifier():
    return MagicMock()


@pytest.fixture
def orchestrator(config, registry, context_processor, notifier, clock) -> VerificationOrchestrator:
    return VerificationOrchestrator(
        config,
        registry,
        context_processor,
        notifier=notifier,
        clock=clock,
    )


# =============================================================================
# GeoIP Fixtures
# =============================================================================

@pytest.fixture
def mock_geoip():
    """
    Fixture that returns a context manager for mocking GeoIP city responses.

    Usage:
        def test_example(mock_geoip):
            with mock_geoip({"8.8.8.8": {"country_iso": "US"}}) as reader:
                ...
    """
    @contextmanager
    def _mock_geoip(ip_responses: Dict[str, dict]):
        def create_mock_response(ip: str):
            if ip not in ip_responses:
                raise Exception(f"IP {ip} not in mock database")

            data = ip_responses[ip]

            mock_response = MagicMock()
            mock_response.country.iso_code = data.get("country_iso", "US")
            mock_response.city.name = data.get("city_name", "MockCity")
            mock_response.subdivisions.most_specific.name = data.get("region")
            mock_response.traits.isp = data.get("isp")
            mock_response.traits.autonomous_system_number = data.get("asn")
            mock_response.traits.autonomous_system_organization = data.get("org")
            return mock_response

        mock_reader = MagicMock()
        mock_reader.city.side_effect = create_mock_response

        with patch("geoip2.database.Reader") as MockReader:
            MockReader.return_value = mock_reader
            yield mock_reader

    return _mock_geoip
