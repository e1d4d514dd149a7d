"""
Fingerprint Context Processor Tests
"""

from unittest.mock import MagicMock

from core.processors.context import FingerprintContextProcessor
from core.processors.geo import GeoData
from core.processors.signals import NetworkSignals
from core.schemas.fingerprint import AccountType

from conftest import make_attempt


def providers(geo=None):
    signal_provider = MagicMock()
    signal_provider.collect.return_value = NetworkSignals(
        ip_version="v4", hashed_prefix="p", hashed_pseudo_asn="a", hashed_ptr=None
    )
    geo_resolver = MagicMock()
    geo_resolver.lookup.return_value = geo
    return signal_provider, geo_resolver


class TestBuild:

    def test_native_attempt(self):
        signal_provider, geo_resolver = providers(GeoData(country_code="DE", city="Berlin"))
        processor = FingerprintContextProcessor(signal_provider, geo_resolver)

        fp = processor.build(make_attempt(client_id="uuid-1", platform_id="ignored", device_os="linux"))

        assert fp.account_type == AccountType.NATIVE
        assert fp.client_id == "uuid-1"
        assert fp.platform_id is None
        assert fp.client_brand == "native"
        assert fp.device_os == "linux"
        assert fp.hashed_prefix == "p"
        assert fp.hashed_ptr is None
        assert fp.country_code == "DE"

    def test_bridged_attempt(self):
        signal_provider, geo_resolver = providers()
        processor = FingerprintContextProcessor(signal_provider, geo_resolver)

        fp = processor.build(make_attempt(bridged=True, platform_id="2535400000000", client_id="x"))

        assert fp.account_type == AccountType.BRIDGED
        assert fp.platform_id == "2535400000000"
        assert fp.client_id is None
        assert fp.client_brand == "bridge"
        assert fp.country_code is None

    def test_reported_brand_wins(self):
        signal_provider, _ = providers()
        processor = FingerprintContextProcessor(signal_provider)
        assert processor.build(make_attempt(client_brand="fabric")).client_brand == "fabric"

    def test_provider_failures_omit_signals(self):
        signal_provider = MagicMock()
        signal_provider.collect.side_effect = RuntimeError("boom")
        geo_resolver = MagicMock()
        geo_resolver.lookup.side_effect = RuntimeError("boom")
        processor = FingerprintContextProcessor(signal_provider, geo_resolver)

        fp = processor.build(make_attempt())

        assert fp.ip_version == "unknown"
        assert fp.network_hashes == (None, None, None)
        assert fp.country_code is None
