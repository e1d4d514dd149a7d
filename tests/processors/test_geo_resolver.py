"""
Geo Resolver Tests

GeoLite2 readers are mocked; no database file is required.
"""

from unittest.mock import MagicMock

import geoip2.errors

from core.processors.geo import GeoResolver


def city_response(country="DE", city="Berlin", region="Berlin", asn=3320, org="Deutsche Telekom AG", isp=None):
    response = MagicMock()
    response.country.iso_code = country
    response.city.name = city
    response.subdivisions.most_specific.name = region
    response.traits.isp = isp
    response.traits.autonomous_system_number = asn
    response.traits.autonomous_system_organization = org
    return response


class TestLookup:
    """Resolution and fail-open behaviour."""

    def test_resolves_city_reader_fields(self):
        reader = MagicMock()
        reader.city.return_value = city_response()
        resolver = GeoResolver(None, city_reader=reader)

        geo = resolver.lookup("80.1.2.3")

        assert geo.country_code == "DE"
        assert geo.city == "Berlin"
        assert geo.region == "Berlin"
        assert geo.asn == "3320"
        assert geo.org == "Deutsche Telekom AG"
        assert geo.isp == "Deutsche Telekom AG"

    def test_asn_reader_fallback(self):
        city_reader = MagicMock()
        city_reader.city.return_value = city_response(asn=None, org=None)
        asn_reader = MagicMock()
        asn_reader.asn.return_value = MagicMock(
            autonomous_system_number=15169, autonomous_system_organization="GOOGLE"
        )
        resolver = GeoResolver(None, city_reader=city_reader, asn_reader=asn_reader)

        geo = resolver.lookup("8.8.8.8")

        assert geo.asn == "15169"
        assert geo.org == "GOOGLE"

    def test_private_address_skipped(self):
        reader = MagicMock()
        resolver = GeoResolver(None, city_reader=reader)

        assert resolver.lookup("192.168.1.10") is None
        assert resolver.lookup("127.0.0.1") is None
        assert resolver.lookup("garbage") is None
        reader.city.assert_not_called()

    def test_disabled(self):
        reader = MagicMock()
        resolver = GeoResolver(None, enabled=False, city_reader=reader)
        assert resolver.lookup("80.1.2.3") is None

    def test_address_not_found(self):
        reader = MagicMock()
        reader.city.side_effect = geoip2.errors.AddressNotFoundError("not found")
        resolver = GeoResolver(None, city_reader=reader)
        assert resolver.lookup("80.1.2.3") is None

    def test_reader_error_never_raises(self):
        reader = MagicMock()
        reader.city.side_effect = RuntimeError("corrupt database")
        resolver = GeoResolver(None, city_reader=reader)
        assert resolver.lookup("80.1.2.3") is None

    def test_missing_database_disables_lookup(self, tmp_path):
        resolver = GeoResolver(str(tmp_path / "missing.mmdb"), None)
        assert resolver.lookup("80.1.2.3") is None

    def test_mocked_reader_via_database_path(self, mock_geoip):
        with mock_geoip({"80.1.2.3": {"country_iso": "FR", "city_name": "Paris"}}):
            resolver = GeoResolver("assets/GeoLite2-City.mmdb", None)
            geo = resolver.lookup("80.1.2.3")
        assert geo.country_code == "FR"
        assert geo.city == "Paris"


class TestCache:
    """TTL cache and size bound."""

    def test_results_cached(self):
        reader = MagicMock()
        reader.city.return_value = city_response()
        resolver = GeoResolver(None, city_reader=reader)

        resolver.lookup("80.1.2.3")
        resolver.lookup("80.1.2.3")

        assert reader.city.call_count == 1

    def test_zero_ttl_not_cached(self):
        reader = MagicMock()
        reader.city.return_value = city_response()
        resolver = GeoResolver(None, ttl_seconds=0, city_reader=reader)

        resolver.lookup("80.1.2.3")
        resolver.lookup("80.1.2.3")

        assert reader.city.call_count == 2
        assert resolver.sweep_expired() == 1

    def test_expired_entry_dropped_on_lookup(self):
        reader = MagicMock()
        reader.city.return_value = city_response()
        resolver = GeoResolver(None, ttl_seconds=0, max_entries=2, city_reader=reader)

        for ip in ("80.1.2.1", "80.1.2.2", "80.1.2.3"):
            resolver.lookup(ip)

        assert list(resolver._cache) == ["80.1.2.3"]

    def test_full_cache_evicts_oldest(self):
        reader = MagicMock()
        reader.city.return_value = city_response()
        resolver = GeoResolver(None, max_entries=2, city_reader=reader)

        for ip in ("80.1.2.1", "80.1.2.2", "80.1.2.3"):
            resolver.lookup(ip)

        assert len(resolver._cache) == 2
        assert "80.1.2.1" not in resolver._cache

        resolver.lookup("80.1.2.3")
        resolver.lookup("80.1.2.1")
        assert reader.city.call_count == 4
