"""
Identity Binding Tests

Rolling history, age purge, bookkeeping and the stored layouts.
"""

import pytest

from core.schemas.binding import Binding, BindingFormatError, TrustLevel
from core.schemas.fingerprint import AccountType

from conftest import make_fingerprint


DAY_MS = 24 * 60 * 60 * 1000


def new_binding(**fields):
    return Binding.create("steve", "Steve", AccountType.NATIVE, make_fingerprint(**fields))


class TestHistory:

    def test_create_has_one_fingerprint(self):
        binding = new_binding()
        assert len(binding.fingerprints) == 1
        assert binding.trust == TrustLevel.LOW

    def test_rolling_limit(self):
        binding = new_binding(device_os="os-0")
        for i in range(1, 8):
            binding.add_fingerprint(make_fingerprint(device_os=f"os-{i}"), limit=5)
            assert len(binding.fingerprints) <= 5

        assert [fp.device_os for fp in binding.fingerprints] == [f"os-{i}" for i in range(3, 8)]

    def test_equal_fingerprint_moves_to_end(self):
        binding = new_binding(device_os="a")
        binding.add_fingerprint(make_fingerprint(device_os="b"), limit=5)
        binding.add_fingerprint(make_fingerprint(device_os="a"), limit=5)

        assert [fp.device_os for fp in binding.fingerprints] == ["b", "a"]


class TestPurge:

    def test_old_entries_dropped(self):
        now = 1000 * DAY_MS
        binding = new_binding(device_os="old", created_at=now - 100 * DAY_MS)
        binding.add_fingerprint(make_fingerprint(device_os="new", created_at=now - DAY_MS), limit=5)

        removed = binding.purge_old_fingerprints(90 * DAY_MS, now_ms=now)

        assert removed == 1
        assert [fp.device_os for fp in binding.fingerprints] == ["new"]

    def test_newest_always_kept(self):
        now = 1000 * DAY_MS
        binding = new_binding(device_os="older", created_at=now - 200 * DAY_MS)
        binding.add_fingerprint(make_fingerprint(device_os="newer", created_at=now - 100 * DAY_MS), limit=5)

        binding.purge_old_fingerprints(90 * DAY_MS, min_keep=1, now_ms=now)

        assert [fp.device_os for fp in binding.fingerprints] == ["newer"]

    def test_equal_signals_different_age(self):
        now = 1000 * DAY_MS
        binding = new_binding(created_at=now - 200 * DAY_MS)
        # equal signals replace rather than duplicate
        binding.add_fingerprint(make_fingerprint(created_at=now - 100 * DAY_MS), limit=5)
        binding.purge_old_fingerprints(90 * DAY_MS, now_ms=now)
        assert len(binding.fingerprints) == 1


class TestBookkeeping:

    def test_playtime_ignores_non_positive(self):
        binding = new_binding()
        binding.add_playtime(500)
        binding.add_playtime(0)
        binding.add_playtime(-10)
        assert binding.total_playtime_ms == 500

    def test_normalize_preferred_display(self):
        binding = Binding.create("steve", ".Steve", AccountType.BRIDGED, make_fingerprint())
        assert binding.normalize_preferred_display("Steve")
        assert binding.preferred_display == "Steve"
        assert not binding.normalize_preferred_display("Steve")

    @pytest.mark.parametrize("trust, elevated", [
        (TrustLevel.LOW, False),
        (TrustLevel.MEDIUM, False),
        (TrustLevel.HIGH, True),
        (TrustLevel.LOCKED, True),
    ])
    def test_elevated_trust(self, trust, elevated):
        assert trust.is_elevated is elevated


class TestStoredLayouts:

    def test_round_trip(self):
        binding = new_binding()
        binding.trust = TrustLevel.HIGH
        binding.add_playtime(42)

        restored = Binding.from_dict(binding.to_dict())

        assert restored == binding

    def test_legacy_map(self):
        binding = Binding.from_dict({
            "normalizedName": "steve",
            "preferredName": "Steve",
            "accountType": "JAVA",
            "trust": "medium",
            "lastSeen": 5,
            "totalPlaytime": 60000,
            "fingerprints": [
                {"edition": "JAVA", "ipVersion": "v4", "deviceOs": "windows"},
                {"value": "legacy-hash"},
            ],
        })

        assert binding.identity_key == "steve"
        assert binding.account_type == AccountType.NATIVE
        assert binding.trust == TrustLevel.MEDIUM
        assert binding.last_seen_at == 5
        assert binding.total_playtime_ms == 60000
        assert len(binding.fingerprints) == 1

    def test_identity_key_from_argument(self):
        binding = Binding.from_dict({"preferredName": "Steve", "fingerprints": []}, identity_key="steve")
        assert binding.identity_key == "steve"

    @pytest.mark.parametrize("data", [
        "not a map",
        {"preferredName": "Steve"},
        {"normalizedName": "steve", "preferredName": "Steve", "fingerprints": [{"value": "x"}]},
        {"normalizedName": "steve", "preferredName": "Steve", "trust": "ROOT"},
        {"normalizedName": "steve", "preferredName": "Steve", "lastSeen": "yesterday"},
    ])
    def test_corrupt_records_rejected(self, data):
        with pytest.raises(BindingFormatError):
            Binding.from_dict(data)
