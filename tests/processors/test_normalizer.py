"""
Name Normalizer Tests

Covers canonicalization, bridge prefix handling and idempotence.
"""

import pytest

from core.processors.normalizer import NameNormalizer


@pytest.fixture
def normalizer():
    return NameNormalizer()


class TestNormalize:
    """Identity key derivation."""

    @pytest.mark.parametrize("raw, expected", [
        ("Steve", "steve"),
        ("STEVE", "steve"),
        ("Stéve", "steve"),
        ("Ｓｔｅｖｅ", "steve"),
        ("S t-e.ve", "steve"),
        ("Steve_99", "steve_99"),
        (".Steve", "steve"),
        ("..Steve", "steve"),
    ])
    def test_canonical_forms(self, normalizer, raw, expected):
        assert normalizer.normalize(raw) == expected

    def test_look_alikes_collide(self, normalizer):
        assert normalizer.normalize("Stéve") == normalizer.normalize(".steve")

    @pytest.mark.parametrize("raw", ["Steve", ".Ünïcödé_Name", "._.x", "...", "", "a.b.c"])
    def test_idempotent(self, normalizer, raw):
        once = normalizer.normalize(raw)
        assert normalizer.normalize(once) == once

    def test_symbol_only_name_is_empty(self, normalizer):
        assert normalizer.normalize("!!!") == ""


class TestPreserveBridgePrefix:
    """Legacy deployments keep the marker as part of the key."""

    def test_prefix_kept(self):
        normalizer = NameNormalizer(preserve_bridge_prefix=True)
        assert normalizer.normalize(".Steve") == ".steve"
        assert normalizer.normalize("Steve") == "steve"

    def test_idempotent(self):
        normalizer = NameNormalizer(preserve_bridge_prefix=True)
        once = normalizer.normalize(".Stéve")
        assert normalizer.normalize(once) == once

    def test_underscore_marker_is_stripped_when_not_preserving(self):
        normalizer = NameNormalizer(bridge_prefix_chars="_")
        assert normalizer.normalize("_Steve") == "steve"
        assert normalizer.normalize(normalizer.normalize("__x")) == "x"


class TestStripLegacyPrefix:
    """Display form used for the spoof check."""

    def test_case_preserved(self, normalizer):
        assert normalizer.strip_legacy_prefix(".Steve") == "Steve"

    def test_without_prefix_unchanged(self, normalizer):
        assert normalizer.strip_legacy_prefix("Steve") == "Steve"

    def test_no_marker_chars(self):
        assert NameNormalizer(bridge_prefix_chars="").strip_legacy_prefix(".Steve") == ".Steve"
