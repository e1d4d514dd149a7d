"""
Session Tracker Tests

Join / quit hooks, play-time accumulation and LOW → MEDIUM promotion.
Default promotion threshold: 15 minutes of total play time.
"""

import logging

import pytest

from core.schemas.binding import Binding, TrustLevel
from core.schemas.fingerprint import AccountType
from core.schemas.outputs import DenyReason
from core.schemas.verdict import Allowed, Denied
from core.session_tracker import SessionTracker

from conftest import make_config, make_fingerprint


MINUTE_MS = 60 * 1000


@pytest.fixture
def tracker(config, registry, clock):
    return SessionTracker(config, registry, clock=clock)


def login(registry, tracker, key="steve", is_new=False, trust=TrustLevel.LOW):
    binding = registry.get(key)
    if binding is None:
        binding = Binding.create(key, key.capitalize(), AccountType.NATIVE, make_fingerprint())
        binding.trust = trust
        registry.save(binding)
    tracker.record_verdict(key, Allowed(binding=binding, is_new_binding=is_new, learned_fingerprint=False))
    return binding


class TestJoin:

    def test_protection_notice_once(self, registry, tracker):
        login(registry, tracker, is_new=True)

        assert tracker.on_join("steve") == "[NameGuard] Your name is now protected."
        assert tracker.on_join("steve") is None

    def test_no_notice_for_known_binding(self, registry, tracker):
        login(registry, tracker)
        assert tracker.on_join("steve") is None

    def test_empty_notice_disabled(self, registry, clock):
        tracker = SessionTracker(make_config(messages={"protectionSuccess": ""}), registry, clock=clock)
        login(registry, tracker, is_new=True)
        assert tracker.on_join("steve") is None

    def test_denied_verdict_starts_nothing(self, tracker):
        tracker.record_verdict("steve", Denied(DenyReason.HARD_MISMATCH, "nope"))
        assert not tracker.is_in_session("steve")


class TestQuit:

    def test_playtime_credited_and_unloaded(self, registry, tracker, store, clock):
        login(registry, tracker)
        clock.advance(5 * MINUTE_MS)

        duration = tracker.on_quit("steve")

        assert duration == 5 * MINUTE_MS
        assert store.load("steve").total_playtime_ms == 5 * MINUTE_MS
        assert not registry.is_online("steve")
        assert not tracker.is_in_session("steve")

    def test_quit_without_session_still_unloads(self, registry, tracker, store):
        registry.save(Binding.create("alex", "Alex", AccountType.NATIVE, make_fingerprint()))

        assert tracker.on_quit("alex") == 0
        assert not registry.is_online("alex")
        assert store.load("alex").total_playtime_ms == 0

    def test_promotion_exactly_once(self, registry, tracker, store, clock, caplog):
        with caplog.at_level(logging.INFO, logger="core.session_tracker"):
            for _ in range(3):
                login(registry, tracker)
                clock.advance(10 * MINUTE_MS)
                tracker.on_quit("steve")
                if store.load("steve").total_playtime_ms <= 15 * MINUTE_MS:
                    assert store.load("steve").trust == TrustLevel.LOW

        assert store.load("steve").trust == TrustLevel.MEDIUM
        assert store.load("steve").total_playtime_ms == 30 * MINUTE_MS
        assert caplog.text.count("to MEDIUM") == 1

    def test_high_trust_untouched(self, registry, tracker, store, clock):
        login(registry, tracker, trust=TrustLevel.HIGH)
        clock.advance(30 * MINUTE_MS)

        tracker.on_quit("steve")

        assert store.load("steve").trust == TrustLevel.HIGH

    def test_lock_released(self, registry, tracker, clock):
        login(registry, tracker)
        clock.advance(MINUTE_MS)
        tracker.on_quit("steve")
        assert registry.active_lock_count == 0
