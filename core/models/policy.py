"""
NameGuard Policy Gate

Pure business logic that downgrades a raw similarity score before
classification. This module is STATELESS and DETERMINISTIC.

Gates (each one only ever lowers the score to ``ceiling``):
    network_overlap  too few network matches for hard allow -> hard - 1
    zero_overlap     no network match at all                -> soft - 1
    geo_country      country unseen in history              -> hard - 1

effective_score = min(raw_score, every active ceiling)

A strong-identity override bypasses every gate.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional

from core.config import GuardConfig
from core.models.similarity import SimilarityResult
from core.schemas.binding import TrustLevel


class Classification(str, Enum):
    """Threshold classification of an effective score."""
    HARD_ALLOW = "HARD_ALLOW"
    SOFT_ALLOW = "SOFT_ALLOW"
    DENY = "DENY"


# Gate names (used in logs)
GATE_NETWORK_OVERLAP = "network_overlap"
GATE_ZERO_OVERLAP = "zero_overlap"
GATE_GEO_COUNTRY = "geo_country"


@dataclass(frozen=True)
class GateOutcome:
    """
    Result of running the gates.

    raw_score is kept for logging; effective_score drives classification.
    fired lists the gates whose ceiling actually lowered the score.
    """
    raw_score: int
    effective_score: int
    network_matches: int
    classification: Classification
    strong_identity_override: bool = False
    fired: List[str] = field(default_factory=list)


class PolicyGate:
    """
    Applies the network-overlap, zero-overlap and geo-consistency gates.

    Config:
        strict.requireNetworkOverlap
        strict.minNetworkMatchesForHardAllow
        strict.allowZeroNetworkForTrustHigh
        geo.enabled
        geo.policy.disallowHardAllowOnCountryMismatch
        geo.policy.allowCountryMismatchForTrustHigh
    """

    def __init__(self, config: GuardConfig) -> None:
        self.config = config

    def classify(self, score: int) -> Classification:
        if score >= self.config.score_hard_allow:
            return Classification.HARD_ALLOW
        if score >= self.config.score_soft_allow:
            return Classification.SOFT_ALLOW
        return Classification.DENY

    def evaluate(
        self,
        result: SimilarityResult,
        trust: TrustLevel,
        new_country: Optional[str],
        history_countries: Iterable[Optional[str]],
    ) -> GateOutcome:
        """
        Compute the effective score and its classification.

        Args:
            result: Best similarity result across the binding's history.
            trust: Trust level of the binding.
            new_country: Country code of the login attempt.
            history_countries: Country codes of every historical fingerprint.
        """
        raw = result.score

        if result.strong_identity_override:
            return GateOutcome(
                raw_score=raw,
                effective_score=raw,
                network_matches=result.network_matches,
                classification=Classification.HARD_ALLOW,
                strong_identity_override=True,
            )

        hard = self.config.score_hard_allow
        soft = self.config.score_soft_allow
        strict = self.config.strict
        geo = self.config.geo

        ceilings = {}

        trust_bypass = strict.allow_zero_network_for_trust_high and trust.is_elevated

        if strict.require_network_overlap and not trust_bypass:
            if result.network_matches < strict.min_network_matches_for_hard_allow:
                ceilings[GATE_NETWORK_OVERLAP] = hard - 1
            if result.network_matches == 0:
                ceilings[GATE_ZERO_OVERLAP] = soft - 1

        if geo.enabled and geo.policy.disallow_hard_allow_on_country_mismatch:
            geo_bypass = geo.policy.allow_country_mismatch_for_trust_high and trust.is_elevated
            if not geo_bypass and not self._country_seen(new_country, history_countries):
                ceilings[GATE_GEO_COUNTRY] = hard - 1

        effective = min([raw, *ceilings.values()])
        fired = [name for name, ceiling in ceilings.items() if ceiling < raw]

        return GateOutcome(
            raw_score=raw,
            effective_score=effective,
            network_matches=result.network_matches,
            classification=self.classify(effective),
            fired=fired,
        )

    @staticmethod
    def _country_seen(new_country: Optional[str], history_countries: Iterable[Optional[str]]) -> bool:
        if not new_country:
            return False
        return any(country and country == new_country for country in history_countries)
