"""
NameGuard Similarity Engine

Scores a new fingerprint against historical fingerprints.
This module is STATELESS and DETERMINISTIC.

Precedence (per pair):
    1. Strong identity match    -> hard_allow + 10, override (bypasses gating)
    2. Strong identity conflict -> 0, conflict (immediate denial)
    3. Additive exact-match scoring over client, network and geo signals

Absent values never match. There is no partial credit.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from core.config import GuardConfig
from core.schemas.fingerprint import Fingerprint


STRONG_IDENTITY_BONUS = 10


@dataclass(frozen=True)
class SimilarityResult:
    """Outcome of one fingerprint-pair comparison."""
    score: int
    network_matches: int
    strong_identity_override: bool = False
    strong_identity_conflict: bool = False


NO_MATCH = SimilarityResult(score=0, network_matches=0)


def _matches(a: Optional[str], b: Optional[str]) -> bool:
    return bool(a) and bool(b) and a == b


class SimilarityEngine:
    """
    Weighted exact-match scorer.

    Weights and thresholds come from GuardConfig:
        weight.*          client / network signal weights
        geo.weights.*     geo signal weights (when geo.enabled)
        scoreHardAllow    base of the strong-identity override score
    """

    def __init__(self, config: GuardConfig) -> None:
        self.config = config

    def score(self, new: Fingerprint, old: Fingerprint) -> SimilarityResult:
        """Compare one new fingerprint against one historical fingerprint."""
        identity_pairs = [
            (a, b) for a, b in self._strong_identity_pairs(new, old) if a and b
        ]

        if any(a == b for a, b in identity_pairs):
            return SimilarityResult(
                score=self.config.score_hard_allow + STRONG_IDENTITY_BONUS,
                network_matches=self.count_network_matches(new, old),
                strong_identity_override=True,
            )
        if identity_pairs:
            return SimilarityResult(score=0, network_matches=0, strong_identity_conflict=True)

        weights = self.config.weight
        score = 0

        # Client signals
        if _matches(new.device_os, old.device_os):
            score += weights.device_os
        if _matches(new.client_brand, old.client_brand):
            score += weights.brand
        if new.account_type == old.account_type:
            score += weights.edition
        if _matches(new.ip_version, old.ip_version):
            score += weights.ip_version

        # Network signals
        network_matches = 0
        if _matches(new.hashed_prefix, old.hashed_prefix):
            score += weights.subnet
            network_matches += 1
        if _matches(new.hashed_pseudo_asn, old.hashed_pseudo_asn):
            score += weights.pseudo_asn
            network_matches += 1
        if _matches(new.hashed_ptr, old.hashed_ptr):
            score += weights.ptr_domain
            network_matches += 1

        # Geo signals (additive only; policy lives in the gate)
        geo = self.config.geo
        if geo.enabled:
            if _matches(new.country_code, old.country_code):
                score += geo.weights.country
            if _matches(new.asn, old.asn):
                score += geo.weights.asn
            if _matches(new.city, old.city) or _matches(new.region, old.region):
                score += geo.weights.city

        return SimilarityResult(score=score, network_matches=network_matches)

    def best_match(self, new: Fingerprint, history: Iterable[Fingerprint]) -> SimilarityResult:
        """
        Reduce a whole history to its single best pairwise result.

        A strong-identity conflict against any entry is returned immediately.
        Otherwise the highest score wins; the first one encountered wins ties.
        Results are never aggregated across entries.
        """
        best: Optional[SimilarityResult] = None
        for old in history:
            result = self.score(new, old)
            if result.strong_identity_conflict:
                return result
            if best is None or result.score > best.score:
                best = result
        return best if best is not None else NO_MATCH

    @staticmethod
    def count_network_matches(a: Fingerprint, b: Fingerprint) -> int:
        return sum(1 for x, y in zip(a.network_hashes, b.network_hashes) if _matches(x, y))

    def _strong_identity_pairs(self, new: Fingerprint, old: Fingerprint) -> List[Tuple]:
        # Identifiers are only compared within the same namespace
        pairs = [(new.platform_id, old.platform_id)]
        if self.config.strict.trust_client_assigned_identity:
            pairs.append((new.client_id, old.client_id))
        return pairs
