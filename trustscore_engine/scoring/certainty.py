"""
Certainty Calculator.

Assigns a trust coefficient to every data point from the way it was obtained,
optionally raises it through an auxiliary trust signal, and aggregates the
points into three figures:

    raw_score          weighted mean of feature values, blind to certainty
    certified_score    weighted mean with weights scaled by certainty, renormalized
                       so it stays on the same 0-100 scale as raw_score
    overall_certainty  weighted mean of the certainty coefficients (0-1)

certified_score is not guaranteed to be below raw_score; renormalization can
move it either way.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..config.engine_config import EngineConfig
from ..features.normalizer import Feature
from ..sources.coefficients import (
    BoostPolicy,
    ProofTier,
    SourceCoefficientTable,
    default_boost_policy,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CertifiedDataPoint:
    """A feature value with the certainty attached to its source."""
    feature_id: str
    label: str
    value: float  # 0-1
    source_type: str
    is_certified: bool
    certainty_coefficient: float
    proof_tier: str = ProofTier.DECLARATIVE.value

    @property
    def weighted_value(self) -> float:
        return self.value * self.certainty_coefficient

    def to_dict(self) -> Dict:
        return {
            "feature_id": self.feature_id,
            "label": self.label,
            "value": round(self.value, 4),
            "source_type": self.source_type,
            "is_certified": self.is_certified,
            "certainty_coefficient": self.certainty_coefficient,
            "proof_tier": self.proof_tier,
        }


@dataclass(frozen=True)
class WeightedScore:
    """Raw and certainty-weighted aggregates over a set of data points."""
    raw_score: float = 0.0
    certified_score: float = 0.0
    overall_certainty: float = 0.0
    breakdown: List[Dict] = field(default_factory=list)


@dataclass
class CertaintyAnalysis:
    """Complete certainty output for one request."""
    data_points: List[CertifiedDataPoint] = field(default_factory=list)
    raw_score: float = 0.0
    certified_score: float = 0.0
    overall_certainty: float = 0.0
    source_breakdown: List[Dict] = field(default_factory=list)
    proof_breakdown: Dict = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)


def apply_feature_certainty(
    feature_id: str,
    label: str,
    value: float,
    source_type: str,
    is_certified_override: bool,
    coefficient_table: SourceCoefficientTable
) -> CertifiedDataPoint:
    """
    Attach a certainty coefficient to a single feature value.

    The base coefficient comes from the source's tier. A certification
    override raises boost-eligible sources to the hard tier; for every other
    source it is a no-op, so certification never lowers a coefficient.
    """
    resolved, _ = coefficient_table.resolve_source(source_type)
    base_tier = coefficient_table.tier_for(resolved)
    base = coefficient_table.base_coefficient(resolved)

    if is_certified_override and coefficient_table.is_boost_eligible(resolved):
        coefficient = coefficient_table.certified_coefficient(resolved)
        tier = ProofTier.HARD
        is_certified = True
    else:
        coefficient = base
        tier = base_tier
        # Hard sources count as certified when the caller vouches for them
        is_certified = bool(is_certified_override) and base_tier is ProofTier.HARD

    return CertifiedDataPoint(
        feature_id=feature_id,
        label=label,
        value=value,
        source_type=resolved,
        is_certified=is_certified,
        certainty_coefficient=min(1.0, max(0.0, coefficient)),
        proof_tier=tier.value,
    )


def calculate_weighted_score(
    data_points: Iterable[CertifiedDataPoint],
    feature_weights: Mapping[str, float]
) -> WeightedScore:
    """
    Aggregate data points into raw score, certified score and overall certainty.

    Points whose feature has no (or zero) weight are ignored. With no weighted
    points every figure is zero.

    Args:
        data_points: Certified data points (values on 0-1)
        feature_weights: {feature_id: weight}

    Returns:
        WeightedScore with scores on 0-100 and certainty on 0-1
    """
    raw_total = 0.0
    weight_total = 0.0
    certified_total = 0.0
    certified_weight_total = 0.0
    breakdown = []

    for point in data_points:
        weight = feature_weights.get(point.feature_id, 0)
        if weight <= 0:
            continue

        raw_total += point.value * weight
        weight_total += weight
        certified_total += point.value * weight * point.certainty_coefficient
        certified_weight_total += weight * point.certainty_coefficient

        breakdown.append({
            "feature": point.feature_id,
            "raw_contribution": point.value * weight,
            "certified_contribution": point.weighted_value * weight,
            "certainty": point.certainty_coefficient,
        })

    if weight_total <= 0:
        return WeightedScore(breakdown=breakdown)

    raw_score = raw_total / weight_total * 100
    certified_score = (
        certified_total / certified_weight_total * 100 if certified_weight_total > 0 else 0.0
    )
    # Rounded so uniform-tier inputs land exactly on the tier coefficient
    overall_certainty = round(certified_weight_total / weight_total, 6)

    return WeightedScore(
        raw_score=min(100.0, max(0.0, raw_score)),
        certified_score=min(100.0, max(0.0, certified_score)),
        overall_certainty=min(1.0, max(0.0, overall_certainty)),
        breakdown=breakdown,
    )


def summarize_sources(data_points: Sequence[CertifiedDataPoint]) -> List[Dict]:
    """Count and average certainty per source type, sorted by source type."""
    groups: Dict[str, List[float]] = {}
    for point in data_points:
        groups.setdefault(point.source_type, []).append(point.certainty_coefficient)

    return [
        {
            "source": source,
            "count": len(coefficients),
            "avg_certainty": round(sum(coefficients) / len(coefficients), 2),
        }
        for source, coefficients in sorted(groups.items())
    ]


def summarize_proofs(data_points: Sequence[CertifiedDataPoint]) -> Dict:
    """Counts and percentages of hard, soft and declarative proof."""
    counts = {tier.value: 0 for tier in ProofTier}
    for point in data_points:
        counts[point.proof_tier] = counts.get(point.proof_tier, 0) + 1

    total = sum(counts.values())
    summary = {}
    for tier in ProofTier:
        count = counts[tier.value]
        summary[f"{tier.value}_count"] = count
        summary[f"{tier.value}_percentage"] = round(count / total * 100) if total else 0
    return summary


def certainty_label(certainty: float, labels: Sequence[Mapping]) -> str:
    for row in labels:
        if certainty >= row["min_certainty"]:
            return row["label"]
    return labels[-1]["label"]


class CertaintyCalculator:
    """Applies source certainty to features and aggregates the result."""

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        boost_policy: Optional[BoostPolicy] = None,
        coefficient_table: Optional[SourceCoefficientTable] = None
    ):
        """
        Initialize the certainty calculator.

        Args:
            config: Engine configuration (defaults to the built-in tables)
            boost_policy: (source_type, aux_trust_score) -> bool deciding auto-certification;
                defaults to the configured trust-threshold policy
            coefficient_table: Source table (built from config if not provided)
        """
        self.config = config or EngineConfig.default()
        self.coefficient_table = coefficient_table or SourceCoefficientTable(self.config)
        self.boost_policy = boost_policy or default_boost_policy(self.coefficient_table)
        self.feature_weights = self.config.feature_weights()

    def certify_features(
        self,
        features: Iterable[Feature],
        aux_trust_score: Optional[float] = None
    ) -> Tuple[List[CertifiedDataPoint], List[str]]:
        """
        Turn features into certified data points.

        Returns:
            Tuple of (data points, warnings about unknown source types)
        """
        data_points = []
        warnings = []

        for feature in features:
            resolved, known = self.coefficient_table.resolve_source(feature.source_type)
            if not known:
                warnings.append(
                    f"{feature.label}: unknown source '{feature.source_type}' treated as {resolved}"
                )

            certify = feature.certified or self.boost_policy(resolved, aux_trust_score)
            data_points.append(apply_feature_certainty(
                feature_id=feature.id,
                label=feature.label,
                value=feature.value,
                source_type=resolved,
                is_certified_override=certify,
                coefficient_table=self.coefficient_table,
            ))

        return data_points, warnings

    def analyze(
        self,
        features: Iterable[Feature],
        aux_trust_score: Optional[float] = None
    ) -> CertaintyAnalysis:
        """Certify features and compute scores, breakdowns and warnings."""
        data_points, warnings = self.certify_features(features, aux_trust_score)
        weighted = calculate_weighted_score(data_points, self.feature_weights)

        logger.debug(
            "[CERTAINTY] raw=%.2f certified=%.2f certainty=%.3f over %d points",
            weighted.raw_score, weighted.certified_score,
            weighted.overall_certainty, len(data_points)
        )

        return CertaintyAnalysis(
            data_points=data_points,
            raw_score=weighted.raw_score,
            certified_score=weighted.certified_score,
            overall_certainty=weighted.overall_certainty,
            source_breakdown=summarize_sources(data_points),
            proof_breakdown=summarize_proofs(data_points),
            warnings=warnings,
        )
