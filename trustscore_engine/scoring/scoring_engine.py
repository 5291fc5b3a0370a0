"""
Provenance-Weighted Scoring Engine.
Runs normalize -> aggregate -> certify -> synthesize -> recommend for one borrower.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import date
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..config.engine_config import EngineConfig
from ..features.attribute_builder import AttributeBuilder
from ..features.normalizer import FeatureNormalizer, parse_raw_value
from ..recommendation.engine import CreditRecommendation, RecommendationEngine
from ..sources.coefficients import (
    BoostPolicy,
    ProofTier,
    SourceCoefficientTable,
    default_boost_policy,
    determine_trust_level,
)
from .aggregator import CategoryAggregator, CategorySubScore
from .certainty import CertaintyCalculator, CertifiedDataPoint, certainty_label
from .consistency import ConsistencyChecker
from .synthesizer import ScoreSynthesizer

logger = logging.getLogger(__name__)


class InvalidRequestStructureError(ValueError):
    """Raised when a request payload has neither attributes nor borrower data."""
    pass


@dataclass
class ScoringRequest:
    """One borrower's scoring input."""
    attributes: Dict = field(default_factory=dict)
    aux_trust_score: Optional[Any] = None
    borrower_data: Optional[Dict] = None
    declared_info: Optional[Dict] = None
    verified_identity: Optional[Dict] = None
    request_ref: str = ""

    @classmethod
    def from_payload(cls, payload: Any, request_ref: str = "") -> "ScoringRequest":
        """
        Build a request from a JSON-decoded payload.

        Recognized keys: attributes, borrower_data, aux_trust_score (or
        phone_trust_score), declared_info, verified_identity, request_ref.

        Raises:
            InvalidRequestStructureError: If the payload is not an object or
                carries neither attributes nor borrower_data
        """
        if not isinstance(payload, Mapping):
            raise InvalidRequestStructureError("Request payload must be a JSON object")

        attributes = payload.get("attributes")
        borrower_data = payload.get("borrower_data")
        if attributes is None and borrower_data is None:
            raise InvalidRequestStructureError(
                "Request payload must contain 'attributes' or 'borrower_data'"
            )
        if attributes is not None and not isinstance(attributes, Mapping):
            raise InvalidRequestStructureError("'attributes' must be a JSON object")
        if borrower_data is not None and not isinstance(borrower_data, Mapping):
            raise InvalidRequestStructureError("'borrower_data' must be a JSON object")

        return cls(
            attributes=dict(attributes or {}),
            aux_trust_score=payload.get("aux_trust_score", payload.get("phone_trust_score")),
            borrower_data=dict(borrower_data) if borrower_data is not None else None,
            declared_info=payload.get("declared_info"),
            verified_identity=payload.get("verified_identity"),
            request_ref=str(payload.get("request_ref") or request_ref),
        )


@dataclass(frozen=True)
class ScoringResult:
    """Complete, immutable scoring result for one request."""
    request_ref: str = ""
    final_score: int = 0
    grade: str = "E"
    risk_tier: str = "high"
    overall_certainty: float = 0.0
    raw_score: float = 0.0
    certified_score: float = 0.0
    composite_score: float = 0.0
    certainty_penalty: float = 0.0
    certainty_label: str = "very_low"
    trust_level: str = "unverified"
    sub_scores: Tuple[CategorySubScore, ...] = ()
    data_points: Tuple[CertifiedDataPoint, ...] = ()
    source_breakdown: Tuple[Mapping, ...] = ()
    proof_breakdown: Mapping = field(default_factory=lambda: MappingProxyType({}))
    recommendations: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()
    alerts: Tuple[str, ...] = ()
    credit_recommendation: Optional[CreditRecommendation] = None

    def sub_score(self, category: str) -> Optional[CategorySubScore]:
        for sub_score in self.sub_scores:
            if sub_score.category == category:
                return sub_score
        return None

    def to_dict(self) -> Dict:
        """Flat JSON-compatible record."""
        return {
            "request_ref": self.request_ref,
            "final_score": self.final_score,
            "grade": self.grade,
            "risk_tier": self.risk_tier,
            "overall_certainty": round(self.overall_certainty, 4),
            "certainty_label": self.certainty_label,
            "trust_level": self.trust_level,
            "raw_score": round(self.raw_score, 2),
            "certified_score": round(self.certified_score, 2),
            "composite_score": round(self.composite_score, 2),
            "certainty_penalty": round(self.certainty_penalty, 2),
            "sub_scores": [sub_score.to_dict() for sub_score in self.sub_scores],
            "data_points": [point.to_dict() for point in self.data_points],
            "source_breakdown": [dict(row) for row in self.source_breakdown],
            "proof_breakdown": dict(self.proof_breakdown),
            "recommendations": list(self.recommendations),
            "warnings": list(self.warnings),
            "alerts": list(self.alerts),
            "credit_recommendation": (
                self.credit_recommendation.to_dict() if self.credit_recommendation else None
            ),
        }


class ScoringEngine:
    """
    Scores borrowers from provenance-tagged attributes.

    The engine holds only read-only configuration, so one instance can serve
    concurrent requests.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        boost_policy: Optional[BoostPolicy] = None,
        as_of: Optional[date] = None
    ):
        """
        Initialize the scoring engine with configuration.

        Args:
            config: Validated engine configuration (defaults to the built-in tables)
            boost_policy: (source_type, aux_trust_score) -> bool auto-certification policy
            as_of: Reference date for attributes derived from borrower data
        """
        self.config = config or EngineConfig.default()
        self.coefficient_table = SourceCoefficientTable(self.config)
        self.boost_policy = boost_policy or default_boost_policy(self.coefficient_table)

        self.attribute_builder = AttributeBuilder(as_of=as_of)
        self.normalizer = FeatureNormalizer(self.config)
        self.aggregator = CategoryAggregator(self.config)
        self.certainty_calculator = CertaintyCalculator(
            self.config, self.boost_policy, self.coefficient_table
        )
        self.synthesizer = ScoreSynthesizer(self.config)
        self.consistency_checker = ConsistencyChecker(self.config)
        self.recommendation_engine = RecommendationEngine(self.config)

        rules = self.config.scoring["recommendation_rules"]
        self.low_certainty_threshold = rules["low_certainty_threshold"]
        self.phone_verification_threshold = rules["phone_verification_threshold"]
        self.max_declarative_points = rules["max_declarative_points"]
        self.certainty_labels = self.config.scoring["certainty_labels"]

    def score_attributes(
        self,
        attributes: Mapping[str, Any],
        aux_trust_score: Optional[float] = None,
        request_ref: str = ""
    ) -> ScoringResult:
        """Score an input-contract mapping directly."""
        return self.score_request(ScoringRequest(
            attributes=dict(attributes),
            aux_trust_score=aux_trust_score,
            request_ref=request_ref,
        ))

    def score_request(self, request: ScoringRequest) -> ScoringResult:
        """
        Score one request.

        Never raises for per-request problems: missing, unknown or malformed
        input degrades into warnings and a lower certainty.

        Args:
            request: ScoringRequest

        Returns:
            ScoringResult
        """
        try:
            return self._score(request)
        except Exception as e:
            logger.exception("Scoring failed for request %r, returning empty-input result", request.request_ref)
            fallback = self._score(ScoringRequest(request_ref=request.request_ref))
            return replace(
                fallback, warnings=fallback.warnings + (f"Scoring degraded to empty input: {e}",)
            )

    def _score(self, request: ScoringRequest) -> ScoringResult:
        warnings: List[str] = []

        aux_trust_score = self._parse_aux_trust_score(request.aux_trust_score, warnings)
        attributes = self._collect_attributes(request, warnings)

        # Normalize
        normalization = self.normalizer.normalize_all(attributes)
        warnings.extend(normalization.warnings)
        features = normalization.features

        # Aggregate and certify
        sub_scores = self.aggregator.aggregate(features)
        certainty = self.certainty_calculator.analyze(features, aux_trust_score)
        warnings.extend(certainty.warnings)

        # Synthesize
        synthesized = self.synthesizer.synthesize(sub_scores, certainty.overall_certainty)

        alerts = self.consistency_checker.check(
            attributes,
            self._side_mapping(request.declared_info, "declared_info", warnings),
            self._side_mapping(request.verified_identity, "verified_identity", warnings),
            source_types={point.feature_id: point.source_type for point in certainty.data_points},
        )

        credit = self.recommendation_engine.recommend(
            synthesized.final_score, certainty.overall_certainty, alerts
        )

        phone_verified = self.coefficient_table.is_phone_verified(aux_trust_score)
        trust_level = determine_trust_level(
            (point.source_type for point in certainty.data_points), phone_verified
        )

        recommendations = self._build_recommendations(
            overall_certainty=certainty.overall_certainty,
            aux_trust_score=aux_trust_score,
            declarative_count=certainty.proof_breakdown.get(f"{ProofTier.DECLARATIVE.value}_count", 0),
            sub_scores=sub_scores,
            alerts=alerts,
        )

        logger.info(
            "Scored request %r: score=%d grade=%s tier=%s certainty=%.2f approved=%s",
            request.request_ref, synthesized.final_score, synthesized.grade,
            synthesized.risk_tier, certainty.overall_certainty, credit.approved
        )

        return ScoringResult(
            request_ref=request.request_ref,
            final_score=synthesized.final_score,
            grade=synthesized.grade,
            risk_tier=synthesized.risk_tier,
            overall_certainty=certainty.overall_certainty,
            raw_score=certainty.raw_score,
            certified_score=certainty.certified_score,
            composite_score=synthesized.composite_score,
            certainty_penalty=synthesized.certainty_penalty,
            certainty_label=certainty_label(certainty.overall_certainty, self.certainty_labels),
            trust_level=trust_level.value,
            sub_scores=tuple(sub_scores),
            data_points=tuple(certainty.data_points),
            source_breakdown=tuple(MappingProxyType(dict(row)) for row in certainty.source_breakdown),
            proof_breakdown=MappingProxyType(dict(certainty.proof_breakdown)),
            recommendations=tuple(recommendations),
            warnings=tuple(warnings),
            alerts=tuple(alerts),
            credit_recommendation=credit,
        )

    def _collect_attributes(self, request: ScoringRequest, warnings: List[str]) -> Dict:
        attributes = request.attributes
        if attributes is None:
            attributes = {}
        elif not isinstance(attributes, Mapping):
            warnings.append("Attributes were not a mapping and were ignored")
            attributes = {}

        if request.borrower_data:
            return self.attribute_builder.build(request.borrower_data, dict(attributes), warnings)
        return dict(attributes)

    @staticmethod
    def _side_mapping(value: Any, name: str, warnings: List[str]) -> Optional[Mapping]:
        if value is None or isinstance(value, Mapping):
            return value
        warnings.append(f"{name} was not a mapping and was ignored")
        return None

    @staticmethod
    def _parse_aux_trust_score(raw: Any, warnings: List[str]) -> Optional[float]:
        if raw is None:
            return None
        value = parse_raw_value(raw)
        if value is None:
            warnings.append(f"Auxiliary trust score {raw!r} is not numeric and was ignored")
            return None
        if not 0 <= value <= 100:
            warnings.append(f"Auxiliary trust score {value:g} outside [0, 100] was clamped")
        return min(100.0, max(0.0, value))

    def _build_recommendations(
        self,
        overall_certainty: float,
        aux_trust_score: Optional[float],
        declarative_count: int,
        sub_scores: List[CategorySubScore],
        alerts: List[str]
    ) -> List[str]:
        """Explanatory, borrower-facing next steps."""
        recommendations = []

        if overall_certainty < self.low_certainty_threshold:
            recommendations.append(
                f"Data certainty is {overall_certainty:.0%}: provide transaction SMS "
                f"or document proof to strengthen the score"
            )

        if aux_trust_score is None or aux_trust_score < self.phone_verification_threshold:
            recommendations.append("Complete phone verification to unlock data certification")

        if declarative_count > self.max_declarative_points:
            recommendations.append(
                f"{declarative_count} data points are self-declared: "
                f"provide supporting documents"
            )

        for sub_score in sub_scores:
            if sub_score.is_neutral_default:
                recommendations.append(
                    f"No {sub_score.label} data provided; neutral score of "
                    f"{sub_score.raw_value:.0f} applied"
                )

        recommendations.extend(alerts)
        return recommendations
