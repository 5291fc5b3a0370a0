"""
TrustScore Engine - Provenance-Weighted Credit Scoring.

Scores underbanked borrowers from heterogeneous data (declarations, document
OCR, transactional SMS, community attestations) and weights every data point
by how it was obtained.

Main Components:
    - config: Default tables, validated engine config and loaders
    - sources: Source coefficient table, boosting policies and trust levels
    - features: Feature normalization and attribute derivation
    - scoring: Category aggregation, certainty, synthesis and orchestration
    - recommendation: Credit recommendation ladder
"""

from typing import Any, Dict, Optional

# Configuration
from .config import (
    SOURCE_CONFIG,
    FEATURE_DEFINITIONS,
    SCORING_CONFIG,
    RECOMMENDATION_CONFIG,
    EngineConfig,
    InvalidConfigurationError,
    load_engine_config,
    load_coefficient_csv,
    build_source_config,
)

# Sources
from .sources import (
    SourceType,
    ProofTier,
    TrustLevel,
    SourceCoefficientTable,
    make_threshold_boost_policy,
    default_boost_policy,
    never_boost,
    determine_trust_level,
)

# Features
from .features import Feature, FeatureNormalizer, AttributeBuilder

# Scoring components
from .scoring import (
    CategorySubScore,
    CategoryAggregator,
    CertifiedDataPoint,
    CertaintyCalculator,
    apply_feature_certainty,
    calculate_weighted_score,
    ConsistencyChecker,
    ScoreSynthesizer,
    InvalidRequestStructureError,
    ScoringRequest,
    ScoringResult,
    ScoringEngine,
)

# Recommendation
from .recommendation import Decision, CreditRecommendation, RecommendationEngine


__version__ = "1.0.0"
__all__ = [
    # Configuration
    "SOURCE_CONFIG",
    "FEATURE_DEFINITIONS",
    "SCORING_CONFIG",
    "RECOMMENDATION_CONFIG",
    "EngineConfig",
    "InvalidConfigurationError",
    "load_engine_config",
    "load_coefficient_csv",
    "build_source_config",
    # Sources
    "SourceType",
    "ProofTier",
    "TrustLevel",
    "SourceCoefficientTable",
    "make_threshold_boost_policy",
    "default_boost_policy",
    "never_boost",
    "determine_trust_level",
    # Features
    "Feature",
    "FeatureNormalizer",
    "AttributeBuilder",
    # Scoring
    "CategorySubScore",
    "CategoryAggregator",
    "CertifiedDataPoint",
    "CertaintyCalculator",
    "apply_feature_certainty",
    "calculate_weighted_score",
    "ConsistencyChecker",
    "ScoreSynthesizer",
    "InvalidRequestStructureError",
    "ScoringRequest",
    "ScoringResult",
    "ScoringEngine",
    # Recommendation
    "Decision",
    "CreditRecommendation",
    "RecommendationEngine",
    # Main function
    "run_trust_scoring",
]


def run_trust_scoring(payload: Dict[str, Any], config: Optional[EngineConfig] = None) -> Dict:
    """
    Main entry point for provenance-weighted scoring.

    This function runs the complete pipeline:
    1. Derive attributes from borrower data (if provided)
    2. Normalize attributes into features
    3. Aggregate category sub-scores and weight data points by certainty
    4. Synthesize the final score, grade and risk tier
    5. Return the score result with its credit recommendation

    Args:
        payload: Request dictionary with keys:
            - attributes: {name: value or {"value", "source_type", "certified"}}
            - borrower_data: (Optional) structured collaborator data
            - aux_trust_score: (Optional) 0-100 phone/identity trust score
            - declared_info: (Optional) declarations used for consistency checks
            - verified_identity: (Optional) identity read from documents
            - request_ref: (Optional) caller reference
        config: Engine configuration (defaults to the built-in tables)

    Returns:
        JSON-compatible dictionary of the ScoringResult

    Raises:
        InvalidRequestStructureError: If the payload has neither attributes nor borrower_data

    Example:
        >>> result = run_trust_scoring({
        ...     "attributes": {
        ...         "monthly_income": {"value": 250000, "source_type": "sms_parsed"},
        ...         "utility_payment_rate": {"value": 0.95, "source_type": "utility_sms"},
        ...     },
        ...     "aux_trust_score": 82,
        ... })
        >>> result["credit_recommendation"]["approved"]
        True
    """
    request = ScoringRequest.from_payload(payload)
    engine = ScoringEngine(config=config)
    return engine.score_request(request).to_dict()
