"""
Scoring Module for provenance-weighted borrower scoring.

Contains category aggregation, certainty weighting, consistency checks,
score synthesis and the pipeline orchestrator.
"""

# Import from aggregator
from .aggregator import CategorySubScore, CategoryAggregator

# Import from certainty
from .certainty import (
    CertifiedDataPoint,
    WeightedScore,
    CertaintyAnalysis,
    CertaintyCalculator,
    apply_feature_certainty,
    calculate_weighted_score,
    certainty_label,
)

from .consistency import ConsistencyChecker, name_similarity
from .synthesizer import SynthesizedScore, ScoreSynthesizer, lookup_breakpoint

# Import from scoring_engine
from .scoring_engine import (
    InvalidRequestStructureError,
    ScoringRequest,
    ScoringResult,
    ScoringEngine,
)

__all__ = [
    # Aggregator exports
    "CategorySubScore",
    "CategoryAggregator",
    # Certainty exports
    "CertifiedDataPoint",
    "WeightedScore",
    "CertaintyAnalysis",
    "CertaintyCalculator",
    "apply_feature_certainty",
    "calculate_weighted_score",
    "certainty_label",
    # Consistency and synthesis
    "ConsistencyChecker",
    "name_similarity",
    "SynthesizedScore",
    "ScoreSynthesizer",
    "lookup_breakpoint",
    # Scoring engine exports
    "InvalidRequestStructureError",
    "ScoringRequest",
    "ScoringResult",
    "ScoringEngine",
]
