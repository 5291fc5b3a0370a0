"""
Data source trust tiers and certification policies.
"""

from .coefficients import (
    SourceType,
    ProofTier,
    TrustLevel,
    BoostPolicy,
    SourceCoefficientTable,
    make_threshold_boost_policy,
    default_boost_policy,
    never_boost,
    determine_trust_level,
)

__all__ = [
    "SourceType",
    "ProofTier",
    "TrustLevel",
    "BoostPolicy",
    "SourceCoefficientTable",
    "make_threshold_boost_policy",
    "default_boost_policy",
    "never_boost",
    "determine_trust_level",
]
