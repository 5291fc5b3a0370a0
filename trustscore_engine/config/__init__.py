"""
Configuration module for the Provenance-Weighted Scoring Engine.

This module contains the default scoring tables and the validated config object.
"""

from .scoring_config import (
    SOURCE_CONFIG,
    FEATURE_DEFINITIONS,
    SCORING_CONFIG,
    RECOMMENDATION_CONFIG,
    HARD_PROOF_COEFFICIENT,
    SOFT_PROOF_COEFFICIENT,
    DECLARATIVE_COEFFICIENT,
)
from .engine_config import EngineConfig, InvalidConfigurationError, load_engine_config
from .coefficient_loader import load_coefficient_csv, build_source_config

__all__ = [
    "SOURCE_CONFIG",
    "FEATURE_DEFINITIONS",
    "SCORING_CONFIG",
    "RECOMMENDATION_CONFIG",
    "HARD_PROOF_COEFFICIENT",
    "SOFT_PROOF_COEFFICIENT",
    "DECLARATIVE_COEFFICIENT",
    "EngineConfig",
    "InvalidConfigurationError",
    "load_engine_config",
    "load_coefficient_csv",
    "build_source_config",
]
