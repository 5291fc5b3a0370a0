"""
Feature normalization and attribute derivation.
"""

from .normalizer import (
    Feature,
    NormalizationResult,
    FeatureNormalizer,
    parse_raw_value,
    split_attribute,
)
from .attribute_builder import AttributeBuilder

__all__ = [
    "Feature",
    "NormalizationResult",
    "FeatureNormalizer",
    "parse_raw_value",
    "split_attribute",
    "AttributeBuilder",
]
