"""
Feature Normalizer.
Converts raw borrower attributes into unit-scale features using the feature catalogue.
"""

import math
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..config.engine_config import EngineConfig

logger = logging.getLogger(__name__)

TRUE_WORDS = {"true", "yes", "y", "oui", "vrai"}
FALSE_WORDS = {"false", "no", "n", "non", "faux"}


@dataclass(frozen=True)
class Feature:
    """A named, normalized borrower attribute."""
    id: str
    label: str
    value: float  # 0-1
    source_type: str
    category: str
    raw_value: float = 0.0
    clamped: bool = False
    certified: bool = False


@dataclass
class NormalizationResult:
    """Features produced from one request plus anything dropped on the way."""
    features: List[Feature] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    dropped_attributes: List[str] = field(default_factory=list)

    def by_id(self) -> Dict[str, Feature]:
        return {feature.id: feature for feature in self.features}


def parse_raw_value(raw: Any) -> Optional[float]:
    """
    Parse a numeric, boolean or string raw value.

    Returns:
        Float value, or None if the value cannot be interpreted
    """
    if isinstance(raw, bool):
        return 1.0 if raw else 0.0

    if isinstance(raw, (int, float)):
        value = float(raw)
        return None if math.isnan(value) else value

    if isinstance(raw, str):
        text = raw.strip().lower()
        if text in TRUE_WORDS:
            return 1.0
        if text in FALSE_WORDS:
            return 0.0
        text = text.replace(" ", "").replace("_", "")
        if text.count(",") == 1 and "." not in text and len(text.split(",")[1]) <= 2:
            # Decimal comma ("1,5"); any other comma groups thousands
            text = text.replace(",", ".")
        else:
            text = text.replace(",", "")
        try:
            value = float(text)
        except ValueError:
            return None
        return None if math.isnan(value) else value

    return None


def split_attribute(payload: Any) -> Tuple[Any, Optional[str], bool]:
    """
    Split an input-contract entry into (value, source_type, certified).

    Accepts either a bare value or a mapping with "value", "source_type"
    (or "sourceType") and an optional "certified" flag.
    """
    if isinstance(payload, Mapping):
        source_type = payload.get("source_type", payload.get("sourceType"))
        if source_type is not None:
            source_type = str(source_type).strip().lower()
        certified = bool(payload.get("certified", payload.get("isCertified", False)))
        return payload.get("value"), source_type, certified
    return payload, None, False


class FeatureNormalizer:
    """Scales raw attributes into [0, 1] per the feature catalogue."""

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig.default()
        self.definitions = self.config.features

    def normalize_value(self, feature_id: str, value: float) -> Tuple[float, bool]:
        """
        Normalize a parsed value for a known feature.

        Returns:
            Tuple of (normalized value in [0, 1], whether the input was clamped)
        """
        definition = self.definitions[feature_id]
        low, high = definition["min"], definition["max"]

        clamped_value = min(high, max(low, value))
        was_clamped = clamped_value != value
        span = high - low
        transform = definition["transform"]

        if transform == "binary":
            normalized = 1.0 if clamped_value > low else 0.0
        elif transform == "log":
            # Saturating: everything at or above the ceiling maps to 1.0
            normalized = math.log1p(clamped_value - low) / math.log1p(span)
        elif transform == "optimal_range":
            band_low, band_high = definition["optimal_range"]
            if band_low <= clamped_value <= band_high:
                normalized = 1.0
            elif clamped_value < band_low:
                normalized = (clamped_value - low) / (band_low - low)
            else:
                normalized = 1.0 - (clamped_value - band_high) / (high - band_high)
        else:
            normalized = (clamped_value - low) / span

        if transform != "optimal_range" and definition["direction"] == "lower_better":
            normalized = 1.0 - normalized

        return min(1.0, max(0.0, normalized)), was_clamped

    def normalize(
        self,
        attribute_id: str,
        raw_value: Any,
        source_type: Optional[str] = None,
        certified: bool = False
    ) -> Tuple[Optional[Feature], List[str]]:
        """
        Normalize a single raw attribute.

        Unknown attributes and unparseable values are dropped with a warning
        rather than raised, so a request always degrades gracefully.

        Returns:
            Tuple of (Feature or None if dropped, warnings)
        """
        warnings = []

        definition = self.definitions.get(attribute_id)
        if definition is None:
            logger.warning("Dropping unrecognized attribute %r", attribute_id)
            warnings.append(f"Unrecognized attribute '{attribute_id}' ignored")
            return None, warnings

        value = parse_raw_value(raw_value)
        if value is None:
            logger.warning("Dropping attribute %r with unparseable value %r", attribute_id, raw_value)
            warnings.append(f"Attribute '{attribute_id}' has an unusable value and was ignored")
            return None, warnings

        normalized, was_clamped = self.normalize_value(attribute_id, value)
        if was_clamped:
            logger.debug(
                "Clamped %s: %s outside [%s, %s]",
                attribute_id, value, definition["min"], definition["max"]
            )
            warnings.append(
                f"{definition['label']}: value {value:g} outside "
                f"[{definition['min']:g}, {definition['max']:g}] was clamped"
            )

        feature = Feature(
            id=attribute_id,
            label=definition["label"],
            value=normalized,
            source_type=source_type or definition["default_source"],
            category=definition["category"],
            raw_value=value,
            clamped=was_clamped,
            certified=certified,
        )
        return feature, warnings

    def normalize_all(self, attributes: Mapping[str, Any]) -> NormalizationResult:
        """
        Normalize every attribute of an input-contract mapping.

        Args:
            attributes: {attribute name: value or {value, source_type, certified}}

        Returns:
            NormalizationResult with features sorted by attribute name
        """
        result = NormalizationResult()

        for attribute_id in sorted(attributes, key=str):
            raw_value, source_type, certified = split_attribute(attributes[attribute_id])
            feature, warnings = self.normalize(attribute_id, raw_value, source_type, certified)
            result.warnings.extend(warnings)
            if feature is None:
                result.dropped_attributes.append(attribute_id)
            else:
                result.features.append(feature)

        logger.debug(
            "[NORMALIZER] %d features kept, %d dropped",
            len(result.features), len(result.dropped_attributes)
        )
        return result
