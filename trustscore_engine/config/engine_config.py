"""
Engine configuration for the Provenance-Weighted Scoring Engine.

The module-level tables in ``scoring_config`` are copied into an immutable
``EngineConfig`` once, validated, and then passed explicitly to every
component. Nothing in the engine reads the module-level tables directly at
request time, so alternate tables can be swapped in for testing.
"""

import copy
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional

from .scoring_config import (
    SOURCE_CONFIG,
    FEATURE_DEFINITIONS,
    SCORING_CONFIG,
    RECOMMENDATION_CONFIG,
)

logger = logging.getLogger(__name__)

VALID_TRANSFORMS = ("linear", "log", "binary", "optimal_range")
VALID_DIRECTIONS = ("higher_better", "lower_better")
# Must match the ProofTier values in sources.coefficients
PROOF_TIERS = ("hard", "soft", "declarative")


class InvalidConfigurationError(ValueError):
    """Raised when a coefficient, weight or breakpoint table is malformed."""
    pass


def _freeze(value):
    """Recursively convert dicts to read-only mappings and lists to tuples."""
    if isinstance(value, dict):
        return MappingProxyType({key: _freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(item) for item in value)
    return value


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _deep_merge(base: Dict, override: Dict) -> Dict:
    """Merge override into a copy of base. Nested dicts merge, everything else replaces."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


@dataclass(frozen=True)
class EngineConfig:
    """Validated, read-only engine configuration."""
    sources: Mapping
    features: Mapping
    scoring: Mapping
    recommendation: Mapping

    @classmethod
    def from_dicts(
        cls,
        source_config: Optional[Dict] = None,
        feature_definitions: Optional[Dict] = None,
        scoring_config: Optional[Dict] = None,
        recommendation_config: Optional[Dict] = None,
    ) -> "EngineConfig":
        """
        Build a config from plain dictionaries, falling back to the defaults.

        Raises:
            InvalidConfigurationError: If any table fails validation
        """
        sources = copy.deepcopy(source_config if source_config is not None else SOURCE_CONFIG)
        features = copy.deepcopy(
            feature_definitions if feature_definitions is not None else FEATURE_DEFINITIONS
        )
        scoring = copy.deepcopy(scoring_config if scoring_config is not None else SCORING_CONFIG)
        recommendation = copy.deepcopy(
            recommendation_config if recommendation_config is not None else RECOMMENDATION_CONFIG
        )

        errors = []
        errors.extend(_validate_sources(sources))
        errors.extend(_validate_scoring(scoring))
        errors.extend(_validate_features(features, sources, scoring))
        errors.extend(_validate_recommendation(recommendation))

        if errors:
            for error in errors:
                logger.error("[CONFIG] %s", error)
            raise InvalidConfigurationError("; ".join(errors))

        logger.debug(
            "[CONFIG] Loaded %d sources, %d features, %d categories",
            len(sources["sources"]), len(features), len(scoring["categories"])
        )

        return cls(
            sources=_freeze(sources),
            features=_freeze(features),
            scoring=_freeze(scoring),
            recommendation=_freeze(recommendation),
        )

    @classmethod
    def default(cls) -> "EngineConfig":
        """Config built from the module-level default tables."""
        return cls.from_dicts()

    @property
    def categories(self) -> List[str]:
        return list(self.scoring["categories"].keys())

    def coefficient_table(self) -> Dict[str, float]:
        """Map each known source type to its base coefficient."""
        tiers = self.sources["tiers"]
        return {
            source_type: tiers[source["tier"]]
            for source_type, source in self.sources["sources"].items()
        }

    def feature_weights(self) -> Dict[str, float]:
        """Flat {feature_id: weight} table across all categories."""
        return {feature_id: definition["weight"] for feature_id, definition in self.features.items()}

    def category_feature_weights(self) -> Dict[str, Dict[str, float]]:
        """{category: {feature_id: weight}} table in fixed category order."""
        table = {category: {} for category in self.categories}
        for feature_id, definition in self.features.items():
            table[definition["category"]][feature_id] = definition["weight"]
        return table


def _validate_sources(sources: Dict) -> List[str]:
    errors = []
    tiers = sources.get("tiers")
    if not isinstance(tiers, dict) or not tiers:
        return ["source config has no tiers"]

    if set(tiers) != set(PROOF_TIERS):
        errors.append(
            f"tiers {sorted(tiers)} must be exactly {list(PROOF_TIERS)}"
        )

    for tier, coefficient in tiers.items():
        if not _is_number(coefficient) or not 0 <= coefficient <= 1:
            errors.append(f"tier '{tier}' coefficient {coefficient!r} outside [0, 1]")

    source_table = sources.get("sources")
    if not isinstance(source_table, dict) or not source_table:
        return errors + ["source config has no sources"]

    for source_type, source in source_table.items():
        if not isinstance(source, dict):
            errors.append(f"source '{source_type}' must be a mapping")
            continue
        if source.get("tier") not in PROOF_TIERS or source.get("tier") not in tiers:
            errors.append(f"source '{source_type}' has unknown tier {source.get('tier')!r}")

    if sources.get("fallback_source") not in source_table:
        errors.append(f"fallback source {sources.get('fallback_source')!r} is not a known source")

    for source_type in sources.get("boost_eligible_sources", []):
        if source_type not in source_table:
            errors.append(f"boost-eligible source '{source_type}' is not a known source")

    for key in ("boost_trust_threshold", "phone_verified_threshold"):
        threshold = sources.get(key)
        if not _is_number(threshold) or not 0 <= threshold <= 100:
            errors.append(f"{key} {threshold!r} outside [0, 100]")

    return errors


def _validate_features(features: Dict, sources: Dict, scoring: Dict) -> List[str]:
    errors = []
    categories = scoring.get("categories", {})
    known_sources = sources.get("sources", {})

    for feature_id, definition in features.items():
        weight = definition.get("weight")
        if not _is_number(weight) or weight < 0:
            errors.append(f"feature '{feature_id}' has invalid weight {weight!r}")
        if definition.get("category") not in categories:
            errors.append(f"feature '{feature_id}' has unknown category {definition.get('category')!r}")
        if definition.get("default_source") not in known_sources:
            errors.append(
                f"feature '{feature_id}' has unknown default source {definition.get('default_source')!r}"
            )
        if definition.get("transform") not in VALID_TRANSFORMS:
            errors.append(f"feature '{feature_id}' has unknown transform {definition.get('transform')!r}")
        if definition.get("direction") not in VALID_DIRECTIONS:
            errors.append(f"feature '{feature_id}' has unknown direction {definition.get('direction')!r}")

        low, high = definition.get("min"), definition.get("max")
        if not _is_number(low) or not _is_number(high) or high <= low:
            errors.append(f"feature '{feature_id}' has invalid range [{low!r}, {high!r}]")
        elif low < 0:
            errors.append(f"feature '{feature_id}' range must be non-negative")

        if definition.get("transform") == "optimal_range":
            band = definition.get("optimal_range")
            if (
                not isinstance(band, (list, tuple)) or len(band) != 2
                or not all(_is_number(b) for b in band)
                or not (_is_number(low) and _is_number(high) and low < band[0] <= band[1] < high)
            ):
                errors.append(f"feature '{feature_id}' has invalid optimal range {band!r}")

    return errors


def _validate_descending(table, key: str, name: str) -> List[str]:
    """Breakpoint tables must be strictly descending and end at zero."""
    if not isinstance(table, list) or not table:
        return [f"{name} is empty"]
    thresholds = [row.get(key) for row in table]
    if not all(_is_number(t) for t in thresholds):
        return [f"{name} has non-numeric thresholds"]
    errors = []
    if any(a <= b for a, b in zip(thresholds, thresholds[1:])):
        errors.append(f"{name} thresholds must be strictly descending")
    if thresholds[-1] != 0:
        errors.append(f"{name} must end with a zero threshold")
    return errors


def _validate_scoring(scoring: Dict) -> List[str]:
    errors = []
    categories = scoring.get("categories")
    if not isinstance(categories, dict) or not categories:
        return ["scoring config has no categories"]

    weights = scoring.get("category_weights", {})
    for category in categories:
        weight = weights.get(category)
        if not _is_number(weight) or weight < 0:
            errors.append(f"category '{category}' has invalid weight {weight!r}")
    if all(_is_number(w) for w in weights.values()) and sum(weights.values()) <= 0:
        errors.append("category weights must not all be zero")

    neutral = scoring.get("neutral_subscore")
    if not _is_number(neutral) or not 0 <= neutral <= 100:
        errors.append(f"neutral sub-score {neutral!r} outside [0, 100]")

    penalty = scoring.get("certainty_penalty", {})
    threshold = penalty.get("threshold")
    if not _is_number(threshold) or not 0 <= threshold <= 1:
        errors.append(f"certainty penalty threshold {threshold!r} outside [0, 1]")
    scale = penalty.get("scale")
    if not _is_number(scale) or scale < 0:
        errors.append(f"certainty penalty scale {scale!r} must be non-negative")

    errors.extend(_validate_descending(scoring.get("grade_breakpoints"), "min_score", "grade breakpoints"))
    errors.extend(
        _validate_descending(scoring.get("risk_tier_breakpoints"), "min_score", "risk tier breakpoints")
    )
    errors.extend(
        _validate_descending(scoring.get("certainty_labels"), "min_certainty", "certainty labels")
    )
    return errors


def _validate_recommendation(recommendation: Dict) -> List[str]:
    errors = []
    decline = recommendation.get("decline_rules", {})
    min_score = decline.get("min_score")
    if not _is_number(min_score) or not 0 <= min_score <= 100:
        errors.append(f"decline min_score {min_score!r} outside [0, 100]")
    min_certainty = decline.get("min_certainty")
    if not _is_number(min_certainty) or not 0 <= min_certainty <= 1:
        errors.append(f"decline min_certainty {min_certainty!r} outside [0, 1]")

    tiers = recommendation.get("approval_tiers")
    if not isinstance(tiers, list) or not tiers:
        errors.append("approval tiers are empty")
    else:
        thresholds = [tier.get("min_score") for tier in tiers]
        if not all(_is_number(t) for t in thresholds):
            errors.append("approval tiers have non-numeric thresholds")
        else:
            if any(a <= b for a, b in zip(thresholds, thresholds[1:])):
                errors.append("approval tier thresholds must be strictly descending")
            # The lowest approval tier must pick up exactly where the decline rule stops
            if _is_number(min_score) and thresholds[-1] != min_score:
                errors.append("lowest approval tier must start at the decline min_score")
        for tier in tiers:
            ceiling = tier.get("base_ceiling")
            if not _is_number(ceiling) or ceiling < 0:
                errors.append(f"approval tier has invalid base ceiling {ceiling!r}")
            tenor = tier.get("max_tenor_months")
            if not isinstance(tenor, int) or tenor <= 0:
                errors.append(f"approval tier has invalid tenor {tenor!r}")

    multiplier = recommendation.get("certainty_multiplier", {})
    floor, slope = multiplier.get("floor"), multiplier.get("slope")
    if not _is_number(floor) or not _is_number(slope) or floor < 0 or slope < 0:
        errors.append("certainty multiplier floor and slope must be non-negative numbers")

    errors.extend(_validate_descending(recommendation.get("rate_steps"), "min_score", "rate steps"))
    for step in recommendation.get("rate_steps") or []:
        if not _is_number(step.get("rate")) or step.get("rate") < 0:
            errors.append(f"rate step has invalid rate {step.get('rate')!r}")
    return errors


def load_engine_config(config_path: Optional[str] = None) -> EngineConfig:
    """
    Load engine configuration, optionally merging a JSON override file.

    The override file may contain any of the keys "sources", "features",
    "scoring" and "recommendation"; each is deep-merged over the defaults.

    Args:
        config_path: Path to a JSON override file (optional)

    Returns:
        Validated EngineConfig

    Raises:
        FileNotFoundError: If config_path does not exist
        InvalidConfigurationError: If the merged tables are malformed
    """
    if config_path is None:
        return EngineConfig.default()

    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Engine config file not found: {config_path}")

    with open(path, "r", encoding="utf-8") as f:
        try:
            overrides = json.load(f)
        except json.JSONDecodeError as e:
            raise InvalidConfigurationError(f"Engine config is not valid JSON: {e}") from e

    if not isinstance(overrides, dict):
        raise InvalidConfigurationError("Engine config root must be a JSON object")

    unknown = set(overrides) - {"sources", "features", "scoring", "recommendation"}
    if unknown:
        raise InvalidConfigurationError(f"Unknown config sections: {sorted(unknown)}")

    logger.info("Loading engine config overrides from %s", path)

    return EngineConfig.from_dicts(
        source_config=_deep_merge(SOURCE_CONFIG, overrides.get("sources", {})),
        feature_definitions=_deep_merge(FEATURE_DEFINITIONS, overrides.get("features", {})),
        scoring_config=_deep_merge(SCORING_CONFIG, overrides.get("scoring", {})),
        recommendation_config=_deep_merge(RECOMMENDATION_CONFIG, overrides.get("recommendation", {})),
    )
