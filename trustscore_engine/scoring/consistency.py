"""
Consistency checks between declared and proven borrower data.

Checks are advisory: they produce alerts for the recommendations list and a
review condition on the credit offer, and never change the numeric score.
"""

import logging
from typing import Any, List, Mapping, Optional

from rapidfuzz import fuzz

from ..config.engine_config import EngineConfig
from ..features.normalizer import parse_raw_value, split_attribute

logger = logging.getLogger(__name__)


def _normalize_name(name: Any) -> str:
    return " ".join(str(name or "").upper().split())


def name_similarity(declared_name: Any, document_name: Any) -> float:
    """Order-insensitive similarity (0-100) between two person names."""
    left = _normalize_name(declared_name)
    right = _normalize_name(document_name)
    if not left or not right:
        return 0.0
    return fuzz.token_sort_ratio(left, right)


class ConsistencyChecker:
    """Flags declared data that contradicts proven data."""

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig.default()
        rules = self.config.scoring["consistency_rules"]
        self.max_declared_income_ratio = rules["max_declared_income_ratio"]
        self.min_name_similarity = rules["min_name_similarity"]

    def check(
        self,
        attributes: Mapping[str, Any],
        declared_info: Optional[Mapping] = None,
        verified_identity: Optional[Mapping] = None,
        source_types: Optional[Mapping[str, str]] = None
    ) -> List[str]:
        """
        Run every consistency check.

        Args:
            attributes: Input-contract attributes after derivation
            declared_info: Borrower declarations (full_name, monthly_income)
            verified_identity: Identity extracted from documents (full_name)
            source_types: {feature_id: resolved source type} as certified by the engine

        Returns:
            List of alert strings, empty when everything is consistent
        """
        declared_info = declared_info if isinstance(declared_info, Mapping) else {}
        verified_identity = verified_identity if isinstance(verified_identity, Mapping) else {}
        alerts = []

        alert = self.check_income(attributes, declared_info, source_types)
        if alert:
            alerts.append(alert)

        alert = self.check_name(declared_info.get("full_name"), verified_identity.get("full_name"))
        if alert:
            alerts.append(alert)

        if alerts:
            logger.info("[CONSISTENCY] %d alert(s) raised", len(alerts))
        return alerts

    def resolve_source(self, raw_source: Optional[str], feature_id: str) -> str:
        """Source type the engine certifies for a raw label. Bare values take the catalogue default."""
        sources = self.config.sources
        if raw_source is None:
            raw_source = self.config.features[feature_id]["default_source"]
        if raw_source not in sources["sources"]:
            return sources["fallback_source"]
        return raw_source

    def check_income(
        self,
        attributes: Mapping[str, Any],
        declared_info: Mapping,
        source_types: Optional[Mapping[str, str]] = None
    ) -> Optional[str]:
        """Declared monthly income far above the income proven by a non-declared source."""
        declared_income = parse_raw_value(declared_info.get("monthly_income"))
        if declared_income is None or "monthly_income" not in attributes:
            return None

        proven_value, raw_source, _ = split_attribute(attributes["monthly_income"])
        if source_types is not None:
            source_type = source_types.get("monthly_income")
        else:
            source_type = self.resolve_source(raw_source, "monthly_income")
        if source_type in (None, "declared"):
            return None

        proven_income = parse_raw_value(proven_value)
        if proven_income is None or proven_income <= 0:
            return None

        ratio = declared_income / proven_income
        if ratio > self.max_declared_income_ratio:
            logger.debug(
                "Declared income %.0f is %.1fx proven income %.0f", declared_income, ratio, proven_income
            )
            return (
                f"Declared income ({declared_income:,.0f}) is {ratio:.1f}x the income "
                f"proven by {source_type} ({proven_income:,.0f})"
            )
        return None

    def check_name(self, declared_name: Any, document_name: Any) -> Optional[str]:
        """Declared name that does not match the name read from identity documents."""
        if not declared_name or not document_name:
            return None

        similarity = name_similarity(declared_name, document_name)
        if similarity < self.min_name_similarity:
            return (
                f"Declared name does not match identity document "
                f"(similarity {similarity:.0f}%)"
            )
        return None
