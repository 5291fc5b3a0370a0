"""
Category Aggregator.
Groups normalized features into the six fixed categories and computes a weighted sub-score per category.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from ..config.engine_config import EngineConfig
from ..features.normalizer import Feature

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CategorySubScore:
    """Weighted sub-score for one category."""
    category: str
    label: str
    raw_value: float  # 0-100
    weight: float  # Top-level category weight
    feature_count: int = 0
    expected_feature_count: int = 0
    is_neutral_default: bool = False
    factors: Tuple[Dict, ...] = ()

    @property
    def coverage(self) -> float:
        """Share of the category's catalogue features present (0-100)."""
        if self.expected_feature_count == 0:
            return 0.0
        return self.feature_count / self.expected_feature_count * 100

    def to_dict(self) -> Dict:
        return {
            "category": self.category,
            "label": self.label,
            "raw_value": round(self.raw_value, 2),
            "weight": self.weight,
            "feature_count": self.feature_count,
            "coverage": round(self.coverage, 1),
            "is_neutral_default": self.is_neutral_default,
            "factors": [dict(factor) for factor in self.factors],
        }


class CategoryAggregator:
    """Computes per-category sub-scores with weights renormalized over present features."""

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig.default()
        self.category_labels = self.config.scoring["categories"]
        self.category_weights = self.config.scoring["category_weights"]
        self.neutral_subscore = float(self.config.scoring["neutral_subscore"])
        self.weight_table = self.config.category_feature_weights()

    def aggregate(
        self,
        features: Iterable[Feature],
        weight_table: Optional[Mapping[str, Mapping[str, float]]] = None
    ) -> List[CategorySubScore]:
        """
        Compute one sub-score per category, in fixed category order.

        sub_score = sum(value * weight) / sum(weight of present features) * 100

        A category with no present (positively weighted) features gets the
        neutral default instead of zero. Never raises.

        Args:
            features: Normalized features for one request
            weight_table: {category: {feature_id: weight}}; defaults to the catalogue

        Returns:
            List of CategorySubScore, one per configured category
        """
        table = weight_table if weight_table is not None else self.weight_table
        present = {feature.id: feature for feature in features}
        sub_scores = []

        for category in self.config.categories:
            category_weights = table.get(category, {})
            weighted_sum = 0.0
            total_weight = 0.0
            factors = []

            for feature_id in sorted(category_weights):
                feature = present.get(feature_id)
                weight = category_weights[feature_id]
                if feature is None or weight <= 0:
                    continue
                weighted_sum += feature.value * weight
                total_weight += weight
                factors.append({
                    "feature": feature_id,
                    "label": feature.label,
                    "value": round(feature.value * 100, 2),
                    "weight": weight,
                })

            if total_weight > 0:
                raw_value = weighted_sum / total_weight * 100
                is_neutral = False
            else:
                raw_value = self.neutral_subscore
                is_neutral = True
                logger.debug("[AGGREGATOR] No data for %s, using neutral %.1f", category, raw_value)

            sub_scores.append(CategorySubScore(
                category=category,
                label=self.category_labels[category],
                raw_value=min(100.0, max(0.0, raw_value)),
                weight=self.category_weights[category],
                feature_count=len(factors),
                expected_feature_count=len(category_weights),
                is_neutral_default=is_neutral,
                factors=tuple(factors),
            ))

        return sub_scores
