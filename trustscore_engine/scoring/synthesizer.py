"""
Score Synthesizer.
Combines category sub-scores into the final score, applies the certainty
penalty and maps the result to a grade and risk tier.
"""

import logging
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from ..config.engine_config import EngineConfig
from .aggregator import CategorySubScore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SynthesizedScore:
    """Final score and its derived labels."""
    composite_score: float
    certainty_penalty: float
    adjusted_score: float
    final_score: int
    grade: str
    risk_tier: str


def lookup_breakpoint(score: float, table: Sequence[Mapping], key: str) -> str:
    """
    Return the value of the first row whose min_score the score reaches.

    Tables are ordered from the highest breakpoint down and end at 0, so every
    score in [0, 100] matches exactly one row.
    """
    for row in table:
        if score >= row["min_score"]:
            return row[key]
    return table[-1][key]


class ScoreSynthesizer:
    """Composite score, certainty penalty, grade and risk tier."""

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig.default()
        scoring = self.config.scoring
        self.category_weights = scoring["category_weights"]
        self.penalty_threshold = scoring["certainty_penalty"]["threshold"]
        self.penalty_scale = scoring["certainty_penalty"]["scale"]
        self.grade_breakpoints = scoring["grade_breakpoints"]
        self.risk_tier_breakpoints = scoring["risk_tier_breakpoints"]

    def composite(self, sub_scores: Sequence[CategorySubScore]) -> float:
        """sum(sub_score * weight) / sum(weight) over the given categories."""
        weighted_sum = 0.0
        total_weight = 0.0
        for sub_score in sub_scores:
            weight = self.category_weights.get(sub_score.category, sub_score.weight)
            weighted_sum += sub_score.raw_value * weight
            total_weight += weight

        if total_weight <= 0:
            return 0.0
        return weighted_sum / total_weight

    def certainty_penalty(self, overall_certainty: float) -> float:
        return max(0.0, (self.penalty_threshold - overall_certainty) * self.penalty_scale)

    def grade_for(self, score: float) -> str:
        return lookup_breakpoint(score, self.grade_breakpoints, "grade")

    def risk_tier_for(self, score: float) -> str:
        return lookup_breakpoint(score, self.risk_tier_breakpoints, "tier")

    def synthesize(
        self,
        sub_scores: Sequence[CategorySubScore],
        overall_certainty: float
    ) -> SynthesizedScore:
        """
        Produce the final score from sub-scores and overall certainty.

        Grade and risk tier depend on the final integer score only.
        """
        composite = self.composite(sub_scores)
        penalty = self.certainty_penalty(overall_certainty)
        adjusted = min(100.0, max(0.0, composite - penalty))
        final_score = int(round(adjusted))

        logger.debug(
            "[SYNTHESIZER] composite=%.2f penalty=%.2f final=%d",
            composite, penalty, final_score
        )

        return SynthesizedScore(
            composite_score=composite,
            certainty_penalty=penalty,
            adjusted_score=adjusted,
            final_score=final_score,
            grade=self.grade_for(final_score),
            risk_tier=self.risk_tier_for(final_score),
        )
