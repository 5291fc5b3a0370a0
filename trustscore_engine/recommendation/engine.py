"""
Credit Recommendation Engine.
Turns a final score and overall certainty into a bounded credit offer.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from ..config.engine_config import EngineConfig

logger = logging.getLogger(__name__)


class Decision(Enum):
    """Credit decision outcomes."""
    APPROVE = "APPROVE"
    DECLINE = "DECLINE"


@dataclass(frozen=True)
class CreditRecommendation:
    """Bounded credit offer derived from a score result."""
    approved: bool = False
    max_amount: int = 0
    max_tenor_months: int = 0
    suggested_rate: float = 0.0
    conditions: Tuple[str, ...] = ()
    rule: str = ""

    @property
    def decision(self) -> Decision:
        return Decision.APPROVE if self.approved else Decision.DECLINE

    def to_dict(self) -> Dict:
        return {
            "approved": self.approved,
            "decision": self.decision.value,
            "max_amount": self.max_amount,
            "max_tenor_months": self.max_tenor_months,
            "suggested_rate": self.suggested_rate,
            "conditions": list(self.conditions),
            "rule": self.rule,
        }


Predicate = Callable[[float, float], bool]
Outcome = Callable[[float, float], CreditRecommendation]


class RecommendationEngine:
    """
    Decision ladder over (score, certainty).

    Rules are (name, predicate, outcome) rows evaluated top-down; the first
    matching predicate decides. The decline row comes first, then one approval
    row per configured tier. The lowest tier's min_score equals the decline
    threshold, so every score that is not declined reaches an approval row.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig.default()
        recommendation = self.config.recommendation
        self.decline_rules = recommendation["decline_rules"]
        self.approval_tiers = recommendation["approval_tiers"]
        self.multiplier_floor = recommendation["certainty_multiplier"]["floor"]
        self.multiplier_slope = recommendation["certainty_multiplier"]["slope"]
        self.low_certainty_threshold = recommendation["low_certainty_threshold"]
        self.rate_steps = recommendation["rate_steps"]
        self.rules = self._build_rules()

    def _build_rules(self) -> List[Tuple[str, Predicate, Outcome]]:
        min_score = self.decline_rules["min_score"]
        min_certainty = self.decline_rules["min_certainty"]

        rules: List[Tuple[str, Predicate, Outcome]] = [(
            "decline",
            lambda score, certainty: score < min_score or certainty < min_certainty,
            self._decline,
        )]
        for tier in self.approval_tiers:
            rules.append((
                f"approve_{tier['min_score']}",
                self._tier_predicate(tier["min_score"]),
                self._tier_outcome(tier),
            ))
        return rules

    @staticmethod
    def _tier_predicate(tier_min: float) -> Predicate:
        return lambda score, certainty: score >= tier_min

    def _tier_outcome(self, tier: Mapping) -> Outcome:
        def outcome(score: float, certainty: float) -> CreditRecommendation:
            conditions = []
            if tier.get("condition"):
                conditions.append(tier["condition"])
            if tier.get("low_certainty_condition") and certainty < self.low_certainty_threshold:
                conditions.append(tier["low_certainty_condition"])
            return CreditRecommendation(
                approved=True,
                max_amount=int(round(tier["base_ceiling"] * self.certainty_multiplier(certainty))),
                max_tenor_months=tier["max_tenor_months"],
                suggested_rate=self.suggested_rate(score),
                conditions=tuple(conditions),
            )
        return outcome

    def _decline(self, score: float, certainty: float) -> CreditRecommendation:
        conditions = []
        if score < self.decline_rules["min_score"]:
            conditions.append(
                f"Score {score:g} below minimum {self.decline_rules['min_score']:g}"
            )
        if certainty < self.decline_rules["min_certainty"]:
            conditions.append(
                f"Data certainty {certainty:.0%} below minimum "
                f"{self.decline_rules['min_certainty']:.0%}"
            )
        return CreditRecommendation(
            approved=False,
            max_amount=0,
            max_tenor_months=0,
            suggested_rate=self.suggested_rate(score),
            conditions=tuple(conditions),
        )

    def certainty_multiplier(self, certainty: float) -> float:
        certainty = min(1.0, max(0.0, certainty))
        return self.multiplier_floor + certainty * self.multiplier_slope

    def suggested_rate(self, score: float) -> float:
        """Annual rate (%) from the score step table. Independent of certainty."""
        for step in self.rate_steps:
            if score >= step["min_score"]:
                return step["rate"]
        return self.rate_steps[-1]["rate"]

    def matching_rules(self, score: float, certainty: float) -> List[str]:
        """Names of every rule whose predicate holds, in ladder order."""
        return [name for name, predicate, _ in self.rules if predicate(score, certainty)]

    def recommend(
        self,
        score: float,
        certainty: float,
        alerts: Sequence[str] = ()
    ) -> CreditRecommendation:
        """
        Evaluate the ladder for one (score, certainty) pair.

        Args:
            score: Final score (0-100)
            certainty: Overall certainty (0-1)
            alerts: Consistency alerts; add a review condition to approved offers

        Returns:
            CreditRecommendation
        """
        for name, predicate, outcome in self.rules:
            if not predicate(score, certainty):
                continue

            recommendation = outcome(score, certainty)
            conditions = list(recommendation.conditions)
            if alerts and recommendation.approved:
                conditions.append("Manual review of declared data required")

            logger.debug(
                "[RECOMMENDATION] score=%s certainty=%.3f -> %s", score, certainty, name
            )
            return CreditRecommendation(
                approved=recommendation.approved,
                max_amount=recommendation.max_amount,
                max_tenor_months=recommendation.max_tenor_months,
                suggested_rate=recommendation.suggested_rate,
                conditions=tuple(conditions),
                rule=name,
            )

        # Unreachable with a validated config
        raise RuntimeError(f"No recommendation rule matched score={score} certainty={certainty}")
