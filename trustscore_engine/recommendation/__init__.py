"""
Credit recommendation ladder.
"""

from .engine import Decision, CreditRecommendation, RecommendationEngine

__all__ = ["Decision", "CreditRecommendation", "RecommendationEngine"]
