"""
Source Coefficient Table.

Maps each data-source type to one of three trust tiers:

    Hard Proof   (1.0)  machine-verified documents, third-party API confirmation
    Soft Proof   (0.7)  community attestations, unverified captures, parsed SMS
    Declarative  (0.3)  user-entered values with no corroborating evidence

Unknown source types resolve to the declarative tier.
"""

import logging
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from ..config.engine_config import EngineConfig

logger = logging.getLogger(__name__)


class SourceType(Enum):
    """How a feature value was obtained."""
    DECLARED = "declared"
    SMS_PARSED = "sms_parsed"
    SCREENSHOT_OCR = "screenshot_ocr"
    DOCUMENT_OCR = "document_ocr"
    API_VERIFIED = "api_verified"
    PARTNER_FEEDBACK = "partner_feedback"
    UTILITY_SMS = "utility_sms"
    TONTINE_ATTESTATION = "tontine_attestation"


class ProofTier(Enum):
    """Trust tier classification."""
    HARD = "hard"
    SOFT = "soft"
    DECLARATIVE = "declarative"


class TrustLevel(Enum):
    """Borrower-facing summary of the proofs collected."""
    UNVERIFIED = "unverified"
    BASIC = "basic"
    VERIFIED = "verified"
    CERTIFIED = "certified"
    GOLD = "gold"


# (source_type, aux_trust_score) -> should the source be certified
BoostPolicy = Callable[[str, Optional[float]], bool]


class SourceCoefficientTable:
    """Read-only lookup of trust coefficients by source type."""

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig.default()
        source_config = self.config.sources
        self.tiers = source_config["tiers"]
        self.sources = source_config["sources"]
        self.fallback_source = source_config["fallback_source"]
        self.boost_eligible_sources = frozenset(source_config["boost_eligible_sources"])
        self.boost_trust_threshold = source_config["boost_trust_threshold"]
        self.phone_verified_threshold = source_config["phone_verified_threshold"]

    def resolve_source(self, source_type: Optional[str]) -> Tuple[str, bool]:
        """
        Resolve a source label to a known source type.

        Returns:
            Tuple of (resolved source type, whether the label was known)
        """
        if isinstance(source_type, SourceType):
            source_type = source_type.value
        if source_type in self.sources:
            return source_type, True
        logger.warning(
            "Unknown source type %r, falling back to %s", source_type, self.fallback_source
        )
        return self.fallback_source, False

    def tier_for(self, source_type: str) -> ProofTier:
        resolved, _ = self.resolve_source(source_type)
        return ProofTier(self.sources[resolved]["tier"])

    def base_coefficient(self, source_type: str) -> float:
        """Coefficient for the source's own tier."""
        resolved, _ = self.resolve_source(source_type)
        return self.tiers[self.sources[resolved]["tier"]]

    def hard_coefficient(self) -> float:
        return self.tiers[ProofTier.HARD.value]

    def is_boost_eligible(self, source_type: str) -> bool:
        return source_type in self.boost_eligible_sources

    def certified_coefficient(self, source_type: str) -> float:
        """
        Coefficient once certified. Eligible sources rise to the hard tier,
        everything else keeps its base coefficient.
        """
        base = self.base_coefficient(source_type)
        if self.is_boost_eligible(source_type):
            return max(base, self.hard_coefficient())
        return base

    def display_name(self, source_type: str) -> str:
        resolved, _ = self.resolve_source(source_type)
        return self.sources[resolved].get("display_name", resolved)

    def check_certification_requirements(
        self,
        source_type: str,
        provided_proofs: Iterable[str]
    ) -> Tuple[bool, List[str]]:
        """
        Check whether the supplied proofs satisfy a source's certification requirements.

        Returns:
            Tuple of (is_certified, missing requirements)
        """
        resolved, _ = self.resolve_source(source_type)
        provided = set(provided_proofs)
        requirements = self.sources[resolved].get("certification_requirements", ())
        missing = [req for req in requirements if req not in provided]
        return len(missing) == 0, missing

    def is_phone_verified(self, aux_trust_score: Optional[float]) -> bool:
        return aux_trust_score is not None and aux_trust_score >= self.phone_verified_threshold

    def as_dict(self) -> Dict[str, float]:
        """{source_type: base coefficient} for every known source."""
        return {source_type: self.base_coefficient(source_type) for source_type in self.sources}


def make_threshold_boost_policy(
    eligible_sources: Iterable[str],
    threshold: float
) -> BoostPolicy:
    """
    Build a policy that certifies eligible sources once the auxiliary
    trust score reaches the threshold.
    """
    eligible = frozenset(eligible_sources)

    def policy(source_type: str, aux_trust_score: Optional[float]) -> bool:
        if aux_trust_score is None:
            return False
        return source_type in eligible and aux_trust_score >= threshold

    return policy


def default_boost_policy(table: SourceCoefficientTable) -> BoostPolicy:
    """Threshold policy built from the table's own configuration."""
    return make_threshold_boost_policy(table.boost_eligible_sources, table.boost_trust_threshold)


def never_boost(source_type: str, aux_trust_score: Optional[float]) -> bool:
    return False


def determine_trust_level(
    source_types: Iterable[str],
    phone_verified: bool
) -> TrustLevel:
    """
    Summarize which proof types have been collected.

    Args:
        source_types: Source types of the borrower's data points
        phone_verified: Whether the auxiliary phone trust signal passed

    Returns:
        TrustLevel label
    """
    collected = set(source_types)
    has_identity_doc = bool(collected & {"document_ocr", "api_verified"})
    has_community = bool(collected & {"tontine_attestation", "partner_feedback"})
    has_sms = bool(collected & {"sms_parsed", "utility_sms"})
    has_screenshot = "screenshot_ocr" in collected

    if not phone_verified:
        return TrustLevel.UNVERIFIED
    if has_identity_doc and has_community and has_sms and has_screenshot:
        return TrustLevel.GOLD
    if has_sms and has_screenshot:
        return TrustLevel.CERTIFIED
    if has_screenshot:
        return TrustLevel.VERIFIED
    return TrustLevel.BASIC
