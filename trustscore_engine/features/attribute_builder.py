"""
Attribute Builder for borrower scoring requests.
Derives scoring attributes (with their source types) from structured collaborator data.
"""

from typing import Any, Dict, List, Mapping, Optional
from datetime import date, datetime
import statistics
import logging

logger = logging.getLogger(__name__)


def _number(value: Any, default: float = 0.0) -> float:
    """Coerce a collaborator field to float, falling back on bad input."""
    if isinstance(value, bool):
        return float(value)
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _months_between(start: date, end: date) -> int:
    return max(0, (end.year - start.year) * 12 + (end.month - start.month))


def _parse_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        return None
    try:
        return datetime.strptime(str(value)[:10], "%Y-%m-%d").date()
    except ValueError:
        return None


class AttributeBuilder:
    """
    Builds the engine input contract from structured borrower data.

    Each derived attribute is tagged with the source type of the data it came
    from. Attributes passed explicitly by the caller always win over derived ones.
    """

    # Share of mobile money inflow counted as income
    MOMO_INCOME_SHARE = 0.7

    # Channels read as a single mapping and channels read as a list of records
    MAPPING_CHANNELS = ("declared", "kyc", "mobile_money")
    RECORD_CHANNELS = ("monthly_statements", "utility_payments", "tontines", "guarantors")

    def __init__(self, as_of: Optional[date] = None):
        """
        Initialize the attribute builder.

        Args:
            as_of: Reference date for membership durations (defaults to today)
        """
        self.as_of = as_of or date.today()

    def build(
        self,
        borrower_data: Dict,
        explicit_attributes: Optional[Dict] = None,
        warnings: Optional[List[str]] = None
    ) -> Dict[str, Dict]:
        """
        Derive attributes from borrower data.

        Malformed channels and records are skipped rather than failing the
        whole request; each skip is reported in ``warnings``.

        Args:
            borrower_data: Structured data from KYC, mobile money, utility and
                community collaborators
            explicit_attributes: Caller-supplied attributes that override derived ones
            warnings: Optional list that receives a message per skipped item

        Returns:
            Dictionary of {attribute: {"value": ..., "source_type": ...}}
        """
        if warnings is None:
            warnings = []
        attributes: Dict[str, Dict] = {}
        data = self._clean_channels(borrower_data, warnings)

        self._add_identity(attributes, data)
        self._add_cashflow(attributes, data)
        self._add_discipline(attributes, data)
        self._add_social(attributes, data)

        if explicit_attributes:
            overridden = sorted(set(attributes) & set(explicit_attributes), key=str)
            if overridden:
                logger.debug("Explicit attributes override derived ones: %s", overridden)
            attributes.update(explicit_attributes)

        logger.debug("[ATTRIBUTE BUILDER] Built %d attributes", len(attributes))
        return attributes

    def _clean_channels(self, borrower_data: Any, warnings: List[str]) -> Dict:
        """Copy of borrower_data with wrongly shaped channels and records dropped."""
        if not borrower_data:
            return {}
        if not isinstance(borrower_data, Mapping):
            warnings.append("borrower_data was not a mapping and was ignored")
            return {}

        data = dict(borrower_data)
        for channel in self.MAPPING_CHANNELS:
            if channel in data and data[channel] is not None and not isinstance(data[channel], Mapping):
                warnings.append(f"borrower_data.{channel} was not a mapping and was ignored")
                del data[channel]

        for channel in self.RECORD_CHANNELS + ("community_attestations",):
            value = data.get(channel)
            if value is None:
                continue
            if not isinstance(value, (list, tuple)):
                warnings.append(f"borrower_data.{channel} was not a list and was ignored")
                del data[channel]
                continue
            if channel not in self.RECORD_CHANNELS:
                continue
            records = [record for record in value if isinstance(record, Mapping)]
            skipped = len(value) - len(records)
            if skipped:
                warnings.append(f"borrower_data.{channel}: skipped {skipped} malformed record(s)")
                logger.warning("Skipped %d malformed %s record(s)", skipped, channel)
            data[channel] = records

        return data

    def _add_identity(self, attributes: Dict, data: Dict) -> None:
        declared = data.get("declared") or {}
        kyc = data.get("kyc") or {}

        for attribute, key in (
            ("sim_age_months", "sim_age_months"),
            ("address_stability_years", "address_stability_years"),
            ("business_age_years", "years_in_business"),
        ):
            if key in declared:
                attributes[attribute] = {"value": declared[key], "source_type": "declared"}

        if "rccm_number" in declared:
            attributes["is_formalized"] = {
                "value": bool(declared["rccm_number"]),
                "source_type": "document_ocr" if kyc.get("rccm_verified") else "declared",
            }

        if "document_confidence" in kyc:
            attributes["document_verification_score"] = {
                "value": kyc["document_confidence"], "source_type": "document_ocr"
            }

    def _add_cashflow(self, attributes: Dict, data: Dict) -> None:
        momo = data.get("mobile_money") or {}
        statements = data.get("monthly_statements") or []
        declared = data.get("declared") or {}

        if momo:
            period_days = max(_number(momo.get("period_days"), 30), 1)
            total_in = _number(momo.get("total_in"))
            total_out = _number(momo.get("total_out"))
            transaction_count = _number(momo.get("transaction_count"))

            attributes["momo_velocity_30d"] = {
                "value": transaction_count / period_days * 30, "source_type": "sms_parsed"
            }
            attributes["momo_in_out_ratio"] = {
                "value": total_in / max(total_out, 1), "source_type": "sms_parsed"
            }
            if "regularity_score" in momo:
                attributes["cashflow_regularity"] = {
                    "value": momo["regularity_score"], "source_type": "sms_parsed"
                }
            if total_in > 0:
                attributes["monthly_income"] = {
                    "value": total_in / period_days * 30 * self.MOMO_INCOME_SHARE,
                    "source_type": "sms_parsed",
                }
            if "average_balance" in momo:
                attributes["average_balance"] = {
                    "value": momo["average_balance"], "source_type": "screenshot_ocr"
                }

        stability = self.calculate_income_stability(statements)
        if stability is not None:
            attributes["income_stability_index"] = {"value": stability, "source_type": "sms_parsed"}
        elif "regularity_score" in momo:
            attributes["income_stability_index"] = {
                "value": momo["regularity_score"], "source_type": "sms_parsed"
            }

        if "monthly_income" not in attributes and "monthly_income" in declared:
            attributes["monthly_income"] = {"value": declared["monthly_income"], "source_type": "declared"}

        income = _number(attributes.get("monthly_income", {}).get("value"))
        expenses = _number(declared.get("monthly_expenses"), default=-1)
        if income > 0 and expenses >= 0:
            attributes["expense_to_income_ratio"] = {
                "value": expenses / income, "source_type": "declared"
            }

    def _add_discipline(self, attributes: Dict, data: Dict) -> None:
        utilities = data.get("utility_payments") or []
        declared = data.get("declared") or {}

        if utilities:
            on_time = sum(_number(u.get("payments_on_time")) for u in utilities)
            late = sum(_number(u.get("payments_late")) for u in utilities)
            missed = sum(_number(u.get("payments_missed")) for u in utilities)
            total = on_time + late + missed
            attributes["utility_payment_rate"] = {
                "value": on_time / total if total > 0 else 0.5, "source_type": "utility_sms"
            }
            attributes["utility_late_ratio"] = {
                "value": late / total if total > 0 else 0.0, "source_type": "utility_sms"
            }

        if "rent_payment_consistency" in declared:
            attributes["rent_payment_consistency"] = {
                "value": declared["rent_payment_consistency"], "source_type": "declared"
            }

        income = _number(attributes.get("monthly_income", {}).get("value"))
        if income > 0:
            if "monthly_expenses" in declared:
                savings = (income - _number(declared["monthly_expenses"])) / income
                attributes["savings_rate"] = {"value": savings, "source_type": "declared"}
            if "existing_loans" in declared:
                attributes["existing_debt_ratio"] = {
                    "value": _number(declared["existing_loans"]) / income, "source_type": "declared"
                }

    def _add_social(self, attributes: Dict, data: Dict) -> None:
        tontines = data.get("tontines") or []
        guarantors = data.get("guarantors") or []
        attestations = data.get("community_attestations") or []

        # No tontine data leaves the attributes absent; the aggregator
        # substitutes the neutral category default.
        if tontines:
            total_score = 0.0
            total_discipline = 0.0
            attested = False
            for tontine in tontines:
                member_since = _parse_date(tontine.get("member_since"))
                months = _months_between(member_since, self.as_of) if member_since else 0
                made = _number(tontine.get("payments_made"))
                missed = _number(tontine.get("payments_missed"))
                discipline = max(0.0, 1 - missed / made) if made > 0 else 0.5
                attestation = bool(tontine.get("attestation_provided"))
                attested = attested or attestation
                total_score += months * discipline * (1.2 if attestation else 0.8)
                total_discipline += discipline

            source_type = "tontine_attestation" if attested else "declared"
            attributes["tontine_participation_score"] = {
                "value": min(100.0, total_score / len(tontines) * 2), "source_type": source_type
            }
            attributes["tontine_discipline_rate"] = {
                "value": total_discipline / len(tontines), "source_type": source_type
            }

        if guarantors:
            income = _number(attributes.get("monthly_income", {}).get("value"))
            attributes["guarantor_quality_score"] = {
                "value": sum(self._guarantor_quality(g, income) for g in guarantors) / len(guarantors),
                "source_type": "declared",
            }

        if attestations:
            attributes["community_attestation_count"] = {
                "value": len(attestations), "source_type": "tontine_attestation"
            }

    @staticmethod
    def _guarantor_quality(guarantor: Dict, borrower_income: float) -> float:
        score = 50.0
        if guarantor.get("verified"):
            score += 20
        if guarantor.get("phone_verified"):
            score += 10
        if _number(guarantor.get("income_estimate")) > borrower_income:
            score += 20
        return score

    @staticmethod
    def calculate_income_stability(statements: List[Dict]) -> Optional[float]:
        """
        Income stability from monthly credit totals as 1 - coefficient of variation.

        Returns:
            Stability in [0, 1], or None with fewer than two statements
        """
        credits = [_number(s.get("total_credits")) for s in statements if isinstance(s, dict)]
        if len(credits) < 2:
            return None

        mean = statistics.mean(credits)
        if mean <= 0:
            return 0.0
        cv = statistics.pstdev(credits) / mean
        return max(0.0, min(1.0, 1 - cv))
