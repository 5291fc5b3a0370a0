"""
End-to-end tests for the scoring pipeline.
"""

import json
import unittest

from trustscore_engine import run_trust_scoring
from trustscore_engine.scoring.scoring_engine import (
    InvalidRequestStructureError,
    ScoringEngine,
    ScoringRequest,
)


DECLARED_PROFILE = {
    "sim_age_months": {"value": 60, "source_type": "declared"},
    "business_age_years": {"value": 10, "source_type": "declared"},
    "monthly_income": {"value": 500000, "source_type": "declared"},
    "expense_to_income_ratio": {"value": 0.5, "source_type": "declared"},
    "savings_rate": {"value": 0.05, "source_type": "declared"},
    "rent_payment_consistency": {"value": 0.5, "source_type": "declared"},
}

PROVEN_PROFILE = {
    "sim_age_months": {"value": 60, "source_type": "api_verified"},
    "business_age_years": {"value": 10, "source_type": "document_ocr"},
    "monthly_income": {"value": 500000, "source_type": "sms_parsed"},
    "expense_to_income_ratio": {"value": 0.5, "source_type": "sms_parsed"},
    "savings_rate": {"value": 0.05, "source_type": "declared"},
    "rent_payment_consistency": {"value": 0.5, "source_type": "declared"},
}


class TestScoringEngine(unittest.TestCase):
    """Test the full pipeline and its invariants."""

    def setUp(self):
        """Set up test fixtures."""
        self.engine = ScoringEngine()

    def test_declared_only_profile(self):
        """Only self-declared data gives declarative certainty and a proof prompt."""
        result = self.engine.score_attributes(DECLARED_PROFILE)
        self.assertAlmostEqual(result.overall_certainty, 0.3)
        self.assertEqual(result.certainty_label, "low")
        self.assertTrue(any("proof" in r for r in result.recommendations))
        self.assertAlmostEqual(result.certified_score, result.raw_score)
        self.assertEqual(result.proof_breakdown["declarative_count"], 6)

    def test_proven_sources_raise_certainty(self):
        """Same values from stronger sources raise certainty and the certified score."""
        declared = self.engine.score_attributes(DECLARED_PROFILE)
        proven = self.engine.score_attributes(PROVEN_PROFILE)

        self.assertAlmostEqual(proven.raw_score, declared.raw_score)
        self.assertGreater(proven.overall_certainty, declared.overall_certainty)
        self.assertGreater(proven.certified_score, declared.certified_score)
        self.assertLess(proven.certainty_penalty, declared.certainty_penalty)
        self.assertGreaterEqual(proven.final_score, declared.final_score)

    def test_missing_category_is_neutral_and_deterministic(self):
        first = self.engine.score_attributes(PROVEN_PROFILE)
        second = self.engine.score_attributes(PROVEN_PROFILE)

        social = first.sub_score("social")
        self.assertEqual(social.raw_value, 50.0)
        self.assertTrue(social.is_neutral_default)
        self.assertEqual(first.composite_score, second.composite_score)
        self.assertEqual(first.final_score, second.final_score)
        self.assertEqual(first.to_dict(), second.to_dict())

    def test_missing_category_same_for_different_inputs(self):
        other = dict(PROVEN_PROFILE)
        other["utility_payment_rate"] = {"value": 0.1, "source_type": "utility_sms"}
        first = self.engine.score_attributes(PROVEN_PROFILE)
        second = self.engine.score_attributes(other)
        self.assertEqual(first.sub_score("social").raw_value, second.sub_score("social").raw_value)

    def test_empty_input(self):
        result = self.engine.score_attributes({})
        self.assertEqual(result.raw_score, 0.0)
        self.assertEqual(result.certified_score, 0.0)
        self.assertEqual(result.overall_certainty, 0.0)
        self.assertAlmostEqual(result.composite_score, 50.0)
        self.assertAlmostEqual(result.certainty_penalty, 7.0)
        self.assertEqual(result.final_score, 43)
        self.assertEqual(result.grade, "C")
        self.assertEqual(result.risk_tier, "medium")
        self.assertEqual(result.trust_level, "unverified")
        self.assertFalse(result.credit_recommendation.approved)
        neutral_notes = [r for r in result.recommendations if "neutral score" in r]
        self.assertEqual(len(neutral_notes), 6)

    def test_bounds(self):
        extremes = [
            {name: {"value": -1e12, "source_type": "declared"} for name in PROVEN_PROFILE},
            {name: {"value": 1e12, "source_type": "api_verified"} for name in PROVEN_PROFILE},
            {"monthly_income": "lots", "unknown": 3, "savings_rate": True},
        ]
        for attributes in extremes:
            for aux in (None, 0, 100, 250):
                result = self.engine.score_attributes(attributes, aux_trust_score=aux)
                self.assertTrue(0 <= result.final_score <= 100)
                self.assertTrue(0 <= result.raw_score <= 100)
                self.assertTrue(0 <= result.certified_score <= 100)
                self.assertTrue(0 <= result.overall_certainty <= 1)

    def test_aux_trust_score_boosts_sms_sources(self):
        without = self.engine.score_attributes(PROVEN_PROFILE, aux_trust_score=40)
        with_trust = self.engine.score_attributes(PROVEN_PROFILE, aux_trust_score=85)
        self.assertGreater(with_trust.overall_certainty, without.overall_certainty)
        certified = [p.feature_id for p in with_trust.data_points if p.is_certified]
        self.assertIn("monthly_income", certified)
        self.assertNotIn("savings_rate", certified)

    def test_certified_flag_never_lowers_certainty(self):
        attributes = {
            "monthly_income": {"value": 300000, "source_type": "sms_parsed"},
            "average_balance": {"value": 80000, "source_type": "screenshot_ocr"},
            "utility_payment_rate": {"value": 0.9, "source_type": "utility_sms"},
            "savings_rate": {"value": 0.1, "source_type": "declared"},
        }
        previous = self.engine.score_attributes(attributes).overall_certainty
        for name in sorted(attributes):
            attributes[name] = dict(attributes[name], certified=True)
            current = self.engine.score_attributes(attributes).overall_certainty
            self.assertGreaterEqual(current, previous)
            previous = current

    def test_phone_and_declarative_recommendations(self):
        attributes = {
            name: {"value": 50, "source_type": "declared"}
            for name in (
                "financial_literacy_score", "planning_horizon_score", "self_control_score",
                "digital_engagement_score", "cooperative_standing_score", "guarantor_quality_score",
            )
        }
        result = self.engine.score_attributes(attributes, aux_trust_score=30)
        self.assertTrue(any("phone verification" in r for r in result.recommendations))
        self.assertTrue(any("6 data points are self-declared" in r for r in result.recommendations))

        verified = self.engine.score_attributes(attributes, aux_trust_score=60)
        self.assertFalse(any("phone verification" in r for r in verified.recommendations))

    def test_unknown_source_type_is_declarative(self):
        with self.assertLogs("trustscore_engine.sources.coefficients", level="WARNING"):
            result = self.engine.score_attributes(
                {"monthly_income": {"value": 200000, "source_type": "hearsay"}}
            )
        self.assertAlmostEqual(result.overall_certainty, 0.3)
        self.assertEqual(result.data_points[0].source_type, "declared")
        self.assertTrue(any("hearsay" in w for w in result.warnings))

    def test_malformed_request_degrades(self):
        result = self.engine.score_request(ScoringRequest(attributes=["not", "a", "mapping"],
                                                          aux_trust_score="high"))
        self.assertEqual(len(result.warnings), 2)
        self.assertEqual(result.raw_score, 0.0)

    def test_internal_failure_returns_complete_result(self):
        def broken_policy(source_type, aux_trust_score):
            raise RuntimeError("policy exploded")

        engine = ScoringEngine(boost_policy=broken_policy)
        with self.assertLogs("trustscore_engine.scoring.scoring_engine", level="ERROR"):
            result = engine.score_attributes({"monthly_income": 100000}, request_ref="R1")
        self.assertEqual(result.request_ref, "R1")
        self.assertTrue(any("policy exploded" in w for w in result.warnings))
        self.assertIsNotNone(result.credit_recommendation)

    def test_consistency_alerts(self):
        request = ScoringRequest(
            attributes={"monthly_income": {"value": 200000, "source_type": "sms_parsed"}},
            declared_info={"monthly_income": 1000000, "full_name": "Awa Traore"},
            verified_identity={"full_name": "Moussa Diallo"},
        )
        result = self.engine.score_request(request)
        self.assertEqual(len(result.alerts), 2)
        for alert in result.alerts:
            self.assertIn(alert, result.recommendations)

    def test_trust_level(self):
        attributes = {
            "monthly_income": {"value": 200000, "source_type": "sms_parsed"},
            "average_balance": {"value": 50000, "source_type": "screenshot_ocr"},
        }
        self.assertEqual(self.engine.score_attributes(attributes, aux_trust_score=80).trust_level, "certified")
        self.assertEqual(self.engine.score_attributes(attributes).trust_level, "unverified")

    def test_borrower_data_is_derived(self):
        request = ScoringRequest(
            borrower_data={
                "mobile_money": {
                    "total_in": 600000, "total_out": 550000,
                    "transaction_count": 45, "period_days": 30,
                },
                "utility_payments": [
                    {"payments_on_time": 10, "payments_late": 2, "payments_missed": 0},
                ],
            },
            aux_trust_score=75,
        )
        result = self.engine.score_request(request)
        ids = {p.feature_id for p in result.data_points}
        self.assertIn("momo_velocity_30d", ids)
        self.assertIn("utility_payment_rate", ids)
        self.assertTrue(all(p.is_certified for p in result.data_points))

    def test_bad_side_fields_keep_attributes(self):
        request = ScoringRequest(
            attributes={"monthly_income": {"value": 200000, "source_type": "sms_parsed"}},
            declared_info="not a mapping",
            verified_identity=["Awa Traore"],
        )
        result = self.engine.score_request(request)
        self.assertEqual(len(result.data_points), 1)
        self.assertGreater(result.raw_score, 0)
        self.assertEqual(result.alerts, ())
        self.assertIn("declared_info was not a mapping and was ignored", result.warnings)
        self.assertIn("verified_identity was not a mapping and was ignored", result.warnings)
        self.assertFalse(any("degraded" in w for w in result.warnings))

    def test_malformed_borrower_records_are_skipped(self):
        request = ScoringRequest(
            borrower_data={
                "mobile_money": ["not", "a", "summary"],
                "utility_payments": [
                    "paid on time",
                    {"payments_on_time": 10, "payments_late": 2, "payments_missed": 0},
                ],
                "tontines": "monthly",
                "guarantors": [None],
            },
        )
        with self.assertLogs("trustscore_engine.features.attribute_builder", level="WARNING"):
            result = self.engine.score_request(request)

        ids = {p.feature_id for p in result.data_points}
        self.assertEqual(ids, {"utility_payment_rate", "utility_late_ratio"})
        payment_rate = next(p for p in result.data_points if p.feature_id == "utility_payment_rate")
        self.assertAlmostEqual(payment_rate.value, 10 / 12)
        self.assertIn("borrower_data.mobile_money was not a mapping and was ignored", result.warnings)
        self.assertIn("borrower_data.utility_payments: skipped 1 malformed record(s)", result.warnings)
        self.assertIn("borrower_data.tontines was not a list and was ignored", result.warnings)
        self.assertIn("borrower_data.guarantors: skipped 1 malformed record(s)", result.warnings)
        self.assertFalse(any("degraded" in w for w in result.warnings))

    def test_income_alert_follows_certified_source(self):
        declared = {"monthly_income": 3000000}

        bare = self.engine.score_request(ScoringRequest(
            attributes={"monthly_income": 300000}, declared_info=declared
        ))
        self.assertEqual(bare.data_points[0].source_type, "sms_parsed")
        self.assertEqual(len(bare.alerts), 1)
        self.assertIn("sms_parsed", bare.alerts[0])

        unknown = self.engine.score_request(ScoringRequest(
            attributes={"monthly_income": {"value": 300000, "source_type": "hearsay"}},
            declared_info=declared,
        ))
        self.assertEqual(unknown.data_points[0].source_type, "declared")
        self.assertEqual(unknown.alerts, ())

    def test_result_is_read_only(self):
        result = self.engine.score_attributes(PROVEN_PROFILE, aux_trust_score=75)
        with self.assertRaises(AttributeError):
            result.warnings.append("edited")
        with self.assertRaises(AttributeError):
            result.credit_recommendation.conditions.append("edited")
        with self.assertRaises(TypeError):
            result.proof_breakdown["hard_count"] = 0
        with self.assertRaises(TypeError):
            result.source_breakdown[0]["count"] = 0
        self.assertIsInstance(result.sub_scores[0].factors, tuple)

    def test_to_dict_is_json_serializable(self):
        result = self.engine.score_attributes(PROVEN_PROFILE, aux_trust_score=75, request_ref="abc")
        record = result.to_dict()
        json.dumps(record)
        self.assertEqual(record["request_ref"], "abc")
        self.assertEqual(len(record["sub_scores"]), 6)
        self.assertIn("approved", record["credit_recommendation"])


class TestScoringRequest(unittest.TestCase):
    """Test payload parsing."""

    def test_from_payload(self):
        request = ScoringRequest.from_payload(
            {"attributes": {"monthly_income": 1}, "phone_trust_score": 80}, request_ref="file1"
        )
        self.assertEqual(request.aux_trust_score, 80)
        self.assertEqual(request.request_ref, "file1")

    def test_missing_sections(self):
        with self.assertRaises(InvalidRequestStructureError):
            ScoringRequest.from_payload({"aux_trust_score": 80})

    def test_wrong_types(self):
        with self.assertRaises(InvalidRequestStructureError):
            ScoringRequest.from_payload([1, 2, 3])
        with self.assertRaises(InvalidRequestStructureError):
            ScoringRequest.from_payload({"attributes": [1, 2]})


class TestRunTrustScoring(unittest.TestCase):
    """Test the package entry point."""

    def test_returns_flat_record(self):
        result = run_trust_scoring({
            "attributes": {
                "monthly_income": {"value": 250000, "source_type": "sms_parsed"},
                "utility_payment_rate": {"value": 0.95, "source_type": "utility_sms"},
            },
            "aux_trust_score": 82,
        })
        self.assertEqual(result["overall_certainty"], 1.0)
        self.assertEqual(result["final_score"], 65)
        self.assertTrue(result["credit_recommendation"]["approved"])

    def test_invalid_payload_raises(self):
        with self.assertRaises(InvalidRequestStructureError):
            run_trust_scoring({})


if __name__ == "__main__":
    unittest.main()
