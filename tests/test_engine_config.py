"""
Tests for engine configuration loading and validation.
"""

import copy
import json
import os
import tempfile
import unittest

from trustscore_engine.config.engine_config import PROOF_TIERS
from trustscore_engine.config import (
    FEATURE_DEFINITIONS,
    RECOMMENDATION_CONFIG,
    SCORING_CONFIG,
    SOURCE_CONFIG,
    EngineConfig,
    InvalidConfigurationError,
    build_source_config,
    load_coefficient_csv,
    load_engine_config,
)
from trustscore_engine.scoring.scoring_engine import ScoringEngine
from trustscore_engine.sources.coefficients import ProofTier, SourceCoefficientTable


class TestEngineConfig(unittest.TestCase):
    """Test validation of the configuration tables."""

    def test_default_config_is_valid(self):
        config = EngineConfig.default()
        self.assertEqual(len(config.categories), 6)
        self.assertEqual(len(config.feature_weights()), len(FEATURE_DEFINITIONS))
        self.assertEqual(config.coefficient_table()["declared"], 0.3)

    def test_config_is_read_only(self):
        config = EngineConfig.default()
        with self.assertRaises(TypeError):
            config.scoring["neutral_subscore"] = 0
        with self.assertRaises(AttributeError):
            config.scoring = {}

    def test_module_tables_not_shared(self):
        """Building a config must not alias the module-level defaults."""
        scoring = copy.deepcopy(SCORING_CONFIG)
        config = EngineConfig.from_dicts(scoring_config=scoring)
        scoring["neutral_subscore"] = 0
        self.assertEqual(config.scoring["neutral_subscore"], 50.0)

    def test_category_feature_weights(self):
        table = EngineConfig.default().category_feature_weights()
        self.assertEqual(list(table), ["identity", "cashflow", "behavioral", "discipline", "social", "environmental"])
        self.assertEqual(table["identity"]["phone_trust_score"], 0.10)

    def test_negative_feature_weight_rejected(self):
        features = copy.deepcopy(FEATURE_DEFINITIONS)
        features["monthly_income"]["weight"] = -0.1
        with self.assertLogs("trustscore_engine.config.engine_config", level="ERROR"):
            with self.assertRaises(InvalidConfigurationError):
                EngineConfig.from_dicts(feature_definitions=features)

    def test_coefficient_out_of_range_rejected(self):
        sources = copy.deepcopy(SOURCE_CONFIG)
        sources["tiers"]["hard"] = 1.5
        with self.assertLogs("trustscore_engine.config.engine_config", level="ERROR"):
            with self.assertRaises(InvalidConfigurationError):
                EngineConfig.from_dicts(source_config=sources)

    def test_extra_tier_rejected(self):
        """A tier outside hard/soft/declarative must fail at construction, not at scoring."""
        sources = copy.deepcopy(SOURCE_CONFIG)
        sources["tiers"]["community"] = 0.5
        sources["sources"]["tontine_attestation"]["tier"] = "community"
        with self.assertLogs("trustscore_engine.config.engine_config", level="ERROR"):
            with self.assertRaises(InvalidConfigurationError):
                EngineConfig.from_dicts(source_config=sources)

    def test_missing_tier_rejected(self):
        sources = copy.deepcopy(SOURCE_CONFIG)
        del sources["tiers"]["hard"]
        for source in sources["sources"].values():
            if source["tier"] == "hard":
                source["tier"] = "soft"
        with self.assertLogs("trustscore_engine.config.engine_config", level="ERROR"):
            with self.assertRaises(InvalidConfigurationError):
                EngineConfig.from_dicts(source_config=sources)

    def test_tier_names_match_proof_tiers(self):
        self.assertEqual(set(PROOF_TIERS), {tier.value for tier in ProofTier})

    def test_unknown_category_rejected(self):
        features = copy.deepcopy(FEATURE_DEFINITIONS)
        features["monthly_income"]["category"] = "astrology"
        with self.assertLogs("trustscore_engine.config.engine_config", level="ERROR"):
            with self.assertRaises(InvalidConfigurationError):
                EngineConfig.from_dicts(feature_definitions=features)

    def test_invalid_range_rejected(self):
        features = copy.deepcopy(FEATURE_DEFINITIONS)
        features["savings_rate"]["max"] = 0
        with self.assertLogs("trustscore_engine.config.engine_config", level="ERROR"):
            with self.assertRaises(InvalidConfigurationError):
                EngineConfig.from_dicts(feature_definitions=features)

    def test_missing_category_weight_rejected(self):
        scoring = copy.deepcopy(SCORING_CONFIG)
        del scoring["category_weights"]["social"]
        with self.assertLogs("trustscore_engine.config.engine_config", level="ERROR"):
            with self.assertRaises(InvalidConfigurationError):
                EngineConfig.from_dicts(scoring_config=scoring)

    def test_penalty_threshold_rejected(self):
        scoring = copy.deepcopy(SCORING_CONFIG)
        scoring["certainty_penalty"]["threshold"] = 1.2
        with self.assertLogs("trustscore_engine.config.engine_config", level="ERROR"):
            with self.assertRaises(InvalidConfigurationError):
                EngineConfig.from_dicts(scoring_config=scoring)

    def test_unsorted_breakpoints_rejected(self):
        scoring = copy.deepcopy(SCORING_CONFIG)
        scoring["grade_breakpoints"][0], scoring["grade_breakpoints"][1] = (
            scoring["grade_breakpoints"][1], scoring["grade_breakpoints"][0]
        )
        with self.assertLogs("trustscore_engine.config.engine_config", level="ERROR"):
            with self.assertRaises(InvalidConfigurationError):
                EngineConfig.from_dicts(scoring_config=scoring)

    def test_ladder_gap_rejected(self):
        """The lowest approval tier must start where the decline rule stops."""
        recommendation = copy.deepcopy(RECOMMENDATION_CONFIG)
        recommendation["approval_tiers"][-1]["min_score"] = 40
        with self.assertLogs("trustscore_engine.config.engine_config", level="ERROR"):
            with self.assertRaises(InvalidConfigurationError):
                EngineConfig.from_dicts(recommendation_config=recommendation)

    def test_invalid_configuration_is_value_error(self):
        self.assertTrue(issubclass(InvalidConfigurationError, ValueError))


class TestConfigLoaders(unittest.TestCase):
    """Test the JSON and CSV loaders."""

    def setUp(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.TemporaryDirectory()

    def tearDown(self):
        self.temp_dir.cleanup()

    def _write(self, name, content):
        path = os.path.join(self.temp_dir.name, name)
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)
        return path

    def test_load_without_path_returns_defaults(self):
        self.assertEqual(load_engine_config().scoring["neutral_subscore"], 50.0)

    def test_json_override_is_merged(self):
        path = self._write("override.json", json.dumps({
            "scoring": {"neutral_subscore": 40, "certainty_penalty": {"scale": 20}},
        }))
        config = load_engine_config(path)
        self.assertEqual(config.scoring["neutral_subscore"], 40)
        self.assertEqual(config.scoring["certainty_penalty"]["scale"], 20)
        self.assertEqual(config.scoring["certainty_penalty"]["threshold"], 0.7)

        engine = ScoringEngine(config=config)
        result = engine.score_attributes({})
        self.assertEqual(result.sub_score("social").raw_value, 40.0)

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            load_engine_config(os.path.join(self.temp_dir.name, "nope.json"))

    def test_bad_json(self):
        path = self._write("bad.json", "{not json")
        with self.assertRaises(InvalidConfigurationError):
            load_engine_config(path)

    def test_unknown_section(self):
        path = self._write("unknown.json", json.dumps({"ui": {}}))
        with self.assertRaises(InvalidConfigurationError):
            load_engine_config(path)

    def test_invalid_override_is_rejected(self):
        path = self._write("negative.json", json.dumps({"scoring": {"category_weights": {"social": -1}}}))
        with self.assertLogs("trustscore_engine.config.engine_config", level="ERROR"):
            with self.assertRaises(InvalidConfigurationError):
                load_engine_config(path)

    def test_coefficient_csv(self):
        path = self._write("sources.csv", (
            "source_type,tier,display_name,certification_requirements\n"
            "declared,declarative,Declared data,identity_verified\n"
            "sms_parsed,hard,Parsed SMS,phone_otp_verified;provider_detected\n"
            "document_ocr,hard,Scanned document,\n"
            "api_verified,hard,API,\n"
            "utility_sms,soft,Utility SMS,\n"
            "screenshot_ocr,soft,Screenshot,\n"
            "tontine_attestation,soft,Tontine,\n"
        ))
        sources = load_coefficient_csv(path)
        self.assertEqual(sources["sms_parsed"]["tier"], "hard")
        self.assertEqual(
            sources["sms_parsed"]["certification_requirements"],
            ["phone_otp_verified", "provider_detected"]
        )
        self.assertEqual(sources["document_ocr"]["certification_requirements"], [])

        config = EngineConfig.from_dicts(source_config=build_source_config(sources))
        table = SourceCoefficientTable(config)
        self.assertEqual(table.base_coefficient("sms_parsed"), 1.0)
        self.assertNotIn("partner_feedback", table.sources)

    def test_coefficient_csv_missing(self):
        with self.assertRaises(FileNotFoundError):
            load_coefficient_csv(os.path.join(self.temp_dir.name, "missing.csv"))


if __name__ == "__main__":
    unittest.main()
