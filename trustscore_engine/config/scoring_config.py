"""
Scoring configuration for the Provenance-Weighted Scoring Engine.
Contains source coefficients, feature definitions, category weights and decision tables.
"""

# Source coefficient tiers
HARD_PROOF_COEFFICIENT = 1.0
SOFT_PROOF_COEFFICIENT = 0.7
DECLARATIVE_COEFFICIENT = 0.3

# Data source configuration
# Every source resolves to exactly one tier. Unknown sources fall back to "declared".
SOURCE_CONFIG = {
    "tiers": {
        "hard": HARD_PROOF_COEFFICIENT,
        "soft": SOFT_PROOF_COEFFICIENT,
        "declarative": DECLARATIVE_COEFFICIENT,
    },
    "fallback_source": "declared",
    "sources": {
        "declared": {
            "tier": "declarative",
            "display_name": "Declared data",
            "certification_requirements": ["identity_verified"],
        },
        "sms_parsed": {
            "tier": "soft",
            "display_name": "Parsed transactional SMS",
            "certification_requirements": ["phone_otp_verified", "provider_detected"],
        },
        "screenshot_ocr": {
            "tier": "soft",
            "display_name": "Mobile money screenshot (OCR)",
            "certification_requirements": [
                "phone_otp_verified",
                "tampering_check_passed",
                "name_cross_validated",
            ],
        },
        "document_ocr": {
            "tier": "hard",
            "display_name": "Scanned document (OCR)",
            "certification_requirements": ["mrz_validated", "forgery_check_passed"],
        },
        "api_verified": {
            "tier": "hard",
            "display_name": "Verified third-party API",
            "certification_requirements": [],
        },
        "partner_feedback": {
            "tier": "hard",
            "display_name": "Partner lender feedback",
            "certification_requirements": ["loan_outcome_received"],
        },
        "utility_sms": {
            "tier": "soft",
            "display_name": "Utility bill SMS",
            "certification_requirements": ["provider_shortcode_verified"],
        },
        "tontine_attestation": {
            "tier": "soft",
            "display_name": "Tontine attestation",
            "certification_requirements": ["guarantor_verified"],
        },
    },
    # Sources whose coefficient can be raised to the hard tier by certification
    "boost_eligible_sources": ["sms_parsed", "screenshot_ocr", "utility_sms"],
    # Auxiliary (phone) trust score at or above which eligible sources are auto-certified
    "boost_trust_threshold": 70,
    # Auxiliary trust score at or above which the phone counts as verified
    "phone_verified_threshold": 50,
}

# Feature catalogue
# transform: linear | log | binary | optimal_range
# log is saturating: values above "max" all map to 1.0
FEATURE_DEFINITIONS = {
    # Identity & Stability
    "sim_age_months": {"label": "SIM age (months)", "category": "identity", "weight": 0.08,
                       "default_source": "declared", "transform": "log", "min": 0, "max": 120,
                       "direction": "higher_better"},
    "address_stability_years": {"label": "Address stability (years)", "category": "identity", "weight": 0.06,
                                "default_source": "declared", "transform": "log", "min": 0, "max": 20,
                                "direction": "higher_better"},
    "business_age_years": {"label": "Business age (years)", "category": "identity", "weight": 0.07,
                           "default_source": "document_ocr", "transform": "log", "min": 0, "max": 30,
                           "direction": "higher_better"},
    "is_formalized": {"label": "Registered business", "category": "identity", "weight": 0.05,
                      "default_source": "document_ocr", "transform": "binary", "min": 0, "max": 1,
                      "direction": "higher_better"},
    "document_verification_score": {"label": "Document verification score", "category": "identity",
                                    "weight": 0.06, "default_source": "document_ocr", "transform": "linear",
                                    "min": 0, "max": 100, "direction": "higher_better"},
    "phone_trust_score": {"label": "Phone trust score", "category": "identity", "weight": 0.10,
                          "default_source": "api_verified", "transform": "linear", "min": 0, "max": 100,
                          "direction": "higher_better"},

    # Cashflow Consistency
    "monthly_income": {"label": "Monthly income", "category": "cashflow", "weight": 0.08,
                       "default_source": "sms_parsed", "transform": "log", "min": 0, "max": 10000000,
                       "direction": "higher_better"},
    "income_stability_index": {"label": "Income stability", "category": "cashflow", "weight": 0.09,
                               "default_source": "sms_parsed", "transform": "linear", "min": 0, "max": 1,
                               "direction": "higher_better"},
    "expense_to_income_ratio": {"label": "Expense to income ratio", "category": "cashflow", "weight": 0.07,
                                "default_source": "sms_parsed", "transform": "linear", "min": 0, "max": 2,
                                "direction": "lower_better"},
    "momo_velocity_30d": {"label": "Mobile money velocity (30d)", "category": "cashflow", "weight": 0.06,
                          "default_source": "sms_parsed", "transform": "optimal_range", "min": 0, "max": 100,
                          "direction": "higher_better", "optimal_range": [10, 50]},
    "momo_in_out_ratio": {"label": "Mobile money in/out ratio", "category": "cashflow", "weight": 0.05,
                          "default_source": "sms_parsed", "transform": "optimal_range", "min": 0, "max": 3,
                          "direction": "higher_better", "optimal_range": [0.8, 1.5]},
    "average_balance": {"label": "Average balance", "category": "cashflow", "weight": 0.05,
                        "default_source": "screenshot_ocr", "transform": "log", "min": 0, "max": 50000000,
                        "direction": "higher_better"},
    "cashflow_regularity": {"label": "Cashflow regularity", "category": "cashflow", "weight": 0.06,
                            "default_source": "sms_parsed", "transform": "linear", "min": 0, "max": 1,
                            "direction": "higher_better"},

    # Behavioral / Psychometric
    "financial_literacy_score": {"label": "Financial literacy", "category": "behavioral", "weight": 0.04,
                                 "default_source": "declared", "transform": "linear", "min": 0, "max": 100,
                                 "direction": "higher_better"},
    "planning_horizon_score": {"label": "Planning horizon", "category": "behavioral", "weight": 0.04,
                               "default_source": "declared", "transform": "linear", "min": 0, "max": 100,
                               "direction": "higher_better"},
    "self_control_score": {"label": "Self control", "category": "behavioral", "weight": 0.03,
                           "default_source": "declared", "transform": "linear", "min": 0, "max": 100,
                           "direction": "higher_better"},
    "response_consistency": {"label": "Response consistency", "category": "behavioral", "weight": 0.03,
                             "default_source": "declared", "transform": "linear", "min": 0, "max": 1,
                             "direction": "higher_better"},
    "digital_engagement_score": {"label": "Digital engagement", "category": "behavioral", "weight": 0.03,
                                 "default_source": "declared", "transform": "linear", "min": 0, "max": 100,
                                 "direction": "higher_better"},

    # Financial Discipline
    "utility_payment_rate": {"label": "Utility payment rate", "category": "discipline", "weight": 0.08,
                             "default_source": "utility_sms", "transform": "linear", "min": 0, "max": 1,
                             "direction": "higher_better"},
    "utility_late_ratio": {"label": "Utility late ratio", "category": "discipline", "weight": 0.05,
                           "default_source": "utility_sms", "transform": "linear", "min": 0, "max": 1,
                           "direction": "lower_better"},
    "rent_payment_consistency": {"label": "Rent payment consistency", "category": "discipline", "weight": 0.05,
                                 "default_source": "declared", "transform": "linear", "min": 0, "max": 1,
                                 "direction": "higher_better"},
    "savings_rate": {"label": "Savings rate", "category": "discipline", "weight": 0.04,
                     "default_source": "declared", "transform": "linear", "min": 0, "max": 0.5,
                     "direction": "higher_better"},
    "existing_debt_ratio": {"label": "Existing debt ratio", "category": "discipline", "weight": 0.06,
                            "default_source": "declared", "transform": "linear", "min": 0, "max": 1,
                            "direction": "lower_better"},

    # Social Capital
    "tontine_participation_score": {"label": "Tontine participation", "category": "social", "weight": 0.06,
                                    "default_source": "tontine_attestation", "transform": "linear",
                                    "min": 0, "max": 100, "direction": "higher_better"},
    "tontine_discipline_rate": {"label": "Tontine discipline", "category": "social", "weight": 0.05,
                                "default_source": "tontine_attestation", "transform": "linear",
                                "min": 0, "max": 1, "direction": "higher_better"},
    "cooperative_standing_score": {"label": "Cooperative standing", "category": "social", "weight": 0.04,
                                   "default_source": "declared", "transform": "linear", "min": 0, "max": 100,
                                   "direction": "higher_better"},
    "cooperative_loan_history": {"label": "Cooperative loan history", "category": "social", "weight": 0.05,
                                 "default_source": "declared", "transform": "linear", "min": 0, "max": 1,
                                 "direction": "higher_better"},
    "guarantor_quality_score": {"label": "Guarantor quality", "category": "social", "weight": 0.04,
                                "default_source": "declared", "transform": "linear", "min": 0, "max": 100,
                                "direction": "higher_better"},
    "community_attestation_count": {"label": "Community attestations", "category": "social", "weight": 0.03,
                                    "default_source": "tontine_attestation", "transform": "log",
                                    "min": 0, "max": 5, "direction": "higher_better"},

    # Environmental
    "regional_risk_index": {"label": "Regional risk index", "category": "environmental", "weight": 0.03,
                            "default_source": "api_verified", "transform": "linear", "min": 0, "max": 100,
                            "direction": "lower_better"},
    "infrastructure_score": {"label": "Infrastructure score", "category": "environmental", "weight": 0.02,
                             "default_source": "api_verified", "transform": "linear", "min": 0, "max": 100,
                             "direction": "higher_better"},
    "seasonal_exposure_index": {"label": "Seasonal exposure", "category": "environmental", "weight": 0.02,
                                "default_source": "api_verified", "transform": "linear", "min": 0, "max": 100,
                                "direction": "lower_better"},
}

# Scoring Configuration
SCORING_CONFIG = {
    # Fixed category order, with display labels
    "categories": {
        "identity": "Identity & Stability",
        "cashflow": "Cashflow Consistency",
        "behavioral": "Behavioral/Psychometric",
        "discipline": "Financial Discipline",
        "social": "Social Capital",
        "environmental": "Environmental",
    },

    # Top-level category weights (independent importance, not normalized to 1)
    "category_weights": {
        "identity": 0.42,
        "cashflow": 0.42,
        "behavioral": 0.17,
        "discipline": 0.28,
        "social": 0.27,
        "environmental": 0.07,
    },

    # Sub-score for a category with no present features (0-100)
    "neutral_subscore": 50.0,

    # Certainty penalty: max(0, (threshold - certainty) * scale)
    "certainty_penalty": {
        "threshold": 0.7,
        "scale": 10,
    },

    # Grade breakpoints (first match wins, evaluated top-down)
    "grade_breakpoints": [
        {"min_score": 90, "grade": "A+"},
        {"min_score": 80, "grade": "A"},
        {"min_score": 70, "grade": "B+"},
        {"min_score": 60, "grade": "B"},
        {"min_score": 50, "grade": "C+"},
        {"min_score": 40, "grade": "C"},
        {"min_score": 30, "grade": "D"},
        {"min_score": 0, "grade": "E"},
    ],

    # Risk tier breakpoints
    "risk_tier_breakpoints": [
        {"min_score": 65, "tier": "low"},
        {"min_score": 40, "tier": "medium"},
        {"min_score": 0, "tier": "high"},
    ],

    # Certainty labels
    "certainty_labels": [
        {"min_certainty": 0.9, "label": "very_high"},
        {"min_certainty": 0.7, "label": "high"},
        {"min_certainty": 0.5, "label": "medium"},
        {"min_certainty": 0.3, "label": "low"},
        {"min_certainty": 0.0, "label": "very_low"},
    ],

    # Explanatory recommendation triggers
    "recommendation_rules": {
        "low_certainty_threshold": 0.5,
        "phone_verification_threshold": 50,
        "max_declarative_points": 5,
    },

    # Consistency checks between declared and proven data
    "consistency_rules": {
        "max_declared_income_ratio": 2.0,
        "min_name_similarity": 70,
    },
}

# Credit recommendation ladder
RECOMMENDATION_CONFIG = {
    "decline_rules": {
        "min_score": 35,
        "min_certainty": 0.3,
    },

    # Approved tiers (first match wins, evaluated top-down)
    "approval_tiers": [
        {"min_score": 70, "base_ceiling": 2000000, "max_tenor_months": 24,
         "condition": None, "low_certainty_condition": "Additional verification recommended"},
        {"min_score": 55, "base_ceiling": 1000000, "max_tenor_months": 12,
         "condition": "Guarantor recommended", "low_certainty_condition": None},
        {"min_score": 35, "base_ceiling": 500000, "max_tenor_months": 6,
         "condition": "Collateral required", "low_certainty_condition": None},
    ],

    # certainty_multiplier = floor + certainty * slope
    "certainty_multiplier": {
        "floor": 0.5,
        "slope": 0.5,
    },
    "low_certainty_threshold": 0.7,

    # Suggested annual rate (%) by score, independent of certainty
    "rate_steps": [
        {"min_score": 85, "rate": 9.0},
        {"min_score": 70, "rate": 12.0},
        {"min_score": 55, "rate": 15.0},
        {"min_score": 35, "rate": 18.0},
        {"min_score": 0, "rate": 24.0},
    ],
}
