"""
Source coefficient table loader.
Loads CSV files describing alternate data-source tier assignments.
"""

import copy
import csv
from typing import Dict
from pathlib import Path

from .scoring_config import SOURCE_CONFIG


def load_coefficient_csv(csv_path: str) -> Dict[str, Dict]:
    """
    Load a source table from CSV file.

    Args:
        csv_path: Path to CSV file containing source tier assignments

    Returns:
        Dictionary mapping source types to source definitions

    Example CSV format:
        source_type,tier,display_name,certification_requirements
        declared,declarative,Declared data,identity_verified
        sms_parsed,soft,Parsed SMS,phone_otp_verified;provider_detected
    """
    sources = {}

    csv_file = Path(csv_path)
    if not csv_file.exists():
        raise FileNotFoundError(f"Coefficient file not found: {csv_path}")

    with open(csv_path, 'r', encoding='utf-8') as f:
        reader = csv.DictReader(f)
        for row in reader:
            source_type = (row.get('source_type') or '').strip()
            if not source_type:
                continue
            requirements = (row.get('certification_requirements') or '').strip()
            sources[source_type] = {
                'tier': (row.get('tier') or '').strip(),
                'display_name': (row.get('display_name') or source_type).strip(),
                'certification_requirements': [
                    req.strip() for req in requirements.split(';') if req.strip()
                ],
            }

    return sources


def build_source_config(sources: Dict[str, Dict]) -> Dict:
    """
    Build a full source config around a loaded source table.

    Boost-eligible sources missing from the loaded table are dropped so the
    result can be validated on its own.
    """
    config = copy.deepcopy(SOURCE_CONFIG)
    config["sources"] = copy.deepcopy(sources)
    config["boost_eligible_sources"] = [
        source for source in config["boost_eligible_sources"] if source in sources
    ]
    return config
