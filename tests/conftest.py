"""
Root test configuration and fixtures for the enrichment project.

This conftest.py provides common fixtures for all test categories:
- unit/enrichment: Engine, parsing, grounding and provider tests
- unit/api: Settings and HTTP router tests

Fake providers live in tests/fixtures/fakes.py.

Note: sys.path manipulation is handled here to ensure imports work correctly.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Add project root to path to allow imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from enrichment.models import Organization  # noqa: E402


@pytest.fixture
def sample_organizations() -> list[Organization]:
    """Small reference dataset of health systems."""
    return [
        Organization(
            name="Mercy Health",
            type="IDN/ACO",
            emr_vendor_ambulatory="Epic",
            emr_vendor_inpatient="Epic",
            net_patient_revenue=5400000000.0,
            bed_count=4000,
            hospital_count=23,
            website="mercy.com",
            city="Cincinnati",
            state="OH",
        ),
        Organization(name="Mercy Health System of Maine", type="Hospital", city="Portland", state="ME"),
        Organization(name="Mercy Health Partners", type="Hospital"),
        Organization(name="Riverside Health System", type="IDN", state="VA"),
    ]
