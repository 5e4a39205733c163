"""Reference dataset of known organizations used for grounding.

DefinitiveClient reads health systems from the Definitive Healthcare OData
API. The engine calls ``list_organizations`` once per request through
``asyncio.to_thread``; nothing is cached between requests.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol

import requests
from dotenv import load_dotenv

from ..models import Organization

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

HOSPITALS_ENDPOINT = "odata-v4/Hospitals"


class ReferenceDataset(Protocol):
    """Read-only source of known organizations."""

    def list_organizations(self) -> list[Organization]: ...


def _as_float(value: Any) -> float | None:
    try:
        return float(value) if value is not None and value != "" else None
    except (TypeError, ValueError):
        return None


def _as_int(value: Any) -> int | None:
    number = _as_float(value)
    return int(number) if number is not None else None


def organization_from_record(record: Mapping[str, Any]) -> Organization | None:
    """Map one Definitive ``Hospitals`` row onto an Organization (None without a name)."""
    name = str(record.get("Name") or "").strip()
    if not name:
        return None
    return Organization(
        name=name,
        type=record.get("FirmType") or None,
        emr_vendor_ambulatory=record.get("EMRVendorAmbulatory") or None,
        emr_vendor_inpatient=record.get("EMRVendorInpatient") or None,
        net_patient_revenue=_as_float(record.get("NetPatientRev")),
        bed_count=_as_int(record.get("NumBeds")),
        hospital_count=_as_int(record.get("NumHospitals")),
        website=record.get("WebSite") or None,
        city=record.get("HQCity") or None,
        state=record.get("State") or None,
    )


@dataclass
class DefinitiveConfig:
    """Configuration for Definitive Healthcare API access."""

    username: str
    password: str
    base_url: str = "https://api.defhc.com/v4"
    page_size: int = 7000
    timeout: float = 30.0

    @classmethod
    def from_env(cls) -> DefinitiveConfig | None:
        """Build from DEFINITIVE_* environment variables (None without credentials)."""
        username = os.getenv("DEFINITIVE_USERNAME", "")
        password = os.getenv("DEFINITIVE_PASSWORD", "")
        if not username or not password:
            return None
        return cls(
            username=username,
            password=password,
            base_url=os.getenv("DEFINITIVE_API_URL") or "https://api.defhc.com/v4",
        )


class DefinitiveClient:
    """Client for the Definitive Healthcare API."""

    def __init__(self, config: DefinitiveConfig, session: requests.Session | None = None):
        self.config = config
        self.session = session or requests.Session()

    def authenticate(self) -> str:
        """Obtain a bearer token with the password grant."""
        response = self.session.post(
            f"{self.config.base_url.rstrip('/')}/token",
            data={
                "grant_type": "password",
                "username": self.config.username,
                "password": self.config.password,
            },
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            timeout=self.config.timeout,
        )
        response.raise_for_status()

        token = response.json().get("access_token")
        if not token:
            raise RuntimeError("Definitive API returned no access token")
        return str(token)

    def list_organizations(self) -> list[Organization]:
        """Fetch all health systems, ordered by name."""
        token = self.authenticate()
        response = self.session.get(
            f"{self.config.base_url.rstrip('/')}/{HOSPITALS_ENDPOINT}",
            params={"$top": self.config.page_size, "$orderby": "Name asc"},
            headers={"Authorization": f"Bearer {token}", "Accept": "application/json"},
            timeout=self.config.timeout,
        )
        response.raise_for_status()

        rows = response.json().get("value") or []
        organizations = [org for org in (organization_from_record(row) for row in rows) if org is not None]
        logger.info(f"Fetched {len(organizations)} health systems from Definitive Healthcare")
        return organizations


class StaticReferenceDataset:
    """In-memory dataset, for development and tests."""

    def __init__(self, organizations: Iterable[Organization]):
        self.organizations = list(organizations)

    def list_organizations(self) -> list[Organization]:
        return list(self.organizations)
