"""Tests for the Definitive Healthcare reference dataset client."""

from __future__ import annotations

from unittest.mock import Mock, patch

import pytest

from enrichment.integration.definitive_client import (
    DefinitiveClient,
    DefinitiveConfig,
    StaticReferenceDataset,
    organization_from_record,
)
from enrichment.models import Organization


def make_response(payload: dict) -> Mock:
    response = Mock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


@pytest.fixture
def session() -> Mock:
    session = Mock()
    session.post.return_value = make_response({"access_token": "tok-123"})
    session.get.return_value = make_response(
        {
            "value": [
                {
                    "Name": "Mercy Health",
                    "FirmType": "IDN/ACO",
                    "EMRVendorInpatient": "Epic",
                    "NetPatientRev": "5400000000",
                    "NumBeds": 4000,
                    "NumHospitals": "23",
                    "HQCity": "Cincinnati",
                    "State": "OH",
                },
                {"Name": "", "FirmType": "Hospital"},
            ]
        }
    )
    return session


class TestOrganizationFromRecord:
    """Tests for organization_from_record."""

    def test_maps_fields(self):
        org = organization_from_record({"Name": " Riverside ", "NumBeds": "250.0", "NetPatientRev": "n/a"})

        assert org == Organization(name="Riverside", bed_count=250)

    def test_requires_name(self):
        assert organization_from_record({"FirmType": "Hospital"}) is None


class TestDefinitiveClient:
    """Tests for DefinitiveClient."""

    def test_list_organizations(self, session):
        client = DefinitiveClient(DefinitiveConfig(username="u", password="p", page_size=50), session=session)

        organizations = client.list_organizations()

        assert [org.name for org in organizations] == ["Mercy Health"]
        assert organizations[0].net_patient_revenue == 5400000000.0
        assert organizations[0].hospital_count == 23
        assert organizations[0].location == "Cincinnati, OH"

        session.post.assert_called_once()
        assert session.post.call_args.args[0] == "https://api.defhc.com/v4/token"
        assert session.post.call_args.kwargs["data"]["grant_type"] == "password"

        get_kwargs = session.get.call_args.kwargs
        assert session.get.call_args.args[0] == "https://api.defhc.com/v4/odata-v4/Hospitals"
        assert get_kwargs["params"] == {"$top": 50, "$orderby": "Name asc"}
        assert get_kwargs["headers"]["Authorization"] == "Bearer tok-123"

    def test_missing_token_raises(self, session):
        session.post.return_value = make_response({})
        client = DefinitiveClient(DefinitiveConfig(username="u", password="p"), session=session)

        with pytest.raises(RuntimeError, match="no access token"):
            client.list_organizations()
        session.get.assert_not_called()

    def test_http_errors_propagate(self, session):
        session.get.return_value.raise_for_status.side_effect = ConnectionError("503")
        client = DefinitiveClient(DefinitiveConfig(username="u", password="p"), session=session)

        with pytest.raises(ConnectionError):
            client.list_organizations()


class TestDefinitiveConfig:
    """Tests for DefinitiveConfig.from_env."""

    def test_from_env(self):
        env = {"DEFINITIVE_USERNAME": "user", "DEFINITIVE_PASSWORD": "secret"}
        with patch.dict("os.environ", env, clear=True):
            config = DefinitiveConfig.from_env()

        assert config is not None
        assert config.username == "user"
        assert config.base_url == "https://api.defhc.com/v4"

    def test_from_env_without_credentials(self):
        with patch.dict("os.environ", {}, clear=True):
            assert DefinitiveConfig.from_env() is None


def test_static_dataset_returns_copy(sample_organizations):
    dataset = StaticReferenceDataset(sample_organizations)

    listed = dataset.list_organizations()
    listed.clear()

    assert len(dataset.list_organizations()) == len(sample_organizations)
