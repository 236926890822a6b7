"""
Pytest configuration and shared fixtures for the test suite.
"""

import os
from unittest.mock import MagicMock

import pytest

# Set environment variables before importing app modules
os.environ["LIBRELINK_USERNAME"] = "follower@example.com"
os.environ["LIBRELINK_PASSWORD"] = "test_password"


@pytest.fixture
def mock_settings():
    """Create settings for testing."""
    from glucose_exporter.config import Settings, get_settings

    # Clear the LRU cache
    get_settings.cache_clear()

    return Settings(
        librelink_username="follower@example.com",
        librelink_password="test_password",
    )


@pytest.fixture
def make_response():
    """Factory for fake HTTP responses returning a JSON body."""

    def _make(body, status_code=200):
        response = MagicMock()
        response.status_code = status_code
        response.json.return_value = body
        response.text = str(body)
        return response

    return _make


@pytest.fixture
def mock_session():
    """A requests.Session stand-in; set `request.side_effect` per test."""
    return MagicMock()


@pytest.fixture
def client_config():
    """Client configuration without pre-issued credentials."""
    from glucose_exporter.client import ClientConfig

    return ClientConfig(email="follower@example.com", password="test_password")


@pytest.fixture
def client(client_config, mock_session):
    """LibreLinkClient wired to the mock session."""
    from glucose_exporter.client import LibreLinkClient

    return LibreLinkClient(client_config, session=mock_session)


@pytest.fixture
def login_body():
    """Successful login envelope."""
    return {
        "status": 0,
        "data": {
            "user": {
                "id": "user-123",
                "firstName": "Fiona",
                "lastName": "Follower",
                "email": "follower@example.com",
                "country": "DE",
            },
            "authTicket": {
                "token": "token-abc",
                "expires": 1773417313,
                "duration": 15552000000,
            },
        },
    }


@pytest.fixture
def redirect_body():
    """Factory for region redirect envelopes."""

    def _make(region="de"):
        return {"status": 0, "data": {"redirect": True, "region": region}}

    return _make


@pytest.fixture
def measurement():
    """Factory for raw glucose measurements."""

    def _make(timestamp="9/7/2025 6:01:03 PM", value=5.6, trend=3):
        return {
            "FactoryTimestamp": timestamp,
            "Timestamp": timestamp,
            "type": 1,
            "ValueInMgPerDl": round(value * 18),
            "TrendArrow": trend,
            "TrendMessage": None,
            "MeasurementColor": 1,
            "GlucoseUnits": 0,
            "Value": value,
            "isHigh": False,
            "isLow": False,
        }

    return _make


@pytest.fixture
def connection_data(measurement):
    """Factory for raw connection records."""

    def _make(patient_id="patient-1", first_name="John", last_name="Doe", current=True):
        data = {
            "id": f"conn-{patient_id}",
            "patientId": patient_id,
            "firstName": first_name,
            "lastName": last_name,
            "email": f"{first_name.lower()}@example.com",
        }
        if current:
            data["glucoseMeasurement"] = measurement()
        return data

    return _make


@pytest.fixture
def graph_body(connection_data, measurement):
    """Factory for graph data envelopes."""

    def _make(patient_id="patient-1", first_name="John", last_name="Doe", current=True, historic=None):
        if historic is None:
            historic = [
                measurement("9/7/2025 5:46:03 PM", 5.2),
                measurement("9/7/2025 5:51:03 PM", 5.4),
                measurement("9/7/2025 5:56:03 PM", 5.5),
            ]
        return {
            "status": 0,
            "data": {
                "connection": connection_data(patient_id, first_name, last_name, current),
                "activeSensors": [],
                "graphData": historic,
            },
        }

    return _make


@pytest.fixture
def connections_body(connection_data):
    """Envelope listing a single connection."""
    return {"status": 0, "data": [connection_data()]}
