import pytest
from fastapi.testclient import TestClient

from kangga.api import create_app
from kangga.api.rate_limit import limiter, ws_limiter

AUTH_HEADERS = {"X-API-Key": "test-api-key"}


@pytest.fixture(autouse=True)
def reset_rate_limits():
    """Rate limit storage is module global; clear it between tests."""
    limiter.reset()
    ws_limiter.reset()
    yield


@pytest.fixture
def app(dispatch, ledger, negotiation, availability, ratings):
    return create_app(
        dispatch=dispatch,
        ledger=ledger,
        negotiation_service=negotiation,
        availability=availability,
        ratings_service=ratings,
    )


@pytest.fixture
def test_client(app):
    with TestClient(app, raise_server_exceptions=False) as client:
        yield client


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return dict(AUTH_HEADERS)


@pytest.fixture
def open_trip(test_client, auth_headers):
    """Create a ride through the API and return its JSON."""

    def _create(requester_id: str = "passenger-1", kind: str = "ride", base_fare: str = "100"):
        response = test_client.post(
            "/trips",
            json={
                "requester_id": requester_id,
                "kind": kind,
                "pickup_location": "Cubao",
                "dropoff_location": "Makati",
                "base_fare": base_fare,
            },
            headers=auth_headers,
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _create
