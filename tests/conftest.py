"""Shared fixtures: sample eBird payloads, fake HTTP responses and an API client."""

from __future__ import annotations

import json
from typing import Any

import pytest
import requests
from fastapi.testclient import TestClient

from bird_sightings.main import app, get_api_key

TEST_TOKEN = "test-token"


def make_response(payload: Any = None, status: int = 200, text: str | None = None) -> requests.Response:
    """Build a real ``requests.Response`` carrying a JSON payload or raw text."""
    resp = requests.Response()
    resp.status_code = status
    body = text if text is not None else json.dumps(payload)
    resp._content = body.encode("utf-8")
    resp.encoding = "utf-8"
    resp.url = "https://example.test/"
    return resp


@pytest.fixture
def response_factory():
    return make_response


@pytest.fixture
def sample_observations() -> list[dict]:
    """Three observations on two checklists, as returned by /data/obs/geo/recent."""
    return [
        {
            "speciesCode": "bkcchi",
            "comName": "Black-capped Chickadee",
            "sciName": "Poecile atricapillus",
            "locId": "L123",
            "locName": "Central Park",
            "obsDt": "2024-05-01 07:30",
            "howMany": 3,
            "lat": 40.7812,
            "lng": -73.9665,
            "obsValid": True,
            "obsReviewed": False,
            "locationPrivate": False,
            "subId": "S100",
        },
        {
            "speciesCode": "amerob",
            "comName": "American Robin",
            "sciName": "Turdus migratorius",
            "locId": "L123",
            "locName": "Central Park",
            "obsDt": "2024-05-01 07:30",
            "lat": 40.7812,
            "lng": -73.9665,
            "subId": "S100",
        },
        {
            "speciesCode": "bkcchi",
            "comName": "Black-capped Chickadee",
            "sciName": "Poecile atricapillus",
            "locId": "L456",
            "locName": "Prospect Park",
            "obsDt": "2024-04-29",
            "howMany": 1,
            "lat": 40.6602,
            "lng": -73.9690,
            "subId": "S200",
        },
    ]


@pytest.fixture
def nominatim_results() -> list[dict]:
    return [
        {
            "place_id": 1,
            "display_name": "Central Park, Manhattan, New York, United States",
            "lat": "40.7825547",
            "lon": "-73.9655834",
            "type": "park",
        },
        {
            "place_id": 2,
            "display_name": "Central Park, Denver, Colorado, United States",
            "lat": "39.7601",
            "lon": "-104.8924",
            "type": "park",
        },
    ]


@pytest.fixture
def client():
    app.dependency_overrides[get_api_key] = lambda: TEST_TOKEN
    yield TestClient(app)
    app.dependency_overrides.clear()
