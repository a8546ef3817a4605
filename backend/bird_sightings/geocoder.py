"""
Resolve search locations to coordinates using Nominatim

API docs: https://nominatim.org/release-docs/latest/api/Search/
"""

import logging
from typing import Dict, List, Optional

import requests

from bird_sightings.config import NOMINATIM_BASE
from bird_sightings.errors import InvalidRequest, LocationNotFound, UpstreamSchemaError, UpstreamUnavailable
from bird_sightings.http import session
from bird_sightings.schemas import Location

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 5


def search_places(query: str, limit: int = MAX_SUGGESTIONS) -> List[Dict]:
    """
    Look up candidate places for a free-text query

    Args:
        query: Place name, address, or a "lat,lng" pair
        limit: Maximum number of candidates to return

    Returns:
        Nominatim result dicts (display_name, lat, lon, ...)
    """
    url = f"{NOMINATIM_BASE}/search"
    params = {"format": "json", "q": query, "limit": limit}

    try:
        response = session.get(url, params=params)
        response.raise_for_status()
    except requests.RequestException as e:
        logger.warning("✗ Geocoding request for %r failed: %s", query, e)
        raise UpstreamUnavailable("Failed to get coordinates", details=str(e)) from e

    try:
        results = response.json()
    except ValueError as e:
        raise UpstreamSchemaError("Invalid response from geocoding service", details=str(e)) from e

    if not isinstance(results, list):
        raise UpstreamSchemaError("Invalid response from geocoding service")

    return results[:limit]


def resolve_location(
    location: Optional[str] = None,
    lat: Optional[float] = None,
    lng: Optional[float] = None,
) -> Location:
    """
    Resolve a search location from free text or an explicit coordinate pair

    Explicit coordinates win and need no lookup. Free text takes the first
    Nominatim match.
    """
    if lat is not None and lng is not None:
        try:
            return Location(display_name=f"{lat:.4f}, {lng:.4f}", lat=lat, lng=lng)
        except ValueError as e:
            raise InvalidRequest("Invalid coordinates", details=f"{lat}, {lng}") from e

    if not location or not location.strip():
        raise InvalidRequest("Location is required")

    results = search_places(location.strip(), limit=1)
    if not results:
        raise LocationNotFound(details=f"No match for {location!r}")

    first = results[0]
    try:
        resolved = Location(
            display_name=first.get("display_name") or location,
            lat=float(first["lat"]),
            lng=float(first["lon"]),
        )
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        # pydantic rejects NaN, inf and out-of-range values as ValueError
        raise LocationNotFound(details=f"Unusable coordinates for {location!r}") from e

    logger.info("✓ Resolved %r to %.4f, %.4f", location, resolved.lat, resolved.lng)
    return resolved
