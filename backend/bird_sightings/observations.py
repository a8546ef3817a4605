"""
Fetch recent bird observations near a point from the eBird API
"""

import json
import logging
import math
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ebird.api.requests.observations import get_nearby_observations, get_nearby_species
from pydantic import ValidationError

from bird_sightings.concurrency import run_concurrently
from bird_sightings.config import EXTERNAL_TIMEOUT
from bird_sightings.errors import (
    BirdSightingsError,
    InvalidRequest,
    PartialRecordError,
    UpstreamSchemaError,
    UpstreamUnavailable,
)
from bird_sightings.schemas import RawObservation

logger = logging.getLogger(__name__)

KM_PER_MILE = 1.609344

# Limits enforced by the eBird geo endpoints
MIN_DIST_KM = 1
MAX_DIST_KM = 50
MIN_BACK_DAYS = 1
MAX_BACK_DAYS = 30


def miles_to_ebird_dist(radius_miles: float) -> int:
    """Convert a search radius in miles to eBird's whole-kilometre ``dist``"""
    km = math.ceil(radius_miles * KM_PER_MILE)
    return max(MIN_DIST_KM, min(MAX_DIST_KM, km))


def clamp_lookback(days: int) -> int:
    return max(MIN_BACK_DAYS, min(MAX_BACK_DAYS, int(days)))


def parse_observation(data: Dict) -> RawObservation:
    """
    Validate one eBird observation record

    Raises:
        PartialRecordError: if a required field is missing or malformed
    """
    if not isinstance(data, dict):
        raise PartialRecordError(details=f"Expected an object, got {type(data).__name__}")
    try:
        return RawObservation.model_validate(data)
    except ValidationError as e:
        raise PartialRecordError(details=str(e)) from e


def parse_observations(payload) -> List[RawObservation]:
    """
    Validate a batch of eBird observations, dropping malformed records

    Raises:
        UpstreamSchemaError: if the payload isn't a list
    """
    if not isinstance(payload, list):
        raise UpstreamSchemaError("Invalid response from eBird API", details=f"Expected a list, got {type(payload).__name__}")

    observations = []
    skipped = 0
    for record in payload:
        try:
            observations.append(parse_observation(record))
        except PartialRecordError as e:
            skipped += 1
            logger.debug("Dropping observation: %s", e.details)

    if skipped:
        logger.warning("  Skipped %d malformed observations", skipped)
    return observations


def dedupe_observations(observations: Iterable[RawObservation]) -> List[RawObservation]:
    """Drop repeats of the same species on the same checklist, keeping the first"""
    seen = set()
    unique = []
    for obs in observations:
        key: Tuple[str, str] = (obs.checklist_id, obs.species_code)
        if key in seen:
            continue
        seen.add(key)
        unique.append(obs)
    return unique


def _request(token: str, lat: float, lng: float, dist: int, back: int, species_code: Optional[str] = None):
    try:
        if species_code:
            return get_nearby_species(token, species_code, lat, lng, dist=dist, back=back)
        return get_nearby_observations(token, lat, lng, dist=dist, back=back)
    except OSError as e:
        # urllib's HTTPError and URLError are both OSErrors
        raise UpstreamUnavailable("Failed to fetch observations", details=str(e)) from e
    except json.JSONDecodeError as e:
        raise UpstreamSchemaError("Invalid response from eBird API", details=str(e)) from e
    except ValueError as e:
        # ebird-api rejects out-of-range arguments before making the call
        raise InvalidRequest("Invalid search parameters", details=str(e)) from e


def fetch_observations(
    token: str,
    lat: float,
    lng: float,
    radius_miles: float,
    lookback_days: int,
    species_codes: Optional[Sequence[str]] = None,
) -> List[RawObservation]:
    """
    Fetch observations within a radius of a point

    Args:
        token: eBird API key
        lat: Latitude
        lng: Longitude
        radius_miles: Search radius in miles
        lookback_days: Number of days back to include
        species_codes: eBird species codes to restrict to (one request each)

    Returns:
        De-duplicated list of RawObservation
    """
    dist = miles_to_ebird_dist(radius_miles)
    back = clamp_lookback(lookback_days)
    codes = list(dict.fromkeys(code for code in (species_codes or []) if code))

    logger.info("Fetching observations near %.4f, %.4f (dist=%dkm, back=%dd, species=%s)",
                lat, lng, dist, back, ",".join(codes) or "all")

    if not codes:
        results = run_concurrently(lambda _: _request(token, lat, lng, dist, back), [None], timeout=EXTERNAL_TIMEOUT)
    else:
        results = run_concurrently(
            lambda code: _request(token, lat, lng, dist, back, species_code=code),
            codes,
            max_workers=len(codes),
            timeout=EXTERNAL_TIMEOUT,
        )

    observations: List[RawObservation] = []
    for code, result in results.items():
        if isinstance(result, Exception):
            logger.warning("  ✗ Error fetching observations%s: %s", f" for {code}" if code else "", result)
            if isinstance(result, BirdSightingsError):
                raise result
            raise UpstreamUnavailable("Failed to fetch observations", details=str(result)) from result
        observations.extend(parse_observations(result))

    observations = dedupe_observations(observations)
    logger.info("  ✓ Fetched %d observations", len(observations))
    return observations
