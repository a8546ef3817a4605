"""
End-to-end observation search: geocode, fetch, enrich, aggregate
"""

import logging
from typing import List, Optional, Sequence

from bird_sightings.aggregation import GroupingPolicy, aggregate, filter_species
from bird_sightings.checklists import enrich_observations
from bird_sightings.geocoder import resolve_location
from bird_sightings.observations import fetch_observations
from bird_sightings.schemas import NormalizedObservation

logger = logging.getLogger(__name__)


def find_observations(
    token: str,
    location: Optional[str] = None,
    lat: Optional[float] = None,
    lng: Optional[float] = None,
    radius_miles: float = 20,
    lookback_days: int = 30,
    species_codes: Optional[Sequence[str]] = None,
    policy: GroupingPolicy = GroupingPolicy.CHECKLIST,
) -> List[NormalizedObservation]:
    """
    Search for recent observations around a location

    Raises:
        InvalidRequest: no location given
        LocationNotFound: the location text didn't geocode
        UpstreamUnavailable, UpstreamSchemaError: geocoding or the eBird fetch failed
    """
    resolved = resolve_location(location, lat, lng)

    raw = fetch_observations(
        token,
        resolved.lat,
        resolved.lng,
        radius_miles=radius_miles,
        lookback_days=lookback_days,
        species_codes=species_codes,
    )
    raw = filter_species(raw, species_codes)

    enriched = enrich_observations(token, raw)
    results = aggregate(enriched, policy)

    logger.info("Returning %d observations for %s (%s)", len(results), resolved.display_name, policy.value)
    return results
