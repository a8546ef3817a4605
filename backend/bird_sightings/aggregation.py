"""
Group enriched observations and map them to the response schema
"""

from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from bird_sightings.config import CHECKLIST_URL_TEMPLATE, OBSERVATION_GROUPING
from bird_sightings.schemas import EnrichedObservation, NormalizedObservation, RawObservation

# 4 decimal places is roughly 11 metres
LOCATION_PRECISION = 4


class GroupingPolicy(str, Enum):
    """How observations are collapsed before being returned"""
    CHECKLIST = "checklist"  # every observation kept
    LOCATION = "location"    # latest observation per rounded coordinate


def policy_from_config(value: str) -> GroupingPolicy:
    try:
        return GroupingPolicy(value.strip().lower())
    except ValueError:
        choices = ", ".join(p.value for p in GroupingPolicy)
        raise ValueError(f"OBSERVATION_GROUPING must be one of {choices}, got {value!r}") from None


# Checked at import so a bad setting stops the server from starting
DEFAULT_POLICY = policy_from_config(OBSERVATION_GROUPING)


def checklist_url(checklist_id: str) -> str:
    return CHECKLIST_URL_TEMPLATE.format(checklist_id=checklist_id)


def location_key(lat: float, lng: float) -> Tuple[str, str]:
    """Rounded coordinate used to group nearby observations"""
    return (f"{lat:.{LOCATION_PRECISION}f}", f"{lng:.{LOCATION_PRECISION}f}")


def filter_species(observations: Iterable[RawObservation], species_codes: Optional[Sequence[str]]) -> list:
    """Keep only observations of the requested species (all if none requested)"""
    if not species_codes:
        return list(observations)
    wanted = {code.lower() for code in species_codes}
    return [obs for obs in observations if obs.species_code.lower() in wanted]


def latest_per_location(observations: Iterable[EnrichedObservation]) -> List[EnrichedObservation]:
    """
    Keep the most recent observation at each rounded coordinate

    Dates are compared as datetimes. On a tie the first one seen wins, and
    groups come out in the order they were first seen.
    """
    by_location: Dict[Tuple[str, str], EnrichedObservation] = {}
    for obs in observations:
        key = location_key(obs.lat, obs.lng)
        existing = by_location.get(key)
        if existing is None or obs.observed_at > existing.observed_at:
            by_location[key] = obs
    return list(by_location.values())


def normalize_observation(obs: EnrichedObservation) -> NormalizedObservation:
    """Map provider field names to the response schema"""
    return NormalizedObservation(
        species_code=obs.species_code,
        species_name=obs.common_name,
        scientific_name=obs.scientific_name,
        location_name=obs.location_name,
        observation_date=obs.observation_date,
        observation_count=obs.count or 1,
        lat=obs.lat,
        lng=obs.lng,
        checklist_id=obs.checklist_id,
        checklist_url=checklist_url(obs.checklist_id),
        observer_name=obs.observer_name,
        checklist_date=obs.checklist_date,
    )


def aggregate(
    observations: Iterable[EnrichedObservation],
    policy: GroupingPolicy = GroupingPolicy.CHECKLIST,
) -> List[NormalizedObservation]:
    """Apply a grouping policy and normalize the survivors"""
    observations = list(observations)
    if policy == GroupingPolicy.LOCATION:
        observations = latest_per_location(observations)
    return [normalize_observation(obs) for obs in observations]
