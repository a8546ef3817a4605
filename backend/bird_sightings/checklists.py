"""
Attach observer details from eBird checklists to observations

Each distinct checklist referenced by a batch is looked up exactly once,
all lookups running concurrently. A failed lookup only affects the
observations on that checklist, which fall back to "Anonymous".
"""

import logging
from typing import Dict, Iterable, List, Optional

import requests
from pydantic import ValidationError

from bird_sightings.concurrency import run_concurrently
from bird_sightings.config import EBIRD_API_BASE, MAX_LOOKUP_WORKERS
from bird_sightings.errors import PartialRecordError
from bird_sightings.http import session
from bird_sightings.schemas import ChecklistMetadata, EnrichedObservation, RawObservation

logger = logging.getLogger(__name__)

ANONYMOUS = "Anonymous"


def get_checklist_details(token: str, sub_id: str) -> ChecklistMetadata:
    """
    Fetch one checklist's metadata

    Raises:
        PartialRecordError: on any transport, HTTP or payload problem
    """
    url = f"{EBIRD_API_BASE}/product/checklist/view/{sub_id}"

    try:
        response = session.get(url, headers={"X-eBirdApiToken": token})
        response.raise_for_status()
    except requests.RequestException as e:
        raise PartialRecordError(f"Checklist {sub_id} unavailable", details=str(e)) from e

    try:
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError(f"expected an object, got {type(data).__name__}")
        return ChecklistMetadata.model_validate({**data, "subId": data.get("subId") or sub_id})
    except (ValueError, ValidationError) as e:
        raise PartialRecordError(f"Checklist {sub_id} malformed", details=str(e)) from e


def fetch_checklist_metadata(token: str, checklist_ids: Iterable[str]) -> Dict[str, Optional[ChecklistMetadata]]:
    """
    Look up every distinct checklist id once

    Returns:
        Mapping of checklist id to metadata, or None where the lookup failed
    """
    unique_ids = list(dict.fromkeys(checklist_ids))
    logger.info("Found %d unique checklists", len(unique_ids))

    results = run_concurrently(
        lambda sub_id: get_checklist_details(token, sub_id),
        unique_ids,
        max_workers=MAX_LOOKUP_WORKERS,
    )

    metadata: Dict[str, Optional[ChecklistMetadata]] = {}
    for sub_id, result in results.items():
        if isinstance(result, Exception):
            logger.warning("  ✗ Error fetching checklist %s: %s", sub_id, getattr(result, "details", None) or result)
            metadata[sub_id] = None
        else:
            metadata[sub_id] = result

    resolved = sum(1 for m in metadata.values() if m is not None)
    logger.info("  ✓ Resolved %d/%d checklists", resolved, len(metadata))
    return metadata


def annotate(obs: RawObservation, meta: Optional[ChecklistMetadata]) -> EnrichedObservation:
    """Combine an observation with its checklist's metadata"""
    observer = (meta.observer_name if meta else None) or ANONYMOUS
    checklist_date = (meta.checklist_date if meta else None) or obs.observation_date
    return EnrichedObservation(
        **obs.model_dump(),
        observer_name=observer,
        checklist_date=checklist_date,
    )


def enrich_observations(token: str, observations: List[RawObservation]) -> List[EnrichedObservation]:
    """Annotate each observation with its observer name and checklist date"""
    metadata = fetch_checklist_metadata(token, (obs.checklist_id for obs in observations))
    return [annotate(obs, metadata.get(obs.checklist_id)) for obs in observations]
