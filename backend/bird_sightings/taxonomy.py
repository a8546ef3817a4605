"""
Species list and name search backed by the eBird taxonomy feed

The feed is CSV: SCIENTIFIC_NAME, COMMON_NAME, SPECIES_CODE, CATEGORY, ...
Only rows whose category is "species" are kept (no spuhs, slashes,
hybrids, forms or subspecies).
"""

import csv
import io
import logging
from typing import Dict, List, Optional, Set

import requests

from bird_sightings.config import EBIRD_API_BASE
from bird_sightings.errors import UpstreamSchemaError, UpstreamUnavailable
from bird_sightings.http import session

logger = logging.getLogger(__name__)

SPECIES_CATEGORY = "species"


def parse_taxonomy_csv(text: str) -> List[Dict[str, str]]:
    """
    Parse the taxonomy feed into ``{code, comName, sciName}`` entries

    The header row and any non-species rows are skipped, as are rows
    missing a name or code.
    """
    species = []
    for row in csv.reader(io.StringIO(text)):
        if len(row) < 4:
            continue
        sci_name, com_name, code, category = (field.strip() for field in row[:4])
        if category != SPECIES_CATEGORY:
            continue
        if not (sci_name and com_name and code):
            continue
        species.append({"code": code, "comName": com_name, "sciName": sci_name})
    return species


def matches(entry: Dict[str, str], query: str) -> bool:
    q = query.lower()
    return q in entry["comName"].lower() or q in entry["sciName"].lower() or q == entry["code"].lower()


def _get(token: str, endpoint: str, params: Optional[Dict] = None) -> requests.Response:
    url = f"{EBIRD_API_BASE}/{endpoint}"
    try:
        response = session.get(url, headers={"X-eBirdApiToken": token}, params=params or {})
        response.raise_for_status()
    except requests.RequestException as e:
        logger.warning("✗ Error fetching %s: %s", endpoint, e)
        raise UpstreamUnavailable("Failed to fetch species list", details=str(e)) from e
    return response


def get_region_species(token: str, region: str) -> Set[str]:
    """Species codes ever reported in an eBird region (e.g. "US", "US-NY")"""
    response = _get(token, f"product/spplist/{region}")
    try:
        codes = response.json()
    except ValueError as e:
        raise UpstreamSchemaError("Invalid species list from eBird API", details=str(e)) from e
    if not isinstance(codes, list):
        raise UpstreamSchemaError("Invalid species list from eBird API")
    return {code for code in codes if isinstance(code, str)}


def get_species(token: str, region: Optional[str] = None, query: Optional[str] = None) -> List[Dict[str, str]]:
    """
    List species, optionally limited to a region and filtered by name

    Args:
        token: eBird API key
        region: eBird region code; only species recorded there are returned
        query: Case-insensitive match against common name, scientific name or code

    Returns:
        List of ``{code, comName, sciName}`` dicts in taxonomic order
    """
    response = _get(token, "ref/taxonomy/ebird", {"fmt": "csv"})
    species = parse_taxonomy_csv(response.text)

    if region:
        allowed = get_region_species(token, region)
        species = [entry for entry in species if entry["code"] in allowed]

    if query and query.strip():
        species = [entry for entry in species if matches(entry, query.strip())]

    logger.info("✓ %d species for region=%s query=%r", len(species), region or "all", query)
    return species
