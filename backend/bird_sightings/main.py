"""
FastAPI application for the Bird Sightings API
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from bird_sightings import __version__, aggregation, config
from bird_sightings.aggregation import GroupingPolicy
from bird_sightings.errors import BirdSightingsError, InvalidRequest
from bird_sightings.geocoder import MAX_SUGGESTIONS, search_places
from bird_sightings.pipeline import find_observations
from bird_sightings.schemas import (
    BirdSearchResult,
    ErrorResponse,
    NormalizedObservation,
    PlaceSuggestion,
    SpeciesEntry,
)
from bird_sightings.taxonomy import get_species

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Bird Sightings API",
    description="Recent bird observations near a location, from eBird",
    version=__version__,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def error_body(error: str, details: Optional[str] = None) -> dict:
    body = {"error": error}
    if details:
        body["details"] = details
    return body


@app.exception_handler(BirdSightingsError)
async def handle_pipeline_error(request: Request, exc: BirdSightingsError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.details)
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, exc.details))


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError):
    details = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ())[1:])}: {err.get('msg')}"
        for err in exc.errors()
    )
    return JSONResponse(status_code=400, content=error_body(InvalidRequest.message, details))


def get_api_key() -> str:
    """Dependency for getting the eBird API key"""
    if not config.EBIRD_API_KEY:
        raise BirdSightingsError(
            "eBird API key is not configured",
            details="Set EBIRD_API_KEY; get a key at https://ebird.org/api/keygen",
        )
    return config.EBIRD_API_KEY


def split_species(values: Optional[List[str]]) -> List[str]:
    """Accept both ?species=a,b and ?species=a&species=b"""
    codes = []
    for value in values or []:
        codes.extend(code.strip() for code in value.split(",") if code.strip())
    return list(dict.fromkeys(codes))


@app.get("/")
def root():
    """Root endpoint"""
    return {
        "name": "Bird Sightings API",
        "version": __version__,
        "description": "Recent bird observations near a location",
    }


@app.get("/api/observations", response_model=List[NormalizedObservation], responses=ERROR_RESPONSES)
def get_observations(
    location: Optional[str] = Query(None, description="Place name or address to search around"),
    lat: Optional[float] = Query(None, ge=-90, le=90, description="Latitude (use with lng instead of location)"),
    lng: Optional[float] = Query(None, ge=-180, le=180, description="Longitude (use with lat instead of location)"),
    radius: float = Query(20, gt=0, le=50, description="Search radius in miles"),
    days: int = Query(30, ge=1, le=30, description="Number of days to look back"),
    species: Optional[List[str]] = Query(None, description="eBird species codes, comma-separated or repeated"),
    group_by: Optional[GroupingPolicy] = Query(None, description="'checklist' keeps every observation, 'location' keeps the latest per spot"),
    token: str = Depends(get_api_key),
):
    """
    Get recent observations near a location

    Each observation carries the observer name from its checklist. With
    group_by=location only the most recent observation at each spot
    (coordinates rounded to ~11m) is returned.
    """
    if (lat is None) != (lng is None):
        raise InvalidRequest("Both lat and lng are required when searching by coordinates")
    if lat is None and not (location and location.strip()):
        raise InvalidRequest("Location is required")

    policy = group_by or aggregation.DEFAULT_POLICY

    return find_observations(
        token,
        location=location,
        lat=lat,
        lng=lng,
        radius_miles=radius,
        lookback_days=days,
        species_codes=split_species(species),
        policy=policy,
    )


@app.get("/api/species", response_model=List[SpeciesEntry], responses=ERROR_RESPONSES)
def list_species(
    region: Optional[str] = Query(None, description="eBird region code (e.g., US, US-NY)"),
    query: Optional[str] = Query(None, description="Filter by common name, scientific name or code"),
    token: str = Depends(get_api_key),
):
    """Get species from the eBird taxonomy"""
    return get_species(token, region=region, query=query)


@app.get("/api/birds/search", response_model=List[BirdSearchResult], responses=ERROR_RESPONSES)
def search_birds(
    query: Optional[str] = Query(None, description="Part of a bird's name"),
    token: str = Depends(get_api_key),
):
    """Bird name autocomplete"""
    if not query or not query.strip():
        raise InvalidRequest("Query is required")
    return [
        {"speciesCode": entry["code"], "comName": entry["comName"], "sciName": entry["sciName"]}
        for entry in get_species(token, query=query)
    ]


@app.get("/api/suggestions", response_model=List[PlaceSuggestion], responses=ERROR_RESPONSES)
def get_suggestions(
    query: Optional[str] = Query(None, description="Place name, address, or 'lat,lng'"),
):
    """Location autocomplete"""
    if not query or not query.strip():
        raise InvalidRequest("Query is required")
    return search_places(query.strip(), limit=MAX_SUGGESTIONS)


@app.get("/api/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


def run() -> None:
    """Entry point for the bird-sightings-api script"""
    import uvicorn

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run("bird_sightings.main:app", host=config.API_HOST, port=config.API_PORT)
