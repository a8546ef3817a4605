"""
Error types raised by the observation pipeline

Components raise these; only the FastAPI exception handlers in
``bird_sightings.main`` turn them into HTTP responses.
"""

from typing import Optional


class BirdSightingsError(Exception):
    """Base class for all pipeline errors"""

    status_code = 500
    message = "Internal error"

    def __init__(self, message: Optional[str] = None, details: Optional[str] = None):
        super().__init__(message or self.message)
        self.message = message or self.message
        self.details = details


class InvalidRequest(BirdSightingsError):
    """A required query parameter is missing or malformed"""

    status_code = 400
    message = "Invalid request"


class LocationNotFound(BirdSightingsError):
    """Geocoding produced no usable candidate"""

    status_code = 404
    message = "Location not found"


class UpstreamError(BirdSightingsError):
    """Base class for failures of eBird or Nominatim"""


class UpstreamUnavailable(UpstreamError):
    """Network failure, timeout or non-2xx response from an external service"""

    message = "Upstream service unavailable"


class UpstreamSchemaError(UpstreamError):
    """An external response did not have the expected batch-level shape"""

    message = "Invalid response from upstream service"


class PartialRecordError(BirdSightingsError):
    """A single record in a batch is malformed; never escalated to the caller"""

    message = "Malformed record"
