"""
Configuration for the Bird Sightings API, read from the environment
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

EBIRD_API_KEY = os.getenv("EBIRD_API_KEY")
EBIRD_API_BASE = os.getenv("EBIRD_API_BASE", "https://api.ebird.org/v2")
NOMINATIM_BASE = os.getenv("NOMINATIM_BASE", "https://nominatim.openstreetmap.org")

# Checklist pages on the eBird website
CHECKLIST_URL_TEMPLATE = "https://ebird.org/checklist/{checklist_id}"

# Seconds allowed for any single call to eBird or Nominatim
EXTERNAL_TIMEOUT = float(os.getenv("EXTERNAL_TIMEOUT", "10"))

# Upper bound on concurrent checklist lookups within one request
MAX_LOOKUP_WORKERS = int(os.getenv("MAX_LOOKUP_WORKERS", "8"))

# "checklist" keeps every observation, "location" keeps the latest per spot
OBSERVATION_GROUPING = os.getenv("OBSERVATION_GROUPING", "checklist")

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "3001"))
