"""
Bird Sightings API - recent bird observations near a location
"""

__version__ = "1.0.0"
