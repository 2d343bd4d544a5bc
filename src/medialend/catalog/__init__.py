"""Supporting catalogs: genres and shelf locations.

Provides:
- Genre with its own loan counter
- Location (room / shelf) where items are reshelved
"""

from .models import Genre, Location

__all__ = [
    "Genre",
    "Location",
]
