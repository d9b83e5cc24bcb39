"""Google Places adapters: one module per API generation, shared helpers in common."""

from bluebunny.reviews import places_legacy, places_v1
from bluebunny.reviews.common import FetchOptions, PlaceLookup

__all__ = ["FetchOptions", "PlaceLookup", "places_legacy", "places_v1"]
