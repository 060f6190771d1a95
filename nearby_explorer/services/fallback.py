"""
Degraded detail records for when the detail lookup cannot answer.
"""

import logging
from typing import Optional

from nearby_explorer.models import LatLng, PlaceDetail
from nearby_explorer.services.working_set import WorkingSet

logger = logging.getLogger(__name__)

PLACEHOLDER_NAME = "Unknown Place"
PLACEHOLDER_OPENING_HOURS = "Mo-Su 09:00-17:00"


class FallbackSynthesizer:
    """Builds a best-effort ``PlaceDetail`` from the working set. Never raises."""

    def __init__(self, opening_hours: str = PLACEHOLDER_OPENING_HOURS):
        self.opening_hours = opening_hours

    def synthesize(self, place_id: str, snapshot: Optional[WorkingSet]) -> PlaceDetail:
        poi = snapshot.find(place_id) if snapshot is not None else None
        if poi is None:
            logger.warning("Serving degraded placeholder for unknown place %s", place_id)
            return PlaceDetail(
                id=place_id,
                name=PLACEHOLDER_NAME,
                location=LatLng(0.0, 0.0),
                category="place",
                tags={"amenity": "place"},
                opening_hours=self.opening_hours,
            )

        tags = dict(poi.raw_tags)
        if not any(k in tags for k in ("amenity", "shop", "tourism", "leisure", "historic", "natural")):
            tags["amenity"] = poi.category or "place"
        logger.warning("Serving degraded detail for %s from the working set", place_id)
        return PlaceDetail(
            id=poi.id,
            name=poi.name,
            location=poi.location,
            category=poi.category,
            address=poi.address,
            tags=tags,
            opening_hours=tags.get("opening_hours") or self.opening_hours,
            phone=tags.get("phone"),
            website=tags.get("website"),
        )
