"""
The working-set snapshot: the last successful POI list, in process memory only.
"""

import time
from typing import Dict, List, Optional, Sequence

from nearby_explorer.models import POI


class WorkingSet:
    """Holds the most recent aggregate result.

    ``replace`` swaps the whole list; results from different queries are
    never merged.
    """

    def __init__(self):
        self._pois: List[POI] = []
        self._by_id: Dict[str, POI] = {}
        self.replaced_at: Optional[float] = None
        self.query_key: Optional[str] = None

    def replace(self, pois: Sequence[POI], query_key: Optional[str] = None) -> None:
        self._pois = list(pois)
        self._by_id = {p.id: p for p in self._pois}
        self.replaced_at = time.time()
        self.query_key = query_key

    def find(self, place_id: str) -> Optional[POI]:
        return self._by_id.get(place_id)

    @property
    def pois(self) -> List[POI]:
        return list(self._pois)

    def __len__(self) -> int:
        return len(self._pois)

    def __contains__(self, place_id: object) -> bool:
        return place_id in self._by_id
