"""
Synthetic flight schedule generator.

There is no live flight-data integration yet; ``SyntheticFlightProvider``
stands in behind the ``FlightProvider`` capability and fabricates a
plausible board of departures and arrivals for an IATA code. With a seed
the board is repeatable, which is what the tests rely on.
"""

import random
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from nearby_explorer.config import get_config
from nearby_explorer.models import Flight

AIRLINES = {
    "UA": "United Airlines",
    "DL": "Delta Air Lines",
    "AA": "American Airlines",
    "BA": "British Airways",
    "LH": "Lufthansa",
    "AF": "Air France",
    "KL": "KLM",
    "EK": "Emirates",
    "QR": "Qatar Airways",
    "TK": "Turkish Airlines",
    "SQ": "Singapore Airlines",
    "ET": "Ethiopian Airlines",
}

DESTINATIONS = [
    "JFK", "LHR", "CDG", "FRA", "AMS", "DXB", "DOH", "IST",
    "SIN", "ADD", "NBO", "JNB", "LOS", "ACC", "ORD", "ATL",
]

STATUSES = ["Scheduled", "On Time", "Boarding", "Delayed", "Departed", "Landed"]


class SyntheticFlightProvider:
    """Fabricated flights for an airport code."""

    name = "synthetic_flights"

    def __init__(self, seed: Optional[int] = None, flights_per_direction: int = 5,
                 now: Optional[Callable[[], datetime]] = None):
        self.seed = seed if seed is not None else get_config().provider_config.flight_seed
        self.flights_per_direction = flights_per_direction
        self._now = now or (lambda: datetime.now(timezone.utc))

    def _rng(self, code: str) -> random.Random:
        if self.seed is None:
            return random.Random()
        return random.Random(f"{self.seed}:{code}")

    async def get_flights(self, iata_code: str) -> List[Flight]:
        code = (iata_code or "").strip().upper()
        if not code:
            return []
        rng = self._rng(code)
        base = self._now().replace(minute=0, second=0, microsecond=0)
        others = [d for d in DESTINATIONS if d != code]

        flights: List[Flight] = []
        for direction in ("departure", "arrival"):
            for _ in range(self.flights_per_direction):
                airline_code = rng.choice(sorted(AIRLINES))
                other = rng.choice(others)
                depart = base + timedelta(minutes=rng.randint(0, 12 * 60))
                arrive = depart + timedelta(minutes=rng.randint(60, 14 * 60))
                flights.append(Flight(
                    flight_number=f"{airline_code}{rng.randint(100, 9999)}",
                    airline=AIRLINES[airline_code],
                    origin=code if direction == "departure" else other,
                    destination=other if direction == "departure" else code,
                    scheduled_departure=depart.isoformat(),
                    scheduled_arrival=arrive.isoformat(),
                    status=rng.choice(STATUSES),
                    direction=direction,
                    gate=f"{rng.choice('ABCDE')}{rng.randint(1, 40)}",
                ))
        flights.sort(key=lambda f: (f.direction, f.scheduled_departure))
        return flights
