"""
Domain models shared by providers and services.

Everything that crosses the provider boundary is converted into one of these
dataclasses; raw source dictionaries never travel further than the normalizer.
"""

import math
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Optional


@dataclass(frozen=True)
class LatLng:
    """A finite WGS84 coordinate pair."""
    lat: float
    lng: float

    @staticmethod
    def is_valid(lat: Any, lng: Any) -> bool:
        """Check whether a raw lat/lng pair can become a LatLng."""
        try:
            lat_f = float(lat)
            lng_f = float(lng)
        except (TypeError, ValueError):
            return False
        if not (math.isfinite(lat_f) and math.isfinite(lng_f)):
            return False
        return -90.0 <= lat_f <= 90.0 and -180.0 <= lng_f <= 180.0

    @classmethod
    def parse(cls, lat: Any, lng: Any) -> Optional["LatLng"]:
        if not cls.is_valid(lat, lng):
            return None
        return cls(float(lat), float(lng))

    def rounded(self, places: int = 4) -> "LatLng":
        return LatLng(round(self.lat, places), round(self.lng, places))

    def to_dict(self) -> Dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}


@dataclass(frozen=True)
class Address:
    road: Optional[str] = None
    house_number: Optional[str] = None
    city: Optional[str] = None
    postcode: Optional[str] = None
    country: Optional[str] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "Address":
        data = data or {}
        return cls(
            road=data.get("road"),
            house_number=data.get("house_number"),
            city=data.get("city"),
            postcode=data.get("postcode"),
            country=data.get("country"),
        )


@dataclass(frozen=True)
class POI:
    """A named, geolocated place.

    Frozen: ``id`` and ``location`` never change after normalization. Use
    ``dataclasses.replace`` to derive a moved or renamed copy.
    """
    id: str
    name: str
    location: LatLng
    category: str = "place"
    address: Address = field(default_factory=Address)
    raw_tags: Mapping[str, str] = field(default_factory=dict)
    source: str = "overpass"

    @property
    def lat(self) -> float:
        return self.location.lat

    @property
    def lng(self) -> float:
        return self.location.lng

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "lat": self.location.lat,
            "lng": self.location.lng,
            "category": self.category,
            "address": self.address.to_dict(),
            "tags": dict(self.raw_tags),
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Optional["POI"]:
        """Rebuild a POI from its cached ``to_dict`` form."""
        location = LatLng.parse(data.get("lat"), data.get("lng"))
        if location is None or not data.get("id"):
            return None
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or "Place"),
            location=location,
            category=str(data.get("category") or "place"),
            address=Address.from_dict(data.get("address")),
            raw_tags=dict(data.get("tags") or {}),
            source=str(data.get("source") or "overpass"),
        )


@dataclass(frozen=True)
class Airport(POI):
    category: str = "airport"
    iata_code: Optional[str] = None
    icao_code: Optional[str] = None

    @property
    def can_lookup_flights(self) -> bool:
        return bool(self.iata_code)

    def to_dict(self) -> Dict[str, Any]:
        out = super().to_dict()
        out["iata"] = self.iata_code
        out["icao"] = self.icao_code
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Optional["Airport"]:
        location = LatLng.parse(data.get("lat"), data.get("lng"))
        if location is None or not data.get("id"):
            return None
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or "Airport"),
            location=location,
            address=Address.from_dict(data.get("address")),
            raw_tags=dict(data.get("tags") or {}),
            source=str(data.get("source") or "overpass"),
            iata_code=data.get("iata"),
            icao_code=data.get("icao"),
        )


@dataclass
class PlaceDetail:
    id: str
    name: str
    location: LatLng
    category: str = "place"
    address: Address = field(default_factory=Address)
    tags: Dict[str, str] = field(default_factory=dict)
    opening_hours: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    display_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "lat": self.location.lat,
            "lng": self.location.lng,
            "category": self.category,
            "address": self.address.to_dict(),
            "tags": dict(self.tags),
            "opening_hours": self.opening_hours,
            "phone": self.phone,
            "website": self.website,
            "display_name": self.display_name,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Optional["PlaceDetail"]:
        location = LatLng.parse(data.get("lat"), data.get("lng"))
        if location is None or not data.get("id"):
            return None
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or "Place"),
            location=location,
            category=str(data.get("category") or "place"),
            address=Address.from_dict(data.get("address")),
            tags=dict(data.get("tags") or {}),
            opening_hours=data.get("opening_hours"),
            phone=data.get("phone"),
            website=data.get("website"),
            display_name=data.get("display_name"),
        )


@dataclass(frozen=True)
class Flight:
    flight_number: str
    airline: str
    origin: str
    destination: str
    scheduled_departure: str
    scheduled_arrival: str
    status: str
    direction: str
    gate: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Flight":
        return cls(
            flight_number=str(data.get("flight_number", "")),
            airline=str(data.get("airline", "")),
            origin=str(data.get("origin", "")),
            destination=str(data.get("destination", "")),
            scheduled_departure=str(data.get("scheduled_departure", "")),
            scheduled_arrival=str(data.get("scheduled_arrival", "")),
            status=str(data.get("status", "")),
            direction=str(data.get("direction", "departure")),
            gate=data.get("gate"),
        )


@dataclass(frozen=True)
class UserLocation:
    location: LatLng
    city: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None
    source: str = "ip"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lat": self.location.lat,
            "lng": self.location.lng,
            "city": self.city,
            "region": self.region,
            "country": self.country,
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Optional["UserLocation"]:
        location = LatLng.parse(data.get("lat"), data.get("lng"))
        if location is None:
            return None
        return cls(
            location=location,
            city=data.get("city"),
            region=data.get("region"),
            country=data.get("country"),
            source=str(data.get("source") or "ip"),
        )


@dataclass(frozen=True)
class GeocodeMatch:
    """One forward-geocoding hit."""
    name: str
    location: LatLng
    components: Dict[str, str] = field(default_factory=dict)
    bounds: Optional[Dict[str, float]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "lat": self.location.lat,
            "lng": self.location.lng,
            "components": dict(self.components),
            "bounds": self.bounds,
        }


def pois_to_dicts(pois: List[POI]) -> List[Dict[str, Any]]:
    return [p.to_dict() for p in pois]
