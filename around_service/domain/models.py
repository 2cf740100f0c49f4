"""
Domain models - Core business entities
"""
from dataclasses import dataclass, field
from typing import Optional, Dict, Any


@dataclass(frozen=True)
class Location:
    """Latitude/longitude pair in degrees, passed through unvalidated"""
    lat: float
    lon: float

    def to_dict(self) -> Dict[str, float]:
        return {"lat": self.lat, "lon": self.lon}


@dataclass(frozen=True)
class Post:
    """Post domain model, immutable once created"""
    id: str
    user: str
    message: str
    location: Location
    url: str = ""

    def to_document(self) -> Dict[str, Any]:
        """Search index document body"""
        return {
            "user": self.user,
            "message": self.message,
            "location": self.location.to_dict(),
            "url": self.url,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Public representation used in search responses"""
        return {"id": self.id, **self.to_document()}

    @classmethod
    def from_hit(cls, hit: Dict[str, Any]) -> "Post":
        """
        Build a Post from a search engine hit

        Raises:
            KeyError, TypeError, ValueError: If the hit does not decode
        """
        source = hit["_source"]
        location = source["location"]
        return cls(
            id=str(hit["_id"]),
            user=str(source["user"]),
            message=str(source["message"]),
            location=Location(lat=float(location["lat"]), lon=float(location["lon"])),
            url=str(source.get("url") or ""),
        )


@dataclass(frozen=True)
class SearchQuery:
    """
    Radius query around a center point

    radius_km is None when the range text is not a number; the text is then
    handed to the engine as-is and the engine decides.
    """
    center: Location
    radius_km: Optional[float]
    cache_key: Optional[str] = None
    range_text: Optional[str] = None

    @property
    def distance(self) -> str:
        """Distance string understood by the search engine"""
        if self.radius_km is None:
            return f"{self.range_text}km"
        return f"{self.radius_km}km"


@dataclass
class Credential:
    """Credential domain model"""
    username: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class AuthenticatedUser:
    """Identity attached to a request once its bearer token has been verified"""
    username: str


@dataclass
class MediaUpload:
    """Media stream supplied with a post"""
    stream: Any
    content_type: str = "application/octet-stream"
    filename: Optional[str] = None
