from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Tuple

EventStatus = Literal["PAST", "UPCOMING"]

FEATURED_PHOTO_SIZE = "676x380"

# Keys parsed into typed fields; everything else on a node is kept in EventRecord.extra.
_TYPED_NODE_KEYS = frozenset(
    {
        "id",
        "title",
        "description",
        "dateTime",
        "endTime",
        "duration",
        "eventUrl",
        "eventType",
        "status",
        "eventHosts",
        "rsvps",
        "venue",
        "venues",
        "featuredEventPhoto",
        "photoAlbum",
    }
)

_EPOCH_FLOOR = datetime.min.replace(tzinfo=timezone.utc)


def parse_start_time(value: Optional[str]) -> datetime:
    """
    Parse an API timestamp into an aware datetime for ordering.

    Missing or malformed values map to datetime.min (UTC) so ordering stays total.
    """
    if not value:
        return _EPOCH_FLOOR
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return _EPOCH_FLOOR
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class EventHost:
    member_id: str
    name: str

    def to_dict(self) -> Dict[str, Any]:
        return {"memberId": self.member_id, "name": self.name}


@dataclass(frozen=True)
class Attendee:
    rsvp_id: str
    member_id: str
    name: str


@dataclass(frozen=True)
class RsvpSummary:
    """RSVP count as reported by the server plus the (possibly partial) attendee list."""
    total_count: int = 0
    attendees: Tuple[Attendee, ...] = ()

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> "RsvpSummary":
        if not raw:
            return cls()
        attendees: List[Attendee] = []
        for edge in raw.get("edges") or []:
            node = edge.get("node") or {}
            member = node.get("member") or {}
            attendees.append(
                Attendee(
                    rsvp_id=str(node.get("id", "")),
                    member_id=str(member.get("id", "")),
                    name=str(member.get("name", "")),
                )
            )
        return cls(total_count=int(raw.get("totalCount") or 0), attendees=tuple(attendees))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalCount": self.total_count,
            "edges": [
                {"node": {"id": a.rsvp_id, "member": {"id": a.member_id, "name": a.name}}}
                for a in self.attendees
            ],
        }


@dataclass(frozen=True)
class Venue:
    id: Optional[str] = None
    name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    postal_code: Optional[str] = None
    lat: Optional[float] = None
    lon: Optional[float] = None
    venue_type: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Venue":
        return cls(
            id=raw.get("id"),
            name=raw.get("name"),
            address=raw.get("address"),
            city=raw.get("city"),
            state=raw.get("state"),
            country=raw.get("country"),
            postal_code=raw.get("postalCode"),
            lat=raw.get("lat"),
            lon=raw.get("lon", raw.get("lng")),
            venue_type=raw.get("venueType"),
        )

    def to_dict(self) -> Dict[str, Any]:
        out = {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "country": self.country,
            "postalCode": self.postal_code,
            "lat": self.lat,
            "lon": self.lon,
            "venueType": self.venue_type,
        }
        return {k: v for k, v in out.items() if v is not None}

    @property
    def display(self) -> str:
        parts = [p for p in (self.name, self.address, self.city, self.country) if p]
        return ", ".join(parts)


@dataclass(frozen=True)
class Photo:
    """
    Remote photo descriptor.

    Before enrichment base_url is a URL prefix and id completes it. After a successful
    download base_url holds a data: URI and id is empty.
    """
    id: str
    base_url: str

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> Optional["Photo"]:
        if not raw:
            return None
        return cls(id=str(raw.get("id") or ""), base_url=str(raw.get("baseUrl") or ""))

    @property
    def is_inlined(self) -> bool:
        return self.base_url.startswith("data:")

    def url(self, size: str = FEATURED_PHOTO_SIZE) -> str:
        if self.is_inlined:
            return self.base_url
        return f"{self.base_url}{self.id}/{size}.jpg"

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "baseUrl": self.base_url}


@dataclass(frozen=True)
class PhotoAlbum:
    id: str
    photo_count: int = 0
    title: Optional[str] = None
    photos: Optional[Tuple[Photo, ...]] = None  # populated by enrichment only

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> Optional["PhotoAlbum"]:
        if not raw:
            return None
        photos = raw.get("photos")
        return cls(
            id=str(raw.get("id") or ""),
            photo_count=int(raw.get("photoCount") or 0),
            title=raw.get("title"),
            photos=tuple(Photo.from_dict(p) for p in photos if p) if photos else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"id": self.id, "photoCount": self.photo_count}
        if self.title is not None:
            out["title"] = self.title
        if self.photos:
            out["photos"] = [p.to_dict() for p in self.photos]
        return out


@dataclass(frozen=True)
class EventRecord:
    """
    One event as fetched from the API.

    Typed fields cover what the pipeline and the renderer use; every other field the
    query returned is kept verbatim in `extra` so the archive loses nothing.
    """
    id: str
    title: str
    date_time: str
    event_url: str = ""
    description: Optional[str] = None
    end_time: Optional[str] = None
    duration: Optional[str] = None
    event_type: Optional[str] = None
    status: Optional[str] = None
    hosts: Tuple[EventHost, ...] = ()
    rsvps: RsvpSummary = field(default_factory=RsvpSummary)
    venue: Optional[Venue] = None
    featured_photo: Optional[Photo] = None
    photo_album: Optional[PhotoAlbum] = None
    extra: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @classmethod
    def from_node(cls, node: Dict[str, Any]) -> "EventRecord":
        venue_raw = node.get("venue")
        venues = node.get("venues")
        if venues:
            venue_raw = venues[0]

        return cls(
            id=str(node["id"]),
            title=str(node.get("title") or ""),
            date_time=str(node.get("dateTime") or ""),
            event_url=str(node.get("eventUrl") or ""),
            description=node.get("description"),
            end_time=node.get("endTime"),
            duration=node.get("duration"),
            event_type=node.get("eventType"),
            status=node.get("status"),
            hosts=tuple(
                EventHost(member_id=str(h.get("memberId", "")), name=str(h.get("name", "")))
                for h in node.get("eventHosts") or []
            ),
            rsvps=RsvpSummary.from_dict(node.get("rsvps")),
            venue=Venue.from_dict(venue_raw) if venue_raw else None,
            featured_photo=Photo.from_dict(node.get("featuredEventPhoto")),
            photo_album=PhotoAlbum.from_dict(node.get("photoAlbum")),
            extra={k: v for k, v in node.items() if k not in _TYPED_NODE_KEYS},
        )

    @property
    def start(self) -> datetime:
        return parse_start_time(self.date_time)

    def has_host(self, host_name: str) -> bool:
        return any(h.name == host_name for h in self.hosts)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "dateTime": self.date_time,
            "endTime": self.end_time,
            "duration": self.duration,
            "eventUrl": self.event_url,
            "eventType": self.event_type,
            "status": self.status,
        }
        out = {k: v for k, v in out.items() if v is not None}
        out.update(self.extra)
        out["eventHosts"] = [h.to_dict() for h in self.hosts]
        out["rsvps"] = self.rsvps.to_dict()
        if self.venue is not None:
            out["venues"] = [self.venue.to_dict()]
        if self.featured_photo is not None:
            out["featuredEventPhoto"] = self.featured_photo.to_dict()
        if self.photo_album is not None:
            out["photoAlbum"] = self.photo_album.to_dict()
        return out


@dataclass
class PageResult:
    """
    One page of the events connection.

    total_count is the server-side, pre-filter count; it is only used for progress
    reporting and never for loop termination.
    """
    total_count: int
    events: List[EventRecord]
    end_cursor: Optional[str]
    has_next_page: bool

    @classmethod
    def from_connection(cls, connection: Dict[str, Any]) -> "PageResult":
        """
        Parse one events connection. Null edges and edges without a node object are skipped.

        Raises KeyError, TypeError or ValueError on a node without an id or a non-numeric count.
        """
        page_info = connection.get("pageInfo") or {}
        nodes = [edge.get("node") for edge in connection.get("edges") or [] if isinstance(edge, dict)]
        return cls(
            total_count=int(connection.get("totalCount") or 0),
            events=[EventRecord.from_node(node) for node in nodes if isinstance(node, dict)],
            end_cursor=page_info.get("endCursor"),
            has_next_page=bool(page_info.get("hasNextPage")),
        )


@dataclass
class FetchResult:
    events: List[EventRecord]
    group_id: str
    group_name: str


@dataclass
class ArchiveResult:
    """
    Union of the PAST and UPCOMING fetches.

    Invariants:
      - events sorted by start time ascending (stable; PAST before UPCOMING on ties)
      - past_count + upcoming_count == len(events)
    """
    events: List[EventRecord]
    group_id: str
    group_name: str
    past_count: int
    upcoming_count: int


@dataclass
class ArchiveMetadata:
    archived_at: str  # ISO timestamp
    group_urlname: str
    group_id: str
    group_name: str
    total_events: int
    past_events: int
    upcoming_events: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "archivedAt": self.archived_at,
            "groupUrlname": self.group_urlname,
            "groupId": self.group_id,
            "groupName": self.group_name,
            "totalEvents": self.total_events,
            "pastEvents": self.past_events,
            "upcomingEvents": self.upcoming_events,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "ArchiveMetadata":
        return cls(
            archived_at=str(raw.get("archivedAt", "")),
            group_urlname=str(raw.get("groupUrlname", "")),
            group_id=str(raw.get("groupId", "")),
            group_name=str(raw.get("groupName", "")),
            total_events=int(raw.get("totalEvents") or 0),
            past_events=int(raw.get("pastEvents") or 0),
            upcoming_events=int(raw.get("upcomingEvents") or 0),
        )
