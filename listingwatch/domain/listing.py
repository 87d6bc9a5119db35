# listingwatch/domain/listing.py
from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from bs4 import BeautifulSoup, Tag

from ..errors import ListingDecodeError
from .parsing import (
    parse_availability,
    parse_published,
    parse_rfc3339,
    to_int,
    to_str,
    to_url,
)


@dataclass(frozen=True)
class FloorArea:
    name: str = ""
    units: str = ""
    value: str = ""


@dataclass(frozen=True)
class Listing:
    # Stable identity; the only field the stream looks at
    listing_id: str

    # Agent
    agent_name: str = ""
    agent_id: str = ""
    agent_address: str = ""
    agent_logo: str | None = None
    agent_phone: str = ""
    category: str = ""

    # Listing details
    details_url: str | None = None
    image_url: str | None = None
    displayable_address: str = ""
    post_town: str = ""
    outcode: str = ""
    available_from: date | None = None
    first_published: datetime | None = None
    last_published: datetime | None = None
    status: str = ""
    description: str = ""
    short_description: str = ""
    property_type: str = ""
    floor_plan: str | None = None
    furnished_state: str = ""
    letting_fees: str = ""
    shared_occupancy: str = ""

    # Rooms
    num_bedrooms: int = 0
    num_bathrooms: int = 0
    num_floors: int = 0
    num_recepts: int = 0
    floor_area: FloorArea = field(default_factory=FloorArea)

    # Rental prices
    rent_accurate: str = ""
    rent_per_month: int = 0
    rent_per_week: int = 0

    def to_json_dict(self) -> dict[str, Any]:
        out = dataclasses.asdict(self)
        out["available_from"] = self.available_from.isoformat() if self.available_from else None
        out["first_published"] = self.first_published.isoformat() if self.first_published else None
        out["last_published"] = self.last_published.isoformat() if self.last_published else None
        return out

    @classmethod
    def from_json_dict(cls, payload: dict[str, Any]) -> "Listing":
        known = {f.name for f in dataclasses.fields(cls)}
        kwargs = {k: v for k, v in payload.items() if k in known}

        fa = kwargs.get("floor_area")
        kwargs["floor_area"] = FloorArea(**fa) if isinstance(fa, dict) else FloorArea()

        avail = kwargs.get("available_from")
        kwargs["available_from"] = date.fromisoformat(avail) if isinstance(avail, str) and avail else None
        kwargs["first_published"] = parse_rfc3339(kwargs.get("first_published"))
        kwargs["last_published"] = parse_rfc3339(kwargs.get("last_published"))
        kwargs["listing_id"] = str(kwargs.get("listing_id") or "")
        return cls(**kwargs)


@dataclass(frozen=True)
class BoundingBox:
    latitude_min: str = ""
    latitude_max: str = ""
    longitude_min: str = ""
    longitude_max: str = ""


@dataclass(frozen=True)
class ListingResponse:
    area_name: str = ""
    street: str = ""
    town: str = ""
    county: str = ""
    country: str = ""
    postcode: str = ""
    latitude: str = ""
    longitude: str = ""
    bounding_box: BoundingBox = field(default_factory=BoundingBox)
    result_count: int = 0
    listings: tuple[Listing, ...] = ()


def _child(node: Tag, path: str) -> Tag | None:
    """Walk direct children only: 'rental_prices/per_month'."""
    cur: Tag | None = node
    for part in path.split("/"):
        if cur is None:
            return None
        cur = cur.find(part, recursive=False)
    return cur


def _text(node: Tag, path: str) -> str:
    el = _child(node, path)
    if el is None:
        return ""
    return to_str(el.get_text())


def _int(node: Tag, path: str) -> int:
    raw = _text(node, path)
    try:
        return to_int(raw)
    except ValueError as e:
        raise ListingDecodeError(f"field {path!r}: expected integer, got {raw!r}") from e


def _decode_listing(node: Tag) -> Listing:
    return Listing(
        listing_id=_text(node, "listing_id"),
        agent_name=_text(node, "agent_name"),
        agent_id=_text(node, "agent_id"),
        agent_address=_text(node, "company_address"),
        agent_logo=to_url(_text(node, "agent_logo")),
        agent_phone=_text(node, "agent_phone"),
        category=_text(node, "category"),
        details_url=to_url(_text(node, "details_url")),
        image_url=to_url(_text(node, "image_url")),
        displayable_address=_text(node, "displayable_address"),
        post_town=_text(node, "post_town"),
        outcode=_text(node, "outcode"),
        available_from=parse_availability(_text(node, "available_from_display")),
        first_published=parse_published(_text(node, "first_published_date")),
        last_published=parse_published(_text(node, "last_published_date")),
        status=_text(node, "status"),
        description=_text(node, "description"),
        short_description=_text(node, "short_description"),
        property_type=_text(node, "property_type"),
        floor_plan=to_url(_text(node, "floor_plan")),
        furnished_state=_text(node, "furnished_state"),
        letting_fees=_text(node, "letting_fees"),
        shared_occupancy=_text(node, "rental_prices/shared_occupancy"),
        num_bedrooms=_int(node, "num_bedrooms"),
        num_bathrooms=_int(node, "num_bathrooms"),
        num_floors=_int(node, "num_floors"),
        num_recepts=_int(node, "num_recepts"),
        floor_area=FloorArea(
            name=_text(node, "floor_area/name"),
            units=_text(node, "floor_area/units"),
            value=_text(node, "floor_area/value"),
        ),
        rent_accurate=_text(node, "rental_prices/accurate"),
        rent_per_month=_int(node, "rental_prices/per_month"),
        rent_per_week=_int(node, "rental_prices/per_week"),
    )


def decode_listing_response(body: bytes | str) -> ListingResponse:
    """
    Decode a property_listings.xml page.

    Listings keep the order the API returned them in; the stream relies on it.
    """
    # lxml refuses str input that carries an encoding declaration
    if isinstance(body, str):
        body = body.encode("utf-8")
    if not body.strip():
        raise ListingDecodeError("empty response body")

    try:
        soup = BeautifulSoup(body, "xml")
    except Exception as e:
        raise ListingDecodeError(f"unparsable listings payload: {e}") from e
    root = next((c for c in soup.children if isinstance(c, Tag)), None)
    if root is None:
        raise ListingDecodeError("response has no root element")

    listings = tuple(_decode_listing(n) for n in root.find_all("listing", recursive=False))

    return ListingResponse(
        area_name=_text(root, "area_name"),
        street=_text(root, "street"),
        town=_text(root, "town"),
        county=_text(root, "county"),
        country=_text(root, "country"),
        postcode=_text(root, "postcode"),
        latitude=_text(root, "latitude"),
        longitude=_text(root, "longitude"),
        bounding_box=BoundingBox(
            latitude_min=_text(root, "bounding_box/latitude_min"),
            latitude_max=_text(root, "bounding_box/latitude_max"),
            longitude_min=_text(root, "bounding_box/longitude_min"),
            longitude_max=_text(root, "bounding_box/longitude_max"),
        ),
        result_count=_int(root, "result_count"),
        listings=listings,
    )
