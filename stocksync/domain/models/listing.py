"""Listing domain models."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from typing import Any

UNKNOWN_NATURAL_KEY = "unknown"


@dataclass
class ListingAttributes:
    """Normalized attribute set derived from one remote stock item."""

    stock_number: str
    title: str
    slug: str
    vin_number: str = ""
    description: str = ""
    year: int = 0
    mileage: int = 0
    engine_size: float = 0.0
    doors: int = 0
    seats: int = 0
    price: float = 0.0
    sale_price: float = 0.0
    make: str = ""
    model: str = ""
    body_type: str = ""
    fuel_type: str = ""
    transmission: str = ""
    colour: str = ""
    registration: str = ""
    derivative: str = ""
    dealer_name: str = ""
    dealer_location: str = ""
    autotrader_id: str = ""
    autotrader_last_updated: str = ""
    lifecycle_state: str = ""
    features: list[str] = field(default_factory=list)

    def to_columns(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop("features")
        return data

    def to_json(self) -> str:
        return json.dumps(asdict(self), sort_keys=True)


@dataclass
class MappedListing:
    """Result of mapping one remote item: key, attributes and media references."""

    natural_key: str
    attributes: ListingAttributes
    vin: str = ""
    media_refs: list[str] = field(default_factory=list)
    publication_status: str = ""

    @property
    def is_unknown_key(self) -> bool:
        return self.natural_key == UNKNOWN_NATURAL_KEY


@dataclass
class LocalListing:
    """A listing row as persisted in the content store."""

    id: int
    stock_number: str
    title: str | None = None
    slug: str | None = None
    vin_number: str | None = None
    content_hash: str | None = None
    primary_media_id: int | None = None
    gallery_media_ids: list[int] = field(default_factory=list)
    attributes: dict[str, Any] = field(default_factory=dict)
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "LocalListing":
        gallery = row.get("gallery_media_ids")
        if isinstance(gallery, str):
            try:
                gallery = json.loads(gallery)
            except (json.JSONDecodeError, TypeError):
                gallery = []
        attributes = row.get("attributes_json")
        if isinstance(attributes, str):
            try:
                attributes = json.loads(attributes)
            except (json.JSONDecodeError, TypeError):
                attributes = {}
        return cls(
            id=int(row["id"]),
            stock_number=row.get("stock_number") or UNKNOWN_NATURAL_KEY,
            title=row.get("title"),
            slug=row.get("slug"),
            vin_number=row.get("vin_number"),
            content_hash=row.get("content_hash"),
            primary_media_id=row.get("primary_media_id"),
            gallery_media_ids=[int(v) for v in gallery or []],
            attributes=attributes or {},
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )
