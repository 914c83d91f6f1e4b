"""Mapping of raw AutoTrader stock items onto local listing attributes.

Every extraction goes through the ``get_*`` helpers below, which walk a
dotted path through nested dicts and return a typed default when anything on
the way is missing or of the wrong type. A sparse remote item therefore maps
to a sparse listing instead of raising.
"""

from __future__ import annotations

import hashlib
import json
import re
import uuid
from dataclasses import asdict
from datetime import date
from typing import Any, Iterable, Sequence

from stocksync.domain.models import (UNKNOWN_NATURAL_KEY, ListingAttributes,
                                     MappedListing)

NOT_PUBLISHED = "NOT_PUBLISHED"
DEFAULT_MAKE = "Default"

_MISSING = object()
_RESIZE_SEGMENTS = ("/{resize}/", "/%7Bresize%7D/", "/%7bresize%7d/")
_SLUG_INVALID = re.compile(r"[^a-z0-9]+")


def _split(path: str | Sequence[str]) -> Sequence[str]:
    return path.split(".") if isinstance(path, str) else path


def get_path(doc: Any, path: str | Sequence[str], default: Any = None) -> Any:
    """Return the value at ``path`` inside nested dicts, or ``default``."""
    current = doc
    for part in _split(path):
        if not isinstance(current, dict):
            return default
        current = current.get(part, _MISSING)
        if current is _MISSING or current is None:
            return default
    return current


def get_str(doc: Any, path: str | Sequence[str], default: str = "") -> str:
    value = get_path(doc, path)
    if value is None or isinstance(value, (dict, list)):
        return default
    if isinstance(value, bool):
        return "true" if value else "false"
    text = str(value).strip()
    return text if text else default


def get_int(doc: Any, path: str | Sequence[str], default: int = 0) -> int:
    value = get_path(doc, path)
    if isinstance(value, bool) or value is None:
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def get_float(doc: Any, path: str | Sequence[str], default: float = 0.0) -> float:
    value = get_path(doc, path)
    if isinstance(value, bool) or value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def get_list(doc: Any, path: str | Sequence[str]) -> list[Any]:
    value = get_path(doc, path)
    return list(value) if isinstance(value, list) else []


def first_str(doc: Any, paths: Iterable[str], default: str = "") -> str:
    """Return the first non-empty string found among ``paths``."""
    for path in paths:
        value = get_str(doc, path)
        if value:
            return value
    return default


def slugify(*parts: str) -> str:
    text = "-".join(p for p in parts if p)
    return _SLUG_INVALID.sub("-", text.lower()).strip("-")


def strip_resize_placeholder(url: str) -> str:
    """Remove the ``/{resize}/`` template segment from an image href."""
    for segment in _RESIZE_SEGMENTS:
        url = url.replace(segment, "/")
    return url


class ListingMapper:
    """Pure transformation of one remote item into a :class:`MappedListing`."""

    def __init__(self, today: date | None = None) -> None:
        self._today = today

    def map(self, item: dict[str, Any]) -> MappedListing:
        natural_key = self.natural_key(item)
        vin = get_str(item, "vehicle.vin")
        year = get_int(item, "vehicle.yearOfManufacture")
        make = first_str(item, ("vehicle.standard.make", "vehicle.make"))
        model = first_str(item, ("vehicle.standard.model", "vehicle.model"))

        attributes = ListingAttributes(
            stock_number=natural_key,
            vin_number=vin,
            title=self.title(year, make, model),
            slug=self.slug(make, model, year, natural_key),
            description=get_str(item, "adverts.retailAdverts.description"),
            year=year,
            mileage=get_int(item, "vehicle.odometerReadingMiles"),
            engine_size=get_float(item, "vehicle.badgeEngineSizeLitres"),
            doors=get_int(item, "vehicle.doors"),
            seats=get_int(item, "vehicle.seats"),
            price=self.price(item),
            sale_price=get_float(item, "adverts.retailAdverts.totalPrice.amountGBP"),
            make=make or DEFAULT_MAKE,
            model=model,
            body_type=first_str(item, ("vehicle.standard.bodyType", "vehicle.bodyType")),
            fuel_type=first_str(item, ("vehicle.standard.fuelType", "vehicle.fuelType")),
            transmission=first_str(
                item, ("vehicle.standard.transmissionType", "vehicle.transmissionType")
            ),
            colour=first_str(item, ("vehicle.standard.colour", "vehicle.colour")),
            registration=get_str(item, "vehicle.vrm"),
            derivative=get_str(item, "vehicle.derivative"),
            dealer_name=get_str(item, "advertiser.name"),
            dealer_location=self.dealer_location(item),
            autotrader_id=get_str(item, "metadata.id"),
            autotrader_last_updated=get_str(item, "metadata.lastUpdated"),
            lifecycle_state=get_str(item, "metadata.lifecycleState"),
            features=self.features(item),
        )
        return MappedListing(
            natural_key=natural_key,
            vin=vin,
            attributes=attributes,
            media_refs=self.media_refs(item),
            publication_status=self.publication_status(item),
        )

    # ------------------------------------------------------------------
    # Field rules
    # ------------------------------------------------------------------

    @staticmethod
    def natural_key(item: dict[str, Any]) -> str:
        return first_str(
            item, ("metadata.stockId", "metadata.externalStockId"), UNKNOWN_NATURAL_KEY
        )

    @staticmethod
    def publication_status(item: dict[str, Any]) -> str:
        return get_str(item, "adverts.retailAdverts.advertiserAdvert.status")

    @staticmethod
    def is_not_published(item: dict[str, Any]) -> bool:
        return ListingMapper.publication_status(item) == NOT_PUBLISHED

    @staticmethod
    def price(item: dict[str, Any]) -> float:
        forecourt = get_path(item, "adverts.forecourtPrice.amountGBP")
        if forecourt is not None:
            return get_float(item, "adverts.forecourtPrice.amountGBP")
        return get_float(item, "adverts.retailAdverts.suppliedPrice.amountGBP")

    @staticmethod
    def dealer_location(item: dict[str, Any]) -> str:
        parts = (
            get_str(item, ("advertiser", "location", key))
            for key in ("addressLineOne", "town", "county", "postCode")
        )
        return ", ".join(p for p in parts if p)

    @staticmethod
    def features(item: dict[str, Any]) -> list[str]:
        names: list[str] = []
        for entry in get_list(item, "vehicle.standardFeatures") or get_list(item, "features"):
            name = get_str(entry, "name") if isinstance(entry, dict) else str(entry or "").strip()
            if name and name not in names:
                names.append(name)
        return names

    @staticmethod
    def media_refs(item: dict[str, Any]) -> list[str]:
        """Return image hrefs in order. Non-string hrefs become empty refs."""
        refs: list[str] = []
        for image in get_list(item, "media.images"):
            href = image.get("href") if isinstance(image, dict) else None
            refs.append(href.strip() if isinstance(href, str) else "")
        return refs

    def title(self, year: int, make: str, model: str) -> str:
        parts = [str(year) if year else "", make, model]
        title = " ".join(p for p in parts if p)
        if title:
            return title
        today = self._today or date.today()
        return f"Auto Listing {today.isoformat()}"

    @staticmethod
    def slug(make: str, model: str, year: int, natural_key: str) -> str:
        stock = "" if natural_key == UNKNOWN_NATURAL_KEY else natural_key
        slug = slugify(make, model, str(year) if year else "", stock)
        return slug or f"auto-listing-{uuid.uuid4().hex[:13]}"


def content_hash(mapped: MappedListing) -> str:
    """Return a stable hash of everything the remote side controls.

    The slug is left out because its fallback is randomised.
    """
    attributes = asdict(mapped.attributes)
    attributes.pop("slug", None)
    payload = {
        "natural_key": mapped.natural_key,
        "vin": mapped.vin,
        "attributes": attributes,
        "media_refs": mapped.media_refs,
        "publication_status": mapped.publication_status,
    }
    canonical = json.dumps(payload, sort_keys=True, default=str, ensure_ascii=True)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
