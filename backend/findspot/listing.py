"""Sorting, filtering and display helpers behind the list view."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional
import re
from urllib.parse import urlencode

SORT_TIMESTAMP = "timestamp"
SORT_TYPE = "type"
SORT_LOCATION = "location"
SORT_KEYS = (SORT_TIMESTAMP, SORT_TYPE, SORT_LOCATION)

FILTER_ALL = "all"

# Zoom used when jumping from a list row to its pin
FOCUS_ZOOM = 18

TYPE_NAMES = {
    "coins": "Coins",
    "jewelry": "Jewelry",
    "relics": "Relics",
    "tools-and-hardware": "Tools and Hardware",
    "tokens-and-medallions": "Tokens and Medallions",
    "weapons-and-ammunition": "Weapons and Ammunition",
    "household-items": "Household Items",
    "military-items": "Military Items",
    "industrial-scrap-junk": "Industrial Scrap / Junk",
    "religious-or-decorative-items": "Religious or Decorative Items",
    "unknown": "Unknown",
}


def format_type_name(value: Optional[str]) -> str:
    if not value:
        return "Unknown"
    if value in TYPE_NAMES:
        return TYPE_NAMES[value]
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), value.replace("-", " "))


def format_coordinates(lat: float, lng: float) -> str:
    return f"{float(lat):.6f}, {float(lng):.6f}"


def _as_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str):
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return datetime.min.replace(tzinfo=timezone.utc)


def filter_photos(photos: Iterable[Mapping[str, Any]], filter_by: str = FILTER_ALL) -> List[Mapping[str, Any]]:
    if not filter_by or filter_by == FILTER_ALL:
        return list(photos)
    return [p for p in photos if p.get("type") == filter_by]


def sort_photos(photos: Iterable[Mapping[str, Any]], sort_by: str = SORT_TIMESTAMP) -> List[Mapping[str, Any]]:
    items = list(photos)
    if sort_by == SORT_TIMESTAMP:
        return sorted(items, key=lambda p: _as_datetime(p.get("timestamp")), reverse=True)
    if sort_by == SORT_TYPE:
        # Untyped rows go last
        return sorted(items, key=lambda p: (p.get("type") is None, (p.get("type") or "").casefold()))
    if sort_by == SORT_LOCATION:
        return sorted(items, key=lambda p: float(p.get("lat") or 0))
    return items


def unique_types(photos: Iterable[Mapping[str, Any]]) -> List[str]:
    seen: Dict[str, None] = {}
    for photo in photos:
        value = photo.get("type")
        if value and value not in seen:
            seen[value] = None
    return list(seen)


def jump_to_map_query(photo: Mapping[str, Any]) -> str:
    return urlencode(
        {
            "view": "map",
            "lat": f"{float(photo['lat']):.6f}",
            "lng": f"{float(photo['lng']):.6f}",
            "zoom": str(FOCUS_ZOOM),
        }
    )


def build_list_view(
    photos: Iterable[Mapping[str, Any]],
    sort_by: str = SORT_TIMESTAMP,
    filter_by: str = FILTER_ALL,
) -> Dict[str, Any]:
    photos = list(photos)
    entries = []
    for photo in sort_photos(filter_photos(photos, filter_by), sort_by):
        entry = dict(photo)
        entry["type_label"] = format_type_name(photo.get("type"))
        entry["coordinates"] = format_coordinates(photo["lat"], photo["lng"])
        entry["map_link"] = "?" + jump_to_map_query(photo)
        entries.append(entry)

    return {
        "count": len(entries),
        "sort_by": sort_by,
        "filter_by": filter_by or FILTER_ALL,
        "types": [{"value": t, "label": format_type_name(t)} for t in unique_types(photos)],
        "items": entries,
    }
