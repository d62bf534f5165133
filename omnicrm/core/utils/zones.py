"""
Zone utilities for OmniMomentum.

Color coding, validation, filtering and usage statistics for zones. The
functions accept any zone-like object (ORM entity, pydantic model or dict)
exposing ``id``, ``name``, ``color`` and ``icon_name``.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Mapping, Optional, Sequence, TypeVar

from .contrast import get_accessible_text_color

ZoneT = TypeVar("ZoneT")

DEFAULT_ZONE_COLOR = "#6366F1"
DEFAULT_ZONE_ICON = "circle"

DEFAULT_ZONE_COLORS = (
    "#6366F1",  # Indigo - Personal Wellness
    "#8B5CF6",  # Purple - Self Care
    "#EC4899",  # Pink - Social Media & Marketing
    "#EF4444",  # Red - Admin & Finances
    "#F97316",  # Orange - Business Development
    "#06B6D4",  # Cyan - Client Care
)

ZONE_ICONS = (
    "circle",
    "square",
    "triangle",
    "diamond",
    "star",
    "heart",
    "sparkles",
    "target",
    "trending-up",
    "users",
    "calendar",
    "clock",
    "bell",
    "bookmark",
    "flag",
    "tag",
    "folder",
    "file",
    "image",
    "video",
    "music",
    "camera",
    "home",
    "briefcase",
    "shopping-cart",
    "credit-card",
    "phone",
    "mail",
    "message-circle",
    "share",
    "thumbs-up",
    "thumbs-down",
    "book-open",
)

ZONE_CATEGORIES = (
    "Personal",
    "Business",
    "Health",
    "Social",
    "Financial",
    "Creative",
    "Learning",
    "Other",
)

# Seeded zones: (name, color, icon)
DEFAULT_ZONES = (
    ("Personal Wellness", "#6366F1", "heart"),
    ("Self Care", "#8B5CF6", "sparkles"),
    ("Admin & Finances", "#EF4444", "briefcase"),
    ("Business Development", "#F97316", "trending-up"),
    ("Social Media & Marketing", "#EC4899", "share"),
    ("Client Care", "#06B6D4", "users"),
)

_HEX_COLOR = re.compile(r"^#[0-9A-Fa-f]{6}$")


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def get_zone_color(zones: Sequence[Any], zone_name: str) -> str:
    zone = get_zone_by_name(zones, zone_name)
    return (zone is not None and _field(zone, "color")) or DEFAULT_ZONE_COLOR


def get_zone_icon(zones: Sequence[Any], zone_name: str) -> str:
    zone = get_zone_by_name(zones, zone_name)
    return (zone is not None and _field(zone, "icon_name")) or DEFAULT_ZONE_ICON


def get_zone_by_id(zones: Sequence[ZoneT], zone_id: Any) -> Optional[ZoneT]:
    return next((zone for zone in zones if _field(zone, "id") == zone_id), None)


def get_zone_by_name(zones: Sequence[ZoneT], zone_name: str) -> Optional[ZoneT]:
    """Find a zone by name, ignoring case and surrounding whitespace."""
    wanted = zone_name.strip().lower()
    return next((zone for zone in zones if (_field(zone, "name") or "").strip().lower() == wanted), None)


def is_valid_zone_name(zone_name: str) -> bool:
    return 0 < len(zone_name.strip()) <= 100


def is_valid_hex_color(color: str) -> bool:
    return bool(_HEX_COLOR.match(color))


def is_valid_icon_name(icon_name: str) -> bool:
    return icon_name in ZONE_ICONS


def filter_zones_by_search(zones: Sequence[ZoneT], search_term: str) -> List[ZoneT]:
    if not search_term.strip():
        return list(zones)
    term = search_term.lower()
    return [
        zone
        for zone in zones
        if term in (_field(zone, "name") or "").lower() or term in (_field(zone, "icon_name") or "").lower()
    ]


def filter_zones_by_category(zones: Sequence[ZoneT], category: str) -> List[ZoneT]:
    if category == "all":
        return list(zones)
    return [zone for zone in zones if category.lower() in (_field(zone, "name") or "").lower()]


def sort_zones_by_name(zones: Sequence[ZoneT], order: str = "asc") -> List[ZoneT]:
    return sorted(zones, key=lambda zone: (_field(zone, "name") or "").lower(), reverse=order == "desc")


def _hex_channels(color: str) -> tuple:
    value = color.lstrip("#")
    return int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16)


def _channels_to_hex(r: int, g: int, b: int) -> str:
    return f"#{r:02x}{g:02x}{b:02x}"


def get_contrasting_text_color(background_color: str) -> str:
    """Black or white text, whichever reads better on ``background_color``."""
    r, g, b = _hex_channels(background_color)
    luminance = (0.299 * r + 0.587 * g + 0.114 * b) / 255
    return "#000000" if luminance > 0.5 else "#FFFFFF"


def lighten_color(color: str, percent: float) -> str:
    r, g, b = _hex_channels(color)
    factor = percent / 100
    return _channels_to_hex(*(min(255, int(c + (255 - c) * factor)) for c in (r, g, b)))


def darken_color(color: str, percent: float) -> str:
    r, g, b = _hex_channels(color)
    factor = percent / 100
    return _channels_to_hex(*(max(0, int(c * (1 - factor))) for c in (r, g, b)))


def validate_zone_data(name: str, color: Optional[str] = None, icon_name: Optional[str] = None) -> List[str]:
    """
    Validate zone fields.

    Returns:
        List of error messages, empty when the data is valid
    """
    errors: List[str] = []
    if not is_valid_zone_name(name):
        errors.append("Zone name must be between 1 and 100 characters")
    if color and not is_valid_hex_color(color):
        errors.append("Color must be a valid hex color (e.g., #6366F1)")
    if icon_name and not is_valid_icon_name(icon_name):
        errors.append("Icon must be a valid icon name")
    return errors


def sanitize_zone_data(name: str, color: Optional[str] = None, icon_name: Optional[str] = None) -> Dict[str, str]:
    """Trim the name and replace invalid color/icon values with the defaults."""
    return {
        "name": name.strip(),
        "color": color if color and is_valid_hex_color(color) else DEFAULT_ZONE_COLOR,
        "icon_name": icon_name if icon_name and is_valid_icon_name(icon_name) else DEFAULT_ZONE_ICON,
    }


def get_zone_usage_stats(zones: Sequence[Any], tasks: Sequence[Any]) -> List[Dict[str, Any]]:
    """
    Count tasks per zone.

    Args:
        zones: Zone-like objects
        tasks: Task-like objects exposing ``zone_id`` and ``status``

    Returns:
        One entry per zone with ``zone``, ``task_count``,
        ``completed_task_count`` and ``progress_percentage``
    """
    stats = []
    for zone in zones:
        zone_tasks = [task for task in tasks if _field(task, "zone_id") == _field(zone, "id")]
        completed = [task for task in zone_tasks if _field(task, "status") == "done"]
        stats.append(
            {
                "zone": zone,
                "task_count": len(zone_tasks),
                "completed_task_count": len(completed),
                "progress_percentage": (len(completed) / len(zone_tasks)) * 100 if zone_tasks else 0,
            }
        )
    return stats


def get_most_used_zones(zones: Sequence[ZoneT], tasks: Sequence[Any], limit: int = 5) -> List[ZoneT]:
    stats = sorted(get_zone_usage_stats(zones, tasks), key=lambda stat: stat["task_count"], reverse=True)
    return [stat["zone"] for stat in stats[:limit]]


def get_least_used_zones(zones: Sequence[ZoneT], tasks: Sequence[Any], limit: int = 5) -> List[ZoneT]:
    stats = sorted(get_zone_usage_stats(zones, tasks), key=lambda stat: stat["task_count"])
    return [stat["zone"] for stat in stats[:limit]]


def zone_palette() -> Dict[str, Any]:
    return {
        "colors": list(DEFAULT_ZONE_COLORS),
        "icons": list(ZONE_ICONS),
        "categories": list(ZONE_CATEGORIES),
        "text_colors": {color: get_accessible_text_color(color) for color in DEFAULT_ZONE_COLORS},
    }
