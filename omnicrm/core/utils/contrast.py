"""
WCAG 2.1 color contrast helpers.

Colors are given as ``#RRGGBB`` hex strings or ``hsl(h s% l%)`` strings.
Unparsable input yields a contrast ratio of 1.0 (no contrast).
"""

from __future__ import annotations

import re
from typing import Dict, List, Optional, Tuple

AA_NORMAL = 4.5
AAA_NORMAL = 7.0
AA_LARGE = 3.0
AAA_LARGE = 4.5

DARK_TEXT = "#0f172a"
LIGHT_TEXT = "#f8fafc"

_HEX = re.compile(r"^#?([a-f\d]{2})([a-f\d]{2})([a-f\d]{2})$", re.IGNORECASE)
_HSL = re.compile(r"hsl\((\d+(?:\.\d+)?)\s+(\d+(?:\.\d+)?)%\s+(\d+(?:\.\d+)?)%\)")

RGB = Tuple[float, float, float]


def hex_to_rgb(color: str) -> Optional[Tuple[int, int, int]]:
    match = _HEX.match(color)
    if not match:
        return None
    return int(match.group(1), 16), int(match.group(2), 16), int(match.group(3), 16)


def hsl_to_rgb(h: float, s: float, l: float) -> RGB:
    s /= 100
    l /= 100
    c = (1 - abs(2 * l - 1)) * s
    x = c * (1 - abs((h / 60) % 2 - 1))
    m = l - c / 2

    if 0 <= h < 60:
        r, g, b = c, x, 0.0
    elif 60 <= h < 120:
        r, g, b = x, c, 0.0
    elif 120 <= h < 180:
        r, g, b = 0.0, c, x
    elif 180 <= h < 240:
        r, g, b = 0.0, x, c
    elif 240 <= h < 300:
        r, g, b = x, 0.0, c
    elif 300 <= h < 360:
        r, g, b = c, 0.0, x
    else:
        r = g = b = 0.0

    return (r + m) * 255, (g + m) * 255, (b + m) * 255


def parse_color(color: str) -> Optional[RGB]:
    if "hsl(" in color:
        match = _HSL.search(color)
        if not match:
            return None
        return hsl_to_rgb(float(match.group(1)), float(match.group(2)), float(match.group(3)))
    return hex_to_rgb(color)


def relative_luminance(r: float, g: float, b: float) -> float:
    def channel(value: float) -> float:
        value = value / 255
        return value / 12.92 if value <= 0.03928 else ((value + 0.055) / 1.055) ** 2.4

    return 0.2126 * channel(r) + 0.7152 * channel(g) + 0.0722 * channel(b)


def get_contrast_ratio(color1: str, color2: str) -> float:
    rgb1 = parse_color(color1)
    rgb2 = parse_color(color2)
    if rgb1 is None or rgb2 is None:
        return 1.0

    lum1 = relative_luminance(*rgb1)
    lum2 = relative_luminance(*rgb2)
    lightest, darkest = max(lum1, lum2), min(lum1, lum2)
    return (lightest + 0.05) / (darkest + 0.05)


def meets_wcag_contrast(foreground: str, background: str, level: str = "AA", large_text: bool = False) -> bool:
    ratio = get_contrast_ratio(foreground, background)
    if large_text:
        return ratio >= (AA_LARGE if level == "AA" else AAA_LARGE)
    return ratio >= (AA_NORMAL if level == "AA" else AAA_NORMAL)


def validate_color_pair(foreground: str, background: str) -> Dict[str, object]:
    ratio = get_contrast_ratio(foreground, background)
    meets_aa = ratio >= AA_NORMAL
    meets_aaa = ratio >= AAA_NORMAL

    result: Dict[str, object] = {"ratio": round(ratio, 2), "meets_aa": meets_aa, "meets_aaa": meets_aaa}
    if not meets_aa:
        result["recommendation"] = (
            "Consider using a darker foreground or lighter background color to meet WCAG AA standards."
        )
    elif not meets_aaa:
        result["recommendation"] = "Meets AA standards. For AAA compliance, consider increasing contrast further."
    return result


def _to_hex(r: float, g: float, b: float) -> str:
    return "#" + "".join(f"{int(round(channel)):02x}" for channel in (r, g, b))


def generate_accessible_variations(base_color: str, target_background: str) -> Dict[str, object]:
    """
    Build lighter and darker variants of ``base_color`` in 10% steps.

    ``recommended`` is the first variant (lighter ones first) meeting WCAG AA
    against ``target_background``, when any does.
    """
    lighter: List[str] = []
    darker: List[str] = []
    recommended: Optional[str] = None

    rgb = hex_to_rgb(base_color)
    if rgb is None:
        return {"lighter": lighter, "darker": darker}

    for step in range(10, 100, 10):
        factor = step / 100
        color = _to_hex(*(min(255, c + (255 - c) * factor) for c in rgb))
        lighter.append(color)
        if recommended is None and meets_wcag_contrast(color, target_background):
            recommended = color

    for step in range(10, 100, 10):
        factor = step / 100
        color = _to_hex(*(max(0, c * (1 - factor)) for c in rgb))
        darker.append(color)
        if recommended is None and meets_wcag_contrast(color, target_background):
            recommended = color

    variations: Dict[str, object] = {"lighter": lighter, "darker": darker}
    if recommended is not None:
        variations["recommended"] = recommended
    return variations


def get_accessible_text_color(background_color: str) -> str:
    rgb = hex_to_rgb(background_color)
    if rgb is None:
        return DARK_TEXT
    return DARK_TEXT if relative_luminance(*rgb) > 0.5 else LIGHT_TEXT
