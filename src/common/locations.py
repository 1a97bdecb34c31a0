"""
Location helpers.

Recognizes Canadian "City, XX" locations (province code or full name) and
splits free-text job locations into city / province / country so listings
can be indexed by (country, city).
"""

import re
from typing import Dict, List, Optional, Tuple

PROVINCES: Dict[str, str] = {
    "AB": "Alberta",
    "BC": "British Columbia",
    "MB": "Manitoba",
    "NB": "New Brunswick",
    "NL": "Newfoundland and Labrador",
    "NS": "Nova Scotia",
    "NT": "Northwest Territories",
    "NU": "Nunavut",
    "ON": "Ontario",
    "PE": "Prince Edward Island",
    "QC": "Quebec",
    "SK": "Saskatchewan",
    "YT": "Yukon",
}

_PROVINCE_BY_NAME = {name.lower(): code for code, name in PROVINCES.items()}

MAJOR_CITIES: Dict[str, str] = {
    "toronto": "ON",
    "ottawa": "ON",
    "mississauga": "ON",
    "hamilton": "ON",
    "london": "ON",
    "montreal": "QC",
    "quebec city": "QC",
    "vancouver": "BC",
    "victoria": "BC",
    "surrey": "BC",
    "calgary": "AB",
    "edmonton": "AB",
    "red deer": "AB",
    "winnipeg": "MB",
    "regina": "SK",
    "saskatoon": "SK",
    "halifax": "NS",
    "fredericton": "NB",
    "moncton": "NB",
    "st. john's": "NL",
    "charlottetown": "PE",
    "whitehorse": "YT",
    "yellowknife": "NT",
}

_CODES = "|".join(PROVINCES)
_NAMES = "|".join(re.escape(name) for name in PROVINCES.values())

# "Edmonton, AB" / "Red Deer, Alberta"
CITY_PROVINCE_PATTERN = re.compile(
    rf"\b([A-Z][A-Za-z.'\-]+(?:\s[A-Z][A-Za-z.'\-]+){{0,2}}),\s*({_CODES}|{_NAMES})\b"
)


def province_code(value: Optional[str]) -> Optional[str]:
    """Normalize "AB" / "Alberta" / "alberta" to "AB"."""
    if not value:
        return None
    value = value.strip()
    if value.upper() in PROVINCES:
        return value.upper()
    return _PROVINCE_BY_NAME.get(value.lower())


def find_locations(text: str) -> List[str]:
    """
    Find all "City, XX" locations in text, normalized to province codes.

    Examples:
        >>> find_locations("Lives in Edmonton, Alberta. Worked in Calgary, AB")
        ['Edmonton, AB', 'Calgary, AB']
    """
    found: List[str] = []
    for match in CITY_PROVINCE_PATTERN.finditer(text or ""):
        city = match.group(1).strip()
        code = province_code(match.group(2))
        location = f"{city}, {code}"
        if code and location not in found:
            found.append(location)
    return found


def split_location(location: Optional[str]) -> Tuple[Optional[str], Optional[str], Optional[str]]:
    """
    Split a free-text job location into (city, province, country).

    Examples:
        >>> split_location("Edmonton, AB")
        ('Edmonton', 'AB', 'CA')
        >>> split_location("Remote")
        (None, None, None)
    """
    if not location:
        return None, None, None

    matches = find_locations(location)
    if matches:
        city, code = matches[0].rsplit(", ", 1)
        return city, code, "CA"

    lowered = location.strip().lower()
    for city, code in MAJOR_CITIES.items():
        if re.search(rf"\b{re.escape(city)}\b", lowered):
            return city.title(), code, "CA"

    if "canada" in lowered:
        return None, None, "CA"
    return None, None, None


def city_of(location: Optional[str]) -> Optional[str]:
    """City part of a location string, lowercased, or None."""
    city, _, _ = split_location(location)
    if city:
        return city.lower()
    if location and "," in location:
        return location.split(",")[0].strip().lower() or None
    return None
