"""
Static lookup tables used by the filter predicates.

These are data, not logic: listing profiles take them as constructor
arguments so a deployment can swap in its own vocabulary.
"""

import re
from typing import Dict, List, Pattern


# Canonical amenity tag -> surface forms found in listing text
AMENITY_SYNONYMS: Dict[str, List[str]] = {
    "swimming_pool": ["swimming pool", "pool"],
    "fitness_center": ["fitness center", "gym"],
    "parking": ["parking", "parking space", "parking slot", "car park"],
    "balcony": ["balcony"],
    "security": ["security", "24/7 security", "guarded"],
    "elevator": ["elevator", "lift"],
    "clubhouse": ["clubhouse"],
    "garden": ["garden", "landscaped garden"],
    "rooftop_deck": ["rooftop deck", "roof deck", "rooftop"],
    "pet_area": ["pet area", "pet-friendly", "pet friendly"],
    "smart_home": ["smart home", "smart-home"],
}

# Broad property categories -> unit types that imply them
PROPERTY_CATEGORY_UNIT_TYPES: Dict[str, List[str]] = {
    "house": ["house_and_lot"],
    "condo": [
        "bedroom_unit",
        "studio_open_plan",
        "loft",
        "bi_level",
        "penthouse",
    ],
}

# Categories that also match when any unit declares a lot area
LOT_AREA_CATEGORIES = frozenset({"house"})

# A specific unit type named in the free-text query narrows the category.
# Order matters: the first pattern that matches wins.
UNIT_TYPE_QUERY_PATTERNS: List[tuple] = [
    (re.compile(r"\b(bi[- ]?level|bi[- ]?level unit)\b", re.IGNORECASE), "bi_level"),
    (re.compile(r"\b(loft|loft unit)\b", re.IGNORECASE), "loft"),
    (re.compile(r"\b(penthouse|penthouse unit)\b", re.IGNORECASE), "penthouse"),
    (re.compile(r"\b(studio|bachelor pad|bachelor's pad)\b", re.IGNORECASE), "studio_open_plan"),
]

# Vehicle categories whose sub-types all match the family name
VEHICLE_CATEGORY_FAMILIES: List[str] = ["sedan"]

SEATING_PATTERN: Pattern = re.compile(r"(\d+)[-\s]?seater", re.IGNORECASE)

# Separators between tokens of free-text amenity and feature fields
FEATURE_TOKEN_SEPARATORS: Pattern = re.compile(r"[,.;\n]")
