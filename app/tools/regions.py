"""Region name helpers.

Whole countries are never valid search regions; sub-national and
multi-country groupings ("Midwest", "Bay Area", "Western Europe") are.
Country names come from the ISO 3166 data shipped with ``pycountry``.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Iterable

import pycountry

# Everyday spellings ISO does not list.
COUNTRY_ALIASES = frozenset(
    {
        "usa", "u.s.", "u.s.a.", "us", "america", "the united states",
        "united states of america", "uk", "u.k.", "great britain", "britain",
        "england", "scotland", "wales", "uae", "the netherlands", "holland",
        "deutschland", "russia", "south korea", "north korea", "ivory coast",
        "czech republic", "vietnam", "turkey", "iran", "syria", "laos",
    }
)

# Country names that are also common sub-national regions.
AMBIGUOUS_NAMES = frozenset({"georgia"})


@lru_cache(maxsize=1)
def country_names() -> frozenset[str]:
    names: set[str] = set(COUNTRY_ALIASES)
    for country in pycountry.countries:
        for attr in ("name", "official_name", "common_name"):
            value = getattr(country, attr, None)
            if value:
                names.add(normalize_region(value).lower())
    return frozenset(names - AMBIGUOUS_NAMES)


def normalize_region(value: str) -> str:
    return " ".join(value.split()).strip()


def is_country(value: str) -> bool:
    return normalize_region(value).lower() in country_names()


def clean_regions(base_region: str, regions: Iterable[str]) -> list[str]:
    """Drop blanks, whole countries, the base region itself and repeats.

    Order of first appearance is kept; comparison is case-insensitive.
    """
    base_key = normalize_region(base_region).lower()
    countries = country_names()
    cleaned: list[str] = []
    seen: set[str] = set()
    for raw in regions:
        if not isinstance(raw, str):
            continue
        value = normalize_region(raw)
        key = value.lower()
        if not value or key == base_key or key in seen or key in countries:
            continue
        seen.add(key)
        cleaned.append(value)
    return cleaned
