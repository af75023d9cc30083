from __future__ import annotations

import logging
import re
import unicodedata
from typing import TYPE_CHECKING, Dict, Optional, Set

if TYPE_CHECKING:  # pragma: no cover
    from .store import DataStore


logger = logging.getLogger(__name__)

# Spellings found in historical CSV/XLSX exports -> canonical database names.
COUNTRY_ALIASES: Dict[str, str] = {
    "Luxemburg": "Luxembourg",
    "Netherlands": "The Netherlands",
    "Holland": "The Netherlands",
    "Bosnia and Herzegovina": "Bosnia & Herzegovina",
    "Bosnia-Herzegovina": "Bosnia & Herzegovina",
    "Serbia and Montenegro": "Serbia & Montenegro",
    "FYR Macedonia": "F.Y.R. Macedonia",
    "Türkiye": "Turkey",
    "Turkiye": "Turkey",
    "Czechia": "Czech Republic",
    "UK": "United Kingdom",
    "Great Britain": "United Kingdom",
    "Moldova, Republic of": "Moldova",
    "Russian Federation": "Russia",
}

# Database names -> names used by the world-atlas map topology.
MAP_NAMES: Dict[str, str] = {
    "Bosnia & Herzegovina": "Bosnia and Herz.",
    "Bosnia and Herzegovina": "Bosnia and Herz.",
    "Czech Republic": "Czech Rep.",
    "Macedonia": "North Macedonia",
    "F.Y.R. Macedonia": "North Macedonia",
    "The Netherlands": "Netherlands",
    "Türkiye": "Turkey",
}

_WHITESPACE = re.compile(r"\s+")
_SLUG_STRIP = re.compile(r"[^a-z0-9]+")


def normalise_country_name(name: str | None) -> str:
    if not name:
        return ""
    text = str(name).strip().strip("\ufeff").strip('"').strip()
    text = _WHITESPACE.sub(" ", text)
    return COUNTRY_ALIASES.get(text, text)


def country_slug(name: str) -> str:
    folded = unicodedata.normalize("NFKD", name).encode("ascii", "ignore").decode("ascii")
    return _SLUG_STRIP.sub("-", folded.lower()).strip("-")


def country_code(name: str) -> str:
    return name[:10].upper()


def map_name(name: str) -> str:
    return MAP_NAMES.get(name, name)


class CountryResolver:
    """Resolve country names from import files to database ids.

    Lookups are cached per normalised name; unknown names are logged once.
    """

    def __init__(self, store: "DataStore") -> None:
        self._store = store
        self._cache: Dict[str, Optional[int]] = {}
        self._missing_logged: Set[str] = set()

    def __call__(self, name: str | None) -> Optional[int]:
        return self.resolve(name)

    def resolve(self, name: str | None) -> Optional[int]:
        canonical = normalise_country_name(name)
        if not canonical:
            return None
        key = canonical.lower()
        if key not in self._cache:
            self._cache[key] = self._store.find_country_id(canonical)
        country_id = self._cache[key]
        if country_id is None and key not in self._missing_logged:
            self._missing_logged.add(key)
            logger.warning("Unknown country '%s'", name)
        return country_id

    def remember(self, name: str, country_id: int) -> None:
        self._cache[normalise_country_name(name).lower()] = country_id
