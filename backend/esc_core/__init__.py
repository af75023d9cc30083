"""Eurovision contest data, voting rules and importers reused by the API and scripts."""

from .countries import CountryResolver
from .store import DataStore

__all__ = ["CountryResolver", "DataStore"]
