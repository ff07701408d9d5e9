"""Favicon resolution: tier chain plus per-origin cache."""

from vertical_tabs.favicon.cache import FaviconCache
from vertical_tabs.favicon.tiers import (
    DirectPathTier,
    FaviconTier,
    LookupServiceTier,
    build_tiers,
    to_data_url,
)

__all__ = [
    "DirectPathTier",
    "FaviconCache",
    "FaviconTier",
    "LookupServiceTier",
    "build_tiers",
    "to_data_url",
]
