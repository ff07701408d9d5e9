"""Shared HTTP client used by favicon tiers."""
