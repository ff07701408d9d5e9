"""Persisted panel preferences: global and per-site enable flag and display mode."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

DISPLAY_MODES = frozenset({"push", "overlay"})
SITE_DEFAULT_MODE = "default"


@dataclass(slots=True)
class SitePreference:
    enabled: bool = True
    mode: str = SITE_DEFAULT_MODE


@dataclass(slots=True, frozen=True)
class EffectivePreference:
    """What the panel should do on one hostname."""

    enabled: bool
    mode: str | None = None


@dataclass(slots=True)
class Preferences:
    enabled: bool = True
    mode: str = "push"
    sites: dict[str, SitePreference] = field(default_factory=dict)

    def effective(self, hostname: str) -> EffectivePreference:
        if not self.enabled:
            return EffectivePreference(enabled=False)
        site = self.sites.get(hostname)
        if site is not None and not site.enabled:
            return EffectivePreference(enabled=False)
        if site is not None and site.mode != SITE_DEFAULT_MODE:
            return EffectivePreference(enabled=True, mode=site.mode)
        return EffectivePreference(enabled=True, mode=self.mode)

    def to_dict(self) -> dict[str, object]:
        return {
            "enabled": self.enabled,
            "mode": self.mode,
            "siteSettings": {
                hostname: {"enabled": site.enabled, "mode": site.mode}
                for hostname, site in sorted(self.sites.items())
            },
        }

    @classmethod
    def from_dict(cls, payload: dict[str, object]) -> Preferences:
        raw_sites = payload.get("siteSettings") or {}
        if not isinstance(raw_sites, dict):
            raise ValueError("siteSettings must be an object")
        sites = {
            str(hostname): SitePreference(
                enabled=entry.get("enabled") is not False,
                mode=str(entry.get("mode") or SITE_DEFAULT_MODE),
            )
            for hostname, entry in raw_sites.items()
            if isinstance(entry, dict)
        }
        return cls(
            enabled=payload.get("enabled") is not False,
            mode=str(payload.get("mode") or "push"),
            sites=sites,
        )


class PreferenceStore:
    """JSON file backed preference storage."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> Preferences:
        if not self.path.exists():
            return Preferences()
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            logger.warning("Ignoring unreadable preferences at %s: %s", self.path, exc)
            return Preferences()
        if not isinstance(payload, dict):
            logger.warning("Ignoring preferences at %s: expected an object", self.path)
            return Preferences()
        return Preferences.from_dict(payload)

    def save(self, preferences: Preferences) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            json.dumps(preferences.to_dict(), indent=2, sort_keys=True) + "\n",
            encoding="utf-8",
        )

    def update(
        self,
        *,
        hostname: str | None = None,
        enabled: bool | None = None,
        mode: str | None = None,
    ) -> Preferences:
        """Apply a global change, or a per-site one when ``hostname`` is given."""

        allowed = DISPLAY_MODES | ({SITE_DEFAULT_MODE} if hostname else set())
        if mode is not None and mode not in allowed:
            raise ValueError(
                f"Invalid mode {mode!r}. Expected one of: {', '.join(sorted(allowed))}",
            )
        preferences = self.load()
        if hostname:
            site = preferences.sites.setdefault(hostname, SitePreference())
            if enabled is not None:
                site.enabled = enabled
            if mode is not None:
                site.mode = mode
        else:
            if enabled is not None:
                preferences.enabled = enabled
            if mode is not None:
                preferences.mode = mode
        self.save(preferences)
        return preferences
