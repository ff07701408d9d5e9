"""Runtime configuration for the tab sync engine."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

DEFAULT_LOOKUP_URL = "https://www.google.com/s2/favicons?domain={hostname}&sz={size}"


@dataclass(slots=True)
class FaviconSettings:
    """Favicon tier chain and HTTP client settings."""

    direct_enabled: bool = True
    direct_path: str = "/favicon.ico"
    direct_min_bytes: int = 10
    lookup_enabled: bool = True
    lookup_url_template: str = DEFAULT_LOOKUP_URL
    lookup_icon_size: int = 32
    lookup_min_bytes: int = 100
    request_timeout_seconds: float = 10.0
    max_retries: int = 1


@dataclass(slots=True)
class BroadcastSettings:
    """Debounce window and follow-up delays for snapshot pushes."""

    debounce_seconds: float = 0.1
    follow_up_delays: tuple[float, ...] = (1.0, 3.5)
    surface_check_delay_seconds: float = 2.0


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    preferences_path: Path = Path(".vertical_tabs_prefs.json")
    favicon: FaviconSettings = field(default_factory=FaviconSettings)
    broadcast: BroadcastSettings = field(default_factory=BroadcastSettings)

    @classmethod
    def from_env(cls, preferences_path: Path | None = None) -> Settings:
        """Load settings from environment with defaults suited to a local panel."""

        return cls(
            preferences_path=preferences_path
            or Path(os.getenv("VERTICAL_TABS_PREFERENCES_PATH", ".vertical_tabs_prefs.json")),
            favicon=FaviconSettings(
                direct_enabled=_env_bool("VERTICAL_TABS_FAVICON_DIRECT_ENABLED", default=True),
                direct_path=os.getenv("VERTICAL_TABS_FAVICON_DIRECT_PATH", "/favicon.ico"),
                direct_min_bytes=int(os.getenv("VERTICAL_TABS_FAVICON_DIRECT_MIN_BYTES", "10")),
                lookup_enabled=_env_bool("VERTICAL_TABS_FAVICON_LOOKUP_ENABLED", default=True),
                lookup_url_template=os.getenv(
                    "VERTICAL_TABS_FAVICON_LOOKUP_URL",
                    DEFAULT_LOOKUP_URL,
                ),
                lookup_icon_size=int(os.getenv("VERTICAL_TABS_FAVICON_LOOKUP_SIZE", "32")),
                lookup_min_bytes=int(os.getenv("VERTICAL_TABS_FAVICON_LOOKUP_MIN_BYTES", "100")),
                request_timeout_seconds=float(
                    os.getenv("VERTICAL_TABS_HTTP_TIMEOUT_SECONDS", "10.0"),
                ),
                max_retries=int(os.getenv("VERTICAL_TABS_HTTP_MAX_RETRIES", "1")),
            ),
            broadcast=BroadcastSettings(
                debounce_seconds=float(os.getenv("VERTICAL_TABS_DEBOUNCE_SECONDS", "0.1")),
                follow_up_delays=_env_float_tuple(
                    "VERTICAL_TABS_FOLLOW_UP_DELAYS",
                    default=(1.0, 3.5),
                ),
                surface_check_delay_seconds=float(
                    os.getenv("VERTICAL_TABS_SURFACE_CHECK_DELAY_SECONDS", "2.0"),
                ),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error for out-of-range values."""

        if self.broadcast.debounce_seconds <= 0:
            raise ValueError("VERTICAL_TABS_DEBOUNCE_SECONDS must be > 0.")
        if any(delay <= 0 for delay in self.broadcast.follow_up_delays):
            raise ValueError("VERTICAL_TABS_FOLLOW_UP_DELAYS values must be > 0.")
        if self.broadcast.surface_check_delay_seconds < 0:
            raise ValueError("VERTICAL_TABS_SURFACE_CHECK_DELAY_SECONDS must be >= 0.")
        if self.favicon.request_timeout_seconds <= 0:
            raise ValueError("VERTICAL_TABS_HTTP_TIMEOUT_SECONDS must be > 0.")
        if self.favicon.max_retries < 0:
            raise ValueError("VERTICAL_TABS_HTTP_MAX_RETRIES must be >= 0.")
        if self.favicon.direct_min_bytes < 0 or self.favicon.lookup_min_bytes < 0:
            raise ValueError("Favicon minimum byte thresholds must be >= 0.")
        if not self.favicon.direct_path.startswith("/"):
            raise ValueError(
                "Invalid VERTICAL_TABS_FAVICON_DIRECT_PATH: "
                f"{self.favicon.direct_path!r}. Expected an absolute path like '/favicon.ico'.",
            )
        _validate_lookup_template(self.favicon.lookup_url_template)


def _validate_lookup_template(value: str) -> None:
    if "{hostname}" not in value:
        raise ValueError(
            f"Invalid VERTICAL_TABS_FAVICON_LOOKUP_URL: {value!r}. "
            "Expected a '{hostname}' placeholder.",
        )
    parsed = urlparse(value.replace("{hostname}", "example.com").replace("{size}", "32"))
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError(
            "Invalid VERTICAL_TABS_FAVICON_LOOKUP_URL: "
            f"{value!r}. Expected an absolute URL with http:// or https:// scheme.",
        )


def _env_float_tuple(name: str, default: tuple[float, ...]) -> tuple[float, ...]:
    raw = os.getenv(name)
    if raw is None:
        return default
    values: list[float] = []
    for token in raw.split(","):
        token = token.strip()
        if not token:
            continue
        try:
            values.append(float(token))
        except ValueError as error:
            raise ValueError(f"Invalid {name} value: {token!r}") from error
    return tuple(values)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
