from __future__ import annotations

import json
from pathlib import Path

import allure
import pytest

from vertical_tabs.preferences import (
    EffectivePreference,
    PreferenceStore,
    Preferences,
    SitePreference,
)

pytestmark = [
    allure.epic("Panel Preferences"),
    allure.feature("Global & Per-Site Settings"),
]


def test_effective_preference_rules() -> None:
    preferences = Preferences(
        enabled=True,
        mode="push",
        sites={
            "off.test": SitePreference(enabled=False, mode="overlay"),
            "overlay.test": SitePreference(mode="overlay"),
            "inherit.test": SitePreference(),
        },
    )

    assert preferences.effective("off.test") == EffectivePreference(enabled=False)
    assert preferences.effective("overlay.test") == EffectivePreference(True, "overlay")
    assert preferences.effective("inherit.test") == EffectivePreference(True, "push")
    assert preferences.effective("unknown.test") == EffectivePreference(True, "push")


def test_global_switch_overrides_site_settings() -> None:
    preferences = Preferences(enabled=False, sites={"a.test": SitePreference(mode="overlay")})

    assert preferences.effective("a.test") == EffectivePreference(enabled=False)


def test_store_round_trips_through_json_file(tmp_path: Path) -> None:
    store = PreferenceStore(tmp_path / "nested" / "prefs.json")

    store.update(mode="overlay")
    store.update(hostname="docs.test", enabled=False)
    loaded = store.load()

    assert loaded.mode == "overlay"
    assert loaded.sites == {"docs.test": SitePreference(enabled=False, mode="default")}
    payload = json.loads((tmp_path / "nested" / "prefs.json").read_text(encoding="utf-8"))
    assert payload["siteSettings"] == {"docs.test": {"enabled": False, "mode": "default"}}


def test_missing_file_yields_defaults(tmp_path: Path) -> None:
    assert PreferenceStore(tmp_path / "absent.json").load() == Preferences()


def test_unreadable_file_yields_defaults(tmp_path: Path) -> None:
    path = tmp_path / "prefs.json"
    path.write_text("{not json", encoding="utf-8")

    assert PreferenceStore(path).load() == Preferences()


def test_update_rejects_unknown_mode(tmp_path: Path) -> None:
    store = PreferenceStore(tmp_path / "prefs.json")

    with pytest.raises(ValueError, match="Invalid mode"):
        store.update(mode="sidebar")
    with pytest.raises(ValueError, match="Invalid mode"):
        store.update(mode="default")
    store.update(hostname="a.test", mode="default")
