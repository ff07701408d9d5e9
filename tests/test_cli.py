from __future__ import annotations

import json
from pathlib import Path

import allure
from click.testing import CliRunner

from vertical_tabs import __version__
from vertical_tabs.main import vertical_tabs

pytestmark = [
    allure.epic("Command Line"),
    allure.feature("Snapshot, Move and Preferences Commands"),
]


def _write_tabs(tmp_path: Path) -> Path:
    path = tmp_path / "tabs.json"
    path.write_text(
        json.dumps(
            {
                "tabs": [
                    {
                        "id": 1,
                        "title": "GitHub",
                        "url": "https://github.com/",
                        "pinned": True,
                        "favIconUrl": "data:image/png;base64,AAAA",
                    },
                    {"id": 2, "title": "Docs", "url": "https://docs.test/page", "active": True},
                    {"id": 3, "title": "Settings", "url": "chrome://settings"},
                ],
            },
        ),
        encoding="utf-8",
    )
    return path


def test_version_option() -> None:
    result = CliRunner().invoke(vertical_tabs, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_snapshot_without_network_marks_unknown_icons_unavailable(tmp_path: Path) -> None:
    tabs_path = _write_tabs(tmp_path)

    result = CliRunner().invoke(vertical_tabs, ["snapshot", str(tabs_path), "--no-resolve"])

    assert result.exit_code == 0, result.output
    lines = result.output.splitlines()
    assert lines == [
        "Pinned (1):",
        "   [1] GitHub <https://github.com/> icon=resolved image/png 3 bytes",
        "Regular (2):",
        " * [2] Docs <https://docs.test/page> icon=unavailable glyph=D",
        "   [3] Settings <chrome://settings> icon=default glyph=S",
        "Sync: cycles=2 deliveries=6 resolution_passes=1",
    ]


def test_move_with_unpin_keeps_tab_in_regular_partition(tmp_path: Path) -> None:
    tabs_path = _write_tabs(tmp_path)

    result = CliRunner().invoke(
        vertical_tabs,
        ["move", str(tabs_path), "--tab-id", "3", "--index", "0", "--unpin"],
    )

    assert result.exit_code == 0, result.output
    lines = result.output.splitlines()
    assert lines[0] == "Moved tab 3 to absolute position 1"
    assert lines[3] == "Regular (2):"
    assert lines[4].startswith("   [3] Settings")
    assert lines[5].startswith(" * [2] Docs")


def test_move_with_pin_pins_before_reordering(tmp_path: Path) -> None:
    tabs_path = _write_tabs(tmp_path)

    result = CliRunner().invoke(
        vertical_tabs,
        ["move", str(tabs_path), "--tab-id", "2", "--index", "0", "--pin"],
    )

    assert result.exit_code == 0, result.output
    lines = result.output.splitlines()
    assert lines[0] == "Moved tab 2 to absolute position 0"
    assert lines[1] == "Pinned (2):"
    assert lines[2].startswith(" * [2] Docs")
    assert lines[3].startswith("   [1] GitHub")


def test_move_unknown_tab_fails(tmp_path: Path) -> None:
    tabs_path = _write_tabs(tmp_path)

    result = CliRunner().invoke(
        vertical_tabs,
        ["move", str(tabs_path), "--tab-id", "99", "--index", "0"],
    )

    assert result.exit_code == 1
    assert "No tab with id 99" in result.output


def test_prefs_set_and_show(tmp_path: Path) -> None:
    prefs_path = tmp_path / "prefs.json"
    runner = CliRunner()

    global_set = runner.invoke(
        vertical_tabs,
        ["prefs", "set", "--preferences-path", str(prefs_path), "--mode", "overlay"],
    )
    site_set = runner.invoke(
        vertical_tabs,
        [
            "prefs",
            "set",
            "--preferences-path",
            str(prefs_path),
            "--hostname",
            "news.test",
            "--disabled",
        ],
    )
    shown = runner.invoke(
        vertical_tabs,
        ["prefs", "show", "--preferences-path", str(prefs_path), "--hostname", "news.test"],
    )

    assert global_set.exit_code == 0, global_set.output
    assert site_set.exit_code == 0, site_set.output
    assert shown.exit_code == 0, shown.output
    assert shown.output.splitlines() == [
        "Global: enabled=True mode=overlay",
        "Site news.test: enabled=False mode=default",
        "Effective for news.test: enabled=False mode=-",
    ]


def test_prefs_set_rejects_default_mode_globally(tmp_path: Path) -> None:
    result = CliRunner().invoke(
        vertical_tabs,
        ["prefs", "set", "--preferences-path", str(tmp_path / "p.json"), "--mode", "default"],
    )

    assert result.exit_code == 1
    assert "Invalid mode" in result.output
    assert not (tmp_path / "p.json").exists()


def test_snapshot_accepts_null_window_id(tmp_path: Path) -> None:
    tabs_path = tmp_path / "tabs.json"
    tabs_path.write_text(
        json.dumps([{"id": 5, "title": "Flags", "url": "chrome://flags", "windowId": None}]),
        encoding="utf-8",
    )

    result = CliRunner().invoke(vertical_tabs, ["snapshot", str(tabs_path), "--no-resolve"])

    assert result.exit_code == 0, result.output
    assert "   [5] Flags <chrome://flags> icon=default glyph=F" in result.output.splitlines()
