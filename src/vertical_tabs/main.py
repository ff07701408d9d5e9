"""CLI entrypoint for vertical-tabs."""

import logging
from pathlib import Path

import rich_click as click

from vertical_tabs import __version__
from vertical_tabs.controllers import (
    FaviconResolveCommand,
    MoveCommand,
    PrefsSetCommand,
    PrefsShowCommand,
    SnapshotCommand,
    TabsCliController,
)

click.rich_click.USE_MARKDOWN = True
CONTROLLER = TabsCliController()
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@click.group()
@click.version_option(version=__version__, prog_name="vertical-tabs")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Root logger level.",
)
def vertical_tabs(log_level: str) -> None:
    """Vertical tab panel sync engine CLI."""

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@vertical_tabs.group()
def favicon() -> None:
    """Favicon resolution commands."""


@favicon.command("resolve")
@click.argument("urls", nargs=-1, required=True)
def favicon_resolve(urls: tuple[str, ...]) -> None:
    """Resolve favicons for the origins of the given URLs through the tier chain."""

    _emit_lines(CONTROLLER.resolve_favicons(FaviconResolveCommand(urls=urls)))


@vertical_tabs.command("snapshot")
@click.argument("tabs_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--resolve/--no-resolve",
    default=True,
    show_default=True,
    help="Resolve missing favicons over the network.",
)
def snapshot(tabs_path: Path, resolve: bool) -> None:
    """Load tabs from a JSON file, run the sync pipeline and print the final snapshot."""

    _emit_lines(CONTROLLER.snapshot(SnapshotCommand(tabs_path=tabs_path, resolve=resolve)))


@vertical_tabs.command("move")
@click.argument("tabs_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--tab-id", type=int, required=True, help="Tab to move.")
@click.option("--index", type=int, required=True, help="Target index inside the partition.")
@click.option(
    "--pin/--unpin",
    default=None,
    help="Change pinned state before moving. Omit to keep the current state.",
)
def move(tabs_path: Path, tab_id: int, index: int, pin: bool | None) -> None:
    """Apply a MOVE_TAB command to tabs loaded from a JSON file."""

    try:
        lines = CONTROLLER.move(
            MoveCommand(tabs_path=tabs_path, tab_id=tab_id, index=index, pin=pin),
        )
    except ValueError as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


@vertical_tabs.group()
def prefs() -> None:
    """Panel preference commands."""


@prefs.command("show")
@click.option(
    "--preferences-path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Preferences JSON file.",
)
@click.option("--hostname", default=None, help="Also print the effective preference here.")
def prefs_show(preferences_path: Path | None, hostname: str | None) -> None:
    """Show global and per-site preferences."""

    _emit_lines(
        CONTROLLER.show_prefs(
            PrefsShowCommand(preferences_path=preferences_path, hostname=hostname),
        ),
    )


@prefs.command("set")
@click.option(
    "--preferences-path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Preferences JSON file.",
)
@click.option("--hostname", default=None, help="Site to configure; global when omitted.")
@click.option("--enabled/--disabled", default=None, help="Enable or disable the panel.")
@click.option(
    "--mode",
    type=click.Choice(("push", "overlay", "default")),
    default=None,
    help="Display mode. `default` (sites only) follows the global mode.",
)
def prefs_set(
    preferences_path: Path | None,
    hostname: str | None,
    enabled: bool | None,
    mode: str | None,
) -> None:
    """Update global or per-site preferences."""

    try:
        lines = CONTROLLER.set_prefs(
            PrefsSetCommand(
                preferences_path=preferences_path,
                hostname=hostname,
                enabled=enabled,
                mode=mode,
            ),
        )
    except ValueError as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    vertical_tabs()
