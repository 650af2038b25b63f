"""Command-line interface for HamLog Pro.

Commands cover initializing the store, logging contacts, listing/searching,
ADIF import/export, grid locator tools, nearby park/summit references,
settings, and syncing with a remote logbook kept in an ADIF file.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from hamlog_pro import __version__
from hamlog_pro.adif import dump_adif, load_adif
from hamlog_pro.errors import ProviderError
from hamlog_pro.geo import Coordinate, decode_locator, encode_locator, locator_distance_km
from hamlog_pro.models import QSO
from hamlog_pro.providers import AdifFileLogbook, LogbookDirectory
from hamlog_pro.reconcile import append_unique, is_duplicate, pending_sync
from hamlog_pro.references import find_nearest_reference, load_catalogs, suggest_references
from hamlog_pro.settings import UserSettings
from hamlog_pro.state import LogbookState, search_contacts
from hamlog_pro.storage import APP_NAME, SQLiteKeyValueStore, get_db_path
from hamlog_pro.sync import enrich_contact, import_remote_logbook, lookup_callsign, push_unsynced

app = typer.Typer(add_completion=False, help=f"{APP_NAME} - Ham radio QSO logger")
grid_app = typer.Typer(help="Maidenhead locator tools")
refs_app = typer.Typer(help="Park (POTA) and summit (SOTA) references")
settings_app = typer.Typer(help="Station settings")
remote_app = typer.Typer(help="Sync with a remote logbook (ADIF file)")
app.add_typer(grid_app, name="grid")
app.add_typer(refs_app, name="refs")
app.add_typer(settings_app, name="settings")
app.add_typer(remote_app, name="remote")
console = Console()


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"{APP_NAME} {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show the version and exit"
    ),
) -> None:
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


# Utilities

def _parse_when(when: Optional[str]) -> datetime:
    """Parse a human-friendly UTC time string.

    Accepts "now" (default) or formats like YYYY-MM-DD, YYYY-MM-DD HH:MM[:SS], or ISO.
    Returns a naive UTC datetime.

    Raises typer.BadParameter for invalid datetime formats.
    """
    if not when or when.lower() == "now":
        return datetime.now(UTC).replace(tzinfo=None, microsecond=0)
    s = when.replace("T", " ").replace("Z", "")
    for fmt in ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M", "%Y-%m-%d"):
        try:
            return datetime.strptime(s, fmt)
        except ValueError:
            continue
    raise typer.BadParameter(f"Unrecognized datetime format: {when}")


def _open_state() -> LogbookState:
    """Open the store and load the log.

    Raises typer.Exit on storage failure.
    """
    try:
        return LogbookState.load(SQLiteKeyValueStore())
    except Exception as e:
        console.print(f"[red]Error opening logbook: {e}[/red]")
        raise typer.Exit(1) from e


def _contacts_table(title: str, rows: List[QSO]) -> Table:
    table = Table(title=title, show_lines=False)
    table.add_column("ID")
    table.add_column("UTC")
    table.add_column("Call", no_wrap=True)
    table.add_column("Band")
    table.add_column("Mode")
    table.add_column("Grid")
    table.add_column("km", justify="right")
    table.add_column("Ref")
    table.add_column("Sync")
    for q in rows:
        table.add_row(
            q.id[:8],
            q.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            q.callsign,
            q.band,
            q.mode,
            q.grid or "",
            "" if q.distance_km is None else str(q.distance_km),
            q.park_ref or q.summit_ref or "",
            "yes" if q.synced else "",
        )
    return table


@app.command()
def init() -> None:
    """Create the logbook database in your user data directory (or HAMLOG_DB_PATH)."""
    try:
        SQLiteKeyValueStore().close()
        console.print(f"Logbook ready at: [bold]{get_db_path()}[/bold]")
    except Exception as e:
        console.print(f"[red]Error initializing logbook: {e}[/red]")
        raise typer.Exit(1) from e


@app.command()
def log(
    call: str = typer.Option(..., help="Station callsign, e.g., K1ABC"),
    when: Optional[str] = typer.Option("now", help="UTC time: 'now' or 'YYYY-MM-DD HH:MM[:SS]'"),
    band: str = typer.Option("40m", help="Band, e.g., 20m"),
    mode: str = typer.Option("SSB", help="Mode, e.g., SSB, FT8"),
    rst_sent: str = typer.Option("59", help="Report sent"),
    rst_rcvd: str = typer.Option("59", help="Report received"),
    power: str = typer.Option("100W", help="Transmit power"),
    name: Optional[str] = typer.Option(None, help="Operator name"),
    qth: Optional[str] = typer.Option(None, help="QTH / city"),
    grid: Optional[str] = typer.Option(None, help="Maidenhead grid of the other station"),
    park: Optional[str] = typer.Option(None, help="POTA reference"),
    summit: Optional[str] = typer.Option(None, help="SOTA reference"),
    notes: Optional[str] = typer.Option(None, help="Notes"),
    lat: Optional[float] = typer.Option(None, help="Your latitude, to suggest references"),
    lon: Optional[float] = typer.Option(None, help="Your longitude, to suggest references"),
    force: bool = typer.Option(False, "--force", help="Save even if it duplicates a logged QSO"),
) -> None:
    """Log a new contact; distance is computed from your locator when both grids are known.

    Name, QTH and grid are pre-filled from earlier contacts with the same call.
    """
    state = _open_state()
    try:
        settings = state.settings
        if lat is not None and lon is not None:
            found_park, found_summit = suggest_references(
                Coordinate(lat, lon),
                pota_enabled=settings.pota_enabled,
                sota_enabled=settings.sota_enabled,
                threshold_degrees=settings.reference_threshold_deg,
            )
            park = park or (found_park.id if found_park else None)
            summit = summit or (found_summit.id if found_summit else None)
        qso = QSO(
            callsign=call,
            timestamp=_parse_when(when),
            band=band,
            mode=mode,
            rst_sent=rst_sent,
            rst_rcvd=rst_rcvd,
            power=power,
            name=name,
            qth=qth,
            grid=grid,
            park_ref=park,
            summit_ref=summit,
            notes=notes,
        )
        found = asyncio.run(
            lookup_callsign(
                LogbookDirectory(state.contacts), qso.callsign, timeout=settings.lookup_timeout_s
            )
        )
        qso = enrich_contact(qso, found, settings.my_locator)

        dupe = next((q for q in state.contacts if is_duplicate(qso, q)), None)
        if dupe is not None and not force:
            console.print(
                f"[yellow]{qso.callsign} was already logged at {dupe.timestamp}Z "
                f"(id={dupe.id[:8]}).[/yellow]"
            )
            if not typer.confirm("Save it anyway?"):
                console.print("Not saved.")
                raise typer.Exit(1)

        saved = state.add(qso)
        distance = f" ({saved.distance_km} km)" if saved.distance_km is not None else ""
        console.print(
            f"Saved QSO id={saved.id[:8]} with {saved.callsign} at {saved.timestamp}Z{distance}"
        )
    except (typer.BadParameter, typer.Exit, typer.Abort):
        raise
    except Exception as e:
        console.print(f"[red]Error logging QSO: {e}[/red]")
        raise typer.Exit(1) from e

    if settings.auto_sync_enabled and settings.remote_adif:
        try:
            count = asyncio.run(
                push_unsynced(
                    state, AdifFileLogbook(settings.remote_adif), timeout=settings.remote_timeout_s
                )
            )
            console.print(f"Auto-sync: pushed {count} QSOs to {settings.remote_adif}")
        except ProviderError as e:
            console.print(f"[red]Auto-sync failed, QSO kept as pending: {e}[/red]")


@app.command("list")
def list_cmd(
    limit: int = typer.Option(20, min=1, max=1000, help="Max QSOs to show"),
    call: Optional[str] = typer.Option(None, help="Filter by callsign contains"),
) -> None:
    """Display recent QSOs in a table, optionally filtering by callsign substring."""
    state = _open_state()
    rows = search_contacts(state.contacts, call=call, limit=limit)
    if not rows:
        console.print("No QSOs found.")
        return
    console.print(_contacts_table(f"Recent QSOs (DB: {get_db_path()})", rows))


@app.command()
def search(
    call: Optional[str] = typer.Option(None, help="Substring filter for call"),
    band: Optional[str] = typer.Option(None, help="Exact band value"),
    mode: Optional[str] = typer.Option(None, help="Exact mode value"),
    grid: Optional[str] = typer.Option(None, help="Exact grid square"),
    limit: int = typer.Option(100, min=1, help="Max results"),
    json_out: bool = typer.Option(False, help="Output as JSON"),
) -> None:
    """Search QSOs by field and print results as a table or JSON array."""
    state = _open_state()
    rows = search_contacts(state.contacts, call=call, band=band, mode=mode, grid=grid, limit=limit)
    if json_out:
        console.print_json(data=[q.model_dump(mode="json") for q in rows])
        return
    console.print(_contacts_table(f"Search results ({len(rows)})", rows))


@app.command()
def remove(qso_id: str = typer.Argument(..., help="QSO ID (or unique prefix) to delete")) -> None:
    """Delete a QSO by id."""
    state = _open_state()
    try:
        matches = [q.id for q in state.contacts if q.id.startswith(qso_id)]
        if len(matches) != 1:
            console.print(f"QSO id={qso_id} not found" if not matches else f"QSO id={qso_id} is ambiguous")
            return
        state.remove(matches[0])
        console.print(f"Deleted QSO id={matches[0]}")
    except Exception as e:
        console.print(f"[red]Error deleting QSO: {e}[/red]")
        raise typer.Exit(1) from e


@app.command()
def clear(yes: bool = typer.Option(False, "--yes", help="Do not ask for confirmation")) -> None:
    """Delete the whole local log."""
    state = _open_state()
    if not yes and not typer.confirm(f"Delete all {len(state.contacts)} QSOs?"):
        raise typer.Abort()
    try:
        removed = state.clear()
        console.print(f"Deleted {removed} QSOs")
    except Exception as e:
        console.print(f"[red]Error clearing log: {e}[/red]")
        raise typer.Exit(1) from e


@app.command()
def export(
    output: Path = typer.Option(..., exists=False, dir_okay=False, writable=True, help="ADIF file to write"),
    call: Optional[str] = typer.Option(None, help="Filter by callsign contains"),
) -> None:
    """Write the log to an ADIF file on disk."""
    state = _open_state()
    qsos = search_contacts(state.contacts, call=call)
    if not qsos:
        console.print("The logbook is empty. Nothing to export.")
        return
    try:
        output.write_text(dump_adif(qsos), encoding="utf-8")
        console.print(f"Exported {len(qsos)} QSOs to {output}")
    except Exception as e:
        console.print(f"[red]Error exporting ADIF: {e}[/red]")
        raise typer.Exit(1) from e


@app.command()
def import_adif(
    src: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="ADIF file to import"),
) -> None:
    """Import QSOs from an ADIF file as local contacts, skipping duplicates."""
    state = _open_state()
    try:
        qsos = load_adif(src.read_text(encoding="utf-8", errors="ignore"))
        added = 0

        def _merge(current: List[QSO]) -> List[QSO]:
            nonlocal added
            merged, added = append_unique(current, qsos)
            return merged

        state.update(_merge)
        console.print(
            f"Imported {added} of {len(qsos)} QSOs. Total now: {len(state.contacts)}."
        )
    except Exception as e:
        console.print(f"[red]Error importing ADIF: {e}[/red]")
        raise typer.Exit(1) from e


@grid_app.command("encode")
def grid_encode(
    lat: float = typer.Option(..., help="Latitude in decimal degrees"),
    lon: float = typer.Option(..., help="Longitude in decimal degrees"),
) -> None:
    """Print the 6 character locator of a position."""
    try:
        console.print(encode_locator(Coordinate(lat, lon)))
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1) from e


@grid_app.command("decode")
def grid_decode(locator: str = typer.Argument(..., help="4 or 6 character locator")) -> None:
    """Print the centre of a locator's square."""
    try:
        c = decode_locator(locator)
        console.print(f"{c.latitude:.4f} {c.longitude:.4f}")
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1) from e


@grid_app.command("distance")
def grid_distance(
    a: str = typer.Argument(..., help="First locator"),
    b: Optional[str] = typer.Argument(None, help="Second locator (default: your locator)"),
) -> None:
    """Print the great-circle distance between two locators in km."""
    try:
        if b is None:
            b = a
            a = _open_state().settings.my_locator or ""
        console.print(f"{locator_distance_km(a, b)} km")
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1) from e


@refs_app.command("near")
def refs_near(
    lat: float = typer.Option(..., help="Latitude in decimal degrees"),
    lon: float = typer.Option(..., help="Longitude in decimal degrees"),
    threshold: float = typer.Option(0.2, help="Search radius in degrees"),
) -> None:
    """Show the park and summit references near a position."""
    try:
        catalogs = load_catalogs()
        origin = Coordinate(lat, lon)
        table = Table(title="Nearby references")
        table.add_column("Program")
        table.add_column("Reference")
        table.add_column("Name")
        for program in ("pota", "sota"):
            ref = find_nearest_reference(catalogs[program], origin, threshold)
            if ref is None:
                table.add_row(program.upper(), "-", "not found nearby")
            else:
                table.add_row(program.upper(), ref.id, ref.name)
        console.print(table)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1) from e


@settings_app.command("show")
def settings_show() -> None:
    """Print the current settings as JSON."""
    console.print_json(data=_open_state().settings.model_dump(mode="json"))


@settings_app.command("set")
def settings_set(
    my_call: Optional[str] = typer.Option(None, help="Your callsign"),
    my_locator: Optional[str] = typer.Option(None, help="Your Maidenhead locator"),
    clear_locator: bool = typer.Option(False, "--clear-locator", help="Forget your locator"),
    pota: Optional[bool] = typer.Option(None, "--pota/--no-pota", help="Suggest POTA references"),
    sota: Optional[bool] = typer.Option(None, "--sota/--no-sota", help="Suggest SOTA references"),
    threshold: Optional[float] = typer.Option(None, help="Reference search radius in degrees"),
    auto_sync: Optional[bool] = typer.Option(
        None, "--auto-sync/--no-auto-sync", help="Push each new QSO to the remote logbook"
    ),
    remote_adif: Optional[Path] = typer.Option(
        None, dir_okay=False, help="ADIF file acting as the remote logbook"
    ),
) -> None:
    """Change one or more settings."""
    if clear_locator and my_locator is not None:
        console.print("[red]Use either --my-locator or --clear-locator[/red]")
        raise typer.Exit(1)
    state = _open_state()
    changes = {
        "my_call": my_call,
        "my_locator": my_locator,
        "pota_enabled": pota,
        "sota_enabled": sota,
        "reference_threshold_deg": threshold,
        "auto_sync_enabled": auto_sync,
        "remote_adif": str(remote_adif) if remote_adif is not None else None,
    }
    try:
        data = state.settings.model_dump()
        data.update({k: v for k, v in changes.items() if v is not None})
        if clear_locator:
            data["my_locator"] = None
        state.set_settings(UserSettings.model_validate(data))
        console.print("Settings saved.")
    except Exception as e:
        console.print(f"[red]Error saving settings: {e}[/red]")
        raise typer.Exit(1) from e


def _remote_path(state: LogbookState, adif: Optional[Path]) -> Path:
    """The --adif option, or the configured remote logbook file."""
    if adif is not None:
        return adif
    if state.settings.remote_adif:
        return Path(state.settings.remote_adif)
    console.print("[red]No remote logbook: pass --adif or run 'settings set --remote-adif'[/red]")
    raise typer.Exit(1)


@remote_app.command("import")
def remote_import(
    adif: Optional[Path] = typer.Option(
        None, dir_okay=False, help="ADIF file acting as the remote logbook (default: settings)"
    ),
) -> None:
    """Merge the remote logbook into the local one."""
    state = _open_state()
    path = _remote_path(state, adif)
    try:
        report = asyncio.run(
            import_remote_logbook(
                state, AdifFileLogbook(path), timeout=state.settings.remote_timeout_s
            )
        )
        console.print(
            f"Import OK: {report.imported} new, {report.marked_synced} marked synced, "
            f"{report.rejected} rejected. Total now: {len(report.contacts)}."
        )
    except Exception as e:
        console.print(f"[red]Error importing remote logbook: {e}[/red]")
        raise typer.Exit(1) from e


@remote_app.command("push")
def remote_push(
    adif: Optional[Path] = typer.Option(
        None, dir_okay=False, help="ADIF file acting as the remote logbook (default: settings)"
    ),
) -> None:
    """Upload unsynced contacts and mark them synced."""
    state = _open_state()
    path = _remote_path(state, adif)
    if not pending_sync(state.contacts):
        console.print("Nothing to sync.")
        return
    try:
        count = asyncio.run(
            push_unsynced(state, AdifFileLogbook(path), timeout=state.settings.remote_timeout_s)
        )
        console.print(f"Synced {count} QSOs.")
    except Exception as e:
        console.print(f"[red]Error syncing: {e}[/red]")
        raise typer.Exit(1) from e


def main() -> None:  # pragma: no cover - exercised via CLI
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
