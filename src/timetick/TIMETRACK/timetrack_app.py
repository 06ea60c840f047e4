# TIMETRACK/timetrack_app.py
import csv
import io
import json
from datetime import datetime
from typing import List, NoReturn, Optional

import dateparser  # For natural language parsing
import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from timetick.config import Settings, app_dir
from timetick.errors import TimetickError
from timetick.IMPORT.importer import run_import
from timetick.TIMETRACK import database, tracker
from timetick.TIMETRACK.report import PERIODS, TIME_FORMAT, collect_report, format_duration
from timetick.utils.logging import configure_logging

console = Console()
timetrack_app = typer.Typer(no_args_is_help=True)

OUTPUT_FORMATS = ("text", "csv", "json")
# Duration column of CSV rows that end before they start
REJECTED_MARKER = "rejected"


def fail(error) -> NoReturn:
    console.print(f"[bold red]Error:[/bold red] {escape(str(error))}")
    raise typer.Exit(code=1)


def parse_time_arg(time_str: Optional[str]) -> Optional[datetime]:
    if not time_str:
        return None
    try:
        # Try ISO format first for explicit parsing
        parsed = datetime.fromisoformat(time_str)
    except ValueError:
        # Then try natural language parsing
        parsed = dateparser.parse(time_str)
        if parsed is None:
            fail(f"Could not parse time: '{time_str}'")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def select_option(title: str, options: List[str]) -> str:
    """Ask the user to pick one of `options` by number."""
    console.print(f"[bold]{escape(title)}[/bold]\n")
    for i, option in enumerate(options, start=1):
        console.print(f"  {i}. {escape(option)}")
    console.print()
    while True:
        selection = typer.prompt(f"Your selection (1-{len(options)})", type=int)
        if 1 <= selection <= len(options):
            return options[selection - 1]
        console.print(f"[yellow]Invalid selection. Please enter a number (1-{len(options)}).[/yellow]")


def ask_note() -> str:
    return typer.prompt("Enter a note (press Enter to skip)", default="", show_default=False)


def complete_sheet_name(incomplete: str) -> List[str]:
    try:
        names = database.list_sheet_names()
    except TimetickError:
        return []
    return [name for name in names if name.startswith(incomplete)]


def complete_period(incomplete: str) -> List[str]:
    return [p for p in PERIODS if p.startswith(incomplete)]


# --- Commands ---

@timetrack_app.callback()
def main():
    """
    timetick: a simple command-line time tracker.
    """
    settings = Settings.load()
    configure_logging(app_dir(), settings.log_level)
    try:
        database.create_tables()  # Ensure tables exist when any command is run
    except TimetickError as e:
        fail(e)


@timetrack_app.command()
def sheet(sheet_name: Optional[str] = typer.Argument(
        None, help="Sheet to switch to. Created if it does not exist.",
        autocompletion=complete_sheet_name)):
    """
    Switch to a timesheet, creating it if necessary.
    Without a name, pick one of the existing sheets.
    """
    try:
        if not sheet_name:
            names = database.list_sheet_names()
            if not names:
                console.print("No timesheets created yet. Use 'timetick sheet <name>' to create one.")
                return
            sheet_name = select_option("Select a sheet", names)

        created = tracker.select_or_create_sheet(sheet_name)
    except (TimetickError, ValueError) as e:
        fail(e)

    if created:
        console.print(f"Created and changed sheet to: [bold green]{escape(sheet_name)}[/bold green]")
    else:
        console.print(f"Changed sheet to: [bold cyan]{escape(sheet_name)}[/bold cyan]")


@timetrack_app.command("list")
def list_sheets():
    """
    List the available timesheets.
    """
    try:
        sheets = database.get_all_sheets()
    except TimetickError as e:
        fail(e)

    if not sheets:
        console.print("No timesheets created yet. Use 'timetick sheet <name>' to create one.")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("ID")
    table.add_column("Sheet Name")
    table.add_column("Current")
    for s in sheets:
        is_current = "[bold green]YES[/bold green]" if s.active else ""
        table.add_row(str(s.id), escape(s.name), is_current)
    console.print(table)


@timetrack_app.command("now")
def show_now():
    """
    Show the entry currently being tracked.
    """
    try:
        status = tracker.open_entry_status()
    except TimetickError as e:
        fail(e)

    if status is None:
        console.print("No entry currently running.")
        return

    table = Table(show_header=True, header_style="bold green")
    table.add_column("Sheet")
    table.add_column("Start Time")
    table.add_column("Duration")
    table.add_column("Note")
    table.add_row(
        f"[bold cyan]{escape(status.sheet.name) if status.sheet else 'Unknown'}[/bold cyan]",
        status.entry.start_time.strftime("%Y-%m-%d %H:%M:%S"),
        format_duration(status.elapsed),
        escape(status.entry.note) if status.entry.note else "[italic dim]No note[/italic dim]",
    )
    console.print(table)


@timetrack_app.command("start")
def start_tracking(
        note: Optional[str] = typer.Argument(None, help="What you are working on."),
        at: Optional[str] = typer.Option(None, "--at", "-a",
                                         help="Start time (e.g., '5 minutes ago', '2024-01-01 10:00').")):
    """
    Start tracking time on the active sheet.
    """
    start_time = parse_time_arg(at)
    try:
        entry = tracker.start(note or "", at=start_time)
        active = database.get_sheet_by_id(entry.sheet_id)
    except TimetickError as e:
        fail(e)

    console.print(f"Started tracking time on sheet '[bold cyan]{escape(active.name)}[/bold cyan]'...")


@timetrack_app.command("stop")
def stop_tracking(
        note: Optional[str] = typer.Argument(None, help="Note to attach if the entry has none yet."),
        at: Optional[str] = typer.Option(None, "--at", "-a", help="Stop time.")):
    """
    Stop tracking time. Asks for a note when the entry has none.
    """
    end_time = parse_time_arg(at)
    settings = Settings.load()
    try:
        entry = tracker.stop(note or "", prompt=ask_note if settings.prompt_for_note else None, at=end_time)
    except TimetickError as e:
        fail(e)

    duration = format_duration(entry.end_time - entry.start_time)
    console.print(f"Tracking stopped! ({duration})")


# Aliases under the timetrap names
timetrack_app.command("in", hidden=True)(start_tracking)
timetrack_app.command("out", hidden=True)(stop_tracking)


@timetrack_app.command("display")
def display(
        period: str = typer.Argument("day", help="Period to show: day, week, month or year.",
                                     autocompletion=complete_period),
        format: str = typer.Option("text", "--format", "-f", help="Output format: text, csv, json.")):
    """
    Display tracked entries of the current day, week, month or year.
    """
    if format not in OUTPUT_FORMATS:
        fail(f"Unsupported format: '{format}'")

    try:
        reports = collect_report(period)
    except TimetickError as e:
        fail(e)

    if format == "csv":
        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(["sheet", "start", "end", "duration", "note"])
        for sheet_report in reports:
            for row in sheet_report.rows:
                writer.writerow([sheet_report.name, row.start_time.isoformat(), row.end_time.isoformat(),
                                 format_duration(row.duration), row.note])
            for start_time, end_time, note in sheet_report.rejected:
                writer.writerow([sheet_report.name, start_time.isoformat(), end_time.isoformat(),
                                 REJECTED_MARKER, note])
        typer.echo(buffer.getvalue(), nl=False)
        return

    if format == "json":
        output_data = []
        for sheet_report in reports:
            output_data.append({
                "sheet": sheet_report.name,
                "total": format_duration(sheet_report.total),
                "entries": [
                    {
                        "start_time": row.start_time.isoformat(),
                        "end_time": row.end_time.isoformat(),
                        "duration": format_duration(row.duration),
                        "note": row.note,
                    }
                    for row in sheet_report.rows
                ],
                # Entries ending before they start; not counted in the total
                "rejected": [
                    {"start_time": start_time.isoformat(), "end_time": end_time.isoformat(), "note": note}
                    for start_time, end_time, note in sheet_report.rejected
                ],
            })
        typer.echo(json.dumps(output_data, indent=2))
        return

    if not reports:
        console.print(f"No entries for this {period}.")
        return

    for sheet_report in reports:
        console.print(f"\nTimesheet: [bold cyan]{escape(sheet_report.name)}[/bold cyan]")

        table = Table(show_header=True, header_style="bold blue")
        table.add_column("Day")
        table.add_column("Start")
        table.add_column("End")
        table.add_column("Duration")
        table.add_column("Notes")

        for row in sheet_report.rows:
            table.add_row(
                row.day,
                row.start_time.strftime(TIME_FORMAT),
                row.end_time.strftime(TIME_FORMAT),
                format_duration(row.duration),
                escape(row.note),
            )

        table.add_section()
        table.add_row(
            Text("Total", style="bold"), "", "", format_duration(sheet_report.total), "",
            style="bold blue",
        )
        console.print(table)

        if sheet_report.rejected:
            console.print(
                f"[bold yellow]Warning:[/bold yellow] skipped {len(sheet_report.rejected)} "
                f"entries that end before they start."
            )


@timetrack_app.command("import")
def import_command(
        url: Optional[str] = typer.Argument(None, help="Base URL of the entry source."),
        sheet_name: Optional[str] = typer.Option(None, "--sheet", "-s",
                                                 help="Sheet for entries that do not name one.")):
    """
    Import entries from an external source (e.g. a Telegram bot).
    """
    settings = Settings.load()
    url = url or settings.import_url
    if not url:
        fail("No URL given and no 'import_url' configured. Use 'timetick config set import_url <url>'.")

    try:
        result = run_import(url, sheet_name or settings.import_sheet, settings.request_timeout_seconds)
    except TimetickError as e:
        fail(e)

    console.print(result.message)
    if not result.ok:
        fail(result.error)
