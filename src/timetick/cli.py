import typer
from dataclasses import asdict
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from timetick.config import Settings, settings_path
from timetick.TIMETRACK.timetrack_app import timetrack_app

console = Console()

config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show():
    """Show current settings."""
    settings = Settings.load()
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Setting")
    table.add_column("Value")
    for key, value in asdict(settings).items():
        table.add_row(key, escape(str(value)) if value is not None else "[dim]-[/dim]")
    console.print(table)


@config_app.command("set")
def config_set(
    key: str = typer.Argument(..., help="Setting name, see 'timetick config show'."),
    value: str = typer.Argument(..., help="New value. Use 'none' to clear an optional setting."),
):
    """Change one setting and save it."""
    settings = Settings.load()
    try:
        settings.update(key, value)
    except (KeyError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {escape(str(e.args[0]))}")
        raise typer.Exit(code=1)
    settings.save()
    console.print(f"[green]Set {key} = {escape(str(getattr(settings, key)))}[/green]")


@config_app.command("path")
def config_path():
    """Print the location of the settings file."""
    typer.echo(str(settings_path()))


app = timetrack_app
app.add_typer(config_app, name="config", help="View or change timetick settings.")


def main():
    app(prog_name="timetick")


if __name__ == "__main__":
    main()
