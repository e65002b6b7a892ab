"""CLI tools: cronkeeper init, cronkeeper reload, cronkeeper cron ..."""

from __future__ import annotations

import logging
from importlib import metadata

import typer
from rich.console import Console

from cronkeeper.cli.cron import cron_app
from cronkeeper.config import ConfigLoadError, ConfigManager, YAMLConfigLoader

app = typer.Typer(
    name="cronkeeper",
    help="cronkeeper - persistent job scheduler with failure alerts.",
)
app.add_typer(cron_app, name="cron")

console = Console()


def configure_logging(level: str, fmt: str) -> None:
    logging.basicConfig(level=level.upper(), format=fmt)


def _version_callback(value: bool) -> None:
    if not value:
        return
    try:
        version = metadata.version("cronkeeper")
    except metadata.PackageNotFoundError:
        version = "unknown"
    typer.echo(f"cronkeeper {version}")
    raise typer.Exit(0)


@app.callback()
def main_callback(
    config: str = typer.Option("", "--config", help="Path to cronkeeper.yaml."),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Print version and exit.",
    ),
) -> None:
    """Load configuration and set up logging before any command runs."""
    try:
        manager = ConfigManager.load(config_path=config or None)
    except ConfigLoadError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(2) from exc
    cfg = manager.get()
    configure_logging(cfg.logging.level, cfg.logging.format)


@app.command("init")
def init_command(
    path: str = typer.Option(".", "--path", help="Output directory"),
    force: bool = typer.Option(False, "--force", help="Overwrite existing cronkeeper.yaml"),
) -> None:
    """Generate default cronkeeper.yaml in target directory."""
    try:
        output_path = YAMLConfigLoader.write_default(path, force=force)
    except FileExistsError as exc:
        console.print(f"[yellow]{exc}[/yellow] (use --force to overwrite)")
        raise typer.Exit(1) from exc
    console.print(f"[green]Created[/green] {output_path}")


@app.command("reload")
def reload_command(
    config: str = typer.Option("", "--config", help="Optional config file path"),
) -> None:
    """Reload configuration and print applied/skipped changes."""
    result = ConfigManager.instance().reload(config_path=config or None)
    console.print("[bold]Reload Result[/bold]")
    console.print(f"Applied: {len(result.applied)}")
    for key, value in result.applied.items():
        console.print(f"  + {key} = {value!r}")
    console.print(f"Skipped: {len(result.skipped)}")
    for key, value in result.skipped.items():
        console.print(f"  - {key} = {value!r} (requires restart)")


def main() -> None:
    """Console-script entrypoint."""
    app()


if __name__ == "__main__":
    main()
