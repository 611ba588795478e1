"""CLI entry point: refresh optional plugins, show installed and staged archives."""

from __future__ import annotations

from pathlib import Path

import click
from rich.console import Console

from .core.config import load_config
from .core.log import setup_logging
from .core.utils import human_size, short_path
from .plugins import PluginArchiveError, build_resolver, read_manifest
from .plugins.models import ARCHIVE_EXT, DISABLE_SUFFIX, PIN_SUFFIX

console = Console()


@click.group()
@click.option("--home", type=click.Path(file_okay=False, path_type=Path), default=None, help="Config home")
@click.option(
    "--plugins-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Host plugin directory",
)
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.pass_context
def cli(ctx: click.Context, home: Path | None, plugins_dir: Path | None, verbose: bool):
    """Activate optional plugins, without a restart where possible."""
    config = load_config(home=home, plugins_dir=plugins_dir, verbose=verbose)
    setup_logging(config.verbose)
    ctx.obj = config


@cli.command()
@click.pass_obj
def refresh(config):
    """Stage, filter, and activate optional plugins from every source."""
    if not config.sources:
        console.print("no plugin sources configured", style="dim")
    with build_resolver(config) as resolver:
        restart = resolver.refresh()
    if restart:
        console.print("restart required", style="bold")
    else:
        console.print("up to date", style="dim")


@cli.command()
@click.pass_obj
def status(config):
    """List plugins installed in the plugin directory."""
    plugins_dir = config.plugins_dir
    archives = sorted(plugins_dir.glob(f"*{ARCHIVE_EXT}")) if plugins_dir.is_dir() else []
    if not archives:
        console.print(f"no plugins installed in {short_path(plugins_dir)}", style="dim")
        return
    for archive in archives:
        try:
            manifest = read_manifest(archive)
        except PluginArchiveError as e:
            console.print(f"  [red]{archive.name}[/red]  [dim]{e}[/dim]")
            continue
        flags = []
        if Path(f"{archive}{PIN_SUFFIX}").exists():
            flags.append("pinned")
        if Path(f"{archive}{DISABLE_SUFFIX}").exists():
            flags.append("disabled")
        console.print(
            f"  [bold]{manifest.name}[/bold]  {manifest.version}"
            + (f"  [dim]{', '.join(flags)}[/dim]" if flags else "")
        )


@cli.command()
@click.pass_obj
def staged(config):
    """List archives in the staging directory."""
    staging_dir = config.staging_dir
    archives = sorted(staging_dir.glob(f"*{ARCHIVE_EXT}")) if staging_dir.is_dir() else []
    if not archives:
        console.print(f"nothing staged in {short_path(staging_dir)}", style="dim")
        return
    for archive in archives:
        console.print(f"  {archive.name}  [dim]{human_size(archive.stat().st_size)}[/dim]")


def main():
    cli()


if __name__ == "__main__":
    main()
