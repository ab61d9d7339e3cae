from pathlib import Path

import typer

from ..config import DEFAULT_CONFIG_PATHS, DeployerConfig
from .common import load_config

app = typer.Typer(help="Inspect or create the deployer configuration")


@app.command("show")
def show(ctx: typer.Context):
    """Print the effective configuration as YAML."""
    typer.echo(load_config(ctx).to_yaml())


@app.command("init")
def init(
    path: Path = typer.Option(DEFAULT_CONFIG_PATHS[0], "--path", "-p", help="Where to write the file"),
    overwrite: bool = typer.Option(False, "--overwrite", help="Replace an existing file"),
):
    """Write the default configuration to a file."""
    if path.exists() and not overwrite:
        typer.echo(f"❌ {path} already exists (use --overwrite to replace it)", err=True)
        raise typer.Exit(code=1)
    written = DeployerConfig().save(path)
    typer.echo(f"📝 Wrote default configuration to {written}")
