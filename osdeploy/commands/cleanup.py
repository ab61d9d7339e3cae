"""Minimal teardown for disposable test environments.

Removes every OpenSearch resource without confirmation and without the
certificate backup. Use ``deploy --cleanup`` to keep the certificates.
"""
from pathlib import Path

import typer

from ..config import Config, RunOptions
from ..modules.cleanup import CleanupEngine
from .common import load_config, make_client

app = typer.Typer(help="Remove all OpenSearch resources without safeguards")


@app.callback(invoke_without_command=True)
def cleanup(
    ctx: typer.Context,
    manifest_dir: Path = typer.Option(Config.MANIFEST_DIR, "--manifest-dir", "-m"),
):
    """Shut down all OpenSearch services. Certificates are NOT backed up."""
    config = load_config(ctx)
    options = RunOptions(cleanup=True, force=True, skip_backup=True, manifest_dir=manifest_dir)
    _, client = make_client(ctx, config, manifest_dir)

    typer.echo("Shutting down OpenSearch Kubernetes services...")
    report = CleanupEngine(client, config, options, backup=False).teardown()

    typer.echo("")
    if report.failures:
        typer.echo(f"⚠️  {len(report.failures)} resource(s) could not be removed:")
        for result in report.failures:
            typer.echo(f"  {result.ref}: {result.message}")
        raise typer.Exit(code=1)
    typer.echo("✅ OpenSearch shutdown complete!")
    typer.echo("Note: Any data stored in the persistent volumes has been deleted.")
