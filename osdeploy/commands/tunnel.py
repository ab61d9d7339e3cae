import typer

from ..config import Environment
from ..errors import OsDeployError
from ..modules.kubectl import detect_kubectl
from ..modules.tunnel import PortForwardManager
from .common import fail, load_config

app = typer.Typer(help="Local port forwarding to OpenSearch and Dashboards")


def _manager(ctx: typer.Context) -> PortForwardManager:
    config = load_config(ctx)
    try:
        environment = Environment(kubectl=detect_kubectl())
    except OsDeployError as e:
        fail(ctx, e)
    return PortForwardManager(environment, config.tunnel, config.health)


@app.command("start")
def start(ctx: typer.Context):
    """Start port forwarding for OpenSearch and Dashboards."""
    manager = _manager(ctx)
    typer.echo("Starting port forwarding...")
    try:
        manager.start()
    except OsDeployError as e:
        fail(ctx, e)
    typer.echo("\nPort forwarding is active:")
    for forward in manager.forwards():
        typer.echo(f"{forward.name + ':':<12}{forward.url}")


@app.command("stop")
def stop(ctx: typer.Context):
    """Stop all port forwarding processes."""
    typer.echo("Stopping port forwarding...")
    stopped = _manager(ctx).stop()
    if not stopped:
        typer.echo("No port forwarding processes were running")


@app.command("status")
def status(ctx: typer.Context):
    """Show current port forwarding status."""
    typer.echo("Current port forwarding status:\n")
    for entry in _manager(ctx).status():
        forward = entry.forward
        if entry.active:
            typer.echo(f"{forward.name}: ACTIVE ({forward.url})")
            if entry.responding:
                typer.echo(f"{'':11}Cluster is responding ({entry.health.status.value})")
        else:
            typer.echo(f"{forward.name}: INACTIVE")
