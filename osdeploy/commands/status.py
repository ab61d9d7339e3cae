import typer

from ..modules.plan import status_selector
from .common import load_config, make_client

app = typer.Typer()


@app.callback(invoke_without_command=True)
def status(ctx: typer.Context):
    """Show current OpenSearch resources."""
    config = load_config(ctx)
    _, client = make_client(ctx, config, ".")
    selector = status_selector(config)
    typer.echo(f"📡 Resources matching {selector}")
    result = client.list_resources(["pvc", "configmap", "deployment", "pod"], selector)
    if not result.ok:
        typer.echo(f"❌ {result.diagnostic}", err=True)
        raise typer.Exit(code=1)
    typer.echo(result.output.rstrip() or "No resources found")
