import typer

from ..modules.troubleshoot import diagnose_certificates
from .common import load_config, make_client

app = typer.Typer(help="Troubleshooting helpers")


@app.command("certs")
def certs(ctx: typer.Context):
    """Diagnose certificate generation timeouts."""
    config = load_config(ctx)
    _, client = make_client(ctx, config, ".")

    typer.echo("=== OpenSearch Certificate Generation Troubleshooting ===\n")
    report = diagnose_certificates(client, config.certificates)
    for index, (title, body) in enumerate(report.sections, 1):
        typer.echo(f"{index}. {title}")
        typer.echo(body or "(no output)")
        typer.echo("")

    if not report.ok:
        typer.echo(f"❌ {report.fatal}", err=True)
        raise typer.Exit(code=1)
    typer.echo("=== End Troubleshooting ===")
