import logging
import sys
from typing import Optional

import click
import typer

from osdeploy.commands import cleanup, config, deploy, status, troubleshoot, tunnel
from osdeploy.commands.common import CliState
from osdeploy.config import RunOptions
from osdeploy.logging import setup_logging

app = typer.Typer(
    help="Deploy, verify and tear down OpenSearch on Kubernetes.",
    no_args_is_help=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)

# Add all command groups
app.add_typer(deploy.app, name="deploy")
app.add_typer(cleanup.app, name="cleanup")
app.add_typer(status.app, name="status")
app.add_typer(tunnel.app, name="tunnel")
app.add_typer(troubleshoot.app, name="troubleshoot")
app.add_typer(config.app, name="config")


@app.command("help")
def help_command(ctx: typer.Context):
    """Show this help message."""
    typer.echo(ctx.parent.get_help() if ctx.parent else ctx.get_help())


# Global options callback
@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
    config_path: Optional[str] = typer.Option(
        None, "--config", "-c", help="Path to an osdeploy YAML configuration file"
    ),
):
    """OSDeploy - OpenSearch on Kubernetes. Runs 'deploy' when no command is given."""
    setup_logging(debug)
    ctx.obj = CliState(debug=debug, config_path=config_path)
    if debug:
        logging.getLogger("osdeploy").debug("Debug mode enabled")
    if ctx.invoked_subcommand is None:
        deploy.run_deploy(ctx, RunOptions())


def main() -> None:
    """Console entry point. Usage errors exit 1 instead of click's 2."""
    debug_mode = "--debug" in sys.argv or "-d" in sys.argv
    try:
        rv = app(standalone_mode=False)
    except click.UsageError as e:
        e.show()
        sys.exit(1)
    except click.exceptions.Abort:
        typer.echo("Aborted!", err=True)
        sys.exit(1)
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    except Exception as e:
        if debug_mode:
            import traceback
            logging.getLogger("osdeploy").error(f"Unhandled exception: {e}\n{traceback.format_exc()}")
        else:
            logging.getLogger("osdeploy").error(f"Error: {e}")
        sys.exit(1)
    sys.exit(rv if isinstance(rv, int) else 0)


if __name__ == "__main__":
    main()
