"""Helpers shared by the CLI commands."""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn, Optional

import typer
import yaml

from ..config import DeployerConfig, Environment
from ..errors import OsDeployError
from ..modules.kubectl import KubectlClient, detect_kubectl

logger = logging.getLogger("osdeploy.cli")


@dataclass
class CliState:
    """Global options, stored on the root typer context."""
    debug: bool = False
    config_path: Optional[str] = None


def get_state(ctx: typer.Context) -> CliState:
    return ctx.obj if isinstance(ctx.obj, CliState) else CliState()


def load_config(ctx: typer.Context) -> DeployerConfig:
    state = get_state(ctx)
    try:
        return DeployerConfig.load(state.config_path)
    except (OSError, ValueError, yaml.YAMLError) as e:
        logger.error(f"❌ Failed to load configuration: {e}")
        raise typer.Exit(code=1)


def make_client(ctx: typer.Context, config: DeployerConfig, manifest_dir: Path):
    """Resolve the kubectl binding and build the resource client."""
    try:
        environment = Environment(kubectl=detect_kubectl(), manifest_dir=Path(manifest_dir))
    except OsDeployError as e:
        fail(ctx, e)
    return environment, KubectlClient(environment, poll_interval=config.timeouts.poll_interval)


def fail(ctx: typer.Context, error: OsDeployError) -> NoReturn:
    """Report a failure with its diagnostics and hint commands, then exit 1."""
    logger.error(f"❌ {error.message}")
    if error.diagnostics:
        logger.error(f"Diagnostic output:\n{error.diagnostics.strip()}")
    for hint in error.hints:
        if hint:
            logger.info(f"👉 {hint}")
    if get_state(ctx).debug:
        logger.debug("Failure details", exc_info=error)
    raise typer.Exit(code=1)
