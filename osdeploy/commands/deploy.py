"""OpenSearch Deployment Command.

Deploys the three-node OpenSearch cluster and Dashboards, or with
``--cleanup`` removes everything the deployment created.
"""

import logging
from pathlib import Path

import typer

from ..config import Config, DeployerConfig, RunOptions
from ..errors import ConfirmationDeclined, OsDeployError
from ..modules.cleanup import CleanupEngine
from ..modules.models import DeploymentPlan
from ..modules.orchestrator import DeploymentOrchestrator
from ..modules.plan import build_deployment_plan, build_minimal_plan
from .common import fail, load_config, make_client

logger = logging.getLogger("osdeploy.deploy")

app = typer.Typer(help="Deploy or clean up the OpenSearch cluster")


def describe_plan(plan: DeploymentPlan) -> None:
    """Print the plan without touching the cluster."""
    typer.echo("\n--- Deployment Plan ---")
    for index, step in enumerate(plan, 1):
        typer.echo(f"{index}. {step.name}: {step.description}")
        for ref in step.resources:
            typer.echo(f"     apply {ref.manifest} ({ref})")
        if step.readiness is not None:
            typer.echo(f"     wait for {step.readiness.describe()} (timeout {step.timeout:.0f}s)")
    typer.echo("-----------------------\n")


def run_cleanup(ctx: typer.Context, config: DeployerConfig, options: RunOptions) -> None:
    _, client = make_client(ctx, config, options.manifest_dir)
    engine = CleanupEngine(client, config, options)
    try:
        report = engine.teardown()
    except ConfirmationDeclined:
        logger.info("Cleanup cancelled")
        return
    if report.backup_error:
        logger.error(f"⚠️  Certificates were NOT backed up: {report.backup_error}")
    if not report.success:
        raise typer.Exit(code=1)


def run_deploy(ctx: typer.Context, options: RunOptions) -> None:
    config = load_config(ctx)

    if options.dry_run:
        describe_plan(build_minimal_plan(config) if options.minimal else build_deployment_plan(config))
        return

    if options.cleanup:
        run_cleanup(ctx, config, options)
        return

    environment, client = make_client(ctx, config, options.manifest_dir)
    orchestrator = DeploymentOrchestrator(client, config, options, environment)
    try:
        orchestrator.run()
    except OsDeployError as e:
        fail(ctx, e)

    logger.info("OpenSearch deployment completed successfully!")
    logger.info(f"You can access OpenSearch Dashboards at {config.service.dashboard_url}")
    logger.info(f"Default credentials: {config.health.username}/{config.health.password}")
    if orchestrator.backup:
        logger.info(f"Previous certificates were backed up to: {orchestrator.backup.destination_path}")


@app.callback(invoke_without_command=True)
def deploy(
    ctx: typer.Context,
    cleanup: bool = typer.Option(False, "--cleanup", help="Remove all OpenSearch resources"),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation prompts during cleanup"),
    skip_backup: bool = typer.Option(
        False, "--skip-backup", help="Do not back up certificates before deleting them"
    ),
    minimal: bool = typer.Option(
        False, "--minimal", help="Reduced deployment for disposable test environments"
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show the plan without making changes"),
    manifest_dir: Path = typer.Option(
        Config.MANIFEST_DIR, "--manifest-dir", "-m", help="Directory holding the manifest files"
    ),
    backup_root: Path = typer.Option(
        Config.BACKUP_ROOT, "--backup-root", help="Where certificate backups are written"
    ),
):
    """Deploy the OpenSearch cluster, or remove it with --cleanup.

    Example:
        osdeploy deploy --manifest-dir k8s/
        osdeploy deploy --cleanup --force
    """
    options = RunOptions(
        cleanup=cleanup,
        force=force,
        skip_backup=skip_backup,
        minimal=minimal,
        dry_run=dry_run,
        manifest_dir=manifest_dir,
        backup_root=backup_root,
    )
    run_deploy(ctx, options)
