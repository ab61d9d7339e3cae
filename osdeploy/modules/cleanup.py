"""Idempotent teardown of OpenSearch resources.

Deletion walks the plan's resources in reverse creation order. A missing
resource counts as converged and any other failure is logged and skipped,
so one resource never blocks the others. The certificate claim is backed
up before anything is deleted unless backups are disabled.
"""
import logging
import time
from typing import Callable, List, Optional

import typer

from ..config import DeployerConfig, RunOptions
from ..errors import BackupFailure, ConfirmationDeclined
from .certificates import CertificateLifecycleManager
from .models import CleanupReport, DeleteResult, DeleteStatus, ResourceKind, ResourceRef
from .plan import build_deployment_plan, certificate_job_ref, storage_refs

logger = logging.getLogger("osdeploy.cleanup")

TEARDOWN_WARNING = [
    "This will remove ALL OpenSearch resources, including:",
    "- All OpenSearch and Dashboards pods",
    "- All services and configmaps",
    "- All PersistentVolumeClaims and data",
    "- All certificates",
]


def prompt_yes(question: str) -> bool:
    """Typed confirmation: only a case-insensitive "yes" proceeds."""
    reply = typer.prompt(question, default="", show_default=False)
    return reply.strip().lower() == "yes"


class CleanupEngine:
    """Deletes every resource the deployer creates."""

    def __init__(
        self,
        client,
        config: DeployerConfig,
        options: RunOptions,
        certificates: Optional[CertificateLifecycleManager] = None,
        backup: bool = True,
        confirm: Callable[[str], bool] = prompt_yes,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.config = config
        self.options = options
        self.backup_enabled = backup and not options.skip_backup
        self.certificates = certificates or CertificateLifecycleManager(
            client, config.certificates, helper_timeout=config.timeouts.helper_pod,
        )
        self.confirm = confirm
        self.sleep = sleep

    @property
    def claim_ref(self) -> ResourceRef:
        return ResourceRef(ResourceKind.PERSISTENT_VOLUME_CLAIM, self.config.certificates.claim)

    def resources(self) -> List[ResourceRef]:
        return build_deployment_plan(self.config).teardown_order()

    def teardown(self) -> CleanupReport:
        """Full teardown, with confirmation unless forced."""
        logger.info("Preparing to remove all OpenSearch resources...")
        if not self.options.force:
            for line in TEARDOWN_WARNING:
                logger.warning(line)
            if not self.confirm("Are you sure you want to proceed? (yes/no)"):
                raise ConfirmationDeclined("Cleanup cancelled")

        report = CleanupReport()
        resources = self.resources()
        if self.backup_enabled and self.claim_ref in resources:
            self._protect_certificates(report)

        for ref in resources:
            report.results.append(self.delete(ref))

        self._settle()
        self._log_summary(report)
        return report

    def clean_stale(self, grace: Optional[float] = None) -> CleanupReport:
        """Pre-deployment variant: remove certificate resources left by a previous run.

        Runs unattended, so instead of a prompt it waits out a cancellation
        window (Ctrl+C) before deleting anything.
        """
        logger.info("Checking for existing resources...")
        grace = self.config.timeouts.stale_grace if grace is None else grace
        report = CleanupReport()

        candidates = [certificate_job_ref(self.config)] + list(reversed(storage_refs(self.config)))
        stale = [ref for ref in candidates if self._present(ref)]
        if not stale:
            logger.debug("No stale certificate resources found")
            return report

        logger.warning(f"Found existing OpenSearch resources: {', '.join(str(r) for r in stale)}")
        logger.warning("This will delete existing certificates and resources")
        logger.warning(f"You have {grace:.0f} seconds to cancel (Ctrl+C) if this is not intended...")
        self.sleep(grace)

        if self.backup_enabled and self.claim_ref in stale:
            self._protect_certificates(report)

        for ref in stale:
            logger.info(f"Removing existing {ref}...")
            report.results.append(self.delete(ref))

        self._settle()
        if report.backup:
            logger.info("Cleanup completed. Existing certificates have been backed up")
        return report

    def delete(self, ref: ResourceRef) -> DeleteResult:
        try:
            result = self.client.delete(ref.kind, ref.name)
        except Exception as e:
            logger.warning(f"⚠️  Failed to delete {ref}: {e}")
            return DeleteResult(ref, DeleteStatus.FAILED, str(e))

        if result.ok:
            logger.info(f"🗑️  Deleted {ref}")
            return DeleteResult(ref, DeleteStatus.DELETED)
        if result.not_found:
            logger.warning(f"{ref} not found or already deleted")
            return DeleteResult(ref, DeleteStatus.NOT_FOUND, result.diagnostic)
        logger.warning(f"⚠️  Failed to delete {ref}: {result.diagnostic}")
        return DeleteResult(ref, DeleteStatus.FAILED, result.diagnostic)

    def _present(self, ref: ResourceRef) -> bool:
        result = self.client.exists(ref.kind, ref.name)
        if not result.ok and not result.not_found:
            logger.warning(f"Could not check {ref}: {result.diagnostic}")
        return result.ok

    def _protect_certificates(self, report: CleanupReport) -> None:
        """Back up the certificate claim. A failed backup never stops the cleanup."""
        report.backup_attempted = True
        try:
            report.backup = self.certificates.backup(self.options.backup_root)
        except BackupFailure as e:
            report.backup_error = e.message
            logger.error(f"❌ Certificate backup failed: {e.message}")
            if e.diagnostics:
                logger.error(e.diagnostics)
            logger.error(
                f"Continuing WITHOUT a backup: certificates on {self.config.certificates.claim} "
                "will be lost when the claim is deleted"
            )

    def _settle(self) -> None:
        delay = self.config.timeouts.deletion_settle
        if delay > 0:
            logger.info("Waiting for resources to be removed...")
            self.sleep(delay)

    @staticmethod
    def _log_summary(report: CleanupReport) -> None:
        if report.failures:
            logger.warning(f"Cleanup finished with {len(report.failures)} resource(s) not removed: "
                           f"{', '.join(str(r.ref) for r in report.failures)}")
        else:
            logger.info("Cleanup completed successfully")
        if report.backup:
            logger.info(f"Certificates were backed up to: {report.backup.destination_path}")
