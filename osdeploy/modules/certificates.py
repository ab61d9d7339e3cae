"""Certificate backup before destructive operations.

The certificate claim holds the cluster CA and node certificates. Before the
claim is deleted its contents are copied to a timestamped local directory
through a short-lived helper pod mounted on the claim. The helper pod is
always removed, whichever way the backup ends.
"""
import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from ..config import CertificateConfig
from ..errors import BackupFailure
from .models import CertificateBackup, ConditionSpec, Predicate, ResourceKind
from .waiter import ReadinessWaiter

logger = logging.getLogger("osdeploy.certificates")


class HelperPod:
    """Ephemeral pod mounted on the certificate claim.

    Use as a context manager: the pod is created on entry and force-deleted
    on exit, including when entry itself fails part-way.
    """

    def __init__(self, client, certs: CertificateConfig):
        self.client = client
        self.certs = certs
        self.name = certs.helper_pod

    def manifest(self) -> Dict[str, Any]:
        return {
            "apiVersion": "v1",
            "kind": "Pod",
            "metadata": {"name": self.name, "labels": {"app": self.name}},
            "spec": {
                "containers": [{
                    "name": "backup",
                    "image": self.certs.helper_image,
                    "command": ["sleep", "3600"],
                    "volumeMounts": [{"name": "cert-volume", "mountPath": self.certs.mount_path}],
                }],
                "volumes": [{
                    "name": "cert-volume",
                    "persistentVolumeClaim": {"claimName": self.certs.claim},
                }],
            },
        }

    def __enter__(self) -> 'HelperPod':
        logger.debug(f"Creating helper pod {self.name} on claim {self.certs.claim}")
        result = self.client.apply_document(self.manifest())
        if not result.ok:
            self.release()
            raise BackupFailure(f"Failed to create backup pod {self.name}", diagnostics=result.diagnostic)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False

    def release(self) -> None:
        result = self.client.delete(ResourceKind.POD, self.name, force=True)
        if result.ok:
            logger.debug(f"Removed helper pod {self.name}")
        elif not result.not_found:
            logger.warning(
                f"⚠️  Failed to remove helper pod {self.name}: {result.diagnostic}. "
                f"Remove it manually with: kubectl delete pod {self.name} --force"
            )


class CertificateLifecycleManager:
    """Backs up the certificate claim to local storage before it is destroyed."""

    def __init__(self, client, certs: CertificateConfig, helper_timeout: float = 30,
                 waiter: Optional[ReadinessWaiter] = None,
                 clock: Callable[[], datetime] = datetime.now):
        self.client = client
        self.certs = certs
        self.helper_timeout = helper_timeout
        self.waiter = waiter or ReadinessWaiter(client)
        self.clock = clock

    def claim_exists(self) -> bool:
        result = self.client.exists(ResourceKind.PERSISTENT_VOLUME_CLAIM, self.certs.claim)
        if result.ok:
            return True
        if not result.not_found:
            raise BackupFailure(
                f"Could not determine whether {self.certs.claim} exists",
                diagnostics=result.diagnostic,
            )
        return False

    def backup(self, backup_root: Path) -> Optional[CertificateBackup]:
        """Copy the certificate claim's contents to ``backup_root``.

        Returns:
            The backup, or None if the claim does not exist or holds no
            certificate directory.

        Raises:
            BackupFailure: the claim exists but its contents could not be saved
        """
        if not self.claim_exists():
            logger.debug(f"No {self.certs.claim} claim found, nothing to back up")
            return None

        with HelperPod(self.client, self.certs) as pod:
            gate = ConditionSpec(ResourceKind.POD, Predicate.READY, name=pod.name,
                                 timeout=self.helper_timeout)
            ready = self.waiter.wait(gate, required=False, step_name="backup-helper")
            if not ready.succeeded:
                raise BackupFailure(
                    f"Backup pod {pod.name} did not become ready within {self.helper_timeout:.0f}s",
                    diagnostics=ready.diagnostics,
                )
            return self._copy_certificates(pod, Path(backup_root))

    def _copy_certificates(self, pod: HelperPod, backup_root: Path) -> Optional[CertificateBackup]:
        ca_path = f"{self.certs.mount_path}/{self.certs.ca_dir}"
        check = self.client.exec(pod.name, ["test", "-d", ca_path])
        if not check.ok:
            # test -d exits 1 for a missing directory; kubectl itself fails with other codes
            if check.returncode != 1:
                raise BackupFailure(f"Could not inspect {ca_path} in {pod.name}",
                                    diagnostics=check.diagnostic)
            logger.info(f"No certificates found under {ca_path}, skipping backup")
            return None

        timestamp = self.clock()
        destination = self._unique_destination(backup_root, timestamp)
        logger.info(f"Found existing certificates, creating backup at {destination}")
        destination.mkdir(parents=True)

        copied = self.client.copy_from_pod(pod.name, f"{self.certs.mount_path}/.", destination)
        if not copied.ok:
            shutil.rmtree(destination, ignore_errors=True)
            raise BackupFailure(f"Failed to copy certificates to {destination}",
                                diagnostics=copied.diagnostic)
        if not any(destination.iterdir()):
            shutil.rmtree(destination, ignore_errors=True)
            raise BackupFailure(f"Certificate backup at {destination} is empty")

        logger.info(f"✅ Certificates backed up to {destination}")
        return CertificateBackup(self.certs.claim, destination, timestamp)

    @staticmethod
    def _unique_destination(backup_root: Path, timestamp: datetime) -> Path:
        destination = CertificateBackup.destination_for(backup_root, timestamp)
        suffix = 1
        candidate = destination
        while candidate.exists():
            candidate = destination.with_name(f"{destination.name}-{suffix}")
            suffix += 1
        return candidate
