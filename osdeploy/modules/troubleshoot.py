"""Certificate generation troubleshooting."""
import logging
from dataclasses import dataclass, field
from typing import List, Tuple

from ..config import CertificateConfig
from .models import ResourceKind

logger = logging.getLogger("osdeploy.troubleshoot")

RECOMMENDATIONS = [
    "If experiencing timeouts, try these solutions in order:",
    "1. Delete the job and re-apply it with a longer timeout:",
    "   kubectl delete job {job} --ignore-not-found=true",
    "   kubectl apply -f generate-certs-job.yaml",
    "2. Monitor job progress:",
    "   kubectl get jobs -w",
    "   kubectl logs -f job/{job}",
    "If still failing, check:",
    "   - Network connectivity to package repositories",
    "   - Available disk space on nodes",
    "   - Resource constraints (CPU/Memory)",
    "   - Firewall/proxy settings blocking outbound connections",
]


@dataclass
class TroubleshootReport:
    sections: List[Tuple[str, str]] = field(default_factory=list)
    fatal: str = ''

    def add(self, title: str, body: str) -> None:
        self.sections.append((title, body.strip()))

    @property
    def ok(self) -> bool:
        return not self.fatal


def diagnose_certificates(client, certs: CertificateConfig, log_tail: int = 20) -> TroubleshootReport:
    """Collect what is known about certificate generation in the cluster."""
    report = TroubleshootReport()

    info = client.cluster_info()
    if not info.ok:
        report.add("Kubernetes cluster", info.diagnostic)
        report.fatal = "Kubernetes cluster is not accessible"
        return report
    report.add("Kubernetes cluster", "✅ Kubernetes cluster is accessible")

    jobs = client.get_json(ResourceKind.JOB)
    names = [
        item["metadata"]["name"]
        for item in (jobs.data or {}).get("items", [])
        if "cert" in item["metadata"]["name"]
    ] if jobs.ok else []
    report.add("Certificate jobs", "\n".join(names) or "No certificate-related jobs found")

    claim = client.list_resources([f"pvc/{certs.claim}"])
    if not claim.ok:
        report.add("Certificate claim", claim.diagnostic)
        report.fatal = (
            f"{certs.claim} not found - this must be created first "
            f"(kubectl apply -f {certs.claim}.yaml)"
        )
        return report
    report.add("Certificate claim", claim.output)

    pods = client.get_json(ResourceKind.POD, selector="job-name")
    for item in (pods.data or {}).get("items", []) if pods.ok else []:
        name = item["metadata"]["name"]
        if not name.startswith(certs.job):
            continue
        logs = client.get_pod_logs(name, tail=log_tail)
        report.add(f"Logs for {name}", logs.output if logs.ok else logs.diagnostic)

    report.add("Recommendations", "\n".join(line.format(job=certs.job) for line in RECOMMENDATIONS))
    return report
