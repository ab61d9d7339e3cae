"""Preflight checks run before any mutating action.

Checks run in order and stop at the first hard failure:

1. Host platform: on Linux ``vm.max_map_count`` must meet the minimum; on
   macOS the operator must confirm Docker Desktop is configured; other
   systems are unsupported.
2. Control plane reachability.
3. Aggregate node capacity (warnings only).
4. Presence of every manifest file the plan references.
"""
import logging
import platform
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

import typer
from kubernetes.utils import parse_quantity

from ..config import CapacityConfig, Environment
from ..utils.kube import node_allocatable

logger = logging.getLogger("osdeploy.preflight")

MAX_MAP_COUNT_PATH = Path("/proc/sys/vm/max_map_count")
GIB = 1024 ** 3

DOCKER_DESKTOP_GUIDANCE = [
    "Running on macOS. Ensure Docker Desktop has sufficient resources:",
    "1. Open Docker Desktop preferences",
    "2. Go to 'Resources' tab",
    "3. Ensure at least 4GB RAM is allocated",
    "4. Add an unlimited memlock ulimit to ~/.docker/daemon.json:",
    '   {"default-ulimits": {"memlock": {"name": "memlock", "hard": -1, "soft": -1}}}',
]


@dataclass
class PreflightReport:
    """Verdict of a preflight run. Warnings never fail the run."""
    failures: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    hints: List[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.failures

    def fail(self, message: str, hints: Iterable[str] = ()) -> None:
        logger.error(message)
        self.failures.append(message)
        self.hints.extend(hints)

    def warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)


def read_max_map_count() -> int:
    try:
        return int(MAX_MAP_COUNT_PATH.read_text().strip())
    except (OSError, ValueError):
        return 0


class PreflightValidator:
    """Checks host and cluster capability before deployment."""

    def __init__(
        self,
        client,
        environment: Environment,
        capacity: CapacityConfig,
        manifests: Iterable[str],
        check_platform: bool = True,
        system: Callable[[], str] = platform.system,
        max_map_count: Callable[[], int] = read_max_map_count,
        confirm: Callable[[str], bool] = typer.confirm,
        nodes: Callable[[], List[Dict[str, str]]] = node_allocatable,
    ):
        self.client = client
        self.environment = environment
        self.capacity = capacity
        self.manifests = list(manifests)
        self.check_platform = check_platform
        self.system = system
        self.max_map_count = max_map_count
        self.confirm = confirm
        self.nodes = nodes

    def run(self) -> PreflightReport:
        logger.info("Checking system requirements...")
        report = PreflightReport()
        checks = [self._check_control_plane, self._check_capacity, self._check_manifests]
        if self.check_platform:
            checks.insert(0, self._check_host_platform)
        for check in checks:
            check(report)
            if not report.passed:
                return report
        logger.info("System requirements check completed")
        return report

    def _check_host_platform(self, report: PreflightReport) -> None:
        system = self.system()
        if system == "Linux":
            current = self.max_map_count()
            minimum = self.capacity.min_max_map_count
            if current < minimum:
                report.fail(
                    f"vm.max_map_count is too low ({current}). OpenSearch requires at least {minimum}",
                    hints=[
                        f"sudo sysctl -w vm.max_map_count={minimum}",
                        f"To make it permanent, add 'vm.max_map_count = {minimum}' to /etc/sysctl.conf",
                    ],
                )
        elif system == "Darwin":
            for line in DOCKER_DESKTOP_GUIDANCE:
                report.warn(line)
            if not self.confirm("Have you configured Docker Desktop with these settings?"):
                report.fail("Please configure Docker Desktop with the required settings and try again")
        else:
            report.fail(f"Unsupported operating system: {system}")

    def _check_control_plane(self, report: PreflightReport) -> None:
        result = self.client.cluster_info()
        if not result.ok:
            report.fail(
                "Cannot reach Kubernetes cluster. Please check your kubectl configuration",
                hints=[f"{self.environment.kubectl} cluster-info", result.diagnostic],
            )

    def _check_capacity(self, report: PreflightReport) -> None:
        try:
            nodes = self.nodes()
        except Exception as e:
            report.warn(f"Could not read node capacity, skipping capacity check: {e}")
            return

        total_memory = sum(parse_quantity(n.get("memory", "0")) for n in nodes)
        total_cpu = sum(parse_quantity(n.get("cpu", "0")) for n in nodes)
        memory_gib = float(total_memory) / GIB
        cpu_cores = float(total_cpu)
        logger.debug(f"Cluster capacity: {len(nodes)} node(s), {memory_gib:.1f} GiB, {cpu_cores:.1f} cores")

        if memory_gib < self.capacity.min_memory_gib:
            report.warn(
                f"Cluster has less than {self.capacity.min_memory_gib:g}GB total memory "
                f"({memory_gib:.1f} GB). OpenSearch cluster may not perform optimally"
            )
        if cpu_cores < self.capacity.min_cpu_cores:
            report.warn(
                f"Cluster has less than {self.capacity.min_cpu_cores:g} CPU cores "
                f"({cpu_cores:.1f} cores). OpenSearch cluster may not perform optimally"
            )

    def _check_manifests(self, report: PreflightReport) -> None:
        missing = [m for m in self.manifests if not self.environment.manifest_path(m).is_file()]
        if missing:
            report.fail(
                f"Required file(s) not found in {self.environment.manifest_dir}: {', '.join(missing)}"
            )
