"""
Data models for OpenSearch deployment and teardown.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple
import time


class ResourceKind(str, Enum):
    """Kubernetes resource kinds the deployer creates."""
    PERSISTENT_VOLUME = 'pv'
    PERSISTENT_VOLUME_CLAIM = 'pvc'
    JOB = 'job'
    CONFIG_MAP = 'configmap'
    SERVICE = 'service'
    DEPLOYMENT = 'deployment'
    POD = 'pod'


@dataclass(frozen=True)
class ResourceRef:
    """An addressable resource. Equality is by (kind, name) only."""
    kind: ResourceKind
    name: str
    manifest: Optional[str] = field(default=None, compare=False)

    def __str__(self) -> str:
        return f"{self.kind.value}/{self.name}"


class Predicate(str, Enum):
    """Observable conditions a readiness gate can wait on."""
    COMPLETE = 'complete'
    READY = 'ready'


@dataclass(frozen=True)
class ConditionSpec:
    """A readiness gate: a job reaching Complete or N pods being Ready.

    Pods are matched either by ``name`` or by label ``selector``.
    """
    kind: ResourceKind
    predicate: Predicate
    name: Optional[str] = None
    selector: Optional[str] = None
    expected_count: int = 1
    timeout: float = 300.0

    def describe(self) -> str:
        if self.kind == ResourceKind.JOB:
            return f"job {self.name} to complete"
        if self.name:
            return f"pod {self.name} to be ready"
        return f"{self.expected_count} pod(s) with label {self.selector} to be ready"

    @property
    def diagnostic_selector(self) -> Optional[str]:
        """Label selector used to collect logs or listings on failure."""
        if self.kind == ResourceKind.JOB:
            return f"job-name={self.name}"
        return self.selector


class StepKind(str, Enum):
    APPLY = 'apply'
    VERIFY = 'verify'


@dataclass(frozen=True)
class Step:
    """A single phase of the deployment plan."""
    name: str
    resources: Tuple[ResourceRef, ...] = ()
    readiness: Optional[ConditionSpec] = None
    timeout: float = 300.0
    required: bool = True
    kind: StepKind = StepKind.APPLY
    description: str = ''


@dataclass(frozen=True)
class DeploymentPlan:
    """Ordered sequence of steps, executed strictly in declared order."""
    steps: Tuple[Step, ...]

    def __iter__(self):
        return iter(self.steps)

    def __len__(self) -> int:
        return len(self.steps)

    def created_resources(self) -> List[ResourceRef]:
        """Every resource the plan applies, in creation order, without duplicates."""
        seen = set()
        ordered = []
        for step in self.steps:
            for ref in step.resources:
                if ref not in seen:
                    seen.add(ref)
                    ordered.append(ref)
        return ordered

    def teardown_order(self) -> List[ResourceRef]:
        """Reverse creation order, used by the cleanup engine."""
        return list(reversed(self.created_resources()))

    def manifests(self) -> List[str]:
        return [ref.manifest for ref in self.created_resources() if ref.manifest]


class ExecutionOutcome(str, Enum):
    SUCCEEDED = 'succeeded'
    FAILED_REQUIRED = 'failed_required'
    FAILED_OPTIONAL = 'failed_optional'


class FailureKind(str, Enum):
    APPLY = 'apply'
    TIMEOUT = 'timeout'
    VERIFICATION = 'verification'


@dataclass
class StepResult:
    """Outcome of a single step, with diagnostics for failures."""
    step: str
    outcome: ExecutionOutcome
    message: str = ''
    diagnostics: str = ''
    duration: float = 0.0
    failure: Optional[FailureKind] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome == ExecutionOutcome.SUCCEEDED


class RunState(str, Enum):
    """Orchestrator lifecycle states."""
    IDLE = 'idle'
    PREFLIGHTING = 'preflighting'
    RUNNING_STEP = 'running_step'
    SUCCEEDED = 'succeeded'
    ABORTED = 'aborted'


@dataclass
class DeploymentState:
    """Tracks the state of a single orchestrator run."""
    state: RunState = RunState.IDLE
    current_step: Optional[int] = None
    results: List[StepResult] = field(default_factory=list)
    start_time: float = field(default_factory=time.time)
    metrics: Dict[str, float] = field(default_factory=dict)

    def transition(self, state: RunState, step_index: Optional[int] = None) -> None:
        self.state = state
        self.current_step = step_index
        label = state.value if step_index is None else f"{state.value}_{step_index}"
        self.metrics[f"{label}_start"] = time.time()

    @property
    def failed_step(self) -> Optional[StepResult]:
        return next(
            (r for r in self.results if r.outcome == ExecutionOutcome.FAILED_REQUIRED),
            None,
        )


class ClusterHealthStatus(str, Enum):
    GREEN = 'green'
    YELLOW_OR_RED = 'yellow_or_red'
    UNREACHABLE = 'unreachable'
    UNKNOWN = 'unknown'


class DeleteStatus(str, Enum):
    DELETED = 'deleted'
    NOT_FOUND = 'not_found'
    FAILED = 'failed'


@dataclass
class DeleteResult:
    ref: ResourceRef
    status: DeleteStatus
    message: str = ''

    @property
    def converged(self) -> bool:
        """Deleted or already absent."""
        return self.status != DeleteStatus.FAILED


@dataclass
class CleanupReport:
    """Per-resource results of a teardown run."""
    results: List[DeleteResult] = field(default_factory=list)
    backup: Optional['CertificateBackup'] = None
    backup_attempted: bool = False
    backup_error: Optional[str] = None

    @property
    def failures(self) -> List[DeleteResult]:
        return [r for r in self.results if not r.converged]

    @property
    def not_found(self) -> List[DeleteResult]:
        return [r for r in self.results if r.status == DeleteStatus.NOT_FOUND]

    @property
    def success(self) -> bool:
        return not self.failures


BACKUP_DIR_PREFIX = 'opensearch-certs-backup-'
BACKUP_TIMESTAMP_FORMAT = '%Y%m%d_%H%M%S'


@dataclass(frozen=True)
class CertificateBackup:
    """A completed copy of the certificate volume to local storage."""
    source_volume: str
    destination_path: Path
    timestamp: datetime

    @staticmethod
    def destination_for(backup_root: Path, timestamp: datetime) -> Path:
        """Deterministic, timestamp-suffixed destination directory."""
        return Path(backup_root) / f"{BACKUP_DIR_PREFIX}{timestamp.strftime(BACKUP_TIMESTAMP_FORMAT)}"

    def files(self) -> Iterable[Path]:
        return (p for p in self.destination_path.rglob('*') if p.is_file())
