"""Resource client backed by the kubectl command-line tool.

Each public method is a single round trip to the cluster and returns a
``CommandResult`` instead of raising, so callers decide whether a failure
is fatal. No retries happen here.
"""
import json
import logging
import shutil
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import yaml

from ..config import Config, Environment
from ..errors import ToolNotFound
from .models import ConditionSpec, Predicate, ResourceKind, ResourceRef
from .waiter import WaitResult, poll_until

logger = logging.getLogger("osdeploy.kubectl")

NOT_FOUND_MARKERS = ("(NotFound)", "not found")


@dataclass
class CommandResult:
    """Outcome of a single kubectl invocation."""
    ok: bool
    output: str = ''
    error: str = ''
    returncode: int = 0
    not_found: bool = False

    @property
    def data(self) -> Any:
        """Parsed JSON output, or None if the output is not JSON."""
        try:
            return json.loads(self.output)
        except (TypeError, ValueError):
            return None

    @property
    def diagnostic(self) -> str:
        return (self.error or self.output).strip()


def detect_kubectl(override: Optional[str] = None) -> str:
    """Resolve the kubectl binary: an explicit override, then kubectl, then microk8s.kubectl."""
    override = override or Config.KUBECTL
    candidates = (override,) if override else Config.KUBECTL_CANDIDATES
    for candidate in candidates:
        path = shutil.which(candidate)
        if path:
            logger.debug(f"Using {candidate} command ({path})")
            return candidate
    raise ToolNotFound(
        f"Neither {' nor '.join(candidates)} found",
        hints=["Install kubectl or microk8s"],
    )


def _is_not_found(stderr: str) -> bool:
    return any(marker in stderr for marker in NOT_FOUND_MARKERS)


class KubectlClient:
    """Thin wrapper around kubectl for the deployer's resource operations."""

    def __init__(self, environment: Environment, command_timeout: Optional[int] = None,
                 poll_interval: float = 5.0):
        """Initialize the client.

        Args:
            environment: Resolved kubectl binding and manifest directory
            command_timeout: Upper bound for a single kubectl call in seconds
            poll_interval: Interval between condition checks in wait_for_condition
        """
        self.environment = environment
        self.command_timeout = command_timeout or Config.COMMAND_TIMEOUT
        self.poll_interval = poll_interval

    def _run(self, args: Sequence[str], input_text: Optional[str] = None,
             timeout: Optional[float] = None) -> CommandResult:
        cmd = [self.environment.kubectl, *args]
        cmd_str = ' '.join(cmd)
        logger.debug(f"💻 Running: {cmd_str}")
        try:
            proc = subprocess.run(
                cmd,
                input=input_text,
                capture_output=True,
                text=True,
                timeout=timeout or self.command_timeout,
            )
        except subprocess.TimeoutExpired:
            return CommandResult(False, error=f"Command timed out: {cmd_str}", returncode=-1)
        except OSError as e:
            return CommandResult(False, error=f"Failed to run {cmd_str}: {e}", returncode=-1)

        if proc.stdout:
            logger.debug(f"🟢 Output:\n{proc.stdout}")
        if proc.returncode != 0:
            logger.debug(f"❌ {cmd_str} exited {proc.returncode}: {proc.stderr.strip()}")
            return CommandResult(
                False,
                output=proc.stdout,
                error=proc.stderr,
                returncode=proc.returncode,
                not_found=_is_not_found(proc.stderr),
            )
        return CommandResult(True, output=proc.stdout, error=proc.stderr)

    def resolve_manifest(self, manifest: Union[str, Path]) -> Path:
        path = Path(manifest)
        return path if path.is_absolute() else self.environment.manifest_path(str(manifest))

    def apply(self, ref: Union[ResourceRef, str, Path]) -> CommandResult:
        """Apply a manifest file by reference or path."""
        manifest = ref.manifest if isinstance(ref, ResourceRef) else ref
        if manifest is None:
            return CommandResult(False, error=f"No manifest recorded for {ref}")
        return self._run(["apply", "-f", str(self.resolve_manifest(manifest))])

    def apply_document(self, document: Dict[str, Any]) -> CommandResult:
        """Apply an in-memory manifest through stdin."""
        return self._run(["apply", "-f", "-"], input_text=yaml.safe_dump(document))

    def delete(self, kind: Union[ResourceKind, str], name: str, force: bool = False) -> CommandResult:
        args = ["delete", _kind(kind), name]
        if force:
            args += ["--force", "--grace-period=0"]
        return self._run(args)

    def exists(self, kind: Union[ResourceKind, str], name: str) -> CommandResult:
        """ok=True if present, not_found=True if absent, otherwise a platform error."""
        return self._run(["get", _kind(kind), name, "-o", "name"])

    def get_json(self, kind: Union[ResourceKind, str], name: Optional[str] = None,
                 selector: Optional[str] = None) -> CommandResult:
        args = ["get", _kind(kind)]
        if name:
            args.append(name)
        if selector:
            args += ["-l", selector]
        return self._run(args + ["-o", "json"])

    def list_resources(self, kinds: Sequence[str], selector: Optional[str] = None) -> CommandResult:
        args = ["get", ",".join(kinds)]
        if selector:
            args += ["-l", selector]
        return self._run(args)

    def exec(self, pod: str, command: Sequence[str]) -> CommandResult:
        return self._run(["exec", pod, "--", *command])

    def copy_from_pod(self, pod: str, src_path: str, dest_path: Union[str, Path]) -> CommandResult:
        return self._run(["cp", f"{pod}:{src_path}", str(dest_path)])

    def get_logs(self, selector: str, tail: Optional[int] = None) -> CommandResult:
        args = ["logs", "-l", selector, "--all-containers=true"]
        if tail is not None:
            args.append(f"--tail={tail}")
        return self._run(args)

    def get_pod_logs(self, pod: str, tail: Optional[int] = None) -> CommandResult:
        args = ["logs", pod]
        if tail is not None:
            args.append(f"--tail={tail}")
        return self._run(args)

    def cluster_info(self) -> CommandResult:
        return self._run(["cluster-info", "--request-timeout=10s"])

    def first_pod(self, selector: str) -> Optional[str]:
        """Name of the first pod matching the selector, if any."""
        result = self.get_json(ResourceKind.POD, selector=selector)
        items = (result.data or {}).get("items", []) if result.ok else []
        return items[0]["metadata"]["name"] if items else None

    def check_condition(self, condition: ConditionSpec) -> Tuple[bool, str]:
        """Evaluate a condition once. Returns (satisfied, observed state)."""
        if condition.kind == ResourceKind.JOB:
            return self._check_job(condition)
        return self._check_pods(condition)

    def wait_for_condition(self, condition: ConditionSpec, timeout: Optional[float] = None) -> WaitResult:
        """Block until the condition holds or the timeout elapses."""
        timeout = condition.timeout if timeout is None else timeout
        return poll_until(
            lambda: self.check_condition(condition),
            timeout=timeout,
            interval=self.poll_interval,
            clock=time.monotonic,
            sleep=time.sleep,
        )

    def _check_job(self, condition: ConditionSpec) -> Tuple[bool, str]:
        result = self.get_json(ResourceKind.JOB, name=condition.name)
        if not result.ok:
            return False, "not found" if result.not_found else result.diagnostic
        status = (result.data or {}).get("status", {})
        for cond in status.get("conditions") or []:
            if cond.get("type") == "Complete" and cond.get("status") == "True":
                return True, "Complete"
        observed = (
            f"active={status.get('active', 0)} "
            f"succeeded={status.get('succeeded', 0)} "
            f"failed={status.get('failed', 0)}"
        )
        return False, observed

    def _check_pods(self, condition: ConditionSpec) -> Tuple[bool, str]:
        if condition.name:
            result = self.get_json(ResourceKind.POD, name=condition.name)
            if not result.ok:
                return False, "not found" if result.not_found else result.diagnostic
            pods = [result.data or {}]
        else:
            result = self.get_json(ResourceKind.POD, selector=condition.selector)
            if not result.ok:
                return False, result.diagnostic
            pods = (result.data or {}).get("items", [])

        ready = [p for p in pods if _pod_ready(p)]
        summary = ", ".join(
            f"{p.get('metadata', {}).get('name', '?')}: {p.get('status', {}).get('phase', 'Unknown')}"
            for p in pods
        ) or "no pods"
        observed = f"{len(ready)}/{condition.expected_count} ready ({summary})"
        return len(ready) >= condition.expected_count, observed


def _kind(kind: Union[ResourceKind, str]) -> str:
    return kind.value if isinstance(kind, ResourceKind) else kind


def _pod_ready(pod: Dict[str, Any]) -> bool:
    for cond in pod.get("status", {}).get("conditions") or []:
        if cond.get("type") == "Ready":
            return cond.get("status") == "True"
    return False
