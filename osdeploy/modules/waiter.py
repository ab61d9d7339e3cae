"""Readiness polling.

``poll_until`` is the single poll loop used by every readiness gate; the
``ReadinessWaiter`` wraps a resource client's ``wait_for_condition`` and
turns a timeout into a failed outcome with best-effort diagnostics.
"""
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from .models import ConditionSpec, ExecutionOutcome, FailureKind, ResourceKind, StepResult

logger = logging.getLogger("osdeploy.waiter")


@dataclass
class WaitResult:
    """Result of a poll loop: whether the condition held, and what was last seen."""
    satisfied: bool
    last_state: str = ''
    elapsed: float = 0.0
    attempts: int = 0


def poll_until(
    probe: Callable[[], Tuple[bool, str]],
    timeout: float,
    interval: float,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> WaitResult:
    """Call ``probe`` until it reports success or ``timeout`` seconds elapse.

    The final sleep is shortened to the remaining time, so a condition that
    never holds returns at or just after the deadline, never later than one
    interval past it.

    Args:
        probe: Returns (satisfied, observed state)
        timeout: Deadline in seconds from the first call
        interval: Delay between probes in seconds
        clock: Monotonic time source
        sleep: Sleep function

    Returns:
        WaitResult with the last observed state
    """
    if interval <= 0:
        raise ValueError("interval must be positive")
    start = clock()
    deadline = start + timeout
    attempts = 0
    while True:
        attempts += 1
        satisfied, state = probe()
        now = clock()
        if satisfied:
            return WaitResult(True, state, now - start, attempts)
        remaining = deadline - now
        if remaining <= 0:
            return WaitResult(False, state, now - start, attempts)
        logger.debug(f"Condition not met yet ({state}), next check in {min(interval, remaining):.1f}s")
        sleep(min(interval, remaining))


class ReadinessWaiter:
    """Gates a step on a readiness condition, one poll-until-timeout per call."""

    def __init__(self, client):
        self.client = client

    def wait(self, condition: ConditionSpec, timeout: Optional[float] = None,
             required: bool = True, step_name: Optional[str] = None) -> StepResult:
        timeout = condition.timeout if timeout is None else timeout
        name = step_name or condition.describe()
        logger.info(f"⏳ Waiting for {condition.describe()} (timeout: {timeout:.0f}s)...")

        result = self.client.wait_for_condition(condition, timeout)
        if result.satisfied:
            logger.debug(f"{condition.describe()} satisfied after {result.elapsed:.1f}s")
            return StepResult(name, ExecutionOutcome.SUCCEEDED, result.last_state,
                              duration=result.elapsed)

        message = self._failure_message(condition, timeout, result.last_state)
        logger.error(message)
        diagnostics = self._collect_diagnostics(condition)
        outcome = ExecutionOutcome.FAILED_REQUIRED if required else ExecutionOutcome.FAILED_OPTIONAL
        return StepResult(name, outcome, message, diagnostics, duration=result.elapsed,
                          failure=FailureKind.TIMEOUT)

    @staticmethod
    def _failure_message(condition: ConditionSpec, timeout: float, last_state: str) -> str:
        if condition.kind == ResourceKind.JOB:
            what = f"Job {condition.name} failed to complete"
        elif condition.name:
            what = f"Pod {condition.name} failed to become ready"
        else:
            what = f"Pods with label {condition.selector} failed to become ready"
        return f"{what} within {timeout:.0f} seconds (last state: {last_state or 'unknown'})"

    def _collect_diagnostics(self, condition: ConditionSpec) -> str:
        """Recent logs for jobs, a pod listing for pods. Never raises."""
        try:
            if condition.kind == ResourceKind.JOB:
                result = self.client.get_logs(condition.diagnostic_selector)
            elif condition.name:
                result = self.client.list_resources([f"pod/{condition.name}"])
            else:
                result = self.client.list_resources(["pods"], condition.selector)
            return result.diagnostic
        except Exception as e:
            logger.debug(f"Could not collect diagnostics for {condition.describe()}: {e}")
            return ''
