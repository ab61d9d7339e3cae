"""OpenSearch deployment orchestration.

The orchestrator interprets a ``DeploymentPlan``: steps run strictly in
order, each step applies its manifests and then waits on its readiness gate,
and the first required-step failure aborts the run.
"""
import logging
import time
from typing import Optional

from ..config import DeployerConfig, Environment, RunOptions
from ..errors import (
    ApplyFailure, OsDeployError, PreflightFailure, TimeoutFailure, VerificationFailure,
)
from .cleanup import CleanupEngine
from .health import HealthVerifier
from .models import (
    CertificateBackup, DeploymentPlan, DeploymentState, ExecutionOutcome, FailureKind,
    RunState, Step, StepKind, StepResult,
)
from .plan import build_deployment_plan, build_minimal_plan
from .preflight import PreflightValidator
from .waiter import ReadinessWaiter

logger = logging.getLogger("osdeploy.orchestrator")

FAILURE_TYPES = {
    FailureKind.APPLY: ApplyFailure,
    FailureKind.TIMEOUT: TimeoutFailure,
    FailureKind.VERIFICATION: VerificationFailure,
}


class DeploymentOrchestrator:
    """Runs preflight, stale-state cleanup and the deployment plan."""

    def __init__(
        self,
        client,
        config: DeployerConfig,
        options: RunOptions,
        environment: Environment,
        plan: Optional[DeploymentPlan] = None,
        preflight: Optional[PreflightValidator] = None,
        cleanup: Optional[CleanupEngine] = None,
        waiter: Optional[ReadinessWaiter] = None,
        health: Optional[HealthVerifier] = None,
    ):
        """Initialize the orchestrator.

        Collaborators default to the real implementations built from
        ``config``; tests pass fakes.

        Args:
            client: Resource client used for every cluster operation
            config: Deployer configuration
            options: Options for this run
            environment: Resolved kubectl binding and manifest directory
        """
        self.client = client
        self.config = config
        self.options = options
        self.environment = environment
        if plan is None:
            plan = build_minimal_plan(config) if options.minimal else build_deployment_plan(config)
        self.plan = plan
        self.preflight = preflight or PreflightValidator(
            client, environment, config.capacity, plan.manifests(),
            check_platform=not options.minimal,
        )
        self.cleanup = cleanup or CleanupEngine(client, config, options)
        self.waiter = waiter or ReadinessWaiter(client)
        self.health = health or HealthVerifier(
            client, config.health, settle_delay=config.timeouts.settle_delay,
        )
        self.state = DeploymentState()
        self.backup: Optional[CertificateBackup] = None

    def run(self) -> DeploymentState:
        """Execute the whole run.

        Raises:
            PreflightFailure: a capability check failed, nothing was changed
            ApplyFailure, TimeoutFailure, VerificationFailure: a required step failed
        """
        self.state.transition(RunState.PREFLIGHTING)
        report = self.preflight.run()
        for warning in report.warnings:
            logger.debug(f"Preflight warning: {warning}")
        if not report.passed:
            self.state.transition(RunState.ABORTED)
            raise PreflightFailure(
                "System requirements check failed: " + "; ".join(report.failures),
                hints=report.hints,
            )

        logger.info("Starting OpenSearch deployment...")
        if not self.options.minimal:
            self.backup = self.cleanup.clean_stale().backup

        for index, step in enumerate(self.plan):
            self.state.transition(RunState.RUNNING_STEP, index)
            result = self.execute_step(step)
            self.state.results.append(result)

            if result.outcome == ExecutionOutcome.FAILED_REQUIRED:
                self.state.transition(RunState.ABORTED, index)
                raise self._failure(step, result)
            if result.outcome == ExecutionOutcome.FAILED_OPTIONAL:
                logger.warning(f"⚠️  Optional step '{step.name}' failed, continuing: {result.message}")

        self.state.transition(RunState.SUCCEEDED)
        elapsed = time.time() - self.state.start_time
        logger.info(f"✅ OpenSearch deployment completed successfully in {elapsed:.1f}s")
        return self.state

    def execute_step(self, step: Step) -> StepResult:
        start = time.monotonic()
        if step.description:
            logger.info(f"Deploying {step.description.lower()}...")

        if step.kind == StepKind.VERIFY:
            return self._verify(step, start)

        for ref in step.resources:
            logger.debug(f"📄 Applying {ref.manifest} ({ref})")
            result = self.client.apply(ref)
            if not result.ok:
                message = f"Failed to apply {ref.manifest} ({ref})"
                logger.error(f"❌ {message}: {result.diagnostic}")
                return StepResult(step.name, self._failed(step), message, result.diagnostic,
                                  duration=time.monotonic() - start, failure=FailureKind.APPLY)

        if step.readiness is not None:
            return self.waiter.wait(step.readiness, timeout=step.timeout,
                                    required=step.required, step_name=step.name)
        return StepResult(step.name, ExecutionOutcome.SUCCEEDED,
                          duration=time.monotonic() - start)

    def _verify(self, step: Step, start: float) -> StepResult:
        report = self.health.verify()
        if report.healthy:
            logger.info("Deployment verification completed successfully")
            return StepResult(step.name, ExecutionOutcome.SUCCEEDED, report.detail,
                              duration=time.monotonic() - start)
        message = f"Cluster health check failed ({report.status.value}: {report.detail})"
        logger.error(message)
        body = report.body if isinstance(report.body, str) else repr(report.body or '')
        return StepResult(step.name, self._failed(step), message, body,
                          duration=time.monotonic() - start, failure=FailureKind.VERIFICATION)

    @staticmethod
    def _failed(step: Step) -> ExecutionOutcome:
        return ExecutionOutcome.FAILED_REQUIRED if step.required else ExecutionOutcome.FAILED_OPTIONAL

    def _failure(self, step: Step, result: StepResult) -> OsDeployError:
        kubectl = self.environment.kubectl
        hints = []
        if result.failure == FailureKind.TIMEOUT and step.readiness is not None:
            selector = step.readiness.diagnostic_selector
            if selector:
                hints = [f"{kubectl} logs -l '{selector}'", f"{kubectl} get pods -l '{selector}'"]
            else:
                hints = [f"{kubectl} describe pod {step.readiness.name}"]
        elif result.failure == FailureKind.APPLY:
            hints = [f"{kubectl} apply -f {ref.manifest}" for ref in step.resources]
        elif result.failure == FailureKind.VERIFICATION:
            hints = [
                f"{kubectl} get pods -l '{self.config.health.node_selector}'",
                "Resources were left in place; run 'osdeploy deploy --cleanup' to remove them",
            ]
        error_type = FAILURE_TYPES.get(result.failure, OsDeployError)
        return error_type(
            f"Step '{step.name}' failed: {result.message}",
            step=step.name,
            diagnostics=result.diagnostics,
            hints=hints,
        )
