"""
Deployment, teardown and verification modules.
"""
from .certificates import CertificateLifecycleManager, HelperPod
from .cleanup import CleanupEngine
from .health import HealthVerifier, classify_response
from .kubectl import CommandResult, KubectlClient, detect_kubectl
from .orchestrator import DeploymentOrchestrator
from .plan import build_deployment_plan, build_minimal_plan
from .preflight import PreflightValidator
from .waiter import ReadinessWaiter, poll_until

__all__ = [
    'CertificateLifecycleManager',
    'HelperPod',
    'CleanupEngine',
    'HealthVerifier',
    'classify_response',
    'CommandResult',
    'KubectlClient',
    'detect_kubectl',
    'DeploymentOrchestrator',
    'build_deployment_plan',
    'build_minimal_plan',
    'PreflightValidator',
    'ReadinessWaiter',
    'poll_until',
]
