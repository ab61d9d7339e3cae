"""Error taxonomy for deployment and teardown runs."""
from typing import List, Optional


class OsDeployError(Exception):
    """Base class for failures surfaced to the operator."""

    def __init__(self, message: str, step: Optional[str] = None,
                 diagnostics: str = "", hints: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.step = step
        self.diagnostics = diagnostics
        self.hints = hints or []


class PreflightFailure(OsDeployError):
    """A host or platform capability check failed before any mutation."""


class ToolNotFound(PreflightFailure):
    """Neither kubectl nor microk8s.kubectl could be found."""


class ApplyFailure(OsDeployError):
    """The platform rejected a manifest."""


class TimeoutFailure(OsDeployError):
    """A readiness condition did not hold within its window."""


class BackupFailure(OsDeployError):
    """Certificate backup could not be completed."""


class VerificationFailure(OsDeployError):
    """Post-deploy health check did not report green."""


class ConfirmationDeclined(OsDeployError):
    """The operator declined an interactive confirmation."""
