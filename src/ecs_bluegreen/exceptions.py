"""
ecs_bluegreen.exceptions — Error taxonomy for the deployment workflow.

Every failure is terminal for the run. The CLI maps any DeployError to
exit code 1; nothing is retried.
"""

from __future__ import annotations


class DeployError(RuntimeError):
    """Base class for deployment workflow errors."""


class ConfigError(DeployError):
    """Raised when a CLI argument is missing, unknown, empty or malformed."""


class CredentialError(DeployError):
    """Raised when role assumption fails or released credentials are used."""


class ServiceNotFoundError(DeployError):
    """Raised when the target ECS service cannot be found in the cluster."""


class TaskDefinitionLookupError(DeployError):
    """Raised when the service's active task definition cannot be resolved."""


class RegistrationError(DeployError):
    """Raised when ECS does not return an ARN for the new task definition."""


class DeploymentError(DeployError):
    """Raised when CodeDeploy rejects or cannot track a deployment."""

    def __init__(self, message: str, *, deployment_id: str | None = None) -> None:
        super().__init__(message)
        self.deployment_id = deployment_id


class DeploymentFailedError(DeploymentError):
    """Raised when CodeDeploy reports an explicit Failed or Stopped status."""

    def __init__(self, message: str, *, deployment_id: str, status: str) -> None:
        super().__init__(message, deployment_id=deployment_id)
        self.status = status


class DeploymentTimeoutError(DeploymentError):
    """Raised when the poll budget runs out before a terminal status."""

    def __init__(self, message: str, *, deployment_id: str, last_status: str | None) -> None:
        super().__init__(message, deployment_id=deployment_id)
        self.last_status = last_status
