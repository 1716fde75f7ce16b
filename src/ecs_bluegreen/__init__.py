"""
ecs_bluegreen — Blue/green deployment of an ECS service through CodeDeploy.

Registers a new task definition revision for a service with a new image and
hands the cutover to CodeDeploy. Entry point: ecs_bluegreen.cli:main.
"""

from ecs_bluegreen.exceptions import (
    ConfigError,
    CredentialError,
    DeployError,
    DeploymentError,
    DeploymentFailedError,
    DeploymentTimeoutError,
    RegistrationError,
    ServiceNotFoundError,
    TaskDefinitionLookupError,
)
from ecs_bluegreen.models import DeploymentConfig, DeploymentResult, DeploymentStatus, Strategy
from ecs_bluegreen.task_definition import build_task_definition
from ecs_bluegreen.workflow import run_deployment

__all__ = [
    "ConfigError",
    "CredentialError",
    "DeployError",
    "DeploymentConfig",
    "DeploymentError",
    "DeploymentFailedError",
    "DeploymentResult",
    "DeploymentStatus",
    "DeploymentTimeoutError",
    "RegistrationError",
    "ServiceNotFoundError",
    "Strategy",
    "TaskDefinitionLookupError",
    "build_task_definition",
    "run_deployment",
]
