"""
ecs_bluegreen.models — Configuration and result records for a deployment run.

DeploymentConfig is built once from CLI input and never mutated. Task
definitions themselves stay plain mappings: ECS owns their schema and only
a handful of keys are read or copied (see task_definition.py).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

from ecs_bluegreen.exceptions import ConfigError
from ecs_bluegreen.polling import PollPolicy

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------
DEFAULT_DEPLOYMENT_CONFIG = "CodeDeployDefault.ECSLinear10PercentEvery1Minutes"
DEFAULT_POLL_INTERVAL_SECONDS = 30
DEFAULT_MAX_POLL_ATTEMPTS = 60
DEFAULT_ROLE_SESSION_SECONDS = 3600

FARGATE = "FARGATE"


class Strategy(StrEnum):
    """How the submitted deployment is followed to completion."""

    TRACKED = "tracked"  # termination-delay wait, then explicit poll loop
    DELEGATED = "delegated"  # botocore deployment_successful waiter


class DeploymentStatus(StrEnum):
    CREATED = "Created"
    QUEUED = "Queued"
    IN_PROGRESS = "InProgress"
    BAKING = "Baking"
    READY = "Ready"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    STOPPED = "Stopped"

    @classmethod
    def parse(cls, value: str) -> DeploymentStatus | None:
        try:
            return cls(value)
        except ValueError:
            return None

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATUSES

    @property
    def is_failure(self) -> bool:
        return self in (DeploymentStatus.FAILED, DeploymentStatus.STOPPED)


_TERMINAL_STATUSES = frozenset(
    {DeploymentStatus.SUCCEEDED, DeploymentStatus.FAILED, DeploymentStatus.STOPPED}
)


# Dataclass field -> CLI flag, used to name the offending flag in errors.
FLAG_NAMES: dict[str, str] = {
    "cluster": "--cluster",
    "region": "--region",
    "service": "--service",
    "image": "--image",
    "deploy_app": "--deploy_app",
    "container_name": "--container_name",
    "container_port": "--container_port",
    "deploy_group": "--deploy_group",
    "deployment_config_name": "--deployment_config_name",
    "iam_role": "--iam-role",
    "poll_interval_seconds": "--poll-interval",
    "max_poll_attempts": "--max-attempts",
    "role_session_seconds": "--role-duration",
}

_REQUIRED_TEXT_FIELDS = (
    "cluster",
    "region",
    "service",
    "image",
    "deploy_app",
    "container_name",
    "deploy_group",
    "deployment_config_name",
)


@dataclass(frozen=True)
class DeploymentConfig:
    """Validated settings for one deployment run.

    Raises ConfigError (naming the CLI flag) when a required value is empty
    or a numeric setting is out of range.
    """

    cluster: str
    region: str
    service: str
    image: str
    deploy_app: str
    container_name: str
    container_port: int
    deploy_group: str
    deployment_config_name: str = DEFAULT_DEPLOYMENT_CONFIG
    iam_role: str | None = None
    strategy: Strategy = Strategy.TRACKED
    output_dir: Path = Path(".")
    poll_interval_seconds: int = DEFAULT_POLL_INTERVAL_SECONDS
    max_poll_attempts: int = DEFAULT_MAX_POLL_ATTEMPTS
    role_session_seconds: int = DEFAULT_ROLE_SESSION_SECONDS

    def __post_init__(self) -> None:
        for name in _REQUIRED_TEXT_FIELDS:
            value = getattr(self, name)
            if value is None or not str(value).strip():
                raise ConfigError(f"Missing required argument: {FLAG_NAMES[name]}")

        if not 1 <= self.container_port <= 65535:
            raise ConfigError(
                f"{FLAG_NAMES['container_port']} must be between 1 and 65535, "
                f"got {self.container_port}"
            )
        for name in ("poll_interval_seconds", "max_poll_attempts", "role_session_seconds"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{FLAG_NAMES[name]} must be a positive integer")

    @property
    def poll_policy(self) -> PollPolicy:
        return PollPolicy(
            interval_seconds=self.poll_interval_seconds,
            max_attempts=self.max_poll_attempts,
        )


@dataclass(frozen=True)
class DeploymentResult:
    deployment_id: str
    status: DeploymentStatus
    task_definition_arn: str
