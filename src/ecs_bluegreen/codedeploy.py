"""
ecs_bluegreen.codedeploy — Submit and follow a CodeDeploy ECS blue/green deployment.

Two ways to follow a submitted deployment; a run uses exactly one:

    tracked    read the deployment group's blue-termination delay, sleep
               that long, then poll get_deployment under a PollPolicy
    delegated  hand the wait to botocore's deployment_successful waiter

Both raise DeploymentFailedError on an explicit Failed/Stopped status and
DeploymentTimeoutError when the attempt budget runs out.
"""

from __future__ import annotations

import sys
import time
from collections.abc import Callable
from typing import Any

from aws_lambda_powertools import Logger
from botocore.exceptions import BotoCoreError, ClientError, WaiterError

from ecs_bluegreen.appspec import appspec_content
from ecs_bluegreen.exceptions import (
    DeploymentError,
    DeploymentFailedError,
    DeploymentTimeoutError,
)
from ecs_bluegreen.models import DeploymentConfig, DeploymentStatus
from ecs_bluegreen.polling import PollPolicy, PollTimeout, poll_until

logger = Logger(service="ecs-bluegreen-deploy", stream=sys.stderr)

_MISSING_GROUP_CODES = {
    "ApplicationDoesNotExistException",
    "DeploymentGroupDoesNotExistException",
}


def get_termination_wait_minutes(
    client: Any, *, application: str, deployment_group: str
) -> int:
    """Return the group's terminationWaitTimeInMinutes, or 0 when unset."""
    try:
        response = client.get_deployment_group(
            applicationName=application,
            deploymentGroupName=deployment_group,
        )
    except ClientError as exc:
        code = exc.response.get("Error", {}).get("Code")
        if code in _MISSING_GROUP_CODES:
            raise DeploymentError(
                f"Deployment group '{deployment_group}' not found in application "
                f"'{application}'"
            ) from exc
        raise DeploymentError(f"Failed to read deployment group: {exc}") from exc
    except BotoCoreError as exc:
        raise DeploymentError(f"Failed to read deployment group: {exc}") from exc

    group = response.get("deploymentGroupInfo", {})
    termination = group.get("blueGreenDeploymentConfiguration", {}).get(
        "terminateBlueInstancesOnDeploymentSuccess", {}
    )
    return int(termination.get("terminationWaitTimeInMinutes") or 0)


def create_deployment(client: Any, config: DeploymentConfig, task_definition_arn: str) -> str:
    """Submit the deployment with the appspec inline; return its ID."""
    content = appspec_content(task_definition_arn, config.container_name, config.container_port)
    try:
        response = client.create_deployment(
            applicationName=config.deploy_app,
            deploymentGroupName=config.deploy_group,
            deploymentConfigName=config.deployment_config_name,
            description=f"Deploy {config.image} to {config.cluster}/{config.service}",
            revision={
                "revisionType": "AppSpecContent",
                "appSpecContent": {"content": content},
            },
        )
    except (ClientError, BotoCoreError) as exc:
        raise DeploymentError(f"Failed to create deployment: {exc}") from exc

    deployment_id = str(response.get("deploymentId") or "")
    if not deployment_id:
        raise DeploymentError("create_deployment returned no deployment ID")
    logger.info(
        "Created deployment",
        extra={"deployment_id": deployment_id, "task_definition_arn": task_definition_arn},
    )
    return deployment_id


def get_deployment_info(client: Any, deployment_id: str) -> dict[str, Any]:
    try:
        response = client.get_deployment(deploymentId=deployment_id)
    except (ClientError, BotoCoreError) as exc:
        raise DeploymentError(
            f"Failed to read deployment {deployment_id}: {exc}",
            deployment_id=deployment_id,
        ) from exc
    return response.get("deploymentInfo", {})


def _status_of(info: dict[str, Any]) -> str:
    return str(info.get("status", ""))


def _is_terminal(info: dict[str, Any]) -> bool:
    status = DeploymentStatus.parse(_status_of(info))
    return status is not None and status.is_terminal


def _failure(deployment_id: str, info: dict[str, Any]) -> DeploymentFailedError:
    status = _status_of(info)
    reason = str(info.get("errorInformation", {}).get("message", "")).strip()
    message = f"Deployment {deployment_id} {status.lower()}"
    if reason:
        message = f"{message}: {reason}"
    return DeploymentFailedError(message, deployment_id=deployment_id, status=status)


def _timeout(
    deployment_id: str, policy: PollPolicy, last_status: str | None
) -> DeploymentTimeoutError:
    return DeploymentTimeoutError(
        f"Timed out waiting for deployment {deployment_id} after "
        f"{policy.max_attempts} status checks (last status: {last_status or 'unknown'})",
        deployment_id=deployment_id,
        last_status=last_status,
    )


def wait_tracked(
    client: Any,
    deployment_id: str,
    *,
    wait_minutes: int,
    policy: PollPolicy,
    sleep: Callable[[float], None] = time.sleep,
) -> DeploymentStatus:
    """Sleep through the blue-termination delay, then poll to a terminal status."""
    if wait_minutes > 0:
        logger.info(
            "Waiting for blue task set termination window",
            extra={"deployment_id": deployment_id, "wait_minutes": wait_minutes},
        )
        sleep(wait_minutes * 60)

    def _fetch() -> dict[str, Any]:
        info = get_deployment_info(client, deployment_id)
        logger.info(
            "Deployment status",
            extra={"deployment_id": deployment_id, "status": _status_of(info)},
        )
        return info

    try:
        info = poll_until(_fetch, policy, is_terminal=_is_terminal, sleep=sleep)
    except PollTimeout as exc:
        last_status = _status_of(exc.last_value) if exc.last_value else None
        raise _timeout(deployment_id, policy, last_status) from exc

    status = DeploymentStatus(_status_of(info))
    if status.is_failure:
        raise _failure(deployment_id, info)
    return status


def wait_delegated(client: Any, deployment_id: str, *, policy: PollPolicy) -> DeploymentStatus:
    """Block on CodeDeploy's deployment_successful waiter."""
    waiter = client.get_waiter("deployment_successful")
    try:
        waiter.wait(
            deploymentId=deployment_id,
            WaiterConfig={
                "Delay": max(1, int(policy.interval_seconds)),
                "MaxAttempts": policy.max_attempts,
            },
        )
    except WaiterError as exc:
        info = (exc.last_response or {}).get("deploymentInfo", {})
        status = _status_of(info)
        if status in (DeploymentStatus.FAILED, DeploymentStatus.STOPPED):
            raise _failure(deployment_id, info) from exc
        if "Max attempts exceeded" in str(exc):
            raise _timeout(deployment_id, policy, status or None) from exc
        raise DeploymentError(
            f"Waiting for deployment {deployment_id} failed: {exc}",
            deployment_id=deployment_id,
        ) from exc
    return DeploymentStatus.SUCCEEDED
