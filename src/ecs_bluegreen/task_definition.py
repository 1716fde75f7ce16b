"""
ecs_bluegreen.task_definition — Fetch, derive and register ECS task definitions.

The new task definition mirrors the shape of the service's current one:
ECS rejects registrations carrying fields that are invalid for the task's
launch type (e.g. task-level cpu/memory on an EC2 task), so optional fields
are copied only when the source document has them.

Field policy:
    mandatory    family, volumes, containerDefinitions, placementConstraints
    conditional  networkMode, taskRoleArn, executionRoleArn,
                 runtimePlatform, ephemeralStorage  (only when present)
    FARGATE      executionRoleArn, requiresCompatibilities, cpu, memory
"""

from __future__ import annotations

import copy
import sys
from collections.abc import Mapping
from typing import Any, cast

from aws_lambda_powertools import Logger
from botocore.exceptions import BotoCoreError, ClientError

from ecs_bluegreen.exceptions import (
    RegistrationError,
    ServiceNotFoundError,
    TaskDefinitionLookupError,
)
from ecs_bluegreen.models import FARGATE

logger = Logger(service="ecs-bluegreen-deploy", stream=sys.stderr)

MANDATORY_FIELDS: tuple[str, ...] = (
    "family",
    "volumes",
    "containerDefinitions",
    "placementConstraints",
)
CONDITIONAL_FIELDS: tuple[str, ...] = (
    "networkMode",
    "taskRoleArn",
    "executionRoleArn",
    "runtimePlatform",
    "ephemeralStorage",
)
FARGATE_FIELDS: tuple[str, ...] = (
    "executionRoleArn",
    "requiresCompatibilities",
    "cpu",
    "memory",
)
_LIST_DEFAULTS = ("volumes", "placementConstraints")


# ---------------------------------------------------------------------------
# Fetcher
# ---------------------------------------------------------------------------


def fetch_task_definition(ecs_client: Any, *, cluster: str, service: str) -> dict[str, Any]:
    """Return the full task definition currently used by cluster/service.

    Raises ServiceNotFoundError when the service is missing or inactive, and
    TaskDefinitionLookupError when its task definition cannot be resolved.
    """
    try:
        response = ecs_client.describe_services(cluster=cluster, services=[service])
    except ClientError as exc:
        code = exc.response.get("Error", {}).get("Code")
        if code == "ClusterNotFoundException":
            raise ServiceNotFoundError(f"ECS cluster '{cluster}' not found") from exc
        raise ServiceNotFoundError(f"Failed to describe service {service}: {exc}") from exc
    except BotoCoreError as exc:
        raise ServiceNotFoundError(f"Failed to describe service {service}: {exc}") from exc

    services = response.get("services", [])
    if not services:
        failures = response.get("failures", [])
        raise ServiceNotFoundError(
            f"Service '{service}' not found in cluster '{cluster}': {failures}"
        )

    current = services[0]
    status = str(current.get("status", ""))
    if status and status != "ACTIVE":
        raise ServiceNotFoundError(
            f"Service '{service}' in cluster '{cluster}' is {status}, not ACTIVE"
        )

    task_definition_arn = str(current.get("taskDefinition") or "")
    if not task_definition_arn:
        raise TaskDefinitionLookupError(
            f"Service '{service}' has no task definition reference"
        )
    logger.info(
        "Resolved current task definition",
        extra={"ecs_service": service, "task_definition_arn": task_definition_arn},
    )

    try:
        described = ecs_client.describe_task_definition(taskDefinition=task_definition_arn)
    except (ClientError, BotoCoreError) as exc:
        raise TaskDefinitionLookupError(
            f"Failed to describe task definition {task_definition_arn}: {exc}"
        ) from exc

    task_definition = described.get("taskDefinition")
    if not isinstance(task_definition, dict):
        raise TaskDefinitionLookupError(
            f"describe_task_definition returned no document for {task_definition_arn}"
        )
    for required in ("family", "containerDefinitions"):
        if not task_definition.get(required):
            raise TaskDefinitionLookupError(
                f"Task definition {task_definition_arn} is missing '{required}'"
            )
    return task_definition


# ---------------------------------------------------------------------------
# Transformer
# ---------------------------------------------------------------------------


def _present(source: Mapping[str, Any], key: str) -> bool:
    value = source.get(key)
    if value is None:
        return False
    if isinstance(value, (str, list, dict, tuple)) and not value:
        return False
    return True


def is_fargate(task_definition: Mapping[str, Any]) -> bool:
    compatibilities = task_definition.get("requiresCompatibilities") or []
    return FARGATE in compatibilities


def build_task_definition(task_definition: Mapping[str, Any], image: str) -> dict[str, Any]:
    """Derive the register_task_definition request body for a new image.

    Pure: the source mapping is not modified and equal inputs give equal
    output, key order included. Every container definition gets the image.
    """
    containers = [
        {**copy.deepcopy(container), "image": image}
        for container in task_definition.get("containerDefinitions", [])
    ]

    derived: dict[str, Any] = {}
    for key in MANDATORY_FIELDS:
        if key == "containerDefinitions":
            derived[key] = containers
        elif key in _LIST_DEFAULTS:
            derived[key] = copy.deepcopy(task_definition.get(key) or [])
        else:
            derived[key] = task_definition.get(key)

    selected = [key for key in CONDITIONAL_FIELDS if _present(task_definition, key)]
    if is_fargate(task_definition):
        selected.extend(
            key
            for key in FARGATE_FIELDS
            if key not in selected and _present(task_definition, key)
        )

    for key in selected:
        derived[key] = copy.deepcopy(task_definition[key])
    return derived


# ---------------------------------------------------------------------------
# Registrar
# ---------------------------------------------------------------------------


def register_task_definition(ecs_client: Any, new_task_definition: Mapping[str, Any]) -> str:
    """Register the derived document and return the new revision's ARN."""
    try:
        response = ecs_client.register_task_definition(**new_task_definition)
    except (ClientError, BotoCoreError) as exc:
        raise RegistrationError(f"Failed to register task definition: {exc}") from exc

    registered = response.get("taskDefinition") or {}
    arn = cast(str, registered.get("taskDefinitionArn") or "")
    if not arn:
        raise RegistrationError(
            f"register_task_definition returned no ARN for family "
            f"'{new_task_definition.get('family')}'"
        )
    logger.info("Registered task definition", extra={"task_definition_arn": arn})
    return arn
