"""
ecs_bluegreen.appspec — Deployment files for the CodeDeploy ECS blue/green flow.

Two files are written to the output directory on every run, overwriting
anything already there:

    taskdef.json   the derived task definition request body
    appspec.yaml   the appspec, with TaskDefinition left as the
                   <TASK_DEFINITION> placeholder

Inline submission (codedeploy.create_deployment) uses appspec_content(),
which carries the registered ARN instead of the placeholder.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

TASK_DEFINITION_FILENAME = "taskdef.json"
APPSPEC_FILENAME = "appspec.yaml"
TASK_DEFINITION_PLACEHOLDER = "<TASK_DEFINITION>"
APPSPEC_VERSION = 0.0


def build_appspec(
    task_definition: str, container_name: str, container_port: int
) -> dict[str, Any]:
    """Return the appspec document targeting one ECS service."""
    return {
        "version": APPSPEC_VERSION,
        "Resources": [
            {
                "TargetService": {
                    "Type": "AWS::ECS::Service",
                    "Properties": {
                        "TaskDefinition": task_definition,
                        "LoadBalancerInfo": {
                            "ContainerName": container_name,
                            "ContainerPort": container_port,
                        },
                    },
                }
            }
        ],
    }


def appspec_content(task_definition_arn: str, container_name: str, container_port: int) -> str:
    """Serialise the appspec for an AppSpecContent revision."""
    return json.dumps(build_appspec(task_definition_arn, container_name, container_port))


def write_deployment_files(
    output_dir: Path,
    new_task_definition: Mapping[str, Any],
    *,
    container_name: str,
    container_port: int,
) -> tuple[Path, Path]:
    """Write taskdef.json and appspec.yaml; return their paths."""
    output_dir.mkdir(parents=True, exist_ok=True)

    task_definition_path = output_dir / TASK_DEFINITION_FILENAME
    task_definition_path.write_text(
        json.dumps(new_task_definition, indent=2) + "\n",
        encoding="utf-8",
    )

    appspec_path = output_dir / APPSPEC_FILENAME
    appspec = build_appspec(TASK_DEFINITION_PLACEHOLDER, container_name, container_port)
    appspec_path.write_text(
        yaml.safe_dump(appspec, sort_keys=False, default_flow_style=False),
        encoding="utf-8",
    )
    return task_definition_path, appspec_path

