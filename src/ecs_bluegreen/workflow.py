"""
ecs_bluegreen.workflow — The deployment pipeline, start to finish.

Steps run strictly in order inside one credential scope:

    1. fetch the service's active task definition       (ECS)
    2. derive the new task definition for the image      (pure)
    3. register it                                       (ECS)
    4. write taskdef.json and appspec.yaml
    5. create the CodeDeploy deployment and wait on it   (tracked | delegated)

Any failure aborts the run; the credential scope is released regardless.
"""

from __future__ import annotations

import sys
import time
from collections.abc import Callable

import boto3
from aws_lambda_powertools import Logger

from ecs_bluegreen import appspec, codedeploy, task_definition
from ecs_bluegreen.credentials import credential_scope, role_session_name
from ecs_bluegreen.models import DeploymentConfig, DeploymentResult, Strategy

logger = Logger(service="ecs-bluegreen-deploy", stream=sys.stderr)


def run_deployment(
    config: DeploymentConfig,
    *,
    base_session: boto3.session.Session | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> DeploymentResult:
    """Deploy config.image to the service and wait for CodeDeploy to finish.

    Returns the successful DeploymentResult; raises a DeployError subclass on
    any failure (DeploymentFailedError / DeploymentTimeoutError once the
    deployment has been submitted).
    """
    session = base_session or boto3.session.Session(region_name=config.region)
    logger.append_keys(cluster=config.cluster, ecs_service=config.service)
    logger.info(
        "Starting deployment",
        extra={
            "image": config.image,
            "deploy_app": config.deploy_app,
            "deploy_group": config.deploy_group,
            "strategy": str(config.strategy),
        },
    )

    with credential_scope(
        session,
        region=config.region,
        role=config.iam_role,
        session_name=role_session_name(config.service),
        duration_seconds=config.role_session_seconds,
    ) as creds:
        ecs = creds.client("ecs")
        deploy = creds.client("codedeploy")

        current = task_definition.fetch_task_definition(
            ecs, cluster=config.cluster, service=config.service
        )
        derived = task_definition.build_task_definition(current, config.image)
        task_definition_arn = task_definition.register_task_definition(ecs, derived)

        taskdef_path, appspec_path = appspec.write_deployment_files(
            config.output_dir,
            derived,
            container_name=config.container_name,
            container_port=config.container_port,
        )
        logger.info(
            "Wrote deployment files",
            extra={"task_definition_file": str(taskdef_path), "appspec_file": str(appspec_path)},
        )

        policy = config.poll_policy
        if config.strategy == Strategy.TRACKED:
            wait_minutes = codedeploy.get_termination_wait_minutes(
                deploy,
                application=config.deploy_app,
                deployment_group=config.deploy_group,
            )
            # Nothing has been submitted yet; fail before CodeDeploy is touched.
            creds.ensure_valid_for(wait_minutes * 60 + policy.budget_seconds)
            deployment_id = codedeploy.create_deployment(deploy, config, task_definition_arn)
            status = codedeploy.wait_tracked(
                deploy,
                deployment_id,
                wait_minutes=wait_minutes,
                policy=policy,
                sleep=sleep,
            )
        else:
            creds.ensure_valid_for(policy.budget_seconds)
            deployment_id = codedeploy.create_deployment(deploy, config, task_definition_arn)
            status = codedeploy.wait_delegated(deploy, deployment_id, policy=policy)

    logger.info(
        "Deployment finished",
        extra={"deployment_id": deployment_id, "status": str(status)},
    )
    return DeploymentResult(
        deployment_id=deployment_id,
        status=status,
        task_definition_arn=task_definition_arn,
    )
