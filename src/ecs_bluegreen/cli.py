"""
ecs_bluegreen.cli — Command-line entrypoint for a blue/green ECS deployment.

Registers a new revision of the service's task definition with the given
image, writes taskdef.json and appspec.yaml, then submits a CodeDeploy
blue/green deployment and waits for it to finish.

Exit codes:
    0  Deployment succeeded (or --help)
    1  Invalid arguments, or any lookup/registration/credential/deployment
       failure, including a deployment timeout

Usage:
    ecs-bluegreen-deploy --cluster <cluster> --service <service> \\
        --image <repo:tag> --deploy_app <app> --deploy_group <group> \\
        --container_name <name> --container_port <port> [--region <region>]

Environment:
    AWS_REGION / AWS_DEFAULT_REGION  region when --region is not given
    DEPLOY_IAM_ROLE                  role to assume when --iam-role is not given
"""

from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Mapping
from pathlib import Path
from typing import NoReturn

from aws_lambda_powertools import Logger
from botocore.exceptions import BotoCoreError, ClientError

from ecs_bluegreen.exceptions import (
    ConfigError,
    DeployError,
    DeploymentFailedError,
    DeploymentTimeoutError,
)
from ecs_bluegreen.models import (
    DEFAULT_DEPLOYMENT_CONFIG,
    DEFAULT_MAX_POLL_ATTEMPTS,
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_ROLE_SESSION_SECONDS,
    DeploymentConfig,
    Strategy,
)
from ecs_bluegreen.workflow import run_deployment

logger = Logger(service="ecs-bluegreen-deploy", stream=sys.stderr)

PROG = "ecs-bluegreen-deploy"
ROLE_ENV_NAME = "DEPLOY_IAM_ROLE"
_REGION_ENV_NAMES = ("AWS_REGION", "AWS_DEFAULT_REGION")


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that raises ConfigError instead of exiting with code 2."""

    def error(self, message: str) -> NoReturn:
        raise ConfigError(message)


def build_parser() -> _ArgumentParser:
    parser = _ArgumentParser(
        prog=PROG,
        description="Blue/green deploy a new image to an ECS service through CodeDeploy",
    )
    parser.add_argument("--cluster", required=True, help="ECS cluster name")
    parser.add_argument(
        "--region",
        default=None,
        help="AWS region (default: $AWS_REGION, then $AWS_DEFAULT_REGION)",
    )
    parser.add_argument("--service", required=True, help="ECS service name")
    parser.add_argument("--image", required=True, help="New container image reference")
    parser.add_argument("--deploy_app", required=True, help="CodeDeploy application name")
    parser.add_argument(
        "--container_name",
        required=True,
        help="Container receiving load balancer traffic",
    )
    parser.add_argument(
        "--container_port",
        required=True,
        type=int,
        help="Container port receiving load balancer traffic",
    )
    parser.add_argument("--deploy_group", required=True, help="CodeDeploy deployment group name")
    parser.add_argument(
        "--iam-role",
        dest="iam_role",
        default=None,
        help=f"Role name or ARN to assume for the deployment (default: ${ROLE_ENV_NAME})",
    )
    parser.add_argument(
        "--deployment_config_name",
        default=DEFAULT_DEPLOYMENT_CONFIG,
        help=f"CodeDeploy deployment configuration (default {DEFAULT_DEPLOYMENT_CONFIG})",
    )
    parser.add_argument(
        "--strategy",
        choices=[s.value for s in Strategy],
        default=Strategy.TRACKED.value,
        help="tracked: wait termination delay then poll; delegated: CodeDeploy waiter",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("."),
        help="Directory for taskdef.json and appspec.yaml (default: current directory)",
    )
    parser.add_argument(
        "--poll-interval",
        type=int,
        default=DEFAULT_POLL_INTERVAL_SECONDS,
        help=f"Seconds between deployment status checks (default {DEFAULT_POLL_INTERVAL_SECONDS})",
    )
    parser.add_argument(
        "--max-attempts",
        type=int,
        default=DEFAULT_MAX_POLL_ATTEMPTS,
        help=f"Maximum deployment status checks (default {DEFAULT_MAX_POLL_ATTEMPTS})",
    )
    parser.add_argument(
        "--role-duration",
        type=int,
        default=DEFAULT_ROLE_SESSION_SECONDS,
        help=f"Assumed role session duration in seconds (default {DEFAULT_ROLE_SESSION_SECONDS})",
    )
    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments; raises ConfigError on unknown or missing flags."""
    return build_parser().parse_args(argv)


def _resolve_region(explicit: str | None, environ: Mapping[str, str]) -> str:
    if explicit and explicit.strip():
        return explicit.strip()
    for name in _REGION_ENV_NAMES:
        value = environ.get(name, "").strip()
        if value:
            return value
    return ""


def _resolve_role(explicit: str | None, environ: Mapping[str, str]) -> str | None:
    if explicit and explicit.strip():
        return explicit.strip()
    return environ.get(ROLE_ENV_NAME, "").strip() or None


def build_config(
    args: argparse.Namespace, environ: Mapping[str, str] | None = None
) -> DeploymentConfig:
    """Turn parsed arguments plus environment fallbacks into a DeploymentConfig."""
    env = os.environ if environ is None else environ
    return DeploymentConfig(
        cluster=args.cluster.strip(),
        region=_resolve_region(args.region, env),
        service=args.service.strip(),
        image=args.image.strip(),
        deploy_app=args.deploy_app.strip(),
        container_name=args.container_name.strip(),
        container_port=args.container_port,
        deploy_group=args.deploy_group.strip(),
        deployment_config_name=args.deployment_config_name.strip(),
        iam_role=_resolve_role(args.iam_role, env),
        strategy=Strategy(args.strategy),
        output_dir=args.output_dir,
        poll_interval_seconds=args.poll_interval,
        max_poll_attempts=args.max_attempts,
        role_session_seconds=args.role_duration,
    )


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint."""
    parser = build_parser()
    try:
        config = build_config(parser.parse_args(argv))
    except ConfigError as exc:
        parser.print_usage(sys.stderr)
        print(f"{PROG}: error: {exc}", file=sys.stderr)
        return 1

    try:
        result = run_deployment(config)
    except DeploymentTimeoutError as exc:
        print(f"DEPLOYMENT_TIMEOUT deployment_id={exc.deployment_id} {exc}", file=sys.stderr)
        return 1
    except DeploymentFailedError as exc:
        print(
            f"DEPLOYMENT_FAILED deployment_id={exc.deployment_id} status={exc.status} {exc}",
            file=sys.stderr,
        )
        return 1
    except DeployError as exc:
        logger.error("Deployment aborted", extra={"error_type": type(exc).__name__})
        print(f"DEPLOYMENT_ABORTED {exc}", file=sys.stderr)
        return 1
    except (ClientError, BotoCoreError) as exc:
        logger.exception("Unexpected AWS error")
        print(f"DEPLOYMENT_ABORTED AWS error: {exc}", file=sys.stderr)
        return 1

    print(
        f"DEPLOYMENT_SUCCEEDED deployment_id={result.deployment_id} "
        f"task_definition={result.task_definition_arn}"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
