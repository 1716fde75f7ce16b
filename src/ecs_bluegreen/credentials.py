"""
ecs_bluegreen.credentials — Scoped credentials for the deployment run.

When a delegated role is configured the workflow runs under temporary STS
credentials; otherwise it uses the ambient boto3 credential chain. Either way
every AWS client is created through the CredentialContext yielded by
credential_scope(), and the context is released when the scope exits, on
success and on every error path. Process environment variables are never
written.

Usage:
    with credential_scope(session, role="deploy-role", region="eu-west-2") as creds:
        ecs = creds.client("ecs")
"""

from __future__ import annotations

import re
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import boto3
from aws_lambda_powertools import Logger
from botocore.exceptions import BotoCoreError, ClientError

from ecs_bluegreen.exceptions import CredentialError
from ecs_bluegreen.models import DEFAULT_ROLE_SESSION_SECONDS

logger = Logger(service="ecs-bluegreen-deploy", stream=sys.stderr)

_SESSION_NAME_MAX = 64
_SESSION_NAME_INVALID = re.compile(r"[^\w+=,.@-]")


class CredentialContext:
    """Holds the boto3 session every collaborator builds its clients from.

    After release() the session and any temporary credentials are dropped;
    further client() calls raise CredentialError.
    """

    def __init__(
        self,
        session: boto3.session.Session,
        *,
        region: str,
        role_arn: str | None = None,
        duration_seconds: int | None = None,
    ) -> None:
        self._session: boto3.session.Session | None = session
        self.region = region
        self.role_arn = role_arn
        self.duration_seconds = duration_seconds

    @property
    def assumed(self) -> bool:
        return self.role_arn is not None

    @property
    def released(self) -> bool:
        return self._session is None

    def client(self, service_name: str) -> Any:
        if self._session is None:
            raise CredentialError(
                f"Credential scope already released; cannot create {service_name} client"
            )
        return self._session.client(service_name, region_name=self.region)

    def ensure_valid_for(self, seconds: float) -> None:
        """Raise CredentialError when an assumed session would expire within seconds.

        Ambient credentials are refreshed by botocore and are not checked.
        """
        if self.duration_seconds is None or seconds <= self.duration_seconds:
            return
        raise CredentialError(
            f"Deployment may run for {int(seconds)}s but assumed role credentials last "
            f"{self.duration_seconds}s; raise --role-duration or reduce the wait budget"
        )

    def release(self) -> None:
        self._session = None


def role_session_name(service: str) -> str:
    """Build an STS RoleSessionName from the target service name."""
    cleaned = _SESSION_NAME_INVALID.sub("-", f"ecs-deploy-{service}")
    return cleaned[:_SESSION_NAME_MAX]


def resolve_role_arn(sts_client: Any, role: str) -> str:
    """Return role unchanged when it is an ARN; expand a bare role name.

    A bare name is qualified with the caller's account:
    arn:aws:iam::<account>:role/<name>.
    """
    if role.startswith("arn:"):
        return role
    try:
        account = str(sts_client.get_caller_identity()["Account"])
    except (ClientError, BotoCoreError) as exc:
        raise CredentialError(f"Failed to read AWS identity: {exc}") from exc
    return f"arn:aws:iam::{account}:role/{role.removeprefix('role/')}"


def assume_role(
    base_session: boto3.session.Session,
    *,
    role: str,
    region: str,
    session_name: str,
    duration_seconds: int = DEFAULT_ROLE_SESSION_SECONDS,
) -> CredentialContext:
    """Exchange role for temporary credentials and wrap them in a context."""
    sts = base_session.client("sts", region_name=region)
    role_arn = resolve_role_arn(sts, role)
    try:
        response = sts.assume_role(
            RoleArn=role_arn,
            RoleSessionName=session_name,
            DurationSeconds=duration_seconds,
        )
    except (ClientError, BotoCoreError) as exc:
        raise CredentialError(f"Failed to assume role {role_arn}: {exc}") from exc

    credentials = response.get("Credentials") or {}
    access_key = credentials.get("AccessKeyId")
    secret_key = credentials.get("SecretAccessKey")
    session_token = credentials.get("SessionToken")
    if not (access_key and secret_key and session_token):
        raise CredentialError(f"AssumeRole returned incomplete credentials for {role_arn}")

    session = boto3.session.Session(
        aws_access_key_id=access_key,
        aws_secret_access_key=secret_key,
        aws_session_token=session_token,
        region_name=region,
    )
    logger.info(
        "Assumed deployment role",
        extra={"role_arn": role_arn, "expiration": str(credentials.get("Expiration", ""))},
    )
    return CredentialContext(
        session, region=region, role_arn=role_arn, duration_seconds=duration_seconds
    )


@contextmanager
def credential_scope(
    base_session: boto3.session.Session,
    *,
    region: str,
    role: str | None = None,
    session_name: str = "ecs-deploy",
    duration_seconds: int = DEFAULT_ROLE_SESSION_SECONDS,
) -> Iterator[CredentialContext]:
    """Yield a CredentialContext and release it when the block exits.

    With no role the context wraps base_session unchanged.
    """
    if role:
        context = assume_role(
            base_session,
            role=role,
            region=region,
            session_name=session_name,
            duration_seconds=duration_seconds,
        )
    else:
        context = CredentialContext(base_session, region=region)
    try:
        yield context
    finally:
        context.release()
        if context.assumed:
            logger.info(
                "Released deployment role credentials",
                extra={"role_arn": context.role_arn},
            )
