"""Unit tests for ecs_bluegreen.cli — argument handling and exit codes."""

from __future__ import annotations

import os
import subprocess
import sys
import textwrap
from pathlib import Path
from typing import Any

import pytest

from ecs_bluegreen import cli
from ecs_bluegreen.exceptions import (
    DeploymentFailedError,
    DeploymentTimeoutError,
    ServiceNotFoundError,
)
from ecs_bluegreen.models import (
    DEFAULT_DEPLOYMENT_CONFIG,
    DeploymentConfig,
    DeploymentResult,
    DeploymentStatus,
    Strategy,
)

_ARN = "arn:aws:ecs:eu-west-2:111122223333:task-definition/orders-api:8"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("AWS_REGION", "AWS_DEFAULT_REGION", "DEPLOY_IAM_ROLE"):
        monkeypatch.delenv(name, raising=False)


def _argv(**overrides: str | None) -> list[str]:
    values: dict[str, str | None] = {
        "--cluster": "platform-prod",
        "--region": "eu-west-2",
        "--service": "orders-api",
        "--image": "orders-api:2.4.0",
        "--deploy_app": "orders-app",
        "--container_name": "orders-api",
        "--container_port": "8080",
        "--deploy_group": "orders-dg",
    }
    values.update(overrides)
    argv: list[str] = []
    for flag, value in values.items():
        if value is not None:
            argv.extend([flag, value])
    return argv


class _RecordingRun:
    def __init__(self, outcome: Any = None) -> None:
        self.outcome = outcome
        self.configs: list[DeploymentConfig] = []

    def __call__(self, config: DeploymentConfig) -> DeploymentResult:
        self.configs.append(config)
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        return DeploymentResult(
            deployment_id="d-ABCDEF123",
            status=DeploymentStatus.SUCCEEDED,
            task_definition_arn=_ARN,
        )


# ---------------------------------------------------------------------------
# parse_args / build_config
# ---------------------------------------------------------------------------


def test_parse_args_defaults() -> None:
    args = cli.parse_args(_argv())

    assert args.container_port == 8080
    assert args.deployment_config_name == DEFAULT_DEPLOYMENT_CONFIG
    assert args.strategy == "tracked"
    assert args.iam_role is None
    assert args.output_dir == Path(".")


def test_build_config_from_flags() -> None:
    args = cli.parse_args(
        _argv() + ["--strategy", "delegated", "--iam-role", "ecs-deployer", "--max-attempts", "5"]
    )

    config = cli.build_config(args, environ={})

    assert config.region == "eu-west-2"
    assert config.strategy is Strategy.DELEGATED
    assert config.iam_role == "ecs-deployer"
    assert config.poll_policy.max_attempts == 5


def test_region_falls_back_to_environment() -> None:
    args = cli.parse_args(_argv(**{"--region": None}))

    assert cli.build_config(args, environ={"AWS_REGION": "us-east-1"}).region == "us-east-1"
    assert (
        cli.build_config(args, environ={"AWS_DEFAULT_REGION": "eu-west-1"}).region == "eu-west-1"
    )


def test_region_flag_wins_over_environment() -> None:
    args = cli.parse_args(_argv())

    config = cli.build_config(args, environ={"AWS_REGION": "us-east-1"})

    assert config.region == "eu-west-2"


def test_role_falls_back_to_environment() -> None:
    args = cli.parse_args(_argv())

    config = cli.build_config(args, environ={"DEPLOY_IAM_ROLE": "arn:aws:iam::1:role/deploy"})

    assert config.iam_role == "arn:aws:iam::1:role/deploy"


# ---------------------------------------------------------------------------
# main — argument errors
# ---------------------------------------------------------------------------


def test_missing_service_exits_1_without_aws_calls(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    run = _RecordingRun()
    monkeypatch.setattr(cli, "run_deployment", run)

    rc = cli.main(_argv(**{"--service": None}))

    assert rc == 1
    err = capsys.readouterr().err
    assert "usage:" in err
    assert "--service" in err
    assert run.configs == []


def test_empty_service_value_names_flag(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    run = _RecordingRun()
    monkeypatch.setattr(cli, "run_deployment", run)

    rc = cli.main(_argv(**{"--service": "  "}))

    assert rc == 1
    assert "Missing required argument: --service" in capsys.readouterr().err
    assert run.configs == []


def test_missing_region_everywhere_exits_1(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setattr(cli, "run_deployment", _RecordingRun())

    rc = cli.main(_argv(**{"--region": None}))

    assert rc == 1
    assert "--region" in capsys.readouterr().err


@pytest.mark.parametrize(
    "extra",
    [
        ["--unknown-flag", "x"],
        ["--strategy", "sideways"],
    ],
)
def test_bad_arguments_exit_1(
    extra: list[str], monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setattr(cli, "run_deployment", _RecordingRun())

    rc = cli.main(_argv() + extra)

    assert rc == 1
    assert "usage:" in capsys.readouterr().err


def test_non_integer_port_exits_1(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli, "run_deployment", _RecordingRun())

    assert cli.main(_argv(**{"--container_port": "http"})) == 1


def test_out_of_range_port_exits_1(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setattr(cli, "run_deployment", _RecordingRun())

    rc = cli.main(_argv(**{"--container_port": "70000"}))

    assert rc == 1
    assert "--container_port" in capsys.readouterr().err


def test_help_exits_0(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--help"])

    assert excinfo.value.code == 0
    assert "--deploy_group" in capsys.readouterr().out


# ---------------------------------------------------------------------------
# main — deployment outcomes
# ---------------------------------------------------------------------------


def test_success_prints_deployment_id_and_exits_0(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    run = _RecordingRun()
    monkeypatch.setattr(cli, "run_deployment", run)

    rc = cli.main(_argv())

    assert rc == 0
    out = capsys.readouterr().out
    assert "DEPLOYMENT_SUCCEEDED deployment_id=d-ABCDEF123" in out
    assert _ARN in out
    assert run.configs[0].service == "orders-api"


def test_timeout_and_failure_are_reported_differently(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setattr(
        cli,
        "run_deployment",
        _RecordingRun(
            DeploymentTimeoutError(
                "Timed out waiting for deployment d-1",
                deployment_id="d-1",
                last_status="InProgress",
            )
        ),
    )
    assert cli.main(_argv()) == 1
    timeout_err = capsys.readouterr().err

    monkeypatch.setattr(
        cli,
        "run_deployment",
        _RecordingRun(
            DeploymentFailedError("Deployment d-1 failed", deployment_id="d-1", status="Failed")
        ),
    )
    assert cli.main(_argv()) == 1
    failed_err = capsys.readouterr().err

    assert timeout_err.startswith("DEPLOYMENT_TIMEOUT deployment_id=d-1")
    assert failed_err.startswith("DEPLOYMENT_FAILED deployment_id=d-1 status=Failed")


def test_lookup_failure_aborts_with_exit_1(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setattr(
        cli,
        "run_deployment",
        _RecordingRun(ServiceNotFoundError("Service 'orders-api' not found")),
    )

    rc = cli.main(_argv())

    assert rc == 1
    assert "DEPLOYMENT_ABORTED Service 'orders-api' not found" in capsys.readouterr().err


# ---------------------------------------------------------------------------
# Output streams
# ---------------------------------------------------------------------------

_SRC_DIR = Path(__file__).resolve().parents[2] / "src"

_HAPPY_PATH_RUNNER = textwrap.dedent(
    """
    import functools
    import sys
    from unittest.mock import MagicMock

    import boto3
    from moto import mock_aws

    from ecs_bluegreen import cli
    from ecs_bluegreen.workflow import run_deployment


    class Session:
        def __init__(self, clients):
            self.clients = clients

        def client(self, name, region_name=None):
            return self.clients[name]


    with mock_aws():
        ecs = boto3.client("ecs", region_name="eu-west-2")
        ecs.create_cluster(clusterName="platform-prod")
        registered = ecs.register_task_definition(
            family="orders-api",
            containerDefinitions=[{"name": "orders-api", "image": "orders-api:2.3.9"}],
        )
        ecs.create_service(
            cluster="platform-prod",
            serviceName="orders-api",
            taskDefinition=registered["taskDefinition"]["taskDefinitionArn"],
            desiredCount=1,
        )
        deploy = MagicMock()
        deploy.get_deployment_group.return_value = {"deploymentGroupInfo": {}}
        deploy.create_deployment.return_value = {"deploymentId": "d-ABCDEF123"}
        deploy.get_deployment.return_value = {"deploymentInfo": {"status": "Succeeded"}}
        cli.run_deployment = functools.partial(
            run_deployment,
            base_session=Session({"ecs": ecs, "codedeploy": deploy}),
            sleep=lambda _: None,
        )
        sys.exit(cli.main(sys.argv[1:]))
    """
)


def test_stdout_carries_only_the_status_line(tmp_path: Path) -> None:
    env = {
        **os.environ,
        "PYTHONPATH": os.pathsep.join(filter(None, [str(_SRC_DIR), os.environ.get("PYTHONPATH")])),
        "AWS_ACCESS_KEY_ID": "testing",
        "AWS_SECRET_ACCESS_KEY": "testing",
        "AWS_SESSION_TOKEN": "testing",
        "AWS_DEFAULT_REGION": "eu-west-2",
        "POWERTOOLS_LOG_LEVEL": "INFO",
    }

    proc = subprocess.run(
        [sys.executable, "-c", _HAPPY_PATH_RUNNER, *_argv(), "--output-dir", str(tmp_path)],
        capture_output=True,
        text=True,
        env=env,
        timeout=120,
        check=False,
    )

    assert proc.returncode == 0, proc.stderr
    lines = proc.stdout.splitlines()
    assert len(lines) == 1
    assert lines[0].startswith("DEPLOYMENT_SUCCEEDED deployment_id=d-ABCDEF123 ")
    assert "Starting deployment" in proc.stderr
