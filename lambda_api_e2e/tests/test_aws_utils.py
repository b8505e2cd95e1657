# Where: lambda_api_e2e/tests/test_aws_utils.py
# What: Unit tests for ECR authentication and log-group cleanup helpers.
# Why: Registry login must use the decoded token and the account registry host.
from __future__ import annotations

import base64

import pytest
from botocore.exceptions import ClientError

from lambda_api_e2e import aws_utils
from lambda_api_e2e.aws_utils import AWSUtils
from lambda_api_e2e.runner import CompletedCommand


class FakeSts:
    def get_caller_identity(self):
        return {"Account": "123456789012", "Arn": "arn:aws:iam::123456789012:user/ci"}


class FakeEcr:
    def __init__(self, tokens: list[str]) -> None:
        self.tokens = tokens

    def get_authorization_token(self):
        return {"authorizationData": [{"authorizationToken": token} for token in self.tokens]}


class FakeLogs:
    def __init__(self, error_code: str | None = None) -> None:
        self.error_code = error_code
        self.deleted: list[str] = []

    def delete_log_group(self, logGroupName: str) -> None:
        if self.error_code:
            raise ClientError(
                {"Error": {"Code": self.error_code, "Message": "nope"}}, "DeleteLogGroup"
            )
        self.deleted.append(logGroupName)


class FakeRunner:
    def __init__(self) -> None:
        self.commands: list[list[str]] = []
        self.inputs: list[str | None] = []

    def emit(self, message: str) -> None:
        del message

    def run(self, cmd, *, input_text=None, **kwargs) -> CompletedCommand:
        del kwargs
        self.commands.append([str(token) for token in cmd])
        self.inputs.append(input_text)
        return CompletedCommand(tuple(cmd), 0, "Login Succeeded", "")


def _token(password: str) -> str:
    return base64.b64encode(f"AWS:{password}".encode("utf-8")).decode("ascii")


def test_get_ecr_login_password_decodes_token() -> None:
    assert aws_utils.get_ecr_login_password(FakeEcr([_token("s3cr3t")])) == "s3cr3t"


def test_get_ecr_login_password_empty_token_list() -> None:
    assert aws_utils.get_ecr_login_password(FakeEcr([])) == ""


def test_ecr_registry_host() -> None:
    assert (
        aws_utils.ecr_registry_host("123456789012", "eu-west-1")
        == "123456789012.dkr.ecr.eu-west-1.amazonaws.com"
    )


def test_ecr_login_runs_docker_login_against_account_registry() -> None:
    runner = FakeRunner()

    registry = aws_utils.ecr_login(
        runner, "us-east-1", sts_client=FakeSts(), ecr_client=FakeEcr([_token("pw")])
    )

    assert registry == "123456789012.dkr.ecr.us-east-1.amazonaws.com"
    assert runner.commands == [
        ["docker", "login", "--username", "AWS", "--password-stdin", registry]
    ]
    assert runner.inputs == ["pw"]


def test_delete_log_group_removes_group() -> None:
    logs = FakeLogs()
    assert aws_utils.delete_log_group("/aws/lambda/ex-tf-lambda-api-default", logs) is True
    assert logs.deleted == ["/aws/lambda/ex-tf-lambda-api-default"]


def test_delete_log_group_missing_is_not_an_error() -> None:
    logs = FakeLogs(error_code="ResourceNotFoundException")
    assert aws_utils.delete_log_group("/aws/lambda/missing", logs) is False


def test_delete_log_group_other_errors_propagate() -> None:
    with pytest.raises(ClientError):
        aws_utils.delete_log_group("/aws/lambda/x", FakeLogs(error_code="AccessDeniedException"))


def test_resolve_region_prefers_env() -> None:
    assert AWSUtils.resolve_region({"AWS_REGION": "eu-central-1"}) == "eu-central-1"
    assert AWSUtils.resolve_region({"AWS_DEFAULT_REGION": "ap-south-1"}) == "ap-south-1"


def test_resolve_region_falls_back_to_default(monkeypatch) -> None:
    class _Session:
        region_name = None

    monkeypatch.setattr(aws_utils.boto3.session, "Session", lambda: _Session())
    assert AWSUtils.resolve_region({}) == "us-east-1"


def test_create_client_passes_region(monkeypatch) -> None:
    captured: dict[str, object] = {}

    def fake_client(service, **kwargs):
        captured["service"] = service
        captured["kwargs"] = kwargs
        return object()

    monkeypatch.setattr("lambda_api_e2e.aws_utils.boto3.client", fake_client)
    AWSUtils.create_client("ecr", "eu-west-1")

    assert captured["service"] == "ecr"
    kwargs = captured["kwargs"]
    assert isinstance(kwargs, dict)
    assert kwargs["region_name"] == "eu-west-1"
