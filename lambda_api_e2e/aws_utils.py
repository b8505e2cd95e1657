import base64
import logging
import os
from typing import Any, Mapping

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from lambda_api_e2e import constants
from lambda_api_e2e.images import login
from lambda_api_e2e.runner import CommandRunner

logger = logging.getLogger(__name__)

_CLIENT_CONFIG = Config(retries={"max_attempts": 5, "mode": "standard"})


class AWSUtils:
    """Helper class for creating AWS clients with consistent configuration."""

    @staticmethod
    def resolve_region(env: Mapping[str, str] | None = None) -> str:
        lookup = os.environ if env is None else env
        for key in ("AWS_REGION", "AWS_DEFAULT_REGION"):
            value = lookup.get(key, "").strip()
            if value:
                return value
        session_region = boto3.session.Session().region_name
        return session_region or constants.DEFAULT_REGION

    @staticmethod
    def create_client(service: str, region: str | None = None):
        return boto3.client(
            service,
            region_name=region or AWSUtils.resolve_region(),
            config=_CLIENT_CONFIG,
        )

    @staticmethod
    def create_sts_client(region: str | None = None):
        return AWSUtils.create_client("sts", region)

    @staticmethod
    def create_ecr_client(region: str | None = None):
        return AWSUtils.create_client("ecr", region)

    @staticmethod
    def create_logs_client(region: str | None = None):
        return AWSUtils.create_client("logs", region)


def get_account_id(sts_client: Any = None) -> str:
    client = sts_client or AWSUtils.create_sts_client()
    return client.get_caller_identity()["Account"]


def get_ecr_login_password(ecr_client: Any = None) -> str:
    """Return the password half of the first ECR authorization token.

    An empty token list yields an empty password; `docker login` then
    rejects it and the failure surfaces there.
    """
    client = ecr_client or AWSUtils.create_ecr_client()
    auth = client.get_authorization_token()
    data = auth.get("authorizationData") or []
    if not data:
        return ""
    token = data[0].get("authorizationToken") or ""
    decoded = base64.b64decode(token).decode("utf-8")
    _, _, password = decoded.partition(":")
    return password


def ecr_registry_host(account_id: str, region: str) -> str:
    return f"{account_id}.dkr.ecr.{region}.amazonaws.com"


def ecr_login(
    runner: CommandRunner,
    region: str,
    *,
    sts_client: Any = None,
    ecr_client: Any = None,
    docker_bin: str = constants.DEFAULT_DOCKER_BIN,
) -> str:
    """Authenticate the local docker client against the account registry."""
    account_id = get_account_id(sts_client or AWSUtils.create_sts_client(region))
    password = get_ecr_login_password(ecr_client or AWSUtils.create_ecr_client(region))
    registry = ecr_registry_host(account_id, region)
    login(
        runner,
        registry,
        username=constants.ECR_USERNAME,
        password=password,
        docker_bin=docker_bin,
    )
    return registry


def delete_log_group(name: str, logs_client: Any = None) -> bool:
    """Delete a log group left behind by an earlier destroy.

    Returns False when the group does not exist.
    """
    client = logs_client or AWSUtils.create_logs_client()
    try:
        client.delete_log_group(logGroupName=name)
    except ClientError as exc:
        if exc.response.get("Error", {}).get("Code") == "ResourceNotFoundException":
            logger.debug("log group %s not found, nothing to delete", name)
            return False
        raise
    logger.info("deleted stale log group %s", name)
    return True
