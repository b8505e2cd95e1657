from __future__ import annotations

import os
from pathlib import Path

import pytest

from lambda_api_e2e import config, constants
from lambda_api_e2e.config import ConfigError


def test_require_env_returns_value() -> None:
    env = {constants.ENV_PRIMARY_HOSTED_ZONE: " example.org "}
    assert (
        config.require_env(constants.ENV_PRIMARY_HOSTED_ZONE, "guidance", env) == "example.org"
    )


def test_require_env_missing_raises_guidance() -> None:
    with pytest.raises(ConfigError) as excinfo:
        config.require_env(
            constants.ENV_PRIMARY_HOSTED_ZONE, constants.PRIMARY_HOSTED_ZONE_GUIDANCE, {}
        )
    assert str(excinfo.value) == (
        "TF_VAR_primary_hosted_zone must be set to run tests. "
        "e.g. 'export TF_VAR_primary_hosted_zone=example.org'"
    )


def test_variant_env_guidance_names_variant() -> None:
    assert constants.variant_env_guidance(constants.ENV_ALTERNATE_DOMAIN_NAME, "alt-domain") == (
        "TF_VAR_alternate_domain_name must be set to test alt-domain variant. "
        "e.g. 'export TF_VAR_alternate_domain_name=example.org'"
    )


def test_load_settings_defaults(tmp_path: Path) -> None:
    settings = config.load_settings({"AWS_REGION": "us-west-2"}, project_root=tmp_path)

    assert settings.examples_dir == (tmp_path / "examples").resolve()
    assert settings.region == "us-west-2"
    assert settings.lock_timeout == "5m"
    assert settings.skip_teardown is False
    assert settings.log_dir == tmp_path
    assert settings.terraform_bin == "terraform"


def test_load_settings_overrides(tmp_path: Path) -> None:
    env = {
        "AWS_REGION": "eu-west-1",
        constants.ENV_EXAMPLES_DIR: "fixtures/examples",
        constants.ENV_LOCK_TIMEOUT: "10m",
        constants.ENV_SKIP_TEARDOWN: "yes",
        constants.ENV_TERRAFORM_BIN: "tofu",
    }
    settings = config.load_settings(env, project_root=tmp_path)

    assert settings.examples_dir == (tmp_path / "fixtures" / "examples").resolve()
    assert settings.lock_timeout == "10m"
    assert settings.skip_teardown is True
    assert settings.terraform_bin == "tofu"


def test_load_variants_default_table() -> None:
    variants = config.load_variants()

    assert set(variants) == {"default", "docker", "alt-domain"}
    assert variants["docker"].flavor == constants.FLAVOR_IMAGE
    assert variants["alt-domain"].flavor == constants.FLAVOR_ALT_DOMAIN
    assert variants["alt-domain"].required_env == (constants.ENV_ALTERNATE_DOMAIN_NAME,)
    assert variants["default"].resource_name == "ex-tf-lambda-api-default"
    assert variants["default"].domain_name("example.org") == "ex-tf-lambda-api-default.example.org"
    assert variants["default"].log_group_name == "/aws/lambda/ex-tf-lambda-api-default"


def test_load_variants_rejects_unknown_flavor(tmp_path: Path) -> None:
    path = tmp_path / "variants.yaml"
    path.write_text("variants:\n  weird:\n    flavor: lambda-at-edge\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="unknown flavor"):
        config.load_variants(path)


def test_load_variants_rejects_empty_table(tmp_path: Path) -> None:
    path = tmp_path / "variants.yaml"
    path.write_text("variants: {}\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        config.load_variants(path)


def test_load_env_file_does_not_override(monkeypatch, tmp_path: Path) -> None:
    env_file = tmp_path / ".env.test"
    env_file.write_text(
        "TF_VAR_primary_hosted_zone=from-file.org\nLAMBDA_API_LOCK_TIMEOUT=7m\n",
        encoding="utf-8",
    )
    monkeypatch.setenv(constants.ENV_PRIMARY_HOSTED_ZONE, "from-env.org")
    monkeypatch.setenv(constants.ENV_LOCK_TIMEOUT, "unset")
    monkeypatch.delenv(constants.ENV_LOCK_TIMEOUT)

    assert config.load_env_file(env_file) is True

    assert os.environ[constants.ENV_PRIMARY_HOSTED_ZONE] == "from-env.org"
    assert os.environ[constants.ENV_LOCK_TIMEOUT] == "7m"


def test_load_env_file_missing(tmp_path: Path) -> None:
    assert config.load_env_file(tmp_path / "absent.env") is False
