# Where: lambda_api_e2e/config.py
# What: Environment loading, harness settings and the variant table.
# Why: Missing configuration must fail before any infrastructure is created.
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

import yaml
from dotenv import load_dotenv

from lambda_api_e2e import constants
from lambda_api_e2e.aws_utils import AWSUtils
from lambda_api_e2e.models import Variant

# Assuming this file is lambda_api_e2e/config.py, parent.parent is the repository root.
PROJECT_ROOT = Path(__file__).resolve().parent.parent
VARIANTS_FILE = Path(__file__).resolve().parent / "variants.yaml"
ENV_TEST_FILE = PROJECT_ROOT / ".env.test"

_TRUTHY = {"1", "true", "yes", "on"}


class ConfigError(RuntimeError):
    """Raised when required configuration is missing or invalid."""


@dataclass(frozen=True)
class HarnessSettings:
    project_root: Path
    examples_dir: Path
    region: str
    lock_timeout: str = constants.DEFAULT_LOCK_TIMEOUT
    skip_teardown: bool = False
    log_dir: Path | None = None
    terraform_bin: str = constants.DEFAULT_TERRAFORM_BIN
    docker_bin: str = constants.DEFAULT_DOCKER_BIN


def load_env_file(path: Path = ENV_TEST_FILE) -> bool:
    """Load `.env.test` defaults without overriding the real environment."""
    if not path.exists():
        return False
    return load_dotenv(path, override=False)


def require_env(key: str, guidance: str, env: Mapping[str, str] | None = None) -> str:
    lookup = os.environ if env is None else env
    value = lookup.get(key, "").strip()
    if value == "":
        raise ConfigError(guidance)
    return value


def is_truthy(value: str | None) -> bool:
    return (value or "").strip().lower() in _TRUTHY


def load_settings(
    env: Mapping[str, str] | None = None,
    *,
    project_root: Path = PROJECT_ROOT,
) -> HarnessSettings:
    lookup = os.environ if env is None else env

    examples_raw = lookup.get(constants.ENV_EXAMPLES_DIR, "").strip()
    examples_dir = Path(examples_raw).expanduser() if examples_raw else project_root / "examples"
    if not examples_dir.is_absolute():
        examples_dir = project_root / examples_dir

    log_dir_raw = lookup.get(constants.ENV_LOG_DIR, "").strip()
    log_dir = Path(log_dir_raw).expanduser() if log_dir_raw else project_root

    return HarnessSettings(
        project_root=project_root,
        examples_dir=examples_dir.resolve(),
        region=AWSUtils.resolve_region(lookup),
        lock_timeout=lookup.get(constants.ENV_LOCK_TIMEOUT, "").strip()
        or constants.DEFAULT_LOCK_TIMEOUT,
        skip_teardown=is_truthy(lookup.get(constants.ENV_SKIP_TEARDOWN)),
        log_dir=log_dir,
        terraform_bin=lookup.get(constants.ENV_TERRAFORM_BIN, "").strip()
        or constants.DEFAULT_TERRAFORM_BIN,
        docker_bin=lookup.get(constants.ENV_DOCKER_BIN, "").strip()
        or constants.DEFAULT_DOCKER_BIN,
    )


def load_variants(path: Path = VARIANTS_FILE) -> dict[str, Variant]:
    if not path.exists():
        raise ConfigError(f"variant table not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    raw_variants = data.get("variants", {})
    if not isinstance(raw_variants, dict) or not raw_variants:
        raise ConfigError(f"'variants' must be a non-empty map in {path}")

    variants: dict[str, Variant] = {}
    for name, raw in raw_variants.items():
        variants[str(name)] = _parse_variant(str(name), raw or {})
    return variants


def _parse_variant(name: str, raw: object) -> Variant:
    if not isinstance(raw, dict):
        raise ConfigError(f"variant '{name}' must be a map")

    flavor = str(raw.get("flavor", constants.FLAVOR_DEFAULT)).strip()
    if flavor not in constants.FLAVORS:
        raise ConfigError(
            f"variant '{name}' has unknown flavor '{flavor}' "
            f"(expected one of: {', '.join(constants.FLAVORS)})"
        )

    required = raw.get("required_env", [])
    if not isinstance(required, list):
        raise ConfigError(f"variant '{name}' required_env must be a list")

    terraform_dir = raw.get("terraform_dir")
    image_context = raw.get("image_context")
    return Variant(
        name=name,
        flavor=flavor,
        terraform_dir=str(terraform_dir) if terraform_dir else None,
        image_context=str(image_context) if image_context else None,
        required_env=tuple(str(key) for key in required),
    )
