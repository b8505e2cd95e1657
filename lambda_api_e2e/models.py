# Where: lambda_api_e2e/models.py
# What: Dataclasses describing variants, provisioning options and run results.
# Why: Keep execution inputs explicit and avoid implicit global state.
from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from lambda_api_e2e import constants


@dataclass(frozen=True)
class Variant:
    name: str
    flavor: str = constants.FLAVOR_DEFAULT
    terraform_dir: str | None = None
    image_context: str | None = None
    required_env: tuple[str, ...] = ()

    @property
    def resource_name(self) -> str:
        return f"{constants.NAME_PREFIX}-{self.name}"

    @property
    def log_group_name(self) -> str:
        return f"{constants.LOG_GROUP_PREFIX}{self.resource_name}"

    def domain_name(self, hosted_zone: str) -> str:
        return f"{self.resource_name}.{hosted_zone}"

    def resolve_terraform_dir(self, examples_dir: Path) -> Path:
        return examples_dir / (self.terraform_dir or self.name)

    def resolve_image_context(self, examples_dir: Path) -> Path:
        return examples_dir / (self.image_context or "src-docker")


@dataclass(frozen=True)
class TerraformOptions:
    terraform_dir: Path
    lock_timeout: str = constants.DEFAULT_LOCK_TIMEOUT
    upgrade: bool = False
    targets: tuple[str, ...] = ()
    variables: dict[str, str] = field(default_factory=dict)
    env: dict[str, str] = field(default_factory=dict)
    binary: str = constants.DEFAULT_TERRAFORM_BIN

    def with_targets(self, *targets: str) -> "TerraformOptions":
        return replace(self, targets=tuple(targets))


@dataclass
class PhaseTiming:
    name: str
    status: str
    duration: float


@dataclass
class VariantResult:
    variant: Variant
    outputs: dict[str, Any] = field(default_factory=dict)
    local_response: str | None = None
    deployed_response: str | None = None
    phases: list[PhaseTiming] = field(default_factory=list)
