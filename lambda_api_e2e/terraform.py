# Where: lambda_api_e2e/terraform.py
# What: Terraform init/apply/output/destroy against one example directory.
# Why: A provisioning session must tear down whatever it created on every exit path.
from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from typing import Any, Iterator

from lambda_api_e2e.models import TerraformOptions
from lambda_api_e2e.runner import CommandRunner, RunnerError

logger = logging.getLogger(__name__)


def _lock_args(options: TerraformOptions) -> list[str]:
    return ["-lock=true", f"-lock-timeout={options.lock_timeout}"]


def _plan_args(options: TerraformOptions) -> list[str]:
    args = [f"-target={target}" for target in options.targets]
    for key in sorted(options.variables):
        args.extend(["-var", f"{key}={options.variables[key]}"])
    return args


def init_args(options: TerraformOptions) -> list[str]:
    args = ["init", "-input=false", "-no-color"]
    if options.upgrade:
        args.append("-upgrade=true")
    return args


def apply_args(options: TerraformOptions) -> list[str]:
    return (
        ["apply", "-input=false", "-auto-approve", "-no-color"]
        + _lock_args(options)
        + _plan_args(options)
    )


def destroy_args(options: TerraformOptions) -> list[str]:
    return (
        ["destroy", "-input=false", "-auto-approve", "-no-color"]
        + _lock_args(options)
        + _plan_args(options)
    )


def _run(
    runner: CommandRunner,
    options: TerraformOptions,
    args: list[str],
    *,
    stream_output: bool = True,
) -> str:
    result = runner.run(
        [options.binary, *args],
        cwd=options.terraform_dir,
        env=options.env or None,
        stream_output=stream_output,
        capture_output=not stream_output,
    )
    return result.stdout


def init(runner: CommandRunner, options: TerraformOptions) -> str:
    return _run(runner, options, init_args(options))


def apply(runner: CommandRunner, options: TerraformOptions) -> str:
    return _run(runner, options, apply_args(options))


def destroy(runner: CommandRunner, options: TerraformOptions) -> str:
    return _run(runner, options, destroy_args(options))


def output(runner: CommandRunner, options: TerraformOptions, name: str) -> str:
    """Return a single output; strings come back unquoted, other values as JSON."""
    raw = _run(runner, options, ["output", "-no-color", "-json", name], stream_output=False)
    value = _decode_output(raw, name)
    if isinstance(value, str):
        return value
    return json.dumps(value, sort_keys=True)


def output_all(runner: CommandRunner, options: TerraformOptions) -> dict[str, Any]:
    raw = _run(runner, options, ["output", "-no-color", "-json"], stream_output=False)
    decoded = _decode_output(raw, "<all>") if raw.strip() else {}
    if not isinstance(decoded, dict):
        raise RunnerError(f"unexpected terraform output payload: {raw.strip()[:200]}")
    outputs: dict[str, Any] = {}
    for key, entry in decoded.items():
        if isinstance(entry, dict) and "value" in entry:
            outputs[key] = entry["value"]
        else:
            outputs[key] = entry
    return outputs


def _decode_output(raw: str, name: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise RunnerError(f"terraform output {name} is not valid JSON: {raw.strip()[:200]}") from exc


@contextmanager
def terraform_session(
    runner: CommandRunner,
    options: TerraformOptions,
    *,
    skip_destroy: bool = False,
) -> Iterator[TerraformOptions]:
    """Yield the options and destroy the workspace on every exit path.

    When the body fails, a destroy failure is logged and the body's error
    propagates. When the body succeeds, a destroy failure is raised.
    """
    failed = False
    try:
        yield options
    except BaseException:
        failed = True
        raise
    finally:
        if skip_destroy:
            runner.emit(f"Skipping terraform destroy; infrastructure kept in {options.terraform_dir}")
        else:
            runner.emit(f"Destroying infrastructure in {options.terraform_dir}")
            try:
                destroy(runner, options)
            except RunnerError as exc:
                if not failed:
                    raise
                logger.error("terraform destroy failed in %s: %s", options.terraform_dir, exc)
