# Where: lambda_api_e2e/harness.py
# What: Per-variant driver: provision, optionally ship an image, verify, tear down.
# Why: One sequential flow shared by the pytest suite and the CLI.
from __future__ import annotations

import os
import time
from contextlib import ExitStack
from dataclasses import dataclass
from typing import Any, Callable, Mapping

import requests

from lambda_api_e2e import aws_utils, constants, images, probe, terraform
from lambda_api_e2e.aws_utils import AWSUtils
from lambda_api_e2e.config import ConfigError, HarnessSettings, require_env
from lambda_api_e2e.models import PhaseTiming, TerraformOptions, Variant, VariantResult
from lambda_api_e2e.runner import CommandRunner

STATUS_PASSED = "passed"
STATUS_FAILED = "failed"


class VerificationError(AssertionError):
    """Raised when one or more expectations about the deployment did not hold."""


class Expectations:
    """Collects expectation failures so later checks still run."""

    def __init__(self) -> None:
        self.failures: list[str] = []

    def equal(self, label: str, expected: Any, actual: Any) -> bool:
        if expected == actual:
            return True
        self.failures.append(f"{label}: expected {expected!r}, got {actual!r}")
        return False

    def contains(self, label: str, value: str, fragment: str) -> bool:
        if fragment in (value or ""):
            return True
        self.failures.append(f"{label}: {value!r} does not contain {fragment!r}")
        return False

    def not_empty(self, label: str, value: Any) -> bool:
        if value:
            return True
        self.failures.append(f"{label}: expected a non-empty value, got {value!r}")
        return False

    def verify(self) -> None:
        if self.failures:
            raise VerificationError("\n".join(self.failures))


@dataclass(frozen=True)
class FlavorSteps:
    required_env: tuple[str, ...] = ()
    prepare: Callable[["VariantTestDriver", ExitStack], None] | None = None
    check_outputs: Callable[["VariantTestDriver"], None] | None = None
    probe: Callable[["VariantTestDriver"], None] | None = None


ClientFactory = Callable[[str, str], Any]


class VariantTestDriver:
    def __init__(
        self,
        variant: Variant,
        settings: HarnessSettings,
        *,
        runner: CommandRunner,
        env: Mapping[str, str] | None = None,
        client_factory: ClientFactory | None = None,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.variant = variant
        self.settings = settings
        self.runner = runner
        self.env = os.environ if env is None else env
        self.client_factory = client_factory or AWSUtils.create_client
        self.session = session
        self.sleep = sleep
        self.expectations = Expectations()
        self.result = VariantResult(variant=variant)
        self.hosted_zone = ""
        self.required: dict[str, str] = {}
        self.domain_name = ""
        self.options = TerraformOptions(
            terraform_dir=variant.resolve_terraform_dir(settings.examples_dir),
            lock_timeout=settings.lock_timeout,
            upgrade=True,
            binary=settings.terraform_bin,
        )

    @property
    def steps(self) -> FlavorSteps:
        return FLAVOR_STEPS[self.variant.flavor]

    def run(self) -> VariantResult:
        self._resolve_environment()
        if not self.options.terraform_dir.is_dir():
            raise ConfigError(f"terraform directory not found: {self.options.terraform_dir}")

        steps = self.steps
        try:
            with terraform.terraform_session(
                self.runner, self.options, skip_destroy=self.settings.skip_teardown
            ), ExitStack() as cleanup:
                self._phase("log-group", self._delete_stale_log_group)
                self._phase("init", lambda: terraform.init(self.runner, self.options))
                if steps.prepare is not None:
                    self._phase("prepare", lambda: steps.prepare(self, cleanup))
                self._phase("apply", lambda: terraform.apply(self.runner, self.options))
                self._phase("outputs", self._check_outputs)
                if steps.probe is not None:
                    self._phase("probe", lambda: steps.probe(self))
        except BaseException as exc:
            # Expectations recorded before a fatal step must not be lost.
            for failure in self.expectations.failures:
                self.runner.emit(f"expectation failed: {failure}")
                exc.add_note(f"expectation failed: {failure}")
            raise

        self.expectations.verify()
        return self.result

    def client(self, service: str) -> Any:
        return self.client_factory(service, self.settings.region)

    def output(self, name: str, options: TerraformOptions | None = None) -> str:
        value = terraform.output(self.runner, options or self.options, name)
        self.result.outputs[name] = value
        return value

    def _resolve_environment(self) -> None:
        self.hosted_zone = require_env(
            constants.ENV_PRIMARY_HOSTED_ZONE,
            constants.PRIMARY_HOSTED_ZONE_GUIDANCE,
            self.env,
        )
        keys = list(self.steps.required_env)
        keys.extend(key for key in self.variant.required_env if key not in keys)
        for key in keys:
            self.required[key] = require_env(
                key, constants.variant_env_guidance(key, self.variant.name), self.env
            )

    def _phase(self, name: str, fn: Callable[[], Any]) -> None:
        self.runner.emit(f"--- {name}")
        started = time.monotonic()
        status = STATUS_FAILED
        recorded = len(self.expectations.failures)
        try:
            fn()
            if len(self.expectations.failures) == recorded:
                status = STATUS_PASSED
        finally:
            duration = time.monotonic() - started
            self.result.phases.append(PhaseTiming(name=name, status=status, duration=duration))
            self.runner.emit(f"--- {name} {status} ({duration:.1f}s)")

    def _delete_stale_log_group(self) -> None:
        # The log group is recreated by Lambda after destroy and blocks the next apply.
        aws_utils.delete_log_group(self.variant.log_group_name, self.client("logs"))

    def _check_outputs(self) -> None:
        arn = self.output(constants.OUTPUT_ARN)
        self.expectations.contains(
            constants.OUTPUT_ARN, arn, constants.api_arn_prefix(self.settings.region)
        )
        self.domain_name = self.output(constants.OUTPUT_DOMAIN_NAME)
        self.expectations.equal(
            constants.OUTPUT_DOMAIN_NAME,
            self.variant.domain_name(self.hosted_zone),
            self.domain_name,
        )
        if self.steps.check_outputs is not None:
            self.steps.check_outputs(self)


def _prepare_image(driver: VariantTestDriver, cleanup: ExitStack) -> None:
    runner = driver.runner
    docker_bin = driver.settings.docker_bin
    ecr_options = driver.options.with_targets(constants.ECR_MODULE_TARGET)
    terraform.apply(runner, ecr_options)
    repo_url = driver.output(constants.ECR_REPO_OUTPUT, ecr_options)
    tag = f"{repo_url}:{constants.IMAGE_TAG}"

    images.build_image(
        runner,
        driver.variant.resolve_image_context(driver.settings.examples_dir),
        images.BuildOptions(
            tags=(tag,),
            platforms=constants.IMAGE_PLATFORMS,
            other_options=constants.IMAGE_BUILD_FLAGS,
        ),
        docker_bin=docker_bin,
    )

    port = constants.LOCAL_CONTAINER_PORT
    cleanup.enter_context(
        images.running_container(
            runner,
            tag,
            images.RunOptions(
                name=driver.variant.name,
                remove=True,
                detach=True,
                ports=(f"{port}:{port}",),
            ),
            images.StopOptions(time=constants.CONTAINER_STOP_GRACE_SECONDS),
            docker_bin=docker_bin,
        )
    )

    # The container either listens or not; only connection errors are retried.
    response = probe.get_with_retry(
        f"http://localhost:{port}/",
        max_retries=constants.LOCAL_IMAGE_PROBE_RETRIES,
        interval=constants.LOCAL_IMAGE_PROBE_INTERVAL,
        session=driver.session,
        printer=runner.emit,
        sleep=driver.sleep,
    )
    driver.expectations.equal("local image status", 200, response.status_code)
    driver.result.local_response = response.body

    aws_utils.ecr_login(
        runner,
        driver.settings.region,
        sts_client=driver.client("sts"),
        ecr_client=driver.client("ecr"),
        docker_bin=docker_bin,
    )
    images.push_image(runner, tag, docker_bin=docker_bin)


def _check_alternate_domain(driver: VariantTestDriver) -> None:
    expected = driver.required[constants.ENV_ALTERNATE_DOMAIN_NAME]
    alt_domain = driver.output(constants.OUTPUT_ALTERNATE_DOMAIN_NAME)
    driver.expectations.equal(constants.OUTPUT_ALTERNATE_DOMAIN_NAME, expected, alt_domain)
    endpoint = driver.output(constants.OUTPUT_ALTERNATE_DOMAIN_ENDPOINT)
    driver.expectations.not_empty(constants.OUTPUT_ALTERNATE_DOMAIN_ENDPOINT, endpoint)


def _probe_status(driver: VariantTestDriver) -> None:
    response = probe.get_with_expected_response(
        f"https://{driver.domain_name}{constants.STATUS_PATH}",
        expected_status=200,
        expected_body=constants.EXPECTED_STATUS_BODY,
        max_retries=constants.STATUS_PROBE_RETRIES,
        interval=constants.STATUS_PROBE_INTERVAL,
        session=driver.session,
        printer=driver.runner.emit,
        sleep=driver.sleep,
    )
    driver.result.deployed_response = response.body


def _probe_image(driver: VariantTestDriver) -> None:
    response = probe.get_with_retry(
        f"https://{driver.domain_name}/",
        max_retries=constants.DEPLOYED_IMAGE_PROBE_RETRIES,
        interval=constants.DEPLOYED_IMAGE_PROBE_INTERVAL,
        retry_on_status=constants.GATEWAY_RETRY_STATUSES,
        session=driver.session,
        printer=driver.runner.emit,
        sleep=driver.sleep,
    )
    if response.status_code != 200:
        raise VerificationError(f"Expected 200, got {response.status_code}")
    driver.result.deployed_response = response.body
    driver.expectations.equal(
        "deployed image body", driver.result.local_response, response.body
    )


FLAVOR_STEPS: dict[str, FlavorSteps] = {
    constants.FLAVOR_DEFAULT: FlavorSteps(probe=_probe_status),
    constants.FLAVOR_IMAGE: FlavorSteps(prepare=_prepare_image, probe=_probe_image),
    constants.FLAVOR_ALT_DOMAIN: FlavorSteps(
        required_env=(constants.ENV_ALTERNATE_DOMAIN_NAME,),
        check_outputs=_check_alternate_domain,
        probe=_probe_status,
    ),
}
