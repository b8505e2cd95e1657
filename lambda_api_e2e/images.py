"""Container image build/run/push helpers driven through the docker CLI."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Sequence

from lambda_api_e2e import constants
from lambda_api_e2e.runner import CommandRunner, RunnerError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildOptions:
    tags: tuple[str, ...]
    platforms: tuple[str, ...] = ()
    build_args: dict[str, str] = field(default_factory=dict)
    other_options: tuple[str, ...] = ()


@dataclass(frozen=True)
class RunOptions:
    name: str | None = None
    remove: bool = False
    detach: bool = False
    ports: tuple[str, ...] = ()
    env: dict[str, str] = field(default_factory=dict)
    other_options: tuple[str, ...] = ()


@dataclass(frozen=True)
class StopOptions:
    time: int = 10


def build_image(
    runner: CommandRunner,
    context_dir: Path,
    options: BuildOptions,
    *,
    docker_bin: str = constants.DEFAULT_DOCKER_BIN,
) -> None:
    if not options.tags:
        raise ValueError("at least one image tag is required")

    if options.platforms:
        cmd = [docker_bin, "buildx", "build", "--platform", ",".join(options.platforms)]
    else:
        cmd = [docker_bin, "build"]
    for tag in options.tags:
        cmd.extend(["--tag", tag])
    for key in sorted(options.build_args):
        cmd.extend(["--build-arg", f"{key}={options.build_args[key]}"])
    cmd.extend(options.other_options)
    cmd.append(str(context_dir))

    runner.emit(f"Building image: {', '.join(options.tags)}")
    runner.run(cmd, stream_output=True)


def run_container(
    runner: CommandRunner,
    image: str,
    options: RunOptions,
    *,
    docker_bin: str = constants.DEFAULT_DOCKER_BIN,
) -> str:
    cmd = [docker_bin, "run"]
    if options.remove:
        cmd.append("--rm")
    if options.detach:
        cmd.append("--detach")
    if options.name:
        cmd.extend(["--name", options.name])
    for mapping in options.ports:
        cmd.extend(["--publish", mapping])
    for key in sorted(options.env):
        cmd.extend(["--env", f"{key}={options.env[key]}"])
    cmd.extend(options.other_options)
    cmd.append(image)

    result = runner.run(cmd, capture_output=True)
    return result.stdout.strip()


def stop_containers(
    runner: CommandRunner,
    names: Sequence[str],
    options: StopOptions | None = None,
    *,
    docker_bin: str = constants.DEFAULT_DOCKER_BIN,
) -> None:
    if not names:
        return
    stop = options or StopOptions()
    runner.run([docker_bin, "stop", "--time", str(stop.time), *names], capture_output=True)


def push_image(
    runner: CommandRunner, tag: str, *, docker_bin: str = constants.DEFAULT_DOCKER_BIN
) -> None:
    runner.emit(f"Pushing image: {tag}")
    runner.run([docker_bin, "push", tag], stream_output=True)


def login(
    runner: CommandRunner,
    registry: str,
    *,
    username: str,
    password: str,
    docker_bin: str = constants.DEFAULT_DOCKER_BIN,
) -> None:
    result = runner.run(
        [docker_bin, "login", "--username", username, "--password-stdin", registry],
        capture_output=True,
        input_text=password,
    )
    combined = "\n".join(part for part in (result.stdout.strip(), result.stderr.strip()) if part)
    if combined:
        runner.emit(combined)


@contextmanager
def running_container(
    runner: CommandRunner,
    image: str,
    options: RunOptions,
    stop_options: StopOptions | None = None,
    *,
    docker_bin: str = constants.DEFAULT_DOCKER_BIN,
) -> Iterator[str]:
    """Run a detached container and stop it when the block exits."""
    if not options.name:
        raise ValueError("running_container requires a container name")
    run_container(runner, image, options, docker_bin=docker_bin)
    try:
        yield options.name
    finally:
        try:
            stop_containers(runner, [options.name], stop_options, docker_bin=docker_bin)
        except RunnerError as exc:
            logger.warning("failed to stop container %s: %s", options.name, exc)
