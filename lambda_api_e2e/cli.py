"""Run Lambda API example variants end to end from the command line."""

from __future__ import annotations

import argparse
import logging
import os
import sys
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import replace
from pathlib import Path

from lambda_api_e2e.config import (
    ConfigError,
    HarnessSettings,
    load_env_file,
    load_settings,
    load_variants,
)
from lambda_api_e2e.harness import VariantTestDriver
from lambda_api_e2e.logging import LogSink, make_prefix_printer, safe_print, tee_printer
from lambda_api_e2e.models import Variant
from lambda_api_e2e.runner import CommandRunner

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Provision, verify and tear down Lambda API example variants",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run one or more variants end to end")
    run_parser.add_argument(
        "variants",
        nargs="*",
        help="Variant names to run (default: every variant in the table)",
    )
    run_parser.add_argument(
        "--parallel",
        action="store_true",
        help="Run variants concurrently, one worker per variant",
    )
    run_parser.add_argument(
        "--skip-teardown",
        action="store_true",
        help="Keep provisioned infrastructure for debugging (no terraform destroy)",
    )
    run_parser.add_argument(
        "--examples-dir",
        help="Directory holding one terraform example per variant (default: <repo>/examples)",
    )
    run_parser.add_argument(
        "--quiet",
        action="store_true",
        help="Only write tool output to the per-variant log files",
    )
    run_parser.set_defaults(func=run)

    list_parser = subparsers.add_parser("list", help="List known variants")
    list_parser.set_defaults(func=list_variants)
    return parser


def list_variants(args: argparse.Namespace, variants: dict[str, Variant]) -> int:
    del args
    for variant in variants.values():
        safe_print(f"{variant.name}\t{variant.flavor}\t{variant.resource_name}")
    return 0


def run(args: argparse.Namespace, variants: dict[str, Variant]) -> int:
    selected = args.variants or list(variants)
    unknown = [name for name in selected if name not in variants]
    if unknown:
        raise ConfigError(
            f"unknown variant(s): {', '.join(unknown)} (known: {', '.join(variants)})"
        )

    settings = load_settings()
    if args.examples_dir:
        settings = replace(settings, examples_dir=Path(args.examples_dir).expanduser().resolve())
    if args.skip_teardown:
        settings = replace(settings, skip_teardown=True)

    width = max(len(name) for name in selected)
    max_workers = len(selected) if args.parallel else 1
    results: dict[str, bool] = {}
    lock = threading.Lock()

    def _run(name: str) -> bool:
        return run_variant(variants[name], settings, width=width, quiet=args.quiet)

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        future_to_name = {executor.submit(_run, name): name for name in selected}
        for future in as_completed(future_to_name):
            name = future_to_name[future]
            try:
                success = future.result()
            except Exception:
                logger.exception("variant %s crashed", name)
                success = False
            with lock:
                results[name] = success

    for name in selected:
        safe_print(f"{'PASS' if results.get(name) else 'FAIL'}  {name}")
    return 0 if all(results.get(name) for name in selected) else 1


def run_variant(
    variant: Variant,
    settings: HarnessSettings,
    *,
    width: int = 0,
    quiet: bool = False,
) -> bool:
    log_dir = settings.log_dir or settings.project_root
    console = None if quiet else make_prefix_printer(variant.name, width=width)
    with LogSink(log_dir / f".e2e-{variant.name}.log") as log:
        printer = tee_printer(log, console)
        driver = VariantTestDriver(variant, settings, runner=CommandRunner(printer=printer))
        try:
            driver.run()
        except AssertionError as exc:
            printer(f"FAILED: {exc}")
            return False
        except ConfigError as exc:
            printer(f"Configuration error: {exc}")
            return False
        except Exception as exc:
            printer(f"ERROR: {type(exc).__name__}: {exc}")
            return False
    return True


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    parser = build_parser()
    args = parser.parse_args(argv)
    load_env_file()

    try:
        variants = load_variants()
        return int(args.func(args, variants))
    except ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
