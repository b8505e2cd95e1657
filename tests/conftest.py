"""
Shared fixtures for the live Lambda API tests.

These tests provision real AWS infrastructure with terraform and are
deselected unless run with `-m live`.
"""

from pathlib import Path

import pytest
from dotenv import load_dotenv

# Load .env.test (enable tests even without the CLI).
env_file = Path(__file__).resolve().parent.parent / ".env.test"
if env_file.exists():
    print(f"Loading .env.test from {env_file} (base/defaults only)")
    load_dotenv(env_file, override=False)

from lambda_api_e2e.config import load_settings, load_variants  # noqa: E402
from lambda_api_e2e.logging import make_prefix_printer  # noqa: E402
from lambda_api_e2e.runner import CommandRunner  # noqa: E402


@pytest.fixture(scope="session")
def harness_settings():
    return load_settings()


@pytest.fixture(scope="session")
def variants():
    return load_variants()


@pytest.fixture
def variant_runner(request):
    """Command runner whose output lines carry the variant label."""
    label = getattr(request.node, "callspec", None)
    name = label.id if label is not None else request.node.name
    return CommandRunner(printer=make_prefix_printer(name))
