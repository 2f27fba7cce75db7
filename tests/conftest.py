"""Pytest configuration for tests.

No sys.path hacks - tests should import from the installed mcpdecl package.
Server definitions are written into tmp_path and compiled from there; nothing
under test is ever imported or executed.
"""

import textwrap
from pathlib import Path

import pytest
import structlog

from mcpdecl.kernel.program import ProjectConfig

FIXTURES = Path(__file__).resolve().parent / "fixtures"


def pytest_addoption(parser):
    """Add gated perf test option."""
    parser.addoption(
        "--run-perf",
        action="store_true",
        default=False,
        help="Run performance sentinel benchmarks (gated)."
    )


def pytest_collection_modifyitems(config, items):
    """Skip perf-marked tests unless --run-perf is set."""
    if config.getoption("--run-perf"):
        return
    skip_perf = pytest.mark.skip(reason="perf tests gated; pass --run-perf")
    for item in items:
        if "perf" in item.keywords:
            item.add_marker(skip_perf)


@pytest.fixture
def write_source(tmp_path):
    """Write a dedented source file into tmp_path and return its path."""
    def _write(source: str, name: str = "server.py") -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(source).lstrip(), encoding="utf-8")
        return path
    return _write


@pytest.fixture
def default_config():
    """Project defaults, so tests never pick up a stray config above tmp_path."""
    return ProjectConfig()


@pytest.fixture
def fixtures_dir():
    return FIXTURES


@pytest.fixture(autouse=True)
def reset_structlog():
    """CLI tests configure structlog globally; restore the defaults afterwards."""
    yield
    structlog.reset_defaults()
