"""Shared test fixtures with dual-mode support (fake vs real Stockfish).

Usage:
    pytest tests/                  # Fast, scripted engine (no Stockfish)
    pytest tests/ --e2e            # Also run tests against real Stockfish

Fixtures:
    rules           - RulesAuthority instance.
    engine_factory  - FakeEngineFactory whose engines answer instantly.
    manual_factory  - FakeEngineFactory whose engines wait for release().
    enable_validation - Sets CHESS_SESSIONS_VALIDATE=1 for schema checks.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

_PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(_PROJECT_ROOT))

from chess_sessions.rules import RulesAuthority  # noqa: E402
from fakes import FakeEngineFactory  # noqa: E402


# ---------------------------------------------------------------------------
# CLI option and marker registration
# ---------------------------------------------------------------------------


def pytest_addoption(parser):
    """Register --e2e CLI flag for real Stockfish tests."""
    parser.addoption(
        "--e2e",
        action="store_true",
        default=False,
        help="Run with real Stockfish engine (no fakes).",
    )


def pytest_configure(config):
    """Register the e2e marker."""
    config.addinivalue_line(
        "markers", "e2e: mark test as end-to-end (requires real Stockfish)"
    )


def pytest_collection_modifyitems(config, items):
    """Skip e2e tests unless --e2e is passed."""
    if config.getoption("--e2e"):
        return
    skip_e2e = pytest.mark.skip(reason="needs --e2e and a Stockfish binary")
    for item in items:
        if "e2e" in item.keywords:
            item.add_marker(skip_e2e)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def rules() -> RulesAuthority:
    return RulesAuthority()


@pytest.fixture()
def engine_factory() -> FakeEngineFactory:
    return FakeEngineFactory(auto=True)


@pytest.fixture()
def manual_factory() -> FakeEngineFactory:
    return FakeEngineFactory(auto=False)


@pytest.fixture(autouse=True)
def enable_validation():
    """Set CHESS_SESSIONS_VALIDATE=1 for the test.

    Restores the original env var value after the test.
    """
    original = os.environ.get("CHESS_SESSIONS_VALIDATE")
    os.environ["CHESS_SESSIONS_VALIDATE"] = "1"
    yield
    if original is None:
        os.environ.pop("CHESS_SESSIONS_VALIDATE", None)
    else:
        os.environ["CHESS_SESSIONS_VALIDATE"] = original
