"""Shared test fixtures for swagdoc.

Provides a Go project tree builder, the petstore fixture tree, isolated
configuration, output state management, and a CLI runner. These fixtures
are automatically discovered by pytest and available to all test modules
without explicit imports.
"""

from __future__ import annotations

import shutil
import textwrap
from pathlib import Path
from typing import Callable

import pytest

from swagdoc.config import ENV_VARS
from swagdoc.output import OutputFormat, OutputManager, reset_output, set_output


FIXTURES_DIR = Path(__file__).parent / "fixtures"

MAIN_GO = """\
package main

// @title Test API
// @version 1.0
// @BasePath /api
func main() {}
"""


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When CliRunner redirects those streams and the test
    finishes, the cached references go stale. Resetting forces a fresh
    manager on next use.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Points XDG_DATA_HOME into tmp_path, clears every SWAGDOC_* variable,
    and changes the working directory to tmp_path.

    Returns:
        The tmp_path root directory.
    """
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Go source trees
# ---------------------------------------------------------------------------


GoProject = Callable[[dict[str, str]], Path]


@pytest.fixture
def go_project(isolated_config: Path) -> GoProject:
    """Build a Go source tree in the isolated working directory.

    Call it with a mapping of relative path to file content (dedented).
    A ``main.go`` with minimal general info is added unless the mapping
    provides one.

    Example::

        root = go_project({"handlers/user.go": "package handlers\\n..."})
    """

    def build(files: dict[str, str]) -> Path:
        files = dict(files)
        files.setdefault("main.go", MAIN_GO)
        for relative, content in files.items():
            path = isolated_config / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(textwrap.dedent(content), encoding="utf-8")
        return isolated_config

    return build


@pytest.fixture
def petstore(isolated_config: Path) -> Path:
    """Copy the petstore fixture tree into the working directory."""
    target = isolated_config / "petstore"
    shutil.copytree(FIXTURES_DIR / "petstore", target)
    return target


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager for the test."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def json_output() -> OutputManager:
    """Install a JSON-format OutputManager for the test."""
    output = OutputManager(format=OutputFormat.JSON)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
