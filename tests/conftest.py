"""Shared fixtures for bpipe tests.

Every test runs inside its own temporary working directory, so `.bpipe/`
and the jobs directory never touch the real filesystem.
"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from src.core.config import AppConfig, PathsConfig, load_config
from src.core.factory import RunContext, build_run_context
from src.core.models import RunIdentity


# ---------------------------------------------------------------------------
# Environment isolation
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def workspace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run each test from an empty directory with no launcher handshake."""
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.chdir(work)
    monkeypatch.delenv("BPIPE_PID", raising=False)
    monkeypatch.delenv("BPIPE_OUTPUT_DIR", raising=False)
    monkeypatch.delenv("BPIPE_MAX_THREADS", raising=False)
    monkeypatch.setenv("BPIPE_JOBS_DIR", str(tmp_path / "jobs"))
    return work


@pytest.fixture(autouse=True)
def reset_bpipe_logger():
    """Undo the file handlers a CLI run attaches, so caplog keeps working."""
    yield
    parent = logging.getLogger("bpipe")
    for handler in list(parent.handlers):
        parent.removeHandler(handler)
        handler.close()
    parent.propagate = True
    parent.setLevel(logging.NOTSET)


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def config_dir() -> Path:
    return Path(__file__).parent.parent / "config"


@pytest.fixture
def app_config(config_dir: Path, tmp_path: Path) -> AppConfig:
    config = load_config(config_dir=config_dir)
    config.paths = PathsConfig(work_dir=".bpipe", jobs_dir=str(tmp_path / "jobs"))
    return config


# ---------------------------------------------------------------------------
# Run context fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def echoed() -> list[str]:
    return []


@pytest.fixture
def run_context(app_config: AppConfig, echoed: list[str]) -> RunContext:
    return build_run_context(
        app_config,
        RunIdentity(run_id="42", handshake_ref="9000"),
        echo=echoed.append,
        confirm=lambda _msg: True,
    )


@pytest.fixture
def pipeline_file(workspace: Path) -> Path:
    path = workspace / "hello.py"
    path.write_text(
        "threads = 1\n"
        "\n"
        "def hello(inputs):\n"
        "    return [i + '.hello' for i in inputs]\n"
        "\n"
        "def world(inputs):\n"
        "    return [i + '.world' for i in inputs]\n"
        "\n"
        "result = run(hello, world)\n",
        encoding="utf-8",
    )
    return path
