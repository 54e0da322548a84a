"""Shared test fixtures for testplane tests.

Stand-in binaries live in tests/fixtures/bin and behave like just enough of
etcd or kube-apiserver, or misbehave on purpose, to drive the process
lifecycle without the real binaries:
- ready: echoes its arguments and "ready on :0", then idles
- silent: never becomes ready
- exit_early: writes to stderr and exits (status = first argument, default 3)
- ignore_term: ready, but ignores SIGTERM
- split_marker: writes "ready on :0" in two chunks, no trailing newline
- fake_etcd / fake_apiserver: etcd and API server stand-ins
"""

import os
import sys
from collections.abc import Callable
from pathlib import Path

import pytest

from testplane.process import BoundURL, DefaultedProcessInput

pytest_plugins = ["pytester"]

STAND_INS_DIR = Path(__file__).parent / "fixtures" / "bin"

# Variables that change binary lookup or config loading
_ISOLATED_ENV_VARS = (
    "TESTPLANE_CONFIG",
    "TESTPLANE_ETCD_PATH",
    "TESTPLANE_APISERVER_PATH",
    "TESTPLANE_START_TIMEOUT",
    "TESTPLANE_STOP_TIMEOUT",
    "TESTPLANE_LOG_LEVEL",
    "TEST_ASSETS_DIR",
    "TEST_ASSET_ETCD",
    "TEST_ASSET_KUBE_APISERVER",
)


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Run every test in its own directory without testplane env overrides."""
    for name in _ISOLATED_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def stand_in(tmp_path: Path) -> Callable[..., Path]:
    """Install a stand-in binary into tmp_path/bin and return its path.

    Usage:
        etcd = stand_in("fake_etcd", as_name="etcd")
    """
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir(exist_ok=True)

    def install(name: str, as_name: str | None = None) -> Path:
        source = next(STAND_INS_DIR.glob(f"{name}.*"))
        body = source.read_text()
        if source.suffix == ".py":
            body = f"#!{sys.executable}\n{body}"
        target = bin_dir / (as_name or name)
        target.write_text(body)
        target.chmod(0o755)
        return target

    return install


@pytest.fixture
def executable(tmp_path: Path) -> Callable[..., Path]:
    """Create a trivial executable file, for lookup and defaulting tests."""

    def create(name: str = "etcd", directory: Path | None = None) -> Path:
        target_dir = directory or tmp_path / "assets"
        target_dir.mkdir(parents=True, exist_ok=True)
        target = target_dir / name
        target.write_text("#!/bin/sh\nexit 0\n")
        target.chmod(0o755)
        return target

    return create


@pytest.fixture
def process_input(
    tmp_path: Path, stand_in: Callable[..., Path]
) -> Callable[..., DefaultedProcessInput]:
    """Build a DefaultedProcessInput around a stand-in binary."""

    def build(
        name: str,
        start_timeout: float = 10.0,
        stop_timeout: float = 2.0,
        directory: Path | None = None,
        owned: bool = False,
        url: str = "http://127.0.0.1:23790",
    ) -> DefaultedProcessInput:
        process_dir = directory or tmp_path / "data"
        process_dir.mkdir(parents=True, exist_ok=True)
        return DefaultedProcessInput(
            url=BoundURL.parse(url),
            dir=process_dir,
            dir_needs_cleanup=owned,
            path=stand_in(name),
            start_timeout=start_timeout,
            stop_timeout=stop_timeout,
        )

    return build


@pytest.fixture
def is_alive() -> Callable[[int], bool]:
    """Check whether a PID still refers to a live process."""

    def check(pid: int) -> bool:
        try:
            os.kill(pid, 0)
        except ProcessLookupError:
            return False
        except PermissionError:
            return True
        return True

    return check
