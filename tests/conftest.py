"""Shared fixtures for pysh tests."""

import pytest

from pysh.capture import CaptureAllocator
from pysh.config import Settings, reset_settings
from pysh.context import ContextStack
from pysh.registry import ProcessRegistry
from pysh.shell import Shell


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Point every settings lookup at a temporary directory."""
    monkeypatch.setenv("PYSH_CAPTURE_DIR", str(tmp_path / "capture"))
    monkeypatch.setenv("PYSH_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("PYSH_CONFIGURE_LOGGING", "false")
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        capture_dir=tmp_path / "capture",
        log_dir=tmp_path / "logs",
        configure_logging=False,
    )


@pytest.fixture
def allocator(settings) -> CaptureAllocator:
    return CaptureAllocator(settings.capture_dir)


@pytest.fixture
def shell(settings, tmp_path) -> Shell:
    workdir = tmp_path / "work"
    workdir.mkdir()
    return Shell(
        settings=settings,
        context=ContextStack(workdir),
        registry=ProcessRegistry(),
    )
