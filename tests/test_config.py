"""Tests for settings."""

from pathlib import Path

from pysh.config import Settings, get_settings, reset_settings


def test_defaults(monkeypatch):
    """Test per-user defaults when nothing is overridden."""
    for name in ("PYSH_CAPTURE_DIR", "PYSH_LOG_DIR", "PYSH_CONFIGURE_LOGGING"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings(_env_file=None)

    assert settings.capture_dir == Path.home() / "pysh" / "Working"
    assert settings.log_dir == Path.home() / "pysh" / "Logs"
    assert settings.buffer_size == 8096
    assert settings.shell == "bash"
    assert settings.configure_logging is True


def test_environment_override(tmp_path, monkeypatch):
    """Test the capture root can be overridden from the environment."""
    monkeypatch.setenv("PYSH_CAPTURE_DIR", str(tmp_path / "captures"))
    monkeypatch.setenv("PYSH_BUFFER_SIZE", "1024")
    reset_settings()

    settings = get_settings()

    assert settings.capture_dir == tmp_path / "captures"
    assert settings.buffer_size == 1024


def test_cached():
    """Test get_settings returns the same instance until reset."""
    first = get_settings()
    assert get_settings() is first
    reset_settings()
    assert get_settings() is not first
