"""Tests for schwabli.config -- XDG paths, atomic writes, credential sources, precedence."""

from __future__ import annotations

import json
import stat
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from schwabli.config import (
    _atomic_write,
    get_config_dir,
    get_data_dir,
    load_global_config,
    resolve_credential,
    resolve_login_settings,
    save_global_config,
)
from schwabli.exceptions import ConfigurationError
from schwabli.models import BrowserEngine, GlobalConfig, OutputConfig, SessionConfig


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_json(path: Path, data: Any) -> None:
    """Write a dict as JSON to *path*, creating parent dirs."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


def _make_config(**session: Any) -> GlobalConfig:
    values: dict[str, Any] = {"username": "config-user", "password_source": "env:CFG_PASSWORD"}
    values.update(session)
    return GlobalConfig(session=SessionConfig(**values))


# ---------------------------------------------------------------------------
# XDG path resolution
# ---------------------------------------------------------------------------


class TestXDGPaths:
    def test_config_dir_xdg_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("schwabli.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        result = get_config_dir()
        assert result == tmp_path / ".config" / "schwabli"
        assert result.is_dir()

    def test_config_dir_xdg_custom(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        custom = tmp_path / "custom_config"
        monkeypatch.setattr("schwabli.config._is_xdg_platform", lambda: True)
        monkeypatch.setenv("XDG_CONFIG_HOME", str(custom))

        result = get_config_dir()
        assert result == custom / "schwabli"
        assert result.is_dir()

    def test_data_dir_xdg_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("schwabli.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_DATA_HOME", raising=False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        result = get_data_dir()
        assert result == tmp_path / ".local" / "share" / "schwabli"
        assert result.is_dir()

    def test_config_dir_fallback(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("schwabli.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        result = get_config_dir()
        assert result == tmp_path / ".schwabli"
        assert result.is_dir()

    def test_data_dir_fallback(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("schwabli.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        result = get_data_dir()
        assert result == tmp_path / ".schwabli" / "data"
        assert result.is_dir()


# ---------------------------------------------------------------------------
# Atomic writes
# ---------------------------------------------------------------------------


class TestAtomicWrite:
    def test_creates_file_with_content(self, tmp_path: Path) -> None:
        target = tmp_path / "test.txt"
        _atomic_write(target, "hello world")
        assert target.read_text(encoding="utf-8") == "hello world"

    def test_overwrites_existing_file(self, tmp_path: Path) -> None:
        target = tmp_path / "test.txt"
        target.write_text("old content", encoding="utf-8")
        _atomic_write(target, "new content")
        assert target.read_text(encoding="utf-8") == "new content"

    def test_file_is_owner_only(self, tmp_path: Path) -> None:
        target = tmp_path / "config.json"
        _atomic_write(target, "{}")
        assert stat.S_IMODE(target.stat().st_mode) == 0o600

    def test_no_temp_files_left_on_error(self, tmp_path: Path) -> None:
        target = tmp_path / "test.txt"
        with patch("schwabli.config.os.fsync", side_effect=OSError("disk error")):
            with pytest.raises(OSError, match="disk error"):
                _atomic_write(target, "will fail")
        assert list(tmp_path.iterdir()) == []


# ---------------------------------------------------------------------------
# Global config
# ---------------------------------------------------------------------------


class TestGlobalConfig:
    def test_load_returns_defaults_when_missing(self, isolated_config: Path) -> None:
        cfg = load_global_config()
        assert cfg == GlobalConfig()
        assert cfg.session.browser is BrowserEngine.FIREFOX
        assert cfg.session.two_factor_timeout == 10.0
        assert cfg.output.format == "auto"

    def test_save_and_load_roundtrip(self, isolated_config: Path) -> None:
        original = GlobalConfig(
            session=SessionConfig(
                username="jdoe",
                password_source="file:~/.schwab-password",
                browser=BrowserEngine.CHROMIUM,
                headless=False,
            ),
            output=OutputConfig(format="json"),
        )
        save_global_config(original)
        assert load_global_config() == original

    def test_load_invalid_json_raises(self, isolated_config: Path) -> None:
        path = isolated_config / "config" / "schwabli" / "config.json"
        path.parent.mkdir(parents=True)
        path.write_text("{invalid json!!!", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="Invalid config"):
            load_global_config()

    def test_load_invalid_schema_raises(self, isolated_config: Path) -> None:
        path = isolated_config / "config" / "schwabli" / "config.json"
        _write_json(path, {"session": {"two_factor_timeout": -1}})

        with pytest.raises(ConfigurationError, match="Invalid config"):
            load_global_config()

    def test_saved_config_never_contains_secrets(self, isolated_config: Path) -> None:
        save_global_config(_make_config())
        path = isolated_config / "config" / "schwabli" / "config.json"
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["session"]["password_source"] == "env:CFG_PASSWORD"
        assert "password" not in data["session"]


# ---------------------------------------------------------------------------
# Credential resolution
# ---------------------------------------------------------------------------


class TestResolveCredential:
    def test_env_source(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MY_PASSWORD", "secret123")
        assert resolve_credential("env:MY_PASSWORD") == "secret123"

    def test_env_source_missing_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("NONEXISTENT_VAR", raising=False)
        with pytest.raises(ConfigurationError, match="not set"):
            resolve_credential("env:NONEXISTENT_VAR")

    def test_file_source(self, tmp_path: Path) -> None:
        cred_file = tmp_path / "password.txt"
        cred_file.write_text("  my-password  \n", encoding="utf-8")
        assert resolve_credential(f"file:{cred_file}") == "my-password"

    def test_file_source_missing_raises(self) -> None:
        with pytest.raises(ConfigurationError, match="not found"):
            resolve_credential("file:/nonexistent/path/password.txt")

    def test_prompt_source_with_tty(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("sys.stdin.isatty", lambda: True)
        monkeypatch.setattr("getpass.getpass", lambda prompt: "user-typed-secret")

        assert resolve_credential("prompt", prompt="Password: ") == "user-typed-secret"

    def test_prompt_source_non_tty_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("sys.stdin.isatty", lambda: False)

        with pytest.raises(ConfigurationError, match="not a TTY"):
            resolve_credential("prompt")

    def test_unknown_source_raises(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown credential source"):
            resolve_credential("keyring:schwab")


# ---------------------------------------------------------------------------
# Login settings precedence
# ---------------------------------------------------------------------------


class TestResolveLoginSettings:
    @pytest.fixture(autouse=True)
    def _env(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CFG_PASSWORD", "config-password")

    def test_config_values(self) -> None:
        settings = resolve_login_settings(_make_config())
        assert settings.username == "config-user"
        assert settings.password == "config-password"
        assert settings.totp_secret is None
        assert settings.browser is BrowserEngine.FIREFOX
        assert settings.headless is True

    def test_env_overrides_config(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SCHWABLI_USERNAME", "env-user")
        monkeypatch.setenv("SCHWABLI_PASSWORD", "env-password")

        settings = resolve_login_settings(_make_config())

        assert settings.username == "env-user"
        assert settings.password == "env-password"

    def test_env_password_skips_configured_prompt(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SCHWABLI_PASSWORD", "env-password")
        monkeypatch.setattr("sys.stdin.isatty", lambda: False)

        settings = resolve_login_settings(_make_config(password_source="prompt"))

        assert settings.password == "env-password"

    def test_cli_overrides_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SCHWABLI_USERNAME", "env-user")

        settings = resolve_login_settings(
            _make_config(),
            cli_username="cli-user",
            cli_browser=BrowserEngine.WEBKIT,
            cli_headless=False,
        )

        assert settings.username == "cli-user"
        assert settings.browser is BrowserEngine.WEBKIT
        assert settings.headless is False

    def test_totp_secret_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SCHWABLI_TOTP_SECRET", "JBSWY3DPEHPK3PXP")
        settings = resolve_login_settings(_make_config())
        assert settings.totp_secret == "JBSWY3DPEHPK3PXP"

    def test_totp_secret_from_configured_source(self, tmp_path: Path) -> None:
        secret_file = tmp_path / "totp"
        secret_file.write_text("JBSWY3DPEHPK3PXP\n", encoding="utf-8")

        settings = resolve_login_settings(
            _make_config(totp_secret_source=f"file:{secret_file}")
        )

        assert settings.totp_secret == "JBSWY3DPEHPK3PXP"

    def test_loads_config_from_disk_when_omitted(self) -> None:
        save_global_config(_make_config(username="disk-user", two_factor_timeout=42))

        settings = resolve_login_settings()

        assert settings.username == "disk-user"
        assert settings.two_factor_timeout == 42

    def test_unresolvable_password_source_raises(self) -> None:
        with pytest.raises(ConfigurationError, match="MISSING_VAR"):
            resolve_login_settings(_make_config(password_source="env:MISSING_VAR"))

    def test_password_hidden_from_repr(self) -> None:
        settings = resolve_login_settings(_make_config())
        assert "config-password" not in repr(settings)
