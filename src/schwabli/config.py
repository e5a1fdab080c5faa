"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for schwabli:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.schwabli/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **Global config** -- A single :class:`~schwabli.models.GlobalConfig`
  JSON file storing login, request, and output defaults.
* **Credential resolution** -- :func:`resolve_credential` reads secrets
  from env vars, files, or interactive prompts.  Secrets are never written
  to the config file, only their source descriptors.
* **Precedence resolution** -- :func:`resolve_login_settings` merges CLI
  flags, environment variables, and the global config into the immutable
  :class:`~schwabli.models.LoginSettings` an authenticator runs with.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`) to prevent data loss on crash or power failure.
"""

from __future__ import annotations

import getpass
import json
import os
import platform
import sys
import tempfile
from pathlib import Path
from typing import Optional

from schwabli.exceptions import ConfigurationError
from schwabli.models import BrowserEngine, GlobalConfig, LoginSettings

_APP_NAME = "schwabli"
_CONFIG_FILENAME = "config.json"

ENV_USERNAME = "SCHWABLI_USERNAME"
ENV_PASSWORD = "SCHWABLI_PASSWORD"
ENV_TOTP_SECRET = "SCHWABLI_TOTP_SECRET"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/schwabli/`` (default ``~/.config/schwabli/``).
    On macOS/Windows: ``~/.schwabli/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/schwabli/`` (default ``~/.local/share/schwabli/``).
    On macOS/Windows: ``~/.schwabli/data/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "data"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems.  The file is
    created with ``0o600`` permissions because it names secret sources.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        os.chmod(tmp_path, 0o600)
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close below
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Global config ---


def _global_config_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load the global configuration from the config directory.

    Returns:
        The deserialised :class:`~schwabli.models.GlobalConfig`. If the
        file does not exist, a default instance is returned.

    Raises:
        ConfigurationError: If the file exists but contains invalid JSON or
            fails Pydantic validation.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        text = path.read_text(encoding="utf-8")
        return GlobalConfig.model_validate(json.loads(text))
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    """Persist the global configuration atomically to disk."""
    data = config.model_dump(mode="json")
    _atomic_write(_global_config_path(), json.dumps(data, indent=2) + "\n")


# --- Credential source resolution ---


def resolve_credential(source: str, prompt: str = "Enter credential: ") -> str:
    """Resolve a credential from its source descriptor.

    Supported formats:
        - ``"env:VAR_NAME"`` -- reads ``os.environ["VAR_NAME"]``
        - ``"file:/path/to/file"`` -- reads file content, stripped of whitespace
        - ``"prompt"`` -- prompts user interactively without echo (requires a TTY)

    Args:
        source: The source descriptor string.
        prompt: Text shown when *source* is ``"prompt"``.

    Returns:
        The resolved credential string.

    Raises:
        ConfigurationError: If the source can't be resolved.
    """
    if source.startswith("env:"):
        var_name = source[4:]
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigurationError(
                f"Environment variable '{var_name}' is not set (source: {source})"
            )
        return value

    if source.startswith("file:"):
        path = Path(source[5:]).expanduser()
        if not path.is_file():
            raise ConfigurationError(f"Credential file not found: {path} (source: {source})")
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigurationError(f"Cannot read credential file {path}: {exc}") from exc

    if source == "prompt":
        if not sys.stdin.isatty():
            raise ConfigurationError(
                "Cannot prompt for credentials: stdin is not a TTY (source: prompt)"
            )
        return getpass.getpass(prompt)

    raise ConfigurationError(f"Unknown credential source format: {source}")


# --- Precedence resolution ---


def resolve_login_settings(
    config: Optional[GlobalConfig] = None,
    cli_username: Optional[str] = None,
    cli_browser: Optional[BrowserEngine] = None,
    cli_headless: Optional[bool] = None,
) -> LoginSettings:
    """Resolve the effective :class:`~schwabli.models.LoginSettings`.

    Precedence (high to low):
        1. CLI flags (``cli_username``, ``cli_browser``, ``cli_headless``)
        2. Environment variables (``SCHWABLI_USERNAME``,
           ``SCHWABLI_PASSWORD``, ``SCHWABLI_TOTP_SECRET``)
        3. User config (``~/.config/schwabli/config.json``)
        4. Defaults

    The password is only resolved from ``session.password_source`` when
    ``SCHWABLI_PASSWORD`` is unset, so a configured ``prompt`` source does
    not prompt in non-interactive runs that export the variable.

    Args:
        config: Pre-loaded global config; loaded from disk when ``None``.

    Returns:
        The resolved settings.  Empty ``username``/``password`` are left
        for the authenticator to report.

    Raises:
        ConfigurationError: If a configured credential source can't be
            resolved.
    """
    if config is None:
        config = load_global_config()
    session = config.session

    username = cli_username or os.environ.get(ENV_USERNAME) or session.username or ""

    password = os.environ.get(ENV_PASSWORD)
    if password is None:
        password = resolve_credential(session.password_source, prompt="Password: ")

    totp_secret = os.environ.get(ENV_TOTP_SECRET)
    if totp_secret is None and session.totp_secret_source:
        totp_secret = resolve_credential(session.totp_secret_source, prompt="TOTP secret: ")

    return LoginSettings(
        username=username,
        password=password,
        totp_secret=totp_secret or None,
        browser=cli_browser or session.browser,
        headless=session.headless if cli_headless is None else cli_headless,
        two_factor_timeout=session.two_factor_timeout,
        home_url=session.home_url,
        account_summary_url=session.account_summary_url,
    )
