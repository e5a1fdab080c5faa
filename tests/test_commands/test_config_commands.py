"""Tests for the ``config`` sub-command group."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
import typer
from typer.testing import CliRunner

from schwabli.app import main_callback
from schwabli.commands.config import config_app
from schwabli.config import load_global_config
from schwabli.exit_codes import EXIT_INVALID_USAGE
from schwabli.models import BrowserEngine


def _build_app() -> typer.Typer:
    app = typer.Typer(no_args_is_help=True, add_completion=False)
    app.callback()(main_callback)
    app.add_typer(config_app, name="config")
    return app


@pytest.fixture
def app(isolated_config: Path) -> typer.Typer:
    return _build_app()


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


class TestConfigShow:
    def test_show_defaults_as_json(self, runner: CliRunner, app: typer.Typer) -> None:
        result = runner.invoke(app, ["--quiet", "--json", "config", "show"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["session"]["browser"] == "firefox"
        assert data["session"]["password_source"] == "prompt"
        assert data["request"]["verify_ssl"] is True


class TestConfigSet:
    def test_set_string(self, runner: CliRunner, app: typer.Typer) -> None:
        result = runner.invoke(app, ["config", "set", "session.username", "jdoe"])

        assert result.exit_code == 0, result.output
        assert load_global_config().session.username == "jdoe"

    def test_set_enum(self, runner: CliRunner, app: typer.Typer) -> None:
        result = runner.invoke(app, ["config", "set", "session.browser", "chromium"])

        assert result.exit_code == 0, result.output
        assert load_global_config().session.browser is BrowserEngine.CHROMIUM

    def test_set_bool(self, runner: CliRunner, app: typer.Typer) -> None:
        result = runner.invoke(app, ["config", "set", "session.headless", "false"])

        assert result.exit_code == 0, result.output
        assert load_global_config().session.headless is False

    def test_set_float(self, runner: CliRunner, app: typer.Typer) -> None:
        result = runner.invoke(app, ["config", "set", "session.two_factor_timeout", "22.5"])

        assert result.exit_code == 0, result.output
        assert load_global_config().session.two_factor_timeout == 22.5

    def test_non_numeric_value_rejected(self, runner: CliRunner, app: typer.Typer) -> None:
        result = runner.invoke(app, ["config", "set", "request.timeout", "soon"])

        assert result.exit_code == EXIT_INVALID_USAGE

    def test_validation_failure_rejected(self, runner: CliRunner, app: typer.Typer) -> None:
        result = runner.invoke(app, ["config", "set", "session.two_factor_timeout", "0"])

        assert result.exit_code == EXIT_INVALID_USAGE
        assert load_global_config().session.two_factor_timeout == 10.0

    def test_unknown_key_rejected(self, runner: CliRunner, app: typer.Typer) -> None:
        result = runner.invoke(app, ["config", "set", "session.nickname", "x"])

        assert result.exit_code == EXIT_INVALID_USAGE
        assert "Unknown config key" in result.output

    def test_section_key_rejected(self, runner: CliRunner, app: typer.Typer) -> None:
        result = runner.invoke(app, ["config", "set", "session", "x"])

        assert result.exit_code == EXIT_INVALID_USAGE


class TestConfigReset:
    def test_reset_with_force(self, runner: CliRunner, app: typer.Typer) -> None:
        runner.invoke(app, ["config", "set", "session.username", "jdoe"])

        result = runner.invoke(app, ["--force", "config", "reset"])

        assert result.exit_code == 0, result.output
        assert load_global_config().session.username is None

    def test_reset_declined(self, runner: CliRunner, app: typer.Typer) -> None:
        runner.invoke(app, ["config", "set", "session.username", "jdoe"])

        result = runner.invoke(app, ["config", "reset"], input="n\n")

        assert result.exit_code == 0
        assert load_global_config().session.username == "jdoe"
