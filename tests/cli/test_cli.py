from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from typer.testing import CliRunner

from picks_api import cli
from picks_api.cli import app
from picks_api.db.engine import reset_database_state

runner = CliRunner()


@pytest.fixture()
def database_env(tmp_path: Path) -> Iterator[dict[str, str]]:
    reset_database_state()
    yield {
        "PICKS_DATABASE_DSN": f"sqlite+aiosqlite:///{tmp_path / 'cli.sqlite'}",
        "PICKS_TEST_FAST_HASH": "1",
    }
    reset_database_state()


def test_no_command_prints_help():
    result = runner.invoke(app, [])

    assert result.exit_code == 0
    assert "create-admin" in result.output


def test_start_forwards_server_options(monkeypatch):
    captured: dict[str, object] = {}

    def _fake_start(**kwargs):
        captured.update(kwargs)

    monkeypatch.setattr(cli, "start_server", _fake_start)

    result = runner.invoke(app, ["start", "--host", "0.0.0.0", "--port", "9000"])

    assert result.exit_code == 0
    assert captured == {"host": "0.0.0.0", "port": 9000, "reload": False}


def test_init_db_reports_the_database(database_env, tmp_path):
    result = runner.invoke(app, ["init-db"], env=database_env)

    assert result.exit_code == 0, result.output
    assert "Database ready" in result.output
    assert (tmp_path / "cli.sqlite").exists()


def test_create_admin_rejects_short_passwords(database_env):
    result = runner.invoke(app, ["create-admin", "root@example.com", "short"], env=database_env)

    assert result.exit_code == 1
    assert "at least 8 characters" in result.output


def test_create_admin_creates_then_promotes(database_env):
    created = runner.invoke(
        app,
        ["create-admin", "root@example.com", "long-enough-secret", "--name", "Root"],
        env=database_env,
    )
    promoted = runner.invoke(
        app,
        ["create-admin", "root@example.com", "long-enough-secret"],
        env=database_env,
    )

    assert created.exit_code == 0, created.output
    assert "Created administrator root@example.com" in created.output
    assert promoted.exit_code == 0, promoted.output
    assert "Promoted administrator root@example.com" in promoted.output
