"""
Tests for the command line
Run with: pytest tests/test_cli.py -v
"""

import pytest
from typer.testing import CliRunner

from sidebet.cli import app
from sidebet.settings import Settings

runner = CliRunner()


@pytest.fixture(autouse=True)
def temp_db(tmp_path, monkeypatch):
    monkeypatch.setattr("sidebet.engine.default_settings", Settings(store="sqlite", db_path=str(tmp_path / "cli.db")))


def test_demo():
    result = runner.invoke(app, ["demo"])
    assert result.exit_code == 0, result.output
    assert "PAID user1 $22.00" in result.output


def test_seed_then_list():
    assert runner.invoke(app, ["seed"]).exit_code == 0

    users = runner.invoke(app, ["users"])
    assert users.exit_code == 0
    assert "Atticus" in users.output

    bets = runner.invoke(app, ["bets", "--user", "user789"])
    assert "bed" in bets.output
    assert "miles" not in bets.output


def test_errors_exit_nonzero():
    runner.invoke(app, ["seed"])
    result = runner.invoke(app, ["place", "bet_missing", "user123", "Yes", "5"])
    assert result.exit_code == 1
    assert "bet_not_found" in result.output


def test_seed_twice_is_refused():
    assert runner.invoke(app, ["seed"]).exit_code == 0
    again = runner.invoke(app, ["seed"])
    assert again.exit_code == 1
    assert "account_exists" in again.output


def test_open_uses_starting_balance(monkeypatch):
    monkeypatch.setattr("sidebet.cli.settings", Settings(starting_balance="42.50"))
    result = runner.invoke(app, ["open", "user9", "--name", "Nine"])
    assert result.exit_code == 0, result.output
    assert "$42.50" in result.output

    assert runner.invoke(app, ["open", "user9"]).exit_code == 1


def test_bets_filtered_by_status():
    runner.invoke(app, ["seed"])

    result = runner.invoke(app, ["bets", "--status", "bid"])
    assert result.exit_code == 0
    assert "miles" in result.output
    assert "bed" not in result.output

    assert runner.invoke(app, ["bets", "--status", "nope"]).exit_code == 1
