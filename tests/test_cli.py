"""Tests for whitelist_gateway.cli.main."""

import pytest
import yaml
from typer.testing import CliRunner

from whitelist_gateway.cli.main import app

runner = CliRunner()


@pytest.fixture()
def config_path(tmp_path) -> str:
    path = tmp_path / "whitelist-gateway.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "database": {"url": f"sqlite:///{tmp_path / 'gateway.db'}"},
                "timeouts": {"request_timeout": 0.05},
            }
        )
    )
    return str(path)


class TestConfigCommands:
    def test_validate_ok(self, config_path) -> None:
        result = runner.invoke(app, ["config", "validate", "-c", config_path])

        assert result.exit_code == 0
        assert "Configuration is valid" in result.output

    def test_validate_missing_file_fails(self, tmp_path) -> None:
        result = runner.invoke(app, ["config", "validate", "-c", str(tmp_path / "nope.yaml")])

        assert result.exit_code == 1
        assert "validation failed" in result.output

    def test_init_writes_defaults(self, tmp_path) -> None:
        path = tmp_path / "fresh.yaml"

        result = runner.invoke(app, ["config", "init", "-c", str(path)])

        assert result.exit_code == 0
        assert yaml.safe_load(path.read_text())["timeouts"]["request_timeout"] == 60

    def test_show(self, config_path) -> None:
        result = runner.invoke(app, ["config", "show", "-c", config_path])

        assert result.exit_code == 0
        assert "request timeout: 0.05s" in result.output
        assert "sweep max age: 90s" in result.output


class TestWhitelistAndRequests:
    def test_whitelisted_user_is_allowed(self, config_path) -> None:
        added = runner.invoke(app, ["whitelist", "add", "Alice", "-s", "uuid-1", "-c", config_path])
        assert added.exit_code == 0

        listed = runner.invoke(app, ["whitelist", "list", "-c", config_path])
        assert "Alice" in listed.output

        checked = runner.invoke(app, ["check", "Alice", "-c", config_path])
        assert checked.exit_code == 0
        assert "Alice: allowed" in checked.output

    def test_duplicate_whitelist_entry_fails(self, config_path) -> None:
        runner.invoke(app, ["whitelist", "add", "Alice", "-c", config_path])

        result = runner.invoke(app, ["whitelist", "add", "Alice", "-c", config_path])

        assert result.exit_code == 1

    def test_unknown_user_opens_request(self, config_path) -> None:
        checked = runner.invoke(app, ["check", "Bob", "-c", config_path])
        assert checked.exit_code == 0
        assert "Bob: denied (pending review)" in checked.output
        assert "Waiting 0.05s" in checked.output

    def test_request_opened_by_check_times_out(self, config_path) -> None:
        runner.invoke(app, ["check", "Bob", "-c", config_path])

        listed = runner.invoke(app, ["requests", "list", "-c", config_path])
        assert "Bob" in listed.output
        assert "timeout" in listed.output
        assert "pending" not in listed.output

        again = runner.invoke(app, ["check", "Bob", "-c", config_path])
        assert "Bob: denied (pending review)" in again.output
        assert "Waiting" in again.output

    def test_sweep_reports_count(self, config_path) -> None:
        result = runner.invoke(app, ["requests", "sweep", "-c", config_path])

        assert result.exit_code == 0
        assert "Removed 0 stale requests" in result.output

    def test_empty_lists(self, config_path) -> None:
        assert "Whitelist is empty" in runner.invoke(app, ["whitelist", "list", "-c", config_path]).output
        assert "No temporary access requests" in runner.invoke(app, ["requests", "list", "-c", config_path]).output
