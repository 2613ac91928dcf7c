"""Tests for the command-line interface."""

import pytest
from click.testing import CliRunner

from mailferry.app import create_repository
from mailferry.cli import cli, trigger
from mailferry.config import load_config


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yml"
    path.write_text(
        f"""
storage:
  database_path: {tmp_path / "mailferry.db"}
logging:
  audit_file: {tmp_path / "audit.jsonl"}
"""
    )
    return path


def stored_rules(config_file):
    return create_repository(load_config(config_file)).load()


class TestRuleCommands:
    """Tests for rule and action management commands."""

    def test_add_rule(self, config_file):
        result = CliRunner().invoke(cli, ["rules", "add", "-c", str(config_file), "--sender", "a@b.com"])

        assert result.exit_code == 0
        rules = stored_rules(config_file)
        assert len(rules) == 1
        assert rules[0].sender == "a@b.com"
        assert rules[0].id in result.output

    def test_add_rule_without_filters(self, config_file):
        result = CliRunner().invoke(cli, ["rules", "add", "-c", str(config_file)])

        assert result.exit_code == 1
        assert stored_rules(config_file) == []

    def test_add_and_delete_action(self, config_file):
        runner = CliRunner()
        runner.invoke(cli, ["rules", "add", "-c", str(config_file), "--subject", "Invoice"])
        rule_id = stored_rules(config_file)[0].id

        result = runner.invoke(
            cli,
            ["actions", "add", "-c", str(config_file), rule_id, "--folder", "f1", "--output", "{date}_{original_name}"],
        )
        assert result.exit_code == 0

        action = stored_rules(config_file)[0].attachment_actions[0]
        assert action.drive_folder_id == "f1"
        assert action.attachment_name == "*"
        assert action.output_file_name == "{date}_{original_name}"

        result = runner.invoke(cli, ["actions", "delete", "-c", str(config_file), rule_id, action.id])
        assert result.exit_code == 0
        assert stored_rules(config_file)[0].attachment_actions == []

    def test_add_action_unknown_rule(self, config_file):
        result = CliRunner().invoke(cli, ["actions", "add", "-c", str(config_file), "missing", "--folder", "f1"])
        assert result.exit_code == 1

    def test_list_and_delete_rule(self, config_file):
        runner = CliRunner()
        runner.invoke(cli, ["rules", "add", "-c", str(config_file), "--sender", "a@b.com"])
        rule_id = stored_rules(config_file)[0].id

        result = runner.invoke(cli, ["rules", "list", "-c", str(config_file)])
        assert result.exit_code == 0
        assert "a@b.com" in result.output

        result = runner.invoke(cli, ["rules", "delete", "-c", str(config_file), rule_id])
        assert result.exit_code == 0
        assert stored_rules(config_file) == []


class TestInitConfig:
    """Tests for init-config."""

    def test_writes_loadable_config(self, tmp_path):
        output = tmp_path / "generated.yml"
        result = CliRunner().invoke(cli, ["init-config", str(output)])

        assert result.exit_code == 0
        config = load_config(output)
        assert config.processing.batch_size == 10


class TestTrigger:
    """Tests for the mailferry-trigger entry point."""

    def test_runs_with_config_from_environment(self, config_file, tmp_path, monkeypatch):
        monkeypatch.setenv("MAILFERRY_CONFIG", str(config_file))

        trigger()

        assert (tmp_path / "audit.jsonl").exists()

    def test_missing_config_does_not_raise(self, tmp_path, monkeypatch):
        monkeypatch.setenv("MAILFERRY_CONFIG", str(tmp_path / "missing.yml"))

        trigger()

        assert not (tmp_path / "audit.jsonl").exists()
