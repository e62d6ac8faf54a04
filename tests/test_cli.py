import json

import pytest
import toml
from click.testing import CliRunner

from cmdwatcher import cli, config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    monkeypatch.delenv(config.ENV_CONFIG_VAR, raising=False)
    monkeypatch.delenv(config.ENV_CONFIG_DIR_VAR, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def watch_dir(tmp_path):
    folder = tmp_path / "w"
    folder.mkdir()
    (folder / "a.txt").write_text("content")
    return folder


@pytest.fixture
def temp_config(tmp_path, watch_dir):
    rules = [
        {
            "folder": str(watch_dir),
            "file_extension": ".txt",
            "created": True,
            "deleted": False,
            "modified": True,
            "renamed_old": False,
            "renamed_new": False,
            "os_command": "echo ${file}",
        },
        {"file_extension": ".txt"},
    ]
    rules_file = tmp_path / "config.json"
    rules_file.write_text(json.dumps(rules))

    settings_file = tmp_path / "settings.toml"
    with open(settings_file, "w") as f:
        toml.dump({"logging": {"log_dir": str(tmp_path / "logs"), "console": False}}, f)

    return ["--config", str(rules_file), "--settings", str(settings_file)]


def test_show_config(temp_config, watch_dir):
    runner = CliRunner()
    result = runner.invoke(cli.main, temp_config + ["show-config"])
    assert result.exit_code == 0
    assert "retry_count" in result.output
    assert "Watch Rules" in result.output
    assert ".txt" in result.output


def test_missing_rules_file_exits_1(tmp_path):
    runner = CliRunner()
    result = runner.invoke(cli.main, ["--config", str(tmp_path / "missing.json"), "run"])
    assert result.exit_code == 1
    assert "Configuration file not found" in result.output


def test_unparseable_rules_file_exits_1(tmp_path):
    rules_file = tmp_path / "config.json"
    rules_file.write_text("[{")
    runner = CliRunner()
    result = runner.invoke(cli.main, ["--config", str(rules_file), "run"])
    assert result.exit_code == 1


def test_missing_settings_file_exits_1(tmp_path):
    runner = CliRunner()
    result = runner.invoke(cli.main, ["--settings", str(tmp_path / "nope.toml"), "show-config"])
    assert result.exit_code == 1


def test_run_rejects_invalid_legacy_path(temp_config, tmp_path):
    runner = CliRunner()
    result = runner.invoke(cli.main, temp_config + ["run", str(tmp_path / "not-there")])
    assert result.exit_code == 1
    assert "not a valid directory" in result.output


def test_run_until_shutdown(temp_config, watch_dir, monkeypatch):
    started = {}

    def fake_run(self):
        started["rules"] = len(self.rules)
        started["poll_interval"] = self.poll_interval

    monkeypatch.setattr("cmdwatcher.watcher.WatchManager.run", fake_run)
    monkeypatch.setattr(cli, "install_signal_handlers", lambda flag: None)

    runner = CliRunner()
    result = runner.invoke(cli.main, temp_config + ["run", str(watch_dir)])

    assert result.exit_code == 0
    assert started == {"rules": 1, "poll_interval": 0.1}
    assert "Press Ctrl+C" in result.output


def test_trigger_runs_matching_rule(temp_config, watch_dir, recorded_commands):
    runner = CliRunner()
    result = runner.invoke(cli.main, temp_config + ["trigger", str(watch_dir / "a.txt")])
    assert result.exit_code == 0
    assert "executed" in result.output
    assert recorded_commands.commands == [f"echo {watch_dir / 'a.txt'}"]


def test_trigger_disabled_event_is_dropped(temp_config, watch_dir, recorded_commands):
    runner = CliRunner()
    result = runner.invoke(
        cli.main, temp_config + ["trigger", str(watch_dir / "a.txt"), "--event", "removed"]
    )
    assert result.exit_code == 0
    assert "dropped" in result.output
    assert recorded_commands.commands == []


def test_trigger_without_matching_rule(temp_config, tmp_path):
    runner = CliRunner()
    result = runner.invoke(cli.main, temp_config + ["trigger", str(tmp_path / "other.txt")])
    assert result.exit_code == 0
    assert "No watch rule covers folder" in result.output


def test_status_without_daemon(temp_config):
    runner = CliRunner()
    result = runner.invoke(cli.main, temp_config + ["status"])
    assert result.exit_code == 0
    assert "not running" in result.output


def test_stop_without_daemon(temp_config):
    runner = CliRunner()
    result = runner.invoke(cli.main, temp_config + ["stop"])
    assert result.exit_code == 0
    assert "not running" in result.output
