import json

from click.testing import CliRunner

import debupgrader.cli as cli_module
from debupgrader.models import RunResult


def install_fake_upgrader(monkeypatch, status="success"):
    captured = {}

    class FakeUpgrader:
        def __init__(self, **kwargs):
            captured.update(kwargs)

        def run(self):
            return RunResult(status=status)

    monkeypatch.setattr(cli_module, "DebianUpgrader", FakeUpgrader)
    return captured


def write_config(tmp_path, os_release=None, extra=""):
    os_release_file = tmp_path / "os-release"
    if os_release is not None:
        os_release_file.write_text(os_release, encoding="utf-8")
    config_file = tmp_path / "debupgrader.yml"
    config_file.write_text(
        f"os_release_file: {os_release_file}\n" f"state_file: {tmp_path / 'run-state.json'}\n" + extra,
        encoding="utf-8",
    )
    return config_file


def test_cli_uses_config_and_allows_cli_override(tmp_path, monkeypatch):
    config_file = write_config(
        tmp_path,
        extra="target_version: 12\n" "min_free_gb: 8\n" "reboot: prompt\n" "interactive: true\n",
    )
    captured = install_fake_upgrader(monkeypatch)

    runner = CliRunner()
    result = runner.invoke(
        cli_module.main,
        [
            "--config",
            str(config_file),
            "--min-free-gb",
            "10",
            "--reboot",
            "skip",
            "--skip-third-party-check",
        ],
    )

    assert result.exit_code == 0, result.output
    settings = captured["settings"]
    assert settings.min_free_gb == 10.0
    assert settings.reboot == "skip"
    assert settings.interactive is True
    assert settings.check_third_party_repos is False
    assert captured["plan"].describe() == "bullseye -> bookworm"


def test_cli_builds_two_stage_plan(tmp_path, monkeypatch):
    captured = install_fake_upgrader(monkeypatch)
    monkeypatch.setattr(cli_module, "DEFAULT_CONFIG_FILES", ())
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(
        cli_module.main,
        ["--target-version", "12", "--source-version", "10", "--reset-state"],
    )

    assert result.exit_code == 0, result.output
    assert captured["plan"].describe() == "buster -> bullseye -> bookworm"
    assert captured["reset_state"] is True


def test_cli_uses_default_config_file_when_present(tmp_path, monkeypatch):
    (tmp_path / ".debupgrader.yml").write_text(
        f"target_version: '13'\nreboot: skip\nos_release_file: {tmp_path / 'os-release'}\n"
        f"state_file: {tmp_path / 'run-state.json'}\n",
        encoding="utf-8",
    )
    captured = install_fake_upgrader(monkeypatch)
    monkeypatch.setattr(cli_module, "DEFAULT_CONFIG_FILES", (".debupgrader.yml",))
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(cli_module.main, [])

    assert result.exit_code == 0, result.output
    assert captured["plan"].final_codename == "trixie"
    assert captured["settings"].reboot == "skip"


def test_cli_exit_code_follows_run_result(tmp_path, monkeypatch):
    install_fake_upgrader(monkeypatch, status="aborted")
    config_file = write_config(tmp_path)

    result = CliRunner().invoke(cli_module.main, ["--config", str(config_file), "--target-version", "12"])

    assert result.exit_code == 1


def test_cli_requires_target_version(tmp_path, monkeypatch):
    install_fake_upgrader(monkeypatch)
    monkeypatch.setattr(cli_module, "DEFAULT_CONFIG_FILES", ())
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(cli_module.main, [])

    assert result.exit_code != 0
    assert "--target-version" in result.output


def test_cli_rejects_invalid_policy_from_config(tmp_path, monkeypatch):
    config_file = tmp_path / "debupgrader.yml"
    config_file.write_text("target_version: 12\nreboot: sometimes\n", encoding="utf-8")
    install_fake_upgrader(monkeypatch)

    result = CliRunner().invoke(cli_module.main, ["--config", str(config_file)])

    assert result.exit_code != 0
    assert "Invalid value for 'reboot'" in result.output


def test_cli_reads_source_release_from_os_release(tmp_path, monkeypatch):
    config_file = write_config(tmp_path, os_release='ID=debian\nVERSION_ID="10"\n')
    captured = install_fake_upgrader(monkeypatch)

    result = CliRunner().invoke(cli_module.main, ["--config", str(config_file), "--target-version", "12"])

    assert result.exit_code == 0, result.output
    assert captured["plan"].describe() == "buster -> bullseye -> bookworm"


def test_cli_keeps_pending_plan_after_first_stage(tmp_path, monkeypatch):
    config_file = write_config(tmp_path, os_release='ID=debian\nVERSION_ID="11"\n')
    (tmp_path / "run-state.json").write_text(
        json.dumps(
            {
                "status": "stage_complete",
                "phase_complete": 0,
                "metadata": {"distribution": "debian", "source_version": "10", "target_version": "12"},
            }
        ),
        encoding="utf-8",
    )
    captured = install_fake_upgrader(monkeypatch)

    result = CliRunner().invoke(cli_module.main, ["--config", str(config_file), "--target-version", "12"])

    assert result.exit_code == 0, result.output
    assert captured["plan"].describe() == "buster -> bullseye -> bookworm"


def test_cli_falls_back_to_previous_release_without_os_release(tmp_path, monkeypatch):
    config_file = write_config(tmp_path)
    captured = install_fake_upgrader(monkeypatch)

    result = CliRunner().invoke(cli_module.main, ["--config", str(config_file), "--target-version", "12"])

    assert result.exit_code == 0, result.output
    assert captured["plan"].describe() == "bullseye -> bookworm"


def test_cli_plans_single_stage_when_already_on_target(tmp_path, monkeypatch):
    config_file = write_config(tmp_path, os_release='ID=debian\nVERSION_ID="12"\n')
    captured = install_fake_upgrader(monkeypatch)

    result = CliRunner().invoke(cli_module.main, ["--config", str(config_file), "--target-version", "12"])

    assert result.exit_code == 0, result.output
    assert captured["plan"].describe() == "bullseye -> bookworm"


def test_cli_casts_step_timeout_from_config(tmp_path, monkeypatch):
    config_file = write_config(tmp_path, extra="target_version: 12\nstep_timeout_minutes: '30'\n")
    captured = install_fake_upgrader(monkeypatch)

    result = CliRunner().invoke(cli_module.main, ["--config", str(config_file)])

    assert result.exit_code == 0, result.output
    assert captured["settings"].step_timeout_minutes == 30
