import pytest

from debupgrader.errors import ConfigError, UpgraderError
from debupgrader.services.config_loader import ConfigLoader


def test_config_loader_loads_yaml_mapping(tmp_path):
    config_file = tmp_path / ".debupgrader.yml"
    config_file.write_text(
        "target_version: 12\nmin_free_gb: 8\nreboot: skip\n",
        encoding="utf-8",
    )

    loader = ConfigLoader()
    loaded = loader.load(str(config_file))

    assert loaded["target_version"] == 12
    assert loaded["min_free_gb"] == 8
    assert loaded["reboot"] == "skip"


def test_config_loader_returns_empty_for_empty_file(tmp_path):
    config_file = tmp_path / ".debupgrader.yml"
    config_file.write_text("", encoding="utf-8")

    assert ConfigLoader().load(str(config_file)) == {}


def test_config_loader_rejects_unknown_keys(tmp_path):
    config_file = tmp_path / ".debupgrader.yml"
    config_file.write_text("unknown_key: true\n", encoding="utf-8")

    loader = ConfigLoader()

    with pytest.raises(ConfigError, match="Unknown configuration keys"):
        loader.load(str(config_file))


def test_config_loader_rejects_non_mapping(tmp_path):
    config_file = tmp_path / ".debupgrader.yml"
    config_file.write_text("- 12\n- 13\n", encoding="utf-8")

    with pytest.raises(UpgraderError, match="YAML mapping"):
        ConfigLoader().load(str(config_file))


def test_config_loader_reports_missing_file(tmp_path):
    with pytest.raises(ConfigError, match="Config file not found"):
        ConfigLoader().load(str(tmp_path / "missing.yml"))
