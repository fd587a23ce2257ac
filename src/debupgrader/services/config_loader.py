"""Configuration loader for debupgrader."""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from debupgrader.errors import ConfigError


class ConfigLoader:
    """Loads YAML configuration files for CLI defaults."""

    SUPPORTED_KEYS = {
        "source_version",
        "source_codename",
        "target_version",
        "target_codename",
        "distribution",
        "min_free_gb",
        "interactive",
        "version_mismatch",
        "check_third_party_repos",
        "add_firmware_component",
        "reboot",
        "reboot_delay",
        "start_delay",
        "log_dir",
        "state_file",
        "manifest_file",
        "os_release_file",
        "sources_list",
        "sources_list_d",
        "transcript",
        "step_timeout_minutes",
        "verbose",
    }

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise ConfigError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise ConfigError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise ConfigError("Config file must contain a YAML mapping at the root.")

        unknown = sorted(set(parsed.keys()) - self.SUPPORTED_KEYS)
        if unknown:
            unknown_list = ", ".join(unknown)
            raise ConfigError(f"Unknown configuration keys: {unknown_list}")

        return parsed
