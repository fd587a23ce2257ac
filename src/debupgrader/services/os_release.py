"""os-release descriptor reader."""

import shlex
from pathlib import Path
from typing import Dict

from debupgrader.errors import UnsupportedPlatform
from debupgrader.models import OsRelease


class OsReleaseService:
    """Reads the KEY=value os-release file into an :class:`OsRelease`."""

    def __init__(self, os_release_file: str, logger):
        self.os_release_file = os_release_file
        self.logger = logger

    def parse(self, content: str) -> Dict[str, str]:
        fields: Dict[str, str] = {}
        for raw_line in content.splitlines():
            line = raw_line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, _, value = line.partition("=")
            try:
                tokens = shlex.split(value)
            except ValueError:
                self.logger.debug("Ignoring malformed os-release line: %s", raw_line)
                continue
            fields[key.strip()] = " ".join(tokens)
        return fields

    def read(self) -> OsRelease:
        path = Path(self.os_release_file)
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise UnsupportedPlatform(
                f"Cannot determine the operating system: {self.os_release_file} is unreadable ({exc})."
            ) from exc

        fields = self.parse(content)
        release = OsRelease(
            id=fields.get("ID", ""),
            version_id=fields.get("VERSION_ID", ""),
            version_codename=fields.get("VERSION_CODENAME", ""),
            id_like=fields.get("ID_LIKE", ""),
            pretty_name=fields.get("PRETTY_NAME", ""),
            fields=fields,
        )
        self.logger.debug("os-release: %s", release)
        return release
