"""Builds the sequence of release transitions for a requested upgrade."""

from typing import Dict, Optional

from packaging import version

from debupgrader.constants import DEFAULT_DISTRIBUTION, KNOWN_CODENAMES
from debupgrader.errors import ConfigError
from debupgrader.models import ReleaseTransition, UpgradePlan


class UpgradePlanner:
    """Splits a source->target upgrade into one transition per major release."""

    def __init__(self, codenames: Optional[Dict[str, str]] = None):
        self.codenames = dict(KNOWN_CODENAMES if codenames is None else codenames)

    def major(self, ver_str: str) -> int:
        try:
            return version.parse(str(ver_str).strip()).major
        except version.InvalidVersion as exc:
            raise ConfigError(f"Invalid release version: {ver_str!r}") from exc

    def codename_for(self, major: int, override: Optional[str] = None) -> str:
        if override:
            return override
        codename = self.codenames.get(str(major))
        if not codename:
            raise ConfigError(
                f"No known codename for release {major}. Pass it explicitly with "
                "--source-codename/--target-codename."
            )
        return codename

    def build(
        self,
        target_version: str,
        source_version: Optional[str] = None,
        source_codename: Optional[str] = None,
        target_codename: Optional[str] = None,
        distribution: str = DEFAULT_DISTRIBUTION,
    ) -> UpgradePlan:
        target_major = self.major(target_version)
        source_major = self.major(source_version) if source_version else target_major - 1

        if source_major >= target_major:
            raise ConfigError(
                f"Target version {target_version} must be newer than source version "
                f"{source_version or source_major}."
            )

        transitions = []
        for major in range(source_major, target_major):
            next_major = major + 1
            transitions.append(
                ReleaseTransition(
                    source_version=str(major),
                    source_codename=self.codename_for(
                        major, source_codename if major == source_major else None
                    ),
                    target_version=str(next_major),
                    target_codename=self.codename_for(
                        next_major, target_codename if next_major == target_major else None
                    ),
                )
            )

        return UpgradePlan(transitions=tuple(transitions), distribution=distribution)
