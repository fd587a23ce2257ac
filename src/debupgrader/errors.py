"""Domain errors for debupgrader."""

from typing import List, Sequence

from debupgrader.errors_catalog import actionable_error


class UpgraderError(RuntimeError):
    """Raised when the upgrade cannot continue safely."""


class ConfigError(UpgraderError):
    """Raised for invalid or inconsistent configuration."""


class PrivilegeError(UpgraderError):
    def __init__(self, euid: int):
        self.euid = euid
        super().__init__(actionable_error("not_root", euid=str(euid)))


class UnsupportedPlatform(UpgraderError):
    pass


class VersionMismatch(UpgraderError):
    def __init__(self, observed: str, expected: str):
        self.observed = observed
        self.expected = expected
        super().__init__(actionable_error("version_mismatch", observed=observed, expected=expected))


class AlreadyUpgraded(UpgraderError):
    """Not a failure: the system already runs the final target release."""

    def __init__(self, version: str):
        self.version = version
        super().__init__(f"System already runs version {version}. Nothing to do.")


class HeldPackagesPresent(UpgraderError):
    def __init__(self, packages: Sequence[str]):
        self.packages: List[str] = list(packages)
        super().__init__(actionable_error("held_packages", packages=", ".join(self.packages)))


class InsufficientDiskSpace(UpgraderError):
    def __init__(self, required_bytes: int, available_bytes: int):
        self.required_bytes = required_bytes
        self.available_bytes = available_bytes
        super().__init__(
            actionable_error(
                "insufficient_disk_space",
                required=f"{required_bytes / 1024 ** 3:.1f}",
                available=f"{available_bytes / 1024 ** 3:.1f}",
            )
        )


class UnreviewedThirdPartyRepo(UpgraderError):
    def __init__(self, paths: Sequence[str]):
        self.paths: List[str] = list(paths)
        super().__init__(actionable_error("third_party_repos", paths=", ".join(self.paths)))


class BackupFailed(UpgraderError):
    pass


class PackageOperationFailed(UpgraderError):
    def __init__(self, step: str, detail: str = ""):
        self.step = step
        message = actionable_error("package_step_failed", step=step)
        if detail:
            message = f"{message}\n{detail}"
        super().__init__(message)


class UpgradeIncomplete(UpgraderError):
    def __init__(self, observed_version: str, expected_version: str):
        self.observed_version = observed_version
        self.expected_version = expected_version
        super().__init__(
            actionable_error(
                "upgrade_incomplete",
                observed=observed_version or "<unknown>",
                expected=expected_version,
            )
        )
