"""Pre-flight checks run before anything on disk is touched."""

import os
import shutil
from typing import Callable, List, Optional

from debupgrader.constants import GIB
from debupgrader.errors import (
    AlreadyUpgraded,
    HeldPackagesPresent,
    InsufficientDiskSpace,
    PrivilegeError,
    UnreviewedThirdPartyRepo,
    UnsupportedPlatform,
    VersionMismatch,
)
from debupgrader.models import OsRelease, ReleaseTransition, UpgradePlan


class PreflightService:
    """Gatekeeping checks; each raises a domain error on failure."""

    def __init__(self, logger, console, operator):
        self.logger = logger
        self.console = console
        self.operator = operator

    def check_privileges(self, geteuid: Optional[Callable[[], int]] = None):
        euid = (geteuid or os.geteuid)()
        if euid != 0:
            raise PrivilegeError(euid)

    def check_version(
        self,
        release: OsRelease,
        plan: UpgradePlan,
        transition: ReleaseTransition,
        mismatch_policy: str,
    ):
        self.console.print("[blue]Checking the installed release...[/blue]")
        if release.id != plan.distribution:
            raise UnsupportedPlatform(
                f"This tool only upgrades {plan.distribution} systems; detected '{release.id or 'unknown'}'."
            )

        self.logger.info(
            "Current %s version: %s (%s)",
            release.id,
            release.version_id,
            release.version_codename or "?",
        )

        if release.version_id == plan.final_version:
            raise AlreadyUpgraded(release.version_id)

        if release.version_id == transition.source_version:
            return

        self.logger.warning(
            "Expected version %s before upgrading to %s but found %s.",
            transition.source_version,
            transition.target_version,
            release.version_id,
        )
        if mismatch_policy == "prompt" and self.operator.confirm(
            f"Version {release.version_id} is not the expected {transition.source_version}. Continue anyway?"
        ):
            self.logger.warning("Operator confirmed upgrade from unexpected version %s.", release.version_id)
            return
        raise VersionMismatch(release.version_id, transition.source_version)

    def check_held_packages(self, held: List[str]):
        self.console.print("[blue]Checking for held packages...[/blue]")
        if not held:
            self.logger.info("No held packages found.")
            return

        self.logger.warning("Held packages detected: %s", ", ".join(held))
        if self.operator.confirm("Held packages may block the upgrade. Continue anyway?"):
            self.logger.warning("Operator chose to continue with held packages.")
            return
        raise HeldPackagesPresent(held)

    def check_disk_space(self, min_free_gb: float, path: str = "/", disk_usage=None):
        self.console.print(f"[blue]Checking free disk space on {path}...[/blue]")
        required = int(min_free_gb * GIB)
        available = (disk_usage or shutil.disk_usage)(path).free
        self.logger.info("Free space on %s: %.1f GiB", path, available / GIB)

        if available >= required:
            self.logger.info("Free disk space is sufficient.")
            return

        if self.operator.confirm(
            f"Only {available / GIB:.1f} GiB free, {min_free_gb:g} GiB recommended. Continue anyway?"
        ):
            self.logger.warning("Operator chose to continue with low disk space.")
            return
        raise InsufficientDiskSpace(required, available)

    def check_third_party_repos(self, paths: List[str]):
        self.console.print("[blue]Checking for third-party APT sources...[/blue]")
        if not paths:
            self.logger.info("No third-party APT source files found.")
            return

        for path in paths:
            self.logger.warning("Third-party APT source: %s", path)
        raise UnreviewedThirdPartyRepo(paths)
