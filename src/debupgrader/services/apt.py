"""APT package manager invocations for debupgrader."""

from typing import Callable, List, Optional

from debupgrader.constants import APT_ENV, HELD_PACKAGES_CMD, PACKAGE_STEPS
from debupgrader.errors import PackageOperationFailed, UpgraderError


class AptService:
    """Wraps the apt-get/apt-mark commands used by the upgrade."""

    def __init__(self, logger, console, run_cmd: Callable, step_timeout: Optional[float] = None):
        self.logger = logger
        self.console = console
        self.run_cmd = run_cmd
        self.step_timeout = step_timeout

    @property
    def step_names(self) -> List[str]:
        return [name for name, _ in PACKAGE_STEPS]

    def held_packages(self) -> List[str]:
        result = self.run_cmd(HELD_PACKAGES_CMD, check=True, capture_output=True)
        return [line.strip() for line in (result.stdout or "").splitlines() if line.strip()]

    def run_package_step(self, step: str):
        commands = dict(PACKAGE_STEPS)
        if step not in commands:
            raise KeyError(f"Unknown package step: {step}")

        self.console.print(f"[blue]Running apt step: {step}...[/blue]")
        self.logger.info("Running package step '%s': %s", step, " ".join(commands[step]))
        try:
            self.run_cmd(commands[step], check=True, env=APT_ENV, timeout=self.step_timeout)
        except UpgraderError as exc:
            self.logger.error("Package step '%s' failed: %s", step, exc)
            raise PackageOperationFailed(step, str(exc)) from exc
        self.logger.info("Package step '%s' finished.", step)
