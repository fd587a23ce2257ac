"""Reboot policy handling."""

from typing import Callable

from debupgrader.constants import REBOOT_CMD


class RebootService:
    """Applies the configured reboot policy: auto, prompt or skip."""

    def __init__(self, logger, console, operator, run_cmd: Callable):
        self.logger = logger
        self.console = console
        self.operator = operator
        self.run_cmd = run_cmd

    def apply(self, policy: str, delay: int) -> bool:
        """Return True when a reboot request was issued."""
        if policy == "skip":
            self.logger.info("Reboot skipped by policy. Reboot manually to finish the upgrade.")
            return False

        if policy == "prompt":
            if not self.operator.confirm("Reboot now to finish the upgrade?", default=True):
                self.logger.info("Reboot declined. Reboot manually to finish the upgrade.")
                return False
        else:
            self.operator.countdown(delay, f"Rebooting in {delay} seconds.")

        self.logger.info("Requesting system reboot...")
        self.console.print("[bold yellow]Rebooting...[/bold yellow]")
        self.run_cmd(REBOOT_CMD, check=True)
        return True
