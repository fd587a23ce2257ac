"""Operator interaction: confirmations and countdowns."""

import time

from rich.console import Console
from rich.prompt import Confirm


class OperatorService:
    """Asks the operator only when running interactively."""

    def __init__(self, console: Console, interactive: bool = False, sleep=time.sleep):
        self.console = console
        self.interactive = interactive
        self.sleep = sleep

    def confirm(self, question: str, default: bool = False) -> bool:
        if not self.interactive:
            return False
        return Confirm.ask(question, console=self.console, default=default)

    def countdown(self, seconds: int, message: str):
        if seconds <= 0:
            return
        self.console.print(f"[yellow]{message} Press Ctrl+C to cancel.[/yellow]")
        for remaining in range(seconds, 0, -1):
            self.console.print(f"[dim]{remaining}...[/dim]")
            self.sleep(1)
