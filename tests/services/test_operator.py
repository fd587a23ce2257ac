import io

from rich.console import Console

import debupgrader.services.operator as operator_module
from debupgrader.services.operator import OperatorService


def build_console():
    return Console(file=io.StringIO(), force_terminal=False)


def test_non_interactive_confirm_never_prompts(monkeypatch):
    def fail_ask(*_args, **_kwargs):
        raise AssertionError("should not prompt in non-interactive mode")

    monkeypatch.setattr(operator_module.Confirm, "ask", fail_ask)
    service = OperatorService(build_console(), interactive=False)

    assert service.confirm("Continue?") is False


def test_interactive_confirm_uses_prompt(monkeypatch):
    monkeypatch.setattr(operator_module.Confirm, "ask", lambda *_args, **_kwargs: True)
    service = OperatorService(build_console(), interactive=True)

    assert service.confirm("Continue?") is True


def test_countdown_sleeps_once_per_second():
    slept = []
    service = OperatorService(build_console(), sleep=slept.append)

    service.countdown(3, "Starting.")
    service.countdown(0, "Nothing.")

    assert slept == [1, 1, 1]
