"""Run-scoped session: file log plus background transcript capture."""

import logging
import os
import signal
import subprocess
from datetime import datetime
from typing import Dict, List, Optional

from debupgrader.constants import TRANSCRIPT_FOLLOW_CMD, TRANSCRIPT_STOP_TIMEOUT
from debupgrader.errors import UpgraderError
from debupgrader.models import RunContext

FORWARDED_SIGNALS = (signal.SIGTERM, signal.SIGHUP)


def _raise_interrupt(signum, _frame):
    raise KeyboardInterrupt(f"Received signal {signum}")


class UpgradeSession:
    """Owns the session log handler and the transcript process.

    Use as a context manager; everything acquired in ``__enter__`` is released
    on every exit path, including interrupts. SIGTERM and SIGHUP are turned
    into ``KeyboardInterrupt`` while the session is open.
    """

    def __init__(
        self,
        run_context: RunContext,
        logger: logging.Logger,
        console,
        transcript: bool = True,
        subprocess_module=subprocess,
    ):
        self.run_context = run_context
        self.logger = logger
        self.console = console
        self.transcript = transcript
        self.subprocess = subprocess_module
        self.file_handler: Optional[logging.Handler] = None
        self.transcript_process = None
        self._previous_handlers: Dict[int, object] = {}

    def transcript_command(self) -> List[str]:
        return [
            "script",
            "-q",
            "-f",
            "-a",
            "-c",
            TRANSCRIPT_FOLLOW_CMD,
            self.run_context.transcript_file,
        ]

    def __enter__(self) -> "UpgradeSession":
        self.open_log()
        self._install_signal_handlers()
        if self.transcript:
            self.start_transcript()
        return self

    def __exit__(self, exc_type, exc, tb):
        try:
            self.stop_transcript()
        finally:
            self._restore_signal_handlers()
            self.close_log()
        return False

    def open_log(self):
        log_dir = os.path.dirname(self.run_context.log_file) or "."
        try:
            os.makedirs(log_dir, exist_ok=True)
            handler = logging.FileHandler(self.run_context.log_file, mode="a", encoding="utf-8")
        except OSError as exc:
            raise UpgraderError(
                f"Could not open session log '{self.run_context.log_file}': {exc}"
            ) from exc
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        self.logger.addHandler(handler)
        self.file_handler = handler
        if self.logger.getEffectiveLevel() > logging.INFO:
            self.logger.setLevel(logging.INFO)
        self.logger.info("--- Upgrade session started: %s ---", datetime.now().isoformat(timespec="seconds"))
        self.logger.info("Session log: %s", self.run_context.log_file)

    def close_log(self):
        if self.file_handler is None:
            return
        self.logger.info("--- Upgrade session finished: %s ---", datetime.now().isoformat(timespec="seconds"))
        self.logger.removeHandler(self.file_handler)
        self.file_handler.close()
        self.file_handler = None

    def start_transcript(self):
        try:
            self.transcript_process = self.subprocess.Popen(
                self.transcript_command(),
                stdin=self.subprocess.DEVNULL,
                stdout=self.subprocess.DEVNULL,
                stderr=self.subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as exc:
            self.logger.warning("Transcript capture unavailable: %s", exc)
            self.transcript_process = None
            return
        self.logger.info("Transcript capture started: %s", self.run_context.transcript_file)

    def stop_transcript(self):
        process = self.transcript_process
        if process is None:
            return
        self.transcript_process = None
        if process.poll() is not None:
            return

        process.terminate()
        try:
            process.wait(timeout=TRANSCRIPT_STOP_TIMEOUT)
        except self.subprocess.TimeoutExpired:
            self.logger.warning("Transcript process did not stop; killing it.")
            process.kill()
            process.wait()
        self.logger.debug("Transcript capture stopped.")

    def _install_signal_handlers(self):
        for signum in FORWARDED_SIGNALS:
            try:
                self._previous_handlers[signum] = signal.signal(signum, _raise_interrupt)
            except ValueError:
                # Not on the main thread; leave the default handling alone.
                self.logger.debug("Cannot install handler for signal %s", signum)

    def _restore_signal_handlers(self):
        for signum, handler in self._previous_handlers.items():
            signal.signal(signum, handler)
        self._previous_handlers = {}
