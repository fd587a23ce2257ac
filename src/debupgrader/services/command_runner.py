"""Subprocess execution service for debupgrader."""

import os
import subprocess
from typing import Dict, List, Optional

from debupgrader.errors import UpgraderError


class CommandRunner:
    """Runs external commands with consistent error handling."""

    def __init__(self, logger):
        self.logger = logger

    def run(
        self,
        cmd: List[str],
        check: bool = True,
        capture_output: bool = False,
        timeout: Optional[float] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> subprocess.CompletedProcess:
        cmd_str = " ".join(cmd)
        self.logger.debug("Executing: %s", cmd_str)

        full_env = None
        if env:
            full_env = dict(os.environ)
            full_env.update(env)

        try:
            result = subprocess.run(
                cmd,
                text=True,
                capture_output=capture_output,
                timeout=timeout,
                env=full_env,
            )
        except FileNotFoundError as exc:
            raise UpgraderError(
                f"Required command not found: {cmd[0]}. Please install it and try again."
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise UpgraderError(f"Command timed out after {timeout}s: {cmd_str}") from exc
        except OSError as exc:
            raise UpgraderError(f"Failed to execute command: {cmd_str}. {exc}") from exc

        if capture_output and result.stdout:
            self.logger.debug("Command output: %s", result.stdout.strip())

        if result.returncode == 0:
            return result

        stderr = (result.stderr or "").strip() if capture_output else ""
        message = f"Command failed ({result.returncode}): {cmd_str}"
        if stderr:
            message = f"{message}\n{stderr}"

        if check:
            raise UpgraderError(message)

        self.logger.warning(message)
        return result
