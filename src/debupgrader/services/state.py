"""Phase state persistence for multi-stage upgrades.

A multi-stage plan reboots between stages, so the stage that finished last is
recorded here before the reboot request. The next invocation reads it back to
decide which stage runs now.
"""

import json
import os
import tempfile
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from debupgrader.errors import UpgraderError


class StateService:
    """Persists and validates the resumable phase record."""

    SCHEMA_VERSION = 1

    def __init__(self, state_file: str, logger):
        self.state_file = state_file
        self.logger = logger

    def load(self) -> Optional[Dict[str, Any]]:
        if not os.path.exists(self.state_file):
            return None

        try:
            with open(self.state_file, "r", encoding="utf-8") as file_obj:
                data = json.load(file_obj)
        except (OSError, json.JSONDecodeError) as exc:
            raise UpgraderError(f"Could not read state file '{self.state_file}': {exc}") from exc

        if not isinstance(data, dict):
            raise UpgraderError(f"State file '{self.state_file}' has invalid format.")

        return data

    def save(self, state: Dict[str, Any]):
        state_dir = os.path.dirname(self.state_file) or "."
        os.makedirs(state_dir, exist_ok=True)
        state["schema_version"] = self.SCHEMA_VERSION
        state["updated_at"] = self._now()

        fd, temp_path = tempfile.mkstemp(prefix="run-state-", suffix=".json", dir=state_dir)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as file_obj:
                json.dump(state, file_obj, indent=2, sort_keys=True)
                file_obj.write("\n")
                file_obj.flush()
                os.fsync(file_obj.fileno())
            os.replace(temp_path, self.state_file)
        except OSError as exc:
            raise UpgraderError(f"Could not write state file '{self.state_file}': {exc}") from exc
        finally:
            if os.path.exists(temp_path):
                try:
                    os.remove(temp_path)
                except OSError:
                    pass

    def initialize(self, metadata: Dict[str, Any], reset: bool = False) -> Tuple[Dict[str, Any], bool]:
        existing_state = None if reset else self.load()

        if existing_state and existing_state.get("status") != "success":
            self._validate_resume_compatibility(existing_state, metadata)
            existing_state["status"] = "running"
            self.save(existing_state)
            return existing_state, True

        state = {
            "schema_version": self.SCHEMA_VERSION,
            "created_at": self._now(),
            "updated_at": self._now(),
            "status": "running",
            "metadata": metadata,
            "phase_complete": None,
            "completed_phases": [],
            "current_step": None,
            "steps": [],
            "last_error": None,
        }
        self.save(state)
        return state, False

    def next_phase(self, state: Dict[str, Any]) -> int:
        completed = state.get("phase_complete")
        return 0 if completed is None else int(completed) + 1

    def mark_phase_complete(self, state: Dict[str, Any], index: int, label: str):
        state["phase_complete"] = index
        if label not in state["completed_phases"]:
            state["completed_phases"].append(label)
        self.save(state)

    def mark_step_started(self, state: Dict[str, Any], step_name: str):
        state["current_step"] = step_name
        state["steps"].append(
            {
                "name": step_name,
                "status": "running",
                "started_at": self._now(),
                "finished_at": None,
                "error": None,
            }
        )
        self.save(state)

    def mark_step_completed(self, state: Dict[str, Any], step_name: str):
        self._update_step_status(state, step_name, "success")
        state["current_step"] = None
        self.save(state)

    def mark_step_failed(self, state: Dict[str, Any], step_name: str, error: str):
        self._update_step_status(state, step_name, "failed", error=error)
        state["status"] = "failed"
        state["last_error"] = error
        self.save(state)

    def mark_status(self, state: Dict[str, Any], status: str, error: Optional[str] = None):
        state["status"] = status
        if error:
            state["last_error"] = error
        self.save(state)

    def _validate_resume_compatibility(self, state: Dict[str, Any], metadata: Dict[str, Any]):
        existing_meta = state.get("metadata", {})
        mismatches = [
            key for key in ("distribution", "plan") if existing_meta.get(key) != metadata.get(key)
        ]

        if mismatches:
            mismatch_list = ", ".join(mismatches)
            raise UpgraderError(
                f"State file '{self.state_file}' belongs to a different upgrade plan "
                f"(mismatched fields: {mismatch_list}). Use --reset-state to start over."
            )

    def _update_step_status(
        self,
        state: Dict[str, Any],
        step_name: str,
        status: str,
        error: Optional[str] = None,
    ):
        for step in reversed(state.get("steps", [])):
            if step.get("name") == step_name and step.get("status") == "running":
                step["status"] = status
                step["finished_at"] = self._now()
                step["error"] = error
                return

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()
