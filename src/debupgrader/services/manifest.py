"""Run manifest: a JSON report of one invocation."""

import json
import os
import tempfile
from datetime import datetime, timezone
from typing import Any, Dict, Optional


class ManifestService:
    """Collects per-step results, versions and artifacts for the run report."""

    def __init__(self, manifest_file: str, logger):
        self.manifest_file = manifest_file
        self.logger = logger
        self.manifest: Dict[str, Any] = {
            "run_id": None,
            "status": "running",
            "started_at": None,
            "finished_at": None,
            "duration_seconds": None,
            "plan": None,
            "stage": None,
            "versions": {"observed": None, "expected": None, "final": None},
            "steps": [],
            "artifacts": {},
            "error": None,
        }

    def start_run(self, run_id: str, plan: str):
        self.manifest["run_id"] = run_id
        self.manifest["status"] = "running"
        self.manifest["started_at"] = self._now()
        self.manifest["plan"] = plan
        self.write()

    def set_stage(self, label: str, expected: str, final: str):
        self.manifest["stage"] = label
        self.manifest["versions"]["expected"] = expected
        self.manifest["versions"]["final"] = final
        self.write()

    def set_observed_version(self, observed: Optional[str]):
        self.manifest["versions"]["observed"] = observed
        self.write()

    def step_started(self, step_name: str):
        self.manifest["steps"].append(
            {
                "name": step_name,
                "status": "running",
                "started_at": self._now(),
                "finished_at": None,
                "duration_seconds": None,
                "error": None,
            }
        )
        self.write()

    def step_finished(self, step_name: str, status: str, error: Optional[str] = None):
        for step in reversed(self.manifest["steps"]):
            if step["name"] == step_name and step["status"] == "running":
                step["status"] = status
                step["finished_at"] = self._now()
                step["error"] = error
                step["duration_seconds"] = self._elapsed(step["started_at"], step["finished_at"])
                break
        self.write()

    def add_artifact(self, key: str, value: str):
        self.manifest["artifacts"][key] = value
        self.write()

    def finalize(self, status: str, error: Optional[str] = None):
        self.manifest["status"] = status
        self.manifest["finished_at"] = self._now()
        if self.manifest.get("started_at"):
            self.manifest["duration_seconds"] = self._elapsed(
                self.manifest["started_at"], self.manifest["finished_at"]
            )
        self.manifest["error"] = error
        self.write()

    def write(self):
        manifest_dir = os.path.dirname(self.manifest_file) or "."
        try:
            os.makedirs(manifest_dir, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(prefix="run-manifest-", suffix=".json", dir=manifest_dir)
        except OSError as exc:
            self.logger.warning("Could not write manifest file '%s': %s", self.manifest_file, exc)
            return

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as file_obj:
                json.dump(self.manifest, file_obj, indent=2, sort_keys=True)
                file_obj.write("\n")
            os.replace(temp_path, self.manifest_file)
        except OSError as exc:
            self.logger.warning("Could not write manifest file '%s': %s", self.manifest_file, exc)
            try:
                os.remove(temp_path)
            except OSError:
                pass

    @staticmethod
    def _elapsed(started_at: str, finished_at: str) -> float:
        return (datetime.fromisoformat(finished_at) - datetime.fromisoformat(started_at)).total_seconds()

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()
