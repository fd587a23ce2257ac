import logging
import os
import subprocess
import time
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from rich.console import Console

from .constants import (
    FIRMWARE_COMPONENT,
    FIRMWARE_COMPONENT_SINCE,
    LOG_FILE_TEMPLATE,
    RESTRICTED_COMPONENT,
    TIMESTAMP_FORMAT,
    TRANSCRIPT_SUFFIX,
)
from .errors import AlreadyUpgraded, UpgradeIncomplete, UpgraderError
from .models import OsRelease, ReleaseTransition, RunContext, RunResult, UpgradePlan, UpgradeSettings
from .services.apt import AptService
from .services.command_runner import CommandRunner
from .services.manifest import ManifestService
from .services.operator import OperatorService
from .services.os_release import OsReleaseService
from .services.planning import UpgradePlanner
from .services.preflight import PreflightService
from .services.reboot import RebootService
from .services.session import UpgradeSession
from .services.sources import SourcesService
from .services.state import StateService

console = Console()
error_console = Console(stderr=True)
logger = logging.getLogger("debupgrader")


class DebianUpgrader:
    """Runs one stage of an upgrade plan as a fixed, abort-on-failure pipeline."""

    def __init__(
        self,
        plan: UpgradePlan,
        settings: Optional[UpgradeSettings] = None,
        command_runner: Optional[CommandRunner] = None,
        subprocess_module=subprocess,
        geteuid: Optional[Callable[[], int]] = None,
        disk_usage: Optional[Callable] = None,
        sleep: Optional[Callable[[float], None]] = None,
        reset_state: bool = False,
    ):
        if not plan.transitions:
            raise UpgraderError("The upgrade plan has no transitions.")

        self.plan = plan
        self.settings = settings or UpgradeSettings()
        self.geteuid = geteuid
        self.disk_usage = disk_usage
        self.reset_state = reset_state
        self.subprocess = subprocess_module

        step_timeout = (
            self.settings.step_timeout_minutes * 60 if self.settings.step_timeout_minutes else None
        )
        self.command_runner = command_runner or CommandRunner(logger=logger)
        self.run_context = self._build_run_context()
        self.state: Optional[Dict[str, Any]] = None
        self.stage_index = 0

        self.operator = OperatorService(
            console=console,
            interactive=self.settings.interactive,
            sleep=sleep or time.sleep,
        )
        self.planner = UpgradePlanner()
        self.os_release_service = OsReleaseService(self.settings.os_release_file, logger=logger)
        self.preflight_service = PreflightService(logger=logger, console=console, operator=self.operator)
        self.apt_service = AptService(
            logger=logger,
            console=console,
            run_cmd=self._run_cmd,
            step_timeout=step_timeout,
        )
        self.sources_service = SourcesService(
            sources_list=self.settings.sources_list,
            sources_list_d=self.settings.sources_list_d,
            logger=logger,
            console=console,
        )
        self.reboot_service = RebootService(
            logger=logger,
            console=console,
            operator=self.operator,
            run_cmd=self._run_cmd,
        )
        self.state_service = StateService(state_file=self.settings.state_file, logger=logger)
        self.manifest_service = ManifestService(manifest_file=self.settings.manifest_file, logger=logger)

    def _build_run_context(self) -> RunContext:
        timestamp = datetime.now().strftime(TIMESTAMP_FORMAT)
        log_file = os.path.join(self.settings.log_dir, LOG_FILE_TEMPLATE.format(timestamp=timestamp))
        return RunContext(
            run_id=uuid.uuid4().hex[:10],
            timestamp=timestamp,
            log_file=log_file,
            transcript_file=f"{log_file}{TRANSCRIPT_SUFFIX}",
        )

    def _build_state_metadata(self) -> Dict[str, Any]:
        return {
            "distribution": self.plan.distribution,
            "plan": [transition.label for transition in self.plan.transitions],
            "source_version": self.plan.transitions[0].source_version,
            "target_version": self.plan.final_version,
        }

    def _run_step(self, name: str, callback, *args, **kwargs):
        if self.state:
            self.state_service.mark_step_started(self.state, name)
        self.manifest_service.step_started(name)

        try:
            result = callback(*args, **kwargs)
        except AlreadyUpgraded:
            if self.state:
                self.state_service.mark_step_completed(self.state, name)
            self.manifest_service.step_finished(name, "skipped")
            raise
        except BaseException as exc:
            if self.state:
                self.state_service.mark_step_failed(self.state, name, str(exc) or type(exc).__name__)
            self.manifest_service.step_finished(name, "failed", error=str(exc) or type(exc).__name__)
            raise

        if self.state:
            self.state_service.mark_step_completed(self.state, name)
        self.manifest_service.step_finished(name, "success")
        return result

    def _run_cmd(
        self,
        cmd,
        check: bool = True,
        capture_output: bool = False,
        timeout: Optional[float] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> subprocess.CompletedProcess:
        return self.command_runner.run(
            cmd,
            check=check,
            capture_output=capture_output,
            timeout=timeout,
            env=env,
        )

    def _select_transition(self) -> ReleaseTransition:
        index = self.state_service.next_phase(self.state) if self.state else 0
        # Every phase already recorded: gate against the last one so a system
        # on the final release reports "already upgraded".
        index = min(index, len(self.plan.transitions) - 1)
        self.stage_index = index
        return self.plan.transitions[index]

    def detect_version(self) -> OsRelease:
        release = self.os_release_service.read()
        self.manifest_service.set_observed_version(release.version_id or None)
        return release

    def check_version(self, release: OsRelease, transition: ReleaseTransition):
        mismatch_policy = self.settings.version_mismatch if self.settings.interactive else "abort"
        self.preflight_service.check_version(release, self.plan, transition, mismatch_policy)

    def confirm_start(self, transition: ReleaseTransition):
        console.print(
            f"[bold]==== {self.plan.distribution.capitalize()} {transition.source_version} "
            f"({transition.source_codename}) -> {transition.target_version} "
            f"({transition.target_codename}) ====[/bold]"
        )
        logger.warning(
            "Configuration files will be replaced by the maintainer versions during the upgrade. "
            "Make sure a full system backup exists."
        )
        if self.settings.interactive:
            if not self.operator.confirm("Start the upgrade now?"):
                raise UpgraderError("Upgrade cancelled by operator.")
            return
        self.operator.countdown(self.settings.start_delay, f"Upgrade starts in {self.settings.start_delay} seconds.")

    def check_held_packages(self):
        self.preflight_service.check_held_packages(self.apt_service.held_packages())

    def check_disk_space(self):
        self.preflight_service.check_disk_space(self.settings.min_free_gb, "/", disk_usage=self.disk_usage)

    def check_third_party_repos(self):
        paths = [str(path) for path in self.sources_service.third_party_files()]
        self.preflight_service.check_third_party_repos(paths)

    def backup_sources(self):
        primary_backup, dir_backup = self.sources_service.backup(self.run_context.timestamp)
        self.manifest_service.add_artifact("sources_list_backup", str(primary_backup))
        self.manifest_service.add_artifact("sources_list_d_backup", str(dir_backup))

    def wants_firmware_component(self, transition: ReleaseTransition) -> bool:
        policy = self.settings.add_firmware_component
        if policy == "always":
            return True
        if policy == "never":
            return False
        return self.planner.major(transition.target_version) >= self.planner.major(FIRMWARE_COMPONENT_SINCE)

    def rewrite_sources(self, transition: ReleaseTransition):
        marker, companion = None, None
        if self.wants_firmware_component(transition):
            marker, companion = RESTRICTED_COMPONENT, FIRMWARE_COMPONENT
        changed = self.sources_service.rewrite(
            transition.source_codename,
            transition.target_codename,
            marker=marker,
            companion=companion,
        )
        console.print(f"[green]APT sources updated ({len(changed)} file(s) changed).[/green]")

    def verify_upgrade(self, transition: ReleaseTransition):
        console.print("[blue]Verifying the upgrade...[/blue]")
        release = self.os_release_service.read()
        self.manifest_service.set_observed_version(release.version_id or None)
        if release.version_id != transition.target_version:
            raise UpgradeIncomplete(release.version_id, transition.target_version)
        console.print(
            f"[bold green]System now runs {self.plan.distribution.capitalize()} "
            f"{transition.target_version} ({transition.target_codename}).[/bold green]"
        )
        logger.info("Upgrade to %s verified.", transition.target_version)

    def run(self) -> RunResult:
        logger.info("Starting debupgrader: %s", self.plan.describe())
        try:
            self.preflight_service.check_privileges(self.geteuid)
            session = UpgradeSession(
                run_context=self.run_context,
                logger=logger,
                console=console,
                transcript=self.settings.transcript,
                subprocess_module=self.subprocess,
            )
            with session:
                return self._run_in_session()
        except UpgraderError as exc:
            error_console.print(f"[bold red]Error:[/bold red] {exc}")
            logger.error(str(exc))
            return RunResult(status="aborted", reason=str(exc), error_type=type(exc).__name__)

    def _run_in_session(self) -> RunResult:
        manifest_status = "failed"
        manifest_error: Optional[str] = None
        transition: Optional[ReleaseTransition] = None

        try:
            self.manifest_service.start_run(self.run_context.run_id, self.plan.describe())
            self.manifest_service.add_artifact("log_file", self.run_context.log_file)
            if self.settings.transcript:
                self.manifest_service.add_artifact("transcript_file", self.run_context.transcript_file)

            self.state, resumed = self.state_service.initialize(
                self._build_state_metadata(),
                reset=self.reset_state,
            )
            transition = self._select_transition()
            if resumed:
                logger.info(
                    "Resuming plan %s at stage %s/%s (%s).",
                    self.plan.describe(),
                    self.stage_index + 1,
                    len(self.plan.transitions),
                    transition.label,
                )
            self.manifest_service.set_stage(
                transition.label,
                expected=transition.target_version,
                final=self.plan.final_version,
            )

            release = self._run_step("detect_version", self.detect_version)
            self._run_step("check_version", self.check_version, release, transition)
            self._run_step("confirm_start", self.confirm_start, transition)
            self._run_step("check_held_packages", self.check_held_packages)
            self._run_step("check_disk_space", self.check_disk_space)
            if self.settings.check_third_party_repos:
                self._run_step("check_third_party_repos", self.check_third_party_repos)
            else:
                logger.warning("Third-party repository check disabled; their sources will be rewritten too.")

            self._run_step("backup_sources", self.backup_sources)
            self._run_step("rewrite_sources", self.rewrite_sources, transition)
            for step in self.apt_service.step_names:
                self._run_step(f"apt_{step}", self.apt_service.run_package_step, step)
            self._run_step("verify_upgrade", self.verify_upgrade, transition)

            final_stage = self.stage_index == len(self.plan.transitions) - 1
            self.state_service.mark_phase_complete(self.state, self.stage_index, transition.label)
            if final_stage:
                self.state_service.mark_status(self.state, "success")
            else:
                next_transition = self.plan.transitions[self.stage_index + 1]
                logger.info(
                    "Stage %s done. After the reboot, run debupgrader again to continue with %s.",
                    transition.label,
                    next_transition.label,
                )
                self.state_service.mark_status(self.state, "stage_complete")

            manifest_status = "success" if final_stage else "stage_complete"
            self._run_step("reboot", self.reboot_service.apply, self.settings.reboot, self.settings.reboot_delay)
            return RunResult(status=manifest_status, stage=transition.label)

        except AlreadyUpgraded as exc:
            console.print(f"[green]{exc}[/green]")
            logger.info(str(exc))
            if self.state:
                self.state_service.mark_status(self.state, "success")
            manifest_status = "already_upgraded"
            return RunResult(
                status="already_upgraded",
                reason=str(exc),
                stage=transition.label if transition else None,
            )
        except KeyboardInterrupt:
            error_console.print("[bold red]Operation cancelled by user.[/bold red]")
            logger.error("Operation cancelled by user")
            if self.state:
                self.state_service.mark_status(self.state, "aborted", "Operation cancelled by user.")
            manifest_status = "aborted"
            manifest_error = "Operation cancelled by user."
            return RunResult(status="aborted", reason=manifest_error, error_type="KeyboardInterrupt")
        except UpgraderError as exc:
            error_console.print(f"[bold red]Error:[/bold red] {exc}")
            logger.error(str(exc))
            logger.error("Upgrade aborted. See %s for details.", self.run_context.log_file)
            if self.state:
                self.state_service.mark_status(self.state, "failed", str(exc))
            manifest_status = "failed"
            manifest_error = str(exc)
            return RunResult(
                status="aborted",
                reason=str(exc),
                error_type=type(exc).__name__,
                stage=transition.label if transition else None,
            )
        except Exception as exc:
            error_console.print(f"[bold red]Unexpected error:[/bold red] {exc}")
            logger.exception("Unexpected error")
            if self.state:
                self.state_service.mark_status(self.state, "failed", str(exc))
            manifest_status = "failed"
            manifest_error = str(exc)
            return RunResult(status="aborted", reason=str(exc), error_type=type(exc).__name__)
        finally:
            self.manifest_service.finalize(manifest_status, error=manifest_error)
