"""Shared domain models for debupgrader."""

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from .constants import (
    DEFAULT_DISTRIBUTION,
    LOG_DIR,
    MANIFEST_FILE,
    MIN_FREE_GB,
    OS_RELEASE_FILE,
    REBOOT_DELAY_SECONDS,
    SOURCES_LIST,
    SOURCES_LIST_D,
    START_DELAY_SECONDS,
    STATE_FILE,
)


@dataclass(frozen=True)
class OsRelease:
    """Parsed view of an os-release file."""

    id: str
    version_id: str
    version_codename: str = ""
    id_like: str = ""
    pretty_name: str = ""
    fields: Dict[str, str] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class ReleaseTransition:
    """A single codename hop, e.g. 11/bullseye -> 12/bookworm."""

    source_version: str
    source_codename: str
    target_version: str
    target_codename: str

    @property
    def label(self) -> str:
        return f"{self.source_codename}->{self.target_codename}"


@dataclass(frozen=True)
class UpgradePlan:
    """Ordered transitions; one invocation runs one of them."""

    transitions: Tuple[ReleaseTransition, ...]
    distribution: str = DEFAULT_DISTRIBUTION

    @property
    def final_version(self) -> str:
        return self.transitions[-1].target_version

    @property
    def final_codename(self) -> str:
        return self.transitions[-1].target_codename

    def describe(self) -> str:
        hops = [self.transitions[0].source_codename]
        hops.extend(transition.target_codename for transition in self.transitions)
        return " -> ".join(hops)


@dataclass(frozen=True)
class UpgradeSettings:
    """Resolved configuration surface for one run."""

    min_free_gb: float = MIN_FREE_GB
    interactive: bool = False
    version_mismatch: str = "prompt"
    check_third_party_repos: bool = True
    add_firmware_component: str = "auto"
    reboot: str = "auto"
    reboot_delay: int = REBOOT_DELAY_SECONDS
    start_delay: int = START_DELAY_SECONDS
    log_dir: str = LOG_DIR
    state_file: str = STATE_FILE
    manifest_file: str = MANIFEST_FILE
    os_release_file: str = OS_RELEASE_FILE
    sources_list: str = SOURCES_LIST
    sources_list_d: str = SOURCES_LIST_D
    transcript: bool = True
    step_timeout_minutes: Optional[int] = None


@dataclass(frozen=True)
class RunContext:
    """Identifiers and paths isolated per execution."""

    run_id: str
    timestamp: str
    log_file: str
    transcript_file: str


@dataclass(frozen=True)
class RunResult:
    status: str
    reason: Optional[str] = None
    error_type: Optional[str] = None
    stage: Optional[str] = None

    @property
    def exit_code(self) -> int:
        return 0 if self.status in ("success", "already_upgraded", "stage_complete") else 1
