"""Shared constants for debupgrader."""

from typing import Dict, List, Tuple

DEFAULT_DISTRIBUTION = "debian"

KNOWN_CODENAMES: Dict[str, str] = {
    "9": "stretch",
    "10": "buster",
    "11": "bullseye",
    "12": "bookworm",
    "13": "trixie",
}

OS_RELEASE_FILE = "/etc/os-release"
SOURCES_LIST = "/etc/apt/sources.list"
SOURCES_LIST_D = "/etc/apt/sources.list.d"
THIRD_PARTY_SOURCE_SUFFIXES = (".list", ".sources")

LOG_DIR = "/var/log"
LOG_FILE_TEMPLATE = "debian_upgrade_{timestamp}.log"
TRANSCRIPT_SUFFIX = ".typescript"
TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"
STATE_FILE = "/var/lib/debupgrader/run-state.json"
MANIFEST_FILE = "/var/lib/debupgrader/run-manifest.json"

DEFAULT_CONFIG_FILES = ("/etc/debupgrader.yml", ".debupgrader.yml")

MIN_FREE_GB = 5.0
GIB = 1024 ** 3
START_DELAY_SECONDS = 10
REBOOT_DELAY_SECONDS = 10

RESTRICTED_COMPONENT = "non-free"
FIRMWARE_COMPONENT = "non-free-firmware"
# First Debian release that ships the non-free-firmware component.
FIRMWARE_COMPONENT_SINCE = "12"

APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}
HELD_PACKAGES_CMD: List[str] = ["apt-mark", "showhold"]
PACKAGE_STEPS: Tuple[Tuple[str, List[str]], ...] = (
    ("update", ["apt-get", "update", "-y"]),
    ("upgrade", ["apt-get", "upgrade", "-y"]),
    (
        "full-upgrade",
        ["apt-get", "full-upgrade", "-y", "-o", "Dpkg::Options::=--force-confnew"],
    ),
    ("autoremove", ["apt-get", "--purge", "autoremove", "-y"]),
    ("clean", ["apt-get", "clean"]),
)

REBOOT_CMD: List[str] = ["reboot"]
TRANSCRIPT_FOLLOW_CMD = "journalctl --follow --no-pager --output=short-iso"
TRANSCRIPT_STOP_TIMEOUT = 5.0

REBOOT_POLICIES = ("auto", "prompt", "skip")
VERSION_MISMATCH_POLICIES = ("abort", "prompt")
FIRMWARE_POLICIES = ("auto", "always", "never")
