"""Actionable error catalog for debupgrader."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "not_root": {
        "what": "This tool must be run as root (effective uid is {euid}).",
        "next": "Re-run it with `sudo` or from a root shell.",
    },
    "version_mismatch": {
        "what": "Detected version {observed}, but this upgrade expects version {expected}.",
        "next": "Pass the matching `--source-version`, or run interactively with `--version-mismatch prompt`.",
    },
    "held_packages": {
        "what": "Held packages would block the upgrade: {packages}",
        "next": "Run `apt-mark unhold <package>` or remove them, then retry.",
    },
    "insufficient_disk_space": {
        "what": "Not enough free space on /: {required} GiB required, {available} GiB available.",
        "next": "Free some space (for example `apt-get clean` and `apt-get autoremove`) and retry.",
    },
    "third_party_repos": {
        "what": "Third-party APT sources found: {paths}",
        "next": (
            "Review and disable them (comment out or move the files) before upgrading, "
            "or pass `--skip-third-party-check` if you accept the risk."
        ),
    },
    "backup_failed": {
        "what": "Could not back up {path}: {reason}",
        "next": "Check that the file exists and that the filesystem is writable.",
    },
    "package_step_failed": {
        "what": "Package step '{step}' failed.",
        "next": "Inspect the session log, fix the APT error and re-run the upgrade.",
    },
    "upgrade_incomplete": {
        "what": "Upgrade looks incomplete: os-release reports version {observed}, expected {expected}.",
        "next": "Check /etc/os-release and the session log before rebooting.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
