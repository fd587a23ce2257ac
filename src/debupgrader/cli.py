import logging
import os

import click
from rich.logging import RichHandler

from .constants import (
    DEFAULT_CONFIG_FILES,
    DEFAULT_DISTRIBUTION,
    FIRMWARE_POLICIES,
    REBOOT_POLICIES,
    VERSION_MISMATCH_POLICIES,
)
from .core import DebianUpgrader
from .errors import UpgraderError
from .models import UpgradeSettings
from .services.config_loader import ConfigLoader
from .services.os_release import OsReleaseService
from .services.planning import UpgradePlanner
from .services.state import StateService


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


def _find_default_config():
    for candidate in DEFAULT_CONFIG_FILES:
        path = candidate if os.path.isabs(candidate) else os.path.join(os.getcwd(), candidate)
        if os.path.exists(path):
            return path
    return None


def _choice(value, choices, key):
    if value not in choices:
        raise click.ClickException(f"Invalid value for '{key}': {value!r}. Choose from {', '.join(choices)}.")
    return value


def _optional_int(value):
    return None if value is None else int(value)


def _detect_source_version(settings, target_version, distribution, reset_state, logger):
    """Release to start from when none was given: a pending plan, else os-release."""
    if not reset_state:
        try:
            pending = StateService(settings.state_file, logger=logger).load()
        except UpgraderError as exc:
            logger.warning("Ignoring unreadable state file: %s", exc)
            pending = None
        if pending and pending.get("status") != "success":
            metadata = pending.get("metadata", {})
            if metadata.get("source_version") and metadata.get("target_version") == str(target_version):
                return metadata["source_version"]

    try:
        release = OsReleaseService(settings.os_release_file, logger=logger).read()
    except UpgraderError as exc:
        logger.warning("%s Assuming the release before %s.", exc, target_version)
        return None

    if release.id != distribution or not release.version_id:
        return None
    planner = UpgradePlanner()
    try:
        behind_target = planner.major(release.version_id) < planner.major(target_version)
    except UpgraderError:
        return None
    # Already on (or past) the target: let the run report it instead of failing planning.
    return release.version_id if behind_target else None


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)


@click.command()
@click.option("--target-version", required=False, help="Debian release to upgrade to, e.g. 12.")
@click.option(
    "--source-version",
    required=False,
    help="Release currently installed (default: read from os-release).",
)
@click.option("--source-codename", required=False, help="Override the codename of the installed release.")
@click.option("--target-codename", required=False, help="Override the codename of the target release.")
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help="Path to a YAML configuration file. Defaults to /etc/debupgrader.yml or .debupgrader.yml.",
)
@click.option(
    "--min-free-gb",
    required=False,
    type=float,
    default=None,
    help="Minimum free space on / in GiB (default: 5).",
)
@click.option(
    "--interactive/--non-interactive",
    default=None,
    help="Ask for confirmation at each decision point instead of aborting.",
)
@click.option(
    "--version-mismatch",
    required=False,
    type=click.Choice(VERSION_MISMATCH_POLICIES),
    help="What to do when the installed release is not the expected one (interactive only).",
)
@click.option(
    "--skip-third-party-check",
    is_flag=True,
    default=None,
    help="Do not abort when sources.list.d contains third-party repositories.",
)
@click.option(
    "--firmware-component",
    required=False,
    type=click.Choice(FIRMWARE_POLICIES),
    help="When to append non-free-firmware to non-free lines (default: auto, bookworm and later).",
)
@click.option(
    "--reboot",
    required=False,
    type=click.Choice(REBOOT_POLICIES),
    help="Reboot policy after a successful stage (default: auto).",
)
@click.option("--reboot-delay", required=False, type=int, default=None, help="Seconds before an automatic reboot.")
@click.option("--start-delay", required=False, type=int, default=None, help="Seconds to wait before starting.")
@click.option("--log-dir", required=False, type=click.Path(), help="Directory for the session log (default: /var/log).")
@click.option("--state-file", required=False, type=click.Path(), help="Path to the phase state file.")
@click.option("--reset-state", is_flag=True, default=False, help="Ignore any previous phase state and start over.")
@click.option("--no-transcript", is_flag=True, default=None, help="Do not start the background transcript capture.")
@click.option(
    "--step-timeout-minutes",
    required=False,
    type=int,
    default=None,
    help="Timeout for each apt-get step in minutes (default: none).",
)
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
def main(
    target_version,
    source_version,
    source_codename,
    target_codename,
    config,
    min_free_gb,
    interactive,
    version_mismatch,
    skip_third_party_check,
    firmware_component,
    reboot,
    reboot_delay,
    start_delay,
    log_dir,
    state_file,
    reset_state,
    no_transcript,
    step_timeout_minutes,
    verbose,
):
    """Upgrade a Debian system in place to a newer major release."""
    logger = logging.getLogger("debupgrader")

    try:
        config_values = ConfigLoader().load(config or _find_default_config())
    except UpgraderError as exc:
        raise click.ClickException(str(exc)) from exc

    defaults = UpgradeSettings()
    target_version = _resolve_option(target_version, config_values, "target_version")
    if not target_version:
        raise click.ClickException("Missing required option '--target-version' (or provide it in config).")

    check_third_party = False if skip_third_party_check else None
    transcript = False if no_transcript else None
    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))

    settings = UpgradeSettings(
        min_free_gb=float(_resolve_option(min_free_gb, config_values, "min_free_gb", defaults.min_free_gb)),
        interactive=bool(_resolve_option(interactive, config_values, "interactive", defaults.interactive)),
        version_mismatch=_choice(
            _resolve_option(version_mismatch, config_values, "version_mismatch", defaults.version_mismatch),
            VERSION_MISMATCH_POLICIES,
            "version_mismatch",
        ),
        check_third_party_repos=bool(
            _resolve_option(
                check_third_party,
                config_values,
                "check_third_party_repos",
                defaults.check_third_party_repos,
            )
        ),
        add_firmware_component=_choice(
            _resolve_option(
                firmware_component,
                config_values,
                "add_firmware_component",
                defaults.add_firmware_component,
            ),
            FIRMWARE_POLICIES,
            "add_firmware_component",
        ),
        reboot=_choice(
            _resolve_option(reboot, config_values, "reboot", defaults.reboot),
            REBOOT_POLICIES,
            "reboot",
        ),
        reboot_delay=int(_resolve_option(reboot_delay, config_values, "reboot_delay", defaults.reboot_delay)),
        start_delay=int(_resolve_option(start_delay, config_values, "start_delay", defaults.start_delay)),
        log_dir=_resolve_option(log_dir, config_values, "log_dir", defaults.log_dir),
        state_file=_resolve_option(state_file, config_values, "state_file", defaults.state_file),
        manifest_file=config_values.get("manifest_file", defaults.manifest_file),
        os_release_file=config_values.get("os_release_file", defaults.os_release_file),
        sources_list=config_values.get("sources_list", defaults.sources_list),
        sources_list_d=config_values.get("sources_list_d", defaults.sources_list_d),
        transcript=bool(_resolve_option(transcript, config_values, "transcript", defaults.transcript)),
        step_timeout_minutes=_optional_int(
            _resolve_option(
                step_timeout_minutes,
                config_values,
                "step_timeout_minutes",
                defaults.step_timeout_minutes,
            )
        ),
    )

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    distribution = config_values.get("distribution", DEFAULT_DISTRIBUTION)
    source_version = _resolve_option(source_version, config_values, "source_version")
    if source_version is None:
        source_version = _detect_source_version(settings, target_version, distribution, reset_state, logger)

    try:
        plan = UpgradePlanner().build(
            target_version=str(target_version),
            source_version=None if source_version is None else str(source_version),
            source_codename=_resolve_option(source_codename, config_values, "source_codename"),
            target_codename=_resolve_option(target_codename, config_values, "target_codename"),
            distribution=distribution,
        )
        upgrader = DebianUpgrader(plan=plan, settings=settings, reset_state=reset_state)
    except UpgraderError as exc:
        raise click.ClickException(str(exc)) from exc

    result = upgrader.run()
    raise SystemExit(result.exit_code)


if __name__ == "__main__":
    main()
