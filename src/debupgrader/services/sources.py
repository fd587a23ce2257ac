"""APT sources backup and codename rewriting.

The rewrite is deliberately textual: every occurrence of the old codename is
replaced, and every line mentioning the restricted component gets the
companion component appended. Nothing is parsed, so lines that do not contain
the literal codename are left untouched byte-for-byte.

Running the rewrite twice on the same content appends the companion component
a second time; the backups taken beforehand are the only way back.
"""

import os
import shutil
from pathlib import Path
from typing import List, Optional, Tuple

from debupgrader.constants import THIRD_PARTY_SOURCE_SUFFIXES
from debupgrader.errors import BackupFailed, UpgraderError
from debupgrader.errors_catalog import actionable_error


def rewrite_source_text(
    content: str,
    current_codename: str,
    target_codename: str,
    marker: Optional[str] = None,
    companion: Optional[str] = None,
) -> str:
    """Return *content* with the codename swapped and companion components added.

    ``marker``/``companion`` are optional; when both are given, each line that
    contains ``marker`` (after the codename swap) gets `` <companion>`` appended
    before its line terminator.
    """

    rewritten = content.replace(current_codename, target_codename)
    if not marker or not companion:
        return rewritten

    # Only "\n" ends a line; form feeds and Unicode separators stay inside it.
    lines = rewritten.split("\n")
    for index, line in enumerate(lines):
        if marker not in line:
            continue
        body = line.rstrip("\r")
        lines[index] = f"{body} {companion}{line[len(body):]}"
    return "\n".join(lines)


class SourcesService:
    """Backs up and rewrites sources.list and sources.list.d."""

    def __init__(self, sources_list: str, sources_list_d: str, logger, console):
        self.sources_list = Path(sources_list)
        self.sources_list_d = Path(sources_list_d)
        self.logger = logger
        self.console = console

    def source_files(self) -> List[Path]:
        """Primary file followed by every regular file in sources.list.d."""
        files = [self.sources_list] if self.sources_list.is_file() else []
        files.extend(self._directory_files())
        return files

    def third_party_files(self) -> List[Path]:
        return [
            path
            for path in self._directory_files()
            if path.suffix in THIRD_PARTY_SOURCE_SUFFIXES
        ]

    def backup(self, timestamp: str) -> Tuple[Path, Path]:
        self.console.print("[blue]Backing up APT sources...[/blue]")
        primary_backup = self.sources_list.with_name(f"{self.sources_list.name}.bak.{timestamp}")
        try:
            shutil.copy2(self.sources_list, primary_backup)
        except OSError as exc:
            raise BackupFailed(
                actionable_error("backup_failed", path=str(self.sources_list), reason=str(exc))
            ) from exc

        dir_backup = self.sources_list_d.with_name(f"{self.sources_list_d.name}.bak.{timestamp}")
        try:
            os.makedirs(dir_backup, exist_ok=True)
        except OSError as exc:
            raise BackupFailed(
                actionable_error("backup_failed", path=str(dir_backup), reason=str(exc))
            ) from exc

        if self.sources_list_d.is_dir():
            for entry in sorted(self.sources_list_d.iterdir()):
                try:
                    if entry.is_dir():
                        shutil.copytree(entry, dir_backup / entry.name, symlinks=True)
                    else:
                        shutil.copy2(entry, dir_backup / entry.name, follow_symlinks=False)
                except OSError as exc:
                    self.logger.debug("Skipping backup of %s: %s", entry, exc)

        self.logger.info("Backups created: %s and %s/", primary_backup, dir_backup)
        self.logger.warning(
            "Make sure a full system backup exists as well; only the APT sources were saved."
        )
        return primary_backup, dir_backup

    def rewrite(
        self,
        current_codename: str,
        target_codename: str,
        marker: Optional[str] = None,
        companion: Optional[str] = None,
    ) -> List[Path]:
        self.console.print(
            f"[blue]Switching APT sources from {current_codename} to {target_codename}...[/blue]"
        )
        changed = []
        for path in self.source_files():
            try:
                original = path.read_bytes().decode("utf-8", errors="surrogateescape")
            except OSError as exc:
                raise UpgraderError(f"Could not read APT source {path}: {exc}") from exc
            updated = rewrite_source_text(original, current_codename, target_codename, marker, companion)
            if updated == original:
                self.logger.debug("No changes for %s", path)
                continue
            path.write_bytes(updated.encode("utf-8", errors="surrogateescape"))
            changed.append(path)
            self.logger.info("Rewrote %s", path)

        self.logger.info(
            "APT sources now point at %s. Review %s and %s/ before continuing manually.",
            target_codename,
            self.sources_list,
            self.sources_list_d,
        )
        return changed

    def _directory_files(self) -> List[Path]:
        if not self.sources_list_d.is_dir():
            return []
        return sorted(path for path in self.sources_list_d.iterdir() if path.is_file())
