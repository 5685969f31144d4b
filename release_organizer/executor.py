from __future__ import annotations

import logging
from typing import Optional

from .models import DirectoryCreationError, ExecutionReport, MovePlan
from .prompt_io import ConsolePromptIO, PromptIO
from .scanner import EntrySource

logger = logging.getLogger(__name__)


class Executor:
    """Materializes a confirmed plan.

    All destination directories are created before the first transfer; a
    directory that cannot be created aborts the run. A failed transfer is
    logged and the remaining records are still processed. Completed transfers
    are never rolled back.
    """

    def __init__(
        self,
        *,
        log: Optional[logging.Logger] = None,
        prompt_io: Optional[PromptIO] = None,
    ) -> None:
        self.log = log or logger
        self.prompt_io = prompt_io or ConsolePromptIO()

    def execute(self, plan: MovePlan, source: EntrySource) -> ExecutionReport:
        report = ExecutionReport()
        self.prompt_io.print("Creating new directories...")
        for new_dir in sorted(plan.directories, key=str):
            existed = new_dir.is_dir()
            try:
                new_dir.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise DirectoryCreationError(new_dir, exc) from exc
            if not existed:
                report.created_directories.append(new_dir)
                self.log.debug("Created %s", new_dir)

        extracting = source.action == "extract"
        self.prompt_io.print("Extracting files..." if extracting else "Moving files...")
        for record in plan.records:
            try:
                source.transfer(record)
            except OSError as exc:
                self.log.warning("Error transferring %s -> %s: %s", record.source_path, record.dest_path, exc)
                report.failed.append((record, str(exc)))
                continue
            self.log.info(
                "%s %s -> %s", "Extracted" if extracting else "Moved", record.source_path, record.dest_path
            )
            report.moved.append(record)
        self.prompt_io.print(report.summary())
        return report
