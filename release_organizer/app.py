from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .config import Settings
from .executor import Executor
from .fs_utils import existing_destinations
from .models import CollisionError, ExecutionReport, MovePlan
from .planner import build_plan, resolve_collisions
from .preview import confirm, render_file_preview, render_preview
from .prompt_io import ConsolePromptIO, PromptIO
from .scanner import EntrySource, Scanner, open_source
from .template import Formatter, compile_format

PACKAGE_LOGGER = "release_organizer"


@dataclass
class ReleaseOrganizerApp:
    settings: Settings
    formatter: Formatter
    scanner: Scanner
    executor: Executor
    prompt_io: PromptIO
    log: logging.Logger

    @classmethod
    def create(
        cls,
        settings: Settings,
        *,
        prompt_io: Optional[PromptIO] = None,
        log: Optional[logging.Logger] = None,
    ) -> "ReleaseOrganizerApp":
        log = log or logging.getLogger(PACKAGE_LOGGER)
        prompt_io = prompt_io or ConsolePromptIO()
        return cls(
            settings=settings,
            formatter=compile_format(settings.organizer.format),
            scanner=Scanner(settings.scan, log=log.getChild("scanner")),
            executor=Executor(log=log.getChild("executor"), prompt_io=prompt_io),
            prompt_io=prompt_io,
            log=log,
        )

    def plan(self, source: EntrySource) -> MovePlan:
        entries = self.scanner.scan(source)
        plan = build_plan(entries, self.formatter, source.root, self.settings.dest)
        return self._apply_collision_policy(plan)

    def _apply_collision_policy(self, plan: MovePlan) -> MovePlan:
        existing = existing_destinations(plan.records)
        if not plan.collisions and not existing:
            return plan
        if self.settings.organizer.collision_policy == "abort":
            raise CollisionError(plan.collisions, existing)
        plan, dropped = resolve_collisions(plan, existing)
        for record in dropped:
            self.log.warning(
                "Skipping %s: destination %s is already taken", record.source_path, record.dest_path
            )
        return plan

    def preview(self, plan: MovePlan) -> str:
        if self.settings.organizer.preview_style == "files":
            return render_file_preview(plan)
        return render_preview(plan)

    def run(self) -> Optional[ExecutionReport]:
        """Scan, preview, confirm and execute. Returns None when the user declines."""
        with open_source(self.settings.source) as source:
            plan = self.plan(source)
            if not plan.records:
                self.prompt_io.print("No files to organize.")
                return ExecutionReport()
            self.prompt_io.print(self.preview(plan))
            interactive = not self.settings.organizer.auto_confirm
            if not confirm(self.prompt_io, interactive, action=source.action):
                return None
            return self.executor.execute(plan, source)
