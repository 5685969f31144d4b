from __future__ import annotations

import logging

from .models import MovePlan
from .prompt_io import PromptIO, ask

logger = logging.getLogger(__name__)

ARROW = "> "
FILL = "-"
YES = "y"
NO = "N"


def render_preview(plan: MovePlan) -> str:
    """Render one ``source---> dest`` line per record.

    Every arrow starts at least two characters past the longest source path,
    e.g.::

        dl/a.flac---> out/Release (2025)/a.flac
        dl/bb.flac--> out/Release (2025)/bb.flac
    """
    if not plan.records:
        return ""
    width = max(len(str(record.source_path)) + len(ARROW) for record in plan.records)
    lines = []
    for record in plan.records:
        source = str(record.source_path)
        lines.append(f"{source}{FILL * (width - len(source))}{ARROW}{record.dest_path}")
    return "\n".join(lines) + "\n"


def render_file_preview(plan: MovePlan) -> str:
    """Render ``name:source --> dest`` lines, one per record."""
    lines = [
        f"{record.dest_path.name}:{record.source_path} --> {record.dest_path}"
        for record in plan.records
    ]
    return "\n".join(lines) + "\n" if lines else ""


def confirm(prompt_io: PromptIO, interactive: bool, action: str = "move") -> bool:
    """Block until the user answers ``y`` or ``N``; non-interactive runs always proceed."""
    if not interactive:
        return True
    while True:
        try:
            response = ask(prompt_io, f"{action} files? {YES}/{NO}")
        except EOFError:
            logger.error("No confirmation received (end of input), nothing was changed")
            return False
        if response == YES:
            return True
        if response == NO:
            prompt_io.print("Exiting...")
            return False
        prompt_io.print(f"Unknown response, please enter '{YES}' or '{NO}'")
