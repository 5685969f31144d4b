from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import List, Protocol, TextIO


class PromptIO(Protocol):
    def print(self, text: str = "") -> None: ...

    def readline(self) -> str: ...


class ConsolePromptIO:
    """Line-oriented prompt I/O on the process's standard streams."""

    def __init__(self, stdin: TextIO | None = None, stdout: TextIO | None = None) -> None:
        self._stdin = stdin
        self._stdout = stdout

    def print(self, text: str = "") -> None:
        out = self._stdout or sys.stdout
        out.write(f"{text}\n")
        out.flush()

    def readline(self) -> str:
        line = (self._stdin or sys.stdin).readline()
        if not line:
            raise EOFError("standard input closed")
        return line


@dataclass(slots=True)
class BufferPromptIO:
    """Scripted prompt I/O; raises EOFError once the queued inputs run out."""

    inputs: List[str] = field(default_factory=list)
    outputs: List[str] = field(default_factory=list)
    reads: int = 0

    def print(self, text: str = "") -> None:
        self.outputs.append(text)

    def readline(self) -> str:
        if not self.inputs:
            raise EOFError("BufferPromptIO has no more inputs")
        self.reads += 1
        return self.inputs.pop(0)


def ask(prompt_io: PromptIO, question: str) -> str:
    prompt_io.print(question)
    return prompt_io.readline().strip()
