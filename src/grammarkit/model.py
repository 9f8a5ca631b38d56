# model.py
from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple, Union


@dataclass(frozen=True)
class TargetSpec:
    """
    An installable parser: where its source lives and how it must be built.

    `location` is a subpath inside the source tree (some repos ship several
    grammars). `files` are the C sources, relative to the build location.
    """
    name: str
    url: str
    files: Tuple[str, ...] = ()
    revision: Optional[str] = None
    branch: Optional[str] = None
    location: Optional[str] = None

    requires_generate_from_grammar: bool = False
    generate_requires_npm: bool = False

    # Group alias this parser belongs to (e.g. "stable", "community")
    tier: Optional[str] = None

    @property
    def project_name(self) -> str:
        return f"tree-sitter-{self.name}"


@dataclass(frozen=True)
class ShellStep:
    """An external command run as a subprocess."""
    cmd: str
    args: Tuple[str, ...] = ()
    cwd: str | None = None
    info: str | None = None
    err: str | None = None

    def describe(self) -> str:
        line = " ".join([self.cmd, *self.args])
        if self.cwd:
            line = f"{line} (in {self.cwd})"
        return line


@dataclass(frozen=True)
class ActionStep:
    """An in-process action. Raising from `action` fails the step."""
    action: Callable[[], object]
    info: str | None = None
    err: str | None = None
    name: str | None = None

    def describe(self) -> str:
        return self.name or getattr(self.action, "__name__", "<action>")


Step = Union[ShellStep, ActionStep]


@dataclass
class Pipeline:
    """The ordered steps built for one target in one run."""
    target: str
    steps: List[Step] = field(default_factory=list)
    success_message: str = ""

    def __len__(self) -> int:
        return len(self.steps)


_handle_ids = itertools.count(1)


@dataclass
class JobHandle:
    """
    One spawned subprocess and the output it produced.

    Each spawn gets a fresh id and its own buffers, so output from pipelines
    running side by side never mixes.
    """
    step: ShellStep
    id: int = field(default_factory=lambda: next(_handle_ids))
    stdout_chunks: List[str] = field(default_factory=list)
    stderr_chunks: List[str] = field(default_factory=list)
    returncode: Optional[int] = None

    @property
    def stdout(self) -> str:
        return "".join(self.stdout_chunks)

    @property
    def stderr(self) -> str:
        return "".join(self.stderr_chunks)
