# errors.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, Optional


TOOL_HINTS = {
    "git": "Install Git or fix PATH.",
    "curl": "Install curl or set GRAMMARKIT_PREFER_GIT=1.",
    "tar": "Install tar or set GRAMMARKIT_PREFER_GIT=1.",
    "tree-sitter": "Install the tree-sitter CLI (e.g., npm install -g tree-sitter-cli).",
    "node": "Install Node.js or fix PATH.",
    "npm": "Install Node.js (includes npm) or fix PATH.",
    "cc": "Install a C compiler (cc, gcc, clang, cl or zig) or set CC.",
}


@dataclass
class InstallError(Exception):
    """
    Structured error with enough context for:
      - clean CLI output
      - per-target reporting without full tracebacks
    """
    target: str
    message: str
    details: dict = field(default_factory=dict)

    kind: ClassVar[str] = "InstallError"

    def __str__(self) -> str:
        lines = [f"{self.kind}: {self.message}", f"target={self.target}"]
        for k, v in self.details.items():
            lines.append(f"{k}={v}")
        return "\n".join(lines)


class ConfigurationError(InstallError):
    """A target's install spec is missing or malformed."""
    kind = "ConfigurationError"


class ToolMissing(InstallError):
    """A required executable cannot be found on PATH."""
    kind = "ToolMissing"

    @property
    def tool(self) -> str:
        return self.details.get("tool", "")

    @property
    def hint(self) -> str:
        return TOOL_HINTS.get(self.tool, f"Install {self.tool} or fix PATH.")


class UnrecognizedTarget(InstallError):
    """Uninstall asked for a parser that is not installed here."""
    kind = "UnrecognizedTarget"


@dataclass
class StepFailure(InstallError):
    step: str = ""
    exit_code: Optional[int] = None
    stdout: str = ""
    stderr: str = ""

    kind: ClassVar[str] = "StepFailure"

    def __str__(self) -> str:
        head = f"[{self.target}] {self.message}"
        if self.exit_code is not None:
            head += f" (exit={self.exit_code})"
        lines = [head, f"step={self.step}"]
        for k, v in self.details.items():
            lines.append(f"{k}={v}")
        if self.stderr:
            lines.append(self.stderr.rstrip())
        return "\n".join(lines)
