# tools.py
# Locating the external executables a build needs.

from __future__ import annotations

import functools
import os
import shutil
from typing import Iterable, List, Optional

from .errors import ToolMissing
from .settings import DEFAULT_ABI

FALLBACK_COMPILERS = ["cc", "gcc", "clang", "cl", "zig"]


def exepath(tool: str) -> Optional[str]:
    """Full path of an executable on PATH, or None."""
    return shutil.which(tool)


def is_executable(tool: str | None) -> bool:
    return bool(tool) and exepath(tool) is not None


def require_tool(tool: str, target: str, reason: str | None = None) -> str:
    """Return the tool's path or raise ToolMissing naming the target that needed it."""
    path = exepath(tool)
    if path is None:
        details = {"tool": tool}
        if reason:
            details["reason"] = reason
        raise ToolMissing(target, f"`{tool}` is not executable!", details)
    return path


def default_compilers(cc: str | None = None) -> List[Optional[str]]:
    """$CC first, then the usual suspects."""
    if cc is None:
        cc = os.environ.get("CC") or None
    return [cc, *FALLBACK_COMPILERS]


def select_executable(candidates: Iterable[Optional[str]]) -> Optional[str]:
    for c in candidates:
        if c and is_executable(c):
            return c
    return None


@functools.lru_cache(maxsize=None)
def tree_sitter_abi(abi: str | None = None) -> str:
    """
    ABI version passed to `tree-sitter generate --abi`.
    Resolved once per process and reused for every parser.
    """
    return str(abi or os.environ.get("GRAMMARKIT_ABI") or DEFAULT_ABI)
