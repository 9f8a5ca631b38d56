# src/grammarkit/dsl.py
from __future__ import annotations

from typing import Callable, Iterable, List, Optional, Sequence

from .model import ActionStep, ShellStep, TargetSpec


# ---------------------------------------------------------------------
# Step helpers
# ---------------------------------------------------------------------

def sh(
    cmd: str,
    *args: str,
    cwd: str | None = None,
    info: str | None = None,
    err: str | None = None,
) -> ShellStep:
    """Create a shell step: sh("git", "checkout", rev, cwd=...)."""
    return ShellStep(cmd=cmd, args=tuple(str(a) for a in args), cwd=cwd, info=info, err=err)


def action(
    fn: Callable[[], object],
    *,
    name: str | None = None,
    info: str | None = None,
    err: str | None = None,
) -> ActionStep:
    """Create an in-process step."""
    return ActionStep(action=fn, name=name, info=info, err=err)


# ---------------------------------------------------------------------
# Parser helper (used from grammarkit_parsers.py)
# ---------------------------------------------------------------------

def parser(
    name: str,
    url: str,
    *,
    files: Optional[Sequence[str]] = None,
    revision: str | None = None,
    branch: str | None = None,
    location: str | None = None,
    requires_generate_from_grammar: bool = False,
    generate_requires_npm: bool = False,
    tier: str | None = None,
) -> TargetSpec:
    """
    Declare one parser.

    Example:
        parser("lua", "https://github.com/MunifTanjim/tree-sitter-lua",
               files=["src/parser.c", "src/scanner.c"], tier="stable")
    """
    return TargetSpec(
        name=name,
        url=url,
        files=tuple(files) if files is not None else ("src/parser.c",),
        revision=revision,
        branch=branch,
        location=location,
        requires_generate_from_grammar=requires_generate_from_grammar,
        generate_requires_npm=generate_requires_npm,
        tier=tier,
    )


def parsers(*specs: TargetSpec | Iterable[TargetSpec]) -> List[TargetSpec]:
    """
    Config helper so a config file can write:
        def parsers():
            return registry(parser(...), parser(...))
    """
    out: List[TargetSpec] = []
    for s in specs:
        if isinstance(s, TargetSpec):
            out.append(s)
        else:
            out.extend(s)
    return out


registry = parsers  # alias, avoids shadowing when the config defines parsers()
