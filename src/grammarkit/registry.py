# registry.py
from __future__ import annotations

import runpy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from . import dsl
from .errors import ConfigurationError
from .model import TargetSpec


def validate_spec(spec: TargetSpec) -> TargetSpec:
    """Required fields: url and at least one source file."""
    if not isinstance(spec.url, str) or not spec.url.strip():
        raise ConfigurationError(spec.name, "install spec has no url", {"field": "url"})
    if not spec.files:
        raise ConfigurationError(spec.name, "install spec lists no source files", {"field": "files"})
    return spec


@dataclass
class Registry:
    """Every parser grammarkit knows how to build, plus aliases and the ignore list."""
    specs: Dict[str, TargetSpec] = field(default_factory=dict)
    groups: Dict[str, List[str]] = field(default_factory=dict)
    ignored: List[str] = field(default_factory=list)
    queries_source: Optional[Path] = None
    # appended to every shell step running that command, e.g. {"cc": ["-g"]}
    extra_args: Dict[str, List[str]] = field(default_factory=dict)

    @classmethod
    def from_specs(
        cls,
        specs: Iterable[TargetSpec],
        *,
        groups: Optional[Dict[str, List[str]]] = None,
        ignored: Optional[Iterable[str]] = None,
        queries_source: str | Path | None = None,
        extra_args: Optional[Dict[str, List[str]]] = None,
    ) -> "Registry":
        by_name: Dict[str, TargetSpec] = {}
        for s in specs:
            if s.name in by_name:
                raise ValueError(f"Duplicate parser name: {s.name}")
            by_name[s.name] = s

        # tiers declared on the parsers become aliases, explicit groups win
        merged: Dict[str, List[str]] = {}
        for s in by_name.values():
            if s.tier:
                merged.setdefault(s.tier, []).append(s.name)
        for alias, members in (groups or {}).items():
            merged[alias] = list(members)

        for alias, members in merged.items():
            if alias in by_name:
                raise ValueError(f"Group alias '{alias}' collides with a parser name")
            unknown = [m for m in members if m not in by_name]
            if unknown:
                raise ValueError(f"Group '{alias}' lists unknown parsers: {unknown}")

        return cls(
            specs=by_name,
            groups=merged,
            ignored=list(ignored or []),
            queries_source=Path(queries_source) if queries_source else None,
            extra_args={k: list(v) for k, v in (extra_args or {}).items()},
        )

    def get(self, name: str) -> TargetSpec:
        spec = self.specs.get(name)
        if spec is None:
            raise ConfigurationError(name, f'Parser not available for language "{name}"')
        return spec

    def available(self, group: str | None = None) -> List[str]:
        if group is None:
            return list(self.specs)
        return list(self.groups.get(group, []))

    def is_group(self, name: str) -> bool:
        return name in self.groups


# ----------------------------------------------------------------------
# Config loading (local python file)
# ----------------------------------------------------------------------

def load_registry(path: str | Path) -> Registry:
    """
    Load parser definitions from a python file.

    The file must define either:
      - parsers() -> List[TargetSpec]
      - PARSERS = [TargetSpec, ...]

    and may define:
      - GROUPS = {"alias": ["name", ...]}
      - IGNORED = ["name", ...]
      - QUERIES_DIR = "queries"   (relative to the config file)
      - COMMAND_EXTRA_ARGS = {"cc": ["-g"]}
    """
    cfg_path = Path(path).expanduser().resolve()
    if not cfg_path.exists():
        raise FileNotFoundError(f"Parser config not found: {cfg_path}")
    if cfg_path.suffix != ".py":
        raise ValueError(f"Parser config must be a .py file, got: {cfg_path.name}")

    globals_dict = runpy.run_path(str(cfg_path), run_name=f"grammarkit_config_{cfg_path.stem}")

    specs = None
    fn = globals_dict.get("parsers")
    if callable(fn) and fn is not dsl.parsers:
        try:
            specs = fn()
        except TypeError as e:
            if "positional argument" in str(e):
                raise TypeError(
                    "parsers() in the config must take no arguments. "
                    "Use: `from grammarkit.dsl import registry, parser` then "
                    "`def parsers(): return registry(parser(...), parser(...))`"
                ) from e
            raise
    elif "PARSERS" in globals_dict:
        specs = globals_dict["PARSERS"]

    if not isinstance(specs, list) or not all(isinstance(s, TargetSpec) for s in specs):
        raise TypeError(
            "Parser config must return/define a List[TargetSpec]. "
            "Define parsers() -> List[TargetSpec] or PARSERS = [TargetSpec, ...]."
        )

    queries = globals_dict.get("QUERIES_DIR")
    return Registry.from_specs(
        specs,
        groups=globals_dict.get("GROUPS"),
        ignored=globals_dict.get("IGNORED"),
        queries_source=(cfg_path.parent / queries) if queries else None,
        extra_args=globals_dict.get("COMMAND_EXTRA_ARGS"),
    )
