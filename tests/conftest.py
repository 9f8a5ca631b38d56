"""Shared test fixtures."""
from __future__ import annotations

import json
import os
import stat
import sys
from pathlib import Path
from typing import Dict, Optional

import pytest

from grammarkit.dsl import parser
from grammarkit.progress import ProgressTracker
from grammarkit.registry import Registry
from grammarkit.revision import RevisionResolver
from grammarkit.settings import Settings
from grammarkit.ui.console import Console

posix_only = pytest.mark.skipif(os.name != "posix", reason="uses /bin/sh scripts")


def py_cmd(code: str) -> tuple[str, ...]:
    """argv running a python snippet with the current interpreter."""
    return (sys.executable, "-c", code)


def write_script(path: Path, body: str) -> Path:
    path.write_text("#!/bin/sh\n" + body + "\n")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        home=tmp_path / "home",
        cache_dir=tmp_path / "cache",
        config_path=tmp_path / "grammarkit_parsers.py",
        lockfile=tmp_path / "lockfile.json",
    )


@pytest.fixture
def console() -> Console:
    return Console(debug=False)


@pytest.fixture
def tracker() -> ProgressTracker:
    return ProgressTracker()


@pytest.fixture
def write_lockfile(settings: Settings):
    def _write(entries: Dict[str, Optional[str]]) -> Path:
        data = {name: {"revision": rev} for name, rev in entries.items()}
        settings.lockfile.write_text(json.dumps(data))
        return settings.lockfile

    return _write


@pytest.fixture
def fake_cc(tmp_path: Path) -> Path:
    """A "compiler" that drops a parser.so into its working directory."""
    (tmp_path / "bin").mkdir(exist_ok=True)
    return write_script(tmp_path / "bin" / "fakecc", "echo built > parser.so")


@pytest.fixture
def broken_cc(tmp_path: Path) -> Path:
    """A "compiler" that always fails with a diagnostic on stderr."""
    (tmp_path / "bin").mkdir(exist_ok=True)
    return write_script(tmp_path / "bin" / "brokencc", 'echo "parser.c:1: syntax error" >&2\nexit 1')


@pytest.fixture
def grammar_dir(tmp_path: Path) -> Path:
    """A local grammar checkout with a src/parser.c."""
    d = tmp_path / "tree-sitter-demo"
    (d / "src").mkdir(parents=True)
    (d / "src" / "parser.c").write_text("/* generated */\n")
    return d


@pytest.fixture
def make_registry(grammar_dir: Path):
    def _make(*names: str, **kwargs) -> Registry:
        specs = [parser(n, str(grammar_dir)) for n in names]
        return Registry.from_specs(specs, **kwargs)

    return _make


@pytest.fixture
def resolver_for(settings: Settings):
    def _make(registry: Registry) -> RevisionResolver:
        return RevisionResolver(registry, settings.lockfile, settings.info_dir)

    return _make
