# install.py
from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass, replace
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from .builder import BuildContext, build_pipeline
from .dsl import action
from .errors import ConfigurationError, InstallError, ToolMissing, UnrecognizedTarget
from .model import Pipeline
from .progress import ProgressTracker
from .registry import Registry
from .revision import RevisionResolver
from .runner import Orchestrator
from .settings import Settings
from .tools import default_compilers
from .ui.console import Console, get_console

ALL = "all"


@dataclass
class InstallOptions:
    force: bool = False
    sync: bool = False
    generate_from_grammar: bool = False
    exclude_ignored: bool = False


def _dedupe(names: Iterable[str]) -> List[str]:
    seen = set()
    out: List[str] = []
    for n in names:
        if n not in seen:
            seen.add(n)
            out.append(n)
    return out


class Installer:
    """
    Batch front end: expands a request into parsers and drives one pipeline
    per parser through the orchestrator.

    In async mode (sync=False) install/update must be called from a running
    event loop; await `orchestrator.drain()` to wait for the batch.
    """

    def __init__(
        self,
        registry: Registry,
        settings: Settings,
        *,
        resolver: RevisionResolver | None = None,
        tracker: ProgressTracker | None = None,
        orchestrator: Orchestrator | None = None,
        console: Console | None = None,
        prompt: Callable[[str], bool] | None = None,
        compilers: Optional[Sequence[Optional[str]]] = None,
    ):
        self.registry = registry
        self.settings = settings
        self.console = console or get_console()
        self.resolver = resolver or RevisionResolver(registry, settings.lockfile, settings.info_dir)
        self.tracker = tracker or ProgressTracker()
        self.orchestrator = orchestrator or Orchestrator(
            self.tracker, self.console, extra_args=registry.extra_args
        )
        self.prompt = prompt or (lambda _msg: False)
        self.compilers = compilers
        self.submitted: List["asyncio.Future[bool]"] = []

    # ------------------------------------------------------------------
    # Queries about the install dir
    # ------------------------------------------------------------------

    def installed(self) -> List[str]:
        parser_dir = self.settings.parser_dir
        if not parser_dir.is_dir():
            return []
        return sorted(p.stem for p in parser_dir.glob("*.so"))

    def is_installed(self, name: str) -> bool:
        return (self.settings.parser_dir / f"{name}.so").is_file()

    def is_ignored(self, name: str) -> bool:
        return name in self.registry.ignored

    def info(self) -> List[Tuple[str, str]]:
        installed = set(self.installed())
        return [
            (name, "installed" if name in installed else "not installed")
            for name in sorted(self.registry.available())
        ]

    # ------------------------------------------------------------------
    # Expansion
    # ------------------------------------------------------------------

    def expand(self, requested: Iterable[str]) -> List[str]:
        """
        "all" -> every available parser; group aliases are replaced, in place,
        by their members.
        """
        requested = list(requested)
        if ALL in requested:
            return self.registry.available()

        out: List[str] = []
        for name in requested:
            if self.registry.is_group(name):
                out.extend(self.registry.available(name))
            else:
                out.append(name)
        return _dedupe(out)

    # ------------------------------------------------------------------
    # Install
    # ------------------------------------------------------------------

    def install(
        self,
        requested: Iterable[str],
        options: InstallOptions | None = None,
        **overrides,
    ) -> List[str]:
        """
        Install the requested parsers. Returns the parsers a pipeline was
        started for.
        """
        opts = replace(options or InstallOptions(), **overrides)

        self.tracker.reset()

        requested = list(requested)
        force = opts.force
        if ALL in requested:
            force = False
        names = self.expand(requested)

        if opts.exclude_ignored:
            names = [n for n in names if not self.is_ignored(n)]

        started: List[str] = []
        for name in names:
            if self._install_one(name, force=force, opts=opts):
                started.append(name)
            # runs whether or not the pipeline succeeds, see DESIGN.md
            self.link_queries(name)
        return started

    def _install_one(self, name: str, *, force: bool, opts: InstallOptions) -> bool:
        if self.is_installed(name) and not force:
            question = f"{name} parser already available: would you like to reinstall ?"
            if not self.prompt(question):
                return False

        try:
            spec = self.registry.get(name)
            ctx = BuildContext(
                cache_dir=self.settings.cache_dir,
                install_dir=self.settings.parser_dir,
                resolver=self.resolver,
                generate_from_grammar=opts.generate_from_grammar,
                prefer_git=self.settings.prefer_git,
                compilers=self.compilers if self.compilers is not None else default_compilers(self.settings.cc),
                abi=self.settings.abi,
            )
            pipeline = build_pipeline(spec, ctx)
        except ToolMissing as e:
            self.console.print_error(
                "Missing tool",
                f"grammarkit[{name}]: {e.message}",
                details=[v for k, v in e.details.items() if k == "reason"],
                suggestion=e.hint,
            )
            return False
        except ConfigurationError as e:
            self.console.print_error("Invalid parser", f"grammarkit[{name}]: {e.message}")
            return False

        self._run(pipeline, sync=opts.sync)
        return True

    def _run(self, pipeline: Pipeline, *, sync: bool) -> None:
        if sync:
            self.orchestrator.run_sync(pipeline)
        else:
            self.submitted.append(self.orchestrator.submit(pipeline))

    def link_queries(self, name: str) -> None:
        """Symlink the parser's bundled queries into the install dir."""
        source = self.registry.queries_source
        if source is None or not (source / name).is_dir():
            self.console.print_debug(f"no bundled queries for {name}")
            return
        dest = self.settings.queries_dir / name
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            if dest.is_symlink():
                dest.unlink()
            elif dest.exists():
                self.console.print_debug(f"{dest} exists and is not a link, leaving it alone")
                return
            os.symlink((source / name).resolve(), dest, target_is_directory=True)
        except OSError as e:
            self.console.print_error(
                "Query link failed",
                f"grammarkit[{name}]: could not link queries to {dest}",
                details=[str(e)],
            )

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def update(self, requested: Iterable[str] | None = None, *, sync: bool = False) -> List[str]:
        self.tracker.reset()
        self.resolver.reload()

        requested = list(requested or [])
        if requested and ALL not in requested:
            names = [
                n for n in self.expand(requested)
                if not self.is_installed(n) or self.resolver.needs_update(n)
            ]
            if not names:
                self.console.notify("Parsers are up-to-date!")
                return []
            return self.install(names, InstallOptions(force=True, sync=sync))

        outdated = self.resolver.outdated(self.installed())
        if not outdated:
            self.console.notify("All parsers are up-to-date!")
            return []
        return self.install(outdated, InstallOptions(force=True, sync=sync, exclude_ignored=True))

    # ------------------------------------------------------------------
    # Uninstall
    # ------------------------------------------------------------------

    def uninstall(self, requested: Iterable[str]) -> List[InstallError]:
        """
        Remove parsers. Names that are not installed are reported and
        skipped; the rest of the batch still runs. Returns the problems.
        """
        self.tracker.reset()

        requested = list(requested)
        names = self.installed() if ALL in requested else self.expand(requested)

        problems: List[InstallError] = []
        for name in names:
            if not self.is_installed(name):
                err = UnrecognizedTarget(name, f"Parser for {name} is not managed by grammarkit.")
                self.console.print_error("Not installed", err.message)
                problems.append(err)
                continue
            self.orchestrator.run_sync(self.uninstall_pipeline(name))
        return problems

    def uninstall_pipeline(self, name: str) -> Pipeline:
        parser = self.settings.parser_dir / f"{name}.so"
        queries = self.settings.queries_dir / name
        return Pipeline(
            target=name,
            steps=[
                action(lambda: parser.unlink(), name=f"rm {parser}"),
                action(lambda: self.resolver.remove_marker(name), name=f"rm revision for {name}"),
                # only links made by link_queries are removed
                action(lambda: queries.is_symlink() and queries.unlink(), name=f"rm {queries}"),
            ],
            success_message=f"Parser for {name} has been uninstalled",
        )

