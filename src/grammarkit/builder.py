# builder.py
from __future__ import annotations

import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from .dsl import action, sh
from .errors import ToolMissing
from .model import Pipeline, Step, TargetSpec
from .registry import validate_spec
from .revision import RevisionResolver
from .step_workflows.compile import ARTIFACT, select_compile_step
from .step_workflows.download import select_download_steps
from .tools import default_compilers, exepath, require_tool, select_executable, tree_sitter_abi


@dataclass
class BuildContext:
    """Everything about the current run that shapes a pipeline, besides the TargetSpec itself."""
    cache_dir: Path
    install_dir: Path
    resolver: RevisionResolver
    generate_from_grammar: bool = False
    prefer_git: bool = False
    compilers: Optional[Sequence[Optional[str]]] = None
    abi: Optional[str] = None


def local_source(spec: TargetSpec) -> Optional[Path]:
    """The source directory when `url` points at the local filesystem."""
    candidate = Path(spec.url).expanduser()
    if candidate.is_dir():
        return candidate.resolve()
    return None


def build_location(spec: TargetSpec, ctx: BuildContext) -> Path:
    base = local_source(spec) or (Path(ctx.cache_dir) / spec.project_name)
    if spec.location:
        base = base / spec.location
    return base


def _cleanup(path: Path) -> Step:
    return action(lambda: shutil.rmtree(path, ignore_errors=True), name=f"rm -rf {path}")


def _copy_artifact(build_dir: Path, dest: Path) -> None:
    dest.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(build_dir / ARTIFACT, dest)


def build_pipeline(spec: TargetSpec, ctx: BuildContext) -> Pipeline:
    """
    Turn a parser spec into the ordered steps that install it:

      [cleanup, fetch...]          remote sources only
      [npm install] generate       when generating from grammar.js
      compile, copy, write marker
      [cleanup]                    remote sources only

    Raises ConfigurationError for an invalid spec and ToolMissing when an
    executable it needs is absent; nothing runs in either case.
    """
    validate_spec(spec)

    name = spec.name
    local = local_source(spec)
    project_dir = Path(ctx.cache_dir) / spec.project_name
    build_dir = build_location(spec, ctx)
    revision = ctx.resolver.resolve(name)

    steps: List[Step] = []
    if local is None:
        steps.append(_cleanup(project_dir))
        steps.extend(
            select_download_steps(spec, ctx.cache_dir, revision, prefer_git=ctx.prefer_git)
        )

    # ---- code generation ----
    if spec.requires_generate_from_grammar or ctx.generate_from_grammar:
        reason = None
        if spec.requires_generate_from_grammar:
            reason = f"`{name}` must be generated from its grammar definitions to be compatible"
        ts = require_tool("tree-sitter", name, reason)
        require_tool("node", name, "tree-sitter generate runs grammar.js with node")

        if spec.generate_requires_npm:
            require_tool("npm", name, f"`{name}` requires NPM to be installed from grammar.js")
            steps.append(
                sh(
                    "npm", "install",
                    cwd=str(build_dir),
                    info=f"Installing NPM dependencies of {name} parser",
                    err=f"Error during `npm install` (required for parser generation of {name} with npm dependencies)",
                )
            )
        steps.append(
            sh(
                ts, "generate", "--abi", tree_sitter_abi(ctx.abi),
                cwd=str(build_dir),
                info="Generating source files from grammar.js...",
                err='Error during "tree-sitter generate"',
            )
        )

    # ---- compile ----
    candidates = list(ctx.compilers) if ctx.compilers is not None else default_compilers()
    cc = select_executable(candidates)
    if cc is None:
        tried = ", ".join(f'"{c}"' for c in candidates if c)
        raise ToolMissing(name, f"No C compiler found! {tried} are not executable.", {"tool": "cc"})

    dest = Path(ctx.install_dir) / f"{name}.so"
    steps.append(select_compile_step(spec, exepath(cc) or cc, build_dir))
    steps.append(action(lambda: _copy_artifact(build_dir, dest), name=f"copy {ARTIFACT} -> {dest}"))
    steps.append(
        action(lambda: ctx.resolver.write_marker(name, revision), name=f"write revision for {name}")
    )

    if local is None:
        steps.append(_cleanup(project_dir))

    return Pipeline(
        target=name,
        steps=steps,
        success_message=f"Parser for {name} has been installed",
    )
