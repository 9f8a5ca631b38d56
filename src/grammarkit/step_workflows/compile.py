# step_workflows/compile.py
from __future__ import annotations

from pathlib import Path
from typing import List

from ..dsl import sh
from ..model import ShellStep, TargetSpec

ARTIFACT = "parser.so"


def compile_args(compiler: str, files: List[str]) -> List[str]:
    """Argument list for building parser.so from `files` with the given compiler."""
    family = Path(compiler).stem.lower()

    if family == "cl":
        return ["/Fe:", ARTIFACT, "/Isrc", *files, "-Os", "/utf-8", "/LD"]

    args = ["-o", ARTIFACT, "-I./src", *files, "-Os", "-std=c11", "-fPIC", "-shared"]
    if family == "zig":
        # zig is a C compiler only through its `cc` subcommand
        return ["cc", *args]
    return args


def select_compile_step(spec: TargetSpec, compiler: str, build_dir: str | Path) -> ShellStep:
    """Compile step for one parser, run inside its build directory."""
    return sh(
        compiler,
        *compile_args(compiler, list(spec.files)),
        cwd=str(build_dir),
        info="Compiling...",
        err="Error during compilation",
    )
