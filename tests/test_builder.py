"""Tests for builder.py and the step_workflows adapters."""
from __future__ import annotations

from pathlib import Path

import pytest

from grammarkit import tools
from grammarkit.builder import BuildContext, build_pipeline
from grammarkit.dsl import parser
from grammarkit.errors import ConfigurationError, ToolMissing
from grammarkit.model import ActionStep, ShellStep
from grammarkit.registry import Registry
from grammarkit.revision import RevisionResolver
from grammarkit.step_workflows.compile import compile_args
from grammarkit.step_workflows.download import archive_url


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def on_path(monkeypatch) -> set:
    """Names in the returned set are "installed"; everything else is missing."""
    available: set = set()

    def fake_which(name):
        return f"/usr/bin/{name}" if name in available else None

    monkeypatch.setattr(tools.shutil, "which", fake_which)
    return available


def _ctx(settings, *specs, **kwargs) -> BuildContext:
    resolver = RevisionResolver(Registry.from_specs(specs), settings.lockfile, settings.info_dir)
    kwargs.setdefault("compilers", ["cc"])
    return BuildContext(
        cache_dir=settings.cache_dir,
        install_dir=settings.parser_dir,
        resolver=resolver,
        **kwargs,
    )


def _shell(pipeline) -> list[ShellStep]:
    return [s for s in pipeline.steps if isinstance(s, ShellStep)]


# ---------------------------------------------------------------------------
# local sources
# ---------------------------------------------------------------------------


def test_local_source_skips_fetch_and_cleanup(settings, grammar_dir: Path, on_path) -> None:
    on_path.add("cc")
    spec = parser("demo", str(grammar_dir))

    pipeline = build_pipeline(spec, _ctx(settings, spec))

    kinds = [type(s) for s in pipeline.steps]
    assert kinds == [ShellStep, ActionStep, ActionStep]
    compile_step = pipeline.steps[0]
    assert compile_step.cmd == "/usr/bin/cc"
    assert compile_step.cwd == str(grammar_dir.resolve())
    assert "src/parser.c" in compile_step.args
    assert pipeline.target == "demo"


def test_local_source_with_location(settings, grammar_dir: Path, on_path) -> None:
    on_path.add("cc")
    spec = parser("demo", str(grammar_dir), location="typescript")

    pipeline = build_pipeline(spec, _ctx(settings, spec))

    assert pipeline.steps[0].cwd == str(grammar_dir.resolve() / "typescript")


# ---------------------------------------------------------------------------
# remote sources
# ---------------------------------------------------------------------------


def test_remote_git_pipeline_shape(settings, on_path) -> None:
    on_path.update({"git", "cc"})
    spec = parser("foo", "https://example.org/x/tree-sitter-foo", revision="abc")

    pipeline = build_pipeline(spec, _ctx(settings, spec))

    steps = pipeline.steps
    assert isinstance(steps[0], ActionStep)  # cleanup
    assert isinstance(steps[-1], ActionStep)  # cleanup

    clone, checkout, compile_step = _shell(pipeline)
    assert clone.cmd == "git"
    assert clone.args == ("clone", "--filter=blob:none", spec.url, "tree-sitter-foo")
    assert clone.cwd == str(settings.cache_dir)
    assert checkout.args == ("checkout", "abc")
    assert checkout.cwd == str(settings.cache_dir / "tree-sitter-foo")
    assert compile_step.cwd == str(settings.cache_dir / "tree-sitter-foo")


def test_remote_git_with_branch_and_no_revision(settings, on_path) -> None:
    on_path.update({"git", "cc"})
    spec = parser("foo", "https://example.org/x/tree-sitter-foo", branch="release")

    clone, compile_step = _shell(build_pipeline(spec, _ctx(settings, spec)))

    assert clone.args[:3] == ("clone", "--branch", "release")


def test_remote_without_git_is_tool_missing(settings, on_path) -> None:
    on_path.add("cc")
    spec = parser("foo", "https://example.org/x/tree-sitter-foo")

    with pytest.raises(ToolMissing) as exc:
        build_pipeline(spec, _ctx(settings, spec))
    assert exc.value.tool == "git"
    assert exc.value.target == "foo"


def test_github_uses_tarball_when_curl_and_tar_exist(settings, on_path) -> None:
    on_path.update({"curl", "tar", "cc"})
    spec = parser("lua", "https://github.com/x/tree-sitter-lua.git", revision="v1")

    pipeline = build_pipeline(spec, _ctx(settings, spec))

    cmds = [s.cmd for s in _shell(pipeline)]
    assert cmds == ["curl", "tar", "/usr/bin/cc"]
    assert "https://github.com/x/tree-sitter-lua/archive/v1.tar.gz" in _shell(pipeline)[0].args


def test_prefer_git_overrides_tarball(settings, on_path) -> None:
    on_path.update({"curl", "tar", "git", "cc"})
    spec = parser("lua", "https://github.com/x/tree-sitter-lua")

    pipeline = build_pipeline(spec, _ctx(settings, spec, prefer_git=True))

    assert [s.cmd for s in _shell(pipeline)] == ["git", "/usr/bin/cc"]


def test_archive_url_hosts() -> None:
    assert archive_url("https://github.com/a/b", "r") == "https://github.com/a/b/archive/r.tar.gz"
    assert archive_url("https://gitlab.com/a/b/", "r") == "https://gitlab.com/a/b/-/archive/r/b-r.tar.gz"
    assert archive_url("https://example.org/a/b", "r") is None


# ---------------------------------------------------------------------------
# code generation
# ---------------------------------------------------------------------------


def test_generate_without_tree_sitter_is_tool_missing(settings, grammar_dir, on_path) -> None:
    on_path.update({"node", "cc"})
    spec = parser("demo", str(grammar_dir), requires_generate_from_grammar=True)

    with pytest.raises(ToolMissing) as exc:
        build_pipeline(spec, _ctx(settings, spec))
    assert exc.value.tool == "tree-sitter"
    assert "reason" in exc.value.details


def test_generate_forced_by_caller_with_npm_bootstrap(settings, grammar_dir, on_path) -> None:
    on_path.update({"tree-sitter", "node", "npm", "cc"})
    spec = parser("demo", str(grammar_dir), generate_requires_npm=True)

    pipeline = build_pipeline(spec, _ctx(settings, spec, generate_from_grammar=True, abi="14"))

    npm, generate, compile_step = _shell(pipeline)
    assert (npm.cmd, npm.args) == ("npm", ("install",))
    assert generate.cmd == "/usr/bin/tree-sitter"
    assert generate.args == ("generate", "--abi", "14")
    assert npm.cwd == generate.cwd == compile_step.cwd


def test_generate_requires_npm_when_bootstrapping(settings, grammar_dir, on_path) -> None:
    on_path.update({"tree-sitter", "node", "cc"})
    spec = parser(
        "demo", str(grammar_dir),
        requires_generate_from_grammar=True, generate_requires_npm=True,
    )

    with pytest.raises(ToolMissing) as exc:
        build_pipeline(spec, _ctx(settings, spec))
    assert exc.value.tool == "npm"


def test_no_generation_unless_asked(settings, grammar_dir, on_path) -> None:
    on_path.add("cc")
    spec = parser("demo", str(grammar_dir), generate_requires_npm=True)

    assert [s.cmd for s in _shell(build_pipeline(spec, _ctx(settings, spec)))] == ["/usr/bin/cc"]


# ---------------------------------------------------------------------------
# compiler selection
# ---------------------------------------------------------------------------


def test_no_compiler_is_tool_missing(settings, grammar_dir, on_path) -> None:
    spec = parser("demo", str(grammar_dir))

    with pytest.raises(ToolMissing) as exc:
        build_pipeline(spec, _ctx(settings, spec, compilers=[None, "cc", "gcc"]))
    assert '"cc", "gcc"' in exc.value.message


def test_first_available_compiler_wins(settings, grammar_dir, on_path) -> None:
    on_path.update({"clang", "gcc"})
    spec = parser("demo", str(grammar_dir))

    pipeline = build_pipeline(spec, _ctx(settings, spec, compilers=[None, "cc", "clang", "gcc"]))

    assert _shell(pipeline)[0].cmd == "/usr/bin/clang"


def test_compile_args_per_family() -> None:
    files = ["src/parser.c", "src/scanner.c"]
    assert compile_args("cc", files)[:2] == ["-o", "parser.so"]
    assert "-shared" in compile_args("/usr/bin/gcc", files)
    assert compile_args("zig", files)[0] == "cc"
    cl = compile_args("C:/VS/cl.exe", files)
    assert "/LD" in cl and "-shared" not in cl


# ---------------------------------------------------------------------------
# validation / determinism
# ---------------------------------------------------------------------------


def test_invalid_spec_is_configuration_error(settings, on_path) -> None:
    on_path.update({"git", "cc"})
    spec = parser("demo", "https://example.org/x/tree-sitter-demo", files=[])

    with pytest.raises(ConfigurationError):
        build_pipeline(spec, _ctx(settings, spec))


def test_build_is_deterministic(settings, on_path) -> None:
    on_path.update({"git", "cc"})
    spec = parser("foo", "https://example.org/x/tree-sitter-foo", revision="abc")
    ctx = _ctx(settings, spec)

    first = [s.describe() for s in build_pipeline(spec, ctx).steps]
    second = [s.describe() for s in build_pipeline(spec, ctx).steps]

    assert first == second
