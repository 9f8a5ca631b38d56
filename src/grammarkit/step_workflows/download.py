# step_workflows/download.py
from __future__ import annotations

import shutil
from pathlib import Path
from typing import List, Optional

from ..dsl import action, sh
from ..model import Step, TargetSpec
from ..tools import is_executable, require_tool


# ---------------------------------------------------------------------
# Archive URLs
# ---------------------------------------------------------------------

def _repo_url(url: str) -> str:
    url = url.rstrip("/")
    if url.endswith(".git"):
        url = url[: -len(".git")]
    return url


def archive_url(url: str, revision: str) -> Optional[str]:
    """Tarball URL for a GitHub/GitLab repo at `revision`, None for other hosts."""
    base = _repo_url(url)
    if base.startswith("https://github.com/"):
        return f"{base}/archive/{revision}.tar.gz"
    if base.startswith("https://gitlab.com/"):
        repo = base.rsplit("/", 1)[-1]
        return f"{base}/-/archive/{revision}/{repo}-{revision}.tar.gz"
    return None


def can_download_tar(spec: TargetSpec, prefer_git: bool) -> bool:
    if prefer_git:
        return False
    if archive_url(spec.url, "HEAD") is None:
        return False
    return is_executable("curl") and is_executable("tar")


# ---------------------------------------------------------------------
# Step builders
# ---------------------------------------------------------------------

def _move_extracted(tmp_dir: Path, dest: Path) -> None:
    # the archive holds exactly one top-level dir named <repo>-<rev>
    children = [p for p in tmp_dir.iterdir() if p.is_dir()]
    if len(children) != 1:
        raise RuntimeError(f"expected one directory in {tmp_dir}, found {len(children)}")
    shutil.move(str(children[0]), str(dest))


def tarball_steps(spec: TargetSpec, cache_dir: Path, revision: str) -> List[Step]:
    project = spec.project_name
    archive = cache_dir / f"{project}.tar.gz"
    tmp_dir = cache_dir / f"{project}-tmp"
    url = archive_url(spec.url, revision)

    return [
        sh(
            "curl", "--silent", "--fail", "--show-error", "-L",
            url, "--create-dirs", "--output", str(archive),
            info=f"Downloading {project}...",
            err="Error during download, please verify your internet connection",
        ),
        action(lambda: tmp_dir.mkdir(parents=True, exist_ok=True), name=f"mkdir {tmp_dir}"),
        sh(
            "tar", "-xzf", str(archive), "-C", str(tmp_dir),
            info=f"Extracting {project}...",
            err="Error during tarball extraction.",
        ),
        action(lambda: archive.unlink(), name=f"rm {archive}"),
        action(
            lambda: _move_extracted(tmp_dir, cache_dir / project),
            name=f"mv {tmp_dir}/* {cache_dir / project}",
            err=f"Error when renaming extracted {project}",
        ),
        action(lambda: shutil.rmtree(tmp_dir), name=f"rm -r {tmp_dir}"),
    ]


def git_steps(spec: TargetSpec, cache_dir: Path, revision: Optional[str]) -> List[Step]:
    require_tool("git", spec.name, "needed to fetch the parser sources")

    project = spec.project_name
    clone_args = ["clone"]
    if spec.branch:
        clone_args += ["--branch", spec.branch]
    clone_args += ["--filter=blob:none", spec.url, project]

    steps: List[Step] = [
        action(lambda: cache_dir.mkdir(parents=True, exist_ok=True), name=f"mkdir {cache_dir}"),
        sh(
            "git", *clone_args,
            cwd=str(cache_dir),
            info=f"Downloading {project}...",
            err="Error during download, please verify your internet connection",
        ),
    ]
    if revision:
        steps.append(
            sh(
                "git", "checkout", revision,
                cwd=str(cache_dir / project),
                info=f"Checking out locked revision {revision}",
                err=f"Error while checking out revision {revision}",
            )
        )
    return steps


def select_download_steps(
    spec: TargetSpec,
    cache_dir: str | Path,
    revision: Optional[str],
    *,
    prefer_git: bool = False,
) -> List[Step]:
    """
    Steps that leave the sources at <cache_dir>/tree-sitter-<name>.
    Tarballs when the host serves them and curl/tar exist, git otherwise.
    """
    cache_dir = Path(cache_dir)
    if can_download_tar(spec, prefer_git):
        return tarball_steps(spec, cache_dir, revision or spec.branch or "master")
    return git_steps(spec, cache_dir, revision)
