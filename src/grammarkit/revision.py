# revision.py
from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .errors import ConfigurationError
from .registry import Registry

# ---------------------------------------------------------------------
# Core idea
# ---------------------------------------------------------------------
# desired revision = spec.revision  (explicit pin in the parser config)
#                 or lockfile[name]["revision"]
#                 or None           (unpinned: whatever gets fetched is fine)
#
# installed revision = first line of <info_dir>/<name>.revision, written as
# the last step of a successful install.
#
# A parser needs an update when it is unpinned, or when the two differ.
# ---------------------------------------------------------------------


def load_lockfile(path: str | Path) -> Dict[str, Dict[str, str]]:
    """Missing file -> empty mapping. Broken JSON is a configuration error."""
    p = Path(path)
    if not p.is_file():
        return {}
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigurationError("<lockfile>", f"invalid lockfile: {e}", {"path": str(p)}) from e
    if not isinstance(data, dict):
        raise ConfigurationError("<lockfile>", "lockfile must be a JSON object", {"path": str(p)})
    return data


class RevisionResolver:
    def __init__(self, registry: Registry, lockfile: str | Path, info_dir: str | Path):
        self.registry = registry
        self.lockfile_path = Path(lockfile)
        self.info_dir = Path(info_dir)
        self._lockfile: Optional[Dict[str, Dict[str, str]]] = None

    @property
    def lockfile(self) -> Dict[str, Dict[str, str]]:
        # read once per run; reload() drops it
        if self._lockfile is None:
            self._lockfile = load_lockfile(self.lockfile_path)
        return self._lockfile

    def reload(self) -> None:
        self._lockfile = None

    def marker_path(self, name: str) -> Path:
        return self.info_dir / f"{name}.revision"

    def resolve(self, name: str) -> Optional[str]:
        spec = self.registry.get(name)
        if spec.revision:
            return spec.revision
        entry = self.lockfile.get(name)
        if isinstance(entry, dict) and entry.get("revision"):
            return str(entry["revision"])
        return None

    def installed_revision(self, name: str) -> Optional[str]:
        p = self.marker_path(name)
        if not p.is_file():
            return None
        lines = p.read_text(encoding="utf-8").splitlines()
        return lines[0] if lines else ""

    def needs_update(self, name: str) -> bool:
        """
        True when the parser is unpinned or the built revision differs.
        Never raises: anything that prevents an answer counts as "needs update".
        """
        try:
            wanted = self.resolve(name)
            if wanted is None:
                return True
            return wanted != self.installed_revision(name)
        except (ConfigurationError, OSError, UnicodeDecodeError):
            return True

    def outdated(self, installed: Iterable[str]) -> List[str]:
        return [name for name in installed if self.needs_update(name)]

    def write_marker(self, name: str, revision: Optional[str]) -> None:
        self.info_dir.mkdir(parents=True, exist_ok=True)
        self.marker_path(name).write_text(f"{revision or ''}\n", encoding="utf-8")

    def remove_marker(self, name: str) -> None:
        self.marker_path(name).unlink(missing_ok=True)
