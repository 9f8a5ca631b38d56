from __future__ import annotations

import os
import platform
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

DEFAULT_CONFIG = "grammarkit_parsers.py"
DEFAULT_ABI = "14"

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    home: Path
    cache_dir: Path
    config_path: Path
    lockfile: Path
    prefer_git: bool = False
    abi: str = DEFAULT_ABI
    cc: Optional[str] = None

    @property
    def parser_dir(self) -> Path:
        return self.home / "parser"

    @property
    def info_dir(self) -> Path:
        return self.home / "parser-info"

    @property
    def queries_dir(self) -> Path:
        return self.home / "queries"

    @classmethod
    def from_env(
        cls,
        env: Mapping[str, str] | None = None,
        *,
        config_path: str | Path | None = None,
    ) -> "Settings":
        env = os.environ if env is None else env

        home = Path(env.get("GRAMMARKIT_HOME", "~/.local/share/grammarkit")).expanduser()
        cache = Path(env.get("GRAMMARKIT_CACHE", "~/.cache/grammarkit")).expanduser()

        config = Path(config_path or env.get("GRAMMARKIT_CONFIG", DEFAULT_CONFIG)).expanduser()
        lockfile = env.get("GRAMMARKIT_LOCKFILE")
        lockfile_p = Path(lockfile).expanduser() if lockfile else config.parent / "lockfile.json"

        # Tarball downloads are unreliable on Windows, default to git there
        default_git = "1" if platform.system() == "Windows" else "0"
        prefer_git = env.get("GRAMMARKIT_PREFER_GIT", default_git).strip().lower() in _TRUTHY

        return cls(
            home=home,
            cache_dir=cache,
            config_path=config,
            lockfile=lockfile_p,
            prefer_git=prefer_git,
            abi=env.get("GRAMMARKIT_ABI", DEFAULT_ABI),
            cc=env.get("CC") or None,
        )
