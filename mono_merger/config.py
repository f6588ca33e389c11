"""Environment-driven settings for a migration run."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

DEFAULT_MONOREPO_NAME = "core"


@dataclass(frozen=True)
class Settings:
    monorepo_name: str
    monorepo_dir: Path
    git_tmpdir: Optional[Path] = None

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        cwd: Path | None = None,
    ) -> "Settings":
        """Read ``MONOREPO_NAME`` and ``GIT_TMPDIR``.

        The monorepo lives in ``<cwd>/<MONOREPO_NAME>``; an empty
        ``GIT_TMPDIR`` is treated as unset.
        """
        environ = os.environ if environ is None else environ
        cwd = Path.cwd() if cwd is None else cwd
        name = environ.get("MONOREPO_NAME") or DEFAULT_MONOREPO_NAME
        tmpdir = environ.get("GIT_TMPDIR")
        return cls(
            monorepo_name=name,
            monorepo_dir=cwd / name,
            git_tmpdir=Path(tmpdir).expanduser() if tmpdir else None,
        )

    @property
    def manifest_path(self) -> Path:
        return self.monorepo_dir / ".git" / "mono-merger" / "manifest.json"
