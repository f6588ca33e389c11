from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from .gitutils import GitEngine


class MonoMergerError(Exception):
    """Base exception for monorepo migration errors."""


class ValidationError(MonoMergerError):
    """Raised for malformed repository records."""


class PreconditionError(MonoMergerError):
    """Raised when the monorepo directory or toolchain is not in the expected state."""


class GitCommandError(MonoMergerError):
    """Raised when a git (or git filter-repo) invocation fails."""

    def __init__(
        self, args: Sequence[str], stderr: str = "", returncode: int | None = None
    ) -> None:
        self.command = list(args)
        self.stderr = stderr.strip()
        self.returncode = returncode
        detail = f": {self.stderr}" if self.stderr else ""
        super().__init__(f"git {' '.join(self.command)} failed{detail}")


def prepare_monorepo(monorepo_dir: Path, engine: GitEngine, *, resume: bool = False) -> Path:
    """Create (or attach to, with ``resume``) the monorepo directory.

    A fresh run refuses to touch an existing directory; a resumed run refuses
    to start when there is nothing to resume.
    """
    monorepo_dir = monorepo_dir.expanduser()
    if resume:
        if not monorepo_dir.is_dir():
            raise PreconditionError(
                f"--continue specified, but nothing to resume at {monorepo_dir}"
            )
        if not (monorepo_dir / ".git").is_dir():
            raise PreconditionError(
                f"Existing monorepo directory is not a git repository: {monorepo_dir}"
            )
        logging.info("Resuming migration in %s", monorepo_dir)
        return monorepo_dir

    if monorepo_dir.exists():
        raise PreconditionError(f"Target repository directory {monorepo_dir} already exists.")
    monorepo_dir.mkdir(parents=True)
    engine.init()
    logging.info("Initialized monorepo at %s", monorepo_dir)
    return monorepo_dir


def ensure_filter_repo() -> None:
    if shutil.which("git-filter-repo") is None:
        raise PreconditionError(
            "git-filter-repo not found in PATH; install it to rewrite history."
        )
