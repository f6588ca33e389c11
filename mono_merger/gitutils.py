from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Sequence

from .workspace import GitCommandError

SCRATCH_BRANCH = "temp-munge-branch"


def run_git(
    repo: Path, args: Sequence[str], *, env: Dict[str, str] | None = None
) -> subprocess.CompletedProcess:
    return subprocess.run(
        ["git", "-C", str(repo)] + list(args),
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        env=env,
    )


class GitEngine(Protocol):
    """The git primitives the classifier, pipeline and run controller rely on."""

    def init(self) -> None: ...

    def add_remote(self, name: str, url: str) -> None: ...

    def has_remote(self, name: str) -> bool: ...

    def fetch(self, remote: str) -> None: ...

    def remote_branches(self, remote: str) -> List[str]: ...

    def tags(self) -> List[str]: ...

    def rev_parse(self, ref: str) -> str: ...

    def ref_exists(self, ref: str) -> bool: ...

    def branch_exists(self, branch: str) -> bool: ...

    def merge_base(self, first: str, second: str) -> Optional[str]: ...

    def checkout(self, ref: str, *, detach: bool = False) -> None: ...

    def checkout_orphan(self, branch: str) -> None: ...

    def create_branch(self, branch: str) -> None: ...

    def delete_branch(self, branch: str) -> None: ...

    def reset_hard(self) -> None: ...

    def clean(self) -> None: ...

    def remove_all(self) -> None: ...

    def commit(self, message: str) -> None: ...

    def merge(self, ref: str) -> None: ...

    def merge_in_progress(self) -> bool: ...

    def abort_merge(self) -> None: ...

    def rewrite_paths(self, ref: str, folder: str) -> None: ...

    def create_tag(self, name: str, target: str) -> None: ...

    def delete_tag(self, name: str) -> None: ...

    def head_subject(self, ref: str) -> str: ...


class SubprocessGit:
    """`GitEngine` backed by the ``git`` and ``git filter-repo`` executables."""

    def __init__(self, repo: Path, *, tmpdir: Path | None = None) -> None:
        self.repo = repo
        self.tmpdir = tmpdir

    # Plumbing -------------------------------------------------------------
    def _env(self) -> Dict[str, str] | None:
        if self.tmpdir is None:
            return None
        env = os.environ.copy()
        env["TMPDIR"] = str(self.tmpdir)
        return env

    def _call(self, args: Sequence[str]) -> subprocess.CompletedProcess:
        logging.debug("git %s", " ".join(args))
        return run_git(self.repo, args, env=self._env())

    def _run(self, args: Sequence[str]) -> str:
        result = self._call(args)
        if result.returncode != 0:
            raise GitCommandError(args, result.stderr, result.returncode)
        return result.stdout

    def _list_refs(self, prefix: str) -> List[str]:
        output = self._run(["for-each-ref", "--format=%(refname)", prefix])
        names = []
        for line in output.splitlines():
            line = line.strip()
            if line.startswith(prefix):
                names.append(line[len(prefix):])
        return names

    # Remotes --------------------------------------------------------------
    def init(self) -> None:
        self._run(["init", "-q"])

    def add_remote(self, name: str, url: str) -> None:
        self._run(["remote", "add", name, url])

    def has_remote(self, name: str) -> bool:
        return name in self._run(["remote"]).split()

    def fetch(self, remote: str) -> None:
        self._run(["fetch", "-q", remote, "--tags"])

    def remote_branches(self, remote: str) -> List[str]:
        return [
            name
            for name in self._list_refs(f"refs/remotes/{remote}/")
            if name != "HEAD"
        ]

    def tags(self) -> List[str]:
        return self._list_refs("refs/tags/")

    # Refs -----------------------------------------------------------------
    def rev_parse(self, ref: str) -> str:
        return self._run(["rev-parse", "--verify", "-q", f"{ref}^{{commit}}"]).strip()

    def ref_exists(self, ref: str) -> bool:
        result = self._call(["rev-parse", "--verify", "-q", f"{ref}^{{commit}}"])
        return result.returncode == 0

    def branch_exists(self, branch: str) -> bool:
        return self.ref_exists(f"refs/heads/{branch}")

    def merge_base(self, first: str, second: str) -> Optional[str]:
        args = ["merge-base", first, second]
        result = self._call(args)
        if result.returncode == 0:
            return result.stdout.strip()
        if result.returncode == 1 and not result.stderr.strip():
            return None  # unrelated histories
        raise GitCommandError(args, result.stderr, result.returncode)

    def head_subject(self, ref: str) -> str:
        return self._run(["log", "-1", "--format=%s", ref]).strip()

    # Working tree ---------------------------------------------------------
    def checkout(self, ref: str, *, detach: bool = False) -> None:
        args = ["checkout", "-q", "-f"]
        if detach:
            args.append("--detach")
        self._run(args + [ref])

    def checkout_orphan(self, branch: str) -> None:
        self._run(["checkout", "-q", "--orphan", branch])

    def create_branch(self, branch: str) -> None:
        self._run(["checkout", "-q", "-b", branch])

    def delete_branch(self, branch: str) -> None:
        self._run(["branch", "-q", "-D", branch])

    def reset_hard(self) -> None:
        self._run(["reset", "-q", "--hard"])

    def clean(self) -> None:
        self._run(["clean", "-q", "-f", "-d"])

    def remove_all(self) -> None:
        self._run(["rm", "-r", "-f", "-q", "--ignore-unmatch", "."])

    def commit(self, message: str) -> None:
        self._run(["commit", "-q", "--no-verify", "--allow-empty", "-m", message])

    def merge(self, ref: str) -> None:
        self._run(
            ["merge", "-q", "--no-ff", "--no-commit", "--allow-unrelated-histories", ref]
        )

    def merge_in_progress(self) -> bool:
        return self.ref_exists("MERGE_HEAD")

    def abort_merge(self) -> None:
        self._run(["merge", "--abort"])

    # History rewriting ----------------------------------------------------
    def rewrite_paths(self, ref: str, folder: str) -> None:
        # each rewrite is an independent filtering run over a fresh scratch ref
        (self.repo / ".git" / "filter-repo" / "already_ran").unlink(missing_ok=True)
        self._run(
            ["filter-repo", "--force", "--quiet", "--path-rename", f":{folder}/", "--refs", ref]
        )

    # Tags -----------------------------------------------------------------
    def create_tag(self, name: str, target: str) -> None:
        self._run(["tag", name, target])

    def delete_tag(self, name: str) -> None:
        self._run(["tag", "-d", name])
