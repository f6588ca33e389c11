from __future__ import annotations

import hashlib
import os
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

import pytest

from mono_merger.workspace import GitCommandError


@dataclass
class FakeCommit:
    sha: str
    parents: Tuple[str, ...]
    files: Dict[str, str]
    message: str


@dataclass
class FakeSource:
    branches: Dict[str, str] = field(default_factory=dict)
    tags: Dict[str, str] = field(default_factory=dict)


class FakeGit:
    """In-memory `GitEngine`: commits, refs, one working tree, no untracked files."""

    def __init__(self) -> None:
        self.commits: Dict[str, FakeCommit] = {}
        self.refs: Dict[str, str] = {}
        self.remotes: Dict[str, str] = {}
        self.sources: Dict[str, FakeSource] = {}
        self.head_branch: Optional[str] = None
        self.head_sha: Optional[str] = None
        self.files: Dict[str, str] = {}
        self.merge_head: Optional[str] = None
        self.calls: List[Tuple] = []
        self.initialized = False
        # a call name, or a call prefix such as ("create_tag", "svc1/v2")
        self.fail_on: Union[str, Tuple, None] = None
        self._rewritten: Dict[Tuple[str, str], str] = {}

    # Test helpers ---------------------------------------------------------
    def make_commit(
        self,
        files: Dict[str, str],
        parents: Sequence[str] = (),
        message: str = "commit",
    ) -> str:
        digest = hashlib.sha1(
            repr((sorted(files.items()), tuple(parents), message)).encode("utf-8")
        ).hexdigest()
        self.commits.setdefault(digest, FakeCommit(digest, tuple(parents), dict(files), message))
        return digest

    def source(self, url: str) -> FakeSource:
        return self.sources.setdefault(url, FakeSource())

    def branch_commits(self, branch: str) -> List[FakeCommit]:
        return [self.commits[sha] for sha in self._ancestors(self.refs[f"refs/heads/{branch}"])]

    def tip(self, ref: str) -> FakeCommit:
        return self.commits[self._resolve_or_fail(ref)]

    # Internals ------------------------------------------------------------
    def _record(self, *call: object) -> None:
        self.calls.append(call)
        target = (self.fail_on,) if isinstance(self.fail_on, str) else self.fail_on
        if target and call[: len(target)] == target:
            raise GitCommandError([str(part) for part in call], "injected failure", 1)

    def _resolve(self, ref: str) -> Optional[str]:
        if ref == "HEAD":
            return self.head_sha
        if ref == "MERGE_HEAD":
            return self.merge_head
        for candidate in (ref, f"refs/heads/{ref}", f"refs/tags/{ref}", f"refs/remotes/{ref}"):
            if candidate in self.refs:
                return self.refs[candidate]
        if ref in self.commits:
            return ref
        return None

    def _resolve_or_fail(self, ref: str) -> str:
        sha = self._resolve(ref)
        if sha is None:
            raise GitCommandError(["rev-parse", ref], f"fatal: bad revision '{ref}'", 128)
        return sha

    def _ancestors(self, sha: str) -> List[str]:
        order: List[str] = []
        queue = [sha]
        while queue:
            current = queue.pop(0)
            if current in order:
                continue
            order.append(current)
            queue.extend(self.commits[current].parents)
        return order

    def _set_head(self, branch: Optional[str], sha: Optional[str]) -> None:
        self.head_branch = branch
        self.head_sha = sha
        self.files = dict(self.commits[sha].files) if sha else {}

    # GitEngine ------------------------------------------------------------
    def init(self) -> None:
        self._record("init")
        self.initialized = True
        self.head_branch = "master"

    def add_remote(self, name: str, url: str) -> None:
        self._record("add_remote", name, url)
        if name in self.remotes:
            raise GitCommandError(["remote", "add", name, url], "remote already exists", 3)
        self.remotes[name] = url

    def has_remote(self, name: str) -> bool:
        return name in self.remotes

    def fetch(self, remote: str) -> None:
        self._record("fetch", remote)
        source = self.sources[self.remotes[remote]]
        for branch, sha in source.branches.items():
            self.refs[f"refs/remotes/{remote}/{branch}"] = sha
        for tag, sha in source.tags.items():
            self.refs[f"refs/tags/{tag}"] = sha

    def remote_branches(self, remote: str) -> List[str]:
        prefix = f"refs/remotes/{remote}/"
        return sorted(ref[len(prefix):] for ref in self.refs if ref.startswith(prefix))

    def tags(self) -> List[str]:
        prefix = "refs/tags/"
        return sorted(ref[len(prefix):] for ref in self.refs if ref.startswith(prefix))

    def rev_parse(self, ref: str) -> str:
        self._record("rev_parse", ref)
        return self._resolve_or_fail(ref)

    def ref_exists(self, ref: str) -> bool:
        return self._resolve(ref) is not None

    def branch_exists(self, branch: str) -> bool:
        return f"refs/heads/{branch}" in self.refs

    def merge_base(self, first: str, second: str) -> Optional[str]:
        self._record("merge_base", first, second)
        first_ancestors = set(self._ancestors(self._resolve_or_fail(first)))
        for sha in self._ancestors(self._resolve_or_fail(second)):
            if sha in first_ancestors:
                return sha
        return None

    def head_subject(self, ref: str) -> str:
        return self.commits[self._resolve_or_fail(ref)].message

    def checkout(self, ref: str, *, detach: bool = False) -> None:
        self._record("checkout", ref, detach)
        sha = self._resolve_or_fail(ref)
        branch = None
        if not detach and f"refs/heads/{ref}" in self.refs:
            branch = ref
        self.merge_head = None
        self._set_head(branch, sha)

    def checkout_orphan(self, branch: str) -> None:
        self._record("checkout_orphan", branch)
        self.head_branch = branch
        self.head_sha = None

    def create_branch(self, branch: str) -> None:
        self._record("create_branch", branch)
        if f"refs/heads/{branch}" in self.refs:
            raise GitCommandError(["checkout", "-b", branch], "branch already exists", 128)
        self.refs[f"refs/heads/{branch}"] = self.head_sha
        self.head_branch = branch

    def delete_branch(self, branch: str) -> None:
        self._record("delete_branch", branch)
        if self.head_branch == branch:
            raise GitCommandError(["branch", "-D", branch], "cannot delete checked out branch", 1)
        del self.refs[f"refs/heads/{branch}"]

    def reset_hard(self) -> None:
        self._record("reset_hard")
        self.merge_head = None
        self.files = dict(self.commits[self.head_sha].files) if self.head_sha else {}

    def clean(self) -> None:
        self._record("clean")

    def remove_all(self) -> None:
        self._record("remove_all")
        self.files = {}

    def commit(self, message: str) -> None:
        self._record("commit", message)
        parents = tuple(sha for sha in (self.head_sha, self.merge_head) if sha)
        sha = self.make_commit(self.files, parents, message)
        self.merge_head = None
        self.head_sha = sha
        if self.head_branch:
            self.refs[f"refs/heads/{self.head_branch}"] = sha

    def merge(self, ref: str) -> None:
        self._record("merge", ref)
        theirs = self.commits[self._resolve_or_fail(ref)].files
        for path, content in theirs.items():
            if path in self.files and self.files[path] != content:
                self.merge_head = self._resolve(ref)
                raise GitCommandError(["merge", ref], f"CONFLICT (add/add): {path}", 1)
        self.files.update(theirs)
        self.merge_head = self._resolve(ref)

    def merge_in_progress(self) -> bool:
        return self.merge_head is not None

    def abort_merge(self) -> None:
        self._record("abort_merge")
        self.reset_hard()

    def rewrite_paths(self, ref: str, folder: str) -> None:
        self._record("rewrite_paths", ref, folder)
        full = ref if ref.startswith("refs/") else f"refs/heads/{ref}"
        self.refs[full] = self._rewrite(self.refs[full], folder)
        if self.head_branch and full == f"refs/heads/{self.head_branch}":
            self.head_sha = self.refs[full]

    def _rewrite(self, sha: str, folder: str) -> str:
        key = (sha, folder)
        if key not in self._rewritten:
            original = self.commits[sha]
            parents = tuple(self._rewrite(parent, folder) for parent in original.parents)
            files = {f"{folder}/{path}": content for path, content in original.files.items()}
            self._rewritten[key] = self.make_commit(files, parents, original.message)
        return self._rewritten[key]

    def create_tag(self, name: str, target: str) -> None:
        self._record("create_tag", name, target)
        if f"refs/tags/{name}" in self.refs:
            raise GitCommandError(["tag", name, target], "tag already exists", 128)
        self.refs[f"refs/tags/{name}"] = self._resolve_or_fail(target)

    def delete_tag(self, name: str) -> None:
        self._record("delete_tag", name)
        del self.refs[f"refs/tags/{name}"]


def add_source_branches(fake: FakeGit, url: str, layout: Dict[str, List[Dict[str, str]]]) -> None:
    """Build linear branches in a fake source repo from lists of file snapshots."""
    source = fake.source(url)
    for branch, snapshots in layout.items():
        parent: Tuple[str, ...] = ()
        sha = ""
        for index, files in enumerate(snapshots):
            sha = fake.make_commit(files, parent, f"{url} {branch} {index}")
            parent = (sha,)
        source.branches[branch] = sha


# Real git helpers ----------------------------------------------------------

requires_filter_repo = pytest.mark.skipif(
    shutil.which("git-filter-repo") is None or shutil.which("git") is None,
    reason="git and git-filter-repo are required",
)


def git_env() -> Dict[str, str]:
    env = os.environ.copy()
    env.setdefault("GIT_AUTHOR_NAME", "mono-merger")
    env.setdefault("GIT_AUTHOR_EMAIL", "mono-merger@example.com")
    env.setdefault("GIT_COMMITTER_NAME", env["GIT_AUTHOR_NAME"])
    env.setdefault("GIT_COMMITTER_EMAIL", env["GIT_AUTHOR_EMAIL"])
    return env


def run_git(args: List[str], cwd: Path) -> str:
    result = subprocess.run(
        ["git", *args],
        cwd=str(cwd),
        check=True,
        env=git_env(),
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    )
    return result.stdout


def init_repo(path: Path, branch: str = "master") -> Path:
    path.mkdir(parents=True, exist_ok=True)
    run_git(["init", "-q"], path)
    run_git(["symbolic-ref", "HEAD", f"refs/heads/{branch}"], path)
    return path


def commit_file(path: Path, filename: str, content: str) -> str:
    target = path / filename
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content)
    run_git(["add", filename], path)
    run_git(["commit", "-q", "-m", f"{filename}: {content}"], path)
    return run_git(["rev-parse", "HEAD"], path).strip()
