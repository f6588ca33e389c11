from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List

from .gitutils import GitEngine
from .manifest import RunManifest, StepKind, StepStatus
from .pipeline import drop_scratch_branch, merge_commit_message, namespaced_tag


@dataclass
class RecoveryResult:
    repository: str
    kind: StepKind
    ref: str
    status: str
    message: str = ""


def repair_interrupted_run(engine: GitEngine, manifest: RunManifest) -> List[RecoveryResult]:
    """Bring the monorepo back to a clean state before ``--continue`` proceeds.

    Any half-applied merge is aborted and the scratch branch dropped. Steps the
    manifest still lists as in progress are settled: ``done`` when their
    result is already visible in the refs, otherwise ``pending`` so they run
    again.
    """
    _restore_clean_tree(engine)
    results: List[RecoveryResult] = []
    for repository, kind, ref in manifest.in_progress():
        if kind == "branch":
            result = _settle_branch(engine, manifest, repository, ref)
        else:
            result = _settle_tag(engine, manifest, repository, ref)
        logging.info(
            "Recovered interrupted %s %s from %s: %s (%s)",
            kind,
            ref,
            repository,
            result.status,
            result.message,
        )
        results.append(result)
    return results


def _restore_clean_tree(engine: GitEngine) -> None:
    if engine.merge_in_progress():
        logging.warning("Aborting half-applied merge left by the interrupted run")
        engine.abort_merge()
    if engine.ref_exists("HEAD"):
        engine.checkout("HEAD", detach=True)
        engine.reset_hard()
        engine.clean()
    drop_scratch_branch(engine)


def _settle_branch(
    engine: GitEngine, manifest: RunManifest, repository: str, branch: str
) -> RecoveryResult:
    message = merge_commit_message(repository, branch)
    status: StepStatus
    if engine.branch_exists(branch) and engine.head_subject(branch) == message:
        status, reason = "done", "merge commit already recorded"
    else:
        status, reason = "pending", "interrupted before the merge commit"
    manifest.mark(repository, "branch", branch, status, reason)
    return RecoveryResult(repository, "branch", branch, status, reason)


def _settle_tag(
    engine: GitEngine, manifest: RunManifest, repository: str, tag: str
) -> RecoveryResult:
    target = namespaced_tag(repository, tag)
    if not engine.ref_exists(f"refs/tags/{target}"):
        reason = "namespaced tag missing"
        manifest.mark(repository, "tag", tag, "pending", reason)
        return RecoveryResult(repository, "tag", tag, "pending", reason)
    if engine.ref_exists(f"refs/tags/{tag}"):
        engine.delete_tag(tag)
    manifest.mark(repository, "tag", tag, "done", target)
    return RecoveryResult(repository, "tag", tag, "done", target)
