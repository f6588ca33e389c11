from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Sequence

from .catalog import RepositoryRecord
from .classifier import BranchRef, should_merge
from .gitutils import GitEngine
from .manifest import RunManifest, StepKind
from .pipeline import checkout_clean, is_namespaced, merge_branch, merge_tag, namespaced_tag
from .recovery import repair_interrupted_run

PRIMARY_TRUNK = "master"


@dataclass
class StepResult:
    repository: str
    kind: StepKind
    ref: str
    status: str
    message: str = ""


def run_migration(
    engine: GitEngine,
    records: Sequence[RepositoryRecord],
    manifest: RunManifest,
    *,
    resume: bool = False,
) -> List[StepResult]:
    if resume:
        recovered = repair_interrupted_run(engine, manifest)
        logging.info("Recovery settled %d interrupted step(s)", len(recovered))

    results: List[StepResult] = []
    for record in records:
        if resume and manifest.is_repository_complete(record.name):
            logging.info("Skipping %s; already migrated by a previous run", record.name)
            continue
        results.extend(migrate_repository(engine, record, manifest))

    finish_run(engine)
    return results


def migrate_repository(
    engine: GitEngine, record: RepositoryRecord, manifest: RunManifest
) -> List[StepResult]:
    logging.info("Merging in %s..", record.source)
    manifest.start_repository(record.name, record.source)
    if engine.has_remote(record.name):
        logging.info("Remote %s already registered", record.name)
    else:
        engine.add_remote(record.name, record.source)
    logging.info("Fetching %s..", record.name)
    engine.fetch(record.name)

    results: List[StepResult] = []
    for branch in engine.remote_branches(record.name):
        results.append(_migrate_branch(engine, BranchRef(record.name, branch), record, manifest))
    for tag in engine.tags():
        if is_namespaced(tag):
            logging.debug("Didn't update %s", tag)
            continue
        results.append(_migrate_tag(engine, tag, record, manifest))

    manifest.complete_repository(record.name)
    return results


def _migrate_branch(
    engine: GitEngine,
    branch: BranchRef,
    record: RepositoryRecord,
    manifest: RunManifest,
) -> StepResult:
    if manifest.is_finished(record.name, "branch", branch.branch):
        logging.info("Skipping %s; finished by a previous run", branch.remote_ref)
        return StepResult(record.name, "branch", branch.branch, "resumed", "finished earlier")

    classification = should_merge(engine, branch)
    if not classification.should_merge:
        manifest.mark(record.name, "branch", branch.branch, "skipped", classification.reason)
        return StepResult(record.name, "branch", branch.branch, "skipped", classification.reason)

    manifest.mark(record.name, "branch", branch.branch, "in-progress")
    merge_branch(engine, branch, record.folder)
    manifest.mark(record.name, "branch", branch.branch, "done", classification.reason)
    return StepResult(record.name, "branch", branch.branch, "merged", classification.reason)


def _migrate_tag(
    engine: GitEngine, tag: str, record: RepositoryRecord, manifest: RunManifest
) -> StepResult:
    renamed = namespaced_tag(record.name, tag)
    if engine.ref_exists(f"refs/tags/{renamed}"):
        # fetch --tags brings back originals a previous run already renamed
        logging.info("Dropping re-fetched tag %s; %s already exists", tag, renamed)
        engine.delete_tag(tag)
        manifest.mark(record.name, "tag", tag, "done", renamed)
        return StepResult(record.name, "tag", tag, "resumed", renamed)

    manifest.mark(record.name, "tag", tag, "in-progress")
    target = merge_tag(engine, tag, record.name, record.folder)
    manifest.mark(record.name, "tag", tag, "done", target or "")
    return StepResult(record.name, "tag", tag, "renamed", target or "")


def finish_run(engine: GitEngine) -> None:
    """Leave the monorepo on the primary trunk with a clean working tree."""
    if not engine.branch_exists(PRIMARY_TRUNK):
        logging.warning("No %s branch in the monorepo; leaving HEAD where it is", PRIMARY_TRUNK)
        return
    checkout_clean(engine, PRIMARY_TRUNK)
    logging.info("Checked out %s", PRIMARY_TRUNK)
