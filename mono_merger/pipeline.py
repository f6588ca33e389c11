from __future__ import annotations

import logging
from typing import Optional

from .classifier import BranchRef
from .gitutils import SCRATCH_BRANCH, GitEngine


def root_commit_message(branch: str) -> str:
    return f"Root commit for {branch} branch"


def merge_commit_message(repository: str, branch: str) -> str:
    return f"Merging {repository} into {branch}"


def namespaced_tag(repository: str, tag: str) -> str:
    return f"{repository}/{tag}"


def is_namespaced(tag: str) -> bool:
    return "/" in tag


def checkout_clean(engine: GitEngine, ref: str, *, detach: bool = False) -> None:
    engine.checkout(ref, detach=detach)
    engine.reset_hard()
    engine.clean()


def ensure_monorepo_branch(engine: GitEngine, branch: str) -> None:
    """Check out ``branch``, creating it as an orphan with an empty root commit."""
    if engine.branch_exists(branch):
        checkout_clean(engine, branch)
        return
    logging.info("Creating monorepo branch %s", branch)
    engine.checkout_orphan(branch)
    engine.remove_all()
    engine.clean()
    engine.commit(root_commit_message(branch))


def drop_scratch_branch(engine: GitEngine) -> None:
    if engine.branch_exists(SCRATCH_BRANCH):
        logging.debug("Removing scratch branch %s", SCRATCH_BRANCH)
        engine.delete_branch(SCRATCH_BRANCH)


def rewrite_into_scratch(engine: GitEngine, ref: str, folder: str) -> None:
    """Copy ``ref`` into the scratch branch and move its whole history under ``folder/``."""
    drop_scratch_branch(engine)
    checkout_clean(engine, ref, detach=True)
    engine.create_branch(SCRATCH_BRANCH)
    engine.rewrite_paths(SCRATCH_BRANCH, folder)
    # filter-repo leaves the old paths in the index for a partial rewrite
    engine.reset_hard()
    engine.clean()


def merge_branch(engine: GitEngine, branch: BranchRef, folder: str) -> None:
    ensure_monorepo_branch(engine, branch.branch)
    rewrite_into_scratch(engine, f"refs/remotes/{branch.remote_ref}", folder)

    checkout_clean(engine, branch.branch)
    engine.merge(SCRATCH_BRANCH)
    engine.commit(merge_commit_message(branch.repository, branch.branch))
    engine.reset_hard()
    engine.clean()
    engine.delete_branch(SCRATCH_BRANCH)
    logging.info("Merged %s into %s under %s/", branch.remote_ref, branch.branch, folder)


def merge_tag(engine: GitEngine, tag: str, repository: str, folder: str) -> Optional[str]:
    """Rewrite ``tag`` under ``folder/`` and re-tag it as ``<repository>/<tag>``.

    Tags already containing a ``/`` are treated as processed and left alone;
    ``None`` is returned for them.
    """
    if is_namespaced(tag):
        logging.debug("Didn't update %s (already namespaced)", tag)
        return None

    target = namespaced_tag(repository, tag)
    rewrite_into_scratch(engine, f"refs/tags/{tag}", folder)
    engine.create_tag(target, SCRATCH_BRANCH)
    engine.delete_tag(tag)
    checkout_clean(engine, f"refs/tags/{target}", detach=True)
    engine.delete_branch(SCRATCH_BRANCH)
    logging.info("Updated %s to %s", tag, target)
    return target
