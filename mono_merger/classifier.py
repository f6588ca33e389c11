"""
Branch classification: decide whether a fetched branch needs merging.

Trunks (develop, master, release lines) are always re-merged. Feature branches
are skipped once develop contains them; any other branch is skipped once
master or develop contains it, since its history arrives with that trunk.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Literal, Tuple

from .gitutils import GitEngine

BranchKind = Literal["feature", "develop", "master", "release", "other"]
MergeDecision = Literal["merge", "skip"]

# Checked in order against the short branch name (case-sensitive substring).
KIND_PRECEDENCE: Tuple[BranchKind, ...] = ("feature", "develop", "master", "release")

# Trunks a branch of each kind is tested against; empty means always merge.
INTEGRATION_TRUNKS: Dict[BranchKind, Tuple[str, ...]] = {
    "feature": ("develop",),
    "develop": (),
    "master": (),
    "release": (),
    "other": ("master", "develop"),
}


@dataclass(frozen=True)
class BranchRef:
    repository: str
    branch: str

    @property
    def remote_ref(self) -> str:
        return f"{self.repository}/{self.branch}"


@dataclass(frozen=True)
class Classification:
    branch: BranchRef
    kind: BranchKind
    decision: MergeDecision
    reason: str

    @property
    def should_merge(self) -> bool:
        return self.decision == "merge"


def parse_branch_kind(branch: str) -> BranchKind:
    for kind in KIND_PRECEDENCE:
        if kind in branch:
            return kind
    return "other"


def is_integrated(engine: GitEngine, trunk: str, ref: str) -> bool:
    """True when merge-base(trunk, ref) is ref's tip, i.e. trunk already has ref."""
    tip = engine.rev_parse(ref)
    engine.rev_parse(trunk)
    return engine.merge_base(trunk, ref) == tip


def should_merge(engine: GitEngine, branch: BranchRef) -> Classification:
    kind = parse_branch_kind(branch.branch)
    trunks = INTEGRATION_TRUNKS[kind]
    if not trunks:
        result = Classification(branch, kind, "merge", f"{kind} branches are always merged")
        _log(result)
        return result

    result = Classification(branch, kind, "merge", f"not merged into {' or '.join(trunks)}")
    for trunk in trunks:
        trunk_ref = f"refs/remotes/{branch.repository}/{trunk}"
        if is_integrated(engine, trunk_ref, f"refs/remotes/{branch.remote_ref}"):
            result = Classification(branch, kind, "skip", f"already merged into {trunk}")
            break
    _log(result)
    return result


def _log(result: Classification) -> None:
    logging.info(
        "%s %s: %s (%s)",
        "Merging" if result.should_merge else "Skipping",
        result.branch.remote_ref,
        result.kind,
        result.reason,
    )
