from __future__ import annotations

import json
import logging
from collections import Counter
from dataclasses import asdict
from pathlib import Path
from typing import Sequence

from .runner import StepResult


def summarize_cli(results: Sequence[StepResult]) -> str:
    stats: Counter[str] = Counter(f"{result.kind}-{result.status}" for result in results)
    repositories = {result.repository for result in results}
    categories = [
        ("Repositories", len(repositories), "repositories processed in this run"),
        ("Branches merged", stats.get("branch-merged", 0), "merge commits added to the monorepo"),
        ("Branches skipped", stats.get("branch-skipped", 0), "already contained in a trunk"),
        ("Branches resumed", stats.get("branch-resumed", 0), "finished by a previous run"),
        ("Tags renamed", stats.get("tag-renamed", 0), "rewritten into a repository namespace"),
        ("Tags resumed", stats.get("tag-resumed", 0), "renamed by a previous run"),
    ]

    title = "Migration Summary"
    lines = ["", title, "-" * len(title)]
    width = max(len(label) for label, _, _ in categories)
    for label, value, description in categories:
        lines.append(f"{label:<{width}} : {value} ({description})")
    return "\n".join(lines)


def write_run_report(report_path: Path, results: Sequence[StepResult]) -> None:
    payload = {"steps": [asdict(result) for result in results]}
    report_path.write_text(json.dumps(payload, indent=2))
    logging.info("Wrote run report to %s", report_path)
