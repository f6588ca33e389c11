from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List

from .workspace import ValidationError


@dataclass(frozen=True)
class RepositoryRecord:
    source: str
    name: str
    folder: str


def read_repositories(lines: Iterable[str]) -> List[RepositoryRecord]:
    """Parse ``<source> <name> [<folder>]`` lines into validated records.

    ``#`` starts a comment that runs to the end of the line; blank lines are
    ignored. The whole stream is validated before anything is returned.
    """
    records: List[RepositoryRecord] = []
    seen: set[str] = set()
    for lineno, raw in enumerate(lines, start=1):
        fields = raw.split("#", 1)[0].split()
        if not fields:
            continue
        record = _parse_fields(fields, lineno)
        if record.name in seen:
            raise ValidationError(f"line {lineno}: duplicate repository name: {record.name}")
        seen.add(record.name)
        records.append(record)
    logging.debug("Read %d repository record(s)", len(records))
    return records


def _parse_fields(fields: List[str], lineno: int) -> RepositoryRecord:
    if len(fields) < 2:
        raise ValidationError(f"line {lineno}: pass REPOSITORY NAME pairs on stdin")
    if len(fields) > 3:
        raise ValidationError(
            f"line {lineno}: expected at most 3 fields, got {len(fields)}: {' '.join(fields)}"
        )
    source, name = fields[0], fields[1]
    if "/" in name:
        raise ValidationError(f"line {lineno}: forward slash '/' not supported in repo names: {name}")
    folder = fields[2] if len(fields) == 3 else name
    return RepositoryRecord(source=source, name=name, folder=folder)
