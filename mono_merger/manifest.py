from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Literal, Optional

from .workspace import MonoMergerError

StepKind = Literal["branch", "tag"]
StepStatus = Literal["pending", "in-progress", "done", "skipped"]

FINISHED: tuple[str, ...] = ("done", "skipped")


class RunManifest:
    """Per-repository, per-step progress of a migration, persisted as JSON.

    Every status change is written straight away so an interrupted run leaves
    an accurate record of the step that was in flight.
    """

    def __init__(self, manifest_path: Path) -> None:
        self.path = manifest_path
        self.repositories: Dict[str, Dict] = {}
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            data = json.loads(self.path.read_text())
        except json.JSONDecodeError as exc:
            raise MonoMergerError(f"Run manifest is corrupt: {self.path}") from exc
        for entry in data.get("repositories", []):
            self.repositories[entry["name"]] = entry

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"repositories": list(self.repositories.values())}
        self.path.write_text(json.dumps(payload, indent=2))

    # Repositories ---------------------------------------------------------
    def _repository(self, name: str) -> Dict:
        return self.repositories.setdefault(
            name, {"name": name, "source": "", "completed": False, "steps": {}}
        )

    def start_repository(self, name: str, source: str) -> None:
        entry = self._repository(name)
        entry["source"] = source
        self.save()

    def complete_repository(self, name: str) -> None:
        self._repository(name)["completed"] = True
        self.save()

    def is_repository_complete(self, name: str) -> bool:
        return bool(self.repositories.get(name, {}).get("completed"))

    # Steps ----------------------------------------------------------------
    @staticmethod
    def step_key(kind: StepKind, ref: str) -> str:
        return f"{kind}:{ref}"

    def status(self, repository: str, kind: StepKind, ref: str) -> StepStatus:
        steps = self.repositories.get(repository, {}).get("steps", {})
        step = steps.get(self.step_key(kind, ref))
        return step["status"] if step else "pending"

    def is_finished(self, repository: str, kind: StepKind, ref: str) -> bool:
        return self.status(repository, kind, ref) in FINISHED

    def mark(
        self,
        repository: str,
        kind: StepKind,
        ref: str,
        status: StepStatus,
        message: str = "",
    ) -> None:
        steps = self._repository(repository)["steps"]
        steps[self.step_key(kind, ref)] = {
            "kind": kind,
            "ref": ref,
            "status": status,
            "message": message,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        logging.debug("Manifest: %s %s:%s -> %s", repository, kind, ref, status)
        self.save()

    def in_progress(self) -> List[tuple[str, StepKind, str]]:
        found: List[tuple[str, StepKind, str]] = []
        for name, entry in self.repositories.items():
            for step in entry.get("steps", {}).values():
                if step["status"] == "in-progress":
                    found.append((name, step["kind"], step["ref"]))
        return found

    def lookup(self, repository: str) -> Optional[Dict]:
        return self.repositories.get(repository)
