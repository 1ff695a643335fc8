from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path

from qualitysync.core.metadata import AttemptOutcome


class AttemptAuditLogger:
    """Appends one JSON line per finished convergence attempt."""

    def __init__(self, root: str | Path = "artifacts") -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self.attempts_path = self.root / "attempts.jsonl"

    def write(self, outcome: AttemptOutcome) -> None:
        payload = {
            "recorded_at": datetime.now(UTC).isoformat(),
            "target_quality": outcome.target_quality,
            "reason": outcome.reason,
            "converged": outcome.converged,
            "applied_option": outcome.applied_option,
            "activations": outcome.activations,
            "states": [state.value for state in outcome.states],
        }
        with self.attempts_path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(payload) + "\n")

    def read_all(self) -> list[dict]:
        if not self.attempts_path.exists():
            return []
        with self.attempts_path.open("r", encoding="utf-8") as handle:
            return [json.loads(line) for line in handle if line.strip()]
