"""JSON report describing a single login attempt."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


@dataclass
class LoginAttemptReport:
    """Structured data produced by detection, entry and verification."""

    target_url: str = ""
    started_at: str = field(default_factory=_now)
    strategy: Optional[str] = None
    progressive: bool = False
    transition: Optional[str] = None
    detected_fields: Dict[str, str] = field(default_factory=dict)
    entry: Optional[Dict[str, Any]] = None
    verification: Optional[Dict[str, Any]] = None
    outcome: str = "not_started"
    final_url: Optional[str] = None
    screenshot: Optional[str] = None
    durations_ms: Dict[str, int] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.outcome == "success"

    def record_duration(self, stage: str, seconds: float) -> None:
        self.durations_ms[stage] = round(seconds * 1000)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target_url": self.target_url,
            "started_at": self.started_at,
            "outcome": self.outcome,
            "strategy": self.strategy,
            "progressive": self.progressive,
            "transition": self.transition,
            "detected_fields": dict(sorted(self.detected_fields.items())),
            "entry": self.entry,
            "verification": self.verification,
            "final_url": self.final_url,
            "screenshot": self.screenshot,
            "durations_ms": self.durations_ms,
            "errors": self.errors,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=4)

    def save(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_json(), encoding="utf-8")

    @classmethod
    def load(cls, path: Path) -> "LoginAttemptReport":
        raw = json.loads(path.read_text(encoding="utf-8"))
        return cls(
            target_url=raw.get("target_url", ""),
            started_at=raw.get("started_at", ""),
            strategy=raw.get("strategy"),
            progressive=bool(raw.get("progressive", False)),
            transition=raw.get("transition"),
            detected_fields=dict(raw.get("detected_fields", {})),
            entry=raw.get("entry"),
            verification=raw.get("verification"),
            outcome=raw.get("outcome", "not_started"),
            final_url=raw.get("final_url"),
            screenshot=raw.get("screenshot"),
            durations_ms=dict(raw.get("durations_ms", {})),
            errors=list(raw.get("errors", [])),
        )
