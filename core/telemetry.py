# ABOUTME: View telemetry: one structured JSON log line per dashboard/analytics computation.
# ABOUTME: Records latency and input sizes so slow or failing views are visible in stdout logs.

import json
from dataclasses import dataclass
from datetime import datetime, timezone


@dataclass
class TelemetryLogEntry:
    """Structured telemetry entry for one view computation."""

    timestamp: str
    view: str
    latency_ms: float
    goals: int | None
    sessions: int
    success: bool

    def to_json(self) -> str:
        return json.dumps(
            {
                "timestamp": self.timestamp,
                "view": self.view,
                "latency_ms": round(self.latency_ms, 2),
                "goals": self.goals,
                "sessions": self.sessions,
                "success": self.success,
            }
        )


def log_view(
    *,
    view: str,
    latency_ms: float,
    goals: int | None,
    sessions: int,
    success: bool,
) -> None:
    """Print a structured JSON log line to stdout for one view computation.

    goals is None for views that do not load goals.
    """
    entry = TelemetryLogEntry(
        timestamp=datetime.now(tz=timezone.utc).isoformat(),
        view=view,
        latency_ms=latency_ms,
        goals=goals,
        sessions=sessions,
        success=success,
    )
    print(entry.to_json(), flush=True)
