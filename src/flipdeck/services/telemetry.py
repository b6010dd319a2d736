from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Mapping

from flipdeck.engine.events import Event


@dataclass
class TelemetryService:
    """Append-only JSON-lines log of engine events.

    `seq` counts records written by this instance, so several sessions
    sharing one file can still be told apart and ordered.
    """

    path: Path
    seq: int = field(default=0, init=False)

    def log(self, event_type: str, payload: Mapping[str, object]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.seq += 1
        line = json.dumps(
            {
                "ts": datetime.now(tz=timezone.utc).isoformat(),
                "seq": self.seq,
                "type": event_type,
                "payload": dict(payload),
            },
            ensure_ascii=False,
        )
        with self.path.open("a", encoding="utf-8") as f:
            f.write(line + "\n")

    def record(self, event: Event) -> None:
        payload = {k: v for k, v in event.items() if k != "type"}
        self.log(str(event.get("type", "UNKNOWN")), payload)

    def read(self) -> list[dict[str, object]]:
        if not self.path.exists():
            return []
        with self.path.open("r", encoding="utf-8") as f:
            return [json.loads(line) for line in f if line.strip()]
