from __future__ import annotations

import hashlib
import json
from typing import Any

from cellcraft.content.io import build_snapshot_payload
from cellcraft.sim.core import GameSession


def snapshot_hash(payload: dict[str, Any]) -> str:
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()


def session_hash(session: GameSession) -> str:
    payload = {
        "snapshot": build_snapshot_payload(session.snapshot()),
        "rules": {
            "spawn_probability": session.rules.spawn_probability,
            "interact_range": session.rules.interact_range,
            "win_threshold": session.rules.win_threshold,
        },
        "event_types": [entry["event_type"] for entry in session.get_event_trace()],
    }
    return snapshot_hash(payload)
