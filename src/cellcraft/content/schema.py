from __future__ import annotations

from typing import Any

from cellcraft.sim.movement import MOVEMENT_MODE_MANUAL, MOVEMENT_MODES
from cellcraft.sim.world import CellContent, CellCoord

FIELD_PLAYER_I = "playerI"
FIELD_PLAYER_J = "playerJ"
FIELD_HELD = "held"
FIELD_OVERRIDES = "overrides"
FIELD_MOVEMENT_MODE = "movementMode"
SNAPSHOT_FIELDS = (FIELD_PLAYER_I, FIELD_PLAYER_J, FIELD_HELD, FIELD_OVERRIDES, FIELD_MOVEMENT_MODE)

DEFAULT_PLAYER_I = 0
DEFAULT_PLAYER_J = 0
DEFAULT_MOVEMENT_MODE = MOVEMENT_MODE_MANUAL


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_token(value: Any) -> bool:
    return _is_int(value) and value > 0 and (value & (value - 1)) == 0


def normalize_player_axis(value: Any, *, default: int) -> tuple[int, bool]:
    if _is_int(value):
        return value, True
    return default, False


def normalize_held(value: Any) -> tuple[int | None, bool]:
    if value is None or _is_token(value):
        return value, True
    return None, False


def normalize_movement_mode(value: Any) -> tuple[str, bool]:
    if isinstance(value, str) and value in MOVEMENT_MODES:
        return value, True
    return DEFAULT_MOVEMENT_MODE, False


def normalize_override_entry(key: Any, value: Any) -> tuple[CellCoord, CellContent] | None:
    """Parse one ``"i,j": {"token": ...}`` entry; ``None`` when it is malformed."""
    try:
        coord = CellCoord.from_key(key)
    except ValueError:
        return None
    if not isinstance(value, dict) or "token" not in value:
        return None
    token = value["token"]
    if token is not None and not _is_token(token):
        return None
    return coord, CellContent(token)


def normalize_overrides(value: Any) -> tuple[dict[CellCoord, CellContent], list[str], bool]:
    """Return parsed entries, the keys that were dropped, and whether the field itself was usable."""
    if not isinstance(value, dict):
        return {}, [], False
    entries: dict[CellCoord, CellContent] = {}
    dropped: list[str] = []
    for key in sorted(value, key=str):
        parsed = normalize_override_entry(key, value[key])
        if parsed is None:
            dropped.append(str(key))
            continue
        entries[parsed[0]] = parsed[1]
    return entries, dropped, True
