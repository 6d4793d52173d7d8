from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any, Protocol

from cellcraft.content.schema import (
    DEFAULT_PLAYER_I,
    DEFAULT_PLAYER_J,
    FIELD_HELD,
    FIELD_MOVEMENT_MODE,
    FIELD_OVERRIDES,
    FIELD_PLAYER_I,
    FIELD_PLAYER_J,
    SNAPSHOT_FIELDS,
    normalize_held,
    normalize_movement_mode,
    normalize_overrides,
    normalize_player_axis,
)
from cellcraft.sim.core import SessionSnapshot
from cellcraft.sim.world import CellCoord

LOGGER = logging.getLogger(__name__)

STORAGE_KEY = "cellcraft.snapshot"
CANONICAL_JSON_INDENT = 2
CANONICAL_JSON_SEPARATORS = (",", ": ")


class SnapshotStorage(Protocol):
    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemoryStorage:
    """Key/value text storage kept in memory."""

    def __init__(self, items: dict[str, str] | None = None) -> None:
        self.items: dict[str, str] = dict(items or {})

    def get_item(self, key: str) -> str | None:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.items[key] = value

    def remove_item(self, key: str) -> None:
        self.items.pop(key, None)


class JsonFileStorage:
    """Key/value text storage with one file per key under ``root``."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def path_for(self, key: str) -> Path:
        return self.root / f"{key}.json"

    def get_item(self, key: str) -> str | None:
        path = self.path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            LOGGER.warning("snapshot unreadable path=%s: %s", path, exc)
            return None

    def set_item(self, key: str, value: str) -> None:
        _write_atomic_text(self.path_for(key), value)

    def remove_item(self, key: str) -> None:
        self.path_for(key).unlink(missing_ok=True)


def _write_atomic_text(path: str | Path, serialized: str) -> None:
    destination = Path(path)
    destination.parent.mkdir(parents=True, exist_ok=True)

    temp_path: Path | None = None
    try:
        with NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=destination.parent,
            delete=False,
            suffix=".tmp",
        ) as temp_file:
            temp_file.write(serialized)
            temp_file.flush()
            os.fsync(temp_file.fileno())
            temp_path = Path(temp_file.name)
        os.replace(temp_path, destination)
    except Exception:
        if temp_path is not None:
            temp_path.unlink(missing_ok=True)
        raise


def _canonical_json(payload: dict[str, Any]) -> str:
    return json.dumps(
        payload,
        indent=CANONICAL_JSON_INDENT,
        separators=CANONICAL_JSON_SEPARATORS,
        sort_keys=True,
    )


def build_snapshot_payload(snapshot: SessionSnapshot) -> dict[str, Any]:
    return {
        FIELD_PLAYER_I: snapshot.position.i,
        FIELD_PLAYER_J: snapshot.position.j,
        FIELD_HELD: snapshot.held,
        FIELD_OVERRIDES: {
            coord.to_key(): content.to_dict() for coord, content in sorted(snapshot.overrides.items())
        },
        FIELD_MOVEMENT_MODE: snapshot.movement_mode,
    }


def snapshot_from_payload(payload: Any) -> SessionSnapshot:
    """Rebuild a snapshot, defaulting each unusable field on its own."""
    if not isinstance(payload, dict):
        return SessionSnapshot(recovered_fields=SNAPSHOT_FIELDS)

    recovered: list[str] = []
    player_i, ok = normalize_player_axis(payload.get(FIELD_PLAYER_I), default=DEFAULT_PLAYER_I)
    if not ok:
        recovered.append(FIELD_PLAYER_I)
    player_j, ok = normalize_player_axis(payload.get(FIELD_PLAYER_J), default=DEFAULT_PLAYER_J)
    if not ok:
        recovered.append(FIELD_PLAYER_J)
    held, ok = normalize_held(payload.get(FIELD_HELD))
    if not ok:
        recovered.append(FIELD_HELD)
    overrides, dropped, ok = normalize_overrides(payload.get(FIELD_OVERRIDES))
    if not ok:
        recovered.append(FIELD_OVERRIDES)
    elif dropped:
        LOGGER.warning("dropped malformed override entries: %s", ", ".join(dropped))
    movement_mode, ok = normalize_movement_mode(payload.get(FIELD_MOVEMENT_MODE))
    if not ok:
        recovered.append(FIELD_MOVEMENT_MODE)

    return SessionSnapshot(
        position=CellCoord(player_i, player_j),
        held=held,
        overrides=overrides,
        movement_mode=movement_mode,
        recovered_fields=tuple(recovered),
    )


class PersistenceGateway:
    """Write-through snapshot persistence addressed by a single storage key."""

    def __init__(self, storage: SnapshotStorage, *, key: str = STORAGE_KEY) -> None:
        self.storage = storage
        self.key = key

    def save(self, snapshot: SessionSnapshot) -> None:
        self.storage.set_item(self.key, _canonical_json(build_snapshot_payload(snapshot)))

    def load(self) -> SessionSnapshot:
        raw = self.storage.get_item(self.key)
        if raw is None:
            return SessionSnapshot()
        try:
            payload = json.loads(raw)
        except (ValueError, RecursionError) as exc:
            LOGGER.warning("snapshot is not valid JSON, using defaults: %s", exc)
            return SessionSnapshot(recovered_fields=SNAPSHOT_FIELDS)
        snapshot = snapshot_from_payload(payload)
        if snapshot.recovered_fields:
            LOGGER.warning("snapshot fields reset to defaults: %s", ", ".join(snapshot.recovered_fields))
        return snapshot

    def reset(self) -> SessionSnapshot:
        self.storage.remove_item(self.key)
        return SessionSnapshot()


def open_file_gateway(save_dir: str | Path, *, key: str = STORAGE_KEY) -> PersistenceGateway:
    return PersistenceGateway(JsonFileStorage(save_dir), key=key)
