from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

GAME_RULES_SCHEMA_VERSION = 1
DEFAULT_GAME_RULES_PATH = "content/rules/game_rules.json"

DEFAULT_ORIGIN = (36.997936938057016, -122.05703507501151)


@dataclass(frozen=True)
class SpawnValueDef:
    """Token value chosen when the value draw is below ``upper_bound``."""

    upper_bound: float
    value: int


DEFAULT_SPAWN_VALUES: tuple[SpawnValueDef, ...] = (
    SpawnValueDef(upper_bound=0.33, value=1),
    SpawnValueDef(upper_bound=0.66, value=2),
    SpawnValueDef(upper_bound=1.0, value=4),
)


def _is_power_of_two(value: int) -> bool:
    return value > 0 and (value & (value - 1)) == 0


@dataclass(frozen=True)
class GameRules:
    spawn_probability: float = 0.2
    spawn_values: tuple[SpawnValueDef, ...] = DEFAULT_SPAWN_VALUES
    interact_range: int = 3
    win_threshold: int = 32
    level_up_values: tuple[int, ...] = (8, 16)
    cell_degrees: float = 1e-4
    origin_latitude: float = DEFAULT_ORIGIN[0]
    origin_longitude: float = DEFAULT_ORIGIN[1]
    viewport_radius: int = 12

    def __post_init__(self) -> None:
        if not 0.0 <= self.spawn_probability <= 1.0:
            raise ValueError("spawn_probability must be within [0.0, 1.0]")
        if not self.spawn_values:
            raise ValueError("spawn_values must be non-empty")
        previous_bound = 0.0
        for entry in self.spawn_values:
            if entry.upper_bound <= previous_bound:
                raise ValueError("spawn_values upper_bound entries must be strictly increasing")
            if not _is_power_of_two(entry.value):
                raise ValueError(f"spawn value must be a positive power of two: {entry.value}")
            previous_bound = entry.upper_bound
        if previous_bound < 1.0:
            raise ValueError("last spawn_values upper_bound must be >= 1.0")
        if isinstance(self.interact_range, bool) or not isinstance(self.interact_range, int) or self.interact_range < 0:
            raise ValueError("interact_range must be an integer >= 0")
        if isinstance(self.win_threshold, bool) or not isinstance(self.win_threshold, int) or self.win_threshold <= 0:
            raise ValueError("win_threshold must be an integer > 0")
        if self.cell_degrees <= 0.0:
            raise ValueError("cell_degrees must be > 0")
        if isinstance(self.viewport_radius, bool) or not isinstance(self.viewport_radius, int) or self.viewport_radius < 0:
            raise ValueError("viewport_radius must be an integer >= 0")

    def spawn_value_for(self, draw: float) -> int:
        for entry in self.spawn_values:
            if draw < entry.upper_bound:
                return entry.value
        return self.spawn_values[-1].value


def load_game_rules_json(path: str | Path) -> GameRules:
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    return game_rules_from_payload(payload)


def game_rules_from_payload(payload: dict[str, Any]) -> GameRules:
    if not isinstance(payload, dict):
        raise ValueError("game rules payload must be an object")

    schema_version = payload.get("schema_version")
    if not isinstance(schema_version, int):
        raise ValueError("game rules payload must contain integer field: schema_version")
    if schema_version != GAME_RULES_SCHEMA_VERSION:
        raise ValueError(f"unsupported game rules schema_version: {schema_version}")

    defaults = GameRules()
    spawn = payload.get("spawn", {})
    if not isinstance(spawn, dict):
        raise ValueError("spawn must be an object")

    spawn_values = defaults.spawn_values
    raw_values = spawn.get("values")
    if raw_values is not None:
        if not isinstance(raw_values, list) or not raw_values:
            raise ValueError("spawn.values must be a non-empty list")
        parsed: list[SpawnValueDef] = []
        for index, row in enumerate(raw_values):
            if not isinstance(row, dict):
                raise ValueError(f"spawn.values[{index}] must be an object")
            upper_bound = row.get("upper_bound")
            value = row.get("value")
            if isinstance(upper_bound, bool) or not isinstance(upper_bound, (int, float)):
                raise ValueError(f"spawn.values[{index}].upper_bound must be numeric")
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"spawn.values[{index}].value must be an integer")
            parsed.append(SpawnValueDef(upper_bound=float(upper_bound), value=value))
        spawn_values = tuple(parsed)

    origin = payload.get("origin", {})
    if not isinstance(origin, dict):
        raise ValueError("origin must be an object")

    level_up_values = payload.get("level_up_values", list(defaults.level_up_values))
    if not isinstance(level_up_values, list) or any(
        isinstance(value, bool) or not isinstance(value, int) for value in level_up_values
    ):
        raise ValueError("level_up_values must be a list of integers")

    return GameRules(
        spawn_probability=float(spawn.get("probability", defaults.spawn_probability)),
        spawn_values=spawn_values,
        interact_range=payload.get("interact_range", defaults.interact_range),
        win_threshold=payload.get("win_threshold", defaults.win_threshold),
        level_up_values=tuple(sorted(level_up_values)),
        cell_degrees=float(payload.get("cell_degrees", defaults.cell_degrees)),
        origin_latitude=float(origin.get("latitude", defaults.origin_latitude)),
        origin_longitude=float(origin.get("longitude", defaults.origin_longitude)),
        viewport_radius=payload.get("viewport_radius", defaults.viewport_radius),
    )
