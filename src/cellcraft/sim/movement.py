from __future__ import annotations

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

from cellcraft.content.rules import GameRules
from cellcraft.sim.world import CellCoord

LOGGER = logging.getLogger(__name__)

MOVEMENT_MODE_MANUAL = "manual"
MOVEMENT_MODE_LIVE = "live"
MOVEMENT_MODES = (MOVEMENT_MODE_MANUAL, MOVEMENT_MODE_LIVE)

DIRECTION_DELTAS: dict[str, tuple[int, int]] = {
    "north": (1, 0),
    "south": (-1, 0),
    "east": (0, 1),
    "west": (0, -1),
}


def chebyshev_distance(a: CellCoord, b: CellCoord) -> int:
    return max(abs(a.i - b.i), abs(a.j - b.j))


def within_interaction_range(player: CellCoord, target: CellCoord, interact_range: int) -> bool:
    return chebyshev_distance(player, target) <= interact_range


def latlng_to_cell(latitude: float, longitude: float, *, rules: GameRules) -> CellCoord:
    """Quantize a geographic position onto the cell that contains it."""
    i = math.floor((latitude - rules.origin_latitude) / rules.cell_degrees)
    j = math.floor((longitude - rules.origin_longitude) / rules.cell_degrees)
    return CellCoord(int(i), int(j))


def cell_bounds(coord: CellCoord, *, rules: GameRules) -> tuple[tuple[float, float], tuple[float, float]]:
    """South-west and north-east corners of a cell as (lat, lng) pairs."""
    south = rules.origin_latitude + coord.i * rules.cell_degrees
    west = rules.origin_longitude + coord.j * rules.cell_degrees
    return ((south, west), (south + rules.cell_degrees, west + rules.cell_degrees))


def cell_center(coord: CellCoord, *, rules: GameRules) -> tuple[float, float]:
    (south, west), (north, east) = cell_bounds(coord, rules=rules)
    return ((south + north) / 2.0, (west + east) / 2.0)


@dataclass(frozen=True)
class PositionUpdate:
    latitude: float
    longitude: float
    accuracy: float = 0.0


PositionCallback = Callable[[PositionUpdate], None]


class PositionUnavailableError(RuntimeError):
    """Raised when a live position stream cannot be started."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"live position unavailable: {reason}")
        self.reason = reason


class PositionProvider(Protocol):
    def subscribe(self, callback: PositionCallback) -> Any: ...

    def unsubscribe(self, handle: Any) -> None: ...


class PositionSink(Protocol):
    @property
    def player_position(self) -> CellCoord: ...

    def move_player_to(self, coord: CellCoord) -> bool: ...


class PositionFeed:
    """In-process position provider; publishers push updates, subscribers receive them."""

    def __init__(self, *, available: bool = True, permission_denied: bool = False) -> None:
        self.available = available
        self.permission_denied = permission_denied
        self._subscribers: dict[int, PositionCallback] = {}
        self._next_handle = 1

    def subscribe(self, callback: PositionCallback) -> int:
        if not self.available:
            raise PositionUnavailableError("unavailable")
        if self.permission_denied:
            raise PositionUnavailableError("permission_denied")
        handle = self._next_handle
        self._next_handle += 1
        self._subscribers[handle] = callback
        return handle

    def unsubscribe(self, handle: int) -> None:
        self._subscribers.pop(handle, None)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, update: PositionUpdate) -> None:
        for handle in sorted(self._subscribers):
            callback = self._subscribers.get(handle)
            if callback is not None:
                callback(update)


class MovementSource:
    """Common capability of the movement sources a session can switch between."""

    mode: str

    def __init__(self) -> None:
        self._sink: PositionSink | None = None

    @property
    def active(self) -> bool:
        return self._sink is not None

    def enable(self, sink: PositionSink) -> None:
        self._sink = sink

    def disable(self) -> None:
        self._sink = None


class ManualStepSource(MovementSource):
    mode = MOVEMENT_MODE_MANUAL

    def step(self, direction: str) -> bool:
        if direction not in DIRECTION_DELTAS:
            raise ValueError(f"unknown direction: {direction}")
        if self._sink is None:
            return False
        di, dj = DIRECTION_DELTAS[direction]
        return self._sink.move_player_to(self._sink.player_position.offset(di, dj))


class LivePositionSource(MovementSource):
    mode = MOVEMENT_MODE_LIVE

    def __init__(self, provider: PositionProvider, rules: GameRules) -> None:
        super().__init__()
        self.provider = provider
        self.rules = rules
        self._handle: Any = None

    def enable(self, sink: PositionSink) -> None:
        if self.active:
            return
        # Raises PositionUnavailableError before any state changes.
        self._handle = self.provider.subscribe(self.on_position)
        super().enable(sink)

    def disable(self) -> None:
        if self._handle is not None:
            self.provider.unsubscribe(self._handle)
            self._handle = None
        super().disable()

    def on_position(self, update: PositionUpdate) -> None:
        sink = self._sink
        if sink is None:
            return
        if not (math.isfinite(update.latitude) and math.isfinite(update.longitude)):
            LOGGER.warning("ignoring non-finite position update: %s", update)
            return
        coord = latlng_to_cell(update.latitude, update.longitude, rules=self.rules)
        if coord == sink.player_position:
            return
        sink.move_player_to(coord)
