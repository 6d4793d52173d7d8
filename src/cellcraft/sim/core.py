from __future__ import annotations

import copy
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from cellcraft.content.rules import GameRules
from cellcraft.sim.crafting import InteractionResult, resolve_interaction
from cellcraft.sim.movement import (
    MOVEMENT_MODE_LIVE,
    MOVEMENT_MODE_MANUAL,
    MOVEMENT_MODES,
    LivePositionSource,
    ManualStepSource,
    MovementSource,
    PositionProvider,
    PositionUnavailableError,
)
from cellcraft.sim.rng import cell_luck
from cellcraft.sim.world import CellContent, CellCoord, LuckFn, OverrideStore, WorldView

if TYPE_CHECKING:
    from cellcraft.content.io import PersistenceGateway

LOGGER = logging.getLogger(__name__)

MAX_EVENT_TRACE = 256
PLAYER_MOVED_EVENT_TYPE = "player_moved"
CELL_CHANGED_EVENT_TYPE = "cell_changed"
INTERACTION_OUTCOME_EVENT_TYPE = "interaction_outcome"
MOVEMENT_MODE_EVENT_TYPE = "movement_mode"
SESSION_RESET_EVENT_TYPE = "session_reset"
PERSIST_FAILED_EVENT_TYPE = "persist_failed"

MODE_UNCHANGED = "unchanged"
MODE_SWITCHED = "switched"
MODE_LIVE_UNAVAILABLE = "live_unavailable"


@dataclass
class PlayerState:
    position: CellCoord = field(default_factory=lambda: CellCoord(0, 0))
    held: int | None = None


@dataclass
class SessionSnapshot:
    """Detached copy of everything a session persists."""

    position: CellCoord = field(default_factory=lambda: CellCoord(0, 0))
    held: int | None = None
    overrides: dict[CellCoord, CellContent] = field(default_factory=dict)
    movement_mode: str = MOVEMENT_MODE_MANUAL
    recovered_fields: tuple[str, ...] = ()


@dataclass(frozen=True)
class SessionEvent:
    seq: int
    event_type: str
    params: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {"seq": self.seq, "event_type": self.event_type, "params": copy.deepcopy(self.params)}


SessionListener = Callable[[SessionEvent], None]


class GameSession:
    """One play session: owns player state, overrides and the active movement source."""

    def __init__(
        self,
        rules: GameRules | None = None,
        *,
        gateway: PersistenceGateway | None = None,
        position_provider: PositionProvider | None = None,
        luck: LuckFn = cell_luck,
    ) -> None:
        self.rules = rules if rules is not None else GameRules()
        self.gateway = gateway
        self.overrides = OverrideStore()
        self.world = WorldView(self.overrides, self.rules, luck=luck)
        self.player = PlayerState()
        self.manual_source = ManualStepSource()
        self.live_source = LivePositionSource(position_provider, self.rules) if position_provider is not None else None
        self._movement_mode = MOVEMENT_MODE_MANUAL
        self._listeners: dict[int, SessionListener] = {}
        self._next_listener_id = 1
        self._next_event_seq = 1
        self._event_trace: list[dict[str, Any]] = []
        self.manual_source.enable(self)

    @classmethod
    def start(
        cls,
        rules: GameRules | None = None,
        *,
        gateway: PersistenceGateway,
        position_provider: PositionProvider | None = None,
        luck: LuckFn = cell_luck,
    ) -> "GameSession":
        session = cls(rules, gateway=gateway, position_provider=position_provider, luck=luck)
        session.restore(gateway.load())
        return session

    @property
    def player_position(self) -> CellCoord:
        return self.player.position

    @property
    def held(self) -> int | None:
        return self.player.held

    @property
    def movement_mode(self) -> str:
        return self._movement_mode

    def effective_content(self, coord: CellCoord) -> CellContent:
        return self.world.effective_content(coord)

    def cells_around(self, center: CellCoord | None = None, radius: int | None = None) -> list[tuple[CellCoord, CellContent]]:
        return self.world.cells_around(
            self.player.position if center is None else center,
            self.rules.viewport_radius if radius is None else radius,
        )

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        listener_id = self._next_listener_id
        self._next_listener_id += 1
        self._listeners[listener_id] = listener

        def unsubscribe() -> None:
            self._listeners.pop(listener_id, None)

        return unsubscribe

    def get_event_trace(self) -> list[dict[str, Any]]:
        return copy.deepcopy(self._event_trace)

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            position=self.player.position,
            held=self.player.held,
            overrides=dict(self.overrides.items()),
            movement_mode=self._movement_mode,
        )

    def restore(self, snapshot: SessionSnapshot) -> None:
        """Adopt a loaded snapshot; a saved live mode is re-activated when possible."""
        self._active_source().disable()
        self.overrides.clear()
        for coord, content in sorted(snapshot.overrides.items()):
            self.overrides.set(coord, content)
        self.player = PlayerState(position=snapshot.position, held=snapshot.held)
        self._movement_mode = MOVEMENT_MODE_MANUAL
        self.manual_source.enable(self)
        if snapshot.movement_mode == MOVEMENT_MODE_LIVE:
            self.set_movement_mode(MOVEMENT_MODE_LIVE)

    def move_player_to(self, coord: CellCoord) -> bool:
        previous = self.player.position
        if coord == previous:
            return False
        self.player.position = coord
        self._persist()
        self._emit(
            PLAYER_MOVED_EVENT_TYPE,
            {"from": previous.to_dict(), "to": coord.to_dict(), "mode": self._movement_mode},
        )
        return True

    def step(self, direction: str) -> bool:
        """Manual unit step; ignored while another movement source is active."""
        return self.manual_source.step(direction)

    def interact(self, coord: CellCoord) -> InteractionResult:
        result = resolve_interaction(
            world=self.world,
            rules=self.rules,
            player=self.player.position,
            held=self.player.held,
            target=coord,
        )
        if result.applied:
            self.world.apply(coord, result.cell)
            self.player.held = result.held
            self._persist()
            self._emit(CELL_CHANGED_EVENT_TYPE, {"coord": coord.to_dict(), "cell": result.cell.to_dict()})
        self._emit(INTERACTION_OUTCOME_EVENT_TYPE, result.to_dict())
        return result

    def set_movement_mode(self, mode: str) -> str:
        if mode not in MOVEMENT_MODES:
            raise ValueError(f"unknown movement mode: {mode}")
        if mode == self._movement_mode:
            return MODE_UNCHANGED

        previous = self._movement_mode
        self._active_source().disable()
        outcome = MODE_SWITCHED
        try:
            self._source_for(mode).enable(self)
            self._movement_mode = mode
        except PositionUnavailableError as exc:
            LOGGER.warning("falling back to manual movement: %s", exc)
            self._movement_mode = MOVEMENT_MODE_MANUAL
            self.manual_source.enable(self)
            outcome = MODE_LIVE_UNAVAILABLE
            reason = exc.reason
        except Exception:
            self.manual_source.enable(self)
            raise
        else:
            reason = None

        self._persist()
        self._emit(
            MOVEMENT_MODE_EVENT_TYPE,
            {"from": previous, "requested": mode, "mode": self._movement_mode, "outcome": outcome, "reason": reason},
        )
        return outcome

    def reset(self) -> SessionSnapshot:
        """Drop every recorded change and the stored snapshot; return the default state."""
        self._active_source().disable()
        self.overrides.clear()
        self.player = PlayerState()
        self._movement_mode = MOVEMENT_MODE_MANUAL
        self.manual_source.enable(self)
        snapshot = SessionSnapshot()
        if self.gateway is not None:
            try:
                snapshot = self.gateway.reset()
            except OSError as exc:
                LOGGER.warning("snapshot removal failed: %s", exc)
                self._emit(PERSIST_FAILED_EVENT_TYPE, {"error": str(exc)})
        self._emit(SESSION_RESET_EVENT_TYPE, {})
        return snapshot

    def _source_for(self, mode: str) -> MovementSource:
        if mode == MOVEMENT_MODE_MANUAL:
            return self.manual_source
        if self.live_source is None:
            raise PositionUnavailableError("unavailable")
        return self.live_source

    def _active_source(self) -> MovementSource:
        if self._movement_mode == MOVEMENT_MODE_LIVE and self.live_source is not None:
            return self.live_source
        return self.manual_source

    def _persist(self) -> None:
        if self.gateway is None:
            return
        try:
            self.gateway.save(self.snapshot())
        except OSError as exc:
            LOGGER.warning("snapshot write failed: %s", exc)
            self._emit(PERSIST_FAILED_EVENT_TYPE, {"error": str(exc)})

    def _emit(self, event_type: str, params: dict[str, Any]) -> None:
        event = SessionEvent(seq=self._next_event_seq, event_type=event_type, params=params)
        self._next_event_seq += 1
        self._event_trace.append(event.to_dict())
        if len(self._event_trace) > MAX_EVENT_TRACE:
            del self._event_trace[: len(self._event_trace) - MAX_EVENT_TRACE]
        for listener_id in sorted(self._listeners):
            listener = self._listeners.get(listener_id)
            if listener is not None:
                listener(event)
