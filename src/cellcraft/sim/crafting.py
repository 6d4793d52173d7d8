from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from cellcraft.content.rules import GameRules
from cellcraft.sim.movement import within_interaction_range
from cellcraft.sim.world import EMPTY_CELL, CellContent, CellCoord, WorldView

OUTCOME_PICKED_UP = "picked_up"
OUTCOME_MERGED = "merged"
OUTCOME_TOO_FAR = "too_far"
OUTCOME_CANNOT_PERFORM = "cannot_perform"
APPLIED_OUTCOMES = {OUTCOME_PICKED_UP, OUTCOME_MERGED}

OUTCOME_MESSAGES = {
    OUTCOME_TOO_FAR: "That cell is too far away!",
    OUTCOME_CANNOT_PERFORM: "Can't do that!",
}


@dataclass(frozen=True)
class InteractionResult:
    outcome: str
    coord: CellCoord
    held: int | None
    cell: CellContent
    level_up: int | None = None
    won: bool = False

    @property
    def applied(self) -> bool:
        return self.outcome in APPLIED_OUTCOMES

    @property
    def message(self) -> str:
        if self.won:
            return f"You reached a {max(self.held or 0, self.cell.token or 0)} token and won!"
        if self.level_up is not None:
            return f"You crafted a level {self.level_up} token!"
        if self.outcome == OUTCOME_PICKED_UP:
            return f"Picked up {self.held}."
        if self.outcome == OUTCOME_MERGED:
            return f"Crafted {self.cell.token}."
        return OUTCOME_MESSAGES.get(self.outcome, "")

    def to_dict(self) -> dict[str, Any]:
        return {
            "outcome": self.outcome,
            "coord": self.coord.to_dict(),
            "held": self.held,
            "cell": self.cell.to_dict(),
            "level_up": self.level_up,
            "won": self.won,
        }


def resolve_interaction(
    *,
    world: WorldView,
    rules: GameRules,
    player: CellCoord,
    held: int | None,
    target: CellCoord,
) -> InteractionResult:
    """Decide the outcome of interacting with ``target`` without mutating anything.

    Applied results carry the post-action held token and cell content, which the
    caller commits together. Rejected results echo the unchanged state.
    """
    if not within_interaction_range(player, target, rules.interact_range):
        return InteractionResult(
            outcome=OUTCOME_TOO_FAR,
            coord=target,
            held=held,
            cell=world.effective_content(target),
        )

    cell = world.effective_content(target)
    if held is None and cell.token is not None:
        return InteractionResult(
            outcome=OUTCOME_PICKED_UP,
            coord=target,
            held=cell.token,
            cell=EMPTY_CELL,
            level_up=cell.token if cell.token in rules.level_up_values else None,
            won=cell.token >= rules.win_threshold,
        )

    if held is not None and cell.token == held:
        crafted = held * 2
        return InteractionResult(
            outcome=OUTCOME_MERGED,
            coord=target,
            held=None,
            cell=CellContent(crafted),
            won=crafted >= rules.win_threshold,
        )

    return InteractionResult(outcome=OUTCOME_CANNOT_PERFORM, coord=target, held=held, cell=cell)
