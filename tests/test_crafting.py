from cellcraft.content.rules import GameRules
from cellcraft.sim.core import CELL_CHANGED_EVENT_TYPE, INTERACTION_OUTCOME_EVENT_TYPE, GameSession
from cellcraft.sim.crafting import (
    OUTCOME_CANNOT_PERFORM,
    OUTCOME_MERGED,
    OUTCOME_PICKED_UP,
    OUTCOME_TOO_FAR,
)
from cellcraft.sim.world import CellContent, CellCoord


def _luck_with_tokens(tokens: dict[tuple[int, int], int]):
    """Luck function that spawns exactly the given tokens and nothing else."""
    value_draws = {1: 0.1, 2: 0.5, 4: 0.9}
    table: dict[str, float] = {}
    for (i, j), token in tokens.items():
        table[f"spawn:{i},{j}"] = 0.0
        table[f"value:{i},{j}"] = value_draws[token]

    def luck(key: str) -> float:
        return table.get(key, 0.99)

    return luck


def _make_session(tokens: dict[tuple[int, int], int] | None = None, rules: GameRules | None = None) -> GameSession:
    return GameSession(rules, luck=_luck_with_tokens(tokens or {}))


def test_pick_up_from_cell_in_range() -> None:
    session = _make_session({(2, 1): 4})

    result = session.interact(CellCoord(2, 1))

    assert result.outcome == OUTCOME_PICKED_UP
    assert result.applied
    assert session.held == 4
    assert session.effective_content(CellCoord(2, 1)) == CellContent(None)
    assert session.overrides.get(CellCoord(2, 1)) == CellContent(None)


def test_merge_after_moving_doubles_value_and_empties_hand() -> None:
    session = _make_session({(2, 1): 4, (3, 3): 4})
    session.interact(CellCoord(2, 1))
    for direction in ("north", "north", "east", "east"):
        assert session.step(direction)
    assert session.player_position == CellCoord(2, 2)

    result = session.interact(CellCoord(3, 3))

    assert result.outcome == OUTCOME_MERGED
    assert result.level_up is None
    assert session.held is None
    assert session.effective_content(CellCoord(3, 3)) == CellContent(8)
    assert result.message == "Crafted 8."


def test_interaction_at_distance_five_is_rejected_without_mutation() -> None:
    session = _make_session({(5, 0): 2, (0, 1): 1})
    session.interact(CellCoord(0, 1))
    before = session.snapshot()

    result = session.interact(CellCoord(5, 0))

    assert result.outcome == OUTCOME_TOO_FAR
    assert result.message == "That cell is too far away!"
    assert session.held == 1
    assert session.snapshot() == before
    assert CellCoord(5, 0) not in session.overrides


def test_range_boundary_is_inclusive_at_three() -> None:
    session = _make_session({(3, -3): 1, (4, 0): 1, (0, -4): 2})

    assert session.interact(CellCoord(4, 0)).outcome == OUTCOME_TOO_FAR
    assert session.interact(CellCoord(0, -4)).outcome == OUTCOME_TOO_FAR
    assert session.interact(CellCoord(3, -3)).outcome == OUTCOME_PICKED_UP
    assert session.held == 1


def test_range_is_measured_from_current_position() -> None:
    session = _make_session({(0, 6): 2})
    assert session.interact(CellCoord(0, 6)).outcome == OUTCOME_TOO_FAR

    for _ in range(3):
        session.step("east")

    assert session.interact(CellCoord(0, 6)).outcome == OUTCOME_PICKED_UP


def test_empty_hand_on_empty_cell_cannot_perform() -> None:
    session = _make_session()

    result = session.interact(CellCoord(1, 1))

    assert result.outcome == OUTCOME_CANNOT_PERFORM
    assert result.message == "Can't do that!"
    assert len(session.overrides) == 0


def test_carrying_onto_empty_or_mismatched_cell_cannot_perform() -> None:
    session = _make_session({(0, 1): 2, (1, 0): 4})
    session.interact(CellCoord(0, 1))

    empty_result = session.interact(CellCoord(-1, -1))
    mismatch_result = session.interact(CellCoord(1, 0))

    assert empty_result.outcome == OUTCOME_CANNOT_PERFORM
    assert mismatch_result.outcome == OUTCOME_CANNOT_PERFORM
    assert session.held == 2
    assert session.effective_content(CellCoord(1, 0)) == CellContent(4)
    assert session.overrides.items() == [(CellCoord(0, 1), CellContent(None))]


def test_carrying_back_onto_own_empty_cell_cannot_perform() -> None:
    session = _make_session({(1, 1): 2})
    session.interact(CellCoord(1, 1))

    result = session.interact(CellCoord(1, 1))

    assert result.outcome == OUTCOME_CANNOT_PERFORM
    assert session.held == 2


def test_same_cell_as_player_follows_normal_rules() -> None:
    session = _make_session({(0, 0): 1, (0, 1): 1})
    assert session.interact(CellCoord(0, 1)).outcome == OUTCOME_PICKED_UP

    result = session.interact(CellCoord(0, 0))

    assert result.outcome == OUTCOME_MERGED
    assert session.effective_content(CellCoord(0, 0)) == CellContent(2)


def test_conservation_of_token_value_across_pick_up_and_merge() -> None:
    session = _make_session({(1, 0): 2, (0, 1): 2})
    cells = [CellCoord(1, 0), CellCoord(0, 1)]

    def total() -> int:
        ground = sum(session.effective_content(c).token or 0 for c in cells)
        return ground + (session.held or 0)

    assert total() == 4
    session.interact(cells[0])
    assert total() == 4
    session.interact(cells[1])
    assert total() == 4
    assert session.held is None
    assert [session.effective_content(c).token for c in cells] == [None, 4]


def test_merge_reaching_threshold_signals_win_and_session_continues() -> None:
    rules = GameRules(win_threshold=8)
    session = _make_session({(1, 0): 4, (0, 1): 4, (2, 2): 1}, rules=rules)
    session.interact(CellCoord(1, 0))

    result = session.interact(CellCoord(0, 1))

    assert result.won
    assert "won" in result.message
    assert session.interact(CellCoord(2, 2)).outcome == OUTCOME_PICKED_UP


def test_picking_up_level_up_token_shows_banner() -> None:
    session = _make_session()
    session.world.apply(CellCoord(1, 1), CellContent(8))

    result = session.interact(CellCoord(1, 1))

    assert result.outcome == OUTCOME_PICKED_UP
    assert result.held == 8
    assert result.level_up == 8
    assert result.message == "You crafted a level 8 token!"


def test_picking_up_ordinary_token_has_no_banner() -> None:
    session = _make_session({(0, 1): 4})

    result = session.interact(CellCoord(0, 1))

    assert result.level_up is None
    assert result.message == "Picked up 4."


def test_picking_up_token_at_threshold_signals_win() -> None:
    session = _make_session()
    session.world.apply(CellCoord(1, 1), CellContent(32))

    result = session.interact(CellCoord(1, 1))

    assert result.outcome == OUTCOME_PICKED_UP
    assert result.won


def test_interactions_emit_outcome_and_cell_change_events() -> None:
    session = _make_session({(1, 1): 1})
    seen: list[str] = []
    session.subscribe(lambda event: seen.append(event.event_type))

    session.interact(CellCoord(1, 1))
    session.interact(CellCoord(-2, -2))

    assert seen == [CELL_CHANGED_EVENT_TYPE, INTERACTION_OUTCOME_EVENT_TYPE, INTERACTION_OUTCOME_EVENT_TYPE]
    outcomes = [
        entry["params"]["outcome"]
        for entry in session.get_event_trace()
        if entry["event_type"] == INTERACTION_OUTCOME_EVENT_TYPE
    ]
    assert outcomes == [OUTCOME_PICKED_UP, OUTCOME_CANNOT_PERFORM]
