from cellcraft.cli.viewer import AsciiViewer, SessionController, run_repl
from cellcraft.content.io import MemoryStorage, PersistenceGateway
from cellcraft.content.rules import GameRules
from cellcraft.sim.core import GameSession
from cellcraft.sim.movement import MOVEMENT_MODE_LIVE, PositionFeed, PositionUpdate, cell_center
from cellcraft.sim.world import CellContent, CellCoord


def _empty_world_luck(key: str) -> float:
    return 0.99


def _make_session(feed: PositionFeed | None = None) -> GameSession:
    return GameSession(GameRules(), gateway=PersistenceGateway(MemoryStorage()), position_provider=feed, luck=_empty_world_luck)


def test_ascii_viewer_marks_player_and_tokens() -> None:
    session = _make_session()
    session.world.apply(CellCoord(1, 0), CellContent(4))

    rendered = AsciiViewer(radius=1).render(session).splitlines()

    assert rendered[0] == "pos=(0,0) holding=nothing mode=manual overrides=1"
    assert rendered[1] == "i=   1:  .  4  ."
    assert rendered[2] == "i=   0:  .  @  ."
    assert rendered[3] == "i=  -1:  .  .  ."


def test_controller_steps_and_takes() -> None:
    session = _make_session()
    session.world.apply(CellCoord(2, 1), CellContent(2))
    controller = SessionController(session)

    assert controller.execute("n") == "moved"
    assert controller.execute("take 2 1") == "Picked up 2."
    assert controller.execute("take 9 9") == "That cell is too far away!"
    assert controller.execute("take x 1") == "usage: take <i> <j>"
    assert session.player_position == CellCoord(1, 0)
    assert session.held == 2


def test_controller_geo_command_drives_live_mode() -> None:
    feed = PositionFeed()
    session = _make_session(feed)
    controller = SessionController(session, feed)
    latitude, longitude = cell_center(CellCoord(-3, 5), rules=session.rules)

    assert controller.execute(f"mode {MOVEMENT_MODE_LIVE}") == "mode=live"
    assert controller.execute("w") == "manual steps are disabled in live mode"
    assert controller.execute(f"geo {latitude} {longitude}") == "pos=(-3,5)"
    assert controller.execute("mode manual") == "mode=manual"
    feed.publish(PositionUpdate(latitude=latitude + 0.001, longitude=longitude))
    assert session.player_position == CellCoord(-3, 5)


def test_controller_reports_live_fallback_and_unknown_commands() -> None:
    session = _make_session(PositionFeed(available=False))
    controller = SessionController(session)

    assert controller.execute("mode live") == "live position unavailable; staying in manual mode"
    assert controller.execute("mode hover") == "unknown mode: hover"
    assert controller.execute("geo 1 2") == "no position feed attached"
    assert controller.execute("dance") == "unknown command"
    assert controller.execute("") == ""


def test_controller_reset_restores_defaults() -> None:
    session = _make_session()
    controller = SessionController(session)
    controller.execute("e")

    assert controller.execute("reset") == "progress reset"
    assert session.player_position == CellCoord(0, 0)


def test_repl_runs_scripted_commands_until_quit() -> None:
    session = _make_session()
    commands = iter(["n", "show", "quit", "n"])
    output: list[str] = []

    run_repl(session, read_line=lambda _prompt: next(commands), write=output.append)

    assert session.player_position == CellCoord(1, 0)
    assert "moved" in output
    assert output[0].startswith("cellcraft. Commands:")


def test_repl_stops_at_end_of_input() -> None:
    session = _make_session()

    def read_line(_prompt: str) -> str:
        raise EOFError

    run_repl(session, read_line=read_line, write=lambda _line: None)

    assert session.player_position == CellCoord(0, 0)
