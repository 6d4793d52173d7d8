from pathlib import Path

import pytest

from cellcraft.cli.play import main
from cellcraft.cli.pygame_viewer import (
    CELL_SIZE,
    _build_parser,
    _env_flag_enabled,
    cell_to_pixel,
    pixel_to_cell,
)
from cellcraft.sim.world import CellCoord


def test_play_launcher_delegates_to_pygame_viewer(monkeypatch, tmp_path: Path) -> None:
    captured = {}

    def fake_run(**kwargs):
        captured.update(kwargs)
        return 0

    monkeypatch.setattr("cellcraft.cli.play.run_pygame_viewer", fake_run)

    result = main(["--headless", "--save-dir", str(tmp_path), "--mode", "live"])

    assert result == 0
    assert captured == {
        "rules_path": "content/rules/game_rules.json",
        "save_dir": str(tmp_path),
        "mode": "live",
        "headless": True,
    }


def test_play_launcher_text_mode_runs_repl(monkeypatch, tmp_path: Path) -> None:
    calls = []
    monkeypatch.setattr("cellcraft.cli.play.run_repl", lambda session, feed: calls.append((session, feed)))

    result = main(["--text", "--save-dir", str(tmp_path), "--mode", "live"])

    assert result == 0
    session, feed = calls[0]
    assert session.movement_mode == "live"
    assert feed.subscriber_count == 1


def test_viewer_parser_defaults() -> None:
    args = _build_parser().parse_args([])

    assert args.rules_path == "content/rules/game_rules.json"
    assert args.save_dir == "saves"
    assert args.mode is None
    assert args.headless is False


def test_viewer_parser_rejects_unknown_mode() -> None:
    with pytest.raises(SystemExit):
        _build_parser().parse_args(["--mode", "teleport"])


def test_env_flag_parsing(monkeypatch) -> None:
    monkeypatch.setenv("CELLCRAFT_HEADLESS", "Yes")
    assert _env_flag_enabled("CELLCRAFT_HEADLESS")
    monkeypatch.setenv("CELLCRAFT_HEADLESS", "0")
    assert not _env_flag_enabled("CELLCRAFT_HEADLESS")


def test_pixel_to_cell_inverts_cell_to_pixel() -> None:
    player = CellCoord(10, -4)
    for coord in (CellCoord(10, -4), CellCoord(13, -1), CellCoord(7, -7), CellCoord(11, -6)):
        x, y = cell_to_pixel(coord, player)
        assert pixel_to_cell((x, y), player) == coord
        assert pixel_to_cell((x + CELL_SIZE - 1, y + CELL_SIZE - 1), player) == coord


def test_north_is_drawn_above_the_player() -> None:
    player = CellCoord(0, 0)

    assert cell_to_pixel(CellCoord(1, 0), player)[1] < cell_to_pixel(player, player)[1]
    assert cell_to_pixel(CellCoord(0, 1), player)[0] > cell_to_pixel(player, player)[0]
