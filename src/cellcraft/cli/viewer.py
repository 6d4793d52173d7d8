from __future__ import annotations

import argparse
from collections.abc import Callable
from typing import Sequence

from cellcraft.content.io import open_file_gateway
from cellcraft.content.rules import DEFAULT_GAME_RULES_PATH, GameRules, load_game_rules_json
from cellcraft.sim.core import MODE_LIVE_UNAVAILABLE, GameSession
from cellcraft.sim.movement import DIRECTION_DELTAS, MOVEMENT_MODES, PositionFeed, PositionUpdate
from cellcraft.sim.world import CellCoord

DEFAULT_SAVE_DIR = "saves"
ASCII_VIEW_RADIUS = 4
DIRECTION_ALIASES = {"n": "north", "s": "south", "e": "east", "w": "west"}


class AsciiViewer:
    """Read-only projection of session state for terminal display."""

    def __init__(self, radius: int = ASCII_VIEW_RADIUS) -> None:
        self.radius = radius

    def render(self, session: GameSession) -> str:
        center = session.player_position
        held = "nothing" if session.held is None else str(session.held)
        lines = [
            f"pos=({center.i},{center.j}) holding={held} mode={session.movement_mode} "
            f"overrides={len(session.overrides)}"
        ]
        by_row: dict[int, list[str]] = {}
        for coord, content in session.cells_around(center, self.radius):
            if coord == center:
                glyph = "@"
            elif content.token is None:
                glyph = "."
            else:
                glyph = str(content.token)
            by_row.setdefault(coord.i, []).append(f"{glyph:>3}")

        # North at the top.
        for i in sorted(by_row, reverse=True):
            lines.append(f"i={i:>4}:" + "".join(by_row[i]))
        return "\n".join(lines)


class SessionController:
    """Text command adapter; issues actions to the session but does not own state."""

    def __init__(self, session: GameSession, feed: PositionFeed | None = None) -> None:
        self.session = session
        self.feed = feed

    def execute(self, raw: str) -> str:
        parts = raw.strip().split()
        if not parts:
            return ""
        command = parts[0].lower()

        direction = DIRECTION_ALIASES.get(command, command)
        if len(parts) == 1 and direction in DIRECTION_DELTAS:
            if self.session.step(direction):
                return "moved"
            return f"manual steps are disabled in {self.session.movement_mode} mode"

        if command == "take" and len(parts) == 3:
            try:
                target = CellCoord(int(parts[1]), int(parts[2]))
            except ValueError:
                return "usage: take <i> <j>"
            return self.session.interact(target).message

        if command == "mode" and len(parts) == 2:
            if parts[1] not in MOVEMENT_MODES:
                return f"unknown mode: {parts[1]}"
            outcome = self.session.set_movement_mode(parts[1])
            if outcome == MODE_LIVE_UNAVAILABLE:
                return "live position unavailable; staying in manual mode"
            return f"mode={self.session.movement_mode}"

        if command == "geo" and len(parts) == 3:
            if self.feed is None:
                return "no position feed attached"
            try:
                update = PositionUpdate(latitude=float(parts[1]), longitude=float(parts[2]))
            except ValueError:
                return "usage: geo <lat> <lng>"
            self.feed.publish(update)
            return f"pos=({self.session.player_position.i},{self.session.player_position.j})"

        if command == "reset":
            self.session.reset()
            return "progress reset"

        return "unknown command"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="python -m cellcraft.cli.viewer", description="Terminal cellcraft session.")
    parser.add_argument("--rules-path", default=DEFAULT_GAME_RULES_PATH, help="Game rules JSON path.")
    parser.add_argument("--save-dir", default=DEFAULT_SAVE_DIR, help="Directory holding the session snapshot.")
    return parser


def build_session(*, rules_path: str | None, save_dir: str, feed: PositionFeed) -> GameSession:
    rules = load_game_rules_json(rules_path) if rules_path else GameRules()
    return GameSession.start(rules, gateway=open_file_gateway(save_dir), position_provider=feed)


def run_repl(
    session: GameSession,
    feed: PositionFeed | None = None,
    *,
    read_line: Callable[[str], str] = input,
    write: Callable[[str], None] = print,
) -> None:
    view = AsciiViewer()
    controller = SessionController(session, feed)

    write("cellcraft. Commands: show | n/s/e/w | take <i> <j> | mode manual|live | geo <lat> <lng> | reset | quit")
    write(view.render(session))

    while True:
        try:
            raw = read_line("> ").strip()
        except EOFError:
            break
        if raw in {"quit", "exit"}:
            break
        if raw == "show":
            write(view.render(session))
            continue
        message = controller.execute(raw)
        if message:
            write(message)
        write(view.render(session))


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    feed = PositionFeed()
    session = build_session(rules_path=args.rules_path, save_dir=args.save_dir, feed=feed)
    run_repl(session, feed)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
