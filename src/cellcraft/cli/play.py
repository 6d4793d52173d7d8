from __future__ import annotations

import argparse
from typing import Sequence

from cellcraft.cli.pygame_viewer import run_pygame_viewer
from cellcraft.cli.viewer import DEFAULT_SAVE_DIR, build_session, run_repl
from cellcraft.content.rules import DEFAULT_GAME_RULES_PATH
from cellcraft.sim.movement import MOVEMENT_MODE_LIVE, MOVEMENT_MODE_MANUAL, PositionFeed


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="python play.py", description="cellcraft launcher.")
    parser.add_argument("--rules-path", default=DEFAULT_GAME_RULES_PATH, help="Game rules JSON path.")
    parser.add_argument("--save-dir", default=DEFAULT_SAVE_DIR, help="Directory holding the session snapshot.")
    parser.add_argument("--mode", choices=(MOVEMENT_MODE_MANUAL, MOVEMENT_MODE_LIVE), help="Initial movement mode.")
    parser.add_argument("--text", action="store_true", help="Play in the terminal instead of the pygame window.")
    parser.add_argument("--headless", action="store_true", help="Run pygame startup path in headless mode.")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    if args.text:
        feed = PositionFeed()
        session = build_session(rules_path=args.rules_path, save_dir=args.save_dir, feed=feed)
        if args.mode is not None:
            session.set_movement_mode(args.mode)
        run_repl(session, feed)
        return 0
    return run_pygame_viewer(
        rules_path=args.rules_path,
        save_dir=args.save_dir,
        mode=args.mode,
        headless=args.headless,
    )


if __name__ == "__main__":
    raise SystemExit(main())
