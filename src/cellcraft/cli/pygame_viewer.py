from __future__ import annotations

import argparse
import importlib.metadata
import os
import platform
import sys
from typing import Any

from cellcraft.cli.viewer import DEFAULT_SAVE_DIR, build_session
from cellcraft.content.rules import DEFAULT_GAME_RULES_PATH
from cellcraft.sim.core import MODE_LIVE_UNAVAILABLE, GameSession, SessionEvent
from cellcraft.sim.crafting import InteractionResult
from cellcraft.sim.movement import MOVEMENT_MODE_LIVE, MOVEMENT_MODE_MANUAL, PositionFeed
from cellcraft.sim.world import CellCoord

CELL_SIZE = 34
WINDOW_SIZE = (960, 720)
HUD_HEIGHT = 72
BACKGROUND_COLOR = (17, 18, 25)
GRID_COLOR = (85, 85, 85)
RANGE_COLOR = (52, 70, 96)
PLAYER_COLOR = (235, 200, 80)
TOKEN_COLORS: dict[int, tuple[int, int, int]] = {
    1: (132, 168, 94),
    2: (61, 120, 72),
    4: (80, 160, 255),
    8: (153, 126, 90),
    16: (210, 85, 85),
}
DEFAULT_TOKEN_COLOR = (230, 230, 230)

ARROW_DIRECTIONS = {
    "K_UP": "north",
    "K_DOWN": "south",
    "K_RIGHT": "east",
    "K_LEFT": "west",
}

pygame: Any | None = None


def _env_flag_enabled(var_name: str) -> bool:
    return os.environ.get(var_name, "").strip().lower() in {"1", "true", "yes", "on"}


def _ensure_pygame_imported() -> Any:
    global pygame
    if pygame is None:
        import pygame as pygame_module

        pygame = pygame_module
    return pygame


def _print_startup_banner() -> None:
    try:
        pygame_version = importlib.metadata.version("pygame")
    except importlib.metadata.PackageNotFoundError:
        pygame_version = "not-installed"
    print(
        "[cellcraft.viewer] startup "
        f"python={platform.python_version()} "
        f"pygame={pygame_version} "
        f"platform={platform.platform()}"
    )


def _viewport_center() -> tuple[int, int]:
    return (WINDOW_SIZE[0] // 2, HUD_HEIGHT + (WINDOW_SIZE[1] - HUD_HEIGHT) // 2)


def cell_to_pixel(coord: CellCoord, player: CellCoord) -> tuple[int, int]:
    """Top-left pixel of ``coord`` with the player's cell centred; north is up."""
    center_x, center_y = _viewport_center()
    x = center_x - CELL_SIZE // 2 + (coord.j - player.j) * CELL_SIZE
    y = center_y - CELL_SIZE // 2 - (coord.i - player.i) * CELL_SIZE
    return (x, y)


def pixel_to_cell(pixel: tuple[int, int], player: CellCoord) -> CellCoord:
    center_x, center_y = _viewport_center()
    dj = (pixel[0] - (center_x - CELL_SIZE // 2)) // CELL_SIZE
    di = ((center_y + CELL_SIZE // 2) - pixel[1] - 1) // CELL_SIZE
    return CellCoord(player.i + int(di), player.j + int(dj))


def visible_radius() -> int:
    return max(WINDOW_SIZE[0], WINDOW_SIZE[1] - HUD_HEIGHT) // (2 * CELL_SIZE) + 1


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="python -m cellcraft.cli.pygame_viewer", description="cellcraft pygame viewer.")
    parser.add_argument("--rules-path", default=DEFAULT_GAME_RULES_PATH, help="Game rules JSON path.")
    parser.add_argument("--save-dir", default=DEFAULT_SAVE_DIR, help="Directory holding the session snapshot.")
    parser.add_argument(
        "--mode",
        choices=(MOVEMENT_MODE_MANUAL, MOVEMENT_MODE_LIVE),
        help="Movement mode to switch to after the snapshot is loaded.",
    )
    parser.add_argument(
        "--headless",
        action="store_true",
        help="Force SDL dummy video driver for CI/testing and exit after one frame.",
    )
    return parser


def _draw_session(screen: Any, session: GameSession, font: Any, status_message: str | None) -> None:
    screen.fill(BACKGROUND_COLOR)
    player = session.player_position
    interact_range = session.rules.interact_range
    for coord, content in session.cells_around(player, visible_radius()):
        x, y = cell_to_pixel(coord, player)
        if y + CELL_SIZE <= HUD_HEIGHT:
            continue
        rect = pygame.Rect(x, y, CELL_SIZE, CELL_SIZE)
        if max(abs(coord.i - player.i), abs(coord.j - player.j)) <= interact_range:
            pygame.draw.rect(screen, RANGE_COLOR, rect)
        pygame.draw.rect(screen, GRID_COLOR, rect, 1)
        if content.token is not None:
            color = TOKEN_COLORS.get(content.token, DEFAULT_TOKEN_COLOR)
            label = font.render(str(content.token), True, color)
            screen.blit(label, label.get_rect(center=rect.center))

    px, py = cell_to_pixel(player, player)
    pygame.draw.circle(screen, PLAYER_COLOR, (px + CELL_SIZE // 2, py + CELL_SIZE // 2), CELL_SIZE // 4)

    held = "nothing" if session.held is None else str(session.held)
    hud = f"Holding: {held}   mode={session.movement_mode}   pos=({player.i},{player.j})"
    screen.blit(font.render(hud, True, (235, 235, 235)), (12, 10))
    if status_message:
        screen.blit(font.render(status_message, True, (255, 210, 120)), (12, 40))


def run_pygame_viewer(
    *,
    rules_path: str | None = DEFAULT_GAME_RULES_PATH,
    save_dir: str = DEFAULT_SAVE_DIR,
    mode: str | None = None,
    headless: bool = False,
) -> int:
    if headless:
        os.environ["SDL_VIDEODRIVER"] = "dummy"
        print("[cellcraft.viewer] warning: headless mode active; no window will open.")

    _print_startup_banner()
    pygame_module = _ensure_pygame_imported()

    try:
        pygame_module.init()
    except Exception as exc:
        print(f"[cellcraft.viewer] failed during pygame.init(): {exc}", file=sys.stderr)
        return 1

    # No geolocation transport ships with the desktop viewer; live mode falls back to manual.
    feed = PositionFeed(available=False)
    try:
        session = build_session(rules_path=rules_path, save_dir=save_dir, feed=feed)
    except (OSError, ValueError) as exc:
        print(f"[cellcraft.viewer] failed to start session: {exc}", file=sys.stderr)
        pygame_module.quit()
        return 1

    status_message: str | None = None
    if mode is not None and session.set_movement_mode(mode) == MODE_LIVE_UNAVAILABLE:
        status_message = "Live position unavailable; using manual movement."

    try:
        pygame_module.display.set_caption("cellcraft")
        screen = pygame_module.display.set_mode(WINDOW_SIZE)
    except Exception as exc:
        print(
            "[cellcraft.viewer] failed during pygame.display.set_mode(...): "
            f"{exc}. Hint: use --headless or CELLCRAFT_HEADLESS=1 without a display.",
            file=sys.stderr,
        )
        pygame_module.quit()
        return 1

    font = pygame_module.font.SysFont("consolas", 20)
    print(
        f"[cellcraft.viewer] session pos=({session.player_position.i},{session.player_position.j}) "
        f"held={session.held} overrides={len(session.overrides)} mode={session.movement_mode}"
    )

    if headless:
        _draw_session(screen, session, font, status_message)
        pygame_module.quit()
        return 0

    dirty = True

    def on_session_event(_event: SessionEvent) -> None:
        nonlocal dirty
        dirty = True

    unsubscribe = session.subscribe(on_session_event)
    arrow_keys = {getattr(pygame_module, name): direction for name, direction in ARROW_DIRECTIONS.items()}
    clock = pygame_module.time.Clock()
    running = True
    while running:
        clock.tick(30)
        for event in pygame_module.event.get():
            if event.type == pygame_module.QUIT:
                running = False
            elif event.type == pygame_module.KEYDOWN and event.key == pygame_module.K_ESCAPE:
                running = False
            elif event.type == pygame_module.KEYDOWN and event.key in arrow_keys:
                session.step(arrow_keys[event.key])
            elif event.type == pygame_module.KEYDOWN and event.key == pygame_module.K_l:
                target_mode = MOVEMENT_MODE_MANUAL if session.movement_mode == MOVEMENT_MODE_LIVE else MOVEMENT_MODE_LIVE
                if session.set_movement_mode(target_mode) == MODE_LIVE_UNAVAILABLE:
                    status_message = "Live position unavailable; using manual movement."
                dirty = True
            elif event.type == pygame_module.KEYDOWN and event.key == pygame_module.K_F8:
                session.reset()
                status_message = "Progress reset."
            elif event.type == pygame_module.MOUSEBUTTONDOWN and event.button == 1 and event.pos[1] > HUD_HEIGHT:
                result: InteractionResult = session.interact(pixel_to_cell(event.pos, session.player_position))
                status_message = result.message
                dirty = True

        if dirty:
            _draw_session(screen, session, font, status_message)
            pygame_module.display.flip()
            dirty = False

    unsubscribe()
    pygame_module.quit()
    return 0


def main(argv: list[str] | None = None) -> None:
    args = _build_parser().parse_args(argv)
    headless = args.headless or _env_flag_enabled("CELLCRAFT_HEADLESS")
    raise SystemExit(
        run_pygame_viewer(
            rules_path=args.rules_path,
            save_dir=args.save_dir,
            mode=args.mode,
            headless=headless,
        )
    )


if __name__ == "__main__":
    main()
