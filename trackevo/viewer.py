"""
pygame host loop: one pool tick per frame, then draw the track, the cars and a HUD.

SPACE: pause | N: new track | D: debug rays and trails | ESC: quit
"""

import os
import math
import logging

import numpy as np

from .config import Config
from .pool import Pool
from .raster import render_track

os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")
os.environ['SDL_VIDEO_CENTERED'] = '1'  # Center window
import pygame  # noqa: E402

logger = logging.getLogger(__name__)

TARGET_FPS = 60
BORDER_COLOR = (255, 255, 255)
CRASHED_COLOR = (200, 50, 50)
RAY_COLOR = (255, 220, 0)
TRAIL_COLOR = (90, 160, 255)


def draw_track(surface, track, config):
    render_track(track, config, surface)
    pygame.draw.lines(surface, BORDER_COLOR, True, [p.as_tuple() for p in track.left_border], 2)
    pygame.draw.lines(surface, BORDER_COLOR, True, [p.as_tuple() for p in track.right_border], 2)
    start = track.start_pose.position
    pygame.draw.circle(surface, (255, 60, 60), (int(start.x), int(start.y)), 5)


def draw_car(surface, car, debug=False):
    t = car.telemetry()
    x, y = t["pos"]
    if debug and len(t["trail"]) > 1:
        pygame.draw.lines(surface, TRAIL_COLOR, False, t["trail"], 1)
    if debug and not t["crashed"]:
        for hit in t["sensor_points"]:
            if hit is not None:
                pygame.draw.line(surface, RAY_COLOR, (x, y), hit, 1)
    color = CRASHED_COLOR if t["crashed"] else t["color"]
    pygame.draw.circle(surface, color, (int(x), int(y)), 5, 1)
    nose = (x + math.cos(t["heading"]) * 8, y + math.sin(t["heading"]) * 8)
    pygame.draw.line(surface, color, (x, y), nose, 1)


def hud_lines(pool):
    snap = pool.snapshot()
    leader = pool.best_car().telemetry()
    lines = [
        f"Gen: {snap['generation']}  |  Track: {snap['epoch']}  |  Alive: {snap['alive']}/{len(snap['cars'])}",
        f"Score: {leader['score']:.0f}  |  Lap: {leader['lap']}  |  Speed: {leader['speed']:.1f}",
    ]
    for mode, s in snap["heuristics"].items():
        lines.append(f"{mode}: Lap {s['lap']} - Speed {s['speed']:.0f} - Score {s['score']:.0f}"
                     f" - Dist {s['distance']:.0f} - Max speed {s['max_speed']:.0f}"
                     f" - Crash speed {s['crash_speed']:.0f}")
    return lines


def draw_frame(surface, pool, font=None, debug=False):
    draw_track(surface, pool.circuit.track, pool.config)
    for car in pool.all_cars():
        draw_car(surface, car, debug)
    if font is not None:
        for i, line in enumerate(hud_lines(pool)):
            surface.blit(font.render(line, True, (255, 255, 255)), (10, 10 + i * 18))
    return surface


def run(config=None, seed=None, genome="network"):
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    config = (config or Config()).validate()
    rng = np.random.default_rng(seed)

    pygame.init()
    screen = pygame.display.set_mode((config.canvas_width, config.canvas_height))
    pygame.display.set_caption("Racetrack Evolution")
    clock = pygame.time.Clock()
    font = pygame.font.SysFont("Consolas", 15)

    pool = Pool(config, rng, genome=genome)
    paused = False
    debug = False
    running = True
    while running:
        clock.tick(TARGET_FPS)
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                running = False
            elif event.type == pygame.KEYDOWN:
                if event.key == pygame.K_SPACE:
                    paused = not paused
                elif event.key == pygame.K_n:
                    pool.regenerate_track()
                elif event.key == pygame.K_d:
                    debug = not debug
                elif event.key == pygame.K_ESCAPE:
                    running = False

        if not paused and pool.tick():
            stats = pool.history[-1]
            logger.info("Gen %d | Best: %.0f | Mean: %.0f", stats.generation, stats.best_score, stats.mean_score)

        draw_frame(screen, pool, font, debug)
        pygame.display.flip()

    pygame.quit()
