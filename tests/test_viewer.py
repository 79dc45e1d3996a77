import numpy as np
import pygame

from trackevo.pool import Pool
from trackevo.viewer import draw_frame, hud_lines


def test_draw_frame_off_screen(config, ring_circuit):
    pool = Pool(config, np.random.default_rng(0), circuit=ring_circuit)
    pool.tick()
    surface = pygame.Surface((config.canvas_width, config.canvas_height))
    assert draw_frame(surface, pool, debug=True) is surface
    assert tuple(surface.get_at((5, 5)))[:3] == config.off_track_color


def test_hud_lines(config, ring_circuit):
    pool = Pool(config, np.random.default_rng(0), genome="angle", circuit=ring_circuit)
    lines = hud_lines(pool)
    assert len(lines) == 2
    assert lines[0].startswith("Gen: 1")
    assert f"Alive: {config.population_size}/{config.population_size}" in lines[0]


def test_hud_lists_heuristic_modes(config, ring_circuit):
    config = config.replace(enable_heuristic_group=True)
    pool = Pool(config, np.random.default_rng(0), circuit=ring_circuit)
    pool.tick()
    lines = hud_lines(pool)
    assert len(lines) == 4
    assert lines[2].startswith("BASIC: Lap 0")
    assert lines[3].startswith("PERCENTAGE: Lap 0")
