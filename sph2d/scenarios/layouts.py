"""
Initial particle layouts for tests and the headless runner.
"""

import numpy as np
from typing import Optional, Tuple


def create_square_grid(rows: int, cols: int, spacing: float,
                       center: Tuple[float, float] = (0.0, 0.0)) -> np.ndarray:
    """Regular rows x cols lattice centred on `center`.

    Returns:
        Array of (x, y) positions, row-major
    """
    xs = (np.arange(cols) - (cols - 1) / 2.0) * spacing + center[0]
    ys = (np.arange(rows) - (rows - 1) / 2.0) * spacing + center[1]
    grid_x, grid_y = np.meshgrid(xs, ys)
    return np.column_stack((grid_x.ravel(), grid_y.ravel())).astype(np.float32)


def create_block_layout(n_particles: int, spacing: float,
                        center: Tuple[float, float] = (0.0, 0.0),
                        jitter: float = 0.0, seed: Optional[int] = None) -> np.ndarray:
    """Roughly square block of n_particles, optionally jittered.

    Args:
        n_particles: Number of positions to generate
        spacing: Lattice spacing
        center: Block centre
        jitter: Max random displacement per axis (fraction of spacing)
        seed: Seed for the jitter

    Returns:
        Array of (x, y) positions
    """
    cols = int(np.ceil(np.sqrt(n_particles)))
    rows = int(np.ceil(n_particles / cols))
    positions = create_square_grid(rows, cols, spacing, center)[:n_particles]

    if jitter > 0:
        rng = np.random.default_rng(seed)
        positions = positions + rng.uniform(-jitter, jitter, positions.shape) * spacing
    return positions.astype(np.float32)
