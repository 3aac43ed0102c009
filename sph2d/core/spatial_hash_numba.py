"""
Numba-optimized spatial hashing for SPH neighbor searches.

Produces exactly the same table layout as the vectorized version. Row
emission runs in parallel; the counting sort is sequential because it is
the one stage with a genuine ordering dependency. Lookups are inlined in
the passes (see physics/*_numba.py) and use the helpers below.
"""

import math
import numpy as np
import numba as nb

from .spatial_hash_vectorized import HASH_K1, HASH_K2, HASH_MASK


@nb.njit(cache=True)
def cell_coord(value: float, cell_size: float) -> int:
    return math.floor(value / cell_size)


@nb.njit(cache=True)
def hash_cell(cell_x: int, cell_y: int) -> int:
    return (cell_x * HASH_K1 + cell_y * HASH_K2) & HASH_MASK


@nb.njit(cache=True)
def key_from_hash(cell_hash: int, table_size: int) -> int:
    return cell_hash % table_size


@nb.njit(parallel=True, cache=True)
def build_hash_entries_numba(points: np.ndarray, n_active: int,
                             indices: np.ndarray, cell_size: float):
    """One unsorted (particle_index, hash, key) row per particle."""
    for i in nb.prange(n_active):
        cx = cell_coord(np.float64(points[i, 0]), cell_size)
        cy = cell_coord(np.float64(points[i, 1]), cell_size)
        cell_hash = hash_cell(cx, cy)
        indices[i, 0] = i
        indices[i, 1] = cell_hash
        indices[i, 2] = key_from_hash(cell_hash, n_active)


@nb.njit(cache=True)
def sort_and_offsets_numba(indices: np.ndarray, offsets: np.ndarray, n_active: int):
    """Stable counting sort of the rows by key, then per-key offsets."""
    counts = np.zeros(n_active, dtype=np.int64)
    for i in range(n_active):
        counts[indices[i, 2]] += 1

    # Exclusive prefix sum gives the first row of every key
    starts = np.zeros(n_active, dtype=np.int64)
    running = 0
    for key in range(n_active):
        starts[key] = running
        if counts[key] > 0:
            offsets[key] = running
        else:
            offsets[key] = n_active
        running += counts[key]

    unsorted = indices[:n_active].copy()
    for i in range(n_active):
        key = unsorted[i, 2]
        row = starts[key]
        indices[row, 0] = unsorted[i, 0]
        indices[row, 1] = unsorted[i, 1]
        indices[row, 2] = key
        starts[key] = row + 1

