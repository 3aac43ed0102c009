"""
Numba-optimized density computation for SPH.

Each prange task walks its 3x3 cells through the offset table and scans the
key run, skipping rows whose full hash belongs to another cell.
"""

import math
import numpy as np
import numba as nb
from ..core.particles import ParticleArrays
from ..core.kernels import KernelScales
from ..core.kernels_numba import density_kernel, near_density_kernel
from ..core.spatial_hash_numba import cell_coord, hash_cell, key_from_hash
from ..core.spatial_hash_vectorized import SpatialHashTable


@nb.njit(parallel=True, fastmath=True, cache=True)
def compute_density_numba(predicted_position: np.ndarray, indices: np.ndarray,
                          offsets: np.ndarray, density: np.ndarray,
                          near_density: np.ndarray, n_active: int, radius: float,
                          density_scale: float, near_density_scale: float):
    """Density and near density, self term included."""
    sqr_radius = radius * radius

    for i in nb.prange(n_active):
        px = np.float64(predicted_position[i, 0])
        py = np.float64(predicted_position[i, 1])
        cx = cell_coord(px, radius)
        cy = cell_coord(py, radius)
        rho = 0.0
        near_rho = 0.0

        for dcx in range(-1, 2):
            for dcy in range(-1, 2):
                cell_hash = hash_cell(cx + dcx, cy + dcy)
                key = key_from_hash(cell_hash, n_active)
                row = offsets[key]

                while row < n_active:
                    if indices[row, 2] != key:
                        break
                    j = indices[row, 0]
                    same_cell = indices[row, 1] == cell_hash
                    row += 1
                    if not same_cell:
                        continue

                    ox = np.float64(predicted_position[j, 0]) - px
                    oy = np.float64(predicted_position[j, 1]) - py
                    sqr_dst = ox * ox + oy * oy
                    if sqr_dst > sqr_radius:
                        continue

                    dst = math.sqrt(sqr_dst)
                    rho += density_kernel(dst, radius, density_scale)
                    near_rho += near_density_kernel(dst, radius, near_density_scale)

        density[i] = rho
        near_density[i] = near_rho


def compute_density_numba_wrapper(particles: ParticleArrays, table: SpatialHashTable,
                                  n_active: int, scales: KernelScales):
    """Wrapper for Numba density computation that matches standard interface."""
    compute_density_numba(
        particles.predicted_position, table.indices, table.offsets,
        particles.density, particles.near_density,
        n_active, scales.radius, scales.spiky_pow2, scales.spiky_pow3
    )
