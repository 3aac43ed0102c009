"""
Numba-optimized pressure and viscosity passes for SPH.

Same neighbor walk as the density pass, minus the self pair. The viscosity
kernel reads neighbor velocities from a copy taken before the pass so no
task observes a velocity another task of the same pass is writing.
"""

import math
import numpy as np
import numba as nb
from ..core.particles import ParticleArrays
from ..core.params import SimulationParameters
from ..core.kernels import KernelScales
from ..core.kernels_numba import density_derivative, near_density_derivative, viscosity_kernel
from ..core.spatial_hash_numba import cell_coord, hash_cell, key_from_hash
from ..core.spatial_hash_vectorized import SpatialHashTable


@nb.njit(parallel=True, fastmath=True, cache=True)
def apply_pressure_numba(predicted_position: np.ndarray, velocity: np.ndarray,
                         density: np.ndarray, near_density: np.ndarray,
                         indices: np.ndarray, offsets: np.ndarray, n_active: int,
                         radius: float, derivative_scale: float, near_derivative_scale: float,
                         target_density: float, pressure_multiplier: float,
                         near_pressure_multiplier: float, delta_time: float):
    """Symmetric pressure force from density and near density."""
    sqr_radius = radius * radius

    for i in nb.prange(n_active):
        px = np.float64(predicted_position[i, 0])
        py = np.float64(predicted_position[i, 1])
        rho = np.float64(density[i])
        pressure = (rho - target_density) * pressure_multiplier
        near_pressure = near_pressure_multiplier * np.float64(near_density[i])
        cx = cell_coord(px, radius)
        cy = cell_coord(py, radius)
        force_x = 0.0
        force_y = 0.0

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
                    if not same_cell or j == i:
                        continue

                    ox = np.float64(predicted_position[j, 0]) - px
                    oy = np.float64(predicted_position[j, 1]) - py
                    sqr_dst = ox * ox + oy * oy
                    if sqr_dst > sqr_radius:
                        continue

                    dst = math.sqrt(sqr_dst)
                    dir_x = 0.0
                    dir_y = 1.0
                    if dst > 0.0:
                        dir_x = ox / dst
                        dir_y = oy / dst

                    neighbor_density = np.float64(density[j])
                    neighbor_near_density = np.float64(near_density[j])
                    neighbor_pressure = (neighbor_density - target_density) * pressure_multiplier
                    neighbor_near_pressure = near_pressure_multiplier * neighbor_near_density
                    shared_pressure = 0.5 * (pressure + neighbor_pressure)
                    shared_near_pressure = 0.5 * (near_pressure + neighbor_near_pressure)

                    magnitude = (density_derivative(dst, radius, derivative_scale)
                                 * shared_pressure / neighbor_density
                                 + near_density_derivative(dst, radius, near_derivative_scale)
                                 * shared_near_pressure / neighbor_near_density)
                    force_x += dir_x * magnitude
                    force_y += dir_y * magnitude

        velocity[i, 0] = np.float64(velocity[i, 0]) + force_x / rho * delta_time
        velocity[i, 1] = np.float64(velocity[i, 1]) + force_y / rho * delta_time


@nb.njit(parallel=True, fastmath=True, cache=True)
def apply_viscosity_numba(predicted_position: np.ndarray, velocity_in: np.ndarray,
                          velocity_out: np.ndarray, indices: np.ndarray, offsets: np.ndarray,
                          n_active: int, radius: float, poly6_scale: float,
                          viscosity_strength: float, delta_time: float):
    """Velocity-difference viscosity using the poly6 kernel."""
    sqr_radius = radius * radius

    for i in nb.prange(n_active):
        px = np.float64(predicted_position[i, 0])
        py = np.float64(predicted_position[i, 1])
        vx = np.float64(velocity_in[i, 0])
        vy = np.float64(velocity_in[i, 1])
        cx = cell_coord(px, radius)
        cy = cell_coord(py, radius)
        force_x = 0.0
        force_y = 0.0

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
                    if not same_cell or j == i:
                        continue

                    ox = np.float64(predicted_position[j, 0]) - px
                    oy = np.float64(predicted_position[j, 1]) - py
                    sqr_dst = ox * ox + oy * oy
                    if sqr_dst > sqr_radius:
                        continue

                    weight = viscosity_kernel(math.sqrt(sqr_dst), radius, poly6_scale)
                    force_x += (np.float64(velocity_in[j, 0]) - vx) * weight
                    force_y += (np.float64(velocity_in[j, 1]) - vy) * weight

        velocity_out[i, 0] = vx + force_x * viscosity_strength * delta_time
        velocity_out[i, 1] = vy + force_y * viscosity_strength * delta_time


def apply_pressure_numba_wrapper(particles: ParticleArrays, table: SpatialHashTable,
                                 n_active: int, params: SimulationParameters,
                                 scales: KernelScales):
    """Wrapper for the Numba pressure pass."""
    apply_pressure_numba(
        particles.predicted_position, particles.velocity,
        particles.density, particles.near_density,
        table.indices, table.offsets, n_active,
        scales.radius, scales.spiky_pow2_derivative, scales.spiky_pow3_derivative,
        float(params.target_density), float(params.pressure_multiplier),
        float(params.near_pressure_multiplier), float(params.delta_time)
    )


def apply_viscosity_numba_wrapper(particles: ParticleArrays, table: SpatialHashTable,
                                  n_active: int, params: SimulationParameters,
                                  scales: KernelScales):
    """Wrapper for the Numba viscosity pass."""
    velocity_in = particles.velocity[:n_active].copy()
    apply_viscosity_numba(
        particles.predicted_position, velocity_in, particles.velocity,
        table.indices, table.offsets, n_active,
        scales.radius, scales.poly6,
        float(params.viscosity_strength), float(params.delta_time)
    )
