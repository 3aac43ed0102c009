"""
Fully vectorized force computation for SPH.

Includes:
- Linear equation of state with a near-pressure term
- Symmetric pressure-gradient force
- Velocity-difference viscosity

Both force passes exclude the self pair and update velocity directly.
"""

import numpy as np
from typing import Tuple
from ..core.particles import ParticleArrays
from ..core.params import SimulationParameters
from ..core.kernels import (KernelScales, density_derivative, near_density_derivative,
                            viscosity_kernel)
from ..core.spatial_hash_vectorized import SpatialHashTable, query_neighbor_pairs


def pressure_from_density(density: np.ndarray, target_density: float,
                          pressure_multiplier: float) -> np.ndarray:
    """Linear EOS: positive above the target density, negative below."""
    return (density - target_density) * pressure_multiplier


def near_pressure_from_density(near_density: np.ndarray,
                               near_pressure_multiplier: float) -> np.ndarray:
    """Always-repulsive short-range pressure."""
    return near_pressure_multiplier * near_density


def _neighbor_pairs_without_self(particles: ParticleArrays, table: SpatialHashTable,
                                 n_active: int, radius: float) -> Tuple[np.ndarray, ...]:
    owner, neighbor, offset, dst = query_neighbor_pairs(
        particles.predicted_position, n_active, table, radius)
    others = owner != neighbor
    return owner[others], neighbor[others], offset[others], dst[others]


def compute_pressure_acceleration_vectorized(particles: ParticleArrays, table: SpatialHashTable,
                                             n_active: int, params: SimulationParameters,
                                             scales: KernelScales) -> np.ndarray:
    """Pressure acceleration of every particle, shape (N, 2).

    F_i = Σⱼ dirᵢⱼ · W'(r) · (Pᵢ + Pⱼ)/2 / ρⱼ
        + Σⱼ dirᵢⱼ · W'near(r) · (Pnᵢ + Pnⱼ)/2 / ρnⱼ
    a_i = F_i / ρᵢ

    dirᵢⱼ points from i toward j and falls back to (0, 1) for coincident
    particles. The derivatives are non-positive, so positive shared pressure
    pushes the pair apart.
    """
    density = particles.density[:n_active].astype(np.float64)
    near_density = particles.near_density[:n_active].astype(np.float64)
    pressure = pressure_from_density(density, params.target_density, params.pressure_multiplier)
    near_pressure = near_pressure_from_density(near_density, params.near_pressure_multiplier)

    owner, neighbor, offset, dst = _neighbor_pairs_without_self(
        particles, table, n_active, scales.radius)

    direction = np.zeros_like(offset)
    direction[:, 1] = 1.0
    apart = dst > 0
    direction[apart] = offset[apart] / dst[apart, np.newaxis]

    shared_pressure = 0.5 * (pressure[owner] + pressure[neighbor])
    shared_near_pressure = 0.5 * (near_pressure[owner] + near_pressure[neighbor])
    magnitude = (density_derivative(dst, scales) * shared_pressure / density[neighbor]
                 + near_density_derivative(dst, scales) * shared_near_pressure
                 / near_density[neighbor])

    force_x = np.bincount(owner, weights=direction[:, 0] * magnitude, minlength=n_active)
    force_y = np.bincount(owner, weights=direction[:, 1] * magnitude, minlength=n_active)
    return np.column_stack((force_x, force_y)) / density[:, np.newaxis]


def apply_pressure_forces_vectorized(particles: ParticleArrays, table: SpatialHashTable,
                                     n_active: int, params: SimulationParameters,
                                     scales: KernelScales):
    """Integrate the pressure acceleration into velocity."""
    accel = compute_pressure_acceleration_vectorized(particles, table, n_active, params, scales)
    particles.velocity[:n_active] = (particles.velocity[:n_active].astype(np.float64)
                                     + accel * params.delta_time)


def apply_viscosity_vectorized(particles: ParticleArrays, table: SpatialHashTable,
                               n_active: int, params: SimulationParameters,
                               scales: KernelScales):
    """Explicit viscosity: v_i += μ·dt·Σⱼ (vⱼ - vᵢ) W_visc(r).

    Neighbor velocities are read from the state at the start of the pass.
    No substepping is done; the host keeps μ·dt in the stable range.
    """
    velocity = particles.velocity[:n_active].astype(np.float64)
    owner, neighbor, _, dst = _neighbor_pairs_without_self(
        particles, table, n_active, scales.radius)

    weight = viscosity_kernel(dst, scales)
    delta = (velocity[neighbor] - velocity[owner]) * weight[:, np.newaxis]
    force = np.column_stack((
        np.bincount(owner, weights=delta[:, 0], minlength=n_active),
        np.bincount(owner, weights=delta[:, 1], minlength=n_active),
    ))
    particles.velocity[:n_active] = velocity + force * params.viscosity_strength * params.delta_time
