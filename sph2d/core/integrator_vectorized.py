"""
Vectorized external forces and time integration for SPH particles.

Includes:
- Gravity plus the radial interaction field, with position prediction
- Explicit position update
- Collision response against world bounds, oriented boxes and circles
"""

import numpy as np
from typing import Tuple
from .particles import ParticleArrays
from .params import SimulationParameters


def external_acceleration_vectorized(position: np.ndarray, velocity: np.ndarray,
                                     params: SimulationParameters) -> np.ndarray:
    """Gravity and interaction-field acceleration, shape (N, 2).

    Inside the interaction radius the field blends out gravity, pulls toward
    (or pushes from) the interaction point and damps velocity, all weighted
    by closeness to the point.
    """
    n = position.shape[0]
    accel = np.zeros((n, 2), dtype=np.float64)
    accel[:, 1] = -params.gravity

    strength = params.interaction_strength
    radius = params.interaction_radius
    if strength == 0.0 or radius == 0.0:
        return accel

    offset = np.asarray(params.interaction_point, dtype=np.float64) - position
    sqr_dst = np.einsum('ij,ij->i', offset, offset)
    inside = sqr_dst < radius * radius
    if not np.any(inside):
        return accel

    dst = np.sqrt(sqr_dst[inside])
    centre_t = (1.0 - dst / radius)[:, np.newaxis]
    dir_to_centre = np.zeros_like(offset[inside])
    nonzero = dst > 0
    dir_to_centre[nonzero] = offset[inside][nonzero] / dst[nonzero, np.newaxis]

    gravity_weight = 1.0 - centre_t * np.clip(strength / 10.0, 0.0, 1.0)
    accel[inside] = (accel[inside] * gravity_weight
                     + dir_to_centre * centre_t * strength
                     - velocity[inside] * centre_t)
    return accel


def apply_external_forces_vectorized(particles: ParticleArrays, n_active: int,
                                     params: SimulationParameters):
    """Add external acceleration to velocity and predict the look-ahead position."""
    position = particles.position[:n_active].astype(np.float64)
    velocity = particles.velocity[:n_active].astype(np.float64)

    velocity += external_acceleration_vectorized(position, velocity, params) * params.delta_time

    particles.velocity[:n_active] = velocity
    particles.predicted_position[:n_active] = position + velocity * params.prediction_factor


def resolve_bounds_vectorized(position: np.ndarray, velocity: np.ndarray,
                              half_extent: Tuple[float, float], damping: float):
    """Clamp to the world box and reflect+damp the offending velocity axis."""
    half = np.asarray(half_extent, dtype=np.float64)
    outside = half - np.abs(position) <= 0
    position[outside] = np.where(position >= 0, half, -half)[outside]
    velocity[outside] *= -damping


def resolve_box_vectorized(position: np.ndarray, velocity: np.ndarray,
                           box: np.ndarray, damping: float):
    """Push particles out of one oriented box along the least-penetrated axis.

    Args:
        box: (cx, cy, sx, sy, fx, fy) with a unit forward axis
    """
    centre = box[0:2]
    half = box[2:4] * 0.5
    axis_y = box[4:6]
    axis_x = np.array([axis_y[1], -axis_y[0]])
    basis = np.stack([axis_x, axis_y])  # rows are the local axes

    local_pos = (position - centre) @ basis.T
    edge_dst = half - np.abs(local_pos)
    inside = np.all(edge_dst >= 0, axis=1)
    if not np.any(inside):
        return

    local_vel = velocity[inside] @ basis.T
    lp = local_pos[inside]
    side = np.where(lp >= 0, 1.0, -1.0)
    push_x = edge_dst[inside, 0] < edge_dst[inside, 1]

    lp[push_x, 0] = half[0] * side[push_x, 0]
    local_vel[push_x, 0] *= -damping
    lp[~push_x, 1] = half[1] * side[~push_x, 1]
    local_vel[~push_x, 1] *= -damping

    position[inside] = centre + lp @ basis
    velocity[inside] = local_vel @ basis


def resolve_circle_vectorized(position: np.ndarray, velocity: np.ndarray,
                              circle: np.ndarray, damping: float):
    """Push particles out of one circle and reflect+damp inward normal velocity."""
    centre = circle[0:2]
    radius = circle[2]

    offset = position - centre
    sqr_dst = np.einsum('ij,ij->i', offset, offset)
    inside = sqr_dst < radius * radius
    if not np.any(inside):
        return

    dst = np.sqrt(sqr_dst[inside])
    normal = np.zeros((dst.shape[0], 2))
    normal[:, 1] = 1.0
    nonzero = dst > 0
    normal[nonzero] = offset[inside][nonzero] / dst[nonzero, np.newaxis]

    position[inside] = centre + normal * radius

    vel = velocity[inside]
    normal_speed = np.einsum('ij,ij->i', vel, normal)
    approaching = normal_speed < 0
    vel[approaching] -= ((1.0 + damping) * normal_speed[approaching])[:, np.newaxis] * normal[approaching]
    velocity[inside] = vel


def integrate_vectorized(particles: ParticleArrays, n_active: int,
                         params: SimulationParameters):
    """Advance positions, then resolve bounds, boxes and circles in that order."""
    position = particles.position[:n_active].astype(np.float64)
    velocity = particles.velocity[:n_active].astype(np.float64)
    damping = params.collision_damping

    position += velocity * params.delta_time

    resolve_bounds_vectorized(position, velocity, params.bounds_half_extent, damping)
    for box in params.box_collider_array():
        resolve_box_vectorized(position, velocity, box, damping)
    for circle in params.circle_collider_array():
        resolve_circle_vectorized(position, velocity, circle, damping)

    particles.position[:n_active] = position
    particles.velocity[:n_active] = velocity
