"""
Numba-optimized external forces and integration with collision response.

One prange task per particle; each task only touches its own slot.
"""

import math
import numpy as np
import numba as nb
from .particles import ParticleArrays
from .params import SimulationParameters


@nb.njit(parallel=True, fastmath=True, cache=True)
def external_forces_numba(position: np.ndarray, velocity: np.ndarray,
                          predicted_position: np.ndarray, n_active: int,
                          gravity: float, delta_time: float, prediction_factor: float,
                          point_x: float, point_y: float,
                          strength: float, radius: float):
    """Gravity plus interaction field, then position prediction."""
    for i in nb.prange(n_active):
        px = np.float64(position[i, 0])
        py = np.float64(position[i, 1])
        vx = np.float64(velocity[i, 0])
        vy = np.float64(velocity[i, 1])

        ax = 0.0
        ay = -gravity

        if strength != 0.0 and radius > 0.0:
            ox = point_x - px
            oy = point_y - py
            sqr_dst = ox * ox + oy * oy
            if sqr_dst < radius * radius:
                dst = math.sqrt(sqr_dst)
                centre_t = 1.0 - dst / radius
                dir_x = 0.0
                dir_y = 0.0
                if dst > 0.0:
                    dir_x = ox / dst
                    dir_y = oy / dst
                gravity_weight = 1.0 - centre_t * min(max(strength / 10.0, 0.0), 1.0)
                ax = ax * gravity_weight + dir_x * centre_t * strength - vx * centre_t
                ay = ay * gravity_weight + dir_y * centre_t * strength - vy * centre_t

        vx += ax * delta_time
        vy += ay * delta_time
        velocity[i, 0] = vx
        velocity[i, 1] = vy
        predicted_position[i, 0] = px + vx * prediction_factor
        predicted_position[i, 1] = py + vy * prediction_factor


@nb.njit(parallel=True, fastmath=True, cache=True)
def integrate_numba(position: np.ndarray, velocity: np.ndarray, n_active: int,
                    delta_time: float, damping: float,
                    half_x: float, half_y: float,
                    boxes: np.ndarray, circles: np.ndarray):
    """Advance positions and resolve bounds, boxes and circles in order."""
    for i in nb.prange(n_active):
        vx = np.float64(velocity[i, 0])
        vy = np.float64(velocity[i, 1])
        px = np.float64(position[i, 0]) + vx * delta_time
        py = np.float64(position[i, 1]) + vy * delta_time

        # World bounds
        if half_x - abs(px) <= 0.0:
            px = half_x if px >= 0.0 else -half_x
            vx *= -damping
        if half_y - abs(py) <= 0.0:
            py = half_y if py >= 0.0 else -half_y
            vy *= -damping

        # Oriented boxes, first listed resolved first
        for b in range(boxes.shape[0]):
            cx = boxes[b, 0]
            cy = boxes[b, 1]
            hx = boxes[b, 2] * 0.5
            hy = boxes[b, 3] * 0.5
            fx = boxes[b, 4]
            fy = boxes[b, 5]
            # Local x axis is (fy, -fx), local y axis is the forward axis
            rx = px - cx
            ry = py - cy
            lpx = rx * fy - ry * fx
            lpy = rx * fx + ry * fy
            edge_x = hx - abs(lpx)
            edge_y = hy - abs(lpy)
            if edge_x >= 0.0 and edge_y >= 0.0:
                lvx = vx * fy - vy * fx
                lvy = vx * fx + vy * fy
                if edge_x < edge_y:
                    lpx = hx if lpx >= 0.0 else -hx
                    lvx *= -damping
                else:
                    lpy = hy if lpy >= 0.0 else -hy
                    lvy *= -damping
                px = cx + lpx * fy + lpy * fx
                py = cy - lpx * fx + lpy * fy
                vx = lvx * fy + lvy * fx
                vy = -lvx * fx + lvy * fy

        # Circles
        for c in range(circles.shape[0]):
            ox = px - circles[c, 0]
            oy = py - circles[c, 1]
            r = circles[c, 2]
            sqr_dst = ox * ox + oy * oy
            if sqr_dst < r * r:
                dst = math.sqrt(sqr_dst)
                nx = 0.0
                ny = 1.0
                if dst > 0.0:
                    nx = ox / dst
                    ny = oy / dst
                px = circles[c, 0] + nx * r
                py = circles[c, 1] + ny * r
                normal_speed = vx * nx + vy * ny
                if normal_speed < 0.0:
                    vx -= (1.0 + damping) * normal_speed * nx
                    vy -= (1.0 + damping) * normal_speed * ny

        position[i, 0] = px
        position[i, 1] = py
        velocity[i, 0] = vx
        velocity[i, 1] = vy


def apply_external_forces_numba_wrapper(particles: ParticleArrays, n_active: int,
                                        params: SimulationParameters):
    """Wrapper for the Numba external-force kernel."""
    external_forces_numba(
        particles.position, particles.velocity, particles.predicted_position,
        n_active, float(params.gravity), float(params.delta_time),
        float(params.prediction_factor),
        params.interaction_point[0], params.interaction_point[1],
        float(params.interaction_strength), float(params.interaction_radius)
    )


def integrate_numba_wrapper(particles: ParticleArrays, n_active: int,
                            params: SimulationParameters):
    """Wrapper for the Numba integration kernel."""
    integrate_numba(
        particles.position, particles.velocity, n_active,
        float(params.delta_time), float(params.collision_damping),
        params.bounds_half_extent[0], params.bounds_half_extent[1],
        params.box_collider_array(), params.circle_collider_array()
    )
