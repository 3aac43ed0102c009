"""
Step-scoped simulation parameters and collider descriptions.

A fresh SimulationParameters instance is built from host state before every
step and stays immutable while the seven passes run. Validation happens on
construction so a bad configuration never reaches the kernels.
"""

import math
import numpy as np
from dataclasses import dataclass, field, replace
from typing import Dict, Tuple


class ConfigurationError(ValueError):
    """Parameters that would make the kernels ill-defined."""


class CapacityError(RuntimeError):
    """More particles requested than the buffers were allocated for."""


@dataclass(frozen=True)
class BoxCollider:
    """Oriented box obstacle.

    `size` is the full width/height in the box frame. `forward` is the box's
    local y axis; its local x axis is (forward.y, -forward.x), so an
    axis-aligned box has forward (0, 1).
    """
    center: Tuple[float, float]
    size: Tuple[float, float]
    forward: Tuple[float, float] = (0.0, 1.0)

    def __post_init__(self):
        fx, fy = (float(v) for v in self.forward)
        length = math.hypot(fx, fy)
        if length == 0.0:
            raise ConfigurationError("Box collider forward axis must be non-zero")
        if self.size[0] < 0 or self.size[1] < 0:
            raise ConfigurationError(f"Box collider size must be non-negative, got {self.size}")
        object.__setattr__(self, 'center', tuple(float(v) for v in self.center))
        object.__setattr__(self, 'size', tuple(float(v) for v in self.size))
        object.__setattr__(self, 'forward', (fx / length, fy / length))


@dataclass(frozen=True)
class CircleCollider:
    """Circular obstacle."""
    center: Tuple[float, float]
    radius: float

    def __post_init__(self):
        if self.radius < 0:
            raise ConfigurationError(f"Circle collider radius must be non-negative, got {self.radius}")
        object.__setattr__(self, 'center', tuple(float(v) for v in self.center))
        object.__setattr__(self, 'radius', float(self.radius))


@dataclass(frozen=True)
class FluidProperties:
    """The per-fluid subset of the parameters a host swaps in one go."""
    name: str
    gravity: float
    collision_damping: float
    smoothing_radius: float
    target_density: float
    pressure_multiplier: float
    near_pressure_multiplier: float
    viscosity_strength: float


# Tuned for the default 17 x 9 bounds: rest spacing stays well inside the smoothing radius
FLUID_PRESETS: Dict[str, FluidProperties] = {
    'water': FluidProperties('Water', gravity=12.0, collision_damping=0.95,
                             smoothing_radius=0.35, target_density=55.0,
                             pressure_multiplier=500.0, near_pressure_multiplier=18.0,
                             viscosity_strength=0.06),
    'steam': FluidProperties('Steam', gravity=-2.0, collision_damping=0.5,
                             smoothing_radius=0.5, target_density=10.0,
                             pressure_multiplier=150.0, near_pressure_multiplier=5.0,
                             viscosity_strength=0.01),
    'honey': FluidProperties('Honey', gravity=12.0, collision_damping=0.2,
                             smoothing_radius=0.35, target_density=60.0,
                             pressure_multiplier=300.0, near_pressure_multiplier=20.0,
                             viscosity_strength=0.5),
}


@dataclass(frozen=True)
class SimulationParameters:
    """Immutable parameter record for a single simulation step.

    Gravity is a scalar magnitude acting along -y. A positive
    interaction_strength pulls particles toward interaction_point, a negative
    one pushes them away; zero disables the interaction field.
    """
    num_particles: int
    delta_time: float = 1.0 / 120.0
    gravity: float = 12.0
    collision_damping: float = 0.95
    smoothing_radius: float = 0.35
    target_density: float = 55.0
    pressure_multiplier: float = 500.0
    near_pressure_multiplier: float = 18.0
    viscosity_strength: float = 0.06
    bounds_half_extent: Tuple[float, float] = (8.5, 4.5)
    interaction_point: Tuple[float, float] = (0.0, 0.0)
    interaction_strength: float = 0.0
    interaction_radius: float = 2.0
    box_colliders: Tuple[BoxCollider, ...] = field(default_factory=tuple)
    circle_colliders: Tuple[CircleCollider, ...] = field(default_factory=tuple)
    # Look-ahead used for the predicted position
    prediction_factor: float = 1.0 / 120.0

    def __post_init__(self):
        if int(self.num_particles) <= 0:
            raise ConfigurationError(f"num_particles must be positive, got {self.num_particles}")
        if not self.smoothing_radius > 0:
            raise ConfigurationError(f"smoothing_radius must be positive, got {self.smoothing_radius}")
        if not self.target_density > 0:
            raise ConfigurationError(f"target_density must be positive, got {self.target_density}")
        if not 0.0 <= self.collision_damping <= 1.0:
            raise ConfigurationError(
                f"collision_damping must lie in [0, 1], got {self.collision_damping}")
        if self.delta_time < 0:
            raise ConfigurationError(f"delta_time must be non-negative, got {self.delta_time}")
        if self.bounds_half_extent[0] < 0 or self.bounds_half_extent[1] < 0:
            raise ConfigurationError(
                f"bounds_half_extent must be non-negative, got {self.bounds_half_extent}")
        if self.interaction_radius < 0:
            raise ConfigurationError(
                f"interaction_radius must be non-negative, got {self.interaction_radius}")

        # Accept lists from host code but keep the record hashable and immutable
        object.__setattr__(self, 'num_particles', int(self.num_particles))
        object.__setattr__(self, 'bounds_half_extent', tuple(float(v) for v in self.bounds_half_extent))
        object.__setattr__(self, 'interaction_point', tuple(float(v) for v in self.interaction_point))
        object.__setattr__(self, 'box_colliders', tuple(self.box_colliders))
        object.__setattr__(self, 'circle_colliders', tuple(self.circle_colliders))

    def with_updates(self, **changes) -> 'SimulationParameters':
        """Build the next step's snapshot; validation runs again."""
        return replace(self, **changes)

    def with_fluid(self, fluid: FluidProperties) -> 'SimulationParameters':
        """Swap in a fluid's physical properties."""
        return self.with_updates(
            gravity=fluid.gravity,
            collision_damping=fluid.collision_damping,
            smoothing_radius=fluid.smoothing_radius,
            target_density=fluid.target_density,
            pressure_multiplier=fluid.pressure_multiplier,
            near_pressure_multiplier=fluid.near_pressure_multiplier,
            viscosity_strength=fluid.viscosity_strength,
        )

    def box_collider_array(self) -> np.ndarray:
        """Boxes packed as rows (cx, cy, sx, sy, fx, fy)."""
        boxes = np.zeros((len(self.box_colliders), 6), dtype=np.float64)
        for row, box in enumerate(self.box_colliders):
            boxes[row] = (box.center[0], box.center[1], box.size[0], box.size[1],
                          box.forward[0], box.forward[1])
        return boxes

    def circle_collider_array(self) -> np.ndarray:
        """Circles packed as rows (cx, cy, radius)."""
        circles = np.zeros((len(self.circle_colliders), 3), dtype=np.float64)
        for row, circle in enumerate(self.circle_colliders):
            circles[row] = (circle.center[0], circle.center[1], circle.radius)
        return circles
