"""Physics passes for SPH: density, pressure and viscosity."""

from .density_vectorized import compute_density_vectorized
from .forces_vectorized import (
    pressure_from_density,
    near_pressure_from_density,
    compute_pressure_acceleration_vectorized,
    apply_pressure_forces_vectorized,
    apply_viscosity_vectorized
)

__all__ = [
    # Density
    'compute_density_vectorized',
    # Forces
    'pressure_from_density',
    'near_pressure_from_density',
    'compute_pressure_acceleration_vectorized',
    'apply_pressure_forces_vectorized',
    'apply_viscosity_vectorized'
]
