"""Core SPH components: particles, parameters, kernels, spatial hashing, integration."""

from .particles import ParticleArrays
from .params import (
    SimulationParameters,
    BoxCollider,
    CircleCollider,
    FluidProperties,
    FLUID_PRESETS,
    ConfigurationError,
    CapacityError
)
from .kernels import KernelScales, KERNELS, equilibrium_spacing
from .spatial_hash_vectorized import SpatialHashTable, query_neighbor_pairs, table_statistics
from .integrator_vectorized import apply_external_forces_vectorized, integrate_vectorized

__all__ = [
    'ParticleArrays',
    'SimulationParameters',
    'BoxCollider',
    'CircleCollider',
    'FluidProperties',
    'FLUID_PRESETS',
    'ConfigurationError',
    'CapacityError',
    'KernelScales',
    'KERNELS',
    'equilibrium_spacing',
    'SpatialHashTable',
    'query_neighbor_pairs',
    'table_statistics',
    'apply_external_forces_vectorized',
    'integrate_vectorized'
]
