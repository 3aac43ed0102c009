"""
Unified stage API for the SPH pipeline with backend dispatch.

Every stage of a substep is registered once per backend under its Stage
name. `run_stage` is the parallel-for over all particles: it returns only
once every particle has finished that stage, so calling the stages in
PIPELINE order gives the barrier discipline the passes rely on.
"""

import enum
from typing import Optional

from .core.backend import (dispatch, set_backend, get_backend, list_backends,
                           auto_select_backend, backend_function, for_backend, Backend)
from .core.particles import ParticleArrays
from .core.params import SimulationParameters
from .core.kernels import KernelScales
from .core.spatial_hash_vectorized import (SpatialHashTable, build_hash_entries_vectorized,
                                           sort_and_offsets_vectorized)
from .core.spatial_hash_numba import build_hash_entries_numba, sort_and_offsets_numba
from .core.integrator_vectorized import apply_external_forces_vectorized, integrate_vectorized
from .core.integrator_numba import apply_external_forces_numba_wrapper, integrate_numba_wrapper
from .physics.density_vectorized import compute_density_vectorized
from .physics.density_numba import compute_density_numba_wrapper
from .physics.forces_vectorized import apply_pressure_forces_vectorized, apply_viscosity_vectorized
from .physics.forces_numba import apply_pressure_numba_wrapper, apply_viscosity_numba_wrapper


class Stage(enum.Enum):
    """The passes of one substep."""
    EXTERNAL_FORCES = "external_forces"
    SPATIAL_HASH = "spatial_hash"
    SPATIAL_SORT = "spatial_sort"
    DENSITY = "density"
    PRESSURE = "pressure"
    VISCOSITY = "viscosity"
    INTEGRATE = "integrate"


PIPELINE = (
    Stage.EXTERNAL_FORCES,
    Stage.SPATIAL_HASH,
    Stage.SPATIAL_SORT,
    Stage.DENSITY,
    Stage.PRESSURE,
    Stage.VISCOSITY,
    Stage.INTEGRATE,
)


# All stage implementations share one signature:
#   (particles, table, params, scales)
# and operate on the first params.num_particles slots.

# Register CPU implementations
@backend_function(Stage.EXTERNAL_FORCES.value)
@for_backend(Backend.CPU)
def _external_forces_cpu(particles, table, params, scales):
    apply_external_forces_vectorized(particles, params.num_particles, params)

@backend_function(Stage.SPATIAL_HASH.value)
@for_backend(Backend.CPU)
def _spatial_hash_cpu(particles, table, params, scales):
    build_hash_entries_vectorized(particles.predicted_position, params.num_particles,
                                  table, scales.radius)

@backend_function(Stage.SPATIAL_SORT.value)
@for_backend(Backend.CPU)
def _spatial_sort_cpu(particles, table, params, scales):
    sort_and_offsets_vectorized(table, params.num_particles)

@backend_function(Stage.DENSITY.value)
@for_backend(Backend.CPU)
def _density_cpu(particles, table, params, scales):
    compute_density_vectorized(particles, table, params.num_particles, scales)

@backend_function(Stage.PRESSURE.value)
@for_backend(Backend.CPU)
def _pressure_cpu(particles, table, params, scales):
    apply_pressure_forces_vectorized(particles, table, params.num_particles, params, scales)

@backend_function(Stage.VISCOSITY.value)
@for_backend(Backend.CPU)
def _viscosity_cpu(particles, table, params, scales):
    apply_viscosity_vectorized(particles, table, params.num_particles, params, scales)

@backend_function(Stage.INTEGRATE.value)
@for_backend(Backend.CPU)
def _integrate_cpu(particles, table, params, scales):
    integrate_vectorized(particles, params.num_particles, params)


# Register Numba implementations
@backend_function(Stage.EXTERNAL_FORCES.value)
@for_backend(Backend.NUMBA)
def _external_forces_numba(particles, table, params, scales):
    apply_external_forces_numba_wrapper(particles, params.num_particles, params)

@backend_function(Stage.SPATIAL_HASH.value)
@for_backend(Backend.NUMBA)
def _spatial_hash_numba(particles, table, params, scales):
    build_hash_entries_numba(particles.predicted_position, params.num_particles,
                             table.indices, scales.radius)

@backend_function(Stage.SPATIAL_SORT.value)
@for_backend(Backend.NUMBA)
def _spatial_sort_numba(particles, table, params, scales):
    sort_and_offsets_numba(table.indices, table.offsets, params.num_particles)

@backend_function(Stage.DENSITY.value)
@for_backend(Backend.NUMBA)
def _density_numba(particles, table, params, scales):
    compute_density_numba_wrapper(particles, table, params.num_particles, scales)

@backend_function(Stage.PRESSURE.value)
@for_backend(Backend.NUMBA)
def _pressure_numba(particles, table, params, scales):
    apply_pressure_numba_wrapper(particles, table, params.num_particles, params, scales)

@backend_function(Stage.VISCOSITY.value)
@for_backend(Backend.NUMBA)
def _viscosity_numba(particles, table, params, scales):
    apply_viscosity_numba_wrapper(particles, table, params.num_particles, params, scales)

@backend_function(Stage.INTEGRATE.value)
@for_backend(Backend.NUMBA)
def _integrate_numba(particles, table, params, scales):
    integrate_numba_wrapper(particles, params.num_particles, params)


def run_stage(stage: Stage, particles: ParticleArrays, table: SpatialHashTable,
              params: SimulationParameters, scales: Optional[KernelScales] = None,
              backend: Optional[str] = None):
    """Run one stage for every active particle and wait for all of them.

    Args:
        stage: Which pass to run
        particles: Particle arrays
        table: Spatial hash table shared by the neighbor passes
        params: Parameter snapshot for this step
        scales: Kernel constants (derived from params when omitted)
        backend: Override backend ('cpu', 'numba', or None for current)
    """
    if scales is None:
        scales = KernelScales.from_radius(params.smoothing_radius)
    dispatch(stage.value, particles, table, params, scales, backend=backend)


def run_pipeline(particles: ParticleArrays, table: SpatialHashTable,
                 params: SimulationParameters, scales: Optional[KernelScales] = None,
                 backend: Optional[str] = None):
    """Run all seven stages of one substep in order."""
    if scales is None:
        scales = KernelScales.from_radius(params.smoothing_radius)
    for stage in PIPELINE:
        run_stage(stage, particles, table, params, scales, backend=backend)


__all__ = [
    'Stage',
    'PIPELINE',
    'run_stage',
    'run_pipeline',

    # Backend management
    'set_backend',
    'get_backend',
    'list_backends',
    'auto_select_backend',
]
