"""SPH (Smoothed Particle Hydrodynamics) solver for 2D fluids."""

from . import core
from . import physics
from . import scenarios

# Import API to trigger backend registration
from . import api

from .api import (
    # Stage pipeline
    Stage,
    PIPELINE,
    run_stage,
    run_pipeline,

    # Backend management
    set_backend,
    get_backend,
    list_backends,
    auto_select_backend,
)
from .core import (
    ParticleArrays,
    SpatialHashTable,
    KernelScales,
    SimulationParameters,
    BoxCollider,
    CircleCollider,
    FluidProperties,
    FLUID_PRESETS,
    ConfigurationError,
    CapacityError,
)
from .simulation import FluidSimulation

__version__ = "0.1.0"

__all__ = [
    # Modules
    'core',
    'physics',
    'scenarios',

    # Stage pipeline
    'Stage',
    'PIPELINE',
    'run_stage',
    'run_pipeline',

    # Backend management
    'set_backend',
    'get_backend',
    'list_backends',
    'auto_select_backend',

    # Core classes
    'ParticleArrays',
    'SpatialHashTable',
    'KernelScales',
    'SimulationParameters',
    'BoxCollider',
    'CircleCollider',
    'FluidProperties',
    'FLUID_PRESETS',
    'ConfigurationError',
    'CapacityError',
    'FluidSimulation',
]
