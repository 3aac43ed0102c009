"""
Fluid simulation driver.

Owns the particle buffers and spatial hash table for the lifetime of a
simulation and runs the stage pipeline once per substep. The host builds a
SimulationParameters snapshot per step; pause/step/reset are thin helpers
over the same pipeline.
"""

import logging
import numpy as np
from typing import Callable, Dict, List, Optional

from .api import PIPELINE, run_stage
from .core.backend import get_backend
from .core.kernels import KernelScales
from .core.params import CapacityError, ConfigurationError, FluidProperties, SimulationParameters
from .core.particles import ParticleArrays
from .core.spatial_hash_vectorized import SpatialHashTable

logger = logging.getLogger(__name__)


class FluidSimulation:
    """2D SPH fluid with a fixed particle set.

    Args:
        initial_positions: (N, 2) layout used at start and on every reset
        initial_velocities: (N, 2) velocities, zeros when omitted
        capacity: Buffer size; defaults to the layout size
        backend: 'cpu' or 'numba'; None follows the global backend
    """

    def __init__(self, initial_positions: np.ndarray,
                 initial_velocities: Optional[np.ndarray] = None,
                 capacity: Optional[int] = None, backend: Optional[str] = None):
        positions = np.array(initial_positions, dtype=np.float32).reshape(-1, 2)
        if positions.shape[0] == 0:
            raise ConfigurationError("Initial layout must contain at least one particle")
        if initial_velocities is None:
            velocities = np.zeros_like(positions)
        else:
            velocities = np.array(initial_velocities, dtype=np.float32).reshape(-1, 2)

        self._initial_positions = positions
        self._initial_velocities = velocities
        self._initial_positions.flags.writeable = False
        self._initial_velocities.flags.writeable = False

        self.capacity = int(capacity) if capacity is not None else positions.shape[0]
        self.backend = backend
        self.particles = ParticleArrays.allocate(self.capacity)
        self.table = SpatialHashTable.allocate(self.capacity)
        self.num_particles = self.particles.load_layout(positions, velocities)

        self.steps_completed = 0
        self.is_paused = False
        self._pause_next_frame = False
        self._step_listeners: List[Callable[[], None]] = []
        self._fluid: Optional[FluidProperties] = None

        logger.info("Fluid simulation: %d particles (capacity %d), backend %s",
                    self.num_particles, self.capacity, backend or get_backend())

    # ------------------------------------------------------------------
    # Stepping
    # ------------------------------------------------------------------
    def step(self, params: SimulationParameters):
        """Run one substep: the seven stages in order, then notify listeners.

        The step is atomic: if any stage raises, the particle state from
        before the step is restored and the exception propagates.
        """
        self._run_pipeline(params)
        self.steps_completed += 1
        logger.debug("Step %d complete", self.steps_completed)
        for listener in list(self._step_listeners):
            listener()

    def _run_pipeline(self, params: SimulationParameters):
        """Run the seven stages once, restoring the prior state if any raises."""
        params = self._prepare(params)
        n = params.num_particles
        scales = KernelScales.from_radius(params.smoothing_radius)

        saved = self.particles.copy_state(n)
        try:
            for stage in PIPELINE:
                run_stage(stage, self.particles, self.table, params, scales, backend=self.backend)
        except Exception:
            self.particles.restore_state(saved, n)
            logger.error("Step %d failed, previous state restored", self.steps_completed + 1)
            raise

    def run_frame(self, params: SimulationParameters, frame_time: float,
                  iterations_per_frame: int = 1, time_scale: float = 1.0) -> int:
        """Advance one host frame split into equal substeps.

        Returns:
            Number of substeps run (0 while paused)
        """
        if iterations_per_frame <= 0:
            raise ConfigurationError(
                f"iterations_per_frame must be positive, got {iterations_per_frame}")

        ran = 0
        if not self.is_paused:
            time_step = frame_time / iterations_per_frame * time_scale
            step_params = params.with_updates(delta_time=time_step)
            for _ in range(iterations_per_frame):
                self.step(step_params)
                ran += 1

        if self._pause_next_frame:
            self.is_paused = True
            self._pause_next_frame = False
        return ran

    def _prepare(self, params: SimulationParameters) -> SimulationParameters:
        if params.num_particles > self.capacity:
            raise CapacityError(
                f"{params.num_particles} particles requested, buffers hold {self.capacity}")
        if params.num_particles != self.num_particles:
            raise ConfigurationError(
                f"Parameters describe {params.num_particles} particles, "
                f"simulation has {self.num_particles}")
        if self._fluid is not None:
            params = params.with_fluid(self._fluid)
        return params

    # ------------------------------------------------------------------
    # Host control
    # ------------------------------------------------------------------
    def reset(self, params: Optional[SimulationParameters] = None):
        """Restore the initial layout.

        With params the simulation is paused, the stages are run once on the
        fresh layout to refresh density (handy for inspecting the start state)
        and the layout is restored again, so positions and velocities are
        always exactly the layout. That pass is not a step: listeners are not
        notified and steps_completed is unchanged. Without params density and
        near density are zeroed.
        """
        n = self.num_particles
        self.particles.load_layout(self._initial_positions, self._initial_velocities)
        if params is None:
            self.particles.density[:n] = 0.0
            self.particles.near_density[:n] = 0.0
        else:
            self.is_paused = True
            self._run_pipeline(params)
            self.particles.load_layout(self._initial_positions, self._initial_velocities)
        logger.info("Simulation reset")

    def toggle_pause(self):
        self.is_paused = not self.is_paused

    @property
    def paused(self) -> bool:
        return self.is_paused

    def step_simulation(self):
        """Let exactly one more frame run, then pause."""
        self.is_paused = False
        self._pause_next_frame = True

    def set_fluid_properties(self, fluid: Optional[FluidProperties]):
        """Override the fluid quantities of every later step (None clears)."""
        self._fluid = fluid
        if fluid is not None:
            logger.info("Fluid set to %s", fluid.name)

    # ------------------------------------------------------------------
    # Observers and output
    # ------------------------------------------------------------------
    def add_step_listener(self, listener: Callable[[], None]):
        self._step_listeners.append(listener)

    def remove_step_listener(self, listener: Callable[[], None]):
        self._step_listeners.remove(listener)

    @property
    def particle_count(self) -> int:
        return self.num_particles

    def get_particle_positions(self) -> np.ndarray:
        return self.particles.position[:self.num_particles].copy()

    def snapshot(self) -> Dict[str, np.ndarray]:
        """Read-only position/velocity/density/near-density arrays."""
        return self.particles.snapshot(self.num_particles)
