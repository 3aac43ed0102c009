"""
Particle data structure using the Structure-of-Arrays (SoA) pattern.

Every field is an independently owned contiguous array allocated once at
simulation start. Slot i addresses the same logical particle in every array;
the spatial hash stores slot indices, so the arrays are never reordered.
"""

import logging
import numpy as np
from dataclasses import dataclass
from typing import Dict, Optional

from .params import CapacityError, ConfigurationError

logger = logging.getLogger(__name__)


def aligned_zeros(shape, dtype=np.float32) -> np.ndarray:
    """Zeroed array whose buffer is padded to a 32-byte multiple."""
    count = int(np.prod(shape))
    size = count * np.dtype(dtype).itemsize
    aligned_size = ((size + 31) // 32) * 32
    buffer = np.zeros(aligned_size, dtype=np.uint8)
    return np.frombuffer(buffer, dtype=dtype)[:count].reshape(shape)


@dataclass
class ParticleArrays:
    """Structure of Arrays for the fluid particle set.

    All float arrays are float32 (GPU-style precision).
    """
    # Authoritative state, shape (C, 2)
    position: np.ndarray
    velocity: np.ndarray

    # Look-ahead position used by every neighbor search of the step, shape (C, 2)
    predicted_position: np.ndarray

    # Written once per step by the density pass, shape (C,)
    density: np.ndarray
    near_density: np.ndarray

    @property
    def capacity(self) -> int:
        return self.position.shape[0]

    @staticmethod
    def allocate(capacity: int) -> 'ParticleArrays':
        """Pre-allocate arrays for a fixed particle capacity.

        Args:
            capacity: Maximum number of particles the buffers can hold

        Returns:
            Zero-initialised ParticleArrays
        """
        if capacity <= 0:
            raise ConfigurationError(f"Particle capacity must be positive, got {capacity}")

        return ParticleArrays(
            position=aligned_zeros((capacity, 2)),
            velocity=aligned_zeros((capacity, 2)),
            predicted_position=aligned_zeros((capacity, 2)),
            density=aligned_zeros(capacity),
            near_density=aligned_zeros(capacity),
        )

    def load_layout(self, positions: np.ndarray, velocities: Optional[np.ndarray] = None) -> int:
        """Overwrite position, predicted position and velocity from a layout.

        Everything is validated before the first write, so a rejected layout
        leaves the buffers untouched.

        Returns:
            Number of particles loaded
        """
        positions = np.asarray(positions, dtype=np.float32).reshape(-1, 2)
        n = positions.shape[0]
        if velocities is None:
            velocities = np.zeros_like(positions)
        else:
            velocities = np.asarray(velocities, dtype=np.float32).reshape(-1, 2)

        if velocities.shape[0] != n:
            raise ConfigurationError(
                f"Layout has {n} positions but {velocities.shape[0]} velocities")
        if n > self.capacity:
            raise CapacityError(f"Layout of {n} particles exceeds capacity {self.capacity}")

        self.position[:n] = positions
        self.predicted_position[:n] = positions
        self.velocity[:n] = velocities
        logger.debug("Loaded layout of %d particles", n)
        return n

    def copy_state(self, n_active: int) -> Dict[str, np.ndarray]:
        """Copy every per-particle field for the active slots."""
        return {
            'position': self.position[:n_active].copy(),
            'velocity': self.velocity[:n_active].copy(),
            'predicted_position': self.predicted_position[:n_active].copy(),
            'density': self.density[:n_active].copy(),
            'near_density': self.near_density[:n_active].copy(),
        }

    def restore_state(self, state: Dict[str, np.ndarray], n_active: int):
        """Write back a state produced by copy_state."""
        for name, values in state.items():
            getattr(self, name)[:n_active] = values

    def snapshot(self, n_active: int) -> Dict[str, np.ndarray]:
        """Read-only copies of the fields a host renders or inspects."""
        state = self.copy_state(n_active)
        del state['predicted_position']
        for values in state.values():
            values.flags.writeable = False
        return state
