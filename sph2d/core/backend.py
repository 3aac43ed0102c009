"""
Backend registry for the SPH stages.

Each stage of a substep is implemented once per backend:
1. CPU (NumPy) - pair lists built from the hash table, the reference path
2. Numba - prange kernels, one task per particle

Implementations register themselves under a stage name through the
`backend_function` / `for_backend` decorators. A call names the stage and,
optionally, the backend; otherwise the process-wide selection is used.
Every implementation returns only once all particles are done, so two
consecutive dispatches are separated by a barrier.
"""

import enum
import logging
import warnings
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

# Above this many particles the JIT compile cost is repaid within a few frames
NUMBA_PARTICLE_THRESHOLD = 1000


class Backend(enum.Enum):
    """Available computation backends."""
    CPU = "cpu"      # NumPy
    NUMBA = "numba"  # Numba JIT


class BackendManager:
    """Stage implementations per backend, plus the active selection."""

    def __init__(self):
        self._current_backend = Backend.CPU
        self._stages: Dict[str, Dict[Backend, Callable]] = {}

    @property
    def current_backend(self) -> Backend:
        return self._current_backend

    def set_backend(self, backend: Backend):
        if backend is not self._current_backend:
            logger.info("Switching SPH backend: %s -> %s",
                        self._current_backend.value, backend.value)
        self._current_backend = backend

    def choose_backend(self, n_particles: int) -> Backend:
        """Backend suited to a particle count."""
        if n_particles > NUMBA_PARTICLE_THRESHOLD:
            return Backend.NUMBA
        return Backend.CPU

    def register(self, stage_name: str, backend: Backend, implementation: Callable):
        self._stages.setdefault(stage_name, {})[backend] = implementation
        logger.debug("Registered %s implementation of %s", backend.value, stage_name)

    def registered(self) -> Dict[str, List[str]]:
        return {name: [b.value for b in impls] for name, impls in self._stages.items()}

    def resolve(self, stage_name: str, backend: Optional[Backend] = None) -> Callable:
        """Implementation of a stage for a backend.

        A stage without an implementation for the requested backend runs on
        CPU instead, with a warning.

        Raises:
            ValueError: If the stage is unknown or has no usable implementation
        """
        backend = backend or self._current_backend
        impls = self._stages.get(stage_name)
        if not impls:
            raise ValueError(f"No implementations registered for stage '{stage_name}'")

        if backend in impls:
            return impls[backend]
        if Backend.CPU in impls:
            warnings.warn(f"Stage '{stage_name}' has no {backend.value} implementation, using CPU")
            return impls[Backend.CPU]
        raise ValueError(f"Stage '{stage_name}' has no {backend.value} or CPU implementation")


# Global backend manager instance
_backend_manager = BackendManager()


def _parse_backend(backend: str) -> Backend:
    try:
        return Backend(backend.lower())
    except ValueError:
        choices = ", ".join(b.value for b in Backend)
        raise ValueError(f"Invalid backend: {backend}. Choose from: {choices}") from None


# Public API
def set_backend(backend: str) -> str:
    """Select the process-wide backend ('cpu' or 'numba').

    Returns:
        The normalised backend name
    """
    backend_enum = _parse_backend(backend)
    _backend_manager.set_backend(backend_enum)
    return backend_enum.value


def get_backend() -> str:
    """Get current backend name."""
    return _backend_manager.current_backend.value


def list_backends() -> Dict[str, List[str]]:
    """Stage name -> names of the backends implementing it."""
    return _backend_manager.registered()


def auto_select_backend(n_particles: int) -> str:
    """Select and activate the backend suited to n_particles."""
    backend = _backend_manager.choose_backend(n_particles)
    _backend_manager.set_backend(backend)
    return backend.value


# Decorators for stage implementations
def backend_function(stage_name: str):
    """Register the decorated function as an implementation of a stage.

    Usage:
        @backend_function("density")
        @for_backend(Backend.NUMBA)
        def _density_numba(particles, table, params, scales):
            ...
    """
    def decorator(func):
        if hasattr(func, '_backend'):
            _backend_manager.register(stage_name, func._backend, func)
        return func
    return decorator


def for_backend(backend: Backend):
    """Tag a function with the backend it runs on."""
    def decorator(func):
        func._backend = backend
        return func
    return decorator


def dispatch(stage_name: str, *args, backend: Optional[str] = None, **kwargs):
    """Run a stage on the chosen backend (None for the current one)."""
    backend_enum = _parse_backend(backend) if backend else None
    return _backend_manager.resolve(stage_name, backend_enum)(*args, **kwargs)
