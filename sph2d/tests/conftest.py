"""Pytest configuration for SPH tests."""
import sys
from pathlib import Path

import numpy as np
import pytest


def pytest_configure(config):
    """Configure pytest environment for SPH tests."""
    # Add workspace root to Python path for sph2d package imports
    workspace_root = Path(__file__).parent.parent.parent
    if str(workspace_root) not in sys.path:
        sys.path.insert(0, str(workspace_root))


@pytest.fixture(params=['cpu', 'numba'])
def backend(request):
    """Parametrize tests over both backends."""
    return request.param


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def make_state():
    """Factory for particles and a hash table with predicted positions equal to the layout."""
    from sph2d.core.particles import ParticleArrays
    from sph2d.core.spatial_hash_vectorized import SpatialHashTable

    def _make(positions, velocities=None):
        positions = np.asarray(positions, dtype=np.float32)
        particles = ParticleArrays.allocate(len(positions))
        particles.load_layout(positions, velocities)
        table = SpatialHashTable.allocate(len(positions))
        return particles, table

    return _make


@pytest.fixture
def run_stages():
    """Run a list of pipeline stages on one backend."""
    from sph2d.api import run_stage
    from sph2d.core.kernels import KernelScales

    def _run(stages, particles, table, params, backend):
        scales = KernelScales.from_radius(params.smoothing_radius)
        for stage in stages:
            run_stage(stage, particles, table, params, scales, backend=backend)

    return _run
