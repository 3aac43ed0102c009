"""
Vectorized density computation for SPH.

Direct summation over the 3x3-cell neighborhood of each predicted position:
    ρᵢ  = Σⱼ W(|xᵢ - xⱼ|, h)
    ρnᵢ = Σⱼ Wnear(|xᵢ - xⱼ|, h)
The sum includes j = i; a particle's own contribution is physically
meaningful here, unlike in the force passes.
"""

import numpy as np
from ..core.particles import ParticleArrays
from ..core.kernels import KernelScales, density_kernel, near_density_kernel
from ..core.spatial_hash_vectorized import SpatialHashTable, query_neighbor_pairs


def compute_density_vectorized(particles: ParticleArrays, table: SpatialHashTable,
                               n_active: int, scales: KernelScales):
    """Fully vectorized density and near-density computation.

    Args:
        particles: Particle arrays with predicted positions
        table: Spatial hash built from the predicted positions
        n_active: Number of active particles
        scales: Kernel constants for this step
    """
    owner, _, _, dst = query_neighbor_pairs(
        particles.predicted_position, n_active, table, scales.radius)

    particles.density[:n_active] = np.bincount(
        owner, weights=density_kernel(dst, scales), minlength=n_active)
    particles.near_density[:n_active] = np.bincount(
        owner, weights=near_density_kernel(dst, scales), minlength=n_active)
