"""
Vectorized SPH smoothing kernels for the 2D solver.

Implements the radially symmetric kernels used by the passes:
- Spiky (h-r)^2 for density and its derivative
- Spiky (h-r)^3 for near density and its derivative
- Poly6 (h^2-r^2)^3 for viscosity

Each kernel is zero for r >= h. Scaling constants depend only on h, so they
are computed once per step in KernelScales and passed to every evaluation.
The density kernel integrates to one over the disk of radius h, which makes
the summed density a number density (particles per unit area).
"""

import numpy as np
from dataclasses import dataclass


@dataclass(frozen=True)
class KernelScales:
    """Normalisation constants for a given smoothing radius."""
    radius: float
    poly6: float
    spiky_pow3: float
    spiky_pow2: float
    spiky_pow3_derivative: float
    spiky_pow2_derivative: float

    @staticmethod
    def from_radius(radius: float) -> 'KernelScales':
        h = float(radius)
        return KernelScales(
            radius=h,
            poly6=4.0 / (np.pi * h ** 8),
            spiky_pow3=10.0 / (np.pi * h ** 5),
            spiky_pow2=6.0 / (np.pi * h ** 4),
            spiky_pow3_derivative=30.0 / (np.pi * h ** 5),
            spiky_pow2_derivative=12.0 / (np.pi * h ** 4),
        )


def density_kernel(dst: np.ndarray, scales: KernelScales) -> np.ndarray:
    """Spiky (h-r)^2 kernel."""
    v = np.maximum(scales.radius - np.asarray(dst, dtype=np.float64), 0.0)
    return v * v * scales.spiky_pow2


def near_density_kernel(dst: np.ndarray, scales: KernelScales) -> np.ndarray:
    """Spiky (h-r)^3 kernel, sharper near contact."""
    v = np.maximum(scales.radius - np.asarray(dst, dtype=np.float64), 0.0)
    return v * v * v * scales.spiky_pow3


def density_derivative(dst: np.ndarray, scales: KernelScales) -> np.ndarray:
    """d/dr of the density kernel (non-positive)."""
    v = np.maximum(scales.radius - np.asarray(dst, dtype=np.float64), 0.0)
    return -v * scales.spiky_pow2_derivative


def near_density_derivative(dst: np.ndarray, scales: KernelScales) -> np.ndarray:
    """d/dr of the near-density kernel (non-positive)."""
    v = np.maximum(scales.radius - np.asarray(dst, dtype=np.float64), 0.0)
    return -v * v * scales.spiky_pow3_derivative


def viscosity_kernel(dst: np.ndarray, scales: KernelScales) -> np.ndarray:
    """Poly6 (h^2-r^2)^3 kernel."""
    dst = np.asarray(dst, dtype=np.float64)
    v = np.maximum(scales.radius * scales.radius - dst * dst, 0.0)
    return v * v * v * scales.poly6


# Kernel choice is fixed per physical quantity
KERNELS = {
    'density': density_kernel,
    'near_density': near_density_kernel,
    'density_derivative': density_derivative,
    'near_density_derivative': near_density_derivative,
    'viscosity': viscosity_kernel,
}


def equilibrium_spacing(target_density: float) -> float:
    """Square-lattice spacing whose number density equals target_density."""
    return 1.0 / np.sqrt(target_density)
