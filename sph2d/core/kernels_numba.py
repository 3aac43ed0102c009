"""
Scalar Numba twins of the smoothing kernels in kernels.py.

Scaling constants come from KernelScales and are passed in as plain floats.
"""

import numba as nb


@nb.njit(fastmath=True, cache=True)
def density_kernel(dst: float, radius: float, scale: float) -> float:
    if dst < radius:
        v = radius - dst
        return v * v * scale
    return 0.0


@nb.njit(fastmath=True, cache=True)
def near_density_kernel(dst: float, radius: float, scale: float) -> float:
    if dst < radius:
        v = radius - dst
        return v * v * v * scale
    return 0.0


@nb.njit(fastmath=True, cache=True)
def density_derivative(dst: float, radius: float, scale: float) -> float:
    if dst <= radius:
        v = radius - dst
        return -v * scale
    return 0.0


@nb.njit(fastmath=True, cache=True)
def near_density_derivative(dst: float, radius: float, scale: float) -> float:
    if dst <= radius:
        v = radius - dst
        return -v * v * scale
    return 0.0


@nb.njit(fastmath=True, cache=True)
def viscosity_kernel(dst: float, radius: float, scale: float) -> float:
    if dst < radius:
        v = radius * radius - dst * dst
        return v * v * v * scale
    return 0.0
