"""
SPH module: particle storage, smoothing kernels and force computation.
"""

from .particles import FluidParticles
from .kernels import KernelCoefficients
from .forces import (
    flatten_neighbours,
    compute_density_pressure,
    compute_acceleration,
    box_grid_dims,
    assign_cells,
    compute_density_pressure_cells,
    compute_acceleration_cells,
)

__all__ = [
    # Particle management
    "FluidParticles",

    # Kernels
    "KernelCoefficients",

    # Forces (CSR neighbour lists)
    "flatten_neighbours",
    "compute_density_pressure",
    "compute_acceleration",

    # Forces (box-grid cell lists)
    "box_grid_dims",
    "assign_cells",
    "compute_density_pressure_cells",
    "compute_acceleration_cells",
]
