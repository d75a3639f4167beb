"""
sph_fluid: spatial-hash neighbour grid and SPH fluid solver.

A smoothed-particle hydrodynamics fluid in a reflecting box, with a hashed
uniform-grid neighbour search, numba force kernels and a pluggable
acceleration service for offloaded execution.
"""

__version__ = "1.0.0"
__author__ = "SPH Fluid Dev Team"

# Core imports for convenience
from sph_fluid.core import (
    TimeIntegrator,
    AccelerationService,
    AccelerationServiceError,
    ExecutionMode,
    SimulationConstants,
    FluidSimulation,
)
from sph_fluid.spatial import NeighbourGrid

__all__ = [
    "TimeIntegrator",
    "AccelerationService",
    "AccelerationServiceError",
    "ExecutionMode",
    "SimulationConstants",
    "FluidSimulation",
    "NeighbourGrid",
]
