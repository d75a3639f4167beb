"""
Core module: interfaces and the SPH fluid simulation orchestrator.
"""

from sph_fluid.core.interfaces import (
    TimeIntegrator,
    AccelerationService,
    AccelerationServiceError,
    StepParameters,
    STATUS_OK,
    STATUS_NOT_ALLOCATED,
    STATUS_SIZE_MISMATCH,
    STATUS_NO_NEIGHBOUR_SOURCE,
    STATUS_INVALID_ARGUMENT,
)
from sph_fluid.core.simulation import (
    ExecutionMode,
    SolverPhase,
    SimulationConstants,
    SimulationState,
    FluidSimulation,
)

__all__ = [
    "TimeIntegrator",
    "AccelerationService",
    "AccelerationServiceError",
    "StepParameters",
    "STATUS_OK",
    "STATUS_NOT_ALLOCATED",
    "STATUS_SIZE_MISMATCH",
    "STATUS_NO_NEIGHBOUR_SOURCE",
    "STATUS_INVALID_ARGUMENT",
    "ExecutionMode",
    "SolverPhase",
    "SimulationConstants",
    "SimulationState",
    "FluidSimulation",
]
