"""
Abstract base classes for the pluggable parts of the SPH fluid solver.

Two seams are defined:
- TimeIntegrator: advances particle state given accelerations.
- AccelerationService: an external compute backend (typically a GPU) that
  holds its own copies of the particle buffers and runs one batch stage per
  call. Every call returns an integer status; 0 means success and anything
  else is fatal to the caller.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Tuple

import numpy as np
import numpy.typing as npt


# Type aliases for clarity
NDArrayFloat = npt.NDArray[np.float64]
NDArrayInt = npt.NDArray[np.int64]

# Service status codes
STATUS_OK = 0
STATUS_NOT_ALLOCATED = 1
STATUS_SIZE_MISMATCH = 2
STATUS_NO_NEIGHBOUR_SOURCE = 3
STATUS_INVALID_ARGUMENT = 4


class AccelerationServiceError(RuntimeError):
    """An acceleration service call returned a non-zero status."""

    def __init__(self, stage: str, status: int):
        self.stage = stage
        self.status = status
        super().__init__(f"Acceleration service stage '{stage}' failed with status {status}")


@dataclass(frozen=True)
class StepParameters:
    """
    Scalar constants handed to every acceleration-service stage.

    Built once per configuration from SimulationConstants and
    KernelCoefficients.
    """
    h: float
    h_sq: float
    h_inv: float
    poly6: float
    spiky: float
    particle_mass: float
    rest_density: float
    stiffness: float
    viscosity: float
    gravity: float
    max_acceleration: float
    max_velocity: float
    bounds_min: Tuple[float, float, float]
    bounds_max: Tuple[float, float, float]
    boundary_eps: float
    damping: float
    cell_dims: Tuple[int, int, int]

    @property
    def n_cells(self) -> int:
        nx, ny, nz = self.cell_dims
        return nx * ny * nz


class TimeIntegrator(ABC):
    """
    Abstract base class for time integration schemes.

    Implementations: LeapfrogIntegrator.
    """

    @abstractmethod
    def step(
        self,
        particles: Any,  # FluidParticles type
        dt: float,
        **kwargs
    ) -> None:
        """
        Advance positions and velocities by one timestep in place.

        Parameters
        ----------
        particles : FluidParticles
            Particle state; ``accelerations`` must be current.
        dt : float
            Timestep.
        **kwargs : integrator-specific parameters.
        """
        pass

    def reset(self) -> None:
        """Forget any integrator state carried between steps."""


class AccelerationService(ABC):
    """
    External batch compute backend for the offloaded execution modes.

    The service owns device-side copies of positions, velocities, half-step
    velocities, accelerations, density and pressure. Stages read and write
    those copies only; the host sees results after ``download``. Callers
    must invoke ``synchronize`` after each stage before depending on its
    output.

    Neighbour source for the force stages is either CSR neighbour lists
    supplied through ``upload_neighbours`` or linked cell lists built by
    ``reset_cells`` + ``assign_cells``, selected by ``cell_lists``.

    All methods return an integer status; 0 (STATUS_OK) means success.
    """

    @abstractmethod
    def allocate(self, n_particles: int, n_cells: int) -> int:
        """Allocate buffers for ``n_particles`` particles and ``n_cells`` box cells."""
        pass

    @abstractmethod
    def upload(self, particles: Any) -> int:
        """Copy particle state from the host into the service buffers."""
        pass

    @abstractmethod
    def upload_neighbours(self, offsets: NDArrayInt, indices: NDArrayInt) -> int:
        """Copy CSR neighbour lists into the service."""
        pass

    @abstractmethod
    def download(self, particles: Any) -> int:
        """Copy service buffers back into host particle state."""
        pass

    @abstractmethod
    def release(self) -> int:
        """Free all service buffers. Releasing twice is not an error."""
        pass

    @abstractmethod
    def reset_cells(self) -> int:
        """Empty every box-grid cell list."""
        pass

    @abstractmethod
    def assign_cells(self, params: StepParameters) -> int:
        """Bucket every particle into its box-grid cell."""
        pass

    @abstractmethod
    def compute_density_pressure(self, params: StepParameters, cell_lists: bool = False) -> int:
        """Density summation and equation of state."""
        pass

    @abstractmethod
    def compute_acceleration(self, params: StepParameters, cell_lists: bool = False) -> int:
        """Pressure, viscosity and gravity acceleration with magnitude clamp."""
        pass

    @abstractmethod
    def integrate(self, params: StepParameters, dt: float) -> int:
        """Leapfrog update, velocity clamp and boundary reflection."""
        pass

    @abstractmethod
    def synchronize(self) -> int:
        """Block until every previously issued stage has completed."""
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Return human-readable service name."""
        pass
