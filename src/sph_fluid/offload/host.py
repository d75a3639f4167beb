"""
Host (CPU) implementation of the AccelerationService contract.

Runs the offloaded stages with numba kernels on private buffer copies, so
the ``physics`` and ``full`` execution modes can run and be tested without
a device. A real device backend implements the same interface and is
injected into FluidSimulation instead.
"""

from typing import Any, Optional

import numpy as np

from sph_fluid.core.interfaces import (
    AccelerationService,
    StepParameters,
    NDArrayFloat,
    NDArrayInt,
    STATUS_OK,
    STATUS_NOT_ALLOCATED,
    STATUS_SIZE_MISMATCH,
    STATUS_NO_NEIGHBOUR_SOURCE,
    STATUS_INVALID_ARGUMENT,
)
from sph_fluid.integration.leapfrog import leapfrog_update, reflect_boundary
from sph_fluid.sph.forces import (
    assign_cells,
    compute_acceleration,
    compute_acceleration_cells,
    compute_density_pressure,
    compute_density_pressure_cells,
)


class HostAccelerationService(AccelerationService):
    """
    Reference acceleration service backed by host memory and numba.

    Every stage is synchronous, so ``synchronize`` always succeeds
    immediately. Misuse (stage before ``allocate``, buffer size mismatch,
    force stage without a neighbour source) is reported through non-zero
    status codes rather than exceptions, as a device backend would.
    """

    def __init__(self):
        self._allocated = False
        self.n_particles = 0
        self.n_cells = 0

        self.positions: Optional[NDArrayFloat] = None
        self.velocities: Optional[NDArrayFloat] = None
        self.half_velocities: Optional[NDArrayFloat] = None
        self.half_step_initialized: Optional[np.ndarray] = None
        self.accelerations: Optional[NDArrayFloat] = None
        self.density: Optional[NDArrayFloat] = None
        self.pressure: Optional[NDArrayFloat] = None

        self.cell_head: Optional[NDArrayInt] = None
        self.particle_next: Optional[NDArrayInt] = None
        self._cells_assigned = False

        self.neighbour_offsets: Optional[NDArrayInt] = None
        self.neighbour_indices: Optional[NDArrayInt] = None

    @property
    def name(self) -> str:
        return "host"

    @property
    def allocated(self) -> bool:
        return self._allocated

    def allocate(self, n_particles: int, n_cells: int) -> int:
        if n_particles < 0 or n_cells < 1:
            return STATUS_INVALID_ARGUMENT

        n = int(n_particles)
        self.n_particles = n
        self.n_cells = int(n_cells)

        self.positions = np.zeros((n, 3), dtype=np.float64)
        self.velocities = np.zeros((n, 3), dtype=np.float64)
        self.half_velocities = np.zeros((n, 3), dtype=np.float64)
        self.half_step_initialized = np.zeros(n, dtype=np.bool_)
        self.accelerations = np.zeros((n, 3), dtype=np.float64)
        self.density = np.zeros(n, dtype=np.float64)
        self.pressure = np.zeros(n, dtype=np.float64)

        self.cell_head = np.full(self.n_cells, -1, dtype=np.int64)
        self.particle_next = np.full(n, -1, dtype=np.int64)
        self._cells_assigned = False
        self.neighbour_offsets = None
        self.neighbour_indices = None

        self._allocated = True
        return STATUS_OK

    def upload(self, particles: Any) -> int:
        if not self._allocated:
            return STATUS_NOT_ALLOCATED
        if particles.n_particles != self.n_particles:
            return STATUS_SIZE_MISMATCH

        self.positions[:] = particles.positions
        self.velocities[:] = particles.velocities
        self.half_velocities[:] = particles.half_velocities
        self.half_step_initialized[:] = particles.half_step_initialized
        self.accelerations[:] = particles.accelerations
        self.density[:] = particles.density
        self.pressure[:] = particles.pressure
        return STATUS_OK

    def upload_neighbours(self, offsets: NDArrayInt, indices: NDArrayInt) -> int:
        if not self._allocated:
            return STATUS_NOT_ALLOCATED
        if len(offsets) != self.n_particles + 1:
            return STATUS_SIZE_MISMATCH
        if len(indices) != int(offsets[-1]):
            return STATUS_SIZE_MISMATCH

        self.neighbour_offsets = np.array(offsets, dtype=np.int64)
        self.neighbour_indices = np.array(indices, dtype=np.int64)
        return STATUS_OK

    def download(self, particles: Any) -> int:
        if not self._allocated:
            return STATUS_NOT_ALLOCATED
        if particles.n_particles != self.n_particles:
            return STATUS_SIZE_MISMATCH

        particles.positions[:] = self.positions
        particles.velocities[:] = self.velocities
        particles.half_velocities[:] = self.half_velocities
        particles.half_step_initialized[:] = self.half_step_initialized
        particles.accelerations[:] = self.accelerations
        particles.density[:] = self.density
        particles.pressure[:] = self.pressure
        return STATUS_OK

    def release(self) -> int:
        self.positions = None
        self.velocities = None
        self.half_velocities = None
        self.half_step_initialized = None
        self.accelerations = None
        self.density = None
        self.pressure = None
        self.cell_head = None
        self.particle_next = None
        self.neighbour_offsets = None
        self.neighbour_indices = None
        self._cells_assigned = False
        self._allocated = False
        self.n_particles = 0
        self.n_cells = 0
        return STATUS_OK

    def reset_cells(self) -> int:
        if not self._allocated:
            return STATUS_NOT_ALLOCATED
        self.cell_head.fill(-1)
        self.particle_next.fill(-1)
        self._cells_assigned = False
        return STATUS_OK

    def assign_cells(self, params: StepParameters) -> int:
        if not self._allocated:
            return STATUS_NOT_ALLOCATED
        if params.n_cells != self.n_cells:
            return STATUS_SIZE_MISMATCH

        assign_cells(
            self.positions,
            params.bounds_min,
            params.cell_dims,
            params.h_inv,
            self.cell_head,
            self.particle_next,
        )
        self._cells_assigned = True
        return STATUS_OK

    def compute_density_pressure(self, params: StepParameters, cell_lists: bool = False) -> int:
        if not self._allocated:
            return STATUS_NOT_ALLOCATED

        if cell_lists:
            if not self._cells_assigned:
                return STATUS_NO_NEIGHBOUR_SOURCE
            density, pressure = compute_density_pressure_cells(
                self.positions, self.cell_head, self.particle_next,
                params.bounds_min, params.cell_dims, params.h_inv,
                params.particle_mass, params.poly6, params.h_sq,
                params.rest_density, params.stiffness,
            )
        else:
            if self.neighbour_offsets is None:
                return STATUS_NO_NEIGHBOUR_SOURCE
            density, pressure = compute_density_pressure(
                self.positions, self.neighbour_offsets, self.neighbour_indices,
                params.particle_mass, params.poly6, params.h_sq,
                params.rest_density, params.stiffness,
            )

        self.density[:] = density
        self.pressure[:] = pressure
        return STATUS_OK

    def compute_acceleration(self, params: StepParameters, cell_lists: bool = False) -> int:
        if not self._allocated:
            return STATUS_NOT_ALLOCATED

        if cell_lists:
            if not self._cells_assigned:
                return STATUS_NO_NEIGHBOUR_SOURCE
            accel = compute_acceleration_cells(
                self.positions, self.velocities, self.density, self.pressure,
                self.cell_head, self.particle_next,
                params.bounds_min, params.cell_dims, params.h_inv,
                params.h, params.spiky, params.viscosity,
                params.gravity, params.max_acceleration,
            )
        else:
            if self.neighbour_offsets is None:
                return STATUS_NO_NEIGHBOUR_SOURCE
            accel = compute_acceleration(
                self.positions, self.velocities, self.density, self.pressure,
                self.neighbour_offsets, self.neighbour_indices,
                params.h, params.spiky, params.viscosity,
                params.gravity, params.max_acceleration,
            )

        self.accelerations[:] = accel
        return STATUS_OK

    def integrate(self, params: StepParameters, dt: float) -> int:
        if not self._allocated:
            return STATUS_NOT_ALLOCATED
        if not (np.isfinite(dt) and dt > 0.0):
            return STATUS_INVALID_ARGUMENT

        leapfrog_update(
            self.positions,
            self.velocities,
            self.half_velocities,
            self.half_step_initialized,
            self.accelerations,
            dt,
            max_velocity=params.max_velocity,
        )
        reflect_boundary(
            self.positions,
            self.velocities,
            params.bounds_min,
            params.bounds_max,
            params.boundary_eps,
            params.damping,
            half_velocities=self.half_velocities,
        )
        return STATUS_OK

    def synchronize(self) -> int:
        return STATUS_OK
