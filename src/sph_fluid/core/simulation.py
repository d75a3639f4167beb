"""
SPH fluid simulation orchestrator.

This module implements the FluidSimulation class that owns the particle
arrays and the neighbour grid, and advances the fluid one step at a time:

    update_grid -> update_neighbours -> update_density_and_pressure
        -> update_acceleration -> integrate (+ boundary reflection)

Design:
- SimulationConstants is an immutable pydantic model; derived kernel
  coefficients are computed once in ``configure``.
- The execution mode (``none``, ``physics``, ``full``) is resolved once into
  a step strategy. Offloaded modes drive an AccelerationService stage by
  stage, synchronizing after every stage; any non-zero status is fatal.
- A reentrant lock serializes ``step`` against readers using
  ``particle_view``.
"""

import threading
import time as time_module
import warnings
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Optional, Sequence, Tuple, Union

import numpy as np
import numpy.typing as npt
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict

from sph_fluid.core.interfaces import (
    AccelerationService,
    AccelerationServiceError,
    StepParameters,
    TimeIntegrator,
    STATUS_OK,
)
from sph_fluid.integration.leapfrog import LeapfrogIntegrator, reflect_boundary
from sph_fluid.offload.host import HostAccelerationService
from sph_fluid.spatial.grid import NeighbourGrid
from sph_fluid.sph import (
    FluidParticles,
    KernelCoefficients,
    flatten_neighbours,
    compute_density_pressure,
    compute_acceleration,
    box_grid_dims,
)


NDArrayFloat = npt.NDArray[np.float64]

_AXES = ("x", "y", "z")


class ExecutionMode(str, Enum):
    """Where the per-step computation runs."""
    FULL = "full"          # every stage on the acceleration service
    PHYSICS = "physics"    # host neighbour search, service forces + integration
    NONE = "none"          # everything on the host


class SolverPhase(Enum):
    UNINITIALIZED = "uninitialized"
    CONFIGURED = "configured"
    SEEDED = "seeded"
    STEPPING = "stepping"


class SimulationConstants(BaseModel):
    """
    Physical and scene constants for an SPH fluid run, with pydantic validation.

    Every physical constant is required; only the scene extras (damping,
    boundary epsilon, spawn volume, seed, verbosity) have defaults.

    Attributes
    ----------
    smoothing_radius : float
        Kernel support radius h; also the neighbour-grid cell size.
    rest_density : float
        Rest density rho_0; densities are floored here.
    pressure_stiffness : float
        Stiffness k of the linear EOS P = k (rho - rho_0).
    viscosity : float
        Viscosity coefficient mu.
    particle_mass : float
        Mass of every particle.
    gravity : float
        Signed y component of the gravity acceleration vector (0, g, 0).
    x_min, x_max, y_min, y_max, z_min, z_max : float
        Axis-aligned boundary box.
    max_velocity, max_acceleration : float
        Magnitude clamps.
    damping : float
        Fraction of the normal velocity kept (and reversed) on reflection.
    boundary_eps : float
        Distance inside the wall at which a reflected particle is placed.
    cuda_mode : ExecutionMode
        ``full``, ``physics`` or ``none``.
    num_particles : int
        Number of particles to spawn.
    """

    # Particle constants
    smoothing_radius: float = Field(gt=0.0, description="Smoothing radius h")
    rest_density: float = Field(gt=0.0, description="Rest density rho_0")
    pressure_stiffness: float = Field(ge=0.0, description="EOS stiffness k")
    viscosity: float = Field(ge=0.0, description="Viscosity coefficient mu")
    particle_mass: float = Field(gt=0.0, description="Particle mass")
    gravity: float = Field(description="Signed gravity acceleration along y")
    max_velocity: float = Field(gt=0.0, description="Velocity magnitude clamp")
    max_acceleration: float = Field(gt=0.0, description="Acceleration magnitude clamp")
    cuda_mode: ExecutionMode = Field(description="Execution mode: 'full', 'physics' or 'none'")

    # Boundary volume
    x_min: float
    x_max: float
    y_min: float
    y_max: float
    z_min: float
    z_max: float

    # Reflection
    damping: float = Field(default=0.3, ge=0.0, le=1.0, description="Reflection damping")
    boundary_eps: float = Field(default=0.001, ge=0.0, description="Reflection inset")

    # Scene
    num_particles: int = Field(ge=0, description="Number of particles to spawn")
    spawn_x_min: Optional[float] = None
    spawn_x_max: Optional[float] = None
    spawn_y_min: Optional[float] = None
    spawn_y_max: Optional[float] = None
    spawn_z_min: Optional[float] = None
    spawn_z_max: Optional[float] = None

    # Misc
    random_seed: Optional[int] = Field(default=None, description="Seed for particle spawning")
    verbose: bool = Field(default=False, description="Enable verbose logging")

    model_config = ConfigDict(
        extra="forbid",  # Raise error on unknown fields
        frozen=True,
        allow_inf_nan=False,
    )

    @field_validator('cuda_mode', mode='before')
    @classmethod
    def validate_cuda_mode(cls, v: Any) -> Any:
        """Validate execution mode."""
        if isinstance(v, ExecutionMode):
            return v
        valid_modes = [mode.value for mode in ExecutionMode]
        if v not in valid_modes:
            raise ValueError(f"cuda_mode must be one of {valid_modes}, got '{v}'")
        return v

    @model_validator(mode='after')
    def validate_volumes(self):
        """Box ordering, spawn volume completeness and reflection inset."""
        for axis in _AXES:
            lo = getattr(self, f"{axis}_min")
            hi = getattr(self, f"{axis}_max")
            if hi <= lo:
                raise ValueError(f"{axis}_max ({hi}) must be greater than {axis}_min ({lo})")

        spawn = [getattr(self, f"spawn_{axis}_{end}") for axis in _AXES for end in ("min", "max")]
        if any(v is not None for v in spawn) and not all(v is not None for v in spawn):
            raise ValueError("spawn volume must give all of min/max for x, y and z, or none")

        if all(v is not None for v in spawn):
            for axis in _AXES:
                lo = getattr(self, f"spawn_{axis}_min")
                hi = getattr(self, f"spawn_{axis}_max")
                if hi <= lo:
                    raise ValueError(
                        f"spawn_{axis}_max ({hi}) must be greater than spawn_{axis}_min ({lo})"
                    )
                if lo < getattr(self, f"{axis}_min") or hi > getattr(self, f"{axis}_max"):
                    warnings.warn(
                        f"Spawn volume extends outside the boundary volume along {axis}; "
                        "those particles will be reflected on their first step."
                    )

        min_extent = min(self.x_max - self.x_min, self.y_max - self.y_min, self.z_max - self.z_min)
        if 2.0 * self.boundary_eps >= min_extent:
            raise ValueError(
                f"boundary_eps ({self.boundary_eps}) must be less than half the smallest "
                f"box extent ({min_extent})"
            )

        return self

    @property
    def bounds_min(self) -> Tuple[float, float, float]:
        return (self.x_min, self.y_min, self.z_min)

    @property
    def bounds_max(self) -> Tuple[float, float, float]:
        return (self.x_max, self.y_max, self.z_max)

    @property
    def spawn_bounds(self) -> Optional[Tuple[Tuple[float, float, float], Tuple[float, float, float]]]:
        """(min, max) corners of the spawn volume, or None if unset."""
        if self.spawn_x_min is None:
            return None
        return (
            (self.spawn_x_min, self.spawn_y_min, self.spawn_z_min),
            (self.spawn_x_max, self.spawn_y_max, self.spawn_z_max),
        )

    @property
    def gravity_vector(self) -> NDArrayFloat:
        return np.array([0.0, self.gravity, 0.0], dtype=np.float64)


@dataclass
class SimulationState:
    """
    Current state of the simulation.
    """
    time: float = 0.0
    step: int = 0
    dt: float = 0.0

    # Timing diagnostics (seconds, last step)
    timing_grid: float = 0.0
    timing_neighbours: float = 0.0
    timing_density: float = 0.0
    timing_acceleration: float = 0.0
    timing_integration: float = 0.0
    timing_offload: float = 0.0
    timing_total: float = 0.0

    # Wall clock
    wall_time_start: float = field(default_factory=time_module.time)
    wall_time_elapsed: float = 0.0

    # Snapshots
    snapshot_count: int = 0


class FluidSimulation:
    """
    SPH fluid solver: particle arrays, neighbour grid and per-step physics.

    State machine: UNINITIALIZED -> CONFIGURED (``configure``) -> SEEDED
    (``add_particles``) -> STEPPING (``step``). Stepping before seeding and
    seeding before configuring raise RuntimeError.

    Usage:
        >>> from sph_fluid.config import load_config
        >>> constants = load_config("simConfig.json")
        >>> with FluidSimulation(constants) as sim:
        ...     sim.spawn_particles()
        ...     sim.run(n_steps=100, dt=0.01)

    Parameters
    ----------
    constants : SimulationConstants, optional
        If given, ``configure`` is called immediately.
    service : AccelerationService, optional
        Backend for the ``physics`` and ``full`` modes. Defaults to a
        HostAccelerationService when one of those modes is configured.
    integrator : TimeIntegrator, optional
        Host-mode integrator. Defaults to LeapfrogIntegrator.
    """

    def __init__(
        self,
        constants: Optional[SimulationConstants] = None,
        service: Optional[AccelerationService] = None,
        integrator: Optional[TimeIntegrator] = None,
    ):
        self.phase = SolverPhase.UNINITIALIZED
        self.state = SimulationState()
        self.particles = FluidParticles()

        self.constants: Optional[SimulationConstants] = None
        self.coefficients: Optional[KernelCoefficients] = None
        self.params: Optional[StepParameters] = None
        self.grid: Optional[NeighbourGrid] = None
        self.mode: Optional[ExecutionMode] = None

        self.service = service
        self.integrator = integrator
        self._owns_integrator = integrator is None
        self._service_allocated = False
        self._service_stale = True
        self._step_impl: Optional[Callable[[float], None]] = None
        self._neighbour_offsets = np.zeros(1, dtype=np.int64)
        self._neighbour_indices = np.zeros(0, dtype=np.int64)

        self._lock = threading.RLock()

        if constants is not None:
            self.configure(constants)

    # ------------------------------------------------------------------
    # Configuration and seeding
    # ------------------------------------------------------------------

    def configure(self, constants: SimulationConstants) -> None:
        """
        Load constants and derive kernel coefficients and the neighbour grid.

        Only allowed before any particle is added.
        """
        with self._lock:
            if self.phase not in (SolverPhase.UNINITIALIZED, SolverPhase.CONFIGURED):
                raise RuntimeError(
                    f"Cannot configure a simulation in phase '{self.phase.value}'"
                )

            coefficients = KernelCoefficients.from_smoothing_radius(constants.smoothing_radius)

            self.constants = constants
            self.coefficients = coefficients
            self.params = self._build_step_parameters(constants, coefficients)
            self.grid = NeighbourGrid(cell_size=coefficients.cell_size)
            self.mode = ExecutionMode(constants.cuda_mode)

            if self._owns_integrator:
                self.integrator = LeapfrogIntegrator(max_velocity=constants.max_velocity)

            strategies = {
                ExecutionMode.NONE: self._step_host,
                ExecutionMode.PHYSICS: self._step_physics,
                ExecutionMode.FULL: self._step_full,
            }
            self._step_impl = strategies[self.mode]

            if self.mode != ExecutionMode.NONE and self.service is None:
                self.service = HostAccelerationService()

            self.phase = SolverPhase.CONFIGURED
            self._log(
                f"Configured SPH fluid: mode={self.mode.value}, h={coefficients.h}, "
                f"rest_density={constants.rest_density}"
            )

    @staticmethod
    def _build_step_parameters(
        constants: SimulationConstants,
        coefficients: KernelCoefficients,
    ) -> StepParameters:
        return StepParameters(
            h=coefficients.h,
            h_sq=coefficients.h_sq,
            h_inv=coefficients.h_inv,
            poly6=coefficients.poly6,
            spiky=coefficients.spiky,
            particle_mass=constants.particle_mass,
            rest_density=constants.rest_density,
            stiffness=constants.pressure_stiffness,
            viscosity=constants.viscosity,
            gravity=constants.gravity,
            max_acceleration=constants.max_acceleration,
            max_velocity=constants.max_velocity,
            bounds_min=constants.bounds_min,
            bounds_max=constants.bounds_max,
            boundary_eps=constants.boundary_eps,
            damping=constants.damping,
            cell_dims=box_grid_dims(constants.bounds_min, constants.bounds_max, coefficients.h_inv),
        )

    def add_particles(self, points: Union[Sequence[Sequence[float]], NDArrayFloat]) -> np.ndarray:
        """
        Register particles with the grid and append zero-initialized rows.

        Parameters
        ----------
        points : array-like, shape (M, 3)
            Initial positions.

        Returns
        -------
        ids : np.ndarray, shape (M,)
            Grid ids of the new particles (equal to their row indices).
        """
        with self._lock:
            if self.phase == SolverPhase.UNINITIALIZED:
                raise RuntimeError("Cannot add particles before configure()")

            positions = np.asarray(points, dtype=np.float64)
            if positions.size == 0:
                positions = positions.reshape(0, 3)
            if positions.ndim != 2 or positions.shape[1] != 3:
                raise ValueError(f"points must have shape (M, 3), got {positions.shape}")
            if not np.all(np.isfinite(positions)):
                raise ValueError("points must be finite")

            first_index = self.particles.n_particles
            ids = np.empty(len(positions), dtype=np.int64)
            for row, position in enumerate(positions):
                grid_id = self.grid.insert_point(position)
                if grid_id != first_index + row:
                    raise RuntimeError(
                        f"Grid id {grid_id} does not match particle index {first_index + row}"
                    )
                ids[row] = grid_id

            self.particles.extend(ids, positions, self.constants.rest_density)
            self._service_stale = True

            if self.phase == SolverPhase.CONFIGURED:
                self.phase = SolverPhase.SEEDED
            self._log(f"Added {len(ids)} particles ({self.particles.n_particles} total)")
            return ids

    def spawn_particles(
        self,
        rng: Optional[np.random.Generator] = None,
        n_particles: Optional[int] = None,
    ) -> np.ndarray:
        """
        Seed particles uniformly at random inside the spawn volume.

        The spawn volume defaults to the boundary volume when unset.

        Parameters
        ----------
        rng : np.random.Generator, optional
            Random source. Defaults to ``default_rng(constants.random_seed)``.
        n_particles : int, optional
            How many to spawn. Defaults to ``constants.num_particles``.
        """
        if self.constants is None:
            raise RuntimeError("Cannot spawn particles before configure()")

        if rng is None:
            rng = np.random.default_rng(self.constants.random_seed)
        if n_particles is None:
            n_particles = self.constants.num_particles

        spawn = self.constants.spawn_bounds
        if spawn is None:
            spawn = (self.constants.bounds_min, self.constants.bounds_max)
        lo = np.asarray(spawn[0], dtype=np.float64)
        hi = np.asarray(spawn[1], dtype=np.float64)

        points = lo + rng.random((n_particles, 3)) * (hi - lo)
        return self.add_particles(points)

    # ------------------------------------------------------------------
    # Stepping
    # ------------------------------------------------------------------

    def step(self, dt: float) -> None:
        """
        Advance the fluid by one timestep using the configured execution mode.

        Raises
        ------
        RuntimeError
            If no particles have been added yet.
        AccelerationServiceError
            If an offloaded stage reports a non-zero status.
        ValueError
            If ``dt`` is not a positive finite number or the accelerations
            become non-finite.
        """
        if not (np.isfinite(dt) and dt > 0.0):
            raise ValueError(f"dt must be positive and finite, got {dt}")

        with self._lock:
            if self.phase not in (SolverPhase.SEEDED, SolverPhase.STEPPING):
                raise RuntimeError(
                    f"Cannot step a simulation in phase '{self.phase.value}'; add particles first"
                )

            t0_step = time_module.time()
            self._step_impl(dt)

            self.state.time += dt
            self.state.dt = dt
            self.state.step += 1
            self.state.timing_total = time_module.time() - t0_step
            self.phase = SolverPhase.STEPPING

    def _step_host(self, dt: float) -> None:
        self.update_grid()
        self.update_neighbours()
        self.update_density_and_pressure()
        self.update_acceleration()
        self.integrate(dt)

    def _step_physics(self, dt: float) -> None:
        self.update_grid()
        self.update_neighbours()

        t0 = time_module.time()
        self._ensure_service_buffers()
        service = self.service
        self._service_call("upload_neighbours", service.upload_neighbours(
            self._neighbour_offsets, self._neighbour_indices
        ))
        self._service_call("compute_density_pressure",
                           service.compute_density_pressure(self.params))
        self._service_call("compute_acceleration",
                           service.compute_acceleration(self.params))
        self._service_call("integrate", service.integrate(self.params, dt))
        self._service_call("download", service.download(self.particles))
        self.state.timing_offload = time_module.time() - t0

        self._check_accelerations()
        self.particles.update_forces(self.constants.particle_mass)

    def _step_full(self, dt: float) -> None:
        t0 = time_module.time()
        self._ensure_service_buffers()
        service = self.service
        self._service_call("reset_cells", service.reset_cells())
        self._service_call("assign_cells", service.assign_cells(self.params))
        self._service_call("compute_density_pressure",
                           service.compute_density_pressure(self.params, cell_lists=True))
        self._service_call("compute_acceleration",
                           service.compute_acceleration(self.params, cell_lists=True))
        self._service_call("integrate", service.integrate(self.params, dt))
        self._service_call("download", service.download(self.particles))
        self.state.timing_offload = time_module.time() - t0

        self._check_accelerations()
        self.particles.update_forces(self.constants.particle_mass)

    def update_grid(self) -> None:
        """Move every grid point to its particle's position, then refresh cell links."""
        t0 = time_module.time()
        grid = self.grid
        positions = self.particles.positions
        for gid in self.particles.grid_ids:
            grid.move_point(int(gid), positions[gid])
        grid.update()
        self.state.timing_grid = time_module.time() - t0

    def update_neighbours(self) -> None:
        """Replace every neighbour list with the ids within one smoothing radius."""
        t0 = time_module.time()
        grid = self.grid
        h = self.coefficients.h
        neighbours = self.particles.neighbours
        for gid in self.particles.grid_ids:
            neighbours[gid] = np.asarray(
                grid.get_ids_in_radius_of_point(int(gid), h), dtype=np.int64
            )
        self._neighbour_offsets, self._neighbour_indices = flatten_neighbours(neighbours)
        self.state.timing_neighbours = time_module.time() - t0

    def update_density_and_pressure(self) -> None:
        """Poly6 density (floored at rest density) and linear-EOS pressure."""
        t0 = time_module.time()
        constants = self.constants
        coefficients = self.coefficients
        density, pressure = compute_density_pressure(
            self.particles.positions,
            self._neighbour_offsets,
            self._neighbour_indices,
            constants.particle_mass,
            coefficients.poly6,
            coefficients.h_sq,
            constants.rest_density,
            constants.pressure_stiffness,
        )
        self.particles.density[:] = density
        self.particles.pressure[:] = pressure
        self.state.timing_density = time_module.time() - t0

    def update_acceleration(self) -> None:
        """Pressure, viscosity and gravity, clamped to ``max_acceleration``."""
        t0 = time_module.time()
        constants = self.constants
        coefficients = self.coefficients
        accel = compute_acceleration(
            self.particles.positions,
            self.particles.velocities,
            self.particles.density,
            self.particles.pressure,
            self._neighbour_offsets,
            self._neighbour_indices,
            coefficients.h,
            coefficients.spiky,
            constants.viscosity,
            constants.gravity,
            constants.max_acceleration,
        )
        self.particles.accelerations[:] = accel
        self._check_accelerations()
        self.particles.update_forces(constants.particle_mass)
        self.state.timing_acceleration = time_module.time() - t0

    def integrate(self, dt: float) -> None:
        """Leapfrog step followed by boundary reflection."""
        t0 = time_module.time()
        constants = self.constants
        self.integrator.step(self.particles, dt, max_velocity=constants.max_velocity)
        n_reflections = reflect_boundary(
            self.particles.positions,
            self.particles.velocities,
            constants.bounds_min,
            constants.bounds_max,
            constants.boundary_eps,
            constants.damping,
            half_velocities=self.particles.half_velocities,
        )
        if n_reflections:
            self._log(f"Reflected {n_reflections} particle components at the boundary")
        self.state.timing_integration = time_module.time() - t0

    def run(
        self,
        n_steps: int,
        dt: float,
        callback: Optional[Callable[["FluidSimulation"], None]] = None,
    ) -> SimulationState:
        """
        Advance ``n_steps`` steps of size ``dt``.

        ``callback(sim)`` is invoked after every step, outside the step lock.
        """
        self._log(f"Running {n_steps} steps with dt={dt}")
        for _ in range(n_steps):
            self.step(dt)
            if callback is not None:
                callback(self)

        self.state.wall_time_elapsed = time_module.time() - self.state.wall_time_start
        self._log(
            f"Completed {self.state.step} steps, t={self.state.time:.4f}, "
            f"wall time {self.state.wall_time_elapsed:.2f} s"
        )
        return self.state

    # ------------------------------------------------------------------
    # Acceleration service plumbing
    # ------------------------------------------------------------------

    def _ensure_service_buffers(self) -> None:
        """(Re)allocate and upload service buffers if particles changed."""
        if not self._service_stale:
            return

        service = self.service
        if self._service_allocated:
            self._service_call("release", service.release())
            self._service_allocated = False

        self._service_call("allocate", service.allocate(self.particles.n_particles, self.params.n_cells))
        self._service_allocated = True
        self._service_call("upload", service.upload(self.particles))
        self._service_stale = False
        self._log(
            f"Uploaded {self.particles.n_particles} particles to {service.name} service "
            f"({self.params.n_cells} cells)"
        )

    def _service_call(self, stage: str, status: int) -> None:
        """Check a stage status, then synchronize before the next stage reads its output."""
        if status != STATUS_OK:
            raise AccelerationServiceError(stage, status)
        sync_status = self.service.synchronize()
        if sync_status != STATUS_OK:
            raise AccelerationServiceError(f"{stage}/synchronize", sync_status)

    def _check_accelerations(self) -> None:
        if not np.all(np.isfinite(self.particles.accelerations)):
            self._log("ERROR: non-finite accelerations")
            raise ValueError("Invalid accelerations")

    def close(self) -> None:
        """Release acceleration-service buffers, if any were allocated."""
        with self._lock:
            if self._service_allocated and self.service is not None:
                self._service_allocated = False
                self._service_stale = True
                status = self.service.release()
                if status != STATUS_OK:
                    raise AccelerationServiceError("release", status)

    def __enter__(self) -> "FluidSimulation":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Consumers
    # ------------------------------------------------------------------

    def get_fluid_particles(self) -> FluidParticles:
        """Live particle arrays. Hold ``particle_view()`` while reading during a run."""
        return self.particles

    @contextmanager
    def particle_view(self) -> Iterator[FluidParticles]:
        """Hold the simulation lock while a consumer reads the particle arrays."""
        with self._lock:
            yield self.particles

    @property
    def positions(self) -> NDArrayFloat:
        """Read-only view of the particle positions."""
        view = self.particles.positions.view()
        view.flags.writeable = False
        return view

    @property
    def y_limit_min(self) -> float:
        """Floor of the boundary volume, for placing a ground plane under the fluid."""
        if self.constants is None:
            raise RuntimeError("Simulation is not configured")
        return self.constants.y_min

    def configuration_summary(self) -> Dict[str, Any]:
        """Constants and derived coefficients, keyed by name."""
        if self.constants is None:
            raise RuntimeError("Simulation is not configured")
        c = self.constants
        k = self.coefficients
        return {
            'num_particles': c.num_particles,
            'cuda_mode': self.mode.value,
            'smoothing_radius': k.h,
            'particle_mass': c.particle_mass,
            'rest_density': c.rest_density,
            'pressure_stiffness': c.pressure_stiffness,
            'poly6': k.poly6,
            'spiky': k.spiky,
            'viscosity': c.viscosity,
            'gravity_vector': tuple(float(g) for g in c.gravity_vector),
            'gravity': c.gravity,
            'max_acceleration': c.max_acceleration,
            'max_velocity': c.max_velocity,
            'x_max': c.x_max,
            'x_min': c.x_min,
            'y_max': c.y_max,
            'y_min': c.y_min,
            'z_max': c.z_max,
            'z_min': c.z_min,
            'h_inv': k.h_inv,
            'damping': c.damping,
            'boundary_eps': c.boundary_eps,
        }

    def log_configuration(self) -> None:
        """Print the configuration summary, one ``key: value`` per line."""
        for key, value in self.configuration_summary().items():
            print(f"{key}: {value}")

    def write_snapshot(self, output_dir: Union[str, Path]) -> Path:
        """
        Write the current particle state to ``output_dir/snapshot_NNNN.h5``.

        Returns
        -------
        filename : Path
            Path of the written snapshot.
        """
        from sph_fluid.io import write_snapshot

        filename = Path(output_dir) / f"snapshot_{self.state.snapshot_count:04d}.h5"

        with self._lock:
            metadata = {
                'step': self.state.step,
                'dt': self.state.dt,
                'cuda_mode': self.mode.value,
                'smoothing_radius': self.constants.smoothing_radius,
                'rest_density': self.constants.rest_density,
                'particle_mass': self.constants.particle_mass,
                'pressure_stiffness': self.constants.pressure_stiffness,
                'viscosity': self.constants.viscosity,
                'gravity': self.constants.gravity,
                'bounds_min': self.constants.bounds_min,
                'bounds_max': self.constants.bounds_max,
            }
            write_snapshot(str(filename), self.particles.snapshot_data(), self.state.time, metadata)

        self.state.snapshot_count += 1
        self._log(f"Snapshot {self.state.snapshot_count} -> {filename.name}")
        return filename

    def _log(self, message: str):
        """Log message if verbose."""
        if self.constants is not None and self.constants.verbose:
            print(f"[{self.state.time:.4f}] {message}")
