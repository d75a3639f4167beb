"""
Struct-of-arrays particle storage for the SPH fluid solver.

Every array is indexed by the particle's neighbour-grid id: the solver adds
particles in order and the grid hands out sequential ids from 0, so array
index and grid id coincide for the lifetime of the simulation.
"""

from typing import Dict, List, Optional, Sequence

import numpy as np
import numpy.typing as npt

# Type aliases for clarity
NDArrayFloat = npt.NDArray[np.float64]
NDArrayInt = npt.NDArray[np.int64]
NDArrayBool = npt.NDArray[np.bool_]


class FluidParticles:
    """
    Container for the per-particle state of an SPH fluid.

    Attributes
    ----------
    grid_ids : NDArrayInt, shape (N,)
        Neighbour-grid id of each particle (equal to its row index).
    positions : NDArrayFloat, shape (N, 3)
        Particle positions.
    velocities : NDArrayFloat, shape (N, 3)
        Whole-step velocities, used for output and viscosity.
    half_velocities : NDArrayFloat, shape (N, 3)
        Leapfrog half-step velocities, used to advance positions.
    half_step_initialized : NDArrayBool, shape (N,)
        Whether a particle has received its initial half-step kick.
    accelerations : NDArrayFloat, shape (N, 3)
        Total acceleration from the last force evaluation.
    forces : NDArrayFloat, shape (N, 3)
        Per-particle force accumulator (mass times acceleration).
    neighbours : List[NDArrayInt]
        Ids of the particles within one smoothing radius of each particle.
    density : NDArrayFloat, shape (N,)
        SPH density, floored at the rest density.
    pressure : NDArrayFloat, shape (N,)
        Pressure from the linear equation of state.
    """

    def __init__(self):
        self.grid_ids: NDArrayInt = np.zeros(0, dtype=np.int64)
        self.positions: NDArrayFloat = np.zeros((0, 3), dtype=np.float64)
        self.velocities: NDArrayFloat = np.zeros((0, 3), dtype=np.float64)
        self.half_velocities: NDArrayFloat = np.zeros((0, 3), dtype=np.float64)
        self.half_step_initialized: NDArrayBool = np.zeros(0, dtype=np.bool_)
        self.accelerations: NDArrayFloat = np.zeros((0, 3), dtype=np.float64)
        self.forces: NDArrayFloat = np.zeros((0, 3), dtype=np.float64)
        self.neighbours: List[NDArrayInt] = []
        self.density: NDArrayFloat = np.zeros(0, dtype=np.float64)
        self.pressure: NDArrayFloat = np.zeros(0, dtype=np.float64)

    @property
    def n_particles(self) -> int:
        return len(self.grid_ids)

    def extend(
        self,
        grid_ids: Sequence[int],
        positions: NDArrayFloat,
        rest_density: float,
    ) -> None:
        """
        Append zero-initialized particles.

        Velocities, accelerations and pressure start at zero and density at
        ``rest_density``, so a uniform fluid starts without pressure forces.

        Parameters
        ----------
        grid_ids : Sequence[int]
            Grid ids of the new particles, in row order.
        positions : NDArrayFloat, shape (M, 3)
            Initial positions.
        rest_density : float
            Initial density of every new particle.
        """
        ids = np.asarray(grid_ids, dtype=np.int64).reshape(-1)
        pos = np.asarray(positions, dtype=np.float64).reshape(-1, 3)
        m = len(ids)
        if pos.shape[0] != m:
            raise ValueError(f"Got {m} grid ids but {pos.shape[0]} positions")

        zeros3 = np.zeros((m, 3), dtype=np.float64)

        self.grid_ids = np.concatenate([self.grid_ids, ids])
        self.positions = np.concatenate([self.positions, pos])
        self.velocities = np.concatenate([self.velocities, zeros3])
        self.half_velocities = np.concatenate([self.half_velocities, zeros3])
        self.half_step_initialized = np.concatenate(
            [self.half_step_initialized, np.zeros(m, dtype=np.bool_)]
        )
        self.accelerations = np.concatenate([self.accelerations, zeros3])
        self.forces = np.concatenate([self.forces, zeros3])
        self.neighbours.extend(np.zeros(0, dtype=np.int64) for _ in range(m))
        self.density = np.concatenate(
            [self.density, np.full(m, rest_density, dtype=np.float64)]
        )
        self.pressure = np.concatenate([self.pressure, np.zeros(m, dtype=np.float64)])

        self._validate_shapes()

    def _validate_shapes(self) -> None:
        """Validate that all arrays have consistent shapes."""
        n = self.n_particles
        assert self.positions.shape == (n, 3), f"positions shape mismatch: {self.positions.shape}"
        assert self.velocities.shape == (n, 3), f"velocities shape mismatch: {self.velocities.shape}"
        assert self.half_velocities.shape == (n, 3), f"half_velocities shape mismatch: {self.half_velocities.shape}"
        assert self.half_step_initialized.shape == (n,), f"half_step_initialized shape mismatch: {self.half_step_initialized.shape}"
        assert self.accelerations.shape == (n, 3), f"accelerations shape mismatch: {self.accelerations.shape}"
        assert self.forces.shape == (n, 3), f"forces shape mismatch: {self.forces.shape}"
        assert len(self.neighbours) == n, f"neighbours length mismatch: {len(self.neighbours)}"
        assert self.density.shape == (n,), f"density shape mismatch: {self.density.shape}"
        assert self.pressure.shape == (n,), f"pressure shape mismatch: {self.pressure.shape}"

    def update_forces(self, particle_mass: float) -> None:
        """Refresh the force accumulator from the current accelerations."""
        np.multiply(self.accelerations, particle_mass, out=self.forces)

    def velocity_magnitude(self) -> NDArrayFloat:
        return np.linalg.norm(self.velocities, axis=1)

    def snapshot_data(self, fields: Optional[Sequence[str]] = None) -> Dict[str, np.ndarray]:
        """
        Copy of the particle arrays, keyed by name, for snapshot output.

        Parameters
        ----------
        fields : Sequence[str], optional
            Subset of array names to include. Defaults to every array.
        """
        data = {
            'grid_ids': self.grid_ids,
            'positions': self.positions,
            'velocities': self.velocities,
            'half_velocities': self.half_velocities,
            'accelerations': self.accelerations,
            'forces': self.forces,
            'density': self.density,
            'pressure': self.pressure,
        }
        if fields is not None:
            unknown = [f for f in fields if f not in data]
            if unknown:
                raise KeyError(f"Unknown particle fields: {unknown}")
            data = {f: data[f] for f in fields}
        return {key: np.array(value, copy=True) for key, value in data.items()}

    def __len__(self) -> int:
        return self.n_particles

    def __repr__(self) -> str:
        return f"FluidParticles(n_particles={self.n_particles})"
