"""
SPH density, pressure and acceleration kernels.

Implements the weakly compressible fluid model of Mueller et al. (2003):

    rho_i = max(rho_0, sum_j m W_poly6(r_ij, h))
    P_i   = k (rho_i - rho_0)
    a_i   = - sum_j (P_i + P_j) / (2 rho_i rho_j) grad W_spiky(r_ij, h)
            + sum_j mu (1 / rho_j) mu (h - r_ij) (v_j - v_i)
            + g
    |a_i| <= a_max

Two neighbour sources feed the same per-pair formulas:
- CSR neighbour lists (``offsets``, ``indices``) built from the neighbour
  grid.
- Linked cell lists on a uniform box grid (``cell_head``, ``particle_next``),
  which need no host-side neighbour search at all.

All loops are numba ``@njit(parallel=True)`` over particles; the pair terms
are shared ``@njit`` helpers so both sources evaluate identical arithmetic.
"""

import math
from typing import Sequence, Tuple

import numpy as np
import numpy.typing as npt
from numba import njit, prange

NDArrayFloat = npt.NDArray[np.float64]
NDArrayInt = npt.NDArray[np.int64]


# ----------------------------------------------------------------------
# Pair terms
# ----------------------------------------------------------------------

@njit(cache=True)
def _poly6_term(rsq, h_sq, poly6):
    diff = h_sq - rsq
    return poly6 * diff * diff * diff


@njit(cache=True)
def _pair_acceleration(dx, dy, dz, dist, h, spiky, viscosity,
                       p_i, p_j, rho_i, rho_j, dvx, dvy, dvz):
    """Pressure plus viscosity acceleration on i from j; (dx, dy, dz) = x_i - x_j, dv = v_j - v_i."""
    inv = 1.0 / dist
    diff = h - dist
    pterm = (p_i + p_j) / (2.0 * rho_i * rho_j)
    s = pterm * spiky * diff * diff * inv
    visc = viscosity * (1.0 / rho_j) * viscosity * diff
    return (-s * dx + visc * dvx,
            -s * dy + visc * dvy,
            -s * dz + visc * dvz)


@njit(cache=True)
def _finish_acceleration(ax, ay, az, gravity, max_acceleration):
    """Add gravity along y and clamp the magnitude, preserving direction."""
    ay += gravity
    mag = math.sqrt(ax * ax + ay * ay + az * az)
    if mag > max_acceleration:
        scale = max_acceleration / mag
        ax *= scale
        ay *= scale
        az *= scale
    return ax, ay, az


# ----------------------------------------------------------------------
# CSR neighbour lists
# ----------------------------------------------------------------------

@njit(parallel=True, cache=True)
def _density_pressure_numba(positions, neighbour_offsets, neighbour_indices,
                            particle_mass, poly6, h_sq, rest_density, stiffness):
    n = positions.shape[0]
    density = np.empty(n, dtype=np.float64)
    pressure = np.empty(n, dtype=np.float64)

    for i in prange(n):
        xi = positions[i, 0]
        yi = positions[i, 1]
        zi = positions[i, 2]

        rho = 0.0
        for k in range(neighbour_offsets[i], neighbour_offsets[i + 1]):
            j = neighbour_indices[k]
            dx = xi - positions[j, 0]
            dy = yi - positions[j, 1]
            dz = zi - positions[j, 2]
            rho += particle_mass * _poly6_term(dx * dx + dy * dy + dz * dz, h_sq, poly6)

        # Below rest density the EOS would give negative pressure
        if rho < rest_density:
            rho = rest_density
        density[i] = rho
        pressure[i] = stiffness * (rho - rest_density)

    return density, pressure


@njit(parallel=True, cache=True)
def _acceleration_numba(positions, velocities, density, pressure,
                        neighbour_offsets, neighbour_indices,
                        h, spiky, viscosity, gravity, max_acceleration):
    n = positions.shape[0]
    accel = np.zeros((n, 3), dtype=np.float64)

    for i in prange(n):
        xi = positions[i, 0]
        yi = positions[i, 1]
        zi = positions[i, 2]
        rho_i = density[i]
        p_i = pressure[i]

        ax = 0.0
        ay = 0.0
        az = 0.0
        for k in range(neighbour_offsets[i], neighbour_offsets[i + 1]):
            j = neighbour_indices[k]
            dx = xi - positions[j, 0]
            dy = yi - positions[j, 1]
            dz = zi - positions[j, 2]
            dist = math.sqrt(dx * dx + dy * dy + dz * dz)
            if dist == 0.0:
                continue
            pax, pay, paz = _pair_acceleration(
                dx, dy, dz, dist, h, spiky, viscosity,
                p_i, pressure[j], rho_i, density[j],
                velocities[j, 0] - velocities[i, 0],
                velocities[j, 1] - velocities[i, 1],
                velocities[j, 2] - velocities[i, 2],
            )
            ax += pax
            ay += pay
            az += paz

        ax, ay, az = _finish_acceleration(ax, ay, az, gravity, max_acceleration)
        accel[i, 0] = ax
        accel[i, 1] = ay
        accel[i, 2] = az

    return accel


def flatten_neighbours(neighbour_lists: Sequence[Sequence[int]]) -> Tuple[NDArrayInt, NDArrayInt]:
    """
    Flatten per-particle neighbour lists into CSR arrays.

    Returns
    -------
    offsets : NDArrayInt, shape (N + 1,)
        Neighbours of particle i are ``indices[offsets[i]:offsets[i + 1]]``.
    indices : NDArrayInt, shape (sum of list lengths,)
        Concatenated neighbour ids.
    """
    counts = np.array([len(l) for l in neighbour_lists], dtype=np.int64)
    offsets = np.zeros(len(counts) + 1, dtype=np.int64)
    offsets[1:] = np.cumsum(counts)

    if offsets[-1] > 0:
        indices = np.concatenate(
            [np.asarray(l, dtype=np.int64) for l in neighbour_lists]
        )
    else:
        indices = np.empty(0, dtype=np.int64)

    return offsets, indices


def compute_density_pressure(
    positions: NDArrayFloat,
    neighbour_offsets: NDArrayInt,
    neighbour_indices: NDArrayInt,
    particle_mass: float,
    poly6: float,
    h_sq: float,
    rest_density: float,
    stiffness: float,
) -> Tuple[NDArrayFloat, NDArrayFloat]:
    """
    Poly6 density summation and linear-EOS pressure over CSR neighbour lists.

    The reference particle does not contribute to its own density, and the
    result is floored at ``rest_density`` so pressure is never negative.

    Returns
    -------
    density, pressure : NDArrayFloat, shape (N,)
    """
    return _density_pressure_numba(
        np.ascontiguousarray(positions, dtype=np.float64),
        np.ascontiguousarray(neighbour_offsets, dtype=np.int64),
        np.ascontiguousarray(neighbour_indices, dtype=np.int64),
        float(particle_mass), float(poly6), float(h_sq),
        float(rest_density), float(stiffness),
    )


def compute_acceleration(
    positions: NDArrayFloat,
    velocities: NDArrayFloat,
    density: NDArrayFloat,
    pressure: NDArrayFloat,
    neighbour_offsets: NDArrayInt,
    neighbour_indices: NDArrayInt,
    h: float,
    spiky: float,
    viscosity: float,
    gravity: float,
    max_acceleration: float,
) -> NDArrayFloat:
    """
    Pressure, viscosity and gravity acceleration over CSR neighbour lists.

    Coincident pairs (r == 0) are skipped. ``gravity`` is the signed y
    component of the gravity vector. The total is clamped to
    ``max_acceleration`` in magnitude.

    Returns
    -------
    accel : NDArrayFloat, shape (N, 3)
    """
    return _acceleration_numba(
        np.ascontiguousarray(positions, dtype=np.float64),
        np.ascontiguousarray(velocities, dtype=np.float64),
        np.ascontiguousarray(density, dtype=np.float64),
        np.ascontiguousarray(pressure, dtype=np.float64),
        np.ascontiguousarray(neighbour_offsets, dtype=np.int64),
        np.ascontiguousarray(neighbour_indices, dtype=np.int64),
        float(h), float(spiky), float(viscosity),
        float(gravity), float(max_acceleration),
    )


# ----------------------------------------------------------------------
# Uniform box grid with linked cell lists
# ----------------------------------------------------------------------

@njit(cache=True)
def _axis_cell(x, lo, dim, h_inv):
    c = int(math.floor((x - lo) * h_inv))
    if c < 0:
        c = 0
    elif c > dim - 1:
        c = dim - 1
    return c


@njit(cache=True)
def _assign_cells_numba(positions, min_bound, cell_dims, h_inv, cell_head, particle_next):
    # Sequential: each insertion rewrites the head of a shared list
    n = positions.shape[0]
    nx = cell_dims[0]
    ny = cell_dims[1]
    for i in range(n):
        cx = _axis_cell(positions[i, 0], min_bound[0], nx, h_inv)
        cy = _axis_cell(positions[i, 1], min_bound[1], ny, h_inv)
        cz = _axis_cell(positions[i, 2], min_bound[2], cell_dims[2], h_inv)
        c = cx + nx * (cy + ny * cz)
        particle_next[i] = cell_head[c]
        cell_head[c] = i


@njit(parallel=True, cache=True)
def _density_pressure_cells_numba(positions, cell_head, particle_next, min_bound, cell_dims,
                                  h_inv, particle_mass, poly6, h_sq, rest_density, stiffness):
    n = positions.shape[0]
    nx = cell_dims[0]
    ny = cell_dims[1]
    nz = cell_dims[2]
    density = np.empty(n, dtype=np.float64)
    pressure = np.empty(n, dtype=np.float64)

    for i in prange(n):
        xi = positions[i, 0]
        yi = positions[i, 1]
        zi = positions[i, 2]
        cx = _axis_cell(xi, min_bound[0], nx, h_inv)
        cy = _axis_cell(yi, min_bound[1], ny, h_inv)
        cz = _axis_cell(zi, min_bound[2], nz, h_inv)

        rho = 0.0
        for oz in range(-1, 2):
            z = cz + oz
            if z < 0 or z >= nz:
                continue
            for oy in range(-1, 2):
                y = cy + oy
                if y < 0 or y >= ny:
                    continue
                for ox in range(-1, 2):
                    x = cx + ox
                    if x < 0 or x >= nx:
                        continue
                    j = cell_head[x + nx * (y + ny * z)]
                    while j != -1:
                        if j != i:
                            dx = xi - positions[j, 0]
                            dy = yi - positions[j, 1]
                            dz = zi - positions[j, 2]
                            rsq = dx * dx + dy * dy + dz * dz
                            if rsq < h_sq:
                                rho += particle_mass * _poly6_term(rsq, h_sq, poly6)
                        j = particle_next[j]

        if rho < rest_density:
            rho = rest_density
        density[i] = rho
        pressure[i] = stiffness * (rho - rest_density)

    return density, pressure


@njit(parallel=True, cache=True)
def _acceleration_cells_numba(positions, velocities, density, pressure,
                              cell_head, particle_next, min_bound, cell_dims, h_inv,
                              h, spiky, viscosity, gravity, max_acceleration):
    n = positions.shape[0]
    nx = cell_dims[0]
    ny = cell_dims[1]
    nz = cell_dims[2]
    h_sq = h * h
    accel = np.zeros((n, 3), dtype=np.float64)

    for i in prange(n):
        xi = positions[i, 0]
        yi = positions[i, 1]
        zi = positions[i, 2]
        rho_i = density[i]
        p_i = pressure[i]
        cx = _axis_cell(xi, min_bound[0], nx, h_inv)
        cy = _axis_cell(yi, min_bound[1], ny, h_inv)
        cz = _axis_cell(zi, min_bound[2], nz, h_inv)

        ax = 0.0
        ay = 0.0
        az = 0.0
        for oz in range(-1, 2):
            z = cz + oz
            if z < 0 or z >= nz:
                continue
            for oy in range(-1, 2):
                y = cy + oy
                if y < 0 or y >= ny:
                    continue
                for ox in range(-1, 2):
                    x = cx + ox
                    if x < 0 or x >= nx:
                        continue
                    j = cell_head[x + nx * (y + ny * z)]
                    while j != -1:
                        if j != i:
                            dx = xi - positions[j, 0]
                            dy = yi - positions[j, 1]
                            dz = zi - positions[j, 2]
                            rsq = dx * dx + dy * dy + dz * dz
                            if rsq < h_sq and rsq > 0.0:
                                pax, pay, paz = _pair_acceleration(
                                    dx, dy, dz, math.sqrt(rsq), h, spiky, viscosity,
                                    p_i, pressure[j], rho_i, density[j],
                                    velocities[j, 0] - velocities[i, 0],
                                    velocities[j, 1] - velocities[i, 1],
                                    velocities[j, 2] - velocities[i, 2],
                                )
                                ax += pax
                                ay += pay
                                az += paz
                        j = particle_next[j]

        ax, ay, az = _finish_acceleration(ax, ay, az, gravity, max_acceleration)
        accel[i, 0] = ax
        accel[i, 1] = ay
        accel[i, 2] = az

    return accel


def box_grid_dims(bounds_min: Sequence[float], bounds_max: Sequence[float], h_inv: float) -> Tuple[int, int, int]:
    """Cells per axis of a uniform grid of edge 1/h_inv covering the box."""
    dims = [
        int(math.floor((bounds_max[axis] - bounds_min[axis]) * h_inv)) + 1
        for axis in range(3)
    ]
    return dims[0], dims[1], dims[2]


def assign_cells(
    positions: NDArrayFloat,
    bounds_min: Sequence[float],
    cell_dims: Sequence[int],
    h_inv: float,
    cell_head: NDArrayInt,
    particle_next: NDArrayInt,
) -> None:
    """
    Push every particle onto the linked list of its box cell.

    ``cell_head`` must be reset to -1 beforehand. Positions outside the box
    are clamped into the boundary cells.
    """
    _assign_cells_numba(
        np.ascontiguousarray(positions, dtype=np.float64),
        np.asarray(bounds_min, dtype=np.float64),
        np.asarray(cell_dims, dtype=np.int64),
        float(h_inv),
        cell_head,
        particle_next,
    )


def compute_density_pressure_cells(
    positions: NDArrayFloat,
    cell_head: NDArrayInt,
    particle_next: NDArrayInt,
    bounds_min: Sequence[float],
    cell_dims: Sequence[int],
    h_inv: float,
    particle_mass: float,
    poly6: float,
    h_sq: float,
    rest_density: float,
    stiffness: float,
) -> Tuple[NDArrayFloat, NDArrayFloat]:
    """Same as ``compute_density_pressure`` with neighbours taken from cell lists."""
    return _density_pressure_cells_numba(
        np.ascontiguousarray(positions, dtype=np.float64),
        cell_head, particle_next,
        np.asarray(bounds_min, dtype=np.float64),
        np.asarray(cell_dims, dtype=np.int64),
        float(h_inv), float(particle_mass), float(poly6), float(h_sq),
        float(rest_density), float(stiffness),
    )


def compute_acceleration_cells(
    positions: NDArrayFloat,
    velocities: NDArrayFloat,
    density: NDArrayFloat,
    pressure: NDArrayFloat,
    cell_head: NDArrayInt,
    particle_next: NDArrayInt,
    bounds_min: Sequence[float],
    cell_dims: Sequence[int],
    h_inv: float,
    h: float,
    spiky: float,
    viscosity: float,
    gravity: float,
    max_acceleration: float,
) -> NDArrayFloat:
    """Same as ``compute_acceleration`` with neighbours taken from cell lists."""
    return _acceleration_cells_numba(
        np.ascontiguousarray(positions, dtype=np.float64),
        np.ascontiguousarray(velocities, dtype=np.float64),
        np.ascontiguousarray(density, dtype=np.float64),
        np.ascontiguousarray(pressure, dtype=np.float64),
        cell_head, particle_next,
        np.asarray(bounds_min, dtype=np.float64),
        np.asarray(cell_dims, dtype=np.int64),
        float(h_inv), float(h), float(spiky), float(viscosity),
        float(gravity), float(max_acceleration),
    )
