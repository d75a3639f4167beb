"""
Tests for the SPH kernels and force computation.

Validates:
- Kernel prefactors
- Density summation, rest-density floor and linear EOS
- Pressure/viscosity/gravity acceleration and magnitude clamp
- CSR and box-grid cell-list paths give the same results
"""

import math

import numpy as np
import pytest

from sph_fluid.sph import (
    FluidParticles,
    KernelCoefficients,
    flatten_neighbours,
    compute_density_pressure,
    compute_acceleration,
    box_grid_dims,
    assign_cells,
    compute_density_pressure_cells,
    compute_acceleration_cells,
)


def all_pairs_neighbours(positions, h):
    """CSR neighbour lists from a direct O(N^2) search."""
    lists = []
    for i in range(len(positions)):
        d = np.linalg.norm(positions - positions[i], axis=1)
        lists.append([j for j in np.nonzero(d < h)[0] if j != i])
    return flatten_neighbours(lists)


class TestKernelCoefficients:

    def test_prefactors(self):
        k = KernelCoefficients.from_smoothing_radius(0.5)
        assert k.h == 0.5
        assert k.h_sq == 0.25
        assert k.h_inv == 2.0
        assert k.cell_size == 0.5
        assert k.poly6 == pytest.approx(315.0 / (64.0 * math.pi * 0.5 ** 9))
        assert k.spiky == pytest.approx(-45.0 / (math.pi * 0.5 ** 6))

    def test_repeatable(self):
        assert KernelCoefficients.from_smoothing_radius(0.1) == KernelCoefficients.from_smoothing_radius(0.1)

    @pytest.mark.parametrize("h", [0.0, -0.1, float('nan'), float('inf')])
    def test_invalid_radius(self, h):
        with pytest.raises(ValueError, match="Smoothing radius"):
            KernelCoefficients.from_smoothing_radius(h)


class TestFlattenNeighbours:

    def test_offsets_and_indices(self):
        offsets, indices = flatten_neighbours([[1, 2], [], [0]])
        np.testing.assert_array_equal(offsets, [0, 2, 2, 3])
        np.testing.assert_array_equal(indices, [1, 2, 0])
        assert offsets.dtype == np.int64
        assert indices.dtype == np.int64

    def test_empty_lists(self):
        offsets, indices = flatten_neighbours([[], []])
        np.testing.assert_array_equal(offsets, [0, 0, 0])
        assert indices.shape == (0,)


class TestDensityPressure:

    def test_isolated_particle_floored(self):
        k = KernelCoefficients.from_smoothing_radius(1.0)
        positions = np.zeros((1, 3))
        offsets, indices = flatten_neighbours([[]])

        density, pressure = compute_density_pressure(
            positions, offsets, indices, 1.0, k.poly6, k.h_sq, 1000.0, 1.0
        )

        assert density[0] == 1000.0
        assert pressure[0] == 0.0

    def test_pair_density(self):
        h = 1.0
        k = KernelCoefficients.from_smoothing_radius(h)
        positions = np.array([[0.0, 0.0, 0.0], [0.5, 0.0, 0.0]])
        offsets, indices = all_pairs_neighbours(positions, h)
        mass = 2000.0
        rest = 1000.0
        stiffness = 2.0

        density, pressure = compute_density_pressure(
            positions, offsets, indices, mass, k.poly6, k.h_sq, rest, stiffness
        )

        expected = mass * k.poly6 * (h * h - 0.25) ** 3
        assert expected > rest
        np.testing.assert_allclose(density, [expected, expected])
        np.testing.assert_allclose(pressure, stiffness * (density - rest))

    def test_never_below_rest_density(self):
        rng = np.random.default_rng(3)
        k = KernelCoefficients.from_smoothing_radius(0.3)
        positions = rng.uniform(0.0, 1.0, size=(100, 3))
        offsets, indices = all_pairs_neighbours(positions, k.h)

        density, pressure = compute_density_pressure(
            positions, offsets, indices, 0.01, k.poly6, k.h_sq, 1000.0, 5.0
        )

        assert np.all(density >= 1000.0)
        assert np.all(pressure >= 0.0)


class TestAcceleration:

    def _pair_setup(self, mass=2000.0, viscosity=0.0, velocities=None):
        h = 1.0
        k = KernelCoefficients.from_smoothing_radius(h)
        positions = np.array([[0.0, 0.0, 0.0], [0.5, 0.0, 0.0]])
        if velocities is None:
            velocities = np.zeros((2, 3))
        offsets, indices = all_pairs_neighbours(positions, h)
        density, pressure = compute_density_pressure(
            positions, offsets, indices, mass, k.poly6, k.h_sq, 1000.0, 1.0
        )
        return k, positions, velocities, density, pressure, offsets, indices

    def test_gravity_only_when_no_neighbours(self):
        k = KernelCoefficients.from_smoothing_radius(1.0)
        positions = np.zeros((1, 3))
        offsets, indices = flatten_neighbours([[]])

        accel = compute_acceleration(
            positions, np.zeros((1, 3)), np.array([1000.0]), np.array([0.0]),
            offsets, indices, k.h, k.spiky, 0.5, -9.8, 1e6,
        )

        np.testing.assert_allclose(accel, [[0.0, -9.8, 0.0]])

    def test_pressure_pushes_pair_apart(self):
        k, pos, vel, rho, p, offsets, indices = self._pair_setup()

        accel = compute_acceleration(pos, vel, rho, p, offsets, indices,
                                     k.h, k.spiky, 0.0, 0.0, 1e6)

        assert accel[0, 0] < 0.0
        assert accel[1, 0] > 0.0
        assert accel[0, 0] == pytest.approx(-accel[1, 0])

        r = 0.5
        expected = (p[0] + p[1]) / (2.0 * rho[0] * rho[1]) * (-k.spiky) * (k.h - r) ** 2
        assert accel[1, 0] == pytest.approx(expected)

    def test_viscosity_pulls_velocities_together(self):
        velocities = np.array([[0.0, 0.0, 1.0], [0.0, 0.0, -1.0]])
        k, pos, vel, rho, p, offsets, indices = self._pair_setup(mass=1.0, velocities=velocities)
        mu = 2.0

        accel = compute_acceleration(pos, vel, rho, p, offsets, indices,
                                     k.h, k.spiky, mu, 0.0, 1e6)

        expected = mu * (1.0 / rho[1]) * mu * (k.h - 0.5) * (-2.0)
        assert accel[0, 2] == pytest.approx(expected)
        assert accel[1, 2] == pytest.approx(-expected)

    def test_coincident_pair_skipped(self):
        k = KernelCoefficients.from_smoothing_radius(1.0)
        positions = np.zeros((2, 3))
        offsets, indices = flatten_neighbours([[1], [0]])

        accel = compute_acceleration(
            positions, np.zeros((2, 3)), np.full(2, 1500.0), np.full(2, 500.0),
            offsets, indices, k.h, k.spiky, 1.0, -9.8, 1e6,
        )

        assert np.all(np.isfinite(accel))
        np.testing.assert_allclose(accel, [[0.0, -9.8, 0.0]] * 2)

    def test_magnitude_clamped(self):
        k = KernelCoefficients.from_smoothing_radius(1.0)
        offsets, indices = flatten_neighbours([[]])

        accel = compute_acceleration(
            np.zeros((1, 3)), np.zeros((1, 3)), np.array([1000.0]), np.array([0.0]),
            offsets, indices, k.h, k.spiky, 0.0, -50.0, 10.0,
        )

        np.testing.assert_allclose(accel, [[0.0, -10.0, 0.0]])


class TestCellLists:
    """Box-grid cell lists reproduce the CSR results."""

    def test_box_grid_dims(self):
        assert box_grid_dims((0.0, 0.0, 0.0), (1.0, 0.5, 0.25), 4.0) == (5, 3, 2)
        assert box_grid_dims((-1.0, -1.0, -1.0), (1.0, 1.0, 1.0), 1.0 / 0.3) == (7, 7, 7)

    def test_assign_cells_builds_linked_lists(self):
        bmin = (0.0, 0.0, 0.0)
        dims = box_grid_dims(bmin, (1.0, 1.0, 1.0), 2.0)
        positions = np.array([
            [0.1, 0.1, 0.1],
            [0.2, 0.2, 0.2],
            [0.9, 0.1, 0.1],
            [5.0, -5.0, 0.1],  # outside: clamped into a boundary cell
        ])
        head = np.full(dims[0] * dims[1] * dims[2], -1, dtype=np.int64)
        nxt = np.full(len(positions), -1, dtype=np.int64)

        assign_cells(positions, bmin, dims, 2.0, head, nxt)

        def members(c):
            out = []
            j = head[c]
            while j != -1:
                out.append(int(j))
                j = nxt[j]
            return sorted(out)

        assert members(0) == [0, 1]
        assert members(1) == [2]
        assert members(dims[0] - 1) == [3]
        assert sum(len(members(c)) for c in range(len(head))) == 4

    @pytest.mark.regression
    def test_cell_lists_match_csr(self):
        rng = np.random.default_rng(5)
        h = 0.2
        k = KernelCoefficients.from_smoothing_radius(h)
        bmin, bmax = (0.0, 0.0, 0.0), (1.0, 1.0, 1.0)
        positions = rng.uniform(0.0, 1.0, size=(300, 3))
        velocities = rng.normal(size=(300, 3))
        mass, rest, stiff, mu, g, amax = 0.5, 1.0, 3.0, 0.7, -9.8, 1e4

        offsets, indices = all_pairs_neighbours(positions, h)
        rho_csr, p_csr = compute_density_pressure(
            positions, offsets, indices, mass, k.poly6, k.h_sq, rest, stiff
        )
        a_csr = compute_acceleration(positions, velocities, rho_csr, p_csr,
                                     offsets, indices, k.h, k.spiky, mu, g, amax)

        dims = box_grid_dims(bmin, bmax, k.h_inv)
        head = np.full(dims[0] * dims[1] * dims[2], -1, dtype=np.int64)
        nxt = np.full(len(positions), -1, dtype=np.int64)
        assign_cells(positions, bmin, dims, k.h_inv, head, nxt)
        rho_cell, p_cell = compute_density_pressure_cells(
            positions, head, nxt, bmin, dims, k.h_inv, mass, k.poly6, k.h_sq, rest, stiff
        )
        a_cell = compute_acceleration_cells(
            positions, velocities, rho_cell, p_cell, head, nxt, bmin, dims, k.h_inv,
            k.h, k.spiky, mu, g, amax,
        )

        assert np.any(rho_csr > rest)
        np.testing.assert_allclose(rho_cell, rho_csr, rtol=1e-12)
        np.testing.assert_allclose(p_cell, p_csr, rtol=1e-10, atol=1e-12)
        np.testing.assert_allclose(a_cell, a_csr, rtol=1e-9, atol=1e-9)


class TestFluidParticles:

    def test_extend_initializes_rows(self):
        particles = FluidParticles()
        particles.extend([0, 1], np.array([[0.0, 0.0, 0.0], [1.0, 2.0, 3.0]]), rest_density=1000.0)

        assert particles.n_particles == 2
        assert len(particles) == 2
        np.testing.assert_array_equal(particles.grid_ids, [0, 1])
        np.testing.assert_array_equal(particles.velocities, np.zeros((2, 3)))
        np.testing.assert_array_equal(particles.density, [1000.0, 1000.0])
        np.testing.assert_array_equal(particles.pressure, [0.0, 0.0])
        assert not particles.half_step_initialized.any()
        assert all(len(n) == 0 for n in particles.neighbours)

    def test_extend_length_mismatch(self):
        particles = FluidParticles()
        with pytest.raises(ValueError, match="grid ids"):
            particles.extend([0, 1], np.zeros((3, 3)), rest_density=1.0)

    def test_forces_and_snapshot(self):
        particles = FluidParticles()
        particles.extend([0], np.zeros((1, 3)), rest_density=1.0)
        particles.accelerations[0] = (1.0, -2.0, 0.5)

        particles.update_forces(4.0)
        np.testing.assert_allclose(particles.forces, [[4.0, -8.0, 2.0]])

        data = particles.snapshot_data(['positions', 'forces'])
        assert set(data) == {'positions', 'forces'}
        data['forces'][0, 0] = 99.0
        assert particles.forces[0, 0] == 4.0

        with pytest.raises(KeyError, match="Unknown particle fields"):
            particles.snapshot_data(['temperature'])
