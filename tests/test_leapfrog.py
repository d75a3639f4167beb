"""
Tests for leapfrog integration and boundary reflection.

Validates:
- First-step half kick and later full kicks of the staggered velocity
- Velocity magnitude clamp
- Per-axis boundary reflection with damping
"""

import numpy as np
import pytest

from sph_fluid.integration import (
    LeapfrogIntegrator,
    clamp_magnitude,
    leapfrog_update,
    reflect_boundary,
)
from sph_fluid.sph import FluidParticles


def single_particle(position=(0.0, 0.0, 0.0), velocity=(0.0, 0.0, 0.0), accel=(0.0, 0.0, 0.0)):
    particles = FluidParticles()
    particles.extend([0], np.array([position], dtype=np.float64), rest_density=1.0)
    particles.velocities[0] = velocity
    particles.accelerations[0] = accel
    return particles


class TestClampMagnitude:

    def test_long_rows_rescaled(self):
        v = np.array([[3.0, 4.0, 0.0], [0.1, 0.0, 0.0]])
        clamp_magnitude(v, 1.0)
        np.testing.assert_allclose(v, [[0.6, 0.8, 0.0], [0.1, 0.0, 0.0]])

    def test_direction_preserved(self):
        v = np.array([[-10.0, 0.0, 10.0]])
        clamp_magnitude(v, 2.0)
        assert np.linalg.norm(v[0]) == pytest.approx(2.0)
        assert v[0, 0] == pytest.approx(-v[0, 2])


class TestLeapfrogUpdate:

    def test_first_step_half_kick(self):
        p = single_particle(velocity=(1.0, 0.0, 0.0), accel=(0.0, -10.0, 0.0))
        dt = 0.1

        leapfrog_update(p.positions, p.velocities, p.half_velocities,
                        p.half_step_initialized, p.accelerations, dt)

        np.testing.assert_allclose(p.half_velocities[0], [1.0, -0.5, 0.0])
        np.testing.assert_allclose(p.positions[0], [0.1, -0.05, 0.0])
        np.testing.assert_allclose(p.velocities[0], [1.0, -1.0, 0.0])
        assert p.half_step_initialized[0]

    def test_later_steps_full_kick(self):
        p = single_particle(accel=(0.0, -10.0, 0.0))
        dt = 0.1
        args = (p.positions, p.velocities, p.half_velocities,
                p.half_step_initialized, p.accelerations, dt)

        leapfrog_update(*args)
        leapfrog_update(*args)

        # v_half: -0.5 after the first step, then -0.5 - 1.0
        np.testing.assert_allclose(p.half_velocities[0], [0.0, -1.5, 0.0])
        np.testing.assert_allclose(p.positions[0], [0.0, -0.05 - 0.15, 0.0])
        np.testing.assert_allclose(p.velocities[0], [0.0, -2.0, 0.0])

    def test_constant_acceleration_is_exact(self):
        """Kick-drift leapfrog reproduces x = a t^2 / 2 at whole steps."""
        p = single_particle(accel=(0.0, -2.0, 0.0))
        dt = 0.05
        n = 40
        for _ in range(n):
            leapfrog_update(p.positions, p.velocities, p.half_velocities,
                            p.half_step_initialized, p.accelerations, dt)
        t = n * dt
        assert p.velocities[0, 1] == pytest.approx(-2.0 * t)
        assert p.positions[0, 1] == pytest.approx(-0.5 * 2.0 * t * t, rel=1e-12)

    def test_new_particles_get_own_half_kick(self):
        particles = FluidParticles()
        particles.extend([0], np.zeros((1, 3)), rest_density=1.0)
        particles.accelerations[0] = (0.0, -10.0, 0.0)
        integrator = LeapfrogIntegrator()
        integrator.step(particles, 0.1)

        particles.extend([1], np.zeros((1, 3)), rest_density=1.0)
        particles.accelerations[:] = (0.0, -10.0, 0.0)
        integrator.step(particles, 0.1)

        np.testing.assert_allclose(particles.half_velocities[:, 1], [-1.5, -0.5])

    def test_velocity_clamp(self):
        p = single_particle(velocity=(10.0, 0.0, 0.0), accel=(100.0, 0.0, 0.0))

        leapfrog_update(p.positions, p.velocities, p.half_velocities,
                        p.half_step_initialized, p.accelerations, 0.1, max_velocity=5.0)

        assert np.linalg.norm(p.velocities[0]) == pytest.approx(5.0)
        assert np.linalg.norm(p.half_velocities[0]) == pytest.approx(5.0)
        # Drift used the unclamped half-step velocity
        assert p.positions[0, 0] == pytest.approx(0.1 * 15.0)

    def test_integrator_max_velocity_kwarg(self):
        p = single_particle(velocity=(10.0, 0.0, 0.0))
        LeapfrogIntegrator(max_velocity=100.0).step(p, 0.1, max_velocity=1.0)
        assert np.linalg.norm(p.velocities[0]) == pytest.approx(1.0)


class TestReflectBoundary:

    bounds_min = (0.0, 0.0, 0.0)
    bounds_max = (1.0, 1.0, 1.0)

    @pytest.mark.regression
    def test_reflect_above_max(self):
        positions = np.array([[1.2, 0.5, 0.5]])
        velocities = np.array([[2.0, 1.0, -1.0]])

        n = reflect_boundary(positions, velocities, self.bounds_min, self.bounds_max,
                             eps=0.001, damping=0.3)

        assert n == 1
        assert positions[0, 0] == 1.0 - 0.001
        assert velocities[0, 0] == pytest.approx(-0.3 * 2.0)
        # Other axes untouched
        np.testing.assert_array_equal(positions[0, 1:], [0.5, 0.5])
        np.testing.assert_array_equal(velocities[0, 1:], [1.0, -1.0])

    def test_reflect_below_min_each_axis(self):
        positions = np.array([[-0.1, -0.2, 1.5]])
        velocities = np.array([[-1.0, -2.0, 3.0]])
        half = velocities.copy()

        n = reflect_boundary(positions, velocities, self.bounds_min, self.bounds_max,
                             eps=0.01, damping=0.5, half_velocities=half)

        assert n == 3
        np.testing.assert_allclose(positions[0], [0.01, 0.01, 0.99])
        np.testing.assert_allclose(velocities[0], [0.5, 1.0, -1.5])
        np.testing.assert_allclose(half[0], [0.5, 1.0, -1.5])

    def test_inside_untouched(self):
        positions = np.array([[0.0, 0.5, 1.0]])
        velocities = np.array([[1.0, 1.0, 1.0]])

        n = reflect_boundary(positions, velocities, self.bounds_min, self.bounds_max,
                             eps=0.001, damping=0.3)

        assert n == 0
        np.testing.assert_array_equal(positions[0], [0.0, 0.5, 1.0])
        np.testing.assert_array_equal(velocities[0], [1.0, 1.0, 1.0])
