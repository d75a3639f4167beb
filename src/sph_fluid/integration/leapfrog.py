"""
Leapfrog time integrator with per-particle half-step initialization.

Each particle carries its own staggered velocity v_half:

    first step:   v_half = v + a * dt / 2
    later steps:  v_half = v_half + a * dt
    drift:        x = x + v_half * dt
    report:       v = v_half + a * dt / 2

The whole-step velocity v is only used for output and the viscosity term;
positions always advance with v_half. Particles added mid-run get their own
half-step kick the first time they are integrated.

Boundary reflection is a separate function so offloaded backends can apply
the same rule after their own integration.
"""

from typing import Any, Optional, Sequence

import numpy as np

from sph_fluid.core.interfaces import TimeIntegrator, NDArrayFloat


def clamp_magnitude(vectors: NDArrayFloat, limit: float) -> None:
    """Rescale rows of ``vectors`` longer than ``limit`` to length ``limit``, in place."""
    magnitudes = np.linalg.norm(vectors, axis=1)
    over = magnitudes > limit
    if np.any(over):
        vectors[over] *= (limit / magnitudes[over])[:, np.newaxis]


def leapfrog_update(
    positions: NDArrayFloat,
    velocities: NDArrayFloat,
    half_velocities: NDArrayFloat,
    half_step_initialized: np.ndarray,
    accelerations: NDArrayFloat,
    dt: float,
    max_velocity: float = np.inf,
) -> None:
    """
    Advance one leapfrog step in place.

    After the drift, both the whole-step and the half-step velocity are
    clamped to ``max_velocity`` in magnitude. This departs from the plain
    scheme, which clamps only ``v`` and leaves ``v_half`` unbounded, so
    fast or wall-bound particles follow different trajectories than they
    would under it. ``reflect_boundary`` likewise damps ``v_half``.
    """
    was_initialized = half_step_initialized.copy()
    fresh = ~was_initialized
    half_dt = 0.5 * dt

    if np.any(fresh):
        half_velocities[fresh] = velocities[fresh] + half_dt * accelerations[fresh]
    if np.any(was_initialized):
        half_velocities[was_initialized] += dt * accelerations[was_initialized]
    half_step_initialized[:] = True

    positions += dt * half_velocities
    velocities[:] = half_velocities + half_dt * accelerations

    if np.isfinite(max_velocity):
        clamp_magnitude(velocities, max_velocity)
        clamp_magnitude(half_velocities, max_velocity)


def reflect_boundary(
    positions: NDArrayFloat,
    velocities: NDArrayFloat,
    bounds_min: Sequence[float],
    bounds_max: Sequence[float],
    eps: float,
    damping: float,
    half_velocities: Optional[NDArrayFloat] = None,
) -> int:
    """
    Reflect particles that left the box, each axis independently.

    A coordinate above ``bounds_max`` is set to ``bounds_max - eps`` and one
    below ``bounds_min`` to ``bounds_min + eps``; the matching velocity
    component becomes ``-damping * v``. The other two axes are untouched.
    When ``half_velocities`` is given, its matching component is damped the
    same way.

    Returns
    -------
    n_reflections : int
        Number of (particle, axis) reflections applied.
    """
    n_reflections = 0
    for axis in range(3):
        coord = positions[:, axis]
        above = coord > bounds_max[axis]
        below = ~above & (coord < bounds_min[axis])

        for mask, target in ((above, bounds_max[axis] - eps), (below, bounds_min[axis] + eps)):
            if not np.any(mask):
                continue
            positions[mask, axis] = target
            velocities[mask, axis] *= -damping
            if half_velocities is not None:
                half_velocities[mask, axis] *= -damping
            n_reflections += int(np.count_nonzero(mask))

    return n_reflections


class LeapfrogIntegrator(TimeIntegrator):
    """
    Kick-drift leapfrog integrator for the SPH fluid.

    Parameters
    ----------
    max_velocity : float, optional
        Velocity magnitude clamp (default: unbounded).
    """

    def __init__(self, max_velocity: float = np.inf):
        self.max_velocity = max_velocity

    def step(
        self,
        particles: Any,
        dt: float,
        **kwargs
    ) -> None:
        """
        Advance particle positions and velocities in place.

        Parameters
        ----------
        particles : FluidParticles
            Particle state with current accelerations.
        dt : float
            Timestep.
        """
        leapfrog_update(
            particles.positions,
            particles.velocities,
            particles.half_velocities,
            particles.half_step_initialized,
            particles.accelerations,
            dt,
            max_velocity=kwargs.get('max_velocity', self.max_velocity),
        )
