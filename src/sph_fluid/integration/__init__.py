"""
Integration module: leapfrog time stepping and boundary handling.
"""

from sph_fluid.integration.leapfrog import (
    LeapfrogIntegrator,
    leapfrog_update,
    reflect_boundary,
    clamp_magnitude,
)

__all__ = [
    "LeapfrogIntegrator",
    "leapfrog_update",
    "reflect_boundary",
    "clamp_magnitude",
]
