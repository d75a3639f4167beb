"""Shared fixtures for the sph_fluid test suite."""

import pytest

from sph_fluid.core.simulation import SimulationConstants


BASE_CONSTANTS = {
    'smoothing_radius': 1.0,
    'rest_density': 1000.0,
    'pressure_stiffness': 1.0,
    'viscosity': 0.0,
    'particle_mass': 1.0,
    'gravity': -9.8,
    'max_velocity': 100.0,
    'max_acceleration': 1.0e6,
    'cuda_mode': 'none',
    'num_particles': 0,
    'x_min': -2.0,
    'x_max': 2.0,
    'y_min': -2.0,
    'y_max': 2.0,
    'z_min': -2.0,
    'z_max': 2.0,
}


@pytest.fixture
def make_constants():
    """Factory for SimulationConstants with per-test overrides."""
    def _make(**overrides) -> SimulationConstants:
        values = dict(BASE_CONSTANTS)
        values.update(overrides)
        return SimulationConstants(**values)
    return _make


@pytest.fixture
def nested_config():
    """Nested, hyphenated configuration document as read from a file."""
    return {
        'particles-constants': {
            'max-acceleration': 200.0,
            'max-velocity': 10.0,
            'viscosity': 3.5,
            'cudaMode': 'none',
            'smoothing-radius': 0.1,
            'initial-density': 1000.0,
            'particle-mass': 0.5,
            'pressure': 3.0,
            'gravity-acceleration': -9.8,
        },
        'scene-config': {
            'num-particles': 20,
            'random-seed': 7,
            'boundaries-volume': {
                'min-x': 0.0, 'max-x': 1.0,
                'min-y': 0.0, 'max-y': 1.0,
                'min-z': 0.0, 'max-z': 0.5,
            },
            'spawn-volume': {
                'min-x': 0.0, 'max-x': 0.4,
                'min-y': 0.3, 'max-y': 0.9,
                'min-z': 0.0, 'max-z': 0.5,
            },
        },
    }
