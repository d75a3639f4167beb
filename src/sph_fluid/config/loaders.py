"""
Configuration loaders for YAML and JSON files.

The configuration document is nested and uses hyphenated keys:

    {
      "particles-constants": {"smoothing-radius": 0.1, "cudaMode": "none", ...},
      "scene-config": {
        "num-particles": 1000,
        "boundaries-volume": {"min-x": 0.0, "max-x": 1.0, ...},
        "spawn-volume": {"min-x": 0.2, "max-x": 0.8, ...}
      }
    }

JSON files may contain ``//`` line comments and ``/* */`` block comments;
they are stripped before parsing. Nested sections are flattened onto the
SimulationConstants field names. There are no silent defaults for physical
constants: a missing or invalid key raises ConfigurationError.
"""

import json
import re
from pathlib import Path
from typing import Any, Dict, Union

import yaml
from pydantic import ValidationError

from sph_fluid.core.simulation import SimulationConstants


class ConfigurationError(ValueError):
    """Configuration file missing, unparsable or invalid."""


# Double-quoted strings are matched first so comment markers inside them survive.
_COMMENT_PATTERN = re.compile(
    r'("(?:\\.|[^"\\])*")|(//[^\n]*)|(/\*[\s\S]*?\*/)'
)

# Field mapping for nested sections
FIELD_MAPPINGS = {
    'particles-constants': {
        'max-acceleration': 'max_acceleration',
        'max-velocity': 'max_velocity',
        'viscosity': 'viscosity',
        'cudaMode': 'cuda_mode',
        'smoothing-radius': 'smoothing_radius',
        'initial-density': 'rest_density',
        'particle-mass': 'particle_mass',
        'pressure': 'pressure_stiffness',
        'gravity-acceleration': 'gravity',
        'damping': 'damping',
        'boundary-epsilon': 'boundary_eps',
    },
    'scene-config': {
        'num-particles': 'num_particles',
        'random-seed': 'random_seed',
        'verbose': 'verbose',
        'damping': 'damping',
        'boundary-epsilon': 'boundary_eps',
    },
}

# Volume sections inside scene-config and the field prefix they map to
VOLUME_PREFIXES = {
    'boundaries-volume': '',
    'spawn-volume': 'spawn_',
}

_VOLUME_KEYS = ('min-x', 'max-x', 'min-y', 'max-y', 'min-z', 'max-z')


def strip_comments(text: str) -> str:
    """
    Remove ``//`` and ``/* */`` comments from JSON text.

    Comment markers inside double-quoted strings are left untouched.
    """
    return _COMMENT_PATTERN.sub(lambda m: m.group(1) or '', text)


def load_config(filename: Union[str, Path], **overrides) -> SimulationConstants:
    """
    Load simulation constants from a YAML or JSON file.

    Parameters
    ----------
    filename : str or Path
        Path to configuration file (.yaml, .yml, or .json)
    **overrides : keyword arguments
        Override specific flattened values (e.g., cuda_mode="full").

    Returns
    -------
    constants : SimulationConstants
        Validated simulation constants

    Raises
    ------
    ConfigurationError
        If the file does not exist, cannot be parsed, has an unsupported
        suffix, or fails validation.

    Examples
    --------
    >>> constants = load_config("simConfig.json")
    >>> constants = load_config("simConfig.json", cuda_mode="physics")
    """
    filepath = Path(filename)

    if not filepath.exists():
        raise ConfigurationError(f"Configuration file not found: {filepath}")

    # Determine file type and load
    suffix = filepath.suffix.lower()
    if suffix in ['.yaml', '.yml']:
        config_dict = load_yaml(filepath)
    elif suffix == '.json':
        config_dict = load_json(filepath)
    else:
        raise ConfigurationError(
            f"Unsupported config file format: {suffix}. "
            "Use .yaml, .yml, or .json"
        )

    if not isinstance(config_dict, dict):
        raise ConfigurationError(
            f"Configuration root in {filepath} must be a mapping, got {type(config_dict).__name__}"
        )

    # Flatten nested dictionaries
    flat_config = flatten_config(config_dict)

    # Apply overrides
    flat_config.update(overrides)

    # Create and validate constants
    try:
        constants = SimulationConstants(**flat_config)
    except ValidationError as e:
        raise ConfigurationError(
            f"Configuration validation failed for {filepath}: {e}"
        ) from e

    return constants


def load_yaml(filepath: Path) -> Dict[str, Any]:
    """
    Load YAML configuration file.

    Parameters
    ----------
    filepath : Path
        Path to YAML file

    Returns
    -------
    config_dict : Dict[str, Any]
        Configuration dictionary
    """
    try:
        with open(filepath, 'r', encoding='utf-8') as f:
            config_dict = yaml.safe_load(f)
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"Could not read YAML configuration {filepath}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Could not parse YAML configuration {filepath}: {e}") from e

    if config_dict is None:
        config_dict = {}

    return config_dict


def load_json(filepath: Path) -> Dict[str, Any]:
    """
    Load JSON configuration file, allowing ``//`` and ``/* */`` comments.

    Parameters
    ----------
    filepath : Path
        Path to JSON file

    Returns
    -------
    config_dict : Dict[str, Any]
        Configuration dictionary
    """
    try:
        with open(filepath, 'r', encoding='utf-8') as f:
            text = f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"Could not read JSON configuration {filepath}: {e}") from e

    try:
        config_dict = json.loads(strip_comments(text))
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Could not parse JSON configuration {filepath}: {e}") from e

    return config_dict


def _flatten_volume(volume: Dict[str, Any], prefix: str) -> Dict[str, Any]:
    """``{'min-x': a, 'max-x': b}`` -> ``{prefix + 'x_min': a, prefix + 'x_max': b}``."""
    flat = {}
    for key, value in volume.items():
        if key in _VOLUME_KEYS:
            end, axis = key.split('-')
            flat[f"{prefix}{axis}_{end}"] = value
        else:
            # Pass through unmapped keys; validation rejects them
            flat[f"{prefix}{key}"] = value
    return flat


def flatten_config(config_dict: Dict[str, Any]) -> Dict[str, Any]:
    """
    Flatten nested configuration dictionary.

    Converts nested structures like:
        {'particles-constants': {'smoothing-radius': 0.1},
         'scene-config': {'boundaries-volume': {'min-x': 0.0}}}
    to:
        {'smoothing_radius': 0.1, 'x_min': 0.0}

    Keys that are already flat field names are passed through unchanged.

    Parameters
    ----------
    config_dict : Dict[str, Any]
        Nested configuration dictionary

    Returns
    -------
    flat_dict : Dict[str, Any]
        Flattened configuration dictionary
    """
    flat = {}

    for key, value in config_dict.items():
        if key in FIELD_MAPPINGS and isinstance(value, dict):
            mapping = FIELD_MAPPINGS[key]
            for subkey, subvalue in value.items():
                if subkey in VOLUME_PREFIXES and isinstance(subvalue, dict):
                    flat.update(_flatten_volume(subvalue, VOLUME_PREFIXES[subkey]))
                elif subkey in mapping:
                    flat[mapping[subkey]] = subvalue
                else:
                    # Pass through unmapped keys
                    flat[subkey] = subvalue
        elif key in VOLUME_PREFIXES and isinstance(value, dict):
            flat.update(_flatten_volume(value, VOLUME_PREFIXES[key]))
        elif isinstance(value, dict):
            # Recursively flatten nested dicts without explicit mappings
            flat.update(flatten_config(value))
        else:
            # Direct assignment
            flat[key] = value

    return flat


def _volume_section(config_dict: Dict[str, Any], prefix: str) -> Dict[str, Any]:
    section = {}
    for key in _VOLUME_KEYS:
        end, axis = key.split('-')
        section[key] = config_dict[f"{prefix}{axis}_{end}"]
    return section


def save_config(constants: SimulationConstants, filename: Union[str, Path]) -> None:
    """
    Save SimulationConstants to a YAML or JSON file in the nested layout.

    Loading the written file yields constants equal to ``constants``.

    Parameters
    ----------
    constants : SimulationConstants
        Constants to save
    filename : str or Path
        Output file path (.yaml, .yml or .json)
    """
    filepath = Path(filename)

    # Convert constants to dictionary
    config_dict = constants.model_dump(mode='json')

    # Organize into nested structure
    organized = {
        'particles-constants': {
            'max-acceleration': config_dict['max_acceleration'],
            'max-velocity': config_dict['max_velocity'],
            'viscosity': config_dict['viscosity'],
            'cudaMode': config_dict['cuda_mode'],
            'smoothing-radius': config_dict['smoothing_radius'],
            'initial-density': config_dict['rest_density'],
            'particle-mass': config_dict['particle_mass'],
            'pressure': config_dict['pressure_stiffness'],
            'gravity-acceleration': config_dict['gravity'],
            'damping': config_dict['damping'],
            'boundary-epsilon': config_dict['boundary_eps'],
        },
        'scene-config': {
            'num-particles': config_dict['num_particles'],
            'boundaries-volume': _volume_section(config_dict, ''),
        },
    }

    scene = organized['scene-config']
    if constants.spawn_bounds is not None:
        scene['spawn-volume'] = _volume_section(config_dict, 'spawn_')
    if config_dict['random_seed'] is not None:
        scene['random-seed'] = config_dict['random_seed']
    scene['verbose'] = config_dict['verbose']

    suffix = filepath.suffix.lower()
    if suffix in ['.yaml', '.yml']:
        with open(filepath, 'w') as f:
            yaml.dump(organized, f, default_flow_style=False, sort_keys=False)
    elif suffix == '.json':
        with open(filepath, 'w') as f:
            json.dump(organized, f, indent=2)
    else:
        raise ValueError(f"Unsupported output format: {suffix}. Use .yaml, .yml or .json")


def config_from_dict(config_dict: Dict[str, Any]) -> SimulationConstants:
    """
    Create SimulationConstants from a (nested or flat) dictionary.

    Parameters
    ----------
    config_dict : Dict[str, Any]
        Configuration dictionary

    Returns
    -------
    constants : SimulationConstants
        Validated constants

    Raises
    ------
    ConfigurationError
        If validation fails.
    """
    flat = flatten_config(config_dict)
    try:
        return SimulationConstants(**flat)
    except ValidationError as e:
        raise ConfigurationError(f"Configuration validation failed: {e}") from e
