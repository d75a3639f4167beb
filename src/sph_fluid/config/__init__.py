"""
Configuration module: loading, validation and saving of simulation constants.
"""

from sph_fluid.config.loaders import (
    ConfigurationError,
    load_config,
    save_config,
    config_from_dict,
    flatten_config,
    strip_comments,
)

__all__ = [
    'ConfigurationError',
    'load_config',
    'save_config',
    'config_from_dict',
    'flatten_config',
    'strip_comments',
]
