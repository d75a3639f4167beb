"""
Visualization module: matplotlib plots of particle state and snapshots.
"""

from sph_fluid.visualization.plots import (
    MatplotlibVisualizer,
    quick_plot,
    quick_density_histogram,
)

__all__ = [
    'MatplotlibVisualizer',
    'quick_plot',
    'quick_density_histogram',
]
