"""
Spatial module: uniform-grid spatial hash for neighbour queries.
"""

from sph_fluid.spatial.cell import GridPoint, SpatialCell
from sph_fluid.spatial.cell_hash import CellHash
from sph_fluid.spatial.grid import NeighbourGrid, EPS

__all__ = [
    "GridPoint",
    "SpatialCell",
    "CellHash",
    "NeighbourGrid",
    "EPS",
]
