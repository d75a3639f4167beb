"""
I/O module: HDF5 particle snapshots.
"""

from sph_fluid.io.hdf5 import (
    HDF5Writer,
    write_snapshot,
    read_snapshot,
)

__all__ = [
    'HDF5Writer',
    'write_snapshot',
    'read_snapshot',
]
