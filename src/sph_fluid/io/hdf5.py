"""
HDF5 snapshot I/O for SPH fluid simulations.

Snapshots are the offline consumer of the particle state: one file per
frame, readable by external renderers and analysis tools.

Design:
- Organized group structure: /particles, /metadata
- Compression enabled (gzip level 4) for efficient storage
- Arrays are stored at their native precision (float64 positions, int64 ids)
- Includes versioning and metadata for reproducibility

Example usage:
    >>> writer = HDF5Writer()
    >>> writer.write_snapshot(
    ...     "snapshot_0000.h5",
    ...     sim.particles.snapshot_data(),
    ...     time=0.0,
    ...     metadata={"smoothing_radius": 0.1}
    ... )
    >>> data = writer.read_snapshot("snapshot_0000.h5")
"""

from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import h5py
import numpy as np

from sph_fluid import __version__


REQUIRED_FIELDS = ('positions', 'velocities', 'density', 'pressure')


class HDF5Writer:
    """
    HDF5-based snapshot writer for SPH fluid particle data.

    Attributes
    ----------
    compression : str
        Compression algorithm (default: 'gzip')
    compression_level : int
        Compression level 0-9 (default: 4, balances speed vs size)
    code_version : str
        Version identifier written into every snapshot
    """

    def __init__(
        self,
        compression: Optional[str] = "gzip",
        compression_level: int = 4,
        code_version: str = __version__,
    ):
        self.compression = compression
        self.compression_level = compression_level if compression == "gzip" else None
        self.code_version = code_version

    def write_snapshot(
        self,
        filename: str,
        particles: Dict[str, np.ndarray],
        time: float,
        metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Write particle snapshot to HDF5 file.

        Parameters
        ----------
        filename : str
            Path to output HDF5 file. Missing parent directories are created.
        particles : Dict[str, np.ndarray]
            Particle arrays. Required keys:
            - 'positions': shape (N, 3)
            - 'velocities': shape (N, 3)
            - 'density': shape (N,)
            - 'pressure': shape (N,)
            Any further arrays (accelerations, forces, grid_ids, ...) are
            written alongside.
        time : float
            Current simulation time.
        metadata : Dict[str, Any], optional
            Scalars are stored as attributes of /metadata; tuples, lists and
            arrays as datasets; anything else as its string representation.

        Raises
        ------
        ValueError
            If a required field is missing or array lengths disagree.
        """
        Path(filename).parent.mkdir(parents=True, exist_ok=True)

        missing = [f for f in REQUIRED_FIELDS if f not in particles]
        if missing:
            raise ValueError(f"Missing required particle fields: {missing}")

        n_particles = len(particles['positions'])
        mismatched = [key for key, array in particles.items() if len(array) != n_particles]
        if mismatched:
            raise ValueError(f"Particle fields with length != {n_particles}: {mismatched}")

        with h5py.File(filename, 'w') as f:
            particle_group = f.create_group('particles')

            for key, array in particles.items():
                array = np.asarray(array)
                # Chunked datasets cannot be empty
                chunked = array.size > 0
                particle_group.create_dataset(
                    key,
                    data=array,
                    compression=self.compression if chunked else None,
                    compression_opts=self.compression_level if chunked else None,
                    chunks=True if chunked else None,
                )

            particle_group.attrs['n_particles'] = n_particles
            particle_group.attrs['time'] = time

            meta_group = f.create_group('metadata')
            meta_group.attrs['code_version'] = self.code_version
            meta_group.attrs['creation_time'] = datetime.now().isoformat()
            meta_group.attrs['simulation_time'] = time
            meta_group.attrs['n_particles'] = n_particles

            if metadata is not None:
                for key, value in metadata.items():
                    if isinstance(value, (int, float, str, bool, np.integer, np.floating)):
                        meta_group.attrs[key] = value
                    elif isinstance(value, (np.ndarray, list, tuple)):
                        meta_group.create_dataset(key, data=np.asarray(value))
                    else:
                        meta_group.attrs[key] = str(value)

            # Root-level attributes for quick access
            f.attrs['time'] = time
            f.attrs['n_particles'] = n_particles
            f.attrs['code_version'] = self.code_version

    def read_snapshot(
        self,
        filename: str,
        load_metadata: bool = True
    ) -> Dict[str, Any]:
        """
        Read particle snapshot from HDF5 file.

        Returns
        -------
        data : Dict[str, Any]
            - 'particles': Dict of particle arrays
            - 'time': float
            - 'n_particles': int
            - 'metadata': Dict (if load_metadata=True)
        """
        if not Path(filename).exists():
            raise FileNotFoundError(f"Snapshot file not found: {filename}")

        with h5py.File(filename, 'r') as f:
            particle_group = f['particles']
            particles = {key: particle_group[key][()] for key in particle_group.keys()}

            result = {
                'particles': particles,
                'time': float(f.attrs['time']),
                'n_particles': int(f.attrs['n_particles']),
            }

            if load_metadata and 'metadata' in f:
                meta_group = f['metadata']
                metadata = {key: meta_group.attrs[key] for key in meta_group.attrs.keys()}
                for key in meta_group.keys():
                    metadata[key] = meta_group[key][()]
                result['metadata'] = metadata

            return result

    def list_snapshots(self, directory: str, pattern: str = "snapshot_*.h5") -> List[Path]:
        """Sorted snapshot files in ``directory``."""
        dir_path = Path(directory)
        if not dir_path.exists():
            raise ValueError(f"Directory not found: {directory}")

        return sorted(dir_path.glob(pattern))

    def get_snapshot_info(self, filename: str) -> Dict[str, Any]:
        """
        Basic information about a snapshot without loading the arrays.

        >>> info = writer.get_snapshot_info("snapshot_0042.h5")
        >>> print(f"Time: {info['time']}, N: {info['n_particles']}")
        """
        with h5py.File(filename, 'r') as f:
            info = {
                'filename': filename,
                'time': float(f.attrs['time']),
                'n_particles': int(f.attrs['n_particles']),
                'code_version': f.attrs['code_version'],
            }

            if 'particles' in f:
                info['particle_fields'] = list(f['particles'].keys())

            return info


def write_snapshot(
    filename: str,
    particles: Dict[str, np.ndarray],
    time: float,
    metadata: Optional[Dict[str, Any]] = None,
    **kwargs
) -> None:
    """
    Convenience function to write a snapshot with default settings.

    ``**kwargs`` are passed to the HDF5Writer constructor.
    """
    writer = HDF5Writer(**kwargs)
    writer.write_snapshot(filename, particles, time, metadata)


def read_snapshot(filename: str, **kwargs) -> Dict[str, Any]:
    """
    Convenience function to read a snapshot with default settings.

    >>> data = read_snapshot("snap.h5")
    >>> positions = data['particles']['positions']
    """
    writer = HDF5Writer()
    return writer.read_snapshot(filename, **kwargs)
