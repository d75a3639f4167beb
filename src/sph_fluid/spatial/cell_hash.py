"""
Hash table of occupied grid cells keyed by integer cell coordinate.

The hash ``|541 i + 79 j + 31 k| mod M`` is deliberately cheap rather than
well distributed, so collisions are routine. Every lookup therefore walks the
addressed chain comparing the full (i, j, k), never the hash alone.
"""

from typing import Callable, Dict, Iterator, List, Optional

from sph_fluid.spatial.cell import SpatialCell

DEFAULT_MAX_HASH_VALUES = 10000


class CellHash:
    """
    Chained hash map from (i, j, k) to SpatialCell.

    Parameters
    ----------
    max_hash_values : int, optional
        Hash modulus M (default 10000).

    Notes
    -----
    Invariant: a coordinate appears in at most one chain entry. Empty chains
    are dropped so the number of buckets stays bounded by the number of live
    cells.
    """

    def __init__(self, max_hash_values: int = DEFAULT_MAX_HASH_VALUES):
        if max_hash_values <= 0:
            raise ValueError(f"max_hash_values must be positive, got {max_hash_values}")
        self.max_hash_values = max_hash_values
        self._chains: Dict[int, List[SpatialCell]] = {}
        self._n_cells = 0

    def compute_hash(self, i: int, j: int, k: int) -> int:
        return abs(541 * i + 79 * j + 31 * k) % self.max_hash_values

    def insert(self, cell: SpatialCell) -> None:
        """Append a cell to the chain of its coordinate, creating the chain if absent."""
        key = self.compute_hash(cell.i, cell.j, cell.k)
        chain = self._chains.get(key)
        if chain is None:
            chain = []
            self._chains[key] = chain
        chain.append(cell)
        self._n_cells += 1

    def remove(self, cell: SpatialCell) -> bool:
        """
        Remove the cell with the same coordinate as ``cell``.

        Returns
        -------
        removed : bool
            False if no cell with that coordinate is stored.
        """
        key = self.compute_hash(cell.i, cell.j, cell.k)
        chain = self._chains.get(key)
        if chain is None:
            return False

        removed = False
        for idx, candidate in enumerate(chain):
            if candidate.i == cell.i and candidate.j == cell.j and candidate.k == cell.k:
                del chain[idx]
                removed = True
                self._n_cells -= 1
                break

        if not chain:
            del self._chains[key]

        return removed

    def find(self, i: int, j: int, k: int) -> Optional[SpatialCell]:
        """Return the cell at (i, j, k), or None if it is not stored."""
        chain = self._chains.get(self.compute_hash(i, j, k))
        if chain is None:
            return None
        for cell in chain:
            if cell.i == i and cell.j == j and cell.k == k:
                return cell
        return None

    def get(self, i: int, j: int, k: int) -> SpatialCell:
        """
        Return the cell at (i, j, k) when the caller already knows it exists.

        Raises
        ------
        LookupError
            If no cell is stored at (i, j, k). Reaching this is a bookkeeping
            bug in the caller, not a normal outcome; use ``find`` when
            absence is possible.
        """
        cell = self.find(i, j, k)
        if cell is None:
            raise LookupError(f"No cell stored at ({i}, {j}, {k})")
        return cell

    def contains(self, i: int, j: int, k: int) -> bool:
        return self.find(i, j, k) is not None

    def cells(self) -> Iterator[SpatialCell]:
        """Iterate over every stored cell."""
        for chain in self._chains.values():
            yield from chain

    def for_each_cell(self, fn: Callable[[SpatialCell], None]) -> None:
        # Snapshot first so fn may insert or remove cells.
        for cell in list(self.cells()):
            fn(cell)

    @property
    def n_buckets(self) -> int:
        return len(self._chains)

    def __len__(self) -> int:
        return self._n_cells

    def __contains__(self, coord) -> bool:
        i, j, k = coord
        return self.contains(i, j, k)
