"""
Uniform-grid spatial hash for dynamic SPH neighbour search.

The NeighbourGrid files every tracked point into a cell of edge ``cell_size``
and keeps that filing current as points move. Cells are only materialised
while occupied: an emptied cell is removed from the hash table and returned
to an owned free pool for reuse.

Design:
- Cells live in an arena (``list[SpatialCell]``) and are addressed by stable
  integer handles. The free pool and the per-cell neighbour links are lists
  of handles.
- ``move_point`` is O(1) unless the point actually leaves its cell: the
  cached cell-local offset is advanced by the displacement and the point is
  only refiled when an offset component leaves ``[0, cell_size)``.
- Radius queries take a fast path through the precomputed 26 neighbour links
  when the search stays within one cell of the reference point, and walk the
  full cell range through the hash table otherwise. The fast path is only
  taken while the links are fresh, i.e. ``update()`` has run since the last
  cell was created or recycled.
- Lookups by unknown id are silent no-ops (empty result), never exceptions:
  they happen for every particle every frame.
"""

import math
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from sph_fluid.spatial.cell import CellCoord, GridPoint, SpatialCell, Vec3
from sph_fluid.spatial.cell_hash import CellHash, DEFAULT_MAX_HASH_VALUES

# Remainder below which a coordinate is treated as lying on a cell face.
EPS = 1e-9

_NEIGHBOUR_OFFSETS = [
    (di, dj, dk)
    for dk in (-1, 0, 1)
    for dj in (-1, 0, 1)
    for di in (-1, 0, 1)
    if not (di == 0 and dj == 0 and dk == 0)
]


def _as_vec3(position: Sequence[float]) -> Vec3:
    return (float(position[0]), float(position[1]), float(position[2]))


class NeighbourGrid:
    """
    Spatial hash grid supporting insertion, relocation, removal and radius
    queries of points.

    Parameters
    ----------
    cell_size : float
        Edge length of a grid cell. For SPH this is the smoothing radius h.
    initial_free_cells : int, optional
        Number of cells pre-allocated in the free pool (default 10000).
    free_cell_growth : int, optional
        Number of cells added whenever the free pool runs dry (default 200).
    max_hash_values : int, optional
        Modulus of the cell hash (default 10000).

    Examples
    --------
    >>> grid = NeighbourGrid(cell_size=1.0)
    >>> a = grid.insert_point((0.1, 0.1, 0.1))
    >>> b = grid.insert_point((0.6, 0.1, 0.1))
    >>> grid.update()
    >>> grid.get_ids_in_radius_of_point(a, 1.0)
    [1]
    """

    def __init__(
        self,
        cell_size: float,
        initial_free_cells: int = 10000,
        free_cell_growth: int = 200,
        max_hash_values: int = DEFAULT_MAX_HASH_VALUES,
    ):
        if not (math.isfinite(cell_size) and cell_size > 0.0):
            raise ValueError(f"cell_size must be a positive finite number, got {cell_size}")
        if free_cell_growth < 1:
            raise ValueError(f"free_cell_growth must be >= 1, got {free_cell_growth}")

        self.cell_size = float(cell_size)
        self._inv_size = 1.0 / self.cell_size
        self.free_cell_growth = free_cell_growth

        self.cell_hash = CellHash(max_hash_values)
        self._cells: List[SpatialCell] = []
        self._free_cells: List[int] = []
        self._points: Dict[int, GridPoint] = {}
        self._next_id = 0
        self._links_fresh = False

        self._grow_free_pool(initial_free_cells)

    # ------------------------------------------------------------------
    # Coordinates
    # ------------------------------------------------------------------

    def position_to_ijk(self, position: Sequence[float]) -> CellCoord:
        """
        Map a position to its integer cell coordinate.

        Uses ``ceil(x / size) - 1`` per axis, bumped by one when ``x`` lies
        within ``EPS`` of a multiple of ``size``. A point exactly on a cell
        face therefore always belongs to the cell on its positive side.
        """
        size = self.cell_size
        inv = self._inv_size
        x, y, z = float(position[0]), float(position[1]), float(position[2])

        i = math.ceil(x * inv) - 1
        j = math.ceil(y * inv) - 1
        k = math.ceil(z * inv) - 1

        if abs(math.fmod(x, size)) < EPS:
            i += 1
        if abs(math.fmod(y, size)) < EPS:
            j += 1
        if abs(math.fmod(z, size)) < EPS:
            k += 1

        return (i, j, k)

    def ijk_to_position(self, i: int, j: int, k: int) -> Vec3:
        """Origin (minimum corner) of cell (i, j, k)."""
        size = self.cell_size
        return (i * size, j * size, k * size)

    # ------------------------------------------------------------------
    # Points
    # ------------------------------------------------------------------

    def insert_point(self, position: Sequence[float]) -> int:
        """
        Start tracking a point.

        Returns
        -------
        point_id : int
            Sequential id (0, 1, 2, ...). Ids are never reused.
        """
        point = GridPoint(id=self._next_id, position=_as_vec3(position))
        self._next_id += 1
        self._points[point.id] = point
        self._file_point(point)
        return point.id

    def move_point(self, point_id: int, position: Sequence[float]) -> None:
        """
        Move a tracked point; no-op for an unknown id.

        The point is refiled only if its accumulated cell-local offset leaves
        ``[0, cell_size)`` on some axis.
        """
        point = self._points.get(point_id)
        if point is None:
            return

        new_position = _as_vec3(position)
        old_position = point.position
        offset = point.offset
        offset[0] += new_position[0] - old_position[0]
        offset[1] += new_position[1] - old_position[1]
        offset[2] += new_position[2] - old_position[2]
        point.position = new_position

        size = self.cell_size
        if (offset[0] >= size or offset[1] >= size or offset[2] >= size or
                offset[0] < 0.0 or offset[1] < 0.0 or offset[2] < 0.0):
            i, j, k = point.cell
            old_cell = self.cell_hash.get(i, j, k)
            old_cell.remove(point)
            if old_cell.is_empty():
                self._recycle_cell(old_cell)
            self._file_point(point)

    def remove_point(self, point_id: int) -> bool:
        """
        Stop tracking a point. Its id is retired, not reused.

        Returns
        -------
        removed : bool
            False for an unknown id.
        """
        point = self._points.pop(point_id, None)
        if point is None:
            return False

        if point.in_grid:
            cell = self.cell_hash.get(*point.cell)
            cell.remove(point)
            if cell.is_empty():
                self._recycle_cell(cell)
        return True

    def get_point(self, point_id: int) -> Optional[GridPoint]:
        return self._points.get(point_id)

    def point_ids(self) -> Iterator[int]:
        return iter(self._points)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_ids_in_radius_of_point(self, ref_id: int, radius: float) -> List[int]:
        """
        Ids of all points strictly within ``radius`` of point ``ref_id``.

        The reference point itself is excluded. An unknown id yields an empty
        list.
        """
        point = self._points.get(ref_id)
        if point is None:
            return []

        ilo, ihi, jlo, jhi, klo, khi = self._search_range(point, radius)
        ci, cj, ck = point.cell
        if (self._links_fresh and
                ilo >= ci - 1 and ihi <= ci + 1 and
                jlo >= cj - 1 and jhi <= cj + 1 and
                klo >= ck - 1 and khi <= ck + 1):
            return self._fast_search(point, radius)

        return self._range_search(point, radius, (ilo, ihi, jlo, jhi, klo, khi))

    def find_ids_fast(self, ref_id: int, radius: float) -> List[int]:
        """
        Radius query through the point's own cell and its linked neighbours.

        Only complete when ``radius <= cell_size`` and ``update()`` has been
        called since the grid last changed shape.
        """
        point = self._points.get(ref_id)
        if point is None:
            return []
        return self._fast_search(point, radius)

    def find_ids_bruteforce(self, ref_id: int, radius: float) -> List[int]:
        """Radius query that walks every cell in the conservative search range."""
        point = self._points.get(ref_id)
        if point is None:
            return []
        return self._range_search(point, radius, self._search_range(point, radius))

    def _search_range(self, point: GridPoint, radius: float) -> Tuple[int, int, int, int, int, int]:
        """Cell range that can hold points within ``radius``, from the cached offset."""
        size = self.cell_size
        inv = self._inv_size
        tx, ty, tz = point.offset
        i, j, k = point.cell

        ilo = i - max(0, math.ceil((radius - tx) * inv))
        jlo = j - max(0, math.ceil((radius - ty) * inv))
        klo = k - max(0, math.ceil((radius - tz) * inv))
        ihi = i + max(0, math.ceil((radius - size + tx) * inv))
        jhi = j + max(0, math.ceil((radius - size + ty) * inv))
        khi = k + max(0, math.ceil((radius - size + tz) * inv))

        return ilo, ihi, jlo, jhi, klo, khi

    def _fast_search(self, point: GridPoint, radius: float) -> List[int]:
        found: List[int] = []
        cell = self.cell_hash.find(*point.cell)
        if cell is None:
            return found

        rsq = radius * radius
        px, py, pz = point.position
        ref_id = point.id

        for other in cell.members:
            if other.id == ref_id:
                continue
            qx, qy, qz = other.position
            dx = px - qx
            dy = py - qy
            dz = pz - qz
            if dx * dx + dy * dy + dz * dz < rsq:
                found.append(other.id)

        cells = self._cells
        for handle in cell.neighbours:
            for other in cells[handle].members:
                qx, qy, qz = other.position
                dx = px - qx
                dy = py - qy
                dz = pz - qz
                if dx * dx + dy * dy + dz * dz < rsq:
                    found.append(other.id)

        return found

    def _range_search(
        self,
        point: GridPoint,
        radius: float,
        cell_range: Tuple[int, int, int, int, int, int],
    ) -> List[int]:
        found: List[int] = []
        rsq = radius * radius
        px, py, pz = point.position
        ref_id = point.id
        ilo, ihi, jlo, jhi, klo, khi = cell_range
        find = self.cell_hash.find

        for ii in range(ilo, ihi + 1):
            for jj in range(jlo, jhi + 1):
                for kk in range(klo, khi + 1):
                    cell = find(ii, jj, kk)
                    if cell is None:
                        continue
                    for other in cell.members:
                        if other.id == ref_id:
                            continue
                        qx, qy, qz = other.position
                        dx = px - qx
                        dy = py - qy
                        dz = pz - qz
                        if dx * dx + dy * dy + dz * dz < rsq:
                            found.append(other.id)

        return found

    # ------------------------------------------------------------------
    # Cell maintenance
    # ------------------------------------------------------------------

    def update(self) -> None:
        """
        Recompute the 26-neighbour links of every occupied cell.

        Must run after points move and before radius queries for the fast
        path to be used.
        """
        find = self.cell_hash.find
        for cell in self.cell_hash.cells():
            ci, cj, ck = cell.i, cell.j, cell.k
            links = []
            for di, dj, dk in _NEIGHBOUR_OFFSETS:
                other = find(ci + di, cj + dj, ck + dk)
                if other is not None:
                    links.append(other.handle)
            cell.neighbours = links
        self._links_fresh = True

    def cell(self, handle: int) -> SpatialCell:
        """Resolve a cell handle (as stored in neighbour links)."""
        return self._cells[handle]

    def cell_of(self, point_id: int) -> Optional[SpatialCell]:
        """Cell a point is currently filed under, or None."""
        point = self._points.get(point_id)
        if point is None or not point.in_grid:
            return None
        return self.cell_hash.find(*point.cell)

    def _file_point(self, point: GridPoint) -> None:
        i, j, k = self.position_to_ijk(point.position)

        cell = self.cell_hash.find(i, j, k)
        if cell is None:
            cell = self._new_cell(i, j, k)
            cell.insert(point)
            self.cell_hash.insert(cell)
        else:
            cell.insert(point)

        self._update_offset(point, i, j, k)

    def _update_offset(self, point: GridPoint, i: int, j: int, k: int) -> None:
        ox, oy, oz = self.ijk_to_position(i, j, k)
        x, y, z = point.position
        point.offset = [x - ox, y - oy, z - oz]

    def _new_cell(self, i: int, j: int, k: int) -> SpatialCell:
        if not self._free_cells:
            self._grow_free_pool(self.free_cell_growth)

        cell = self._cells[self._free_cells.pop()]
        cell.initialize(i, j, k)
        self._links_fresh = False
        return cell

    def _recycle_cell(self, cell: SpatialCell) -> None:
        self.cell_hash.remove(cell)
        cell.reset()
        self._free_cells.append(cell.handle)
        self._links_fresh = False

    def _grow_free_pool(self, n_cells: int) -> None:
        start = len(self._cells)
        for handle in range(start, start + n_cells):
            self._cells.append(SpatialCell(handle))
            self._free_cells.append(handle)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def n_points(self) -> int:
        return len(self._points)

    @property
    def n_cells(self) -> int:
        """Number of occupied cells."""
        return len(self.cell_hash)

    @property
    def n_free_cells(self) -> int:
        return len(self._free_cells)

    @property
    def links_fresh(self) -> bool:
        return self._links_fresh

    def check_invariants(self) -> None:
        """
        Verify the filing invariants; raises AssertionError on violation.

        Every tracked point is filed in exactly one occupied cell, that cell's
        coordinate matches the point's cached coordinate, and no occupied cell
        is empty.
        """
        seen: Dict[int, int] = {}
        for cell in self.cell_hash.cells():
            if cell.is_empty():
                raise AssertionError(f"Empty cell left in hash: {cell!r}")
            for member in cell.members:
                seen[member.id] = seen.get(member.id, 0) + 1
                if member.cell != cell.coord:
                    raise AssertionError(
                        f"Point {member.id} caches cell {member.cell} but is filed in {cell.coord}"
                    )

        for point_id, point in self._points.items():
            if not point.in_grid:
                raise AssertionError(f"Tracked point {point_id} is not filed")
            count = seen.get(point_id, 0)
            if count != 1:
                raise AssertionError(f"Point {point_id} filed in {count} cells")

        if len(seen) != len(self._points):
            raise AssertionError(
                f"{len(seen)} filed points but {len(self._points)} tracked points"
            )

    def __repr__(self) -> str:
        return (
            f"NeighbourGrid(cell_size={self.cell_size}, n_points={self.n_points}, "
            f"n_cells={self.n_cells}, n_free_cells={self.n_free_cells})"
        )
