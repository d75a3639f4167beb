"""
Grid points and the cells that file them.

A GridPoint is the neighbour grid's record of one tracked position. A
SpatialCell holds the points currently located in one (i, j, k) cell of the
uniform grid, together with the handles of its occupied neighbour cells.

Cells never own their member points: the NeighbourGrid owns both points and
cells, and a cell only references the points filed under it.
"""

from dataclasses import dataclass, field
from typing import List, Tuple

CellCoord = Tuple[int, int, int]
Vec3 = Tuple[float, float, float]


@dataclass
class GridPoint:
    """
    A point tracked by the neighbour grid.

    Attributes
    ----------
    id : int
        Unique, never-reused identifier assigned by the grid.
    position : Vec3
        Current position.
    offset : List[float]
        Position minus the origin of the owning cell. Updated incrementally
        by ``NeighbourGrid.move_point`` so a boundary crossing can be
        detected without recomputing the cell coordinate.
    cell : CellCoord
        Coordinate of the cell the point is filed under.
    in_grid : bool
        Whether the point is currently filed in a cell.
    """
    id: int
    position: Vec3
    offset: List[float] = field(default_factory=lambda: [0.0, 0.0, 0.0])
    cell: CellCoord = (0, 0, 0)
    in_grid: bool = False


class SpatialCell:
    """
    One occupied cell of the uniform grid.

    Parameters
    ----------
    handle : int
        Stable index of this cell in the grid's cell arena. Handles survive
        recycling: a cell returned to the free pool keeps its handle and is
        re-stamped with a new coordinate when it is reused.
    """

    def __init__(self, handle: int):
        self.handle = handle
        self.i = 0
        self.j = 0
        self.k = 0
        self.members: List[GridPoint] = []
        self.neighbours: List[int] = []

    @property
    def coord(self) -> CellCoord:
        return (self.i, self.j, self.k)

    def initialize(self, i: int, j: int, k: int) -> None:
        """Stamp the cell with a grid coordinate."""
        self.i = i
        self.j = j
        self.k = k

    def insert(self, point: GridPoint) -> None:
        """File a point in this cell and stamp its cached coordinate."""
        point.cell = (self.i, self.j, self.k)
        point.in_grid = True
        self.members.append(point)

    def remove(self, point: GridPoint) -> bool:
        """
        Remove a point by id match.

        Returns
        -------
        removed : bool
            False if no member carries the point's id.
        """
        for idx, member in enumerate(self.members):
            if member.id == point.id:
                point.in_grid = False
                del self.members[idx]
                return True
        return False

    def is_empty(self) -> bool:
        return not self.members

    def reset(self) -> None:
        """Unfile every member and clear the cell before it goes back to the pool."""
        for point in self.members:
            point.in_grid = False
        self.members.clear()
        self.neighbours.clear()
        self.i = 0
        self.j = 0
        self.k = 0

    def __len__(self) -> int:
        return len(self.members)

    def __repr__(self) -> str:
        return (
            f"SpatialCell(handle={self.handle}, coord={self.coord}, "
            f"n_members={len(self.members)}, n_neighbours={len(self.neighbours)})"
        )
