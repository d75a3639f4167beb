"""
Tests for SpatialCell and CellHash.

Validates:
- Member insertion/removal by id
- Chained lookup by full coordinate under hash collisions
- find/get/remove contracts
"""

import numpy as np
import pytest

from sph_fluid.spatial import CellHash, GridPoint, SpatialCell


def make_cell(handle, i, j, k):
    cell = SpatialCell(handle)
    cell.initialize(i, j, k)
    return cell


class TestSpatialCell:
    """Membership bookkeeping of a single cell."""

    def test_insert_stamps_point(self):
        cell = make_cell(0, 2, -1, 5)
        point = GridPoint(id=3, position=(0.0, 0.0, 0.0))

        cell.insert(point)

        assert point.cell == (2, -1, 5)
        assert point.in_grid
        assert len(cell) == 1
        assert not cell.is_empty()

    def test_remove_by_id(self):
        cell = make_cell(0, 0, 0, 0)
        a = GridPoint(id=0, position=(0.1, 0.1, 0.1))
        b = GridPoint(id=1, position=(0.2, 0.2, 0.2))
        cell.insert(a)
        cell.insert(b)

        assert cell.remove(a)
        assert not a.in_grid
        assert [p.id for p in cell.members] == [1]

        # Second removal is a miss, not an error
        assert not cell.remove(a)

    def test_reset_unfiles_members(self):
        cell = make_cell(7, 1, 1, 1)
        point = GridPoint(id=0, position=(0.0, 0.0, 0.0))
        cell.insert(point)
        cell.neighbours = [1, 2, 3]

        cell.reset()

        assert cell.is_empty()
        assert cell.neighbours == []
        assert cell.coord == (0, 0, 0)
        assert cell.handle == 7
        assert not point.in_grid


class TestCellHash:
    """Chained hash table keyed by (i, j, k)."""

    def test_hash_formula(self):
        table = CellHash()
        assert table.compute_hash(0, 0, 0) == 0
        assert table.compute_hash(1, 1, 1) == 541 + 79 + 31
        assert table.compute_hash(-1, 0, 0) == 541
        assert table.compute_hash(20, 0, 0) == (541 * 20) % 10000

    def test_find_missing_returns_none(self):
        table = CellHash()
        assert table.find(1, 2, 3) is None
        assert not table.contains(1, 2, 3)
        assert (1, 2, 3) not in table

    def test_get_missing_raises(self):
        table = CellHash()
        with pytest.raises(LookupError, match="No cell stored"):
            table.get(0, 0, 0)

    def test_collisions_resolved_by_coordinate(self):
        """With a modulus of 1 every cell shares one chain."""
        table = CellHash(max_hash_values=1)
        cells = [make_cell(h, h, -h, 2 * h) for h in range(5)]
        for cell in cells:
            table.insert(cell)

        assert table.n_buckets == 1
        assert len(table) == 5
        for cell in cells:
            assert table.find(*cell.coord) is cell

        assert table.remove(cells[2])
        assert table.find(*cells[2].coord) is None
        assert table.find(*cells[3].coord) is cells[3]
        assert len(table) == 4

    def test_remove_drops_empty_chain(self):
        table = CellHash()
        cell = make_cell(0, 4, 5, 6)
        table.insert(cell)
        assert table.n_buckets == 1

        assert table.remove(cell)
        assert table.n_buckets == 0
        assert len(table) == 0
        assert not table.remove(cell)

    def test_find_iff_inserted_and_not_removed(self):
        """Random insert/remove sequence against a reference set."""
        rng = np.random.default_rng(1234)
        table = CellHash(max_hash_values=17)
        live = {}
        handle = 0

        for _ in range(500):
            coord = tuple(int(c) for c in rng.integers(-4, 5, size=3))
            if coord in live and rng.random() < 0.5:
                assert table.remove(live.pop(coord))
            elif coord not in live:
                cell = make_cell(handle, *coord)
                handle += 1
                table.insert(cell)
                live[coord] = cell

            probe = tuple(int(c) for c in rng.integers(-4, 5, size=3))
            found = table.find(*probe)
            if probe in live:
                assert found is live[probe]
            else:
                assert found is None

        assert len(table) == len(live)
        assert {cell.coord for cell in table.cells()} == set(live)

    def test_for_each_cell_allows_removal(self):
        table = CellHash(max_hash_values=3)
        for h in range(6):
            table.insert(make_cell(h, h, 0, 0))

        table.for_each_cell(table.remove)

        assert len(table) == 0
        assert table.n_buckets == 0
