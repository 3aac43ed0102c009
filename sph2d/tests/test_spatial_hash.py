"""
Spatial hash tests.

Covers table layout, agreement between the two builders and neighbor
lookups against a brute-force search.
"""

import numpy as np
import pytest

from sph2d.core.spatial_hash_vectorized import (
    HASH_MASK, KEY_COLUMN, HASH_COLUMN, PARTICLE_COLUMN,
    SpatialHashTable, build_hash_entries_vectorized, sort_and_offsets_vectorized,
    cell_coords, hash_cells, query_neighbor_pairs, table_statistics
)
from sph2d.core.spatial_hash_numba import build_hash_entries_numba, sort_and_offsets_numba


def build_table(points, radius, backend='cpu'):
    points = np.asarray(points, dtype=np.float32)
    n = len(points)
    table = SpatialHashTable.allocate(n)
    if backend == 'cpu':
        build_hash_entries_vectorized(points, n, table, radius)
        sort_and_offsets_vectorized(table, n)
    else:
        build_hash_entries_numba(points, n, table.indices, radius)
        sort_and_offsets_numba(table.indices, table.offsets, n)
    return points, table


def brute_force_pairs(points, radius):
    pts = np.asarray(points, dtype=np.float64)
    offset = pts[np.newaxis, :, :] - pts[:, np.newaxis, :]
    sqr = np.einsum('ijk,ijk->ij', offset, offset)
    owner, neighbor = np.nonzero(sqr <= radius * radius)
    return set(zip(owner.tolist(), neighbor.tolist()))


class TestHashing:
    """Cell and hash arithmetic."""

    def test_cell_coords_floor_negative(self):
        cells = cell_coords(np.array([[-0.1, 0.1], [0.99, -1.0]]), 1.0)
        np.testing.assert_array_equal(cells, [[-1, 0], [0, -1]])

    def test_hash_wraps_to_unsigned_32_bit(self):
        assert hash_cells(np.array([-1]), np.array([0]))[0] == 2 ** 32 - 15823
        hashes = hash_cells(np.arange(-50, 50), np.arange(100, 0, -1) * -1000)
        assert np.all(hashes >= 0)
        assert np.all(hashes <= HASH_MASK)

    def test_hash_deterministic(self):
        a = hash_cells(np.array([3, -7]), np.array([-2, 11]))
        b = hash_cells(np.array([3, -7]), np.array([-2, 11]))
        np.testing.assert_array_equal(a, b)


class TestTableLayout:
    """Sorted rows and the offset table."""

    @pytest.mark.parametrize("table_backend", ['cpu', 'numba'])
    def test_sorted_by_key_with_valid_offsets(self, table_backend, rng):
        points, table = build_table(rng.uniform(-3, 3, (200, 2)), 0.35, table_backend)
        n = len(points)
        keys = table.indices[:, KEY_COLUMN]

        assert np.all(np.diff(keys) >= 0)
        np.testing.assert_array_equal(np.sort(table.indices[:, PARTICLE_COLUMN]), np.arange(n))
        np.testing.assert_array_equal(keys, table.indices[:, HASH_COLUMN] % n)

        for key in range(n):
            rows = np.flatnonzero(keys == key)
            if len(rows) == 0:
                assert table.offsets[key] == n
            else:
                assert table.offsets[key] == rows[0]

    @pytest.mark.parametrize("table_backend", ['cpu', 'numba'])
    def test_rows_carry_own_cell_hash(self, table_backend, rng):
        points, table = build_table(rng.uniform(-3, 3, (100, 2)), 0.5, table_backend)
        cells = cell_coords(points, 0.5)
        for particle, cell_hash, _ in table.indices:
            cx, cy = cells[particle]
            assert cell_hash == hash_cells(np.array([cx]), np.array([cy]))[0]

    def test_builders_produce_identical_tables(self, rng):
        raw = rng.uniform(-4, 4, (300, 2))
        _, cpu_table = build_table(raw, 0.35, 'cpu')
        _, numba_table = build_table(raw, 0.35, 'numba')
        np.testing.assert_array_equal(cpu_table.indices, numba_table.indices)
        np.testing.assert_array_equal(cpu_table.offsets, numba_table.offsets)

    def test_single_particle(self):
        _, table = build_table([[0.3, -0.2]], 1.0)
        assert table.offsets[0] == 0
        assert table.indices[0, PARTICLE_COLUMN] == 0
        assert table.indices[0, KEY_COLUMN] == 0

    def test_statistics(self, rng):
        points, table = build_table(rng.uniform(-2, 2, (64, 2)), 0.35)
        stats = table_statistics(table, len(points))
        assert stats['table_size'] == 64
        assert 0 < stats['occupied_keys'] <= 64
        assert stats['longest_run'] >= 1


class TestNeighborQuery:
    """Lookups through the table return exactly the pairs within the radius."""

    @pytest.mark.parametrize("radius", [0.2, 0.5, 1.3])
    def test_matches_brute_force(self, radius, rng):
        points, table = build_table(rng.uniform(-2, 2, (50, 2)), radius)
        owner, neighbor, offset, dst = query_neighbor_pairs(points, len(points), table, radius)

        found = list(zip(owner.tolist(), neighbor.tolist()))
        assert len(found) == len(set(found))
        assert set(found) == brute_force_pairs(points, radius)

        pts = points.astype(np.float64)
        np.testing.assert_allclose(offset, pts[neighbor] - pts[owner])
        np.testing.assert_allclose(dst, np.linalg.norm(offset, axis=1))

    def test_self_pair_included(self):
        points, table = build_table([[5.0, 5.0]], 0.35)
        owner, neighbor, _, dst = query_neighbor_pairs(points, 1, table, 0.35)
        assert owner.tolist() == [0]
        assert neighbor.tolist() == [0]
        assert dst[0] == 0.0

    def test_adjacent_cells_sharing_a_key(self):
        # Cells (0, 0) and (-1, 1) both fold into key 0 of a 2-slot table
        points = np.array([[0.1, 0.9], [-0.1, 1.1]], dtype=np.float32)
        cells = cell_coords(points, 1.0)
        hashes = hash_cells(cells[:, 0], cells[:, 1])
        assert hashes[0] != hashes[1]
        assert np.all(hashes % 2 == 0)

        points, table = build_table(points, 1.0)
        owner, neighbor, _, _ = query_neighbor_pairs(points, 2, table, 1.0)
        assert sorted(zip(owner.tolist(), neighbor.tolist())) == [(0, 0), (0, 1), (1, 0), (1, 1)]

    def test_far_cells_sharing_a_key_are_skipped(self):
        # (0, 0) and (2, 0) share key 0 but are not neighbors
        points, table = build_table([[0.05, 0.05], [2.05, 0.05]], 1.0)
        assert table.indices[0, KEY_COLUMN] == table.indices[1, KEY_COLUMN] == 0
        owner, neighbor, _, _ = query_neighbor_pairs(points, 2, table, 1.0)
        assert sorted(zip(owner.tolist(), neighbor.tolist())) == [(0, 0), (1, 1)]

    def test_boundary_distance_included(self):
        points, table = build_table([[0.0, 0.0], [0.5, 0.0]], 0.5)
        owner, neighbor, _, _ = query_neighbor_pairs(points, 2, table, 0.5)
        assert (0, 1) in set(zip(owner.tolist(), neighbor.tolist()))
