"""
Vectorized spatial hashing for O(N) neighbor searches.

The table is rebuilt from predicted positions every step:
- Cell size equals the smoothing radius, so every neighbor of a particle
  lies in the 3x3 block of cells around it
- Each cell is hashed to an unsigned 32-bit value and folded into one of N
  bucket keys; distinct cells sharing a key are told apart by the full hash
- Rows (particle_index, hash, key) are sorted by key and `offsets[key]`
  points at the first row of each key (N when the key is empty), giving a
  CSR-like layout
"""

import numpy as np
from dataclasses import dataclass
from typing import Tuple

HASH_K1 = 15823
HASH_K2 = 9737333
HASH_MASK = 0xFFFFFFFF

# Neighborhood scanned around the origin cell
CELL_OFFSETS = np.array([(-1, 1), (0, 1), (1, 1),
                         (-1, 0), (0, 0), (1, 0),
                         (-1, -1), (0, -1), (1, -1)], dtype=np.int64)

PARTICLE_COLUMN = 0
HASH_COLUMN = 1
KEY_COLUMN = 2


@dataclass
class SpatialHashTable:
    """Sorted hash rows plus the per-key offset table.

    indices: (C, 3) int64 rows (particle_index, hash, key)
    offsets: (C,) int64, first row of each key or N for an empty key
    """
    indices: np.ndarray
    offsets: np.ndarray

    @property
    def capacity(self) -> int:
        return self.indices.shape[0]

    @staticmethod
    def allocate(capacity: int) -> 'SpatialHashTable':
        return SpatialHashTable(
            indices=np.zeros((capacity, 3), dtype=np.int64),
            offsets=np.full(capacity, capacity, dtype=np.int64),
        )


def cell_coords(points: np.ndarray, cell_size: float) -> np.ndarray:
    """Signed integer cell of each point, shape (N, 2)."""
    return np.floor(np.asarray(points, dtype=np.float64) / cell_size).astype(np.int64)


def hash_cells(cell_x: np.ndarray, cell_y: np.ndarray) -> np.ndarray:
    """Multiplicative hash of integer cells, wrapped to uint32 range."""
    cell_x = np.asarray(cell_x, dtype=np.int64)
    cell_y = np.asarray(cell_y, dtype=np.int64)
    return (cell_x * HASH_K1 + cell_y * HASH_K2) & HASH_MASK


def build_hash_entries_vectorized(points: np.ndarray, n_active: int,
                                  table: SpatialHashTable, cell_size: float):
    """Emit one unsorted (particle_index, hash, key) row per particle."""
    cells = cell_coords(points[:n_active], cell_size)
    hashes = hash_cells(cells[:, 0], cells[:, 1])

    table.indices[:n_active, PARTICLE_COLUMN] = np.arange(n_active)
    table.indices[:n_active, HASH_COLUMN] = hashes
    table.indices[:n_active, KEY_COLUMN] = hashes % n_active


def sort_and_offsets_vectorized(table: SpatialHashTable, n_active: int):
    """Sort rows by key and fill the offset table."""
    rows = table.indices[:n_active]
    order = np.argsort(rows[:, KEY_COLUMN], kind='stable')
    rows[:] = rows[order]

    keys = rows[:, KEY_COLUMN]
    run_start = np.ones(n_active, dtype=bool)
    run_start[1:] = keys[1:] != keys[:-1]

    table.offsets[:n_active] = n_active
    table.offsets[keys[run_start]] = np.flatnonzero(run_start)


def query_neighbor_pairs(points: np.ndarray, n_active: int, table: SpatialHashTable,
                         radius: float) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """Find every (particle, neighbor) pair within radius using the table.

    The 3x3 cells around each particle are looked up through the offset table
    and their key runs expanded all at once. Rows whose full hash differs
    (another cell in the same bucket) are dropped, as are rows farther than
    radius. A particle is returned as its own neighbor.

    Args:
        points: Positions the table was built from, shape (C, 2)
        n_active: Number of active particles
        table: Sorted spatial hash table
        radius: Search radius (the cell size)

    Returns:
        (owner, neighbor, offset, dst): owner/neighbor particle indices,
        offset = points[neighbor] - points[owner] with shape (P, 2), and
        the pair distance
    """
    pts = np.asarray(points[:n_active], dtype=np.float64)
    cells = cell_coords(pts, radius)
    rows = table.indices[:n_active]
    run_length = np.bincount(rows[:, KEY_COLUMN], minlength=n_active)
    particle_ids = np.arange(n_active)
    sqr_radius = radius * radius

    owners, neighbors = [], []
    for dx, dy in CELL_OFFSETS:
        hashes = hash_cells(cells[:, 0] + dx, cells[:, 1] + dy)
        keys = hashes % n_active
        lengths = run_length[keys]
        total = int(lengths.sum())
        if total == 0:
            continue

        # Expand each particle's key run into row indices
        run_base = table.offsets[keys] - (np.cumsum(lengths) - lengths)
        owner = np.repeat(particle_ids, lengths)
        entry = np.repeat(run_base, lengths) + np.arange(total)

        same_cell = rows[entry, HASH_COLUMN] == np.repeat(hashes, lengths)
        owner = owner[same_cell]
        neighbor = rows[entry[same_cell], PARTICLE_COLUMN]

        offset = pts[neighbor] - pts[owner]
        in_range = np.einsum('ij,ij->i', offset, offset) <= sqr_radius
        owners.append(owner[in_range])
        neighbors.append(neighbor[in_range])

    if not owners:
        empty = np.zeros(0, dtype=np.int64)
        return empty, empty, np.zeros((0, 2)), np.zeros(0)

    owner = np.concatenate(owners)
    neighbor = np.concatenate(neighbors)
    offset = pts[neighbor] - pts[owner]
    dst = np.sqrt(np.einsum('ij,ij->i', offset, offset))
    return owner, neighbor, offset, dst


def table_statistics(table: SpatialHashTable, n_active: int) -> dict:
    """Get hash table statistics for debugging."""
    keys = table.indices[:n_active, KEY_COLUMN]
    run_length = np.bincount(keys, minlength=n_active)
    occupied = run_length > 0
    cells_per_key = {}
    for key, cell_hash in zip(keys, table.indices[:n_active, HASH_COLUMN]):
        cells_per_key.setdefault(int(key), set()).add(int(cell_hash))

    return {
        'table_size': n_active,
        'occupied_keys': int(np.sum(occupied)),
        'occupancy_rate': float(np.sum(occupied)) / n_active,
        'longest_run': int(run_length.max()) if n_active else 0,
        'shared_keys': sum(1 for hashes in cells_per_key.values() if len(hashes) > 1),
    }
