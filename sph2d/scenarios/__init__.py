"""SPH simulation scenarios."""

from .layouts import (
    create_square_grid,
    create_block_layout
)

__all__ = [
    'create_square_grid',
    'create_block_layout'
]
