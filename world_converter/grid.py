"""
Flat, bounds-checked global grids shared by the tile assemblers.

A GlobalGrid owns one contiguous numpy buffer of ``width * height`` cells
addressed as ``row * width + col``.  Tiles are copied in as whole blocks;
every access is checked against the grid shape so a misplaced tile fails
loudly instead of wrapping or silently growing the grid.
"""

import logging

try:
    import numpy as np
except ImportError:
    raise ImportError(
        "NumPy is required for world_converter.  "
        "Install with: pip install numpy"
    )

from .errors import MissingTileError, UnexpectedTileDimensions

log = logging.getLogger(__name__)


class GlobalGrid(object):
    """
    Dense row-major grid backed by a single flat buffer.

    Args:
        width: Number of columns.
        height: Number of rows.
        dtype: numpy dtype of the cells.
        fill: Initial cell value.
    """

    def __init__(self, width, height, dtype, fill=0):
        if width <= 0 or height <= 0:
            raise ValueError("Grid dimensions must be positive: {}x{}".format(
                width, height))
        self.width = width
        self.height = height
        self._data = np.full(width * height, fill, dtype=dtype)

    @property
    def dtype(self):
        return self._data.dtype

    @property
    def shape(self):
        """(rows, cols), numpy order."""
        return (self.height, self.width)

    def _index(self, row, col):
        if not (0 <= row < self.height and 0 <= col < self.width):
            raise IndexError(
                "Cell (row={}, col={}) outside {}x{} grid".format(
                    row, col, self.width, self.height))
        return row * self.width + col

    def get(self, row, col):
        return self._data[self._index(row, col)].item()

    def set(self, row, col, value):
        self._data[self._index(row, col)] = value

    def write_block(self, row, col, block):
        """
        Copy the 2-D array *block* with its top-left cell at (row, col).

        Raises:
            IndexError: If any part of the block falls outside the grid.
        """
        rows, cols = block.shape
        if (row < 0 or col < 0 or row + rows > self.height
                or col + cols > self.width):
            raise IndexError(
                "Block {}x{} at (row={}, col={}) outside {}x{} grid".format(
                    cols, rows, row, col, self.width, self.height))
        self.as_array()[row:row + rows, col:col + cols] = block

    def as_array(self):
        """2-D view (rows, cols) over the flat buffer; no copy."""
        return self._data.reshape(self.height, self.width)

    def to_rows(self):
        """Nested list of Python numbers, one list per row."""
        return self.as_array().tolist()


def fetch_tile(lookup, coord, kind):
    """
    Fetch the tile at *coord* through *lookup*.

    A KeyError, a FileNotFoundError or a None result all mean the tile is
    absent.

    Raises:
        MissingTileError: If the tile is absent.
    """
    try:
        tile = lookup(coord)
    except (KeyError, FileNotFoundError):
        raise MissingTileError(coord, kind=kind)
    if tile is None:
        raise MissingTileError(coord, kind=kind)
    return tile


def tile_block(coord, cells, declared, size, dtype, kind):
    """
    Convert tile *cells* to a numpy block and check it is size x size.

    Args:
        coord: Tile coordinate, for error reporting.
        cells: Row-major nested sequence of the tile's values.
        declared: (width, height) the tile claims to have.
        size: Required side length.
        dtype: numpy dtype of the block.
        kind: "height" or "tile-index", for error reporting.

    Raises:
        UnexpectedTileDimensions: If the declared or actual shape is wrong.
    """
    expected = (size, size)
    if tuple(declared) != expected:
        raise UnexpectedTileDimensions(coord, expected, tuple(declared),
                                       kind=kind)
    try:
        block = np.asarray(cells, dtype=dtype)
    except ValueError:
        # Ragged rows
        raise UnexpectedTileDimensions(coord, expected,
                                       _ragged_shape(cells), kind=kind)
    if block.ndim != 2 or block.shape != (size, size):
        actual = (block.shape[1], block.shape[0]) if block.ndim == 2 \
            else _ragged_shape(cells)
        raise UnexpectedTileDimensions(coord, expected, actual, kind=kind)
    return block


def _ragged_shape(cells):
    rows = len(cells)
    cols = max((len(r) for r in cells), default=0)
    return (cols, rows)
