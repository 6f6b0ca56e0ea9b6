"""
Stitches per-coordinate tile-index tiles into one global tile-id grid.

Each TileIndexTile holds 16x16 grid tile-ids.  Tile (x, y) is copied
verbatim to the block starting at column ``(x - x_min) * 16`` and row
``(y - y_min) * 16`` of a ``tiles_y x tiles_x`` grid.
"""

import logging

import numpy as np

from .grid import GlobalGrid, fetch_tile, tile_block
from .records import GridTileId
from .tile_scanner import TILE_INDEX_TILE_SIZE, MapDimensions

log = logging.getLogger(__name__)


class GlobalTileIndexField(GlobalGrid):
    """Stitched grid of GridTileIds, ``tiles_y`` rows of ``tiles_x``."""

    def __init__(self, dimensions):
        super(GlobalTileIndexField, self).__init__(
            dimensions.tiles_x, dimensions.tiles_y, np.int32, fill=0)
        self.dimensions = dimensions

    def tile_id(self, row, col):
        return GridTileId(self.get(row, col))

    def distinct_tile_ids(self):
        return sorted(GridTileId(v) for v in np.unique(self.as_array()))


class TileIndexAssembler(object):
    """
    Builds a GlobalTileIndexField from tile-index tiles.

    Args:
        bounds: TileBounds of the map.
        lookup: Callable (x, y) -> TileIndexTile.  A KeyError,
                FileNotFoundError or None result marks a missing tile.
        dimensions: MapDimensions of the height field.  Computed from
                    *bounds* when omitted.
        tile_size: Tile-ids per tile side.
    """

    def __init__(self, bounds, lookup, dimensions=None,
                 tile_size=TILE_INDEX_TILE_SIZE):
        self.bounds = bounds
        self.lookup = lookup
        self.tile_size = tile_size
        self.dimensions = dimensions or MapDimensions.from_bounds(bounds)

    def assemble(self):
        """
        Stitch every tile of the bounding rectangle.

        Raises:
            MissingTileError: If a coordinate has no tile.
            UnexpectedTileDimensions: If a tile is not tile_size square.
        """
        field = GlobalTileIndexField(self.dimensions)
        size = self.tile_size

        for coord in self.bounds.coordinates():
            tile = fetch_tile(self.lookup, coord, "tile-index")
            block = tile_block(coord, tile.tile_ids, (tile.width, tile.height),
                               size, np.int32, "tile-index")
            x, y = coord
            field.write_block((y - self.bounds.y_min) * size,
                              (x - self.bounds.x_min) * size, block)
            log.debug("Stitched tile-index tile (%d, %d)", x, y)

        log.info("Assembled %dx%d tile-index field", field.width, field.height)
        return field


def assemble_tile_index_field(bounds, lookup, dimensions=None,
                              tile_size=TILE_INDEX_TILE_SIZE):
    """Convenience wrapper around TileIndexAssembler.assemble()."""
    return TileIndexAssembler(bounds, lookup, dimensions=dimensions,
                              tile_size=tile_size).assemble()
