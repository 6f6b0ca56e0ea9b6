"""
Stitches per-coordinate height tiles into one global elevation grid.

Each HeightTile holds 65x65 float samples.  Tile (x, y) is copied to the
block starting at column ``(x - x_min) * 65`` and row ``(y - y_min) * 65``
of a zero-initialised float32 grid sized by the padding rule in
tile_scanner.  The running elevation range is kept in an
ElevationExtremes accumulator that starts empty and is merged tile by
tile.
"""

import logging
import math

import numpy as np

from .grid import GlobalGrid, fetch_tile, tile_block
from .tile_scanner import HEIGHT_TILE_SIZE, MapDimensions

log = logging.getLogger(__name__)


class ElevationExtremes(object):
    """
    Optional (min, max) elevation accumulator.

    Empty until the first sample.  ``merge`` is associative and
    commutative, so partial results may be combined in any order.
    Non-finite samples are ignored.
    """

    def __init__(self, minimum=None, maximum=None):
        if (minimum is None) != (maximum is None):
            raise ValueError("minimum and maximum must both be set or unset")
        if minimum is not None and minimum > maximum:
            raise ValueError("minimum {} > maximum {}".format(minimum, maximum))
        self.has_value = minimum is not None
        self.minimum = minimum
        self.maximum = maximum

    @classmethod
    def empty(cls):
        return cls()

    @classmethod
    def from_samples(cls, samples):
        """Extremes of the finite values in *samples* (any array-like)."""
        values = np.asarray(samples, dtype=np.float64).ravel()
        values = values[np.isfinite(values)]
        if values.size == 0:
            return cls()
        return cls(float(values.min()), float(values.max()))

    def update(self, value):
        """Fold one sample in; returns self."""
        value = float(value)
        if not math.isfinite(value):
            return self
        if not self.has_value:
            self.minimum = value
            self.maximum = value
            self.has_value = True
        else:
            self.minimum = min(self.minimum, value)
            self.maximum = max(self.maximum, value)
        return self

    def merge(self, other):
        """Return the extremes covering both *self* and *other*."""
        if not other.has_value:
            return ElevationExtremes(self.minimum, self.maximum)
        if not self.has_value:
            return ElevationExtremes(other.minimum, other.maximum)
        return ElevationExtremes(min(self.minimum, other.minimum),
                                 max(self.maximum, other.maximum))

    @property
    def delta(self):
        if not self.has_value:
            return None
        return self.maximum - self.minimum

    def as_tuple(self):
        if not self.has_value:
            return None
        return (self.minimum, self.maximum)

    def __eq__(self, other):
        if not isinstance(other, ElevationExtremes):
            return NotImplemented
        return self.as_tuple() == other.as_tuple()

    def __repr__(self):
        if not self.has_value:
            return "ElevationExtremes(empty)"
        return "ElevationExtremes(min={}, max={})".format(
            self.minimum, self.maximum)


class GlobalHeightField(GlobalGrid):
    """Stitched float32 elevation grid, ``new_map_height`` rows."""

    def __init__(self, dimensions):
        super(GlobalHeightField, self).__init__(
            dimensions.new_map_width, dimensions.new_map_height,
            np.float32, fill=0.0)
        self.dimensions = dimensions


class HeightFieldAssembler(object):
    """
    Builds a GlobalHeightField from height tiles.

    Args:
        bounds: TileBounds of the map.
        lookup: Callable (x, y) -> HeightTile.  A KeyError,
                FileNotFoundError or None result marks a missing tile.
        tile_size: Samples per tile side.
    """

    def __init__(self, bounds, lookup, tile_size=HEIGHT_TILE_SIZE):
        self.bounds = bounds
        self.lookup = lookup
        self.tile_size = tile_size
        self.dimensions = MapDimensions.from_bounds(bounds, tile_size=tile_size)

    def assemble(self):
        """
        Stitch every tile of the bounding rectangle.

        Returns:
            tuple: (GlobalHeightField, ElevationExtremes)

        Raises:
            MissingTileError: If a coordinate has no tile.
            UnexpectedTileDimensions: If a tile is not tile_size square.
        """
        field = GlobalHeightField(self.dimensions)
        extremes = ElevationExtremes.empty()
        size = self.tile_size

        for coord in self.bounds.coordinates():
            tile = fetch_tile(self.lookup, coord, "height")
            block = tile_block(coord, tile.heights, (tile.width, tile.length),
                               size, np.float32, "height")
            x, y = coord
            field.write_block((y - self.bounds.y_min) * size,
                              (x - self.bounds.x_min) * size, block)
            extremes = extremes.merge(ElevationExtremes.from_samples(block))
            log.debug("Stitched height tile (%d, %d)", x, y)

        log.info("Assembled %dx%d height field, %r",
                 field.width, field.height, extremes)
        return field, extremes


def assemble_height_field(bounds, lookup, tile_size=HEIGHT_TILE_SIZE):
    """Convenience wrapper around HeightFieldAssembler.assemble()."""
    return HeightFieldAssembler(bounds, lookup, tile_size=tile_size).assemble()
