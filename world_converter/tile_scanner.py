"""
Tile coordinate discovery for a map directory.

Height tiles are stored one per world coordinate as ``{X}_{Y}.HIM``.  The
scanner collects these coordinates from file names only (no file is
opened) and derives the bounding rectangle and the padded global map
dimensions from them.

Padding rule:
    map_width     = (x_max - x_min + 1) * 65
    new_map_width = ceil(map_width / 4) * 4 + 1
    tiles_x       = new_map_width // 4

so a single tile gives a 69x69 heightmap and a 17x17 tile-index grid.
"""

import logging
import os
import re

from .errors import CoordinateParseError, MapDirectoryError, NoTilesFoundError

log = logging.getLogger(__name__)

HEIGHT_TILE_EXTENSION = "him"
TILE_INDEX_EXTENSION = "til"
ZONE_EXTENSION = "zon"

# Samples per height tile side.
HEIGHT_TILE_SIZE = 65

# Tile-index entries per tile side.
TILE_INDEX_TILE_SIZE = 16

# Global map dimensions are padded to a multiple of this plus one shared
# edge row/column, and one tile-index cell covers this many samples.
TILE_ALIGNMENT = 4


def _tile_name_regex(extension):
    return re.compile(r'^([^_.]+)_([^_.]+)\.{}$'.format(re.escape(extension)),
                      re.IGNORECASE)


def parse_tile_filename(filename, extension=HEIGHT_TILE_EXTENSION):
    """
    Parse ``{X}_{Y}.{extension}`` into a coordinate.

    Returns:
        tuple: (x, y), or None if *filename* is not a tile file name.

    Raises:
        CoordinateParseError: If the name has the tile shape but X or Y
            is not a decimal integer.
    """
    match = _tile_name_regex(extension).match(filename)
    if not match:
        return None
    try:
        return (int(match.group(1)), int(match.group(2)))
    except ValueError:
        raise CoordinateParseError(filename)


class TileBounds(object):
    """Inclusive bounding rectangle of a set of tile coordinates."""

    def __init__(self, x_min, x_max, y_min, y_max):
        if x_min > x_max or y_min > y_max:
            raise ValueError("Empty tile bounds: x {}..{}, y {}..{}".format(
                x_min, x_max, y_min, y_max))
        self.x_min = x_min
        self.x_max = x_max
        self.y_min = y_min
        self.y_max = y_max

    @classmethod
    def from_coordinates(cls, coords):
        coords = list(coords)
        if not coords:
            raise ValueError("Cannot compute bounds of an empty coordinate set")
        xs = [x for x, _ in coords]
        ys = [y for _, y in coords]
        return cls(min(xs), max(xs), min(ys), max(ys))

    @property
    def span_x(self):
        return self.x_max - self.x_min + 1

    @property
    def span_y(self):
        return self.y_max - self.y_min + 1

    def coordinates(self):
        """Yield every coordinate of the rectangle, y outer and x inner."""
        for y in range(self.y_min, self.y_max + 1):
            for x in range(self.x_min, self.x_max + 1):
                yield (x, y)

    def contains(self, coord):
        x, y = coord
        return self.x_min <= x <= self.x_max and self.y_min <= y <= self.y_max

    def missing(self, coords):
        """Return rectangle coordinates absent from *coords*, in scan order."""
        present = set(coords)
        return [c for c in self.coordinates() if c not in present]

    def __eq__(self, other):
        if not isinstance(other, TileBounds):
            return NotImplemented
        return ((self.x_min, self.x_max, self.y_min, self.y_max) ==
                (other.x_min, other.x_max, other.y_min, other.y_max))

    def __repr__(self):
        return "TileBounds(x={}..{}, y={}..{})".format(
            self.x_min, self.x_max, self.y_min, self.y_max)


def _align(length, alignment):
    # Integer form of ceil(length / alignment) * alignment + 1
    return -(-length // alignment) * alignment + 1


class MapDimensions(object):
    """Global heightmap and tile-index grid sizes for a bounding rectangle."""

    def __init__(self, map_width, map_height, alignment=TILE_ALIGNMENT):
        self.map_width = map_width
        self.map_height = map_height
        self.new_map_width = _align(map_width, alignment)
        self.new_map_height = _align(map_height, alignment)
        self.tiles_x = self.new_map_width // alignment
        self.tiles_y = self.new_map_height // alignment

    @classmethod
    def from_bounds(cls, bounds, tile_size=HEIGHT_TILE_SIZE,
                    alignment=TILE_ALIGNMENT):
        return cls(bounds.span_x * tile_size, bounds.span_y * tile_size,
                   alignment=alignment)

    def __repr__(self):
        return "MapDimensions({}x{}, tiles {}x{})".format(
            self.new_map_width, self.new_map_height,
            self.tiles_x, self.tiles_y)


class TileScan(object):
    """Result of scanning a map directory."""

    def __init__(self, map_dir, extension, files):
        self.map_dir = map_dir
        self.extension = extension
        # (x, y) -> file name as found on disk
        self.files = files
        self.bounds = TileBounds.from_coordinates(files.keys())

    @property
    def coordinates(self):
        return sorted(self.files, key=lambda c: (c[1], c[0]))

    def path(self, coord):
        """Absolute path of the tile at *coord*, or None if not present."""
        filename = self.files.get(coord)
        if filename is None:
            return None
        return os.path.join(self.map_dir, filename)

    def missing(self):
        return self.bounds.missing(self.files)

    def __len__(self):
        return len(self.files)


def list_tile_files(map_dir, extension):
    """
    Map every ``{X}_{Y}.{extension}`` file in *map_dir* to its coordinate.

    Returns:
        dict: (x, y) -> file name.

    Raises:
        MapDirectoryError: If *map_dir* is not a directory.
        CoordinateParseError: On a malformed tile file name.
    """
    if not os.path.isdir(map_dir):
        raise MapDirectoryError(map_dir)

    files = {}
    for filename in sorted(os.listdir(map_dir)):
        if not os.path.isfile(os.path.join(map_dir, filename)):
            continue
        coord = parse_tile_filename(filename, extension)
        if coord is None:
            continue
        if coord in files:
            log.warning("Duplicate tile (%d, %d): %s and %s, using %s",
                        coord[0], coord[1], files[coord], filename,
                        files[coord])
            continue
        files[coord] = filename
    return files


def scan_tile_coordinates(map_dir, extension=HEIGHT_TILE_EXTENSION):
    """
    Discover which tile coordinates exist in *map_dir*.

    Args:
        map_dir: Map directory.
        extension: Tile file extension, matched case-insensitively.

    Returns:
        TileScan: Found tiles and their bounding rectangle.

    Raises:
        MapDirectoryError: If *map_dir* is not a directory.
        CoordinateParseError: On a malformed tile file name.
        NoTilesFoundError: If no tile is found.
    """
    files = list_tile_files(map_dir, extension)
    if not files:
        raise NoTilesFoundError(map_dir, extension)

    scan = TileScan(map_dir, extension, files)
    log.info("Found %d .%s tiles in %s, bounds %r",
             len(scan), extension, map_dir, scan.bounds)
    return scan
