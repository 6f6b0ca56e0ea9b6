"""
Error taxonomy for map conversion.

Every error raised while converting a map directory derives from
MapConversionError.  Map conversion is atomic: any of these aborts the
whole run before an output file is written.
"""


class MapConversionError(Exception):
    """Base class for all map conversion failures."""


class MapDirectoryError(MapConversionError):
    """The map path does not exist or is not a directory."""

    def __init__(self, path):
        self.path = path
        super(MapDirectoryError, self).__init__(
            "Map path is not a directory: {}".format(path))


class NoTilesFoundError(MapConversionError):
    """The scanner found no height tile in the map directory."""

    def __init__(self, map_dir, extension):
        self.map_dir = map_dir
        self.extension = extension
        super(NoTilesFoundError, self).__init__(
            "No <X>_<Y>.{} tiles found in: {}".format(extension, map_dir))


class CoordinateParseError(MapConversionError):
    """A tile filename matched the pattern but its segments are not integers."""

    def __init__(self, filename):
        self.filename = filename
        super(CoordinateParseError, self).__init__(
            "Cannot parse tile coordinates from filename: {}".format(filename))


class MissingTileError(MapConversionError):
    """
    A coordinate inside the bounding rectangle has no tile.

    ``coordinate`` is the first offending coordinate in scan order,
    ``coordinates`` lists every missing coordinate when the gap check
    collected more than one.
    """

    def __init__(self, coordinate, coordinates=None, kind="height"):
        self.coordinate = coordinate
        self.coordinates = list(coordinates) if coordinates else [coordinate]
        self.kind = kind
        if len(self.coordinates) > 1:
            listed = ", ".join("({}, {})".format(x, y)
                               for x, y in self.coordinates)
            message = "Missing {} tiles at {} coordinates: {}".format(
                kind, len(self.coordinates), listed)
        else:
            message = "Missing {} tile at ({}, {})".format(
                kind, coordinate[0], coordinate[1])
        super(MissingTileError, self).__init__(message)


class UnexpectedTileDimensions(MapConversionError):
    """A tile's matrix shape disagrees with the fixed tile size."""

    def __init__(self, coordinate, expected, actual, kind="height"):
        self.coordinate = coordinate
        self.expected = expected
        self.actual = actual
        self.kind = kind
        super(UnexpectedTileDimensions, self).__init__(
            "Unexpected {} tile dimensions at ({}, {}). "
            "Expected {}x{}, got {}x{}".format(
                kind, coordinate[0], coordinate[1],
                expected[0], expected[1], actual[0], actual[1]))


class EmptyHeightFieldError(MapConversionError):
    """Rasterization was requested without a single elevation sample."""

    def __init__(self):
        super(EmptyHeightFieldError, self).__init__(
            "Cannot rasterize a height field without elevation samples")


class TextureIndexError(MapConversionError):
    """A combined layer index points outside the zone texture list."""

    def __init__(self, catalog_index, layer, value, texture_count):
        self.catalog_index = catalog_index
        self.layer = layer
        self.value = value
        self.texture_count = texture_count
        super(TextureIndexError, self).__init__(
            "Zone tile {} {} resolves to texture {} but the zone has {} "
            "textures".format(catalog_index, layer, value, texture_count))


class MissingZoneError(MapConversionError):
    """The map directory has no ``{mapname}.{zone-ext}`` zone record."""

    def __init__(self, map_dir, filename):
        self.map_dir = map_dir
        self.filename = filename
        super(MissingZoneError, self).__init__(
            "Zone file {} not found in: {}".format(filename, map_dir))


class TileReaderError(MapConversionError):
    """The tile reader could not be loaded or failed to read a record."""


class OutputWriteError(MapConversionError):
    """An output artifact could not be written."""
