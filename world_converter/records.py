"""
In-memory records consumed by the map conversion pipeline.

Tile readers produce these from the per-tile game files:

    HeightTile      - 65x65 float elevation samples of one world tile
    TileIndexTile   - 16x16 tile-ids of one world tile
    ZoneRecord      - zone texture list + tile definition catalog

Values in a TileIndexTile are GridTileIds.  They index the zone catalog,
whose positions are CatalogIndex values; the two are numerically equal
but kept as distinct types so they are not mixed up with final texture
layer indices.
"""

from enum import Enum


class GridTileId(int):
    """A tile-id as stored in the tile-index grid."""

    def as_catalog_index(self):
        return CatalogIndex(self)


class CatalogIndex(int):
    """A position in the zone tile definition catalog."""


class ZoneTileRotation(Enum):
    """Orientation applied to a rendered zone tile."""
    Unknown = 0
    None_ = 1
    FlipHorizontal = 2
    FlipVertical = 3
    Flip = 4
    Clockwise90 = 5
    CounterClockwise90 = 6

    @property
    def label(self):
        """Variant name as written to JSON ("None" for the identity)."""
        return "None" if self is ZoneTileRotation.None_ else self.name

    @classmethod
    def from_value(cls, value):
        """
        Coerce *value* into a rotation.

        Accepts a ZoneTileRotation, its integer wire value, or its label.

        Raises:
            ValueError: If *value* names no rotation.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, int):
            return cls(value)
        for member in cls:
            if member.label.lower() == str(value).lower():
                return member
        raise ValueError("Unknown zone tile rotation: {!r}".format(value))


def _shape(rows):
    """Return (width, height) of a row-major nested list."""
    height = len(rows)
    width = len(rows[0]) if height else 0
    return width, height


class HeightTile(object):
    """
    Elevation samples of one world tile.

    Args:
        heights: Row-major nested sequence, ``heights[row][col]``.
        width: Declared column count.  Defaults to the data's width.
        length: Declared row count.  Defaults to the data's height.
    """

    def __init__(self, heights, width=None, length=None):
        self.heights = heights
        data_width, data_length = _shape(heights)
        self.width = data_width if width is None else width
        self.length = data_length if length is None else length

    def __repr__(self):
        return "HeightTile({}x{})".format(self.width, self.length)


class TileIndexTile(object):
    """
    Tile-ids of one world tile.

    Args:
        tile_ids: Row-major nested sequence, ``tile_ids[row][col]``.
        width: Declared column count.  Defaults to the data's width.
        height: Declared row count.  Defaults to the data's height.
    """

    def __init__(self, tile_ids, width=None, height=None):
        self.tile_ids = tile_ids
        data_width, data_height = _shape(tile_ids)
        self.width = data_width if width is None else width
        self.height = data_height if height is None else height

    def __repr__(self):
        return "TileIndexTile({}x{})".format(self.width, self.height)


class ZoneTileDefinition(object):
    """One entry of the zone tile catalog."""

    def __init__(self, layer1, layer2, offset1, offset2,
                 rotation=ZoneTileRotation.None_, extra=None):
        self.layer1 = int(layer1)
        self.layer2 = int(layer2)
        self.offset1 = int(offset1)
        self.offset2 = int(offset2)
        self.rotation = ZoneTileRotation.from_value(rotation)
        # Reader-specific fields (blending, tile type, ...) kept for the dump.
        self.extra = dict(extra) if extra else {}

    @classmethod
    def from_dict(cls, data):
        known = ('layer1', 'layer2', 'offset1', 'offset2', 'rotation')
        extra = {k: v for k, v in data.items() if k not in known}
        return cls(data['layer1'], data['layer2'],
                   data.get('offset1', 0), data.get('offset2', 0),
                   data.get('rotation', ZoneTileRotation.None_),
                   extra=extra)

    def to_dict(self):
        result = {
            'layer1': self.layer1,
            'layer2': self.layer2,
            'offset1': self.offset1,
            'offset2': self.offset2,
            'rotation': self.rotation.label,
        }
        result.update(self.extra)
        return result

    def __repr__(self):
        return "ZoneTileDefinition({}+{}, {}+{}, {})".format(
            self.layer1, self.offset1, self.layer2, self.offset2,
            self.rotation.label)


class ZoneRecord(object):
    """
    Zone-level metadata of a map.

    Args:
        textures: Ordered list of texture path strings.
        tiles: Ordered list of ZoneTileDefinition (or dicts).
        fields: Any other zone-level fields.  They are only carried
                through to the zone JSON dump.
    """

    def __init__(self, textures, tiles, fields=None):
        self.textures = list(textures)
        self.tiles = [t if isinstance(t, ZoneTileDefinition)
                      else ZoneTileDefinition.from_dict(t) for t in tiles]
        self.fields = dict(fields) if fields else {}

    @classmethod
    def from_dict(cls, data):
        fields = {k: v for k, v in data.items()
                  if k not in ('textures', 'tiles')}
        return cls(data.get('textures', []), data.get('tiles', []),
                   fields=fields)

    def catalog_entry(self, index):
        return self.tiles[CatalogIndex(index)]

    def to_dict(self):
        """Return the full record as a JSON-serialisable dict."""
        result = dict(self.fields)
        result['textures'] = list(self.textures)
        result['tiles'] = [t.to_dict() for t in self.tiles]
        return result
