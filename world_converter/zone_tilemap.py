"""
Merges the zone tile catalog with the stitched tile-index grid.

Output schema (``{mapname}_tilemap.json``):

    textures  - zone texture paths, in zone order
    tiles     - one {layer1, layer2, rotation} per zone catalog entry,
                in catalog order, with layerN = zone layerN + offsetN
    tilemap   - the stitched grid, tiles_y rows of tiles_x tile-ids

Values in ``tilemap`` are positions in ``tiles``; consumers join the two
arrays by position.  The layer sums are not checked against the texture
list by default; out-of-range results are passed through and logged,
or raised as TextureIndexError in strict mode.
"""

import logging

from .errors import TextureIndexError
from .records import CatalogIndex

log = logging.getLogger(__name__)


class TilemapTile(object):
    """A catalog entry with its offsets folded into the layer indices."""

    def __init__(self, layer1, layer2, rotation):
        self.layer1 = layer1
        self.layer2 = layer2
        self.rotation = rotation

    @classmethod
    def from_definition(cls, definition):
        return cls(definition.layer1 + definition.offset1,
                   definition.layer2 + definition.offset2,
                   definition.rotation)

    def to_dict(self):
        return {
            'layer1': self.layer1,
            'layer2': self.layer2,
            'rotation': self.rotation.label,
        }

    def __repr__(self):
        return "TilemapTile({}, {}, {})".format(
            self.layer1, self.layer2, self.rotation.label)


class TilemapOutput(object):
    """Textures, resolved tile catalog and tile-id grid of one map."""

    def __init__(self, textures, tiles, tilemap):
        self.textures = textures
        self.tiles = tiles
        self.tilemap = tilemap

    def to_dict(self):
        return {
            'textures': list(self.textures),
            'tiles': [t.to_dict() for t in self.tiles],
            'tilemap': self.tilemap,
        }


def find_texture_range_errors(tiles, texture_count):
    """
    List combined layer indices outside ``0 .. texture_count - 1``.

    Returns:
        list: (CatalogIndex, "layer1" | "layer2", value) tuples.
    """
    problems = []
    for i, tile in enumerate(tiles):
        for layer in ('layer1', 'layer2'):
            value = getattr(tile, layer)
            if not 0 <= value < texture_count:
                problems.append((CatalogIndex(i), layer, value))
    return problems


def find_unknown_tile_ids(tile_index_field, catalog_size):
    """Return the distinct grid tile-ids that index no catalog entry."""
    return [t for t in tile_index_field.distinct_tile_ids()
            if not 0 <= t < catalog_size]


def merge_zone_tilemap(zone, tile_index_field, strict=False):
    """
    Build the tilemap output for *zone* and its stitched tile-index grid.

    Args:
        zone: ZoneRecord with textures and the tile catalog.
        tile_index_field: GlobalTileIndexField of the map.
        strict: Raise instead of warn on a layer index outside the
                texture list.

    Returns:
        TilemapOutput

    Raises:
        TextureIndexError: In strict mode, on the first layer index
            outside the texture list.
    """
    tiles = [TilemapTile.from_definition(d) for d in zone.tiles]

    for index, layer, value in find_texture_range_errors(
            tiles, len(zone.textures)):
        if strict:
            raise TextureIndexError(index, layer, value, len(zone.textures))
        log.warning("Zone tile %d %s resolves to texture %d, outside the "
                    "%d zone textures", index, layer, value,
                    len(zone.textures))

    unknown = find_unknown_tile_ids(tile_index_field, len(tiles))
    if unknown:
        log.warning("Tilemap references %d tile-ids missing from the %d-entry "
                    "zone catalog: %s", len(unknown), len(tiles),
                    ", ".join(str(t) for t in unknown))

    log.info("Merged %d zone tiles, %d textures", len(tiles),
             len(zone.textures))
    return TilemapOutput(zone.textures, tiles, tile_index_field.to_rows())
