"""
World Converter - stitches per-tile ROSE Online map files into whole-map
artifacts.

A map directory holds one height tile ({X}_{Y}.HIM) and one tile-index
tile ({X}_{Y}.TIL) per world coordinate plus a {mapname}.ZON zone
record.  The converter assembles the tiles into global grids and writes
a grayscale heightmap PNG, a zone JSON dump and a tilemap JSON file.

File parsing is delegated to a TileReader (see tile_reader.py).
"""

from .errors import (MapConversionError, MapDirectoryError, NoTilesFoundError,
                     CoordinateParseError, MissingTileError,
                     UnexpectedTileDimensions, EmptyHeightFieldError,
                     TextureIndexError, MissingZoneError, TileReaderError,
                     OutputWriteError)
from .records import (GridTileId, CatalogIndex, ZoneTileRotation, HeightTile,
                      TileIndexTile, ZoneTileDefinition, ZoneRecord)
from .tile_scanner import (TileBounds, MapDimensions, scan_tile_coordinates,
                           parse_tile_filename)
from .height_field import (ElevationExtremes, GlobalHeightField,
                           HeightFieldAssembler, assemble_height_field)
from .tile_index_field import (GlobalTileIndexField, TileIndexAssembler,
                               assemble_tile_index_field)
from .height_rasterizer import (FLAT_FIELD_PIXEL, normalize_heights,
                                rasterize_height_field)
from .zone_tilemap import TilemapTile, TilemapOutput, merge_zone_tilemap
from .tile_reader import TileReader, DictTileReader, load_reader
from .map_exporter import MapExporter, ExportResult, convert_map
