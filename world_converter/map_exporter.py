"""
Map directory exporter.

Converts one map directory into three files:

    {out_dir}/{mapname}.png           - stitched 8-bit grayscale heightmap
    {out_dir}/{mapname}.json          - pretty-printed zone record
    {out_dir}/{mapname}_tilemap.json  - textures, resolved tiles, tile grid

where {mapname} is the base name of the map directory.  Conversion is
all-or-nothing: every artifact is rendered in memory and written to a
temporary file first, and the three files are only moved into place once
all of them were written.  Any error leaves the output directory without
new artifacts.
"""

import io
import json
import logging
import os
import tempfile

from .errors import (MapConversionError, MissingTileError, MissingZoneError,
                     OutputWriteError, TileReaderError)
from .height_field import HeightFieldAssembler
from .height_rasterizer import FLAT_FIELD_PIXEL, rasterize_height_field
from .tile_index_field import TileIndexAssembler
from .tile_scanner import (HEIGHT_TILE_EXTENSION, TILE_INDEX_EXTENSION,
                           ZONE_EXTENSION, list_tile_files,
                           scan_tile_coordinates)
from .zone_tilemap import merge_zone_tilemap

log = logging.getLogger(__name__)


def dump_json(data, indent=2):
    """Serialize *data* the way every exported JSON file is written."""
    return json.dumps(data, indent=indent, ensure_ascii=False) + "\n"


def map_name_from_dir(map_dir):
    """Base name of *map_dir*, ignoring a trailing separator."""
    return os.path.basename(os.path.normpath(os.path.abspath(map_dir)))


class ExportResult(object):
    """Paths and figures of a finished map export."""

    def __init__(self, map_name, heightmap_path, zone_path, tilemap_path,
                 dimensions, extremes, tile_count):
        self.map_name = map_name
        self.heightmap_path = heightmap_path
        self.zone_path = zone_path
        self.tilemap_path = tilemap_path
        self.dimensions = dimensions
        self.extremes = extremes
        self.tile_count = tile_count

    def __repr__(self):
        return "ExportResult({!r}, {} tiles, {!r})".format(
            self.map_name, self.tile_count, self.dimensions)


class MapArtifacts(object):
    """In-memory result of converting a map, before anything is written."""

    def __init__(self, map_name, scan, height_field, extremes,
                 tile_index_field, zone, tilemap, heightmap_image):
        self.map_name = map_name
        self.scan = scan
        self.height_field = height_field
        self.extremes = extremes
        self.tile_index_field = tile_index_field
        self.zone = zone
        self.tilemap = tilemap
        self.heightmap_image = heightmap_image

    def render(self):
        """
        Encode the three output files.

        Returns:
            list: (file name, bytes) pairs in write order.
        """
        png = io.BytesIO()
        self.heightmap_image.save(png, 'PNG')
        return [
            ("{}.png".format(self.map_name), png.getvalue()),
            ("{}.json".format(self.map_name),
             dump_json(self.zone.to_dict()).encode('utf-8')),
            ("{}_tilemap.json".format(self.map_name),
             dump_json(self.tilemap.to_dict()).encode('utf-8')),
        ]


class MapExporter(object):
    """
    Converts map directories into heightmap, zone and tilemap files.

    Args:
        reader: TileReader producing HeightTile, TileIndexTile and
                ZoneRecord instances from file paths.
        output_dir: Directory the artifacts are written to.
        height_extension: Height tile extension (case-insensitive).
        tile_index_extension: Tile-index tile extension.
        zone_extension: Zone record extension.
        strict_textures: Fail on layer indices outside the texture list
                         instead of logging a warning.
        flat_value: Pixel value of a perfectly flat heightmap.
    """

    def __init__(self, reader, output_dir="out",
                 height_extension=HEIGHT_TILE_EXTENSION,
                 tile_index_extension=TILE_INDEX_EXTENSION,
                 zone_extension=ZONE_EXTENSION,
                 strict_textures=False, flat_value=FLAT_FIELD_PIXEL):
        self.reader = reader
        self.output_dir = output_dir
        self.height_extension = height_extension
        self.tile_index_extension = tile_index_extension
        self.zone_extension = zone_extension
        self.strict_textures = strict_textures
        self.flat_value = flat_value

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def export_map(self, map_dir):
        """
        Convert *map_dir* and write its three artifacts.

        Returns:
            ExportResult

        Raises:
            MapConversionError: On any failure.  No artifact is written.
        """
        log.info("Loading map from: %s", map_dir)
        artifacts = self.build(map_dir)
        paths = self._write_all(artifacts.render())

        result = ExportResult(
            artifacts.map_name, paths[0], paths[1], paths[2],
            artifacts.height_field.dimensions, artifacts.extremes,
            len(artifacts.scan))
        log.info("Map export complete: %r", result)
        return result

    def build(self, map_dir):
        """
        Run the conversion pipeline in memory.

        Returns:
            MapArtifacts

        Raises:
            MapConversionError: On any failure.
        """
        map_name = map_name_from_dir(map_dir)
        scan = scan_tile_coordinates(map_dir, self.height_extension)
        bounds = scan.bounds

        missing = scan.missing()
        if missing:
            raise MissingTileError(missing[0], missing, kind="height")

        index_files = list_tile_files(map_dir, self.tile_index_extension)
        missing = bounds.missing(index_files)
        if missing:
            raise MissingTileError(missing[0], missing, kind="tile-index")
        outside = [c for c in index_files if not bounds.contains(c)]
        if outside:
            log.warning("Ignoring %d .%s tiles outside the height tile "
                        "bounds %r", len(outside), self.tile_index_extension,
                        bounds)

        height_field, extremes = HeightFieldAssembler(
            bounds, self._lookup(map_dir, scan.files,
                                 self.reader.read_height_tile)).assemble()

        tile_index_field = TileIndexAssembler(
            bounds, self._lookup(map_dir, index_files,
                                 self.reader.read_tile_index_tile),
            dimensions=height_field.dimensions).assemble()

        zone = self._read_zone(map_dir, map_name)

        heightmap_image = rasterize_height_field(
            height_field, extremes, flat_value=self.flat_value)
        tilemap = merge_zone_tilemap(zone, tile_index_field,
                                     strict=self.strict_textures)

        return MapArtifacts(map_name, scan, height_field, extremes,
                            tile_index_field, zone, tilemap, heightmap_image)

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    @staticmethod
    def _read(read, path):
        """
        Call a reader method.

        FileNotFoundError marks a missing record and our own errors pass
        through; anything else becomes a TileReaderError.
        """
        try:
            return read(path)
        except (FileNotFoundError, MapConversionError):
            raise
        except Exception as e:
            raise TileReaderError("Failed to read {}: {}".format(path, e))

    def _lookup(self, map_dir, files, read):
        """Build a (x, y) -> record lookup over *files*."""
        def lookup(coord):
            filename = files[coord]
            return self._read(read, os.path.join(map_dir, filename))
        return lookup

    def _read_zone(self, map_dir, map_name):
        wanted = "{}.{}".format(map_name, self.zone_extension).lower()
        for filename in sorted(os.listdir(map_dir)):
            if filename.lower() == wanted:
                path = os.path.join(map_dir, filename)
                try:
                    zone = self._read(self.reader.read_zone, path)
                except FileNotFoundError:
                    raise MissingZoneError(map_dir, filename)
                log.info("Loaded zone %s: %d textures, %d tiles", filename,
                         len(zone.textures), len(zone.tiles))
                return zone
        raise MissingZoneError(
            map_dir, "{}.{}".format(map_name, self.zone_extension.upper()))

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def _write_all(self, files):
        """
        Write every (name, data) pair, then move them into place together.

        Existing artifacts are set aside as ``.bak`` files while the new
        ones are moved in.  If any move fails, the moved files are removed
        and the previous artifacts restored.

        Returns:
            list: Final paths, in input order.

        Raises:
            OutputWriteError: If the output directory or a file cannot be
                written.  No new artifact is left behind.
        """
        try:
            os.makedirs(self.output_dir, exist_ok=True)
        except OSError as e:
            raise OutputWriteError(
                "Error creating output directory {}: {}".format(
                    self.output_dir, e))

        targets = [os.path.join(self.output_dir, name) for name, _ in files]
        for final_path in targets:
            if os.path.isdir(final_path):
                raise OutputWriteError(
                    "Cannot write {}: path is a directory".format(final_path))

        staged = []
        try:
            for (name, data), final_path in zip(files, targets):
                fd, tmp_path = tempfile.mkstemp(
                    prefix=".{}.".format(name), suffix=".tmp",
                    dir=self.output_dir)
                staged.append((tmp_path, final_path))
                with os.fdopen(fd, 'wb') as f:
                    f.write(data)
        except OSError as e:
            _remove_files(tmp_path for tmp_path, _ in staged)
            raise OutputWriteError(
                "Failed to write map artifacts to {}: {}".format(
                    self.output_dir, e))

        # (final path, backup path) of artifacts from an earlier run
        backups = []
        placed = []
        try:
            for tmp_path, final_path in staged:
                if os.path.lexists(final_path):
                    backup_path = final_path + ".bak"
                    os.replace(final_path, backup_path)
                    backups.append((final_path, backup_path))
                os.replace(tmp_path, final_path)
                placed.append(final_path)
        except OSError as e:
            _remove_files(placed)
            for final_path, backup_path in backups:
                try:
                    os.replace(backup_path, final_path)
                except OSError as restore_error:
                    log.error("Could not restore %s from %s: %s", final_path,
                              backup_path, restore_error)
            _remove_files(tmp_path for tmp_path, _ in staged)
            raise OutputWriteError(
                "Failed to move map artifacts into {}: {}".format(
                    self.output_dir, e))

        _remove_files(backup_path for _, backup_path in backups)
        for final_path in placed:
            log.info("Saved %s", final_path)
        return placed


def _remove_files(paths):
    """Delete *paths* that exist, logging any that cannot be removed."""
    for path in paths:
        if not os.path.lexists(path):
            continue
        try:
            os.remove(path)
        except OSError as e:
            log.error("Could not remove %s: %s", path, e)


def convert_map(map_dir, output_dir, reader, **kwargs):
    """
    Convert one map directory.  See MapExporter for keyword arguments.

    Returns:
        ExportResult
    """
    return MapExporter(reader, output_dir, **kwargs).export_map(map_dir)
