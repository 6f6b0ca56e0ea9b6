"""
Pluggable source of parsed per-tile records.

The converter never parses HIM/TIL/ZON binaries itself.  A TileReader
turns a file path into the in-memory records of world_converter.records;
bring one that wraps your format library and pass it to MapExporter, or
name it on the command line as ``package.module:ClassName``.
"""

import errno
import importlib
import logging
import os

from .errors import TileReaderError
from .records import HeightTile, TileIndexTile, ZoneRecord

log = logging.getLogger(__name__)

# Environment variable the command line reads the reader spec from.
READER_ENV_VAR = "WORLD_CONVERTER_READER"


class TileReader(object):
    """
    Interface of a tile reader.

    Each method receives the path of a file that exists in the map
    directory.  Raising FileNotFoundError marks the record as missing;
    any other failure should be raised as TileReaderError.
    """

    def read_height_tile(self, path):
        """Return the HeightTile stored at *path*."""
        raise NotImplementedError

    def read_tile_index_tile(self, path):
        """Return the TileIndexTile stored at *path*."""
        raise NotImplementedError

    def read_zone(self, path):
        """Return the ZoneRecord stored at *path*."""
        raise NotImplementedError


class DictTileReader(TileReader):
    """
    Serves records already held in memory, keyed by file name.

    Keys are compared case-insensitively against the base name of the
    requested path, so ``{"0_0.him": tile}`` answers ``/maps/x/0_0.HIM``.
    Values may be records or plain dicts/nested lists.
    """

    def __init__(self, height_tiles=None, tile_index_tiles=None, zones=None):
        self._height_tiles = self._normalise(height_tiles)
        self._tile_index_tiles = self._normalise(tile_index_tiles)
        self._zones = self._normalise(zones)

    @staticmethod
    def _normalise(mapping):
        return {k.lower(): v for k, v in (mapping or {}).items()}

    @staticmethod
    def _get(mapping, path):
        key = os.path.basename(path).lower()
        if key not in mapping:
            raise FileNotFoundError(
                errno.ENOENT, "No record for {}".format(key), path)
        return mapping[key]

    @staticmethod
    def _build(factory, value, path):
        try:
            return factory(value)
        except (KeyError, TypeError, ValueError, IndexError) as e:
            raise TileReaderError("Malformed record for {}: {!r}".format(
                os.path.basename(path), e))

    def read_height_tile(self, path):
        value = self._get(self._height_tiles, path)
        if isinstance(value, HeightTile):
            return value
        return self._build(HeightTile, value, path)

    def read_tile_index_tile(self, path):
        value = self._get(self._tile_index_tiles, path)
        if isinstance(value, TileIndexTile):
            return value
        return self._build(TileIndexTile, value, path)

    def read_zone(self, path):
        value = self._get(self._zones, path)
        if isinstance(value, ZoneRecord):
            return value
        return self._build(ZoneRecord.from_dict, value, path)


def load_reader(spec):
    """
    Import and instantiate a reader named ``package.module:ClassName``.

    Raises:
        TileReaderError: If *spec* is malformed, cannot be imported or
            cannot be instantiated.
    """
    if not spec or ':' not in spec:
        raise TileReaderError(
            "Invalid reader spec {!r}. "
            "Expected format: package.module:ClassName".format(spec))

    module_name, attr = spec.split(':', 1)
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise TileReaderError(
            "Cannot import reader module {}: {}".format(module_name, e))

    factory = getattr(module, attr, None)
    if factory is None:
        raise TileReaderError(
            "Reader module {} has no attribute {}".format(module_name, attr))

    try:
        reader = factory()
    except Exception as e:
        raise TileReaderError(
            "Cannot instantiate reader {}: {}".format(spec, e))
    for method in ('read_height_tile', 'read_tile_index_tile', 'read_zone'):
        if not callable(getattr(reader, method, None)):
            raise TileReaderError(
                "Reader {} does not implement {}()".format(spec, method))

    log.debug("Loaded tile reader %s", spec)
    return reader
