#!/usr/bin/env python
"""
ROSE Online map converter.

Stitches a map directory (per-tile HIM + TIL files and a ZON zone record)
into a grayscale heightmap PNG, a zone JSON dump and a tilemap JSON file.

Tile files are parsed by a reader class, named as package.module:ClassName
via --reader or the WORLD_CONVERTER_READER environment variable.

Usage:
  python map_converter.py map <map_dir> [-o out_dir] [--reader SPEC]
  python map_converter.py map <map_dir> --strict-textures -v
"""

import argparse
import logging
import os
import sys

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from world_converter.errors import MapConversionError, TileReaderError
from world_converter.map_exporter import MapExporter
from world_converter.tile_reader import READER_ENV_VAR, load_reader

_DEFAULT_OUT_DIR = "./out/"


def convert_map_command(args):
    """Run the ``map`` subcommand.  Returns the process exit status."""
    reader_spec = args.reader or os.environ.get(READER_ENV_VAR)
    if not reader_spec:
        raise TileReaderError(
            "No tile reader configured. Pass --reader package.module:Class "
            "or set {}".format(READER_ENV_VAR))

    exporter = MapExporter(load_reader(reader_spec), args.out_dir,
                           strict_textures=args.strict_textures)
    result = exporter.export_map(args.map_dir)

    print("Saved heightmap to: {}".format(result.heightmap_path))
    print("Dumped zone file to: {}".format(result.zone_path))
    print("Saved tilemap file to: {}".format(result.tilemap_path))
    print("{} tiles, {}x{} heightmap, {}x{} tilemap".format(
        result.tile_count,
        result.dimensions.new_map_width, result.dimensions.new_map_height,
        result.dimensions.tiles_x, result.dimensions.tiles_y))
    return 0


def build_parser():
    parser = argparse.ArgumentParser(
        description='Convert ROSE Online map files')
    subparsers = parser.add_subparsers(dest='command')

    # -- map ------------------------------------------------------------
    p_map = subparsers.add_parser('map', help='Convert ROSE map files')
    p_map.add_argument('map_dir',
                       help='Map directory containing zon, him and til files')
    p_map.add_argument('-o', '--out-dir', default=_DEFAULT_OUT_DIR,
                       help='Directory to output converted files '
                            '(default: {})'.format(_DEFAULT_OUT_DIR))
    p_map.add_argument('-v', '--verbose', action='store_true',
                       help='Log per-tile progress')
    p_map.add_argument('--reader',
                       help='Tile reader as package.module:ClassName '
                            '(default: ${})'.format(READER_ENV_VAR))
    p_map.add_argument('--strict-textures', action='store_true',
                       help='Fail when a zone tile layer points outside the '
                            'texture list')
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command != 'map':
        parser.print_help()
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(levelname)s %(name)s: %(message)s')

    try:
        return convert_map_command(args)
    except MapConversionError as e:
        print("Error occurred converting {}: {}".format(args.map_dir, e),
              file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
