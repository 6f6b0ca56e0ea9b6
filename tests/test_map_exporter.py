"""
End-to-end tests for map export and the ``map`` command line.

Tests:
  MapExporter: three artifacts, file names, image size, JSON schema
  Atomicity: no artifact on bad tile dimensions, gaps, missing zone,
             missing TIL tiles, malformed records, blocked targets
  Writing: previous artifacts restored when a move fails
  load_reader: spec parsing and errors
  tools/map_converter.py: exit codes and output

Map directories are built from empty placeholder files; record contents
come from in-memory readers.
"""

import errno
import io
import json
import os
import sys
import shutil
import tempfile
import traceback
from contextlib import redirect_stderr
from unittest import mock

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
TESTS_DIR = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, PROJECT_ROOT)
sys.path.insert(0, TESTS_DIR)

import numpy as np
from PIL import Image

from world_converter.errors import (MissingTileError, MissingZoneError,
                                    OutputWriteError, TileReaderError,
                                    UnexpectedTileDimensions)
from world_converter.map_exporter import MapExporter, convert_map
from world_converter.records import HeightTile
from world_converter.tile_reader import DictTileReader, load_reader

from synthetic_reader import SyntheticTileReader, synthetic_zone

_READER_SPEC = "synthetic_reader:SyntheticTileReader"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_PASSED = 0
_FAILED = 0
_ERRORS = []


def _test(name, fn):
    """Run a test function, track pass/fail."""
    global _PASSED, _FAILED
    try:
        fn()
        _PASSED += 1
        print("  PASS  {}".format(name))
    except Exception as e:
        _FAILED += 1
        _ERRORS.append((name, e))
        print("  FAIL  {} -- {}".format(name, e))
        traceback.print_exc()


def _make_map(root, name, coords, zone=True, til=True):
    """Create a map directory of empty tile files."""
    map_dir = os.path.join(root, name)
    os.makedirs(map_dir)
    names = []
    for x, y in coords:
        names.append("{}_{}.HIM".format(x, y))
        if til:
            names.append("{}_{}.TIL".format(x, y))
    if zone:
        names.append("{}.ZON".format(name))
    for filename in names:
        with open(os.path.join(map_dir, filename), 'wb'):
            pass
    return map_dir


_2X2 = [(31, 30), (32, 30), (31, 31), (32, 31)]


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------

def test_export_writes_three_artifacts():
    root = tempfile.mkdtemp(prefix="export_")
    try:
        map_dir = _make_map(root, "JDT01", _2X2)
        out_dir = os.path.join(root, "out")

        result = convert_map(map_dir, out_dir, SyntheticTileReader())

        assert sorted(os.listdir(out_dir)) == [
            "JDT01.json", "JDT01.png", "JDT01_tilemap.json"], \
            os.listdir(out_dir)
        assert result.map_name == "JDT01"
        assert result.tile_count == 4
        assert result.heightmap_path == os.path.join(out_dir, "JDT01.png")
        # heights: 31*10+30 = 340 .. 32*10+31 = 351
        assert result.extremes.as_tuple() == (340.0, 351.0)

        with Image.open(result.heightmap_path) as img:
            assert img.mode == 'L', img.mode
            assert img.size == (133, 133), img.size
            assert img.getpixel((0, 0)) == 0        # tile (31, 30)
            assert img.getpixel((70, 70)) == 255    # tile (32, 31)

        with open(result.zone_path, 'r', encoding='utf-8') as f:
            zone_text = f.read()
        assert zone_text.startswith("{\n  "), "zone dump not pretty-printed"
        zone_data = json.loads(zone_text)
        assert zone_data == synthetic_zone().to_dict()
        assert zone_data["grid_size"] == 250.0

        with open(result.tilemap_path, 'r', encoding='utf-8') as f:
            tilemap = json.load(f)
        assert sorted(tilemap.keys()) == ["textures", "tiles", "tilemap"]
        assert len(tilemap["tiles"]) == 3
        assert tilemap["tiles"][1] == {"layer1": 1, "layer2": 1,
                                       "rotation": "Clockwise90"}
        assert len(tilemap["tilemap"]) == 33
        assert all(len(row) == 33 for row in tilemap["tilemap"])
        # (31 + 30) % 3 top-left, (32 + 31) % 3 bottom-right
        assert tilemap["tilemap"][0][0] == 1
        assert tilemap["tilemap"][16][16] == 0
    finally:
        shutil.rmtree(root)


def test_export_tilemap_blocks():
    root = tempfile.mkdtemp(prefix="export_")
    try:
        map_dir = _make_map(root, "JDT01", _2X2)
        artifacts = MapExporter(SyntheticTileReader()).build(map_dir)
        rows = artifacts.tilemap.tilemap
        assert rows[0][0] == (31 + 30) % 3
        assert rows[0][16] == (32 + 30) % 3
        assert rows[16][0] == (31 + 31) % 3
        assert rows[31][31] == (32 + 31) % 3
        assert rows[32][32] == 0
    finally:
        shutil.rmtree(root)


def test_export_single_tile_lowercase():
    root = tempfile.mkdtemp(prefix="export_")
    try:
        map_dir = os.path.join(root, "Training")
        os.makedirs(map_dir)
        for filename in ("0_0.him", "0_0.til", "training.zon"):
            with open(os.path.join(map_dir, filename), 'wb'):
                pass
        out_dir = os.path.join(root, "out")

        result = MapExporter(SyntheticTileReader(), out_dir).export_map(
            map_dir + os.sep)

        assert result.map_name == "Training"
        assert (result.dimensions.new_map_width,
                result.dimensions.tiles_x) == (69, 17)
        with Image.open(result.heightmap_path) as img:
            assert img.size == (69, 69)
            # Flat map: constant raster
            assert set(np.asarray(img).ravel().tolist()) == {0}
    finally:
        shutil.rmtree(root)


def test_bad_dimensions_write_nothing():
    root = tempfile.mkdtemp(prefix="export_")
    try:
        map_dir = _make_map(root, "JDT01", [(0, 0), (1, 0)])
        out_dir = os.path.join(root, "out")
        reader = DictTileReader(
            height_tiles={
                "0_0.HIM": HeightTile([[1.0] * 65 for _ in range(65)]),
                "1_0.HIM": HeightTile([[1.0] * 65 for _ in range(64)]),
            },
            tile_index_tiles={
                "0_0.TIL": [[0] * 16 for _ in range(16)],
                "1_0.TIL": [[0] * 16 for _ in range(16)],
            },
            zones={"JDT01.ZON": synthetic_zone()},
        )
        try:
            convert_map(map_dir, out_dir, reader)
        except UnexpectedTileDimensions as e:
            assert e.coordinate == (1, 0)
        else:
            raise AssertionError("Expected UnexpectedTileDimensions")
        assert not os.path.exists(out_dir) or not os.listdir(out_dir)
    finally:
        shutil.rmtree(root)


def test_gap_reports_all_missing():
    root = tempfile.mkdtemp(prefix="export_")
    try:
        map_dir = _make_map(root, "JDT01", [(0, 0), (1, 1)])
        out_dir = os.path.join(root, "out")
        try:
            convert_map(map_dir, out_dir, SyntheticTileReader())
        except MissingTileError as e:
            assert e.coordinates == [(1, 0), (0, 1)], e.coordinates
            assert e.coordinate == (1, 0)
            assert e.kind == "height"
        else:
            raise AssertionError("Expected MissingTileError")
        assert not os.path.exists(out_dir)
    finally:
        shutil.rmtree(root)


def test_missing_tile_index_tile():
    root = tempfile.mkdtemp(prefix="export_")
    try:
        map_dir = _make_map(root, "JDT01", [(0, 0), (1, 0)])
        os.remove(os.path.join(map_dir, "1_0.TIL"))
        try:
            MapExporter(SyntheticTileReader()).build(map_dir)
        except MissingTileError as e:
            assert e.coordinate == (1, 0)
            assert e.kind == "tile-index"
        else:
            raise AssertionError("Expected MissingTileError")
    finally:
        shutil.rmtree(root)


def test_missing_zone():
    root = tempfile.mkdtemp(prefix="export_")
    try:
        map_dir = _make_map(root, "JDT01", [(0, 0)], zone=False)
        out_dir = os.path.join(root, "out")
        try:
            convert_map(map_dir, out_dir, SyntheticTileReader())
        except MissingZoneError as e:
            assert e.filename == "JDT01.ZON"
        else:
            raise AssertionError("Expected MissingZoneError")
        assert not os.path.exists(out_dir)
    finally:
        shutil.rmtree(root)


def test_reader_failure_wrapped():
    class BrokenReader(SyntheticTileReader):
        def read_height_tile(self, path):
            raise EOFError("truncated")

    root = tempfile.mkdtemp(prefix="export_")
    try:
        map_dir = _make_map(root, "JDT01", [(0, 0)])
        try:
            MapExporter(BrokenReader()).build(map_dir)
        except TileReaderError as e:
            assert "0_0.HIM" in str(e)
            assert "truncated" in str(e)
        else:
            raise AssertionError("Expected TileReaderError")
    finally:
        shutil.rmtree(root)


def test_reader_key_error_is_not_missing_tile():
    class LeakyReader(SyntheticTileReader):
        def read_height_tile(self, path):
            raise KeyError('heights')

    root = tempfile.mkdtemp(prefix="export_")
    try:
        map_dir = _make_map(root, "JDT01", [(0, 0)])
        try:
            MapExporter(LeakyReader()).build(map_dir)
        except MissingTileError:
            raise AssertionError("KeyError inside a reader is not a gap")
        except TileReaderError as e:
            assert "0_0.HIM" in str(e)
        else:
            raise AssertionError("Expected TileReaderError")
    finally:
        shutil.rmtree(root)


def test_malformed_zone_record():
    root = tempfile.mkdtemp(prefix="export_")
    try:
        map_dir = _make_map(root, "JDT01", [(0, 0)])
        reader = DictTileReader(
            height_tiles={"0_0.HIM": [[1.0] * 65 for _ in range(65)]},
            tile_index_tiles={"0_0.TIL": [[0] * 16 for _ in range(16)]},
            # catalog entry without layer1
            zones={"JDT01.ZON": {"textures": ["a"], "tiles": [{"layer2": 0}]}},
        )
        try:
            MapExporter(reader).build(map_dir)
        except MissingZoneError:
            raise AssertionError("Zone file exists, record is malformed")
        except TileReaderError as e:
            assert "JDT01.ZON" in str(e), str(e)
            assert "layer1" in str(e), str(e)
        else:
            raise AssertionError("Expected TileReaderError")
    finally:
        shutil.rmtree(root)


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------

_ARTIFACTS = ["JDT01.json", "JDT01.png", "JDT01_tilemap.json"]


def _write_previous_run(out_dir):
    os.makedirs(out_dir)
    for name in _ARTIFACTS:
        with open(os.path.join(out_dir, name), 'wb') as f:
            f.write(b"previous " + name.encode('ascii'))


def _read_outputs(out_dir):
    result = {}
    for name in os.listdir(out_dir):
        with open(os.path.join(out_dir, name), 'rb') as f:
            result[name] = f.read()
    return result


def test_directory_target_writes_nothing():
    root = tempfile.mkdtemp(prefix="export_")
    try:
        map_dir = _make_map(root, "JDT01", [(0, 0)])
        out_dir = os.path.join(root, "out")
        os.makedirs(os.path.join(out_dir, "JDT01.json"))
        try:
            convert_map(map_dir, out_dir, SyntheticTileReader())
        except OutputWriteError as e:
            assert "JDT01.json" in str(e)
        else:
            raise AssertionError("Expected OutputWriteError")
        assert os.listdir(out_dir) == ["JDT01.json"], os.listdir(out_dir)
        assert os.path.isdir(os.path.join(out_dir, "JDT01.json"))
    finally:
        shutil.rmtree(root)


def test_failed_move_restores_previous_artifacts():
    root = tempfile.mkdtemp(prefix="export_")
    try:
        map_dir = _make_map(root, "JDT01", [(0, 0)])
        out_dir = os.path.join(root, "out")
        _write_previous_run(out_dir)
        before = _read_outputs(out_dir)

        real_replace = os.replace

        def replace(src, dst):
            # the last artifact cannot be moved into place
            if src.endswith(".tmp") and dst.endswith("_tilemap.json"):
                raise OSError(errno.EACCES, "Permission denied", dst)
            return real_replace(src, dst)

        with mock.patch("world_converter.map_exporter.os.replace",
                        side_effect=replace):
            try:
                convert_map(map_dir, out_dir, SyntheticTileReader())
            except OutputWriteError:
                pass
            else:
                raise AssertionError("Expected OutputWriteError")

        assert _read_outputs(out_dir) == before, sorted(os.listdir(out_dir))
    finally:
        shutil.rmtree(root)


def test_export_replaces_previous_artifacts():
    root = tempfile.mkdtemp(prefix="export_")
    try:
        map_dir = _make_map(root, "JDT01", [(0, 0)])
        out_dir = os.path.join(root, "out")
        _write_previous_run(out_dir)

        convert_map(map_dir, out_dir, SyntheticTileReader())

        assert sorted(os.listdir(out_dir)) == _ARTIFACTS, os.listdir(out_dir)
        with Image.open(os.path.join(out_dir, "JDT01.png")) as img:
            assert img.size == (69, 69)
    finally:
        shutil.rmtree(root)


# ---------------------------------------------------------------------------
# Reader loading
# ---------------------------------------------------------------------------

def test_load_reader():
    reader = load_reader(_READER_SPEC)
    assert type(reader).__name__ == "SyntheticTileReader"

    for spec in ("", "synthetic_reader", "no_such_module_xyz:Reader",
                 "synthetic_reader:NoSuchClass", "json:JSONDecoder",
                 "synthetic_reader:RootedTileReader"):
        try:
            load_reader(spec)
        except TileReaderError:
            pass
        else:
            raise AssertionError("Expected TileReaderError for {!r}".format(
                spec))


# ---------------------------------------------------------------------------
# Command line
# ---------------------------------------------------------------------------

def test_cli_map_command():
    from tools.map_converter import main as cli_main

    root = tempfile.mkdtemp(prefix="export_")
    try:
        map_dir = _make_map(root, "JDT01", _2X2)
        out_dir = os.path.join(root, "cli_out")
        status = cli_main(["map", map_dir, "-o", out_dir,
                           "--reader", _READER_SPEC])
        assert status == 0
        assert sorted(os.listdir(out_dir)) == [
            "JDT01.json", "JDT01.png", "JDT01_tilemap.json"]
    finally:
        shutil.rmtree(root)


def test_cli_failure_exit_status():
    from tools.map_converter import main as cli_main

    root = tempfile.mkdtemp(prefix="export_")
    try:
        out_dir = os.path.join(root, "cli_out")
        map_dir = os.path.join(root, "missing")
        stderr = io.StringIO()
        with redirect_stderr(stderr):
            status = cli_main(["map", map_dir, "-o", out_dir,
                               "--reader", _READER_SPEC])
        assert status == 1
        assert not os.path.exists(out_dir)
        # log records may share the stream; the failure is one line
        lines = [line for line in stderr.getvalue().splitlines()
                 if not line.startswith(("INFO", "DEBUG", "WARNING"))]
        assert len(lines) == 1, lines
        assert lines[0].startswith("Error occurred")
        assert map_dir in lines[0]
    finally:
        shutil.rmtree(root)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main():
    print("=" * 70)
    print("Map exporter tests")
    print("=" * 70)

    print("\n--- Export ---")
    _test("export writes three artifacts", test_export_writes_three_artifacts)
    _test("export tilemap blocks", test_export_tilemap_blocks)
    _test("export single tile lowercase", test_export_single_tile_lowercase)

    print("\n--- Failures ---")
    _test("bad dimensions write nothing", test_bad_dimensions_write_nothing)
    _test("gap reports all missing", test_gap_reports_all_missing)
    _test("missing tile-index tile", test_missing_tile_index_tile)
    _test("missing zone", test_missing_zone)
    _test("reader failure wrapped", test_reader_failure_wrapped)
    _test("reader KeyError is not a missing tile",
          test_reader_key_error_is_not_missing_tile)
    _test("malformed zone record", test_malformed_zone_record)

    print("\n--- Writing ---")
    _test("directory target writes nothing",
          test_directory_target_writes_nothing)
    _test("failed move restores previous artifacts",
          test_failed_move_restores_previous_artifacts)
    _test("export replaces previous artifacts",
          test_export_replaces_previous_artifacts)

    print("\n--- Reader / CLI ---")
    _test("load_reader", test_load_reader)
    _test("cli map command", test_cli_map_command)
    _test("cli failure exit status", test_cli_failure_exit_status)

    print("\n" + "=" * 70)
    print("Results: {} passed, {} failed".format(_PASSED, _FAILED))
    if _ERRORS:
        print("\nFailures:")
        for name, err in _ERRORS:
            print("  {} -- {}".format(name, err))
    print("=" * 70)
    return 0 if _FAILED == 0 else 1


if __name__ == '__main__':
    sys.exit(main())
