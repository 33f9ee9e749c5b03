"""
Tests for arginv/export.py CSV/JSON export.

Covers:
- Opt-in export (format none writes nothing)
- File naming with a fixed clock
- CSV header, nested values, None handling, empty row sets
- JSON structure and nesting limit
- Directory creation and I/O failure mapping
"""
import csv
import json
import os
import stat
import sys
from datetime import datetime, timezone

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from arginv.exceptions import ConfigError, ExportError
from arginv.export import (
    ExportPipeline,
    build_artifact_path,
    format_timestamp,
    limit_depth,
    normalize_format,
    write_csv,
    write_json,
)

FIXED_TIME = datetime(2024, 3, 5, 14, 7, 9, tzinfo=timezone.utc)


@pytest.fixture
def pipeline():
    return ExportPipeline(clock=lambda: FIXED_TIME)


@pytest.fixture
def sample_rows():
    return [
        {'id': '/subscriptions/a/vm1', 'name': 'vm1', 'tags': {'env': 'prod'}, 'zones': ['1', '2']},
        {'id': '/subscriptions/a/vm2', 'name': 'vm2', 'tags': None, 'zones': []},
    ]


# =============================================================================
# Format Handling
# =============================================================================

class TestFormats:
    """Tests for export format parsing and naming."""

    @pytest.mark.parametrize("value,expected", [
        ("csv", "csv"), ("CSV", "csv"), ("Json", "json"), ("none", "none"), (None, "none"), (" json ", "json"),
    ])
    def test_normalize_format(self, value, expected):
        assert normalize_format(value) == expected

    def test_unknown_format_rejected(self):
        with pytest.raises(ConfigError):
            normalize_format("xlsx")

    def test_format_timestamp(self):
        assert format_timestamp(FIXED_TIME) == "20240305-140709"

    def test_build_artifact_path(self):
        path = build_artifact_path("out", "VirtualMachines", "20240305-140709", "csv")
        assert path == os.path.join("out", "VirtualMachines-20240305-140709.csv")


# =============================================================================
# Pipeline
# =============================================================================

class TestExportPipeline:
    """Tests for ExportPipeline.export."""

    def test_none_format_writes_nothing(self, pipeline, tmp_path, sample_rows):
        """Test the none format creates no directory or file."""
        target = tmp_path / "never"
        assert pipeline.export("VirtualMachines", sample_rows, "none", str(target)) is None
        assert not target.exists()

    def test_csv_filename(self, pipeline, tmp_path, sample_rows):
        """Test the artifact is named <name>-<timestamp>.csv."""
        path = pipeline.export("VirtualMachines", sample_rows, "csv", str(tmp_path))

        assert os.path.basename(path) == "VirtualMachines-20240305-140709.csv"
        assert os.path.exists(path)

    def test_json_filename(self, pipeline, tmp_path, sample_rows):
        path = pipeline.export("KeyVaults", sample_rows, "JSON", str(tmp_path))
        assert os.path.basename(path) == "KeyVaults-20240305-140709.json"

    def test_creates_missing_directories(self, pipeline, tmp_path, sample_rows):
        """Test nested output directories are created."""
        target = tmp_path / "a" / "b" / "c"
        path = pipeline.export("Disks", sample_rows, "csv", str(target))

        assert target.is_dir()
        assert os.path.dirname(path) == str(target)

    def test_file_is_owner_only(self, pipeline, tmp_path, sample_rows):
        """Test artifacts are created with 0600 permissions."""
        if os.name != 'posix':
            pytest.skip("POSIX permissions only")
        path = pipeline.export("Disks", sample_rows, "json", str(tmp_path))

        mode = stat.S_IMODE(os.stat(path).st_mode)
        assert mode & 0o077 == 0

    def test_directory_is_a_file(self, pipeline, tmp_path, sample_rows):
        """Test an unusable directory raises ExportError with name and path."""
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")

        with pytest.raises(ExportError) as exc_info:
            pipeline.export("Disks", sample_rows, "csv", str(blocker))

        assert exc_info.value.name == "Disks"
        assert "Disks-20240305-140709.csv" in exc_info.value.path
        assert isinstance(exc_info.value.cause, OSError)

    def test_unencodable_csv_value(self, pipeline, tmp_path):
        """Test a lone surrogate in row data raises ExportError, not UnicodeEncodeError."""
        with pytest.raises(ExportError) as exc_info:
            pipeline.export("Tags", [{'name': "bad\ud800tag"}], "csv", str(tmp_path))

        assert isinstance(exc_info.value.cause, UnicodeEncodeError)
        assert exc_info.value.name == "Tags"

    def test_unencodable_value_as_json(self, pipeline, tmp_path):
        """Test JSON export escapes a lone surrogate instead of failing."""
        path = pipeline.export("Tags", [{'name': "bad\ud800tag"}], "json", str(tmp_path))

        with open(path, encoding='utf-8') as f:
            assert f.read().count("\\ud800") == 1

    def test_unknown_format_raises_config_error(self, pipeline, tmp_path, sample_rows):
        with pytest.raises(ConfigError):
            pipeline.export("Disks", sample_rows, "xml", str(tmp_path))

    def test_default_clock_timestamp(self, tmp_path):
        """Test the default pipeline names files from the current time."""
        path = ExportPipeline().export("Subscriptions", [{'id': 1}], "json", str(tmp_path))
        stamp = os.path.basename(path)[len("Subscriptions-"):-len(".json")]
        datetime.strptime(stamp, "%Y%m%d-%H%M%S")


# =============================================================================
# CSV
# =============================================================================

class TestCsv:
    """Tests for CSV writing."""

    def test_header_and_rows(self, tmp_path, sample_rows):
        """Test header comes from the first row and values round-trip."""
        path = str(tmp_path / "vms.csv")
        write_csv(sample_rows, path)

        with open(path, newline='', encoding='utf-8') as f:
            reader = csv.DictReader(f)
            assert reader.fieldnames == ['id', 'name', 'tags', 'zones']
            records = list(reader)

        assert len(records) == 2
        assert records[0]['name'] == 'vm1'
        assert json.loads(records[0]['tags']) == {'env': 'prod'}
        assert json.loads(records[0]['zones']) == ['1', '2']
        assert records[1]['tags'] == ''
        assert records[1]['zones'] == '[]'

    def test_missing_and_extra_keys(self, tmp_path):
        """Test rows missing a column get blanks, extra keys are dropped."""
        path = str(tmp_path / "mixed.csv")
        write_csv([{'a': 1, 'b': 2}, {'a': 3, 'c': 4}], path)

        with open(path, newline='', encoding='utf-8') as f:
            records = list(csv.DictReader(f))

        assert records[1] == {'a': '3', 'b': ''}

    def test_empty_rowset_gives_empty_file(self, tmp_path):
        path = str(tmp_path / "empty.csv")
        write_csv([], path)

        assert os.path.getsize(path) == 0

    def test_quotes_commas(self, tmp_path):
        """Test values with commas and quotes survive."""
        path = str(tmp_path / "quoted.csv")
        write_csv([{'name': 'a, "b"'}], path)

        with open(path, newline='', encoding='utf-8') as f:
            assert list(csv.DictReader(f))[0]['name'] == 'a, "b"'


# =============================================================================
# JSON
# =============================================================================

class TestJson:
    """Tests for JSON writing and nesting limit."""

    def test_rows_written_as_array(self, tmp_path, sample_rows):
        path = str(tmp_path / "vms.json")
        write_json(sample_rows, path)

        with open(path, encoding='utf-8') as f:
            assert json.load(f) == sample_rows

    def test_empty_rowset_gives_empty_array(self, tmp_path):
        path = str(tmp_path / "empty.json")
        write_json([], path)

        with open(path, encoding='utf-8') as f:
            assert json.load(f) == []

    def test_non_json_values_stringified(self, tmp_path):
        path = str(tmp_path / "dates.json")
        write_json([{'created': FIXED_TIME}], path)

        with open(path, encoding='utf-8') as f:
            assert json.load(f)[0]['created'] == str(FIXED_TIME)

    def test_limit_depth_keeps_shallow_values(self):
        value = {'a': {'b': [1, 2, {'c': None}]}}
        assert limit_depth(value) == value

    def test_limit_depth_stringifies_deep_containers(self):
        """Test containers at the max depth become compact JSON strings."""
        value = {'l1': {'l2': {'l3': {'x': 1}}}}
        limited = limit_depth(value, max_depth=3)

        assert limited == {'l1': {'l2': {'l3': '{"x":1}'}}}

    def test_deep_rows_in_file(self, tmp_path):
        """Test the default limit of 8 is applied when writing."""
        deep = current = {}
        for i in range(12):
            current['next'] = {}
            current = current['next']
        path = str(tmp_path / "deep.json")
        write_json([deep], path)

        with open(path, encoding='utf-8') as f:
            loaded = json.load(f)[0]
        for _ in range(8):
            loaded = loaded['next']
        assert isinstance(loaded, str)
        assert loaded.startswith('{"next":')
