"""
Tests for the CSV export file reader.
"""

from ecobee_telemetry.report.csv_export import (
    csv_column,
    find_export_files,
    header_name,
    read_export_file,
)


GOOD_ROWS = [
    "2024-01-15,10:00:00,heat,heatStage1On,Home,,78,70,68.5,40,32,5,0,0,0",
]


class TestHeaderNames:
    """Tests for header cleanup and aliasing."""

    def test_unit_dropped(self):
        """Parenthesised units are removed from headers."""
        assert header_name("Current Temp (F)") == "Current Temp"
        assert header_name("Fan (sec)") == "Fan"
        assert header_name("Date") == "Date"

    def test_aliases(self):
        """Portal headers map to canonical column names."""
        assert csv_column("System Setting") == "HVACmode"
        assert csv_column("System Mode") == "zoneHVACmode"
        assert csv_column("Calendar Event") == "zoneClimate"
        assert csv_column("Heat Set Temp") == "zoneHeatTemp"
        assert csv_column("Cool Set Temp") == "zoneCoolTemp"
        assert csv_column("Heat Stage 1") == "auxHeat1"
        assert csv_column("Cool Stage 1") == "compCool1"
        assert csv_column("Fan") == "fan"
        assert csv_column("Current Temp") == "Current Temp"


class TestReadExportFile:
    """Tests for read_export_file()."""

    def test_good_file(self, export_dir):
        """A well-formed export is read in full."""
        export = read_export_file(export_dir / "report-main-floor.csv")

        assert export.good
        assert export.header[:3] == ["Date", "Time", "System Setting"]
        assert len(export.rows) == 2
        assert export.columns[0] == "HVACmode"
        assert export.columns[-1] == "fan"
        assert len(export.columns) == len(export.header) - 2

    def test_empty_fields_kept(self, tmp_path, make_export):
        """Empty fields keep their position."""
        export = read_export_file(make_export(tmp_path / "report-a.csv", GOOD_ROWS))
        assert export.rows[0][5] == ""
        assert len(export.rows[0]) == len(export.header)

    def test_missing_footprint_rejected(self, tmp_path, make_export):
        """A file without the BOM footprint is rejected."""
        export = read_export_file(make_export(tmp_path / "report-a.csv", GOOD_ROWS, footprint=False))
        assert not export.good
        assert "footprint" in export.reason
        assert export.rows == []

    def test_field_count_mismatch_rejects_file(self, tmp_path, make_export):
        """A short row rejects the whole file."""
        path = make_export(tmp_path / "report-a.csv", GOOD_ROWS + ["2024-01-15,10:05:00,heat"])
        export = read_export_file(path)

        assert not export.good
        assert "fields" in export.reason

    def test_comment_lines_skipped(self, tmp_path, make_export):
        """Comment lines are ignored."""
        path = make_export(tmp_path / "report-a.csv", ["#trailing comment"] + GOOD_ROWS)
        export = read_export_file(path)
        assert export.good
        assert len(export.rows) == 1

    def test_no_header_rejected(self, tmp_path):
        """A file with only comments is rejected."""
        path = tmp_path / "report-empty.csv"
        path.write_text("\ufeff#only comments\n#nothing else\n", encoding="utf-8")
        assert not read_export_file(path).good


class TestFindExportFiles:
    """Tests for find_export_files()."""

    def test_prefix_filter_sorted(self, export_dir, make_export):
        """Only prefixed regular files are returned, sorted."""
        make_export(export_dir / "report-basement.csv", GOOD_ROWS)
        (export_dir / "report-subdir").mkdir()

        files = find_export_files(export_dir, "report-")
        assert [f.name for f in files] == ["report-basement.csv", "report-main-floor.csv"]

    def test_missing_directory(self, tmp_path):
        """A missing directory yields no files."""
        assert find_export_files(tmp_path / "missing", "report-") == []
