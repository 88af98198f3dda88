"""
Exposure Classification and Grouping Tests

Tests proving:
1. Each strategy compares the raw EXIF value by exact equality
2. Missing fields fall back to the strategy's missing value
3. Groups open on the first image and on every Flash -> Ambient transition
4. exiftool output from the numeric and label runs merges row by row
5. Extractor failures surface as classification errors

exiftool itself is never invoked; subprocess.run and shutil.which are patched.
"""

import subprocess
from unittest.mock import patch

import pytest

from flambient.classification import (
    ClassificationStrategy,
    Classifier,
    ExifExtractionError,
    ExifExtractor,
    ExifToolNotFoundError,
    ExifValue,
    ExposureRecord,
    Group,
    ImageType,
    InvalidStrategyError,
    build_records,
    group_exposures,
    group_statistics,
    parse_exif_csv,
    sample_exif_values,
)
from flambient.classification.exif import build_exiftool_command


# =============================================================================
# Test Helpers
# =============================================================================

def record(name: str, image_type: ImageType, timestamp: str = "2024:05:01 12:00:00") -> ExposureRecord:
    return ExposureRecord(source_path=f"/shoot/{name}", timestamp=timestamp, image_type=image_type)


A = ImageType.AMBIENT
F = ImageType.FLASH


def records_for(pattern: str):
    return [record(f"IMG_{i:03d}.jpg", A if c == "A" else F) for i, c in enumerate(pattern)]


NUMERIC_CSV = (
    "SourceFile,FileName,DateTimeOriginal,Flash,ExposureProgram\n"
    "/shoot/IMG_002.jpg,IMG_002.jpg,2024:05:01 12:00:02,9,1\n"
    "/shoot/IMG_001.jpg,IMG_001.jpg,2024:05:01 12:00:01,16,1\n"
    "/shoot/IMG_003.jpg,IMG_003.jpg,2024:05:01 12:00:03,16,1\n"
)

LABEL_CSV = (
    "SourceFile,FileName,DateTimeOriginal,Flash,ExposureProgram\n"
    "/shoot/IMG_002.jpg,IMG_002.jpg,2024:05:01 12:00:02,\"On, Fired\",Manual\n"
    "/shoot/IMG_001.jpg,IMG_001.jpg,2024:05:01 12:00:01,\"Off, Did not fire\",Manual\n"
    "/shoot/IMG_003.jpg,IMG_003.jpg,2024:05:01 12:00:03,\"Off, Did not fire\",Manual\n"
)


# =============================================================================
# Strategies and Classifier
# =============================================================================

class TestStrategies:
    """Strategy traits."""

    def test_flash_strategy_defaults(self):
        strategy = ClassificationStrategy.FLASH
        assert strategy.exif_field == "Flash"
        assert strategy.default_ambient_value == "16"
        assert strategy.missing_value == "16"

    def test_exposure_program_missing_value_is_zero(self):
        assert ClassificationStrategy.EXPOSURE_PROGRAM.missing_value == "0"

    def test_custom_has_no_fixed_field(self):
        assert ClassificationStrategy.CUSTOM.exif_field is None

    def test_iso_requires_explicit_ambient_value(self):
        with pytest.raises(InvalidStrategyError):
            Classifier.create(ClassificationStrategy.ISO)

    def test_custom_requires_field_name(self):
        with pytest.raises(InvalidStrategyError):
            Classifier.create(ClassificationStrategy.CUSTOM, ambient_value="x")


class TestClassifier:
    """Exact-equality classification."""

    def test_flash_not_fired_is_ambient(self):
        classifier = Classifier.create(ClassificationStrategy.FLASH)
        assert classifier.classify({"Flash": ExifValue(raw="16", label="Off, Did not fire")}) is A

    def test_flash_fired_is_flash(self):
        classifier = Classifier.create(ClassificationStrategy.FLASH)
        assert classifier.classify({"Flash": ExifValue(raw="9", label="On, Fired")}) is F

    def test_missing_flash_field_counts_as_not_fired(self):
        classifier = Classifier.create(ClassificationStrategy.FLASH)
        assert classifier.classify({}) is A

    def test_missing_exposure_program_is_flash_under_default(self):
        classifier = Classifier.create(ClassificationStrategy.EXPOSURE_PROGRAM)
        assert classifier.classify({}) is F

    def test_no_normalization_of_values(self):
        classifier = Classifier.create(ClassificationStrategy.ISO, ambient_value="100")
        assert classifier.classify({"ISO": "100"}) is A
        assert classifier.classify({"ISO": "100.0"}) is F

    def test_custom_field_lookup(self):
        classifier = Classifier.create(
            ClassificationStrategy.CUSTOM, ambient_value="Ambient", custom_field="Keywords"
        )
        assert classifier.field_name == "Keywords"
        assert classifier.classify({"Keywords": ExifValue(raw="Ambient", label="Ambient")}) is A
        assert classifier.classify({"Keywords": "Flash"}) is F

    def test_ambient_value_is_stripped(self):
        classifier = Classifier.create(ClassificationStrategy.WHITE_BALANCE, ambient_value=" 0 ")
        assert classifier.ambient_value == "0"


# =============================================================================
# Grouping
# =============================================================================

class TestGrouping:
    """Flash -> Ambient transitions open groups."""

    def test_ambient_flash_ambient_makes_two_groups(self):
        groups = group_exposures(records_for("AFA"))
        assert len(groups) == 2
        assert [len(g.ambient_files) for g in groups] == [1, 1]
        assert [len(g.flash_files) for g in groups] == [1, 0]
        assert groups[0].is_blendable
        assert not groups[1].is_blendable
        assert groups[1].missing_side is F

    def test_empty_input_has_no_groups(self):
        assert group_exposures([]) == []

    @pytest.mark.parametrize("pattern", ["A", "F", "AAFF", "FFAA", "AFAFAF", "FAFAFA", "AAAA", "FFFAFFA"])
    def test_group_count_is_one_plus_flash_to_ambient_transitions(self, pattern):
        transitions = sum(1 for a, b in zip(pattern, pattern[1:]) if a == "F" and b == "A")
        assert len(group_exposures(records_for(pattern))) == 1 + transitions

    def test_every_file_lands_in_exactly_one_group(self):
        records = records_for("AAFFAFAAF")
        groups = group_exposures(records)
        assigned = [p for g in groups for p in g.ambient_files + g.flash_files]
        assert sorted(assigned) == sorted(r.source_path for r in records)

    def test_groups_are_numbered_from_one(self):
        groups = group_exposures(records_for("AFAFAF"))
        assert [g.sequence_number for g in groups] == [1, 2, 3]
        assert groups[0].padded_number == "01"

    def test_statistics(self):
        stats = group_statistics(group_exposures(records_for("AFAFFA")))
        assert stats.total_groups == 3
        assert stats.total_ambient == 3
        assert stats.total_flash == 3
        assert stats.groups_with_both == 2
        assert stats.groups_ambient_only == 1
        assert stats.groups_flash_only == 0

    def test_group_rejects_zero_sequence_number(self):
        with pytest.raises(ValueError):
            Group(sequence_number=0)


# =============================================================================
# exiftool output
# =============================================================================

class TestExifParsing:
    """Numeric and label CSV merge."""

    def test_rows_merge_raw_and_label(self):
        rows = parse_exif_csv(NUMERIC_CSV, LABEL_CSV)
        assert len(rows) == 3
        assert rows[0]["Flash"] == ExifValue(raw="9", label="On, Fired")
        assert rows[0]["Flash"].display() == "9 (On, Fired)"

    def test_row_count_mismatch_raises(self):
        truncated = "\n".join(LABEL_CSV.splitlines()[:2]) + "\n"
        with pytest.raises(ValueError):
            parse_exif_csv(NUMERIC_CSV, truncated)

    def test_records_sorted_by_capture_time(self):
        classifier = Classifier.create(ClassificationStrategy.FLASH)
        records = build_records(parse_exif_csv(NUMERIC_CSV, LABEL_CSV), classifier)
        assert [r.filename for r in records] == ["IMG_001.jpg", "IMG_002.jpg", "IMG_003.jpg"]
        assert [r.image_type for r in records] == [A, F, A]

    def test_same_timestamp_keeps_extraction_order(self):
        numeric = (
            "SourceFile,DateTimeOriginal,Flash\n"
            "/s/b.jpg,2024:05:01 12:00:00,16\n"
            "/s/a.jpg,2024:05:01 12:00:00,9\n"
        )
        classifier = Classifier.create(ClassificationStrategy.FLASH)
        records = build_records(parse_exif_csv(numeric, ""), classifier)
        assert [r.filename for r in records] == ["b.jpg", "a.jpg"]

    def test_filename_joined_to_directory_without_source_column(self):
        numeric = "FileName,DateTimeOriginal,Flash\nIMG_1.jpg,2024:05:01 12:00:00,16\n"
        classifier = Classifier.create(ClassificationStrategy.FLASH)
        records = build_records(parse_exif_csv(numeric, ""), classifier, "/shoot")
        assert records[0].source_path == "/shoot/IMG_1.jpg"

    def test_numeric_flag_only_on_numeric_run(self):
        assert "-n" in build_exiftool_command("/shoot", True)
        assert "-n" not in build_exiftool_command("/shoot", False)
        cmd = build_exiftool_command("/shoot", False, custom_field="Keywords")
        assert cmd[-2:] == ["-Keywords", "/shoot"]

    def test_sample_values_for_operator(self):
        classifier = Classifier.create(ClassificationStrategy.FLASH)
        records = build_records(parse_exif_csv(NUMERIC_CSV, LABEL_CSV), classifier)
        samples = sample_exif_values(records, ["Flash", "ISO"], limit=2)
        assert len(samples) == 2
        assert samples[0]["file"] == "IMG_001.jpg"
        assert samples[0]["ISO"] == "-"


class TestExifExtractor:
    """exiftool invocation, with subprocess patched."""

    def _completed(self, stdout: str) -> subprocess.CompletedProcess:
        return subprocess.CompletedProcess(args=[], returncode=0, stdout=stdout, stderr="")

    def test_missing_exiftool_raises(self, tmp_path):
        with patch("flambient.classification.exif.shutil.which", return_value=None):
            with pytest.raises(ExifToolNotFoundError):
                ExifExtractor().extract(str(tmp_path))

    def test_runs_numeric_then_label_pass(self, tmp_path):
        outputs = [self._completed(NUMERIC_CSV), self._completed(LABEL_CSV)]
        with patch("flambient.classification.exif.shutil.which", return_value="/usr/bin/exiftool"), \
                patch("flambient.classification.exif.subprocess.run", side_effect=outputs) as run:
            classifier = Classifier.create(ClassificationStrategy.FLASH)
            records = ExifExtractor().extract_records(str(tmp_path), classifier)

        assert run.call_count == 2
        assert "-n" in run.call_args_list[0].args[0]
        assert "-n" not in run.call_args_list[1].args[0]
        assert len(records) == 3

    def test_nonzero_exit_is_extraction_error(self, tmp_path):
        error = subprocess.CalledProcessError(1, ["exiftool"], stderr="boom")
        with patch("flambient.classification.exif.shutil.which", return_value="/usr/bin/exiftool"), \
                patch("flambient.classification.exif.subprocess.run", side_effect=error):
            with pytest.raises(ExifExtractionError) as exc:
                ExifExtractor().extract(str(tmp_path))
        assert "boom" in str(exc.value)

    def test_empty_directory_yields_no_rows(self, tmp_path):
        with patch("flambient.classification.exif.shutil.which", return_value="/usr/bin/exiftool"), \
                patch("flambient.classification.exif.subprocess.run", return_value=self._completed("")):
            assert ExifExtractor().extract(str(tmp_path)) == []

    def test_not_a_directory(self, tmp_path):
        target = tmp_path / "file.jpg"
        target.write_bytes(b"x")
        with patch("flambient.classification.exif.shutil.which", return_value="/usr/bin/exiftool"):
            with pytest.raises(ExifExtractionError):
                ExifExtractor().extract(str(target))
