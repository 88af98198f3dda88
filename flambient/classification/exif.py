"""
EXIF extraction using exiftool.

exiftool runs twice over the same directory: once with -n for raw numeric
values and once without for human-readable labels. Both runs emit CSV in the
same file order, and rows are merged pairwise into ExifValue(raw, label).

Extraction failure is fatal for a run. An empty directory is not a failure.
"""

import csv
import io
import logging
import shutil
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .errors import ExifExtractionError, ExifToolNotFoundError
from .models import Classifier, ExifValue, ExposureRecord

logger = logging.getLogger(__name__)


EXTRACTED_TAGS: Sequence[str] = (
    "Filename",
    "DateTimeOriginal",
    "MeteringMode",
    "ShutterSpeed",
    "ApertureValue",
    "ISO",
    "Flash",
    "WhiteBalance",
    "ExposureProgram",
    "ExposureMode",
    "FNumber",
)

FILENAME_COLUMN = "FileName"
SOURCE_COLUMN = "SourceFile"
TIMESTAMP_COLUMN = "DateTimeOriginal"


def check_exiftool_available(binary: str = "exiftool") -> bool:
    """Check if exiftool is on PATH."""
    return shutil.which(binary) is not None


def build_exiftool_command(
    directory: str,
    numeric: bool,
    custom_field: Optional[str] = None,
    binary: str = "exiftool",
) -> List[str]:
    """Build one exiftool CSV invocation over the JPEGs in a directory."""
    cmd = [binary]
    if numeric:
        cmd.append("-n")
    cmd.extend(["-q", "-csv", "-ext", "jpg", "-ext", "JPG"])
    cmd.extend(f"-{tag}" for tag in EXTRACTED_TAGS)
    if custom_field:
        cmd.append(f"-{custom_field}")
    cmd.append(directory)
    return cmd


def parse_exif_csv(numeric_csv: str, label_csv: str) -> List[Dict[str, ExifValue]]:
    """
    Merge the numeric and label CSV outputs row-by-row.

    Rows are paired by position; the label run is expected to list files
    in the same order as the numeric run.

    Raises:
        ValueError: If the two outputs have a different number of rows
    """
    numeric_rows = list(csv.DictReader(io.StringIO(numeric_csv)))
    label_rows = list(csv.DictReader(io.StringIO(label_csv)))

    if label_rows and len(label_rows) != len(numeric_rows):
        raise ValueError(
            f"row count mismatch: {len(numeric_rows)} numeric vs {len(label_rows)} labelled"
        )

    merged: List[Dict[str, ExifValue]] = []
    for index, numeric_row in enumerate(numeric_rows):
        label_row = label_rows[index] if label_rows else {}
        row: Dict[str, ExifValue] = {}
        for column, raw in numeric_row.items():
            if column is None:
                continue
            raw = (raw or "").strip()
            label = (label_row.get(column) or raw).strip()
            row[column] = ExifValue(raw=raw, label=label)
        merged.append(row)
    return merged


def build_records(
    rows: Sequence[Dict[str, ExifValue]],
    classifier: Classifier,
    directory: Optional[str] = None,
) -> List[ExposureRecord]:
    """
    Classify merged rows and sort them into capture order.

    The sort is stable, so exposures sharing a timestamp keep extraction order.
    """
    records = []
    for row in rows:
        source = row.get(SOURCE_COLUMN)
        filename = row.get(FILENAME_COLUMN)
        if source and source.raw:
            source_path = source.raw
        elif filename and filename.raw:
            source_path = str(Path(directory) / filename.raw) if directory else filename.raw
        else:
            logger.warning("Skipping EXIF row without a file name")
            continue
        timestamp = row.get(TIMESTAMP_COLUMN)
        records.append(
            ExposureRecord(
                source_path=source_path,
                timestamp=timestamp.raw if timestamp else "",
                exif=dict(row),
                image_type=classifier.classify(row),
            )
        )
    return sorted(records, key=lambda record: record.timestamp)


class ExifExtractor:
    """Runs exiftool over a directory and returns merged EXIF rows."""

    def __init__(self, binary: str = "exiftool", timeout: float = 300.0):
        self.binary = binary
        self.timeout = timeout

    def _run(self, cmd: List[str], directory: str) -> str:
        logger.debug(f"Running: {' '.join(cmd)}")
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                check=True,
                timeout=self.timeout,
            )
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or "").strip()
            raise ExifExtractionError(
                directory, f"exiftool exited with code {e.returncode}: {stderr or 'no output'}"
            ) from e
        except subprocess.TimeoutExpired as e:
            raise ExifExtractionError(directory, f"exiftool timed out after {self.timeout}s") from e
        except FileNotFoundError as e:
            raise ExifToolNotFoundError(self.binary) from e
        return result.stdout

    def extract(self, directory: str, custom_field: Optional[str] = None) -> List[Dict[str, ExifValue]]:
        """
        Extract merged EXIF rows for every JPEG in a directory.

        Raises:
            ExifToolNotFoundError: If exiftool is not installed
            ExifExtractionError: If exiftool fails or its output cannot be merged
        """
        if not check_exiftool_available(self.binary):
            raise ExifToolNotFoundError(self.binary)

        path = Path(directory)
        if not path.is_dir():
            raise ExifExtractionError(directory, "not a directory")

        numeric = self._run(
            build_exiftool_command(directory, True, custom_field, self.binary), directory
        )
        labelled = self._run(
            build_exiftool_command(directory, False, custom_field, self.binary), directory
        )

        try:
            rows = parse_exif_csv(numeric, labelled)
        except (ValueError, csv.Error) as e:
            raise ExifExtractionError(directory, str(e)) from e

        logger.info(f"Extracted EXIF data for {len(rows)} image(s) in {directory}")
        return rows

    def extract_records(self, directory: str, classifier: Classifier) -> List[ExposureRecord]:
        """Extract, classify and order the exposures in a directory."""
        rows = self.extract(directory, classifier.custom_field)
        return build_records(rows, classifier, directory)
