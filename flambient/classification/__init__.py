"""
Exposure classification and grouping.

Reads EXIF data with exiftool, classifies each exposure as ambient or flash
by exact field-value equality, and groups exposures in capture order.

Usage:
    from flambient.classification import (
        Classifier, ClassificationStrategy, ExifExtractor, group_exposures,
    )

    classifier = Classifier.create(ClassificationStrategy.FLASH)
    records = ExifExtractor().extract_records("/shoot", classifier)
    groups = group_exposures(records)
"""

from .errors import (
    ClassificationError,
    ExifToolNotFoundError,
    ExifExtractionError,
    InvalidStrategyError,
)
from .models import (
    ImageType,
    ClassificationStrategy,
    Classifier,
    ExifValue,
    ExposureRecord,
    Group,
    GroupStatistics,
)
from .exif import (
    ExifExtractor,
    build_records,
    check_exiftool_available,
    parse_exif_csv,
)
from .grouping import (
    group_exposures,
    group_statistics,
    sample_exif_values,
)

__all__ = [
    # Errors
    "ClassificationError",
    "ExifToolNotFoundError",
    "ExifExtractionError",
    "InvalidStrategyError",
    # Models
    "ImageType",
    "ClassificationStrategy",
    "Classifier",
    "ExifValue",
    "ExposureRecord",
    "Group",
    "GroupStatistics",
    # Extraction
    "ExifExtractor",
    "build_records",
    "check_exiftool_available",
    "parse_exif_csv",
    # Grouping
    "group_exposures",
    "group_statistics",
    "sample_exif_values",
]
