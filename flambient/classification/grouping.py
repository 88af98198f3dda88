"""
Exposure grouping.

Exposures are walked in capture order. A new group opens on the first image
and on every Flash -> Ambient transition; all other transitions extend the
current group. Group count is therefore 1 + the number of Flash -> Ambient
transitions for non-empty input.
"""

import logging
from typing import Dict, List, Sequence

from .models import (
    ExposureRecord,
    Group,
    GroupStatistics,
    ImageType,
)

logger = logging.getLogger(__name__)


def group_exposures(records: Sequence[ExposureRecord]) -> List[Group]:
    """
    Group ordered exposure records into ambient/flash clusters.

    Records must already be in capture order. Returns an empty list for
    empty input.
    """
    groups: List[Group] = []
    ambient: List[str] = []
    flash: List[str] = []
    previous = None

    for record in records:
        opens_group = previous is None or (
            previous is ImageType.FLASH and record.image_type is ImageType.AMBIENT
        )
        if opens_group and previous is not None:
            groups.append(_make_group(len(groups) + 1, ambient, flash))
            ambient, flash = [], []

        if record.image_type is ImageType.AMBIENT:
            ambient.append(record.source_path)
        else:
            flash.append(record.source_path)
        previous = record.image_type

    if previous is not None:
        groups.append(_make_group(len(groups) + 1, ambient, flash))

    for group in groups:
        if not group.is_blendable:
            logger.info(
                f"Group {group.padded_number} has no {group.missing_side.value} images "
                f"and will not be blended"
            )
    return groups


def _make_group(number: int, ambient: List[str], flash: List[str]) -> Group:
    return Group(sequence_number=number, ambient_files=list(ambient), flash_files=list(flash))


def group_statistics(groups: Sequence[Group]) -> GroupStatistics:
    """Compute summary counts for a grouping."""
    return GroupStatistics(
        total_groups=len(groups),
        total_ambient=sum(len(g.ambient_files) for g in groups),
        total_flash=sum(len(g.flash_files) for g in groups),
        groups_with_both=sum(1 for g in groups if g.is_blendable),
        groups_ambient_only=sum(1 for g in groups if g.has_ambient and not g.has_flash),
        groups_flash_only=sum(1 for g in groups if g.has_flash and not g.has_ambient),
    )


def sample_exif_values(
    records: Sequence[ExposureRecord],
    fields: Sequence[str],
    limit: int = 5,
) -> List[Dict[str, str]]:
    """
    Show the first few exposures' values for candidate fields.

    Helps the operator pick a field that cleanly splits ambient from flash.
    """
    samples = []
    for record in records[:limit]:
        sample = {"file": record.filename}
        for name in fields:
            value = record.exif.get(name)
            sample[name] = value.display() if value else "-"
        samples.append(sample)
    return samples
