"""
Named edit presets.

Each preset is a set of EditOptions tuned for a photography workflow.
flambient_real_estate is the default for blended real-estate exposures.
"""

from typing import Any, Dict, List, Tuple

from .models import EditOptions, PhotographyType


DEFAULT_PRESET = "flambient_real_estate"


EDIT_PRESETS: Dict[str, Dict[str, Any]] = {
    "flambient_real_estate": {
        "name": "Flambient Real Estate (Window Pull)",
        "description": "Optimized for flambient blended images with window detail recovery",
        "options": {"photography_type": "REAL_ESTATE", "window_pull": True},
    },
    "real_estate_standard": {
        "name": "Real Estate - Standard",
        "description": "Basic real estate editing with minimal adjustments",
        "options": {"photography_type": "REAL_ESTATE", "window_pull": False},
    },
    "real_estate_hdr": {
        "name": "Real Estate - HDR Merge",
        "description": "Merge HDR brackets for maximum dynamic range",
        "options": {
            "photography_type": "REAL_ESTATE",
            "window_pull": True,
            "perspective_correction": True,
            "straighten": True,
            "hdr_merge": True,
            "hdr_output_compression": "LOSSLESS",
        },
    },
    "real_estate_sky_replacement": {
        "name": "Real Estate - Sky Replacement",
        "description": "Real estate with automatic sky replacement",
        "options": {
            "photography_type": "REAL_ESTATE",
            "window_pull": True,
            "perspective_correction": True,
            "straighten": True,
            "sky_replacement": True,
        },
    },
    "real_estate_full_correction": {
        "name": "Real Estate - Full Correction",
        "description": "Complete real estate workflow with all corrections",
        "options": {
            "photography_type": "REAL_ESTATE",
            "window_pull": True,
            "perspective_correction": True,
            "straighten": True,
            "crop": True,
        },
    },
    "portrait_standard": {
        "name": "Portrait - Standard",
        "description": "Standard portrait editing with skin smoothing",
        "options": {"photography_type": "PORTRAIT", "smooth_skin": True, "window_pull": False},
    },
    "portrait_headshot": {
        "name": "Portrait - Headshot",
        "description": "Headshot-specific cropping and skin smoothing",
        "options": {
            "photography_type": "PORTRAIT",
            "smooth_skin": True,
            "headshot_crop": True,
            "subject_mask": True,
            "window_pull": False,
        },
    },
    "wedding_standard": {
        "name": "Wedding - Standard",
        "description": "Wedding photography with natural skin tones",
        "options": {"photography_type": "WEDDING", "smooth_skin": True, "window_pull": False},
    },
    "wedding_hdr": {
        "name": "Wedding - HDR",
        "description": "Wedding with HDR bracket merging",
        "options": {
            "photography_type": "WEDDING",
            "smooth_skin": True,
            "hdr_merge": True,
            "hdr_output_compression": "LOSSLESS",
            "window_pull": False,
        },
    },
    "minimal": {
        "name": "Minimal - AI Only",
        "description": "Only apply AI profile styling, no corrections",
        "options": {"photography_type": "REAL_ESTATE", "window_pull": False},
    },
    "maximum_quality": {
        "name": "Maximum Quality - Lossless",
        "description": "All corrections with lossless compression",
        "options": {
            "photography_type": "REAL_ESTATE",
            "window_pull": True,
            "perspective_correction": True,
            "straighten": True,
            "crop": True,
            "hdr_output_compression": "LOSSLESS",
        },
    },
}


def get_preset(name: str) -> EditOptions:
    """
    Raises:
        KeyError: If no preset has that name
    """
    if name not in EDIT_PRESETS:
        raise KeyError(f"Unknown edit preset '{name}'. Available: {', '.join(sorted(EDIT_PRESETS))}")
    return EditOptions(**EDIT_PRESETS[name]["options"])


def list_presets() -> List[Tuple[str, str, str]]:
    """(key, name, description) for every preset, in definition order."""
    return [(key, p["name"], p["description"]) for key, p in EDIT_PRESETS.items()]


def photography_type_choices() -> List[str]:
    return [t.value for t in PhotographyType]
