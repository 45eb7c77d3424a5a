"""Noise-adaptive thresholds and Schmitt-trigger response detection."""

from .thresholds import (
    LOW_NOISE,
    HIGH_NOISE,
    classify_noise,
    derive_thresholds,
    compute_noise_profile,
    build_threshold_table,
)
from .schmitt import (
    SignalEvent,
    RegionDetection,
    SchmittTriggerDetector,
    search_frames,
    find_crossings,
    validate_candidate,
    detect_regions,
)

__all__ = [
    'LOW_NOISE',
    'HIGH_NOISE',
    'classify_noise',
    'derive_thresholds',
    'compute_noise_profile',
    'build_threshold_table',
    'SignalEvent',
    'RegionDetection',
    'SchmittTriggerDetector',
    'search_frames',
    'find_crossings',
    'validate_candidate',
    'detect_regions',
]
