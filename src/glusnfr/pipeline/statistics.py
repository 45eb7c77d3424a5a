"""
Summary statistics for one ROI filtering run.
"""
from dataclasses import dataclass, asdict
from typing import Any, Dict, Sequence

import pandas as pd

from ..detection.schmitt import RegionDetection
from ..detection.thresholds import LOW_NOISE, HIGH_NOISE


@dataclass
class FilterStatistics:
    experiment_type: str
    method: str
    total_rois: int = 0
    excluded_rois: int = 0
    analysed_rois: int = 0
    passed_rois: int = 0
    failed_rois: int = 0
    filter_rate: float = 0.0
    low_noise_rois: int = 0
    high_noise_rois: int = 0
    low_noise_passed: int = 0
    high_noise_passed: int = 0
    triggered_rois: int = 0
    valid_signals_total: int = 0
    invalid_signals_total: int = 0
    excessive_crossing_rois: int = 0
    trigger_rate: float = 0.0
    signal_validity_rate: float = 0.0
    accelerated: bool = False
    summary: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def summarize(experiment_type: str, method: str, total_rois: int, excluded_rois: int,
              noise_summary: pd.DataFrame, detections: Sequence[RegionDetection],
              accelerated: bool = False) -> FilterStatistics:
    """
    Build FilterStatistics from the analysed regions.

    ``noise_summary`` and ``detections`` must cover the same regions in the
    same order (everything that survived exclusion).
    """
    stats = FilterStatistics(
        experiment_type=experiment_type,
        method=method,
        total_rois=total_rois,
        excluded_rois=excluded_rois,
        analysed_rois=len(detections),
        accelerated=accelerated,
    )

    if not detections:
        stats.summary = f"{experiment_type} Schmitt: No ROIs to filter"
        return stats

    passed = pd.Series([d.passed for d in detections], index=noise_summary.index)
    noise_class = noise_summary['noise_class']

    stats.passed_rois = int(passed.sum())
    stats.failed_rois = stats.analysed_rois - stats.passed_rois
    stats.filter_rate = stats.passed_rois / stats.analysed_rois

    stats.low_noise_rois = int((noise_class == LOW_NOISE).sum())
    stats.high_noise_rois = int((noise_class == HIGH_NOISE).sum())
    stats.low_noise_passed = int((passed & (noise_class == LOW_NOISE)).sum())
    stats.high_noise_passed = int((passed & (noise_class == HIGH_NOISE)).sum())

    stats.triggered_rois = sum(1 for d in detections if d.triggered)
    stats.valid_signals_total = sum(d.valid_events for d in detections)
    stats.invalid_signals_total = sum(d.invalid_events for d in detections)
    stats.excessive_crossing_rois = sum(1 for d in detections if d.excessive_crossings)
    stats.trigger_rate = stats.triggered_rois / stats.analysed_rois

    n_events = stats.valid_signals_total + stats.invalid_signals_total
    stats.signal_validity_rate = stats.valid_signals_total / n_events if n_events else 0.0

    stats.summary = (
        f"{experiment_type} Schmitt: {stats.passed_rois}/{stats.analysed_rois} ROIs passed "
        f"({stats.filter_rate * 100:.1f}%), {stats.triggered_rois} triggered, "
        f"{stats.signal_validity_rate * 100:.1f}% signals valid"
    )
    return stats
