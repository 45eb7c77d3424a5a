"""
ROI filtering: normalization, noise thresholds and Schmitt-trigger detection
for one recording.

Steps:
    1. validate the trace matrix and identifiers
    2. dF/F normalization (fixed baseline or rolling median)
    3. drop empty regions (no finite samples, or flat dF/F)
    4. noise profile and threshold table over the baseline window
    5. detection scan of every remaining region
    6. statistics and FilterResult with only the passing regions
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from ..core.config import AnalysisConfig, StimulusTiming, MIN_FRAMES
from ..core.errors import ConfigurationError, InvalidInputError
from ..detection.schmitt import RegionDetection, detect_regions, search_frames
from ..detection.thresholds import build_threshold_table, compute_noise_profile
from ..execution.accelerator import AcceleratorContext
from ..normalization.normalizer import (
    BaselineNormalizer,
    NormalizationResult,
    METHOD_FIXED,
    METHOD_ROLLING,
)
from .statistics import FilterStatistics, summarize

_logger = logging.getLogger(__name__)


@dataclass
class FilterResult:
    """
    Outcome of filter_regions.

    ``identifiers``, ``signal`` columns and ``thresholds`` rows are the
    passing regions in input order. The remaining fields keep the full
    picture: the normalized matrix of every input region, the noise and
    threshold summary of every analysed region, per-region detections and
    the identifiers dropped as empty.
    """
    identifiers: List[str]
    signal: pd.DataFrame
    thresholds: pd.DataFrame
    statistics: FilterStatistics
    normalized: pd.DataFrame
    noise_summary: pd.DataFrame
    detections: Dict[str, RegionDetection] = field(default_factory=dict)
    excluded: List[str] = field(default_factory=list)
    normalization: Optional[NormalizationResult] = None

    @property
    def is_empty(self) -> bool:
        return len(self.identifiers) == 0


def validate_traces(traces, identifiers: Optional[Sequence] = None) -> Tuple[np.ndarray, List[str], pd.Index]:
    """
    Check a trace matrix and return (values, identifiers, frame index).

    Accepts a DataFrame (columns are the identifiers) or any 2-D array with
    an identifier per column. Arrays without identifiers get ROI_1..ROI_n.

    Raises:
        InvalidInputError: empty, non-numeric, not 2-D, fewer than MIN_FRAMES
            frames, or identifiers that do not match the columns one to one.
    """
    if isinstance(traces, pd.DataFrame):
        if identifiers is None:
            identifiers = list(traces.columns)
        non_numeric = [c for c, dtype in traces.dtypes.items()
                       if not pd.api.types.is_numeric_dtype(dtype) or pd.api.types.is_bool_dtype(dtype)]
        if non_numeric:
            raise InvalidInputError(f"Non-numeric trace columns: {non_numeric[:5]}")
        index = traces.index
        values = traces.to_numpy(dtype=np.float64)
    else:
        values = np.asarray(traces)
        if values.dtype.kind not in 'iuf':
            raise InvalidInputError(f"Trace matrix must be numeric, got dtype {values.dtype}")
        values = values.astype(np.float64, copy=False)
        index = None

    if values.ndim != 2:
        raise InvalidInputError(f"Trace matrix must be 2-D (frames x regions), got shape {values.shape}")
    if values.size == 0:
        raise InvalidInputError(f"Trace matrix is empty (shape {values.shape})")
    n_frames, n_regions = values.shape
    if n_frames < MIN_FRAMES:
        raise InvalidInputError(f"Trace matrix has {n_frames} frames, at least {MIN_FRAMES} required")

    if identifiers is None:
        identifiers = [f'ROI_{j + 1}' for j in range(n_regions)]
    identifiers = [str(i) for i in identifiers]
    if len(identifiers) != n_regions:
        raise InvalidInputError(f"{len(identifiers)} identifiers for {n_regions} regions")
    duplicates = pd.Index(identifiers)[pd.Index(identifiers).duplicated()].unique().tolist()
    if duplicates:
        raise InvalidInputError(f"Duplicate region identifiers: {duplicates[:5]}")

    if index is None:
        index = pd.RangeIndex(n_frames, name='frame')
    return values, identifiers, index


def find_empty_regions(raw: np.ndarray, dff: np.ndarray) -> np.ndarray:
    """Boolean mask of regions with no finite raw sample or a flat dF/F."""
    no_data = ~np.isfinite(raw).any(axis=0)
    flat = np.var(np.asarray(dff, dtype=np.float64), axis=0) == 0
    return no_data | flat


def filter_regions(
    traces,
    timing: StimulusTiming,
    config: Optional[AnalysisConfig] = None,
    identifiers: Optional[Sequence] = None,
    context: Optional[AcceleratorContext] = None,
    method: str = METHOD_FIXED,
    logger=None,
) -> FilterResult:
    """
    Normalize a recording and keep the regions with a stimulus-evoked response.

    Args:
        traces: frames x regions raw intensity (DataFrame or 2-D array).
        timing: Stimulus and baseline timing of the recording.
        config: Analysis configuration (defaults when None).
        identifiers: Region names for array input.
        context: Shared accelerator handle; CPU only when None.
        method: 'fixed' or 'rolling_median'.
        logger: Logger (or RunLogger) for progress messages.

    Returns:
        FilterResult; empty (never an exception) when no region passes.
    """
    config = config or AnalysisConfig()
    log = logger or _logger

    if method not in (METHOD_FIXED, METHOD_ROLLING):
        raise ConfigurationError(f"Unknown normalization method '{method}'")

    values, ids, frame_index = validate_traces(traces, identifiers)
    n_frames, n_regions = values.shape
    start, stop = timing.baseline_window
    if stop > n_frames:
        raise InvalidInputError(f"Baseline window {timing.baseline_window} exceeds {n_frames} frames")

    # Normalization
    normalizer = BaselineNormalizer(config, context)
    if method == METHOD_FIXED:
        normalization = normalizer.normalize(values, timing.baseline_window)
    else:
        normalization = normalizer.normalize_rolling(values)
    if normalization.fallback_reason:
        log.warning(f"Accelerated normalization failed, used CPU: {normalization.fallback_reason}")
    dff = normalization.dff
    normalized = pd.DataFrame(dff, index=frame_index, columns=ids)

    # Empty-region cleanup
    empty = find_empty_regions(values, dff)
    excluded = [ids[j] for j in np.flatnonzero(empty)]
    kept = np.flatnonzero(~empty)
    kept_ids = [ids[j] for j in kept]
    if excluded:
        log.info(f"Excluded {len(excluded)} empty ROIs")
        log.debug(f"Excluded ROIs: {excluded}")

    # Thresholds
    kept_dff = dff[:, kept]
    stds = compute_noise_profile(kept_dff, timing.baseline_window)
    noise_summary = build_threshold_table(kept_ids, stds, config)

    # Detection
    frames = search_frames(n_frames, timing, config)
    detection_list = detect_regions(
        kept_dff,
        noise_summary['upper_threshold'].to_numpy(),
        noise_summary['lower_threshold'].to_numpy(),
        frames,
        config,
    )
    detections = dict(zip(kept_ids, detection_list))
    for roi_id, det in detections.items():
        if not det.passed:
            log.debug(f"{roi_id}: rejected ({det.valid_events} valid, {det.invalid_events} invalid, "
                      f"{len(det.crossing_frames)} crossings)")

    passed_ids = [roi_id for roi_id in kept_ids if detections[roi_id].passed]

    statistics = summarize(
        timing.experiment_type,
        method,
        total_rois=n_regions,
        excluded_rois=len(excluded),
        noise_summary=noise_summary,
        detections=detection_list,
        accelerated=normalization.accelerated,
    )
    log.info(statistics.summary)

    return FilterResult(
        identifiers=passed_ids,
        signal=normalized.loc[:, passed_ids].copy(),
        thresholds=noise_summary.loc[passed_ids].copy(),
        statistics=statistics,
        normalized=normalized,
        noise_summary=noise_summary,
        detections=detections,
        excluded=excluded,
        normalization=normalization,
    )
