"""
Schmitt-trigger response detection.

A region's dF/F trace is scanned only inside the post-stimulus search window
(one window per stimulus for paired-pulse recordings). A candidate event
starts when the trace rises above the upper threshold and ends at the first
later frame below the lower threshold. Each candidate is then judged on:

    - duration (frames between crossing and decay)
    - peak amplitude relative to the upper threshold
    - decay shape (second half of the event should not exceed the first)
    - noisiness of short events

A candidate that never drops below the lower threshold within the decay
horizon is a sustained response and counts as valid. A region passes when it
has at least one valid event. Regions that cross the upper threshold too many
times inside the window are treated as noise without looking at events.
"""
import logging
import math
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np

from ..core.config import AnalysisConfig, StimulusTiming

logger = logging.getLogger(__name__)


@dataclass
class SignalEvent:
    """One candidate response, from upper crossing to decay (or horizon)."""
    start_frame: int
    end_frame: int
    peak_amplitude: float
    duration: int
    valid: bool
    sustained: bool = False
    reason: str = ''


@dataclass
class RegionDetection:
    """Detection outcome for one region."""
    passed: bool = False
    valid_events: int = 0
    invalid_events: int = 0
    valid_durations: List[int] = field(default_factory=list)
    crossing_frames: List[int] = field(default_factory=list)
    events: List[SignalEvent] = field(default_factory=list)
    triggered: bool = False
    excessive_crossings: bool = False


def search_frames(n_frames: int, timing: StimulusTiming, config: AnalysisConfig) -> np.ndarray:
    """
    Frames scanned for responses, sorted and clipped to the trace.

    Single stimulus: the ``search_window_frames`` frames after the stimulus.
    Paired pulse: the union of the windows after each of the two stimuli.
    """
    stim = timing.stimulus_frame
    if timing.is_paired_pulse:
        second = timing.second_stimulus_frame
        ranges = [
            np.arange(stim + 1, stim + 1 + config.ppf_first_window_frames),
            np.arange(second + 1, second + 1 + config.ppf_second_window_frames),
        ]
    else:
        ranges = [np.arange(stim + 1, stim + 1 + config.search_window_frames)]

    frames = np.unique(np.concatenate(ranges))
    return frames[(frames >= 0) & (frames < n_frames)]


def find_crossings(trace: np.ndarray, frames: np.ndarray, upper: float) -> np.ndarray:
    """
    Rising edges above ``upper`` inside the search frames.

    A run that is already above threshold at the start of a window counts as
    one crossing; a gap between paired-pulse windows starts a new run.
    """
    above = trace[frames] > upper
    if not above.any():
        return np.empty(0, dtype=int)
    previous_above = np.concatenate([[False], above[:-1]])
    contiguous = np.concatenate([[False], np.diff(frames) == 1])
    rising = above & ~(previous_above & contiguous)
    return frames[rising]


def validate_candidate(segment: np.ndarray, duration: int, upper: float,
                       config: AnalysisConfig) -> Tuple[bool, str]:
    """
    Judge the candidate window trace[crossing..decay].

    Returns:
        (valid, reason)
    """
    if duration <= config.min_duration_frames:
        return False, 'too_short'

    peak = float(np.max(segment))
    if peak < upper * config.peak_amplitude_factor:
        return False, 'low_peak'

    # Short events are judged on amplitude alone
    if duration <= config.short_signal_cutoff_frames:
        if peak >= upper:
            return True, 'short'
        return False, 'low_peak'

    half = math.ceil(len(segment) / 2)
    first_half, second_half = segment[:half], segment[half:]
    if len(second_half):
        with np.errstate(divide='ignore', invalid='ignore'):
            decay_ratio = np.mean(second_half) / np.mean(first_half)
        if decay_ratio > config.max_decay_ratio:
            return False, 'no_decay'

    if duration < config.noise_check_max_duration_frames:
        if np.std(segment, ddof=1) > np.mean(segment) * config.max_noise_ratio:
            return False, 'noisy'

    return True, 'valid'


class SchmittTriggerDetector:
    """Hysteresis detector; thresholds are supplied per region."""

    def __init__(self, config: Optional[AnalysisConfig] = None):
        self.config = config or AnalysisConfig()

    def scan(self, trace, upper: float, lower: float, frames: np.ndarray) -> RegionDetection:
        cfg = self.config
        trace = np.asarray(trace, dtype=np.float64)
        frames = np.asarray(frames, dtype=int)
        result = RegionDetection()

        if frames.size == 0:
            return result

        crossings = find_crossings(trace, frames, upper)
        result.crossing_frames = crossings.tolist()
        if crossings.size == 0:
            return result

        result.triggered = True
        if crossings.size > cfg.max_crossings:
            result.excessive_crossings = True
            return result

        last_frame = len(trace) - 1
        armed_frames = frames[trace[frames] > upper]
        i = 0
        while i < len(armed_frames):
            f = int(armed_frames[i])
            scan_end = min(f + cfg.decay_horizon_frames, last_frame)
            if scan_end <= f:
                # Crossing on the last frame has nothing to decay into
                break

            below = np.flatnonzero(trace[f + 1:scan_end + 1] < lower)
            if below.size == 0:
                event = SignalEvent(
                    start_frame=f,
                    end_frame=scan_end,
                    peak_amplitude=float(np.max(trace[f:scan_end + 1])),
                    duration=cfg.decay_horizon_frames,
                    valid=True,
                    sustained=True,
                    reason='sustained',
                )
                resolved = scan_end
            else:
                d = f + 1 + int(below[0])
                segment = trace[f:d + 1]
                valid, reason = validate_candidate(segment, d - f, upper, cfg)
                event = SignalEvent(
                    start_frame=f,
                    end_frame=d,
                    peak_amplitude=float(np.max(segment)),
                    duration=d - f,
                    valid=valid,
                    reason=reason,
                )
                resolved = d

            result.events.append(event)
            if event.valid:
                result.valid_events += 1
                result.valid_durations.append(event.duration)
            else:
                result.invalid_events += 1

            i = int(np.searchsorted(armed_frames, resolved, side='right'))

        result.passed = result.valid_events > 0
        return result


def detect_regions(dff: np.ndarray, uppers: Sequence[float], lowers: Sequence[float],
                   frames: np.ndarray, config: Optional[AnalysisConfig] = None) -> List[RegionDetection]:
    """
    Run the detector on every column of ``dff``.

    Columns are independent; with ``config.max_workers > 1`` they are scanned
    on a thread pool. Results are always returned in column order.
    """
    config = config or AnalysisConfig()
    detector = SchmittTriggerDetector(config)
    n_regions = dff.shape[1]

    if config.max_workers <= 1 or n_regions <= 1:
        return [detector.scan(dff[:, j], uppers[j], lowers[j], frames) for j in range(n_regions)]

    results: List[Optional[RegionDetection]] = [None] * n_regions
    with ThreadPoolExecutor(max_workers=config.max_workers) as executor:
        futures = {
            executor.submit(detector.scan, dff[:, j], uppers[j], lowers[j], frames): j
            for j in range(n_regions)
        }
        for future in as_completed(futures):
            results[futures[future]] = future.result()
    return results
