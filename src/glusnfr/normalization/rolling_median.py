"""
Iterative rolling-median baseline.

The baseline of each region follows slow drift with a centered rolling median.
Samples that sit more than ``outlier_sigma`` rolling standard deviations away
from the baseline are treated as transients: they are replaced by the last
accepted sample and the median is recomputed on the cleaned trace. After the
last pass dF/F = (F - baseline) / baseline.

Windows shrink at the trace edges (pandas ``min_periods=1``), and must have an
odd length so the centered window is symmetric.
"""
import logging
import warnings
from dataclasses import dataclass, field
from typing import List

import numpy as np
import pandas as pd

from ..core.errors import ConfigurationError

logger = logging.getLogger(__name__)


def _check_window(window_frames: int):
    if not isinstance(window_frames, (int, np.integer)) or window_frames < 3 or window_frames % 2 == 0:
        raise ConfigurationError(f"window_frames must be an odd integer >= 3, got {window_frames!r}")


class PandasRollingWindow:
    """Centered rolling statistics on the CPU."""

    def __init__(self, window: int):
        _check_window(window)
        self.window = int(window)

    def median(self, frame: pd.DataFrame) -> pd.DataFrame:
        return frame.rolling(window=self.window, min_periods=1, center=True).median()

    def std(self, frame: pd.DataFrame) -> pd.DataFrame:
        return frame.rolling(window=self.window, min_periods=1, center=True).std(ddof=1)


class DeviceRollingWindow:
    """
    Centered rolling statistics computed with an accelerator array module.

    The columns are NaN padded by half a window on both ends and viewed as
    overlapping windows; ``nanmedian`` / ``nanstd`` then ignore the padding,
    which reproduces the shrinking edge windows of PandasRollingWindow.
    Memory use is about ``window`` times the input size.
    """

    def __init__(self, window: int, context, dtype=np.float32):
        _check_window(window)
        self.window = int(window)
        self.context = context
        self.dtype = dtype

    def _apply(self, frame: pd.DataFrame, reducer_name: str, **kwargs) -> pd.DataFrame:
        xp = self.context.xp
        half = self.window // 2
        data = self.context.to_device(frame.to_numpy(dtype=np.float64), dtype=self.dtype)
        padded = xp.pad(data, ((half, half), (0, 0)), mode='constant', constant_values=np.nan)
        windows = xp.lib.stride_tricks.sliding_window_view(padded, self.window, axis=0)
        reducer = getattr(xp, reducer_name)
        with warnings.catch_warnings():
            warnings.simplefilter('ignore', category=RuntimeWarning)
            result = reducer(windows, axis=-1, **kwargs)
        return pd.DataFrame(self.context.to_host(result).astype(np.float64),
                            index=frame.index, columns=frame.columns)

    def median(self, frame: pd.DataFrame) -> pd.DataFrame:
        return self._apply(frame, 'nanmedian')

    def std(self, frame: pd.DataFrame) -> pd.DataFrame:
        return self._apply(frame, 'nanstd', ddof=1)


def fill_outliers(frame: pd.DataFrame, mask: pd.DataFrame) -> pd.DataFrame:
    """
    Replace flagged samples with the last non-flagged sample of their column.

    A flagged run at the start of a column has no previous sample and is
    seeded with the first non-flagged one. Returns a new frame; the input is
    not modified.
    """
    filled = frame.mask(mask).ffill().bfill()
    return frame.where(~mask, filled)


@dataclass
class RollingBaselineResult:
    dff: np.ndarray
    baseline: np.ndarray
    outlier_counts: List[int] = field(default_factory=list)


def compute_rolling_median_baseline(trace, window_frames: int, outlier_sigma: float = 2.5,
                                    max_iterations: int = 3, roller=None) -> RollingBaselineResult:
    """
    Rolling-median dF/F with iterative outlier replacement.

    Args:
        trace: frames x regions intensity matrix.
        window_frames: Odd rolling window length in frames.
        outlier_sigma: Residuals beyond this many rolling std are outliers.
        max_iterations: Number of baseline passes; 1 means a single rolling
            median with no outlier replacement.
        roller: Object with ``median(frame)`` and ``std(frame)``;
            PandasRollingWindow(window_frames) when None.

    Returns:
        RollingBaselineResult with dF/F, the final baseline and the number of
        outliers flagged in each refinement pass.
    """
    _check_window(window_frames)
    if max_iterations < 1:
        raise ConfigurationError(f"max_iterations must be >= 1, got {max_iterations}")
    roller = roller or PandasRollingWindow(window_frames)

    original = pd.DataFrame(np.asarray(trace, dtype=np.float64))
    cleaned = original
    outlier_counts = []

    for iteration in range(max_iterations):
        baseline = roller.median(cleaned)
        if iteration == max_iterations - 1:
            break

        residual = cleaned - baseline
        spread = roller.std(residual)
        mask = residual.abs() > outlier_sigma * spread
        n_outliers = int(mask.to_numpy().sum())
        outlier_counts.append(n_outliers)
        logger.debug(f"Rolling baseline pass {iteration + 1}: {n_outliers} outliers")
        if n_outliers == 0:
            break
        cleaned = fill_outliers(cleaned, mask)

    base = baseline.to_numpy()
    with np.errstate(divide='ignore', invalid='ignore'):
        dff = (original.to_numpy() - base) / base
    dff[~np.isfinite(dff)] = 0

    return RollingBaselineResult(dff=dff, baseline=base, outlier_counts=outlier_counts)
