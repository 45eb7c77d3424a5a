"""
Fixed-window baseline normalization.

F0 is the mean intensity of each region over the pre-stimulus baseline
window; dF/F = (F - F0) / F0. The same code runs on numpy or on a device
array module passed as ``xp``.
"""
import warnings
from typing import Tuple

import numpy as np


def baseline_f0(data, baseline_window: Tuple[int, int], min_f0: float, xp=np):
    """
    Per-region baseline fluorescence.

    NaN samples are ignored. Non-positive means are clamped to min_f0; an
    all-NaN baseline stays NaN so the region normalizes to zeros instead of
    blowing up.
    """
    start, stop = baseline_window
    with warnings.catch_warnings():
        warnings.simplefilter('ignore', category=RuntimeWarning)
        f0 = xp.nanmean(data[start:stop], axis=0)
    return xp.where(f0 <= 0, xp.asarray(min_f0, dtype=f0.dtype), f0)


def compute_fixed_baseline(trace, baseline_window: Tuple[int, int], min_f0: float = 1e-6,
                           xp=np, dtype=np.float32):
    """
    Convert raw intensity into dF/F against a fixed baseline window.

    Args:
        trace: frames x regions intensity matrix (host or device array).
        baseline_window: Half-open (start, stop) frame range.
        min_f0: Floor applied to non-positive baselines.
        xp: Array module the computation runs in.
        dtype: Working precision.

    Returns:
        dF/F matrix of the same shape in ``xp``, non-finite values set to 0.
    """
    data = xp.asarray(trace, dtype=dtype)
    f0 = baseline_f0(data, baseline_window, min_f0, xp=xp)
    with np.errstate(divide='ignore', invalid='ignore'):
        dff = (data - f0) / f0
    dff = xp.where(xp.isfinite(dff), dff, 0)
    return dff.astype(dtype, copy=False)
