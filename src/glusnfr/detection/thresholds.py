"""
Noise classification and hysteresis thresholds.

Each region's baseline noise (population std of dF/F over the baseline window)
decides whether it is a low- or high-noise region, and the Schmitt trigger
thresholds are multiples of that noise:

    upper = std * low_noise_multiplier    (low noise)
    upper = std * high_noise_multiplier   (high noise)
    lower = std * lower_multiplier

A std below ``noise_floor`` is raised to the floor first, so a perfectly
flat baseline still gets a usable threshold pair with lower < upper.
"""
import warnings
from typing import Sequence, Tuple

import numpy as np
import pandas as pd

from ..core.config import AnalysisConfig

LOW_NOISE = 'low'
HIGH_NOISE = 'high'


def classify_noise(std: float, noise_cutoff: float) -> str:
    return LOW_NOISE if std <= noise_cutoff else HIGH_NOISE


def derive_thresholds(std: float, classification: str, low_multiplier: float,
                      high_multiplier: float, lower_multiplier: float) -> Tuple[float, float]:
    """Return (upper, lower) for one region."""
    multiplier = low_multiplier if classification == LOW_NOISE else high_multiplier
    return std * multiplier, std * lower_multiplier


def compute_noise_profile(dff: np.ndarray, baseline_window: Tuple[int, int]) -> np.ndarray:
    """Population std (ddof=0) of each column over the baseline frames, NaN-aware."""
    start, stop = baseline_window
    with warnings.catch_warnings():
        warnings.simplefilter('ignore', category=RuntimeWarning)
        return np.nanstd(np.asarray(dff, dtype=np.float64)[start:stop], axis=0)


def build_threshold_table(identifiers: Sequence, stds: Sequence[float],
                          config: AnalysisConfig) -> pd.DataFrame:
    """
    Threshold table indexed by region identifier.

    Columns: noise_std, effective_std, noise_class, upper_threshold,
    lower_threshold.
    """
    rows = []
    for std in stds:
        std = float(std)
        effective = std if np.isfinite(std) and std > config.noise_floor else config.noise_floor
        noise_class = classify_noise(effective, config.noise_cutoff)
        upper, lower = derive_thresholds(
            effective, noise_class,
            config.low_noise_multiplier, config.high_noise_multiplier, config.lower_multiplier,
        )
        rows.append({
            'noise_std': std,
            'effective_std': effective,
            'noise_class': noise_class,
            'upper_threshold': upper,
            'lower_threshold': lower,
        })

    columns = ['noise_std', 'effective_std', 'noise_class', 'upper_threshold', 'lower_threshold']
    table = pd.DataFrame(rows, columns=columns, index=pd.Index(list(identifiers), name='roi'))
    return table
