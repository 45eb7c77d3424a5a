"""dF/F normalization: fixed-window and rolling-median baselines."""

from .fixed_baseline import compute_fixed_baseline, baseline_f0
from .rolling_median import (
    PandasRollingWindow,
    DeviceRollingWindow,
    RollingBaselineResult,
    compute_rolling_median_baseline,
    fill_outliers,
)
from .normalizer import (
    BaselineNormalizer,
    NormalizationResult,
    METHOD_FIXED,
    METHOD_ROLLING,
)
from .comparison import BaselineComparison, compare_baselines

__all__ = [
    'compute_fixed_baseline',
    'baseline_f0',
    'PandasRollingWindow',
    'DeviceRollingWindow',
    'RollingBaselineResult',
    'compute_rolling_median_baseline',
    'fill_outliers',
    'BaselineNormalizer',
    'NormalizationResult',
    'METHOD_FIXED',
    'METHOD_ROLLING',
    'BaselineComparison',
    'compare_baselines',
]
