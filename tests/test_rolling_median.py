"""Tests for the iterative rolling-median baseline."""
import numpy as np
import pandas as pd
import pytest

from glusnfr.core.errors import ConfigurationError
from glusnfr.execution.accelerator import AcceleratorContext
from glusnfr.normalization.rolling_median import (
    DeviceRollingWindow,
    PandasRollingWindow,
    compute_rolling_median_baseline,
    fill_outliers,
)


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def spiky_trace():
    """Flat 100 with small noise and one large transient at frame 300."""
    rng = np.random.RandomState(11)
    trace = 100 + rng.normal(0, 0.5, 600)
    trace[300] = 200.0
    return trace[:, None]


@pytest.fixture
def frame_with_gaps():
    rng = np.random.RandomState(5)
    data = rng.normal(10, 2, (200, 4))
    data[20:24, 1] = np.nan
    data[:3, 2] = np.nan
    return pd.DataFrame(data)


# ============================================================================
# fill_outliers
# ============================================================================

class TestFillOutliers:
    def test_forward_fill_from_last_good_sample(self):
        frame = pd.DataFrame({'a': [1.0, 2.0, 50.0, 60.0, 3.0]})
        mask = pd.DataFrame({'a': [False, False, True, True, False]})
        result = fill_outliers(frame, mask)
        np.testing.assert_array_equal(result['a'].values, [1.0, 2.0, 2.0, 2.0, 3.0])

    def test_leading_outliers_seeded_with_first_good_sample(self):
        frame = pd.DataFrame({'a': [90.0, 80.0, 4.0, 5.0]})
        mask = pd.DataFrame({'a': [True, True, False, False]})
        result = fill_outliers(frame, mask)
        np.testing.assert_array_equal(result['a'].values, [4.0, 4.0, 4.0, 5.0])

    def test_columns_filled_independently(self):
        frame = pd.DataFrame({'a': [1.0, 9.0, 3.0], 'b': [7.0, 8.0, 99.0]})
        mask = pd.DataFrame({'a': [False, True, False], 'b': [False, False, True]})
        result = fill_outliers(frame, mask)
        np.testing.assert_array_equal(result['a'].values, [1.0, 1.0, 3.0])
        np.testing.assert_array_equal(result['b'].values, [7.0, 8.0, 8.0])

    def test_does_not_modify_input(self):
        frame = pd.DataFrame({'a': [1.0, 50.0, 3.0]})
        mask = pd.DataFrame({'a': [False, True, False]})
        original = frame.copy()
        fill_outliers(frame, mask)
        pd.testing.assert_frame_equal(frame, original)

    def test_unflagged_nan_kept(self):
        frame = pd.DataFrame({'a': [1.0, np.nan, 50.0, 3.0]})
        mask = pd.DataFrame({'a': [False, False, True, False]})
        result = fill_outliers(frame, mask)
        assert np.isnan(result['a'].iloc[1])
        assert result['a'].iloc[2] == 1.0


# ============================================================================
# compute_rolling_median_baseline
# ============================================================================

class TestRollingMedianBaseline:
    def test_single_iteration_is_plain_rolling_median(self, spiky_trace):
        result = compute_rolling_median_baseline(spiky_trace, 31, max_iterations=1)
        expected = pd.DataFrame(spiky_trace).rolling(31, min_periods=1, center=True).median()
        np.testing.assert_allclose(result.baseline, expected.values)
        assert result.outlier_counts == []

    def test_edges_shrink(self, spiky_trace):
        result = compute_rolling_median_baseline(spiky_trace, 31, max_iterations=1)
        # frame 0 sees frames 0..15 only
        assert result.baseline[0, 0] == pytest.approx(np.median(spiky_trace[:16, 0]))
        assert result.baseline[-1, 0] == pytest.approx(np.median(spiky_trace[-16:, 0]))

    def test_transient_flagged_and_preserved_in_dff(self, spiky_trace):
        result = compute_rolling_median_baseline(spiky_trace, 151, outlier_sigma=2.5, max_iterations=3)
        assert result.outlier_counts[0] >= 1
        assert abs(result.baseline[300, 0] - 100.0) < 1.0
        assert result.dff[300, 0] == pytest.approx(1.0, abs=0.05)

    def test_stops_when_nothing_flagged(self):
        trace = np.full((400, 2), 50.0)
        result = compute_rolling_median_baseline(trace, 21, max_iterations=5)
        assert result.outlier_counts == [0]
        np.testing.assert_array_equal(result.dff, 0.0)
        np.testing.assert_array_equal(result.baseline, 50.0)

    def test_at_most_max_iterations_minus_one_refinements(self, spiky_trace):
        result = compute_rolling_median_baseline(spiky_trace, 31, max_iterations=3)
        assert len(result.outlier_counts) <= 2

    def test_non_finite_dff_zeroed(self):
        trace = np.full((300, 2), 10.0)
        trace[:, 1] = 0.0
        result = compute_rolling_median_baseline(trace, 11)
        np.testing.assert_array_equal(result.dff[:, 1], 0.0)

    def test_shape_preserved(self, noisy_traces):
        result = compute_rolling_median_baseline(noisy_traces, 51)
        assert result.dff.shape == noisy_traces.shape
        assert result.baseline.shape == noisy_traces.shape

    @pytest.mark.parametrize('window', [2, 10, 1, 0])
    def test_even_or_tiny_window_rejected(self, window, noisy_traces):
        with pytest.raises(ConfigurationError):
            compute_rolling_median_baseline(noisy_traces, window)

    def test_input_not_modified(self, spiky_trace):
        original = spiky_trace.copy()
        compute_rolling_median_baseline(spiky_trace, 151)
        np.testing.assert_array_equal(spiky_trace, original)


# ============================================================================
# Device rolling window
# ============================================================================

class TestDeviceRollingWindow:
    @pytest.mark.parametrize('window', [3, 11, 51])
    def test_median_matches_pandas(self, frame_with_gaps, window):
        context = AcceleratorContext(xp=np, memory_bytes=10**9)
        expected = PandasRollingWindow(window).median(frame_with_gaps)
        result = DeviceRollingWindow(window, context, dtype=np.float64).median(frame_with_gaps)
        pd.testing.assert_frame_equal(result, expected, rtol=1e-10)

    @pytest.mark.parametrize('window', [3, 11, 51])
    def test_std_matches_pandas(self, frame_with_gaps, window):
        context = AcceleratorContext(xp=np, memory_bytes=10**9)
        expected = PandasRollingWindow(window).std(frame_with_gaps)
        result = DeviceRollingWindow(window, context, dtype=np.float64).std(frame_with_gaps)
        pd.testing.assert_frame_equal(result, expected, rtol=1e-8)

    def test_full_baseline_matches_cpu(self, spiky_trace):
        context = AcceleratorContext(xp=np, memory_bytes=10**9)
        roller = DeviceRollingWindow(151, context, dtype=np.float64)
        cpu = compute_rolling_median_baseline(spiky_trace, 151)
        device = compute_rolling_median_baseline(spiky_trace, 151, roller=roller)
        np.testing.assert_allclose(device.dff, cpu.dff, rtol=1e-5, atol=1e-9)
        assert device.outlier_counts == cpu.outlier_counts

    def test_even_window_rejected(self):
        with pytest.raises(ConfigurationError):
            DeviceRollingWindow(4, AcceleratorContext(xp=np, memory_bytes=1))
