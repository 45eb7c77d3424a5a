"""Tests for noise classification and threshold derivation."""
import numpy as np
import pytest

from glusnfr.core.config import AnalysisConfig, PRESETS
from glusnfr.detection.thresholds import (
    HIGH_NOISE,
    LOW_NOISE,
    build_threshold_table,
    classify_noise,
    compute_noise_profile,
    derive_thresholds,
)


class TestClassifyNoise:
    def test_low_at_cutoff(self):
        assert classify_noise(0.0067, 0.0067) == LOW_NOISE

    def test_high_above_cutoff(self):
        assert classify_noise(0.01, 0.0067) == HIGH_NOISE


class TestDeriveThresholds:
    def test_low_noise_multipliers(self):
        upper, lower = derive_thresholds(0.005, LOW_NOISE, 3.0, 4.0, 1.0)
        assert upper == pytest.approx(0.015)
        assert lower == pytest.approx(0.005)

    def test_high_noise_multipliers(self):
        upper, lower = derive_thresholds(0.01, HIGH_NOISE, 3.0, 4.5, 1.5)
        assert upper == pytest.approx(0.045)
        assert lower == pytest.approx(0.015)


class TestComputeNoiseProfile:
    def test_population_std_over_baseline(self):
        rng = np.random.RandomState(0)
        dff = rng.normal(0, 0.01, (600, 3))
        dff[300:] += 1.0  # outside the baseline window
        stds = compute_noise_profile(dff, (0, 200))
        np.testing.assert_allclose(stds, dff[:200].std(axis=0, ddof=0))

    def test_nan_aware(self):
        dff = np.zeros((300, 1))
        dff[::2, 0] = 1.0
        dff[5, 0] = np.nan
        stds = compute_noise_profile(dff, (0, 10))
        expected = np.nanstd(dff[:10, 0])
        assert stds[0] == pytest.approx(expected)


class TestBuildThresholdTable:
    def test_columns_and_index(self):
        table = build_threshold_table(['a', 'b'], [0.005, 0.02], AnalysisConfig())
        assert list(table.columns) == [
            'noise_std', 'effective_std', 'noise_class', 'upper_threshold', 'lower_threshold'
        ]
        assert list(table.index) == ['a', 'b']
        assert table.loc['a', 'noise_class'] == LOW_NOISE
        assert table.loc['b', 'noise_class'] == HIGH_NOISE
        assert table.loc['b', 'upper_threshold'] == pytest.approx(0.08)

    def test_noise_floor_for_flat_baseline(self):
        config = AnalysisConfig()
        table = build_threshold_table(['flat'], [0.0], config)
        row = table.loc['flat']
        assert row['noise_std'] == 0.0
        assert row['effective_std'] == config.noise_floor
        assert row['noise_class'] == LOW_NOISE
        assert row['upper_threshold'] == pytest.approx(0.0099)
        assert row['lower_threshold'] == pytest.approx(0.0033)
        assert row['lower_threshold'] < row['upper_threshold']

    def test_nan_std_uses_floor(self):
        table = build_threshold_table(['x'], [np.nan], AnalysisConfig())
        assert table.loc['x', 'effective_std'] == AnalysisConfig().noise_floor

    @pytest.mark.parametrize('preset', sorted(PRESETS))
    def test_lower_below_upper_for_presets(self, preset):
        config = PRESETS[preset]
        stds = np.concatenate([[0.0], np.logspace(-5, 0, 40)])
        table = build_threshold_table([f'r{i}' for i in range(len(stds))], stds, config)
        assert (table['lower_threshold'] < table['upper_threshold']).all()

    @pytest.mark.parametrize('low,high,lower', [
        (3.0, 4.0, 1.0),
        (3.0, 4.5, 1.5),
        (2.0, 2.5, 1.9),
        (5.0, 3.0, 0.5),
        (1.5, 6.0, 1.0),
    ])
    def test_lower_below_upper_multiplier_sweep(self, low, high, lower):
        config = AnalysisConfig(low_noise_multiplier=low, high_noise_multiplier=high,
                                lower_multiplier=lower)
        stds = np.concatenate([[0.0], np.logspace(-5, 0, 40)])
        table = build_threshold_table(range(len(stds)), stds, config)
        assert (table['lower_threshold'] < table['upper_threshold']).all()
