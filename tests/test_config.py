"""Tests for configuration and timing."""
import json

import pytest

from glusnfr.core.config import (
    AnalysisConfig,
    StimulusTiming,
    PRESETS,
    get_preset,
    list_presets,
)
from glusnfr.core.errors import ConfigurationError


# ============================================================================
# AnalysisConfig
# ============================================================================

class TestAnalysisConfig:
    def test_defaults(self):
        config = AnalysisConfig()
        assert config.min_f0 == 1e-6
        assert config.low_noise_multiplier == 3.0
        assert config.high_noise_multiplier == 4.0
        assert config.lower_multiplier == 1.0
        assert config.search_window_frames == 50
        assert config.max_crossings == 20
        assert config.min_accelerated_size == 50000
        assert config.memory_fraction == 0.8
        assert config.bytes_per_element == 4

    def test_double_precision_bytes(self):
        assert AnalysisConfig(use_single_precision=False).bytes_per_element == 8

    @pytest.mark.parametrize('lower', [3.0, 3.5])
    def test_lower_not_below_low_upper_rejected(self, lower):
        with pytest.raises(ConfigurationError):
            AnalysisConfig(lower_multiplier=lower, high_noise_multiplier=5.0)

    def test_lower_not_below_high_upper_rejected(self):
        with pytest.raises(ConfigurationError):
            AnalysisConfig(low_noise_multiplier=5.0, high_noise_multiplier=2.0, lower_multiplier=2.0)

    @pytest.mark.parametrize('window', [2, 4, 150, 1])
    def test_rolling_window_must_be_odd(self, window):
        with pytest.raises(ConfigurationError):
            AnalysisConfig(rolling_window_frames=window)

    @pytest.mark.parametrize('field_name,value', [
        ('min_f0', 0),
        ('memory_fraction', 0.0),
        ('memory_fraction', 1.5),
        ('min_speedup', 1.0),
        ('search_window_frames', 0),
        ('max_iterations', 0),
        ('max_workers', 0),
        ('outlier_sigma', -1.0),
        ('min_duration_frames', -1),
        ('memory_safety_factor', 0.5),
    ])
    def test_out_of_range_values_rejected(self, field_name, value):
        with pytest.raises(ConfigurationError):
            AnalysisConfig(**{field_name: value})

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            AnalysisConfig(min_f0=-1)

    def test_dict_round_trip(self):
        config = AnalysisConfig(config_id='custom', lower_multiplier=1.5, max_workers=4)
        assert AnalysisConfig.from_dict(config.to_dict()) == config

    def test_unknown_field_rejected(self):
        with pytest.raises(ConfigurationError, match='Unknown'):
            AnalysisConfig.from_dict({'not_a_field': 1})

    def test_replace_validates(self):
        config = AnalysisConfig()
        assert config.replace(max_crossings=5).max_crossings == 5
        with pytest.raises(ConfigurationError):
            config.replace(lower_multiplier=10.0)

    def test_json_file(self, tmp_path):
        path = tmp_path / 'config.json'
        config = get_preset('strict_v50')
        config.to_json(str(path))
        data = json.loads(path.read_text())
        assert data['lower_multiplier'] == 1.5
        assert AnalysisConfig.from_json(str(path)) == config


# ============================================================================
# Presets
# ============================================================================

class TestPresets:
    def test_list_presets(self):
        assert list_presets() == ['default', 'lenient_lower', 'strict_v50']

    def test_preset_ids_match_keys(self):
        for name, config in PRESETS.items():
            assert config.config_id == name

    def test_unknown_preset(self):
        with pytest.raises(ConfigurationError):
            get_preset('nope')

    def test_strict_preset_values(self):
        config = get_preset('strict_v50')
        assert config.high_noise_multiplier == 4.5
        assert config.lower_multiplier == 1.5
        assert config.min_duration_frames == 1


# ============================================================================
# StimulusTiming
# ============================================================================

class TestStimulusTiming:
    def test_single_stimulus(self):
        timing = StimulusTiming()
        assert timing.stimulus_frame == 266
        assert not timing.is_paired_pulse
        assert timing.second_stimulus_frame is None
        assert timing.experiment_type == '1AP'

    def test_paired_pulse(self):
        timing = StimulusTiming(ppf_interval_ms=50)
        assert timing.is_paired_pulse
        assert timing.second_stimulus_frame == 276
        assert timing.experiment_type == 'PPF'

    @pytest.mark.parametrize('interval_ms, expected', [
        (12.5, 269),   # 2.5 frames
        (17.5, 270),   # 3.5 frames
        (12.0, 268),
        (13.0, 269),
    ])
    def test_second_stimulus_half_frame_rounds_up(self, interval_ms, expected):
        timing = StimulusTiming(ms_per_frame=5.0, ppf_interval_ms=interval_ms)
        assert timing.second_stimulus_frame == expected

    def test_frame_to_ms(self):
        assert StimulusTiming().frame_to_ms(200) == 1000.0

    def test_baseline_slice(self):
        assert StimulusTiming(baseline_window=(10, 50)).baseline_slice() == slice(10, 50)

    @pytest.mark.parametrize('kwargs', [
        {'stimulus_frame': -1},
        {'ms_per_frame': 0},
        {'baseline_window': (50, 50)},
        {'baseline_window': (-1, 10)},
        {'ppf_interval_ms': 0},
    ])
    def test_invalid_timing(self, kwargs):
        with pytest.raises(ConfigurationError):
            StimulusTiming(**kwargs)
