"""
Analysis configuration management.

Every tunable constant of the normalization and detection core lives in
AnalysisConfig. Several constants were tuned differently across analysis
versions (lower threshold multiplier, peak amplitude factor, minimum signal
duration), so they are plain fields and the historical variants are kept as
named presets rather than baked into the detector.

Timing of a recording (stimulus frame, paired-pulse interval, baseline window)
belongs to the experiment, not the analysis, and is supplied separately as a
StimulusTiming value.
"""
from dataclasses import dataclass, asdict, fields
from typing import Dict, Any, List, Optional, Tuple
import json
import math

from .errors import ConfigurationError


MIN_FRAMES = 300


def _require(condition: bool, message: str):
    if not condition:
        raise ConfigurationError(message)


@dataclass(frozen=True)
class AnalysisConfig:
    """Configuration for one normalization + ROI filtering run."""
    config_id: str = 'default'
    description: str = ''

    # dF/F normalization
    min_f0: float = 1e-6
    use_single_precision: bool = True

    # Noise classification and Schmitt thresholds (multiples of baseline sigma)
    noise_cutoff: float = 0.0067  # sigma; 3 sigma ~ 0.02 dF/F
    noise_floor: float = 0.0033   # sigma; keeps 3 sigma >= 0.01 for silent baselines
    low_noise_multiplier: float = 3.0
    high_noise_multiplier: float = 4.0
    lower_multiplier: float = 1.0

    # Search windows (frames after each stimulus onset)
    search_window_frames: int = 50
    ppf_first_window_frames: int = 50
    ppf_second_window_frames: int = 50
    decay_horizon_frames: int = 50

    # Event validation
    min_duration_frames: int = 0
    peak_amplitude_factor: float = 1.1
    max_decay_ratio: float = 1.5
    max_noise_ratio: float = 0.5
    short_signal_cutoff_frames: int = 2
    noise_check_max_duration_frames: int = 5
    max_crossings: int = 20

    # Accelerator dispatch
    min_accelerated_size: int = 50000
    memory_fraction: float = 0.8
    min_speedup: float = 0.2
    large_dataset_override: int = 500000
    memory_safety_factor: float = 3.0

    # Rolling-median baseline
    rolling_window_frames: int = 151  # ~750 ms at 200 Hz
    outlier_sigma: float = 2.5
    max_iterations: int = 3

    # Parallel detection across regions
    max_workers: int = 1

    def __post_init__(self):
        _require(self.min_f0 > 0, f"min_f0 must be > 0, got {self.min_f0}")
        _require(self.noise_cutoff > 0, f"noise_cutoff must be > 0, got {self.noise_cutoff}")
        _require(self.noise_floor > 0, f"noise_floor must be > 0, got {self.noise_floor}")
        _require(self.lower_multiplier > 0, f"lower_multiplier must be > 0, got {self.lower_multiplier}")
        _require(
            self.lower_multiplier < self.low_noise_multiplier,
            f"lower_multiplier ({self.lower_multiplier}) must be below "
            f"low_noise_multiplier ({self.low_noise_multiplier})",
        )
        _require(
            self.lower_multiplier < self.high_noise_multiplier,
            f"lower_multiplier ({self.lower_multiplier}) must be below "
            f"high_noise_multiplier ({self.high_noise_multiplier})",
        )

        for name in ('search_window_frames', 'ppf_first_window_frames',
                     'ppf_second_window_frames', 'decay_horizon_frames', 'max_crossings',
                     'max_iterations', 'max_workers', 'min_accelerated_size'):
            value = getattr(self, name)
            _require(isinstance(value, int) and value >= 1, f"{name} must be an integer >= 1, got {value!r}")

        _require(self.min_duration_frames >= 0,
                 f"min_duration_frames must be >= 0, got {self.min_duration_frames}")
        _require(self.short_signal_cutoff_frames >= 0,
                 f"short_signal_cutoff_frames must be >= 0, got {self.short_signal_cutoff_frames}")
        _require(self.noise_check_max_duration_frames >= 0,
                 f"noise_check_max_duration_frames must be >= 0, got {self.noise_check_max_duration_frames}")
        _require(self.peak_amplitude_factor > 0,
                 f"peak_amplitude_factor must be > 0, got {self.peak_amplitude_factor}")
        _require(self.max_decay_ratio > 0, f"max_decay_ratio must be > 0, got {self.max_decay_ratio}")
        _require(self.max_noise_ratio > 0, f"max_noise_ratio must be > 0, got {self.max_noise_ratio}")

        _require(0 < self.memory_fraction <= 1, f"memory_fraction must be in (0, 1], got {self.memory_fraction}")
        _require(0 <= self.min_speedup < 1, f"min_speedup must be in [0, 1), got {self.min_speedup}")
        _require(self.large_dataset_override >= self.min_accelerated_size,
                 "large_dataset_override must not be below min_accelerated_size")
        _require(self.memory_safety_factor >= 1,
                 f"memory_safety_factor must be >= 1, got {self.memory_safety_factor}")

        _require(
            isinstance(self.rolling_window_frames, int) and self.rolling_window_frames >= 3
            and self.rolling_window_frames % 2 == 1,
            f"rolling_window_frames must be an odd integer >= 3, got {self.rolling_window_frames!r}",
        )
        _require(self.outlier_sigma > 0, f"outlier_sigma must be > 0, got {self.outlier_sigma}")

    @property
    def bytes_per_element(self) -> int:
        return 4 if self.use_single_precision else 8

    def replace(self, **changes) -> 'AnalysisConfig':
        """Return a validated copy with some fields changed."""
        data = self.to_dict()
        data.update(changes)
        return AnalysisConfig.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary for serialization."""
        return asdict(self)

    def to_json(self, file_path: str):
        """Save config to JSON file."""
        with open(file_path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AnalysisConfig':
        """Create config from dictionary."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"Unknown configuration fields: {unknown}")
        return cls(**data)

    @classmethod
    def from_json(cls, file_path: str) -> 'AnalysisConfig':
        with open(file_path) as f:
            return cls.from_dict(json.load(f))


@dataclass(frozen=True)
class StimulusTiming:
    """
    Timing of one recording, injected by the caller.

    Frames are 0-based. ``baseline_window`` is a half-open ``(start, stop)``
    frame range. A paired-pulse recording sets ``ppf_interval_ms``; the second
    stimulus frame is derived from it.
    """
    stimulus_frame: int = 266
    ms_per_frame: float = 5.0
    baseline_window: Tuple[int, int] = (0, 200)
    ppf_interval_ms: Optional[float] = None

    def __post_init__(self):
        _require(self.stimulus_frame >= 0, f"stimulus_frame must be >= 0, got {self.stimulus_frame}")
        _require(self.ms_per_frame > 0, f"ms_per_frame must be > 0, got {self.ms_per_frame}")
        start, stop = self.baseline_window
        _require(0 <= start < stop, f"baseline_window must satisfy 0 <= start < stop, got {self.baseline_window}")
        if self.ppf_interval_ms is not None:
            _require(self.ppf_interval_ms > 0, f"ppf_interval_ms must be > 0, got {self.ppf_interval_ms}")

    @property
    def is_paired_pulse(self) -> bool:
        return self.ppf_interval_ms is not None

    @property
    def experiment_type(self) -> str:
        return 'PPF' if self.is_paired_pulse else '1AP'

    @property
    def second_stimulus_frame(self) -> Optional[int]:
        if not self.is_paired_pulse:
            return None
        # halves round up, not to even
        return self.stimulus_frame + int(math.floor(self.ppf_interval_ms / self.ms_per_frame + 0.5))

    def frame_to_ms(self, frame: int) -> float:
        return frame * self.ms_per_frame

    def baseline_slice(self) -> slice:
        return slice(*self.baseline_window)


# ============================================================================
# Presets
# ============================================================================

PRESETS = {
    'default': AnalysisConfig(
        config_id='default',
        description='Schmitt trigger: 3 sigma / 4 sigma upper, 1 sigma lower, peak >= 1.1x upper, any positive duration',
    ),

    'lenient_lower': AnalysisConfig(
        config_id='lenient_lower',
        description='Lenient validation: 1 sigma lower, peak >= upper, any positive duration',
        peak_amplitude_factor=1.0,
    ),

    'strict_v50': AnalysisConfig(
        config_id='strict_v50',
        description='Strict Schmitt filter: 3 sigma / 4.5 sigma upper, 1.5 sigma lower, signals must last > 1 frame',
        high_noise_multiplier=4.5,
        lower_multiplier=1.5,
        peak_amplitude_factor=1.0,
        min_duration_frames=1,
    ),
}


def get_preset(config_id: str) -> AnalysisConfig:
    """Get a named configuration preset."""
    if config_id not in PRESETS:
        raise ConfigurationError(f"Unknown preset '{config_id}'. Available: {list_presets()}")
    return PRESETS[config_id]


def list_presets() -> List[str]:
    return sorted(PRESETS.keys())
