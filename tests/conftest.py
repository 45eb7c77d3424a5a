"""Test configuration for glusnfr tests."""
import sys
from pathlib import Path

import numpy as np
import pytest

# Add src/ to path so the package imports without installation
src_dir = str(Path(__file__).resolve().parent.parent / 'src')
if src_dir not in sys.path:
    sys.path.insert(0, src_dir)


@pytest.fixture
def noisy_traces():
    """600 frames x 12 regions of raw intensity around 100 with small noise."""
    rng = np.random.RandomState(42)
    n_frames, n_regions = 600, 12
    base = rng.uniform(80, 120, n_regions)
    return base + rng.normal(0, 1.0, (n_frames, n_regions))


@pytest.fixture
def step_trace():
    """
    Flat 100 trace with a 110 step on frames 267..289.

    With the stimulus at frame 266 the response starts on the first frame of
    the search window and decays back on frame 290.
    """
    trace = np.full(600, 100.0)
    trace[267:290] = 110.0
    return trace
