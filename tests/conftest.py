import numpy as np
import pytest

# 0.5 s is exactly 16 hops of 512 samples at this rate, so onset frames line up with the beat
CLICK_SR = 16384
BEAT_SAMPLES = 8192
CLICK_LEN = 512


def click_track(n_beats=16, sr=CLICK_SR, seed=0):
    """Alternating noise / low sine clicks on every beat, exact silence in between."""
    rng = np.random.default_rng(seed)
    y = np.zeros(BEAT_SAMPLES * (n_beats + 1), dtype=np.float64)
    n = np.arange(CLICK_LEN)
    decay = np.exp(-n / 60.0)
    for k in range(1, n_beats + 1):
        start = k * BEAT_SAMPLES
        if k % 2:
            burst = rng.uniform(-1.0, 1.0, CLICK_LEN) * decay * 0.8
        else:
            burst = np.sin(2 * np.pi * 80.0 * n / sr) * decay
        # equal energy per click keeps every plateau above the adaptive threshold
        y[start:start + CLICK_LEN] = burst / np.sqrt(np.sum(burst ** 2))
    return y


@pytest.fixture
def clicks():
    return click_track(), CLICK_SR
