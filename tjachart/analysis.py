"""
Audio analysis: energy framing, onset picking, tempo and offset estimation.

All functions are pure and work on a decoded mono sample buffer. Decoding and
channel mixing are the caller's job (see ChartGenerator.load_audio).
"""
import logging
from collections import Counter
from dataclasses import dataclass, field

import numpy as np

from .constants import (
    BPM_RESOLUTION,
    HOP_SIZE,
    MAX_BPM,
    MAX_INTERVAL_SEC,
    MIN_BPM,
    MIN_INTERVAL_SEC,
    SENSITIVITY_CLAMP,
    SMOOTH_RADIUS,
    THRESHOLD_HIGH_PERCENTILE,
    THRESHOLD_LOW_PERCENTILE,
    WINDOW_SIZE,
)
from .utils import clamp, index_percentile, median, round_half_up

logger = logging.getLogger(__name__)


@dataclass
class AudioAnalysis:
    bpm: float | None
    offset_ms: float
    onsets: list = field(default_factory=list)


@dataclass
class AutoChartOptions:
    snap_divisions: int = 16
    sensitivity: float = 0.6
    katsu_bias: float = 0.0


# ------------------------------
# FRAMING
# ------------------------------
def frame_energy(samples, sr, window_size=WINDOW_SIZE, hop_size=HOP_SIZE):
    """
    RMS energy at every hop start. The window is cut short at the tail of the
    buffer but the sum is still divided by the nominal window size, so tail
    frames read slightly quieter.
    """
    x = np.asarray(samples, dtype=np.float64).ravel()
    if x.size == 0:
        return np.zeros(0)
    starts = np.arange(0, x.size, hop_size)
    ends = np.minimum(starts + window_size, x.size)
    power = np.concatenate(([0.0], np.cumsum(x * x)))
    sums = np.maximum(power[ends] - power[starts], 0.0)
    return np.sqrt(sums / window_size)


def smooth_values(values, radius=SMOOTH_RADIUS):
    """Centered moving average; edges average over the neighbours that exist."""
    v = np.asarray(values, dtype=np.float64)
    if v.size == 0:
        return np.zeros(0)
    r = max(1, int(radius))
    csum = np.concatenate(([0.0], np.cumsum(v)))
    idx = np.arange(v.size)
    lo = np.maximum(idx - r, 0)
    hi = np.minimum(idx + r + 1, v.size)
    return (csum[hi] - csum[lo]) / (hi - lo)


# ------------------------------
# ONSETS
# ------------------------------
def onset_threshold(smoothed, sensitivity):
    ordered = sorted(float(s) for s in smoothed)
    p60 = index_percentile(ordered, THRESHOLD_LOW_PERCENTILE)
    if p60 is None:
        p60 = 0.0
    p90 = index_percentile(ordered, THRESHOLD_HIGH_PERCENTILE)
    if p90 is None:
        p90 = p60
    weight = 1 - clamp(sensitivity, *SENSITIVITY_CLAMP)
    return p60 + (p90 - p60) * weight


def detect_onsets(envelope, sr, hop_size=HOP_SIZE, sensitivity=0.6):
    """
    Local maxima of the smoothed envelope above an adaptive threshold.

    A plateau reports its first index only: a candidate must be strictly above
    its left neighbour and not below its right one.
    """
    smoothed = smooth_values(envelope)
    if smoothed.size < 3:
        return []
    threshold = onset_threshold(smoothed, sensitivity)

    mid = smoothed[1:-1]
    is_peak = (mid > threshold) & (mid > smoothed[:-2]) & (mid >= smoothed[2:])
    indices = np.flatnonzero(is_peak) + 1

    onsets = [
        {"time": float(i * hop_size / sr), "energy": float(smoothed[i])}
        for i in indices
    ]
    logger.debug("threshold=%.6f onsets=%d frames=%d", threshold, len(onsets), smoothed.size)
    return onsets


# ------------------------------
# TEMPO & OFFSET
# ------------------------------
def fold_bpm(bpm):
    while bpm < MIN_BPM:
        bpm *= 2
    while bpm > MAX_BPM:
        bpm /= 2
    return bpm


def estimate_tempo(onsets):
    """Most voted onset-interval tempo, folded into one octave. None when no interval qualifies."""
    if len(onsets) < 2:
        return None

    intervals = []
    for prev, cur in zip(onsets, onsets[1:]):
        delta = cur["time"] - prev["time"]
        if MIN_INTERVAL_SEC < delta < MAX_INTERVAL_SEC:
            intervals.append(delta)
    if not intervals:
        return None

    votes = Counter(
        round_half_up(fold_bpm(60.0 / interval) / BPM_RESOLUTION) * BPM_RESOLUTION
        for interval in intervals
    )
    # most_common is stable: ties go to the bucket seen first
    best, _ = votes.most_common(1)[0]
    return float(best)


def estimate_offset_ms(onsets, bpm):
    if not onsets or not bpm:
        return 0
    beat_duration = 60.0 / bpm
    phases = [onset["time"] % beat_duration for onset in onsets]
    return round_half_up(median(phases) * 1000)


def analyze(samples, sr, sensitivity=0.6):
    """Samples -> energy envelope -> onsets -> tempo -> offset."""
    envelope = frame_energy(samples, sr)
    onsets = detect_onsets(envelope, sr, HOP_SIZE, sensitivity)
    bpm = estimate_tempo(onsets)
    offset_ms = estimate_offset_ms(onsets, bpm) if bpm else 0
    logger.debug("analysis: bpm=%s offset_ms=%s onsets=%d", bpm, offset_ms, len(onsets))
    return AudioAnalysis(bpm=bpm, offset_ms=offset_ms, onsets=onsets)
