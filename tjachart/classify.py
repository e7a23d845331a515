"""
Onset -> typed note classification.

Each retained onset gets a transient ratio (sample-to-sample change relative
to magnitude). Noisy, high-ratio hits become katsu, tonal ones don. Loud hits
become big notes. Thresholds adapt to the whole onset set and shift with
``katsu_bias``.
"""
import logging
import math

import numpy as np

from .constants import (
    BEATS_PER_MEASURE,
    BIG_BASE_BLEND,
    BIG_BLEND_RANGE,
    BIG_HIGH_PERCENTILE,
    BIG_LOW_PERCENTILE,
    DON,
    DON_BIG,
    KATSU,
    KATSU_BASE_QUANTILE,
    KATSU_BIAS_RANGE,
    KATSU_BIG,
    KATSU_QUANTILE_RANGE,
    MIN_NOTES_FOR_BIG_COVERAGE,
    MIN_NOTES_FOR_CATEGORY_COVERAGE,
    RATIO_EPSILON,
    WINDOW_SIZE,
)
from .tja import Note, is_big, is_katsu, note_id, sized_type
from .utils import clamp, index_percentile, round_half_up

logger = logging.getLogger(__name__)


def _bias_unit(katsu_bias):
    lo, hi = KATSU_BIAS_RANGE
    return clamp(katsu_bias, lo, hi) / hi


def filter_onsets(onsets, min_interval):
    """Greedy spacing filter: of two onsets closer than min_interval, the louder survives."""
    filtered = []
    for onset in onsets:
        if not filtered:
            filtered.append(onset)
            continue
        last = filtered[-1]
        if onset["time"] - last["time"] >= min_interval:
            filtered.append(onset)
        elif onset["energy"] > last["energy"]:
            filtered[-1] = onset
    return filtered


def transient_ratio(samples, sr, time, window_size=WINDOW_SIZE):
    x = np.asarray(samples).ravel()
    center = int(math.floor(time * sr))
    half = window_size // 2
    start = max(0, center - half)
    end = min(x.size, center + half)
    if end - start < 2:
        return 0.0
    # only the window is promoted, the buffer stays in its decoded dtype
    seg = x[start:end].astype(np.float64)
    energy = float(np.sum(np.abs(seg[1:])))
    high = float(np.sum(np.abs(np.diff(seg))))
    return high / (energy + RATIO_EPSILON)


def katsu_threshold(ratios, katsu_bias):
    if len(ratios) == 0:
        return 0.0
    ordered = sorted(ratios)
    quantile = clamp(KATSU_BASE_QUANTILE - _bias_unit(katsu_bias) * 0.2, *KATSU_QUANTILE_RANGE)
    return ordered[int(math.floor(quantile * (len(ordered) - 1)))]


def big_threshold(energies, katsu_bias):
    if len(energies) == 0:
        return math.inf
    ordered = sorted(energies)
    p85 = index_percentile(ordered, BIG_LOW_PERCENTILE)
    p95 = index_percentile(ordered, BIG_HIGH_PERCENTILE)
    blend = clamp(BIG_BASE_BLEND - _bias_unit(katsu_bias) * 0.1, *BIG_BLEND_RANGE)
    return p85 + (p95 - p85) * blend


# ------------------------------
# COVERAGE
# ------------------------------
def _retype(entry, note_type):
    note = entry["note"]
    entry["note"] = Note(note_id(note.beat, note_type), note.beat, note_type)


def apply_coverage(entries):
    """
    Make sure a classified pool can be played: both categories present
    (pools of 4+), at least one big note (pools of 8+), then one big note per
    category whenever that category exists. Order matters, later steps see
    the promotions of earlier ones.
    """
    count = len(entries)
    katsu_count = sum(1 for e in entries if is_katsu(e["note"].type))

    if count >= MIN_NOTES_FOR_CATEGORY_COVERAGE:
        if katsu_count == 0:
            best = max(entries, key=lambda e: e["ratio"])
            _retype(best, sized_type(KATSU, best["is_big"]))
        elif katsu_count == count:
            lowest = min(entries, key=lambda e: e["ratio"])
            _retype(lowest, sized_type(DON, lowest["is_big"]))

    big_count = sum(1 for e in entries if is_big(e["note"].type))
    if count >= MIN_NOTES_FOR_BIG_COVERAGE and big_count == 0:
        loudest = max(entries, key=lambda e: e["energy"])
        base = KATSU if is_katsu(loudest["note"].type) else DON
        _retype(loudest, sized_type(base, True))

    has_big_don = any(e["note"].type == DON_BIG for e in entries)
    has_big_katsu = any(e["note"].type == KATSU_BIG for e in entries)
    if not has_big_don:
        dons = [e for e in entries if not is_katsu(e["note"].type)]
        if dons:
            _retype(max(dons, key=lambda e: e["energy"]), DON_BIG)
    if not has_big_katsu:
        katsus = [e for e in entries if is_katsu(e["note"].type)]
        if katsus:
            _retype(max(katsus, key=lambda e: e["energy"]), KATSU_BIG)
    return entries


# ------------------------------
# NOTE GENERATION
# ------------------------------
def generate_notes(samples, sr, analysis, options):
    """Classify and snap the analysed onsets into a sorted list of Notes."""
    bpm = analysis.bpm
    if not bpm or not analysis.onsets:
        return []

    beat_duration = 60.0 / bpm
    divisions = max(int(options.snap_divisions), BEATS_PER_MEASURE)
    step_per_beat = divisions / BEATS_PER_MEASURE
    min_interval = beat_duration / step_per_beat
    offset_sec = analysis.offset_ms / 1000.0

    filtered = filter_onsets(analysis.onsets, min_interval)
    ratios = [transient_ratio(samples, sr, onset["time"]) for onset in filtered]
    katsu_th = katsu_threshold(ratios, options.katsu_bias)
    big_th = big_threshold([onset["energy"] for onset in filtered], options.katsu_bias)

    by_beat = {}
    for onset, ratio in zip(filtered, ratios):
        beat = (onset["time"] - offset_sec) / beat_duration
        if beat < 0:
            continue
        snapped = round_half_up(beat * step_per_beat) / step_per_beat
        big = onset["energy"] >= big_th
        note_type = sized_type(KATSU if ratio >= katsu_th else DON, big)
        entry = by_beat.get(snapped)
        if entry is None or onset["energy"] > entry["energy"]:
            by_beat[snapped] = {
                "ratio": ratio,
                "energy": onset["energy"],
                "is_big": big,
                "note": Note(note_id(snapped, note_type), snapped, note_type),
            }

    entries = apply_coverage(list(by_beat.values()))
    notes = sorted((e["note"] for e in entries), key=lambda n: n.beat)
    logger.debug(
        "notes=%d from onsets=%d (filtered=%d) katsu_th=%.4f big_th=%.6f",
        len(notes), len(analysis.onsets), len(filtered), katsu_th, big_th,
    )
    return notes
