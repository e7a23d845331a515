import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np

from .analysis import frame_energy, onset_threshold, smooth_values
from .constants import HOP_SIZE
from .tja import is_big, is_katsu

NOTE_COLORS = {False: "#e0462c", True: "#2c8fe0"}


def plot_analysis(samples, sr, analysis, notes, *, sensitivity=0.6, output_file=None):
    """Envelope, threshold, onsets and the beat grid with the generated notes."""
    envelope = smooth_values(frame_energy(samples, sr))
    times = np.arange(len(envelope)) * HOP_SIZE / sr

    fig, (ax_env, ax_notes) = plt.subplots(2, 1, figsize=(14, 6), sharex=True)

    ax_env.plot(times, envelope, lw=0.8, color="#444")
    if len(envelope):
        ax_env.axhline(onset_threshold(envelope, sensitivity), color="#aaa", ls="--", lw=0.8)
    ax_env.scatter(
        [o["time"] for o in analysis.onsets],
        [o["energy"] for o in analysis.onsets],
        s=8, color="#e08a2c", zorder=3,
    )
    bpm_label = f"{analysis.bpm:.1f} BPM" if analysis.bpm else "no tempo"
    ax_env.set_title(f"Energy envelope ({bpm_label}, offset {analysis.offset_ms} ms)")
    ax_env.set_ylabel("RMS")

    if analysis.bpm:
        beat_sec = 60.0 / analysis.bpm
        offset_sec = analysis.offset_ms / 1000.0
        note_times = [offset_sec + n.beat * beat_sec for n in notes]
        ax_notes.scatter(
            note_times,
            [1 if is_katsu(n.type) else 0 for n in notes],
            s=[60 if is_big(n.type) else 20 for n in notes],
            c=[NOTE_COLORS[is_katsu(n.type)] for n in notes],
        )
        duration = len(samples) / sr if sr else 0
        for t in np.arange(offset_sec, duration, beat_sec * 4):
            ax_notes.axvline(t, color="#ddd", lw=0.6, zorder=0)
    ax_notes.set_yticks([0, 1], ["don", "katsu"])
    ax_notes.set_ylim(-0.5, 1.5)
    ax_notes.set_xlabel("Time (s)")

    fig.tight_layout()
    if output_file:
        fig.savefig(output_file, dpi=120)
        plt.close(fig)
    return fig
