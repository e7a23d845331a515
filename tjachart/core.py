import logging
import re
from pathlib import Path

import soundfile as sf

from .analysis import AutoChartOptions, analyze
from .classify import generate_notes
from .config import DEFAULT_CONFIG
from .difficulty import TierSet, derive_variants, ensure_big_notes
from .tja import TjaMetadata, build_tja_from_meta, merge_tiers

logger = logging.getLogger(__name__)


class ChartGenerator:
    def __init__(
        self,
        audio_path: str | Path,
        *,
        cfg: dict | None = None,
    ):
        self.audio_path = Path(audio_path).expanduser().resolve()
        if not self.audio_path.exists():
            raise FileNotFoundError(f"Audio file not found: {self.audio_path}")

        self.cfg = cfg if cfg is not None else dict(DEFAULT_CONFIG)
        self.samples = None
        self.sr = None
        self.analysis = None
        self.notes = []
        self.tiers = TierSet()
        self.tja_text = ""

    # ------------------------------
    # UTILITY FUNCTIONS
    # ------------------------------
    @staticmethod
    def safe_title(title):
        title = (title or "").strip() or "Chart"
        return re.sub(r"[\\/]", "-", title).strip() or "Chart"

    @staticmethod
    def to_mono(audio):
        if audio.ndim > 1:
            audio = audio.mean(axis=1)
        return audio

    def load_audio(self):
        audio, sr = sf.read(str(self.audio_path), dtype="float32", always_2d=False)
        self.samples = self.to_mono(audio)
        self.sr = int(sr)
        logger.info("Loaded %s: %d samples @ %d Hz", self.audio_path.name, len(self.samples), self.sr)
        return self.samples, self.sr

    def options(self):
        return AutoChartOptions(
            snap_divisions=self.cfg["snap_divisions"],
            sensitivity=self.cfg["sensitivity"],
            katsu_bias=self.cfg["katsu_bias"],
        )

    def metadata(self):
        title = self.cfg.get("title") or self.audio_path.stem
        return TjaMetadata(
            title=title,
            level=self.cfg["level"],
            balloon=list(self.cfg["balloon"]),
            wave=self.audio_path.name,
        )

    # ------------------------------
    # GENERATE & EXPORT
    # ------------------------------
    def generate_chart(self):
        if self.samples is None:
            self.load_audio()

        options = self.options()
        self.analysis = analyze(self.samples, self.sr, options.sensitivity)
        if self.analysis.bpm is None:
            logger.warning("No tempo found in %s; the chart will be empty", self.audio_path.name)
        else:
            logger.info(
                "Tempo %.1f BPM, offset %s ms, %d onsets",
                self.analysis.bpm, self.analysis.offset_ms, len(self.analysis.onsets),
            )

        self.notes = ensure_big_notes(generate_notes(self.samples, self.sr, self.analysis, options))
        meta = self.metadata()
        variants = derive_variants(
            self.notes,
            self.analysis.bpm,
            self.analysis.offset_ms,
            meta.level,
            meta=meta,
            divisions=options.snap_divisions,
        )
        self.tiers.regenerate(variants)

        course = self.cfg.get("course")
        if course:
            self.tja_text = self.single_course(course, meta, variants)
        else:
            self.tja_text = merge_tiers(
                variants[-1].tja_text,
                self.tiers.course_blocks(),
                title=meta.title,
                bpm=self.analysis.bpm,
                offset=self.analysis.offset_ms,
                wave=meta.wave,
            )
        return self.tja_text

    def single_course(self, course, meta, variants):
        variant = next((v for v in variants if v.course.lower() == course.lower()), None)
        if variant is not None:
            return variant.tja_text
        logger.warning("Unknown course %s; writing full-density notes", course)
        meta.course = course
        if self.analysis.bpm:
            meta.bpm = self.analysis.bpm
            meta.offset = self.analysis.offset_ms
        return build_tja_from_meta(meta, self.notes, self.cfg["snap_divisions"])

    def export(self, output_file: str | Path | None = None):
        if not self.tja_text:
            raise ValueError("No chart generated yet. Call generate_chart() first.")
        output_file = output_file or (
            self.audio_path.parent / f"{self.safe_title(self.audio_path.stem)}.tja"
        )
        with open(output_file, "w", encoding="utf-8") as f:
            f.write(self.tja_text)
        print(f"Exported chart to {output_file}")
        return Path(output_file)

    def preview(self, output_file: str | Path | None = None):
        if self.analysis is None:
            raise ValueError("No chart generated yet. Call generate_chart() first.")
        from .plot import plot_analysis

        return plot_analysis(
            self.samples, self.sr, self.analysis, self.notes,
            sensitivity=self.cfg["sensitivity"], output_file=output_file,
        )
