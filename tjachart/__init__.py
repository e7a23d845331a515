"""
tjachart: Generate TJA drum charts from audio for rhythm games.

Usage:

    from tjachart import ChartGenerator

    generator = ChartGenerator("song.wav")
    chart = generator.generate_chart()
    generator.export("song.tja")

Or use the pure pieces directly on decoded samples:

    analysis = analyze(samples, sr, sensitivity=0.6)
    notes = generate_notes(samples, sr, analysis, AutoChartOptions())
    variants = derive_variants(notes, analysis.bpm, analysis.offset_ms, 7)
"""

from .analysis import AudioAnalysis, AutoChartOptions, analyze, estimate_offset_ms, estimate_tempo
from .classify import generate_notes
from .core import ChartGenerator
from .difficulty import DifficultyVariant, TierSet, derive_variants
from .tja import (
    Note,
    ParseResult,
    TjaMetadata,
    build_notes_block,
    build_tja_from_meta,
    merge_tiers,
    parse_tja,
    update_header_value,
)

parse_document = parse_tja
render_document = build_tja_from_meta

__all__ = [
    "AudioAnalysis",
    "AutoChartOptions",
    "ChartGenerator",
    "DifficultyVariant",
    "Note",
    "ParseResult",
    "TierSet",
    "TjaMetadata",
    "analyze",
    "build_notes_block",
    "build_tja_from_meta",
    "derive_variants",
    "estimate_offset_ms",
    "estimate_tempo",
    "generate_notes",
    "merge_tiers",
    "parse_document",
    "parse_tja",
    "render_document",
    "update_header_value",
]
