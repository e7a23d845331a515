import json

import numpy as np
import pytest
import soundfile as sf

from tjachart.cli import main
from tjachart.config import DEFAULT_CONFIG, build_config, load_profile
from tjachart.core import ChartGenerator
from tjachart.tja import parse_courses, parse_tja


@pytest.fixture
def wav_path(tmp_path, clicks):
    y, sr = clicks
    path = tmp_path / "clicks.wav"
    sf.write(str(path), y, sr, subtype="FLOAT")
    return path


# ------------------------------
# Config
# ------------------------------
def test_build_config_layers_and_clamps():
    cfg = build_config({"snap_divisions": 8, "katsu_bias": 2.0}, sensitivity=0.05, level=None)
    assert cfg["snap_divisions"] == 8
    assert cfg["katsu_bias"] == 0.6
    assert cfg["sensitivity"] == 0.2
    assert cfg["level"] == DEFAULT_CONFIG["level"]


def test_load_profile(tmp_path):
    good = tmp_path / "good.json"
    good.write_text(json.dumps({"sensitivity": 0.8}))
    assert load_profile(good) == {"sensitivity": 0.8}

    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"hop": 256}))
    with pytest.raises(ValueError):
        load_profile(bad)

    with pytest.raises(FileNotFoundError):
        load_profile(tmp_path / "missing.json")


# ------------------------------
# Generator
# ------------------------------
def test_generator_missing_audio(tmp_path):
    with pytest.raises(FileNotFoundError):
        ChartGenerator(tmp_path / "nope.wav")


def test_export_before_generate(wav_path):
    with pytest.raises(ValueError):
        ChartGenerator(wav_path).export()


def test_generate_all_courses(wav_path, tmp_path):
    gen = ChartGenerator(wav_path, cfg=build_config(title="Clicks"))
    text = gen.generate_chart()

    assert gen.analysis.bpm == 120.0
    head = parse_tja(text).meta
    assert head.title == "Clicks"
    assert head.wave == "clicks.wav"

    courses = parse_courses(text)
    assert list(courses) == ["Easy", "Normal", "Hard", "Oni"]
    assert len(courses["Oni"].notes) == 16
    assert len(courses["Easy"].notes) < len(courses["Oni"].notes)
    assert all(r.errors == [] for r in courses.values())

    out = gen.export(tmp_path / "out.tja")
    assert out.read_text(encoding="utf-8") == text


def test_generate_single_course(wav_path):
    gen = ChartGenerator(wav_path, cfg=build_config(course="hard"))
    text = gen.generate_chart()
    result = parse_tja(text)
    assert result.meta.course == "Hard"
    assert result.meta.level == 6
    assert text.count("#START") == 1


def test_generate_silence(tmp_path):
    path = tmp_path / "silence.wav"
    sf.write(str(path), np.zeros(44100), 44100)
    gen = ChartGenerator(path)
    text = gen.generate_chart()
    assert gen.analysis.bpm is None
    assert gen.notes == []
    assert all(r.notes == [] for r in parse_courses(text).values())


def test_stereo_is_mixed_down(tmp_path, clicks):
    y, sr = clicks
    path = tmp_path / "stereo.wav"
    sf.write(str(path), np.stack([y, y], axis=1), sr, subtype="FLOAT")
    samples, rate = ChartGenerator(path).load_audio()
    assert samples.ndim == 1
    assert rate == sr


def test_safe_title():
    assert ChartGenerator.safe_title(" a/b\\c ") == "a-b-c"
    assert ChartGenerator.safe_title("   ") == "Chart"


# ------------------------------
# CLI
# ------------------------------
def test_cli_writes_chart_and_preview(wav_path, tmp_path):
    out = tmp_path / "cli.tja"
    main([str(wav_path), "-o", str(out), "--snap", "8", "--level", "9", "--preview"])
    text = out.read_text(encoding="utf-8")
    courses = parse_courses(text)
    assert courses["Oni"].meta.level == 9
    assert out.with_suffix(".png").exists()
