from tjachart.difficulty import (
    DIFFICULTY_TIERS,
    EditedTier,
    GeneratedTier,
    TierSet,
    derive_variants,
    ensure_big_notes,
    subsample_notes,
)
from tjachart.tja import Note, TjaMetadata, is_big, is_katsu, merge_tiers, note_id, parse_tja


def make_notes(count):
    types = ["don", "katsu", "don", "don-big", "katsu", "katsu-big"]
    return [Note(note_id(i * 0.5, types[i % 6]), i * 0.5, types[i % 6]) for i in range(count)]


def test_subsample_strides():
    notes = list(range(20))
    assert subsample_notes(notes, 0.35) == list(range(0, 20, 3))
    assert subsample_notes(notes, 0.55) == list(range(0, 20, 2))
    assert subsample_notes(notes, 0.75) == [i for i in range(20) if i % 4 != 3]
    assert subsample_notes(notes, 1.0) == notes
    assert subsample_notes([], 0.35) == []


def test_ensure_big_notes_on_single_category():
    notes = [Note(note_id(i, "don"), float(i), "don") for i in range(4)]
    out = ensure_big_notes(notes)
    types = [n.type for n in out]
    assert types == ["katsu-big", "don-big", "don", "don"]
    assert out[0].id == "0.000-katsu-big"
    # input is left alone
    assert [n.type for n in notes] == ["don"] * 4


def test_ensure_big_notes_keeps_complete_list():
    notes = make_notes(6)
    assert [n.type for n in ensure_big_notes(notes)] == [n.type for n in notes]
    assert ensure_big_notes([]) == []


def test_derive_variants_levels_and_density():
    notes = make_notes(40)
    variants = derive_variants(notes, 150.0, 120, 7)
    assert [v.course for v in variants] == ["Easy", "Normal", "Hard", "Oni"]
    assert [v.level for v in variants] == [3, 5, 6, 7]
    assert [len(v.notes) for v in variants] == [14, 20, 30, 40]

    low = derive_variants(notes, 150.0, 120, 3)
    assert [v.level for v in low] == [2, 3, 5, 7]


def test_derive_variants_keep_coverage_and_render():
    notes = make_notes(40)
    for variant in derive_variants(notes, 150.0, 120, 7):
        types = {n.type for n in variant.notes}
        assert {"don-big", "katsu-big"} <= types
        assert any(not is_katsu(t) and not is_big(t) for t in types)
        parsed = parse_tja(variant.tja_text)
        assert parsed.errors == []
        assert parsed.meta.course == variant.course
        assert parsed.meta.level == variant.level
        assert parsed.meta.bpm == 150
        assert parsed.meta.offset == 120
        assert [n.beat for n in parsed.notes] == [n.beat for n in variant.notes]


def test_derive_variants_tolerates_empty_input():
    variants = derive_variants([], None, 0, 7)
    assert len(variants) == len(DIFFICULTY_TIERS)
    for variant in variants:
        assert variant.notes == []
        parsed = parse_tja(variant.tja_text)
        assert parsed.notes == []
        assert parsed.meta.bpm == 120
        assert "0000000000000000," in variant.tja_text


def test_derive_variants_uses_metadata():
    meta = TjaMetadata(title="Song", wave="song.ogg", balloon=[3])
    variants = derive_variants(make_notes(8), 128.0, -40, 7, meta=meta, divisions=8)
    parsed = parse_tja(variants[0].tja_text)
    assert parsed.meta.title == "Song"
    assert parsed.meta.wave == "song.ogg"
    assert parsed.meta.balloon == [3]
    assert meta.course == "Oni"


def test_tier_set_keeps_edited_tiers():
    tiers = TierSet().regenerate(derive_variants(make_notes(12), 120.0, 0, 7))
    assert all(isinstance(t, GeneratedTier) for t in tiers.tiers.values())

    hard_text = tiers.tiers["Hard"].tja_text.replace("LEVEL:6", "LEVEL:8")
    tiers.edit("Hard", hard_text)
    assert tiers.is_edited("Hard")

    tiers.regenerate(derive_variants(make_notes(24), 140.0, 0, 7))
    hard = tiers.tiers["Hard"]
    assert isinstance(hard, EditedTier)
    assert hard.tja_text == hard_text
    assert hard.level == 8
    assert len(tiers.tiers["Oni"].notes) == 24

    blocks = tiers.course_blocks(active_course="Hard")
    assert [b.course for b in blocks] == ["Easy", "Normal", "Hard", "Oni"]
    assert [b.is_active for b in blocks] == [False, False, True, False]
    merged = merge_tiers(tiers.tiers["Oni"].tja_text, blocks)
    assert "LEVEL:8" in merged
    assert merged.count("#START") == 4
