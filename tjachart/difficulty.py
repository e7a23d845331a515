"""
Difficulty tiers derived from one full-density note list.

Each tier keeps a fraction of the notes and gets a level relative to the
base level. Tiers stay generated until a user edits one; from then on that
tier's text is kept as-is and regeneration skips it.
"""
import logging
from dataclasses import dataclass, field

from .constants import DEFAULT_DIVISIONS, DON, DON_BIG, KATSU, KATSU_BIG
from .tja import (
    CourseBlock,
    Note,
    TjaMetadata,
    build_tja_from_meta,
    course_rank,
    extract_course_header_lines,
    extract_notes_block,
    is_katsu,
    note_id,
    parse_tja,
    with_course,
)
from .utils import round_half_up

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DifficultyTier:
    course: str
    density: float
    level_delta: int
    min_level: int


DIFFICULTY_TIERS = (
    DifficultyTier("Easy", 0.35, -4, 2),
    DifficultyTier("Normal", 0.55, -2, 3),
    DifficultyTier("Hard", 0.75, -1, 5),
    DifficultyTier("Oni", 1.0, 0, 7),
)


@dataclass
class DifficultyVariant:
    course: str
    level: int
    balloon: list
    notes: list
    tja_text: str


def _set_type(note, note_type):
    note.type = note_type
    note.id = note_id(note.beat, note_type)


def ensure_big_notes(notes):
    """
    Copy of ``notes`` holding at least one don, katsu, big don and big katsu
    where the list is long enough to allow it.
    """
    out = [Note(n.id, n.beat, n.type) for n in notes]
    if not out:
        return out

    if not any(not is_katsu(n.type) for n in out):
        _set_type(out[0], DON)
    if not any(is_katsu(n.type) for n in out):
        target = next((n for n in out if n.type != DON), out[0])
        _set_type(target, KATSU)

    has_big_don = any(n.type == DON_BIG for n in out)
    has_big_katsu = any(n.type == KATSU_BIG for n in out)
    if not has_big_don:
        target = next((n for n in out if n.type == DON), None)
        if target is not None:
            _set_type(target, DON_BIG)
    if not has_big_katsu:
        target = next((n for n in out if n.type == KATSU), None)
        if target is not None:
            _set_type(target, KATSU_BIG)
    return out


def subsample_notes(notes, density):
    if density >= 0.95:
        return list(notes)
    stride = max(1, round_half_up(1 / density))
    if stride == 1:
        # keep the near-full tier visibly sparser than the full one
        return [n for i, n in enumerate(notes) if i % 4 != 3]
    return [n for i, n in enumerate(notes) if i % stride == 0]


def derive_variants(notes, bpm, offset_ms, base_level, *, meta=None, divisions=DEFAULT_DIVISIONS):
    meta = meta or TjaMetadata()
    variants = []
    for tier in DIFFICULTY_TIERS:
        level = max(tier.min_level, base_level + tier.level_delta)
        tier_notes = ensure_big_notes(subsample_notes(notes, tier.density))
        tier_meta = with_course(meta, tier.course, level)
        tier_meta.bpm = bpm if bpm else meta.bpm
        tier_meta.offset = offset_ms if offset_ms is not None else meta.offset
        variants.append(
            DifficultyVariant(
                course=tier.course,
                level=level,
                balloon=list(tier_meta.balloon),
                notes=tier_notes,
                tja_text=build_tja_from_meta(tier_meta, tier_notes, divisions),
            )
        )
    logger.debug("variants: %s", [(v.course, v.level, len(v.notes)) for v in variants])
    return variants


# ------------------------------
# TIER STATE
# ------------------------------
@dataclass
class GeneratedTier:
    variant: DifficultyVariant

    @property
    def course(self):
        return self.variant.course

    @property
    def tja_text(self):
        return self.variant.tja_text

    @property
    def notes(self):
        return self.variant.notes


@dataclass
class EditedTier:
    course: str
    tja_text: str
    notes: list = field(default_factory=list)
    level: int = 0
    balloon: list = field(default_factory=list)


class TierSet:
    """Per-course chart state; regeneration only touches tiers nobody edited."""

    def __init__(self):
        self.tiers = {}

    def regenerate(self, variants):
        for variant in variants:
            current = self.tiers.get(variant.course)
            if isinstance(current, EditedTier):
                logger.debug("keeping edited tier %s", variant.course)
                continue
            self.tiers[variant.course] = GeneratedTier(variant)
        return self

    def edit(self, course, tja_text):
        parsed = parse_tja(tja_text)
        tier = EditedTier(
            course=course,
            tja_text=tja_text,
            notes=parsed.notes,
            level=parsed.meta.level,
            balloon=list(parsed.meta.balloon),
        )
        self.tiers[course] = tier
        return tier

    def is_edited(self, course):
        return isinstance(self.tiers.get(course), EditedTier)

    def courses(self):
        return sorted(self.tiers, key=course_rank)

    def course_blocks(self, active_course=None):
        blocks = []
        for course in self.courses():
            tier = self.tiers[course]
            if isinstance(tier, GeneratedTier):
                level, balloon = tier.variant.level, tier.variant.balloon
            else:
                level, balloon = tier.level, tier.balloon
            blocks.append(
                CourseBlock(
                    course=course,
                    level=level,
                    balloon=list(balloon),
                    notes_block=extract_notes_block(tier.tja_text),
                    header_lines=extract_course_header_lines(tier.tja_text),
                    is_active=course == active_course,
                )
            )
        return blocks
