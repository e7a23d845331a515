"""
TJA chart text model.

A document is a block of global KEY:VALUE headers followed by one or more
course sections. Each course section carries its own headers (COURSE, LEVEL,
BALLOON, ...) and a #START ... #END note body of comma-terminated measures.
Parsing never raises: problems come back as line-tagged errors and warnings.
"""
import math
import re
from dataclasses import dataclass, field, replace

from .constants import (
    BEATS_PER_MEASURE,
    COURSE_ORDER,
    DEFAULT_DIVISIONS,
    DON,
    DON_BIG,
    KATSU,
    KATSU_BIG,
    TOKEN_TO_TYPE,
    TYPE_TO_TOKEN,
)
from .utils import format_number, round_half_up

DEFAULT_TJA = (
    "TITLE:New Taiko Chart\nBPM:120\nOFFSET:0\nCOURSE:Oni\nLEVEL:7\n"
    "BALLOON:16,16\nWAVE:audio.ogg\n\n#START\n0010001000100010,\n0000000000000000,\n#END\n"
)

GLOBAL_KEYS = ("TITLE", "BPM", "OFFSET", "WAVE")

_LINE_BREAK = re.compile(r"\r?\n")


@dataclass
class Note:
    id: str
    beat: float
    type: str


@dataclass
class TjaMetadata:
    title: str = "New Taiko Chart"
    bpm: float = 120
    offset: float = 0
    course: str = "Oni"
    level: int = 7
    balloon: list = field(default_factory=lambda: [16, 16])
    wave: str = "audio.ogg"


@dataclass
class ChartIssue:
    line: int
    message: str


@dataclass
class ParseResult:
    meta: TjaMetadata
    notes: list
    errors: list
    warnings: list


@dataclass
class CourseBlock:
    course: str
    level: int
    balloon: list
    notes_block: str
    header_lines: list
    is_active: bool = False


def note_id(beat, note_type):
    return f"{beat:.3f}-{note_type}"


def is_katsu(note_type):
    return note_type in (KATSU, KATSU_BIG)


def is_big(note_type):
    return note_type in (DON_BIG, KATSU_BIG)


def sized_type(base, big):
    if not big:
        return base
    return DON_BIG if base == DON else KATSU_BIG


def course_rank(course):
    return COURSE_ORDER.index(course) if course in COURSE_ORDER else len(COURSE_ORDER)


def _header_value(line):
    """Text after the first colon, None when nothing follows it."""
    _, sep, rest = line.partition(":")
    if not sep or not rest:
        return None
    return rest


def _parse_number(raw):
    if raw is None:
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def _normalize_number(value):
    return int(value) if float(value).is_integer() else value


# ------------------------------
# PARSING
# ------------------------------
HEADER, COURSE_HEADER, NOTES_BODY = "header", "course_header", "notes_body"


class _ChartParser:
    def __init__(self, text):
        self.text = text
        self.meta = TjaMetadata()
        self.notes = []
        self.errors = []
        self.warnings = []
        self.state = HEADER
        self.measure_index = 0
        self.buffer = []

    def run(self):
        for index, line in enumerate(self.text.split("\n")):
            self.feed(index + 1, line.strip())

        upper = self.text.upper()
        if "#START" not in upper:
            self.errors.append(ChartIssue(0, "Missing #START directive"))
        if "#END" not in upper:
            self.errors.append(ChartIssue(0, "Missing #END directive"))
        return ParseResult(self.meta, self.notes, self.errors, self.warnings)

    def feed(self, line_number, line):
        if not line or line.startswith("//"):
            return
        upper = line.upper()

        if self.read_header(line_number, line, upper):
            return

        if upper.startswith("#START"):
            self.state = NOTES_BODY
            self.buffer = []
            return
        if upper.startswith("#END"):
            if self.buffer:
                self.flush_measure(line_number)
            self.state = COURSE_HEADER
            return
        if upper.startswith("#MEASURE"):
            self.warnings.append(
                ChartIssue(line_number, "#MEASURE is not fully supported in visual editor")
            )
            return
        if line.startswith("#"):
            return

        if self.state == NOTES_BODY:
            self.read_notes(line_number, line)

    def read_header(self, line_number, line, upper):
        key = upper.partition(":")[0]
        if ":" not in line or key not in ("TITLE", "BPM", "OFFSET", "COURSE", "LEVEL", "BALLOON", "WAVE"):
            return False
        raw = _header_value(line)
        meta = self.meta

        if key == "TITLE":
            meta.title = raw.strip() if raw is not None else meta.title
        elif key == "COURSE":
            meta.course = raw.strip() if raw is not None else meta.course
            if self.state == HEADER:
                self.state = COURSE_HEADER
        elif key == "WAVE":
            meta.wave = raw.strip() if raw is not None else meta.wave
        elif key == "BALLOON":
            values = (_parse_number(part.strip()) for part in (raw or "").split(","))
            meta.balloon = [_normalize_number(v) for v in values if v is not None]
        elif key == "LEVEL":
            value = _parse_number(raw)
            if value is None or not value.is_integer():
                self.errors.append(ChartIssue(line_number, "Invalid LEVEL value"))
            else:
                meta.level = int(value)
        else:
            value = _parse_number(raw)
            if value is None:
                self.errors.append(ChartIssue(line_number, f"Invalid {key} value"))
            elif key == "BPM":
                meta.bpm = _normalize_number(value)
            else:
                meta.offset = _normalize_number(value)
        return True

    def read_notes(self, line_number, line):
        compact = re.sub(r"\s", "", line)
        pieces = compact.split(",")
        # every piece but the last was terminated by a comma
        for piece in pieces[:-1]:
            self.buffer.extend(piece)
            self.flush_measure(line_number)
        self.buffer.extend(pieces[-1])

    def flush_measure(self, line_number):
        tokens = self.buffer
        count = len(tokens)
        for token_index, token in enumerate(tokens):
            if token == "0":
                continue
            note_type = TOKEN_TO_TYPE.get(token)
            if note_type is None:
                self.warnings.append(ChartIssue(line_number, f"Unsupported note token: {token}"))
                continue
            beat = self.measure_index * BEATS_PER_MEASURE + (token_index / count) * BEATS_PER_MEASURE
            self.notes.append(Note(f"{self.measure_index}-{token_index}", beat, note_type))
        self.buffer = []
        self.measure_index += 1


def parse_tja(text):
    """Parse a chart document into metadata, notes and line-tagged issues."""
    return _ChartParser(text).run()


def split_courses(text):
    """
    Split a multi-course document into (global_header_lines, [section_text, ...]).
    Each section runs from the end of the previous one through its #END.
    """
    lines = _LINE_BREAK.split(text)
    stop = next(
        (
            i for i, l in enumerate(lines)
            if l.strip().upper().startswith("COURSE:") or l.strip().upper().startswith("#START")
        ),
        len(lines),
    )
    global_lines = [line for line in lines[:stop] if line.strip()]

    sections, current = [], []
    for line in lines[stop:]:
        current.append(line)
        if line.strip().upper().startswith("#END"):
            sections.append("\n".join(current).strip("\n"))
            current = []
    if any(line.strip() for line in current):
        sections.append("\n".join(current).strip("\n"))
    return global_lines, sections


def parse_courses(text):
    """Parse every course section of a document; each result sees the global header too."""
    global_lines, sections = split_courses(text)
    header = "\n".join(global_lines)
    results = {}
    for section in sections:
        result = parse_tja(f"{header}\n{section}\n" if header else f"{section}\n")
        results[result.meta.course] = result
    return results


# ------------------------------
# RENDERING
# ------------------------------
def build_notes_block(notes, divisions=DEFAULT_DIVISIONS):
    if not notes:
        return "0" * divisions + ","

    max_beat = max(note.beat for note in notes)
    measures = max(1, math.ceil((max_beat + 0.001) / BEATS_PER_MEASURE))
    rows = [["0"] * divisions for _ in range(measures)]

    for note in notes:
        measure = math.floor(note.beat / BEATS_PER_MEASURE)
        if measure < 0 or measure >= measures:
            continue
        beat_in_measure = note.beat - measure * BEATS_PER_MEASURE
        slot = round_half_up(beat_in_measure / BEATS_PER_MEASURE * divisions)
        slot = min(divisions - 1, max(0, slot))
        rows[measure][slot] = TYPE_TO_TOKEN.get(note.type, "1")

    return "\n".join("".join(row) + "," for row in rows)


def update_header_value(source, key, value):
    """Replace the first KEY: line (any case) or insert one before #START."""
    lines = source.split("\n")
    prefix = f"{key.upper()}:"
    next_line = f"{prefix}{value}"
    for index, line in enumerate(lines):
        if line.upper().startswith(prefix):
            lines[index] = next_line
            break
    else:
        insert_at = next(
            (i for i, line in enumerate(lines) if line.strip().startswith("#START")), 0
        )
        lines.insert(insert_at, next_line)
    return "\n".join(lines)


def replace_notes_section(source, notes_block):
    start = source.find("#START")
    end = source.find("#END")
    if start == -1 or end == -1 or end < start:
        return f"{source.strip()}\n\n#START\n{notes_block}\n#END\n"
    return f"{source[:start]}#START\n{notes_block}\n#END{source[end + len('#END'):]}"


def build_tja_from_meta(meta, notes, divisions=DEFAULT_DIVISIONS):
    tja = DEFAULT_TJA
    tja = update_header_value(tja, "TITLE", meta.title)
    tja = update_header_value(tja, "BPM", format_number(meta.bpm))
    tja = update_header_value(tja, "OFFSET", format_number(meta.offset))
    tja = update_header_value(tja, "COURSE", meta.course)
    tja = update_header_value(tja, "LEVEL", str(meta.level))
    tja = update_header_value(tja, "BALLOON", ",".join(str(b) for b in meta.balloon))
    tja = update_header_value(tja, "WAVE", meta.wave)
    return replace_notes_section(tja, build_notes_block(notes, divisions))


# ------------------------------
# EDITING
# ------------------------------
def quantize_notes(notes, divisions=DEFAULT_DIVISIONS):
    """
    Snap notes to the grid. Two notes landing on one slot merge: mixed
    categories become a plain katsu, same category keeps the big variant.
    """
    if not notes:
        return []
    step = divisions / BEATS_PER_MEASURE
    bucket = {}
    for note in notes:
        snapped = round_half_up(note.beat * step) / step
        existing = bucket.get(snapped)
        if existing is None:
            bucket[snapped] = note.type
        elif is_katsu(existing) != is_katsu(note.type):
            bucket[snapped] = KATSU
        elif existing == DON and note.type == DON_BIG:
            bucket[snapped] = DON_BIG
        elif existing == KATSU and note.type == KATSU_BIG:
            bucket[snapped] = KATSU_BIG
    return sorted(
        (Note(note_id(beat, t), beat, t) for beat, t in bucket.items()),
        key=lambda n: n.beat,
    )


def toggle_note(notes, beat, note_type, tolerance=0.01):
    """
    Add a note at ``beat``, retype the note already there, or remove it when
    it already has ``note_type``. Mutates and returns ``notes``.
    """
    existing = next((n for n in notes if abs(n.beat - beat) < tolerance), None)
    if existing is None:
        notes.append(Note(f"{beat}-{note_type}", beat, note_type))
    elif existing.type == note_type:
        notes.remove(existing)
    else:
        existing.type = note_type
    return notes


def retype_note(notes, target_id, note_type):
    for note in notes:
        if note.id == target_id:
            note.type = note_type
            note.id = note_id(note.beat, note_type)
            return note
    return None


# ------------------------------
# MULTI-COURSE MERGE
# ------------------------------
def extract_notes_block(source):
    lines = _LINE_BREAK.split(source)
    start = next((i for i, l in enumerate(lines) if l.strip().upper().startswith("#START")), -1)
    end = next((i for i, l in enumerate(lines) if l.strip().upper().startswith("#END")), -1)
    if start == -1 or end == -1 or end <= start:
        return ""
    return "\n".join(lines[start + 1:end]).strip()


def extract_course_header_lines(source):
    """Header lines before #START, minus the global keys."""
    lines = _LINE_BREAK.split(source)
    start = next((i for i, l in enumerate(lines) if l.strip().upper().startswith("#START")), -1)
    header = lines if start == -1 else lines[:start]
    out = []
    for line in header:
        upper = line.strip().upper()
        if not upper:
            continue
        if any(upper.startswith(f"{key}:") for key in GLOBAL_KEYS):
            continue
        out.append(line)
    return out


def extract_global_header_lines(source):
    lines = _LINE_BREAK.split(source)
    stop = next(
        (
            i for i, l in enumerate(lines)
            if l.strip().upper().startswith("COURSE:") or l.strip().upper().startswith("#START")
        ),
        -1,
    )
    header = lines if stop == -1 else lines[:stop]
    return [line for line in header if line.strip()]


def upsert_header_line(lines, key, value):
    """Set ``key`` on its first line and drop any later duplicates; append when absent."""
    prefix = f"{key.upper()}:"
    next_line = f"{prefix}{value}"
    out, found = [], False
    for line in lines:
        if line.strip().upper().startswith(prefix):
            if not found:
                out.append(next_line)
                found = True
            continue
        out.append(line)
    if not found:
        out.append(next_line)
    return out


def _has_key(lines, key):
    return any(line.strip().upper().startswith(f"{key}:") for line in lines)


def build_combined_tja(base, blocks, base_header_lines):
    """
    Compose one document: global header, then one section per block in the
    given order. COURSE/LEVEL/BALLOON are added to a section only when its own
    header lines lack them.
    """
    header = list(base_header_lines)
    header = upsert_header_line(header, "TITLE", base["title"])
    header = upsert_header_line(header, "BPM", format_number(base["bpm"]))
    header = upsert_header_line(header, "OFFSET", format_number(base["offset"]))
    header = upsert_header_line(header, "WAVE", base["wave"])

    sections = []
    for block in blocks:
        required = []
        if not _has_key(block.header_lines, "COURSE"):
            required.append(f"COURSE:{block.course}")
        if not _has_key(block.header_lines, "LEVEL"):
            required.append(f"LEVEL:{block.level}")
        if not _has_key(block.header_lines, "BALLOON"):
            required.append(f"BALLOON:{','.join(str(b) for b in block.balloon)}")
        lines = required + list(block.header_lines)
        body = block.notes_block or "0,"
        sections.append("\n".join(lines) + f"\n\n#START\n{body}\n#END")

    return "\n".join(header) + "\n\n" + "\n\n".join(sections) + "\n"


def order_course_blocks(blocks):
    """One block per course (an active block overrides), sorted low to high, unknowns last."""
    unique = {}
    for block in blocks:
        if block.course not in unique or block.is_active:
            unique[block.course] = block
    # sorted() is stable, so unknown courses keep first-seen order
    return sorted(unique.values(), key=lambda b: course_rank(b.course))


def block_from_text(tja_text, is_active=False):
    meta = parse_tja(tja_text).meta
    return CourseBlock(
        course=meta.course,
        level=meta.level,
        balloon=list(meta.balloon),
        notes_block=extract_notes_block(tja_text),
        header_lines=extract_course_header_lines(tja_text),
        is_active=is_active,
    )


def merge_tiers(global_text, blocks, *, title=None, bpm=None, offset=None, wave=None):
    """
    Merge course blocks into one document under the global header of
    ``global_text``. Explicit title/bpm/offset/wave win over the parsed values.
    """
    meta = parse_tja(global_text).meta
    base = {
        "title": title if title is not None else meta.title,
        "bpm": bpm if bpm is not None else meta.bpm,
        "offset": offset if offset is not None else meta.offset,
        "wave": wave if wave is not None else meta.wave,
    }
    ordered = order_course_blocks(blocks)
    return build_combined_tja(base, ordered, extract_global_header_lines(global_text))


def with_course(meta, course, level):
    return replace(meta, course=course, level=level, balloon=list(meta.balloon))
