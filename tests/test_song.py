"""Tests for the note and duration tables."""

import math

import pytest

from roomba_oi_mcp.errors import InvalidArgument
from roomba_oi_mcp.protocol.song import (
    Note,
    NoteDuration,
    SongNote,
    TEMPO_MAX,
    TEMPO_MIN,
    parse_note,
    parse_song_note,
    song_notes_to_bytes,
)


def test_note_table_range():
    """Pause is 0; pitches run contiguously from G0 (31) to G8 (127)."""
    assert Note.PAUSE == 0
    assert Note.G0 == 31
    assert Note.C4 == 72
    assert Note.A4 == 81
    assert Note.G8 == 127
    pitches = sorted(int(n) for n in Note if n is not Note.PAUSE)
    assert pitches == list(range(31, 128))


def test_quarter_note_at_165_bpm():
    assert NoteDuration.QUARTER.duration_byte(165) == math.floor(0x40 * 1 * 60 / 165)


def test_durations_relative_to_tempo():
    """Each class scales with its quarter-note units."""
    tempo = 185
    quarter_length = 60.0 / tempo
    assert NoteDuration.SIXTEENTH.duration_byte(tempo) == int(0x40 * 0.25 * quarter_length)
    assert NoteDuration.EIGHTH.duration_byte(tempo) == int(0x40 * 0.5 * quarter_length)
    assert NoteDuration.QUARTER.duration_byte(tempo) == int(0x40 * 1 * quarter_length)
    assert NoteDuration.HALF.duration_byte(tempo) == int(0x40 * 2 * quarter_length)
    assert NoteDuration.WHOLE.duration_byte(tempo) == int(0x40 * 4 * quarter_length)


def test_duration_fits_a_byte_for_legal_tempos():
    """Every legal tempo/duration pair fits in 1..255, except a whole note at 60 BPM."""
    for tempo in range(TEMPO_MIN, TEMPO_MAX + 1):
        for duration in NoteDuration:
            if duration is NoteDuration.WHOLE and tempo == 60:
                continue
            assert 1 <= duration.duration_byte(tempo) <= 255


def test_whole_note_at_60_bpm_rejected():
    """256 ticks would wrap to 0, so it is refused."""
    with pytest.raises(InvalidArgument, match="255"):
        NoteDuration.WHOLE.duration_byte(60)
    assert NoteDuration.WHOLE.duration_byte(61) == 251


def test_duration_rejects_illegal_tempo():
    with pytest.raises(InvalidArgument):
        NoteDuration.QUARTER.duration_byte(0)
    with pytest.raises(InvalidArgument):
        NoteDuration.QUARTER.duration_byte(801)


def test_song_notes_to_bytes():
    tempo = 165
    notes = [
        SongNote(Note.C1, NoteDuration.QUARTER),
        SongNote(Note.C2, NoteDuration.EIGHTH),
    ]
    expected = bytes([
        36, NoteDuration.QUARTER.duration_byte(tempo),
        48, NoteDuration.EIGHTH.duration_byte(tempo),
    ])
    assert song_notes_to_bytes(notes, tempo) == expected


def test_song_note_defaults_to_quarter():
    assert SongNote(Note.A4).to_bytes(60) == bytes([81, 64])


@pytest.mark.parametrize("name,expected", [
    ("C4", Note.C4),
    ("c4", Note.C4),
    ("F#5", Note.F5_SHARP),
    ("G0", Note.G0),
    ("G8", Note.G8),
    ("pause", Note.PAUSE),
    ("rest", Note.PAUSE),
])
def test_parse_note(name, expected):
    assert parse_note(name) is expected


@pytest.mark.parametrize("name", ["C0", "A8", "B#4", "H4", "C", ""])
def test_parse_note_rejects(name):
    with pytest.raises(InvalidArgument):
        parse_note(name)


def test_parse_song_note():
    assert parse_song_note("A4:eighth") == SongNote(Note.A4, NoteDuration.EIGHTH)
    assert parse_song_note("D#3") == SongNote(Note.D3_SHARP, NoteDuration.QUARTER)
    assert parse_song_note("pause:1/2") == SongNote(Note.PAUSE, NoteDuration.HALF)
    with pytest.raises(InvalidArgument):
        parse_song_note("C4:dotted")
