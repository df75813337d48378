"""Note and duration tables for the SONG command.

A note travels as two bytes: the MIDI-style pitch number (0 for a pause,
31-127 for G0-G8) and a duration in 1/64ths of a second. Durations are
given as musical classes and converted relative to the song tempo::

    duration_byte = int(0x40 * units * 60 / tempo)

where ``units`` is 0.25 for a sixteenth note up to 4 for a whole note.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Iterable

from ..errors import InvalidArgument

TEMPO_MIN = 60
TEMPO_MAX = 800
DURATION_UNIT = 0x40  # one second in duration ticks


class Note(IntEnum):
    """Pitch codes accepted by the SONG command."""

    PAUSE = 0

    G0 = 31
    G0_SHARP = 32
    A0 = 33
    A0_SHARP = 34
    B0 = 35

    C1 = 36
    C1_SHARP = 37
    D1 = 38
    D1_SHARP = 39
    E1 = 40
    F1 = 41
    F1_SHARP = 42
    G1 = 43
    G1_SHARP = 44
    A1 = 45
    A1_SHARP = 46
    B1 = 47

    C2 = 48
    C2_SHARP = 49
    D2 = 50
    D2_SHARP = 51
    E2 = 52
    F2 = 53
    F2_SHARP = 54
    G2 = 55
    G2_SHARP = 56
    A2 = 57
    A2_SHARP = 58
    B2 = 59

    C3 = 60
    C3_SHARP = 61
    D3 = 62
    D3_SHARP = 63
    E3 = 64
    F3 = 65
    F3_SHARP = 66
    G3 = 67
    G3_SHARP = 68
    A3 = 69
    A3_SHARP = 70
    B3 = 71

    C4 = 72
    C4_SHARP = 73
    D4 = 74
    D4_SHARP = 75
    E4 = 76
    F4 = 77
    F4_SHARP = 78
    G4 = 79
    G4_SHARP = 80
    A4 = 81
    A4_SHARP = 82
    B4 = 83

    C5 = 84
    C5_SHARP = 85
    D5 = 86
    D5_SHARP = 87
    E5 = 88
    F5 = 89
    F5_SHARP = 90
    G5 = 91
    G5_SHARP = 92
    A5 = 93
    A5_SHARP = 94
    B5 = 95

    C6 = 96
    C6_SHARP = 97
    D6 = 98
    D6_SHARP = 99
    E6 = 100
    F6 = 101
    F6_SHARP = 102
    G6 = 103
    G6_SHARP = 104
    A6 = 105
    A6_SHARP = 106
    B6 = 107

    C7 = 108
    C7_SHARP = 109
    D7 = 110
    D7_SHARP = 111
    E7 = 112
    F7 = 113
    F7_SHARP = 114
    G7 = 115
    G7_SHARP = 116
    A7 = 117
    A7_SHARP = 118
    B7 = 119

    C8 = 120
    C8_SHARP = 121
    D8 = 122
    D8_SHARP = 123
    E8 = 124
    F8 = 125
    F8_SHARP = 126
    G8 = 127


class NoteDuration(Enum):
    """Musical duration classes, valued in quarter-note units."""

    SIXTEENTH = 0.25
    EIGHTH = 0.5
    QUARTER = 1.0
    HALF = 2.0
    WHOLE = 4.0

    @property
    def units(self) -> float:
        return self.value

    def duration_byte(self, tempo: int) -> int:
        """Return the wire duration for this class at ``tempo`` BPM.

        The result is truncated toward zero. A value that does not fit a
        byte (a whole note at 60 BPM) is rejected rather than wrapped.
        """
        validate_tempo(tempo)
        value = int(DURATION_UNIT * self.units * (60.0 / tempo))
        if not 0 <= value <= 0xFF:
            raise InvalidArgument(
                f"{self.name.lower()} note at {tempo} BPM lasts {value} ticks, "
                f"more than the 255 a duration byte can hold"
            )
        return value

    @classmethod
    def from_name(cls, name: str) -> NoteDuration:
        key = name.strip().upper()
        aliases = {"1/16": "SIXTEENTH", "1/8": "EIGHTH", "1/4": "QUARTER",
                   "1/2": "HALF", "1": "WHOLE"}
        key = aliases.get(key, key)
        try:
            return cls[key]
        except KeyError:
            raise InvalidArgument(
                f"Unknown note duration '{name}'. "
                f"Valid: {[d.name.lower() for d in cls]}"
            ) from None


@dataclass(frozen=True)
class SongNote:
    """One note of a song: a pitch held for a duration class."""

    note: Note
    duration: NoteDuration = NoteDuration.QUARTER

    def to_bytes(self, tempo: int) -> bytes:
        return bytes([int(self.note), self.duration.duration_byte(tempo)])


def validate_tempo(tempo: int) -> None:
    if not TEMPO_MIN <= tempo <= TEMPO_MAX:
        raise InvalidArgument(
            f"Song tempo must be {TEMPO_MIN}-{TEMPO_MAX} BPM, got {tempo}"
        )


def song_notes_to_bytes(notes: Iterable[SongNote], tempo: int) -> bytes:
    """Concatenate the two-byte wire form of each note, in order."""
    validate_tempo(tempo)
    return b"".join(note.to_bytes(tempo) for note in notes)


_NOTE_RE = re.compile(r"^([A-G])(#?)(\d)$")


def parse_note(name: str) -> Note:
    """Parse a pitch name such as ``"C4"``, ``"F#5"`` or ``"pause"``."""
    text = name.strip().upper()
    if text in ("PAUSE", "REST", "-"):
        return Note.PAUSE
    match = _NOTE_RE.match(text)
    member = None
    if match:
        letter, sharp, octave = match.groups()
        member = f"{letter}{octave}{'_SHARP' if sharp else ''}"
    if member not in Note.__members__:
        raise InvalidArgument(
            f"Unknown note '{name}'. Use a pitch from G0 to G8 "
            f"(e.g. 'C4', 'F#5') or 'pause'"
        )
    return Note[member]


def parse_song_note(text: str) -> SongNote:
    """Parse ``"<pitch>[:<duration>]"``, e.g. ``"A4:eighth"``.

    The duration defaults to a quarter note.
    """
    pitch, _, duration = text.partition(":")
    if not duration:
        return SongNote(parse_note(pitch))
    return SongNote(parse_note(pitch), NoteDuration.from_name(duration))
