"""Opcode constants and command builders.

Every command is a single opcode byte followed by a fixed-size payload
(only SONG has a variable length). Builders validate their arguments
and return the complete ``bytes`` to write to the serial port; nothing
is produced when validation fails. Multi-byte integers are big-endian
two's complement.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Sequence

from ..errors import InvalidArgument
from .song import SongNote, song_notes_to_bytes, validate_tempo


class Command(IntEnum):
    """Open Interface opcodes."""

    RESET = 7
    START = 128
    SAFE = 131
    FULL = 132
    POWER = 133
    SPOT = 134
    CLEAN = 135
    MAX_CLEAN = 136
    DRIVE = 137
    MOTORS = 138
    LEDS = 139
    SONG = 140
    PLAY = 141
    QUERY = 142
    SEEK_DOCK = 143
    PWM_MOTORS = 144
    DRIVE_DIRECT = 145
    DRIVE_PWM = 146
    SCHEDULING_LEDS = 162
    DIGIT_LEDS_ASCII = 164
    BUTTONS = 165
    SCHEDULE = 167
    SET_DAY_TIME = 168
    STOP = 173


class Weekday(IntEnum):
    """Day index used by SCHEDULE and SET_DAY_TIME (week starts on Sunday)."""

    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6


# Sensor packet group "all" and its size
SENSOR_PACKET_ALL = 100
SENSOR_PACKET_ALL_SIZE = 80

VELOCITY_MAX = 500  # mm/s
RADIUS_MAX = 2000  # mm
RADIUS_STRAIGHT = 32767
RADIUS_STRAIGHT_ALT = 32768
RADIUS_TURN_IN_PLACE_CW = -1
RADIUS_TURN_IN_PLACE_CCW = 1

SONG_NUMBER_MAX = 15
LEGACY_SONG_NUMBER_MAX = 4  # older firmware only stores songs 0-4
SONG_MAX_NOTES = 16

# Full-scale raw values for percentage arguments
DRIVE_WHEEL_MAX_POWER = 0xFF
MOTORS_MAX_POWER = 0x7F
LEDS_POWER_MAX_COLOR = 0xFF
LEDS_POWER_MAX_INTENSITY = 0xFF

# Percent -> raw conversions truncate toward zero everywhere.
PERCENT_SCALING = "truncate"

MOTORS_SIDE_BRUSH = 0x01
MOTORS_VACUUM = 0x02
MOTORS_MAIN_BRUSH = 0x04
MOTORS_SIDE_BRUSH_CW = 0x08
MOTORS_MAIN_BRUSH_OUTWARD = 0x10

LEDS_DEBRIS = 0x01
LEDS_SPOT = 0x02
LEDS_DOCK = 0x04
LEDS_CHECK_ROBOT = 0x08

SCHEDULING_LEDS_COLON = 0x01
SCHEDULING_LEDS_PM = 0x02
SCHEDULING_LEDS_AM = 0x04
SCHEDULING_LEDS_CLOCK = 0x08
SCHEDULING_LEDS_SCHEDULE = 0x10

BUTTONS_CLEAN = 0x01
BUTTONS_SPOT = 0x02
BUTTONS_DOCK = 0x04
BUTTONS_MINUTE = 0x08
BUTTONS_HOUR = 0x10
BUTTONS_DAY = 0x20
BUTTONS_SCHEDULE = 0x40
BUTTONS_CLOCK = 0x80

# Printable characters the digit display firmware reserves
DIGIT_LEDS_RESERVED = frozenset("*+@")


def build_command(command: Command, payload: bytes = b"") -> bytes:
    """Prefix ``payload`` with the opcode byte."""
    return bytes([command.value]) + payload


def scale_percent(percent: int, full_scale: int) -> int:
    """Convert a percentage of ``full_scale`` into a raw value.

    Truncates toward zero, so ``scale_percent(-50, 255) == -127``.
    """
    return int(full_scale * (percent / 100.0))


def pack_flags(*flags: bool) -> int:
    """Pack booleans into a byte, the first flag in bit 0."""
    value = 0
    for bit, flag in enumerate(flags):
        if flag:
            value |= 1 << bit
    return value


def _int16(value: int) -> bytes:
    """Big-endian 16-bit two's complement, truncating to 16 bits."""
    return (value & 0xFFFF).to_bytes(2, "big")


def _int8(value: int) -> int:
    return value & 0xFF


def _check_range(name: str, value: int, low: int, high: int, unit: str = "") -> None:
    if not low <= value <= high:
        raise InvalidArgument(f"{name} must be {low} to {high}{unit}, got {value}")


def _check_time(hour: int, minute: int) -> None:
    _check_range("Hour", hour, 0, 23)
    _check_range("Minute", minute, 0, 59)


# ─── SIMPLE COMMANDS ─────────────────────────────────────────────────

def build_start() -> bytes:
    """START: enter passive mode; must precede any other command."""
    return build_command(Command.START)


def build_startup() -> bytes:
    """START immediately followed by SAFE, sent as one write."""
    return build_start() + build_safe()


def build_safe() -> bytes:
    return build_command(Command.SAFE)


def build_full() -> bytes:
    return build_command(Command.FULL)


def build_power_off() -> bytes:
    return build_command(Command.POWER)


def build_spot() -> bytes:
    return build_command(Command.SPOT)


def build_clean() -> bytes:
    return build_command(Command.CLEAN)


def build_clean_max() -> bytes:
    return build_command(Command.MAX_CLEAN)


def build_seek_dock() -> bytes:
    return build_command(Command.SEEK_DOCK)


def build_stop() -> bytes:
    """STOP: leave the Open Interface; the robot ignores further commands."""
    return build_command(Command.STOP)


def build_hard_reset() -> bytes:
    """RESET: reboot the robot as if its battery had been reinserted."""
    return build_command(Command.RESET)


def build_query(packet_id: int = SENSOR_PACKET_ALL) -> bytes:
    """QUERY a sensor packet; the default asks for the 80-byte group."""
    _check_range("Sensor packet id", packet_id, 0, 255)
    return build_command(Command.QUERY, bytes([packet_id]))


# ─── DRIVE COMMANDS ──────────────────────────────────────────────────

def _check_velocity(name: str, velocity: int) -> None:
    _check_range(name, velocity, -VELOCITY_MAX, VELOCITY_MAX, " mm/s")


def build_drive(velocity: int, radius: int) -> bytes:
    """DRIVE with an average velocity and a turning radius.

    Args:
        velocity: -500 to 500 mm/s, negative drives backwards.
        radius: -2000 to 2000 mm (positive turns left), 32767 or 32768
            to drive straight, -1/1 to turn in place clockwise/counter
            clockwise.
    """
    _check_velocity("Velocity", velocity)
    if not (-RADIUS_MAX <= radius <= RADIUS_MAX
            or radius in (RADIUS_STRAIGHT, RADIUS_STRAIGHT_ALT)):
        raise InvalidArgument(
            f"Radius must be {-RADIUS_MAX} to {RADIUS_MAX} mm or "
            f"{RADIUS_STRAIGHT}/{RADIUS_STRAIGHT_ALT} for straight, got {radius}"
        )
    return build_command(Command.DRIVE, _int16(velocity) + _int16(radius))


def build_drive_direct(right_velocity: int, left_velocity: int) -> bytes:
    """DRIVE_DIRECT with independent wheel velocities (-500 to 500 mm/s)."""
    _check_velocity("Right velocity", right_velocity)
    _check_velocity("Left velocity", left_velocity)
    return build_command(
        Command.DRIVE_DIRECT, _int16(right_velocity) + _int16(left_velocity)
    )


def build_drive_pwm(right_percent: int, left_percent: int) -> bytes:
    """DRIVE_PWM with per-wheel duty cycles of -100 to 100 percent."""
    _check_range("Right PWM", right_percent, -100, 100, "%")
    _check_range("Left PWM", left_percent, -100, 100, "%")
    right = scale_percent(right_percent, DRIVE_WHEEL_MAX_POWER)
    left = scale_percent(left_percent, DRIVE_WHEEL_MAX_POWER)
    return build_command(Command.DRIVE_PWM, _int16(right) + _int16(left))


# ─── CLEANING MOTORS ─────────────────────────────────────────────────

def build_motors(
    side_brush: bool = False,
    vacuum: bool = False,
    main_brush: bool = False,
    side_brush_clockwise: bool = False,
    main_brush_outward: bool = False,
) -> bytes:
    """MOTORS: switch the cleaning motors on or off."""
    motors = pack_flags(
        side_brush, vacuum, main_brush, side_brush_clockwise, main_brush_outward
    )
    return build_command(Command.MOTORS, bytes([motors]))


def build_motors_pwm(main_brush_percent: int, side_brush_percent: int,
                     vacuum_percent: int) -> bytes:
    """PWM_MOTORS: duty cycle of the brushes (-100..100) and vacuum (0..100)."""
    _check_range("Main brush PWM", main_brush_percent, -100, 100, "%")
    _check_range("Side brush PWM", side_brush_percent, -100, 100, "%")
    _check_range("Vacuum PWM", vacuum_percent, 0, 100, "%")
    payload = bytes([
        _int8(scale_percent(main_brush_percent, MOTORS_MAX_POWER)),
        _int8(scale_percent(side_brush_percent, MOTORS_MAX_POWER)),
        _int8(scale_percent(vacuum_percent, MOTORS_MAX_POWER)),
    ])
    return build_command(Command.PWM_MOTORS, payload)


# ─── LEDS AND DISPLAY ────────────────────────────────────────────────

def build_leds(
    debris: bool = False,
    spot: bool = False,
    dock: bool = False,
    check_robot: bool = False,
    power_color: int = 0,
    power_intensity: int = 0,
) -> bytes:
    """LEDS with the power LED colour and intensity given in percent.

    Args:
        power_color: 0 (green) to 100 (red) percent.
        power_intensity: 0 (off) to 100 (full) percent.
    """
    _check_range("Power LED color", power_color, 0, 100, "%")
    _check_range("Power LED intensity", power_intensity, 0, 100, "%")
    return build_leds_raw(
        debris, spot, dock, check_robot,
        scale_percent(power_color, LEDS_POWER_MAX_COLOR),
        scale_percent(power_intensity, LEDS_POWER_MAX_INTENSITY),
    )


def build_leds_raw(
    debris: bool = False,
    spot: bool = False,
    dock: bool = False,
    check_robot: bool = False,
    power_color: int = 0,
    power_intensity: int = 0,
) -> bytes:
    """LEDS with raw 0-255 power LED colour and intensity (no scaling)."""
    _check_range("Power LED color", power_color, 0, 255)
    _check_range("Power LED intensity", power_intensity, 0, 255)
    leds = pack_flags(debris, spot, dock, check_robot)
    return build_command(Command.LEDS, bytes([leds, power_color, power_intensity]))


def build_scheduling_leds(
    weekdays: Sequence[bool] = (),
    colon: bool = False,
    pm: bool = False,
    am: bool = False,
    clock: bool = False,
    schedule: bool = False,
) -> bytes:
    """SCHEDULING_LEDS: weekday LEDs (Sunday first) and clock indicators."""
    if len(weekdays) > 7:
        raise InvalidArgument(f"At most 7 weekday flags allowed, got {len(weekdays)}")
    weekday_leds = pack_flags(*weekdays)
    scheduling_leds = pack_flags(colon, pm, am, clock, schedule)
    return build_command(Command.SCHEDULING_LEDS, bytes([weekday_leds, scheduling_leds]))


def is_displayable(char: str) -> bool:
    """True if the digit display can show ``char``."""
    return (len(char) == 1 and 32 <= ord(char) <= 126
            and char not in DIGIT_LEDS_RESERVED)


def build_digit_leds_ascii(text: str) -> bytes:
    """DIGIT_LEDS_ASCII: show exactly four characters, left to right.

    Any character outside printable ASCII 32-126, or one of ``*``, ``+``
    and ``@``, rejects the whole command.
    """
    if len(text) != 4:
        raise InvalidArgument(f"Digit display takes exactly 4 characters, got {len(text)}")
    for char in text:
        if not is_displayable(char):
            raise InvalidArgument(f"Character {char!r} is not allowed on the digit display")
    return build_command(Command.DIGIT_LEDS_ASCII, text.encode("ascii"))


def build_buttons(
    clean: bool = False,
    spot: bool = False,
    dock: bool = False,
    minute: bool = False,
    hour: bool = False,
    day: bool = False,
    schedule: bool = False,
    clock: bool = False,
) -> bytes:
    """BUTTONS: push buttons as if a user pressed them."""
    buttons = pack_flags(clean, spot, dock, minute, hour, day, schedule, clock)
    return build_command(Command.BUTTONS, bytes([buttons]))


# ─── SCHEDULING ──────────────────────────────────────────────────────

def build_schedule(days: Sequence[bool], times: Sequence[tuple[int, int]]) -> bytes:
    """SCHEDULE: weekly cleaning times.

    Args:
        days: Seven enable flags, Sunday first.
        times: Seven ``(hour, minute)`` pairs in the same order. Times of
            disabled days are still sent.
    """
    if len(days) != 7 or len(times) != 7:
        raise InvalidArgument(
            f"Schedule needs 7 day flags and 7 times, got {len(days)} and {len(times)}"
        )
    payload = bytearray([pack_flags(*days)])
    for day, (hour, minute) in zip(Weekday, times):
        try:
            _check_time(hour, minute)
        except InvalidArgument as e:
            raise InvalidArgument(f"{day.name.capitalize()}: {e}") from None
        payload += bytes([hour, minute])
    return build_command(Command.SCHEDULE, bytes(payload))


def build_clear_schedule() -> bytes:
    """SCHEDULE with every day disabled."""
    return build_schedule([False] * 7, [(0, 0)] * 7)


def build_set_day_time(day: int, hour: int, minute: int) -> bytes:
    """SET_DAY_TIME: set the robot clock. ``day`` is 0 (Sunday) to 6."""
    _check_range("Day", day, 0, 6)
    _check_time(hour, minute)
    return build_command(Command.SET_DAY_TIME, bytes([day, hour, minute]))


# ─── SONGS ───────────────────────────────────────────────────────────

def _check_song_number(number: int, max_number: int) -> None:
    _check_range("Song number", number, 0, max_number)


def build_song(
    number: int,
    notes: Sequence[SongNote],
    tempo: int,
    max_number: int = SONG_NUMBER_MAX,
) -> bytes:
    """SONG: store up to 16 notes under a song number.

    Payload is ``number, note count`` followed by two bytes per note.
    ``max_number`` selects between the current (15) and legacy (4) slot
    range.
    """
    _check_song_number(number, max_number)
    if len(notes) > SONG_MAX_NOTES:
        raise InvalidArgument(
            f"Songs have at most {SONG_MAX_NOTES} notes, got {len(notes)}"
        )
    validate_tempo(tempo)
    payload = bytes([number, len(notes)]) + song_notes_to_bytes(notes, tempo)
    return build_command(Command.SONG, payload)


def build_play(number: int, max_number: int = SONG_NUMBER_MAX) -> bytes:
    """PLAY a previously stored song."""
    _check_song_number(number, max_number)
    return build_command(Command.PLAY, bytes([number]))
