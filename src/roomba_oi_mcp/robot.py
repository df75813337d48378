"""High-level session with one robot.

A :class:`Roomba` validates and encodes commands through the protocol
layer, writes them through a transport, and owns the sensor frame
assembler and the request throttle for its connection. Two sessions in
one process never share state.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol, Sequence

from .errors import TransportFailure
from .protocol import commands
from .protocol.assembler import FrameAssembler, RequestThrottle
from .protocol.commands import SONG_NUMBER_MAX
from .protocol.sensors import SensorFrame
from .protocol.song import SongNote

logger = logging.getLogger(__name__)

SENSOR_REPLY_TIMEOUT_S = 0.5


class Transport(Protocol):
    def send_bytes(self, data: bytes) -> bool: ...

    def send_byte(self, value: int) -> bool: ...


class Roomba:
    """Command and telemetry session over a transport.

    Usage::

        conn = SerialConnection("/dev/ttyUSB0")
        roomba = Roomba(conn)
        conn.on_data = roomba.receive
        conn.open()
        roomba.startup()
        roomba.drive(200, RADIUS_STRAIGHT)

    Every command method raises :class:`InvalidArgument` before sending
    if an argument is out of range, and :class:`TransportFailure` if the
    transport reports a failed write.
    """

    def __init__(
        self,
        transport: Transport,
        song_number_max: int = SONG_NUMBER_MAX,
        assembler: Optional[FrameAssembler] = None,
        throttle: Optional[RequestThrottle] = None,
    ) -> None:
        self._transport = transport
        self._song_number_max = song_number_max
        self.assembler = assembler or FrameAssembler()
        self.throttle = throttle or RequestThrottle()

    @property
    def transport(self) -> Transport:
        return self._transport

    def _send(self, data: bytes) -> None:
        if len(data) == 1:
            ok = self._transport.send_byte(data[0])
        else:
            ok = self._transport.send_bytes(data)
        if not ok:
            raise TransportFailure(
                f"Transport failed to send command 0x{data[0]:02X} ({len(data)} bytes)"
            )

    # ─── POWER AND MODES ─────────────────────────────────────────────

    def start(self) -> None:
        logger.info("Sending 'start' command")
        self._send(commands.build_start())

    def startup(self) -> None:
        """Start the Open Interface and switch to safe mode."""
        logger.info("Sending 'start' and 'safe' commands")
        self._send(commands.build_startup())

    def reset(self) -> None:
        """Return to passive then safe mode; same bytes as :meth:`startup`."""
        self.startup()

    def hard_reset(self) -> None:
        logger.info("Sending 'hard reset' command")
        self._send(commands.build_hard_reset())

    def stop(self) -> None:
        logger.info("Sending 'stop' command")
        self._send(commands.build_stop())

    def power_off(self) -> None:
        logger.info("Sending 'power off' command")
        self._send(commands.build_power_off())

    def safe_mode(self) -> None:
        logger.info("Sending 'safe' command")
        self._send(commands.build_safe())

    def full_mode(self) -> None:
        logger.info("Sending 'full' command")
        self._send(commands.build_full())

    # ─── CLEANING ────────────────────────────────────────────────────

    def clean(self) -> None:
        logger.info("Sending 'clean' command")
        self._send(commands.build_clean())

    def clean_max(self) -> None:
        logger.info("Sending 'max clean' command")
        self._send(commands.build_clean_max())

    def clean_spot(self) -> None:
        logger.info("Sending 'spot' command")
        self._send(commands.build_spot())

    def seek_dock(self) -> None:
        logger.info("Sending 'seek dock' command")
        self._send(commands.build_seek_dock())

    def schedule(self, days: Sequence[bool], times: Sequence[tuple[int, int]]) -> None:
        data = commands.build_schedule(days, times)
        logger.info("Sending new cleaning schedule (days mask 0x%02X)", data[1])
        self._send(data)

    def clear_schedule(self) -> None:
        logger.info("Clearing cleaning schedule")
        self._send(commands.build_clear_schedule())

    def set_day_time(self, day: int, hour: int, minute: int) -> None:
        data = commands.build_set_day_time(day, hour, minute)
        logger.info("Setting clock to day=%d %02d:%02d", day, hour, minute)
        self._send(data)

    # ─── ACTUATORS ───────────────────────────────────────────────────

    def drive(self, velocity: int, radius: int) -> None:
        data = commands.build_drive(velocity, radius)
        logger.info("Sending 'drive' command (velocity=%d, radius=%d)", velocity, radius)
        self._send(data)

    def drive_direct(self, right_velocity: int, left_velocity: int) -> None:
        data = commands.build_drive_direct(right_velocity, left_velocity)
        logger.info(
            "Sending 'drive direct' command (right=%d, left=%d)",
            right_velocity, left_velocity,
        )
        self._send(data)

    def drive_pwm(self, right_percent: int, left_percent: int) -> None:
        data = commands.build_drive_pwm(right_percent, left_percent)
        logger.info(
            "Sending 'drive PWM' command (right=%d%%, left=%d%%)",
            right_percent, left_percent,
        )
        self._send(data)

    def motors(
        self,
        side_brush: bool = False,
        vacuum: bool = False,
        main_brush: bool = False,
        side_brush_clockwise: bool = False,
        main_brush_outward: bool = False,
    ) -> None:
        data = commands.build_motors(
            side_brush, vacuum, main_brush, side_brush_clockwise, main_brush_outward
        )
        logger.info("Sending 'motors' command (mask 0x%02X)", data[1])
        self._send(data)

    def motors_pwm(self, main_brush_percent: int, side_brush_percent: int,
                   vacuum_percent: int) -> None:
        data = commands.build_motors_pwm(
            main_brush_percent, side_brush_percent, vacuum_percent
        )
        logger.info(
            "Sending 'motors PWM' command (main=%d%%, side=%d%%, vacuum=%d%%)",
            main_brush_percent, side_brush_percent, vacuum_percent,
        )
        self._send(data)

    def leds(self, debris: bool = False, spot: bool = False, dock: bool = False,
             check_robot: bool = False, power_color: int = 0,
             power_intensity: int = 0) -> None:
        """Set LEDs; power colour and intensity in percent."""
        data = commands.build_leds(
            debris, spot, dock, check_robot, power_color, power_intensity
        )
        logger.info("Sending 'LEDs' command: %s", data[1:].hex(" "))
        self._send(data)

    def leds_raw(self, debris: bool = False, spot: bool = False, dock: bool = False,
                 check_robot: bool = False, power_color: int = 0,
                 power_intensity: int = 0) -> None:
        """Set LEDs; power colour and intensity as raw 0-255 values."""
        data = commands.build_leds_raw(
            debris, spot, dock, check_robot, power_color, power_intensity
        )
        logger.info("Sending 'LEDs' command: %s", data[1:].hex(" "))
        self._send(data)

    def scheduling_leds(self, weekdays: Sequence[bool] = (), colon: bool = False,
                        pm: bool = False, am: bool = False, clock: bool = False,
                        schedule: bool = False) -> None:
        data = commands.build_scheduling_leds(weekdays, colon, pm, am, clock, schedule)
        logger.info("Sending 'scheduling LEDs' command: %s", data[1:].hex(" "))
        self._send(data)

    def digit_leds_ascii(self, text: str) -> None:
        data = commands.build_digit_leds_ascii(text)
        logger.info("Sending 'digit LEDs' command: %r", text)
        self._send(data)

    def buttons(self, clean: bool = False, spot: bool = False, dock: bool = False,
                minute: bool = False, hour: bool = False, day: bool = False,
                schedule: bool = False, clock: bool = False) -> None:
        data = commands.build_buttons(clean, spot, dock, minute, hour, day, schedule, clock)
        logger.info("Sending 'buttons' command (mask 0x%02X)", data[1])
        self._send(data)

    def song(self, number: int, notes: Sequence[SongNote], tempo: int) -> None:
        data = commands.build_song(number, notes, tempo, self._song_number_max)
        logger.info("Storing song %d (%d notes, %d BPM)", number, len(notes), tempo)
        self._send(data)

    def play(self, number: int) -> None:
        data = commands.build_play(number, self._song_number_max)
        logger.info("Playing song %d", number)
        self._send(data)

    # ─── SENSORS ─────────────────────────────────────────────────────

    def update_sensors(self) -> int:
        """Request a fresh sensor frame.

        Raises :class:`TooFrequent` if the previous request was less than
        50 ms ago. A request whose write fails does not count. Returns the sequence number of the newest frame at the
        time of the request, for use with :meth:`wait_for_sensors`.
        """
        self.throttle.check()
        # The reply starts at offset 0 of a new frame
        self.assembler.reset()
        sequence = self.assembler.frames_completed
        logger.debug("Requesting sensor data")
        self._send(commands.build_query())
        self.throttle.record()
        return sequence

    def wait_for_sensors(self, after_sequence: int,
                         timeout: float = SENSOR_REPLY_TIMEOUT_S) -> Optional[SensorFrame]:
        return self.assembler.wait_for_frame(after_sequence, timeout)

    def receive(self, chunk: bytes) -> None:
        """Transport callback: feed received bytes to the assembler."""
        self.assembler.feed(chunk)

    @property
    def sensors(self) -> SensorFrame:
        """Latest complete sensor frame (all zeros until one arrives)."""
        return self.assembler.latest

    def sensor_age(self) -> Optional[float]:
        return self.assembler.frame_age()
