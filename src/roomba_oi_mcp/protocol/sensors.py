"""Sensor packet 100: the 80-byte "all sensors" frame.

The frame has no header, length or checksum. Each field lives at a fixed
offset and is decoded according to its kind::

    FLAG  (data[offset] & mask) != 0, or data[offset] != 0 without a mask
    U8    data[offset]                        0..255
    S8    data[offset] as two's complement    -128..127
    U16   big-endian data[offset:offset+2]    0..65535
    S16   big-endian two's complement         -32768..32767

Offsets 10, 36-38 and 43 hold packets this package does not expose.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any, NamedTuple, Optional

from .commands import SENSOR_PACKET_ALL_SIZE

SENSOR_FRAME_SIZE = SENSOR_PACKET_ALL_SIZE


class FieldKind(Enum):
    FLAG = "flag"
    U8 = "u8"
    S8 = "s8"
    U16 = "u16"
    S16 = "s16"


class SensorField(NamedTuple):
    """Location and encoding of one value inside the frame."""

    offset: int
    kind: FieldKind
    mask: Optional[int] = None

    @property
    def width(self) -> int:
        return 2 if self.kind in (FieldKind.U16, FieldKind.S16) else 1

    def decode(self, data: bytes) -> Any:
        if self.kind is FieldKind.FLAG:
            if self.mask is None:
                return data[self.offset] != 0
            return (data[self.offset] & self.mask) != 0
        if self.kind is FieldKind.U8:
            return data[self.offset]
        if self.kind is FieldKind.S8:
            return int.from_bytes(data[self.offset:self.offset + 1], "big", signed=True)
        return int.from_bytes(
            data[self.offset:self.offset + 2], "big",
            signed=self.kind is FieldKind.S16,
        )


class ChargingState(IntEnum):
    NOT_CHARGING = 0
    RECONDITIONING = 1
    FULL_CHARGING = 2
    TRICKLE_CHARGING = 3
    WAITING = 4
    FAULT = 5


class OIMode(IntEnum):
    OFF = 0
    PASSIVE = 1
    SAFE = 2
    FULL = 3


_F = FieldKind

SENSOR_LAYOUT: dict[str, SensorField] = {
    # Bumps and wheel drops
    "bump_right": SensorField(0, _F.FLAG, 0x01),
    "bump_left": SensorField(0, _F.FLAG, 0x02),
    "wheel_drop_right": SensorField(0, _F.FLAG, 0x04),
    "wheel_drop_left": SensorField(0, _F.FLAG, 0x08),
    "wall": SensorField(1, _F.FLAG),
    "cliff_left": SensorField(2, _F.FLAG),
    "cliff_front_left": SensorField(3, _F.FLAG),
    "cliff_front_right": SensorField(4, _F.FLAG),
    "cliff_right": SensorField(5, _F.FLAG),
    "virtual_wall": SensorField(6, _F.FLAG),
    # Overcurrents
    "side_brush_overcurrent": SensorField(7, _F.FLAG, 0x01),
    "main_brush_overcurrent": SensorField(7, _F.FLAG, 0x04),
    "wheel_overcurrent_right": SensorField(7, _F.FLAG, 0x08),
    "wheel_overcurrent_left": SensorField(7, _F.FLAG, 0x10),
    "dirt_detect": SensorField(8, _F.U8),
    "infrared_character_omni": SensorField(9, _F.U8),
    # Buttons
    "button_clean": SensorField(11, _F.FLAG, 0x01),
    "button_spot": SensorField(11, _F.FLAG, 0x02),
    "button_dock": SensorField(11, _F.FLAG, 0x04),
    "button_minute": SensorField(11, _F.FLAG, 0x08),
    "button_hour": SensorField(11, _F.FLAG, 0x10),
    "button_day": SensorField(11, _F.FLAG, 0x20),
    "button_schedule": SensorField(11, _F.FLAG, 0x40),
    "button_clock": SensorField(11, _F.FLAG, 0x80),
    # Odometry since the previous request
    "distance_traveled": SensorField(12, _F.S16),  # mm
    "angle_turned": SensorField(14, _F.S16),  # degrees
    # Battery
    "charging_state": SensorField(16, _F.U8),
    "battery_voltage": SensorField(17, _F.U16),  # mV
    "battery_current": SensorField(19, _F.S16),  # mA
    "battery_temperature": SensorField(21, _F.S8),  # degrees C
    "battery_charge": SensorField(22, _F.U16),  # mAh
    "battery_capacity": SensorField(24, _F.U16),  # mAh
    # Signal strengths
    "wall_signal": SensorField(26, _F.U16),
    "cliff_signal_left": SensorField(28, _F.U16),
    "cliff_signal_front_left": SensorField(30, _F.U16),
    "cliff_signal_front_right": SensorField(32, _F.U16),
    "cliff_signal_right": SensorField(34, _F.U16),
    # Charging sources
    "internal_charger_available": SensorField(39, _F.FLAG, 0x01),
    "homebase_charger_available": SensorField(39, _F.FLAG, 0x02),
    "oi_mode": SensorField(40, _F.U8),
    "song_number": SensorField(41, _F.U8),
    "song_playing": SensorField(42, _F.FLAG),
    # Last drive command as the robot understood it
    "requested_velocity": SensorField(44, _F.S16),
    "requested_radius": SensorField(46, _F.S16),
    "requested_velocity_right": SensorField(48, _F.S16),
    "requested_velocity_left": SensorField(50, _F.S16),
    "encoder_counts_left": SensorField(52, _F.U16),
    "encoder_counts_right": SensorField(54, _F.U16),
    # Light bumper
    "light_bumper_left": SensorField(56, _F.FLAG, 0x01),
    "light_bumper_front_left": SensorField(56, _F.FLAG, 0x02),
    "light_bumper_center_left": SensorField(56, _F.FLAG, 0x04),
    "light_bumper_center_right": SensorField(56, _F.FLAG, 0x08),
    "light_bumper_front_right": SensorField(56, _F.FLAG, 0x10),
    "light_bumper_right": SensorField(56, _F.FLAG, 0x20),
    "light_bumper_signal_left": SensorField(57, _F.U16),
    "light_bumper_signal_front_left": SensorField(59, _F.U16),
    "light_bumper_signal_center_left": SensorField(61, _F.U16),
    "light_bumper_signal_center_right": SensorField(63, _F.U16),
    "light_bumper_signal_front_right": SensorField(65, _F.U16),
    "light_bumper_signal_right": SensorField(67, _F.U16),
    "infrared_character_left": SensorField(69, _F.U8),
    "infrared_character_right": SensorField(70, _F.U8),
    # Motor currents, mA
    "motor_current_left": SensorField(71, _F.S16),
    "motor_current_right": SensorField(73, _F.S16),
    "motor_current_main_brush": SensorField(75, _F.S16),
    "motor_current_side_brush": SensorField(77, _F.S16),
    "stasis": SensorField(79, _F.FLAG),
}

SAFETY_FIELDS = (
    "bump_right", "bump_left", "wheel_drop_right", "wheel_drop_left",
    "cliff_left", "cliff_front_left", "cliff_front_right", "cliff_right",
)


def _sensor(name: str) -> property:
    layout_field = SENSOR_LAYOUT[name]
    return property(lambda self: layout_field.decode(self.data),
                    doc=f"{name} ({layout_field.kind.value} at offset {layout_field.offset})")


@dataclass(frozen=True)
class SensorFrame:
    """An immutable, complete sensor sample.

    ``sequence`` counts completed frames since the assembler was created;
    0 marks the all-zero placeholder used before the first frame arrives.
    ``received_at`` is the monotonic time the frame was completed.
    """

    data: bytes = bytes(SENSOR_FRAME_SIZE)
    sequence: int = 0
    received_at: Optional[float] = None

    def __post_init__(self) -> None:
        if len(self.data) != SENSOR_FRAME_SIZE:
            raise ValueError(
                f"Sensor frame must be {SENSOR_FRAME_SIZE} bytes, got {len(self.data)}"
            )
        # Never keep a reference to a caller's mutable buffer
        object.__setattr__(self, "data", bytes(self.data))

    def __repr__(self) -> str:
        return f"SensorFrame(sequence={self.sequence}, data={self.data.hex(' ')})"

    @property
    def received(self) -> bool:
        """False for the placeholder frame."""
        return self.sequence > 0

    def read(self, name: str) -> Any:
        """Decode a field by its layout name."""
        return SENSOR_LAYOUT[name].decode(self.data)

    bump_right = _sensor("bump_right")
    bump_left = _sensor("bump_left")
    wheel_drop_right = _sensor("wheel_drop_right")
    wheel_drop_left = _sensor("wheel_drop_left")
    wall = _sensor("wall")
    cliff_left = _sensor("cliff_left")
    cliff_front_left = _sensor("cliff_front_left")
    cliff_front_right = _sensor("cliff_front_right")
    cliff_right = _sensor("cliff_right")
    virtual_wall = _sensor("virtual_wall")
    side_brush_overcurrent = _sensor("side_brush_overcurrent")
    main_brush_overcurrent = _sensor("main_brush_overcurrent")
    wheel_overcurrent_right = _sensor("wheel_overcurrent_right")
    wheel_overcurrent_left = _sensor("wheel_overcurrent_left")
    dirt_detect = _sensor("dirt_detect")
    infrared_character_omni = _sensor("infrared_character_omni")
    infrared_character_left = _sensor("infrared_character_left")
    infrared_character_right = _sensor("infrared_character_right")
    button_clean = _sensor("button_clean")
    button_spot = _sensor("button_spot")
    button_dock = _sensor("button_dock")
    button_minute = _sensor("button_minute")
    button_hour = _sensor("button_hour")
    button_day = _sensor("button_day")
    button_schedule = _sensor("button_schedule")
    button_clock = _sensor("button_clock")
    distance_traveled = _sensor("distance_traveled")
    angle_turned = _sensor("angle_turned")
    charging_state = _sensor("charging_state")
    battery_voltage = _sensor("battery_voltage")
    battery_current = _sensor("battery_current")
    battery_temperature = _sensor("battery_temperature")
    battery_charge = _sensor("battery_charge")
    battery_capacity = _sensor("battery_capacity")
    wall_signal = _sensor("wall_signal")
    cliff_signal_left = _sensor("cliff_signal_left")
    cliff_signal_front_left = _sensor("cliff_signal_front_left")
    cliff_signal_front_right = _sensor("cliff_signal_front_right")
    cliff_signal_right = _sensor("cliff_signal_right")
    internal_charger_available = _sensor("internal_charger_available")
    homebase_charger_available = _sensor("homebase_charger_available")
    oi_mode = _sensor("oi_mode")
    song_number = _sensor("song_number")
    song_playing = _sensor("song_playing")
    requested_velocity = _sensor("requested_velocity")
    requested_radius = _sensor("requested_radius")
    requested_velocity_right = _sensor("requested_velocity_right")
    requested_velocity_left = _sensor("requested_velocity_left")
    encoder_counts_left = _sensor("encoder_counts_left")
    encoder_counts_right = _sensor("encoder_counts_right")
    light_bumper_left = _sensor("light_bumper_left")
    light_bumper_front_left = _sensor("light_bumper_front_left")
    light_bumper_center_left = _sensor("light_bumper_center_left")
    light_bumper_center_right = _sensor("light_bumper_center_right")
    light_bumper_front_right = _sensor("light_bumper_front_right")
    light_bumper_right = _sensor("light_bumper_right")
    light_bumper_signal_left = _sensor("light_bumper_signal_left")
    light_bumper_signal_front_left = _sensor("light_bumper_signal_front_left")
    light_bumper_signal_center_left = _sensor("light_bumper_signal_center_left")
    light_bumper_signal_center_right = _sensor("light_bumper_signal_center_right")
    light_bumper_signal_front_right = _sensor("light_bumper_signal_front_right")
    light_bumper_signal_right = _sensor("light_bumper_signal_right")
    motor_current_left = _sensor("motor_current_left")
    motor_current_right = _sensor("motor_current_right")
    motor_current_main_brush = _sensor("motor_current_main_brush")
    motor_current_side_brush = _sensor("motor_current_side_brush")
    stasis = _sensor("stasis")

    @property
    def safety_fault(self) -> bool:
        """Any bump, wheel drop or cliff sensor is triggered."""
        return any(self.read(name) for name in SAFETY_FIELDS)

    def to_dict(self) -> dict:
        d: dict[str, Any] = {name: self.read(name) for name in SENSOR_LAYOUT}
        d["safety_fault"] = self.safety_fault
        for key, enum in (("charging_state", ChargingState), ("oi_mode", OIMode)):
            try:
                d[key] = enum(d[key]).name.lower()
            except ValueError:
                pass  # unknown codes stay numeric
        d["sequence"] = self.sequence
        return d


EMPTY_FRAME = SensorFrame()
