"""MCP server entry point for a Roomba over its Open Interface.

Exposes tools, resources, and prompts via the Model Context Protocol
using the official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .errors import InvalidArgument, TooFrequent, TransportFailure
from .protocol.commands import (
    RADIUS_STRAIGHT,
    RADIUS_TURN_IN_PLACE_CCW,
    RADIUS_TURN_IN_PLACE_CW,
    Weekday,
)
from .protocol.sensors import SENSOR_LAYOUT
from .protocol.song import Note, NoteDuration, parse_song_note
from .robot import Roomba
from .transport.serial_connection import DEFAULT_BAUDRATE, SerialConnection

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "roomba-oi",
    instructions="MCP server for driving a Roomba through its serial Open Interface",
)

# Global connection state
_connection: SerialConnection | None = None
_robot: Roomba | None = None


def _get_robot() -> Roomba:
    """Get the active robot session, raising if not connected."""
    if _robot is None or _connection is None or not _connection.connected:
        raise RuntimeError(
            "Not connected to a robot. Use the 'connect' tool first."
        )
    return _robot


def _run(action, **result: Any) -> dict[str, Any]:
    """Call ``action`` and report validation or transport errors as a result."""
    try:
        action()
    except (InvalidArgument, TooFrequent, TransportFailure) as e:
        return {"error": str(e)}
    return {"sent": True, **result}


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def list_serial_ports() -> dict[str, Any]:
    """List serial ports the robot may be attached to."""
    ports = SerialConnection.list_ports()
    return {
        "ports": [
            {"device": p.device, "description": p.description} for p in ports
        ]
    }


@mcp.tool()
def connect(port: str, baudrate: int = DEFAULT_BAUDRATE, safe_mode: bool = True) -> dict[str, Any]:
    """Open the serial port and start the Open Interface.

    Args:
        port: Serial device, e.g. /dev/ttyUSB0 or COM3.
        baudrate: Defaults to 115200, the Open Interface rate.
        safe_mode: Also switch to safe mode so drive commands are accepted.
    """
    global _connection, _robot
    if _connection is not None and _connection.connected:
        return {
            "connected": True,
            "message": "Already connected",
            "port": _connection.port,
        }

    connection = SerialConnection(port, baudrate=baudrate)
    robot = Roomba(connection)
    connection.on_data = robot.receive
    connection.open()
    _connection, _robot = connection, robot

    result = _run(robot.startup if safe_mode else robot.start)
    if "error" in result:
        return {"connected": True, "port": port, **result}
    return {"connected": True, "port": port, "mode": "safe" if safe_mode else "passive"}


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the serial connection to the robot."""
    global _connection, _robot
    if _connection is None:
        return {"disconnected": True}
    _connection.close()
    _connection = None
    _robot = None
    return {"disconnected": True}


# ─── MODE AND CLEANING TOOLS ─────────────────────────────────────────

@mcp.tool()
def set_mode(mode: str) -> dict[str, Any]:
    """Switch the Open Interface mode.

    Args:
        mode: "passive" (sensors only), "safe" (actuators with cliff and
              wheel-drop protection) or "full" (no protection).
    """
    robot = _get_robot()
    actions = {"passive": robot.start, "safe": robot.safe_mode, "full": robot.full_mode}
    if mode not in actions:
        return {"error": f"Unknown mode '{mode}'. Valid: {list(actions)}"}
    return _run(actions[mode], mode=mode)


@mcp.tool()
def clean(mode: str = "default") -> dict[str, Any]:
    """Start a cleaning cycle.

    Args:
        mode: "default", "max" (until the battery is empty) or "spot".
    """
    robot = _get_robot()
    actions = {"default": robot.clean, "max": robot.clean_max, "spot": robot.clean_spot}
    if mode not in actions:
        return {"error": f"Unknown cleaning mode '{mode}'. Valid: {list(actions)}"}
    return _run(actions[mode], mode=mode)


@mcp.tool()
def seek_dock() -> dict[str, Any]:
    """Send the robot back to its home base."""
    return _run(_get_robot().seek_dock)


@mcp.tool()
def power_off() -> dict[str, Any]:
    """Power the robot down."""
    return _run(_get_robot().power_off)


@mcp.tool()
def stop_interface() -> dict[str, Any]:
    """Leave the Open Interface; the robot ignores commands until restarted."""
    return _run(_get_robot().stop)


@mcp.tool()
def set_schedule(times: dict[str, str]) -> dict[str, Any]:
    """Replace the weekly cleaning schedule.

    Args:
        times: Map of weekday name to "HH:MM", e.g. {"monday": "09:30"}.
               Days not listed are disabled. An empty map clears the schedule.
    """
    days = [False] * 7
    clock = [(0, 0)] * 7
    for name, value in times.items():
        try:
            day = Weekday[name.strip().upper()]
        except KeyError:
            return {"error": f"Unknown weekday '{name}'"}
        hour, sep, minute = value.partition(":")
        if not sep or not hour.isdigit() or not minute.isdigit():
            return {"error": f"Time for {name} must be HH:MM, got '{value}'"}
        days[day] = True
        clock[day] = (int(hour), int(minute))

    robot = _get_robot()
    return _run(lambda: robot.schedule(days, clock), enabled_days=sum(days))


@mcp.tool()
def set_clock(day: str, hour: int, minute: int) -> dict[str, Any]:
    """Set the robot's day and time.

    Args:
        day: Weekday name, e.g. "sunday".
        hour: 0-23.
        minute: 0-59.
    """
    try:
        weekday = Weekday[day.strip().upper()]
    except KeyError:
        return {"error": f"Unknown weekday '{day}'"}
    robot = _get_robot()
    return _run(lambda: robot.set_day_time(weekday, hour, minute))


# ─── DRIVE TOOLS ─────────────────────────────────────────────────────

@mcp.tool()
def drive(velocity: int, radius: int = RADIUS_STRAIGHT) -> dict[str, Any]:
    """Drive with an average velocity along a turning radius.

    Args:
        velocity: -500 to 500 mm/s (negative reverses).
        radius: -2000 to 2000 mm, positive turns left. 32767 drives
                straight (default); 1 / -1 spin in place counter
                clockwise / clockwise.
    """
    robot = _get_robot()
    return _run(lambda: robot.drive(velocity, radius), velocity=velocity, radius=radius)


@mcp.tool()
def spin(velocity: int, clockwise: bool = True) -> dict[str, Any]:
    """Turn in place.

    Args:
        velocity: 0 to 500 mm/s wheel speed.
        clockwise: Direction of rotation.
    """
    radius = RADIUS_TURN_IN_PLACE_CW if clockwise else RADIUS_TURN_IN_PLACE_CCW
    robot = _get_robot()
    return _run(lambda: robot.drive(velocity, radius), velocity=velocity)


@mcp.tool()
def drive_direct(right_velocity: int, left_velocity: int) -> dict[str, Any]:
    """Drive each wheel at its own velocity (-500 to 500 mm/s)."""
    robot = _get_robot()
    return _run(lambda: robot.drive_direct(right_velocity, left_velocity))


@mcp.tool()
def drive_pwm(right_percent: int, left_percent: int) -> dict[str, Any]:
    """Drive each wheel at a PWM duty cycle (-100 to 100 percent)."""
    robot = _get_robot()
    return _run(lambda: robot.drive_pwm(right_percent, left_percent))


@mcp.tool()
def halt() -> dict[str, Any]:
    """Stop both wheels."""
    robot = _get_robot()
    return _run(lambda: robot.drive_direct(0, 0))


# ─── CLEANING MOTOR TOOLS ────────────────────────────────────────────

@mcp.tool()
def set_motors(
    side_brush: bool = False,
    vacuum: bool = False,
    main_brush: bool = False,
    side_brush_clockwise: bool = False,
    main_brush_outward: bool = False,
) -> dict[str, Any]:
    """Switch the side brush, vacuum and main brush on or off."""
    robot = _get_robot()
    return _run(lambda: robot.motors(
        side_brush, vacuum, main_brush, side_brush_clockwise, main_brush_outward
    ))


@mcp.tool()
def set_motors_pwm(main_brush_percent: int, side_brush_percent: int,
                   vacuum_percent: int) -> dict[str, Any]:
    """Run cleaning motors at a duty cycle.

    Args:
        main_brush_percent: -100 to 100 (negative reverses).
        side_brush_percent: -100 to 100 (negative reverses).
        vacuum_percent: 0 to 100.
    """
    robot = _get_robot()
    return _run(lambda: robot.motors_pwm(
        main_brush_percent, side_brush_percent, vacuum_percent
    ))


# ─── LED AND DISPLAY TOOLS ───────────────────────────────────────────

@mcp.tool()
def set_leds(
    debris: bool = False,
    spot: bool = False,
    dock: bool = False,
    check_robot: bool = False,
    power_color: int = 0,
    power_intensity: int = 0,
) -> dict[str, Any]:
    """Set the indicator LEDs.

    Args:
        power_color: Power LED colour, 0 (green) to 100 (red) percent.
        power_intensity: Power LED brightness, 0 to 100 percent.
    """
    robot = _get_robot()
    return _run(lambda: robot.leds(
        debris, spot, dock, check_robot, power_color, power_intensity
    ))


@mcp.tool()
def show_text(text: str) -> dict[str, Any]:
    """Show up to four characters on the digit display.

    Shorter text is padded with spaces. Printable ASCII except *, + and @.
    """
    if len(text) > 4:
        return {"error": f"Display holds 4 characters, got {len(text)}"}
    robot = _get_robot()
    padded = text.ljust(4)
    return _run(lambda: robot.digit_leds_ascii(padded), text=padded)


@mcp.tool()
def press_buttons(buttons: list[str]) -> dict[str, Any]:
    """Simulate button presses.

    Args:
        buttons: Any of clean, spot, dock, minute, hour, day, schedule, clock.
    """
    valid = ("clean", "spot", "dock", "minute", "hour", "day", "schedule", "clock")
    unknown = [b for b in buttons if b not in valid]
    if unknown:
        return {"error": f"Unknown buttons {unknown}. Valid: {list(valid)}"}
    robot = _get_robot()
    return _run(lambda: robot.buttons(**{b: True for b in buttons}))


# ─── SONG TOOLS ──────────────────────────────────────────────────────

@mcp.tool()
def store_song(number: int, notes: list[str], tempo: int = 120) -> dict[str, Any]:
    """Store a song on the robot.

    Args:
        number: Song slot, 0-15.
        notes: Up to 16 notes as "<pitch>[:<duration>]", e.g. "C4:quarter",
               "F#5:eighth", "pause:half". Duration defaults to quarter.
        tempo: 60-800 BPM.
    """
    try:
        song = [parse_song_note(n) for n in notes]
    except InvalidArgument as e:
        return {"error": str(e)}
    robot = _get_robot()
    return _run(lambda: robot.song(number, song, tempo), number=number, notes=len(song))


@mcp.tool()
def play_song(number: int) -> dict[str, Any]:
    """Play a stored song (0-15)."""
    robot = _get_robot()
    return _run(lambda: robot.play(number), number=number)


# ─── SENSOR TOOLS ────────────────────────────────────────────────────

@mcp.tool()
def get_sensors(fields: list[str] | None = None) -> dict[str, Any]:
    """Request and return a fresh sensor frame.

    Args:
        fields: Optional subset of sensor names; all sensors by default.
    """
    if fields:
        unknown = [f for f in fields if f not in SENSOR_LAYOUT]
        if unknown:
            return {"error": f"Unknown sensor fields {unknown}"}

    robot = _get_robot()
    try:
        sequence = robot.update_sensors()
    except (TooFrequent, TransportFailure) as e:
        return {"error": str(e)}

    frame = robot.wait_for_sensors(sequence)
    if frame is None:
        return {
            "error": "No sensor data received",
            "last_frame_age_s": robot.sensor_age(),
        }

    data = frame.to_dict()
    if fields:
        data = {name: data[name] for name in fields}
    return {"sequence": frame.sequence, "sensors": data}


# ─── MCP RESOURCES ───────────────────────────────────────────────────

@mcp.resource("roomba://device/status")
def resource_device_status() -> str:
    """Connection state and age of the latest sensor frame."""
    connected = _connection is not None and _connection.connected
    if not connected or _robot is None:
        return json.dumps({"connected": False})
    return json.dumps({
        "connected": True,
        "port": _connection.port,
        "frames_received": _robot.assembler.frames_completed,
        "last_frame_age_s": _robot.sensor_age(),
    })


@mcp.resource("roomba://sensors/latest")
def resource_latest_sensors() -> str:
    """Most recently received sensor frame, without requesting a new one."""
    if _robot is None or not _robot.sensors.received:
        return json.dumps({"received": False})
    return json.dumps({
        "received": True,
        "age_s": _robot.sensor_age(),
        "sensors": _robot.sensors.to_dict(),
    })


@mcp.resource("roomba://sensors/layout")
def resource_sensor_layout() -> str:
    """Offset, encoding and mask of every sensor in the 80-byte frame."""
    layout = [
        {"name": name, "offset": f.offset, "kind": f.kind.value,
         "width": f.width, "mask": f.mask}
        for name, f in SENSOR_LAYOUT.items()
    ]
    return json.dumps({"fields": layout, "count": len(layout)})


@mcp.resource("roomba://catalog/notes")
def resource_note_catalog() -> str:
    """Pitch names with their codes, and the duration classes."""
    notes = [{"name": n.name, "code": int(n)} for n in Note]
    durations = [{"name": d.name.lower(), "quarter_notes": d.units} for d in NoteDuration]
    return json.dumps({"notes": notes, "durations": durations})


# ─── MCP PROMPTS ─────────────────────────────────────────────────────

@mcp.prompt()
def compose_song(description: str) -> str:
    """Guide the AI to write a short tune for the robot.

    Args:
        description: What the song should sound like, or a melody to adapt.
    """
    return f"""Compose a song for the robot: {description}
Constraints:
- At most 16 notes per song slot (chain slots for longer tunes)
- Pitches from G0 to G8, written like "C4" or "F#5"; use "pause" for rests
- Durations: sixteenth, eighth, quarter, half, whole
- Tempo 60-800 BPM (a whole note needs more than 60 BPM)

Use store_song to save it and play_song to play it back.
See roomba://catalog/notes for the pitch table."""


@mcp.prompt()
def safety_check() -> str:
    """Check the robot's sensors before driving it."""
    return """Call get_sensors and review:
- safety_fault (bumps, wheel drops or cliffs triggered)
- battery_charge against battery_capacity
- oi_mode: drive commands need safe or full mode
- charging_state and whether a charger is available

Report anything that should stop the robot from driving."""


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
