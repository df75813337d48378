"""Tests for the MCP tool functions, run against a fake transport."""

import json

import pytest

from roomba_oi_mcp import server
from roomba_oi_mcp.robot import Roomba


class FakeConnection:
    """Connected transport that answers sensor queries with ``frame``."""

    port = "/dev/fake"
    connected = True

    def __init__(self) -> None:
        self.writes: list[bytes] = []
        self.frame: bytes | None = None
        self.robot: Roomba | None = None

    def send_bytes(self, data: bytes) -> bool:
        self.writes.append(bytes(data))
        if data == bytes([142, 100]) and self.frame is not None:
            self.robot.receive(self.frame)
        return True

    def send_byte(self, value: int) -> bool:
        self.writes.append(bytes([value]))
        return True

    def close(self) -> None:
        self.connected = False


@pytest.fixture
def conn(monkeypatch):
    connection = FakeConnection()
    robot = Roomba(connection)
    connection.robot = robot
    monkeypatch.setattr(server, "_connection", connection)
    monkeypatch.setattr(server, "_robot", robot)
    return connection


def test_tools_require_connection(monkeypatch):
    monkeypatch.setattr(server, "_connection", None)
    monkeypatch.setattr(server, "_robot", None)
    with pytest.raises(RuntimeError, match="connect"):
        server.drive(100)


def test_drive(conn):
    result = server.drive(200)
    assert result == {"sent": True, "velocity": 200, "radius": 32767}
    assert conn.writes == [bytes([137, 0x00, 0xC8, 0x7F, 0xFF])]


def test_drive_out_of_range_reports_error(conn):
    result = server.drive(900)
    assert "Velocity" in result["error"]
    assert conn.writes == []


def test_spin(conn):
    server.spin(100, clockwise=False)
    assert conn.writes == [bytes([137, 0x00, 0x64, 0x00, 0x01])]


def test_halt(conn):
    server.halt()
    assert conn.writes == [bytes([145, 0, 0, 0, 0])]


def test_set_mode(conn):
    assert server.set_mode("full")["mode"] == "full"
    assert "error" in server.set_mode("turbo")
    assert conn.writes == [bytes([132])]


def test_clean_modes(conn):
    server.clean()
    server.clean("max")
    server.clean("spot")
    assert conn.writes == [bytes([135]), bytes([136]), bytes([134])]


def test_show_text_pads(conn):
    assert server.show_text("Hi")["text"] == "Hi  "
    assert conn.writes == [bytes([164]) + b"Hi  "]
    assert "error" in server.show_text("@@")
    assert "error" in server.show_text("12345")


def test_press_buttons(conn):
    server.press_buttons(["clean", "dock"])
    assert conn.writes == [bytes([165, 0x05])]
    assert "error" in server.press_buttons(["turbo"])


def test_set_schedule(conn):
    result = server.set_schedule({"sunday": "08:15", "Friday": "17:00"})
    assert result["enabled_days"] == 2
    data = conn.writes[0]
    assert data[:2] == bytes([167, 0x21])
    assert data[2:4] == bytes([8, 15])
    assert data[12:14] == bytes([17, 0])


def test_set_schedule_rejects_bad_input(conn):
    assert "error" in server.set_schedule({"someday": "08:00"})
    assert "error" in server.set_schedule({"monday": "8am"})
    assert "error" in server.set_schedule({"monday": "25:00"})
    assert conn.writes == []


def test_set_clock(conn):
    server.set_clock("tuesday", 7, 5)
    assert conn.writes == [bytes([168, 2, 7, 5])]


def test_store_and_play_song(conn):
    result = server.store_song(1, ["C4:quarter", "pause:eighth"], tempo=120)
    assert result["notes"] == 2
    server.play_song(1)
    assert conn.writes == [bytes([140, 1, 2, 72, 32, 0, 16]), bytes([141, 1])]


def test_store_song_bad_note(conn):
    assert "error" in server.store_song(0, ["Z9"])
    assert conn.writes == []


def test_get_sensors(conn):
    frame = bytearray(80)
    frame[0] = 0x01
    frame[79] = 0x01
    conn.frame = bytes(frame)

    result = server.get_sensors(["bump_right", "stasis", "battery_voltage"])
    assert result["sequence"] == 1
    assert result["sensors"] == {"bump_right": True, "stasis": True, "battery_voltage": 0}


def test_get_sensors_too_frequent(conn):
    conn.frame = bytes(80)
    server.get_sensors()
    assert "error" in server.get_sensors()


def test_get_sensors_unknown_field(conn):
    assert "error" in server.get_sensors(["warp_drive"])


def test_get_sensors_no_reply(conn, monkeypatch):
    monkeypatch.setattr(conn.robot, "wait_for_sensors", lambda seq: None)
    result = server.get_sensors()
    assert result["error"] == "No sensor data received"
    assert result["last_frame_age_s"] is None


def test_disconnect(conn):
    assert server.disconnect() == {"disconnected": True}
    assert server._robot is None


def test_sensor_layout_resource():
    layout = json.loads(server.resource_sensor_layout())
    names = {f["name"]: f for f in layout["fields"]}
    assert names["distance_traveled"]["offset"] == 12
    assert names["distance_traveled"]["kind"] == "s16"
    assert names["stasis"]["offset"] == 79


def test_latest_sensors_resource(conn):
    assert json.loads(server.resource_latest_sensors()) == {"received": False}
    conn.robot.receive(bytes(80))
    data = json.loads(server.resource_latest_sensors())
    assert data["received"] is True
    assert data["sensors"]["sequence"] == 1
