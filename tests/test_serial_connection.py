"""Tests for the serial transport, with pyserial replaced by a fake port."""

import threading
import time
from types import SimpleNamespace

import pytest
import serial

from roomba_oi_mcp.transport import serial_connection
from roomba_oi_mcp.transport.serial_connection import DEFAULT_BAUDRATE, SerialConnection


class FakeSerial:
    """Stands in for ``serial.Serial``; serves queued chunks to ``read``."""

    instances: list["FakeSerial"] = []

    def __init__(self, **kwargs) -> None:
        self.kwargs = kwargs
        self.is_open = True
        self.written: list[bytes] = []
        self.incoming: list[bytes] = []
        self.fail_writes = False
        self.read_error: Exception | None = None
        self._lock = threading.Lock()
        FakeSerial.instances.append(self)

    @property
    def in_waiting(self) -> int:
        with self._lock:
            return len(self.incoming[0]) if self.incoming else 0

    def read(self, size: int = 1) -> bytes:
        if self.read_error is not None:
            raise self.read_error
        with self._lock:
            if self.incoming:
                return self.incoming.pop(0)
        time.sleep(0.005)
        return b""

    def write(self, data: bytes) -> int:
        if self.fail_writes:
            raise serial.SerialException("write failed")
        self.written.append(bytes(data))
        return len(data)

    def close(self) -> None:
        self.is_open = False


@pytest.fixture
def fake_serial(monkeypatch):
    FakeSerial.instances.clear()
    monkeypatch.setattr(serial_connection.serial, "Serial", FakeSerial)
    return FakeSerial


def test_open_uses_open_interface_settings(fake_serial):
    conn = SerialConnection("/dev/ttyUSB0")
    conn.open()
    try:
        kwargs = fake_serial.instances[0].kwargs
        assert kwargs["port"] == "/dev/ttyUSB0"
        assert kwargs["baudrate"] == DEFAULT_BAUDRATE == 115200
        assert kwargs["bytesize"] == serial.EIGHTBITS
        assert kwargs["parity"] == serial.PARITY_NONE
        assert kwargs["stopbits"] == serial.STOPBITS_ONE
        assert kwargs["rtscts"] is False
        assert conn.connected
    finally:
        conn.close()
    assert not conn.connected


def test_open_without_port_raises():
    with pytest.raises(ConnectionError):
        SerialConnection().open()


def test_open_failure_raises_connection_error(monkeypatch):
    def broken(**kwargs):
        raise serial.SerialException("no such device")

    monkeypatch.setattr(serial_connection.serial, "Serial", broken)
    conn = SerialConnection("/dev/missing")
    with pytest.raises(ConnectionError, match="/dev/missing"):
        conn.open()
    assert not conn.connected


def test_send_when_not_connected_returns_false():
    conn = SerialConnection("/dev/ttyUSB0")
    assert conn.send_bytes(b"\x80") is False
    assert conn.send_byte(0x80) is False


def test_send_bytes_and_byte(fake_serial):
    conn = SerialConnection("/dev/ttyUSB0")
    conn.open()
    try:
        assert conn.send_bytes(bytes([128, 131])) is True
        assert conn.send_byte(135) is True
        assert fake_serial.instances[0].written == [bytes([128, 131]), bytes([135])]
    finally:
        conn.close()


def test_write_error_returns_false(fake_serial):
    conn = SerialConnection("/dev/ttyUSB0")
    conn.open()
    try:
        fake_serial.instances[0].fail_writes = True
        assert conn.send_bytes(b"\x80") is False
    finally:
        conn.close()


def test_reader_delivers_chunks_in_order(fake_serial):
    received: list[bytes] = []
    done = threading.Event()

    def on_data(chunk: bytes) -> None:
        received.append(chunk)
        if len(received) == 3:
            done.set()

    conn = SerialConnection("/dev/ttyUSB0", on_data=on_data)
    conn.open()
    try:
        fake_serial.instances[0].incoming.extend([b"\x01" * 20, b"\x02" * 30, b"\x03" * 30])
        assert done.wait(timeout=2.0)
    finally:
        conn.close()
    assert b"".join(received) == b"\x01" * 20 + b"\x02" * 30 + b"\x03" * 30


def test_reader_survives_failing_callback(fake_serial):
    """A callback that raises is logged and later chunks are still delivered."""
    calls: list[bytes] = []
    done = threading.Event()

    def on_data(chunk: bytes) -> None:
        calls.append(chunk)
        if len(calls) == 1:
            raise RuntimeError("boom")
        done.set()

    conn = SerialConnection("/dev/ttyUSB0", on_data=on_data)
    conn.open()
    try:
        reader = conn._reader
        fake_serial.instances[0].incoming.extend([b"\x01", b"\x02"])
        assert done.wait(timeout=2.0)
        assert calls == [b"\x01", b"\x02"]
        assert reader.is_alive()
        assert conn.connected
    finally:
        conn.close()


def test_read_error_marks_link_down(fake_serial):
    """An unplugged adapter stops the reader and reports the port as closed."""
    conn = SerialConnection("/dev/ttyUSB0")
    conn.open()
    port = fake_serial.instances[0]
    port.read_error = OSError("device disconnected")

    deadline = time.monotonic() + 2.0
    while conn.connected and time.monotonic() < deadline:
        time.sleep(0.01)

    assert not conn.connected
    assert port.is_open is False
    assert conn.send_bytes(b"\x80") is False
    conn.close()


def test_close_is_idempotent(fake_serial):
    conn = SerialConnection("/dev/ttyUSB0")
    conn.close()
    conn.open()
    conn.close()
    conn.close()
    assert fake_serial.instances[0].is_open is False


def test_list_ports(monkeypatch):
    ports = [SimpleNamespace(device="/dev/ttyUSB0", description="FT231X", hwid="USB VID:PID=0403:6015")]
    monkeypatch.setattr(serial_connection.serial.tools.list_ports, "comports", lambda: ports)
    result = SerialConnection.list_ports()
    assert [p.device for p in result] == ["/dev/ttyUSB0"]
    assert result[0].description == "FT231X"
