"""Serial connection to the robot's Open Interface port.

The Open Interface runs at 115200 baud, 8 data bits, no parity, one stop
bit and no flow control. Received bytes are read on a background thread
and handed to a callback in arrival order, typically
:meth:`FrameAssembler.feed`.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional

import serial
import serial.tools.list_ports

logger = logging.getLogger(__name__)

DEFAULT_BAUDRATE = 115200
READ_TIMEOUT_S = 0.05

DataCallback = Callable[[bytes], None]


@dataclass
class PortInfo:
    """A serial port found on the host."""

    device: str
    description: str = ""
    hwid: str = ""


class SerialConnection:
    """Manages the serial link to the robot.

    Usage::

        conn = SerialConnection("/dev/ttyUSB0", on_data=assembler.feed)
        conn.open()
        conn.send_bytes(build_startup())
        conn.close()
    """

    def __init__(
        self,
        port: Optional[str] = None,
        baudrate: int = DEFAULT_BAUDRATE,
        on_data: Optional[DataCallback] = None,
        read_timeout: float = READ_TIMEOUT_S,
    ) -> None:
        self._port = port
        self._baudrate = baudrate
        self._read_timeout = read_timeout
        self.on_data = on_data
        self._serial: Optional[serial.Serial] = None
        self._reader: Optional[threading.Thread] = None
        self._stop = threading.Event()
        self._write_lock = threading.Lock()

    @property
    def connected(self) -> bool:
        return self._serial is not None and self._serial.is_open

    @property
    def port(self) -> Optional[str]:
        return self._port

    @staticmethod
    def list_ports() -> list[PortInfo]:
        """Enumerate the serial ports present on this machine."""
        ports = [
            PortInfo(device=p.device, description=p.description or "", hwid=p.hwid or "")
            for p in serial.tools.list_ports.comports()
        ]
        if not ports:
            logger.warning("No serial ports found")
        return ports

    def open(self, port: Optional[str] = None) -> None:
        """Open the port and start the reader thread.

        Raises:
            ConnectionError: If no port was given, or it cannot be opened.
        """
        if port is not None:
            self._port = port
        if self._port is None:
            raise ConnectionError("No serial port given")
        if self.connected:
            return

        logger.info("Connecting to serial port %s", self._port)
        try:
            self._serial = serial.Serial(
                port=self._port,
                baudrate=self._baudrate,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                xonxoff=False,
                rtscts=False,
                timeout=self._read_timeout,
            )
        except (serial.SerialException, ValueError) as e:
            self._serial = None
            raise ConnectionError(
                f"Could not open serial port {self._port!r}. "
                f"Ensure the robot is connected and you have permissions. "
                f"Last error: {e}"
            ) from e

        self._stop.clear()
        self._reader = threading.Thread(
            target=self._read_loop, name=f"roomba-reader-{self._port}", daemon=True
        )
        self._reader.start()
        logger.info("Opened serial port %s at %d baud", self._port, self._baudrate)

    def close(self) -> None:
        """Stop the reader thread and close the port."""
        if self._serial is None:
            return

        self._stop.set()
        if self._reader is not None and self._reader is not threading.current_thread():
            self._reader.join(timeout=1.0)
        try:
            self._serial.close()
        except serial.SerialException as e:
            logger.warning("Error closing serial port %s: %s", self._port, e)
        finally:
            self._serial = None
            self._reader = None
            logger.info("Closed serial port %s", self._port)

    def send_bytes(self, data: bytes) -> bool:
        """Write ``data``. Returns False if not connected or the write fails."""
        if not self.connected:
            logger.error("Serial port not connected, use open() first")
            return False
        try:
            with self._write_lock:
                self._serial.write(data)
        except serial.SerialException as e:
            logger.error("Failed to write to serial port %s: %s", self._port, e)
            return False
        logger.debug("Wrote %d bytes: %s", len(data), data.hex(" "))
        return True

    def send_byte(self, value: int) -> bool:
        """Write a single byte (0-255)."""
        return self.send_bytes(bytes([value & 0xFF]))

    def _read_loop(self) -> None:
        ser = self._serial
        while not self._stop.is_set():
            try:
                chunk = ser.read(ser.in_waiting or 1)
            except (serial.SerialException, OSError) as e:
                if self._stop.is_set():
                    break
                logger.error("Read from serial port %s failed: %s", self._port, e)
                self._drop_link(ser)
                break
            if chunk and self.on_data is not None:
                try:
                    self.on_data(chunk)
                except Exception:
                    logger.exception(
                        "Receive callback failed on %d bytes from %s", len(chunk), self._port
                    )

    def _drop_link(self, ser: serial.Serial) -> None:
        """Close a port that failed under the reader so ``connected`` turns False."""
        try:
            ser.close()
        except (serial.SerialException, OSError) as e:
            logger.warning("Error closing serial port %s: %s", self._port, e)
        if self._serial is ser:
            self._serial = None
            self._reader = None
            logger.info("Serial port %s marked disconnected", self._port)
