"""
serial_transport.py

Implements the SerialTransport class: exclusive, ordered byte exchange with the
relay card chain over one serial line (19200 baud, 8N1).

The channel is opened when an exclusive section starts and closed when it
ends, whatever the outcome. Only one section runs at a time; a second caller
blocks until the first section has closed the port.

Usage Example:
    transport = SerialTransport("/dev/ttyUSB0")
    with transport.exclusive():
        transport.write_frame(frame)
        answer = transport.read_frame()
"""

import logging
import threading
import time
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, TypeVar

import serial

from relay_card.communicator.response_handler import ResponseHandler
from relay_card.config import (
    BAUDRATE,
    BYTESIZE,
    FRAME_SIZE,
    PARITY,
    RESPONSE_SETTLE_DELAY,
    STOPBITS,
)
from relay_card.exceptions import TransportError

T = TypeVar("T")


def create_serial_port(port: str, timeout: Optional[float] = None) -> serial.Serial:
    """
    Creates an unopened serial.Serial configured for the relay card line.

    Args:
        port: Serial port (e.g., "COM3" or "/dev/ttyUSB0").
        timeout: Read timeout in seconds, None to block until data arrives.

    Returns:
        serial.Serial: The configured, still closed, port object.
    """
    ser = serial.Serial(
        port=None,
        baudrate=BAUDRATE,
        bytesize=BYTESIZE,
        parity=PARITY,
        stopbits=STOPBITS,
        timeout=timeout,
    )
    # Assigning the port after construction keeps the device closed.
    ser.port = port
    return ser


class SerialTransport:
    """
    Exclusive-access wrapper around the serial channel to the card chain.

    All I/O methods must be called inside ``exclusive()`` by the thread that
    owns the section; anything else raises TransportError.
    """

    def __init__(self, port: str, timeout: Optional[float] = None, device=None,
                 sleep: Callable[[float], None] = time.sleep,
                 logger: Optional[logging.Logger] = None):
        """
        Initializes the transport.

        Args:
            port: The serial port identifier.
            timeout: Optional read deadline in seconds. None blocks indefinitely.
            device: A pyserial compatible port object; by default an unopened
                serial.Serial for ``port`` with the card line settings.
            sleep: Delay function used for the hardware settle times.
            logger: Optional logger instance.
        """
        self.port = port
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)
        self.sleep = sleep
        self.ser = device if device is not None else create_serial_port(port, timeout)
        self._lock = threading.Lock()
        self._owner: Optional[int] = None
        self._formatter = ResponseHandler("Hex")

    @property
    def is_open(self) -> bool:
        return bool(self.ser.is_open)

    @contextmanager
    def exclusive(self) -> Iterator["SerialTransport"]:
        """
        Acquires the channel for one exchange.

        Opens the port if needed, yields the transport and closes the port on
        every exit path.

        Raises:
            TransportError: If the port cannot be opened or closed.
        """
        with self._lock:
            self._owner = threading.get_ident()
            try:
                self._open()
                yield self
            finally:
                try:
                    self._close()
                finally:
                    self._owner = None

    def with_exclusive_access(self, fn: Callable[["SerialTransport"], T]) -> T:
        """Runs ``fn(transport)`` inside an exclusive section and returns its result."""
        with self.exclusive():
            return fn(self)

    def _open(self) -> None:
        if self.ser.is_open:
            return
        try:
            self.ser.open()
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"Could not open {self.port}: {e}") from e
        self.logger.debug(f"Opened {self.port} ({BAUDRATE} baud, 8N1)")

    def _close(self) -> None:
        if not self.ser.is_open:
            return
        try:
            self.ser.close()
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"Could not close {self.port}: {e}") from e
        self.logger.debug(f"Closed {self.port}")

    def _require_section(self) -> None:
        if self._owner != threading.get_ident():
            raise TransportError("Serial I/O attempted outside an exclusive section")
        if not self.ser.is_open:
            raise TransportError(f"Serial port {self.port} is not open")

    def write_bytes(self, data: bytes) -> int:
        """
        Writes raw bytes and waits until they are sent.

        Args:
            data: The bytes to send.

        Returns:
            Number of bytes written.

        Raises:
            TransportError: On any write failure.
        """
        self._require_section()
        try:
            written = self.ser.write(data)
            self.ser.flush()
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"Write to {self.port} failed: {e}") from e
        self.logger.debug(f"TX: {self._formatter.format_bytes(data)}")
        return written if written is not None else len(data)

    def write_frame(self, frame: bytes) -> int:
        """Writes exactly one four byte request frame."""
        if len(frame) != FRAME_SIZE:
            raise ValueError(f"Request frame must be {FRAME_SIZE} bytes, got {len(frame)}")
        return self.write_bytes(frame)

    def read_chunk(self, size: int = FRAME_SIZE) -> bytes:
        """
        Reads up to ``size`` bytes. Blocks until they arrive unless a read
        timeout is configured, in which case fewer bytes may be returned.

        Raises:
            TransportError: On any read failure.
        """
        self._require_section()
        try:
            data = bytes(self.ser.read(size))
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"Read from {self.port} failed: {e}") from e
        if data:
            self.logger.debug(f"RX: {self._formatter.format_bytes(data)}")
        return data

    def read_frame(self) -> bytes:
        """
        Reads one answer frame.

        Waits the card's settle delay, reads four bytes, then discards any
        further buffered input.

        Returns:
            bytes: The four answer bytes.

        Raises:
            TransportError: On read failure or if fewer than four bytes arrived
                before the configured timeout.
        """
        self.sleep(RESPONSE_SETTLE_DELAY)
        data = self.read_chunk(FRAME_SIZE)
        if len(data) < FRAME_SIZE:
            raise TransportError(
                f"Timed out waiting for answer frame on {self.port} "
                f"({len(data)} of {FRAME_SIZE} bytes received)"
            )
        self.discard_input()
        return data

    @property
    def bytes_waiting(self) -> int:
        """Number of bytes buffered in the input queue."""
        self._require_section()
        try:
            return self.ser.in_waiting
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"Could not query {self.port}: {e}") from e

    def discard_input(self) -> None:
        self._require_section()
        try:
            self.ser.reset_input_buffer()
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"Could not flush input of {self.port}: {e}") from e

    def discard_output(self) -> None:
        self._require_section()
        try:
            self.ser.reset_output_buffer()
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"Could not flush output of {self.port}: {e}") from e
