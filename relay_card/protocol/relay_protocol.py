#!/usr/bin/env python3
"""
relay_protocol.py

Frame encoding and decoding for the 8-relay card protocol.

Frame layout (both directions)::

    +---------+---------+---------+----------+
    | Command | Address |  Data   | Checksum |
    | 1 byte  | 1 byte  | 1 byte  |  1 byte  |
    +---------+---------+---------+----------+

- Checksum: Command XOR Address XOR Data. Always recomputed for requests,
  carried but not verified for answers.

Usage Example:
    frame = encode_request(RequestCommand.SET_PORT, 1, 49)   # b'\\x03\\x01\\x31\\x33'
    answer = decode_response(received_bytes)
"""

import logging
from typing import Dict, Optional

from relay_card.config import FRAME_SIZE
from relay_card.exceptions import ConfigurationError, DecodeError
from relay_card.models import ResponseFrame
from relay_card.protocol.commands import RequestCommand, ResponseCommand

logger = logging.getLogger(__name__)

# Explicit answer-code table; anything not listed here is a decode error.
RESPONSE_CODES: Dict[int, ResponseCommand] = {code.value: code for code in ResponseCommand}


def calculate_checksum(command: int, address: int, data: int) -> int:
    """
    Calculates the frame checksum.

    Args:
        command: Command byte.
        address: Card address byte.
        data: Data byte.

    Returns:
        int: XOR of the three bytes.
    """
    return (command ^ address ^ data) & 0xFF


def encode_request(command: int, address: int, data: int = 0) -> bytes:
    """
    Creates a request frame.

    Args:
        command: A RequestCommand (or its integer value).
        address: Target card address (0-255).
        data: Payload byte, the relay mask or 0 for read-only commands.

    Returns:
        bytes: The four byte frame ready for transmission.

    Raises:
        ConfigurationError: If any field does not fit in a byte.
    """
    for name, value in (("command", command), ("address", address), ("data", data)):
        if not isinstance(value, int) or not 0 <= value <= 0xFF:
            raise ConfigurationError(f"Frame {name} must be a byte value, got {value!r}")
    command = int(command)
    return bytes([command, address, data, calculate_checksum(command, address, data)])


def lookup_response_command(code: int) -> Optional[ResponseCommand]:
    """Returns the answer code for a byte, or None if the byte is not one."""
    return RESPONSE_CODES.get(code)


def decode_response(raw: bytes) -> ResponseFrame:
    """
    Parses a four byte answer frame.

    Args:
        raw: Bytes as read from the serial line.

    Returns:
        ResponseFrame: The parsed frame.

    Raises:
        DecodeError: If the frame is not four bytes long or its first byte
            is not a known answer code.
    """
    if raw is None or len(raw) != FRAME_SIZE:
        raise DecodeError(
            f"Answer frame must be {FRAME_SIZE} bytes, got {len(raw) if raw else 0}"
        )
    command = lookup_response_command(raw[0])
    if command is None:
        raise DecodeError(f"Unknown answer code {raw[0]} in frame {bytes(raw).hex(' ')}")

    frame = ResponseFrame(command=command, address=raw[1], data=raw[2], checksum=raw[3])
    if frame.checksum != frame.expected_checksum:
        logger.debug(
            f"Answer checksum {frame.checksum} differs from XOR {frame.expected_checksum}, not verified"
        )
    return frame


def is_setup_echo(chunk: bytes) -> bool:
    """True if a chunk read during chain setup is the returning setup frame."""
    return len(chunk) == FRAME_SIZE and chunk[0] == RequestCommand.SETUP
