#!/usr/bin/env python3
"""
device_simulator.py

This module implements the SimulatedRelayChain class which emulates a daisy
chain of 8-relay cards behind a serial port, for testing without physical
hardware. It mimics the pySerial port interface (open, close, write, read,
in_waiting, reset_input_buffer, reset_output_buffer) so it can be handed to
SerialTransport in place of a serial.Serial object.

Card behaviour:
  - Bytes written by the host are collected into four byte frames.
  - A setup frame (command 1) is answered by every card with code 254 and
    its address, and returns to the host with the address incremented once
    per card, so the returning frame carries "last address + 1" (0 for a
    full chain of 255 cards).
  - Frames for an existing card are answered with code ``255 - command``;
    SetPort, SetSingle, DelSingle, Toggle and SetOption change the card state.
  - A frame with a wrong checksum is answered with code 255 (NoOperation).
  - A frame for an address no card holds passes through the chain unchanged.
  - Address 0 is a broadcast: every card executes it, the frame returns unchanged.

Usage Example:
    chain = SimulatedRelayChain(card_count=2)
    transport = SerialTransport("sim://relay", device=chain)
    controller = RelayCardController(RelayCardSettings(port="sim://relay"), transport)
    controller.initialize()   # -> 2
"""

import logging
import threading
from typing import List, Optional

import serial

from relay_card.config import FRAME_SIZE, NUMBER_OF_PORTS
from relay_card.models import RelayState
from relay_card.protocol.commands import RequestCommand, ResponseCommand
from relay_card.protocol.relay_protocol import calculate_checksum

DEFAULT_FIRMWARE_VERSION = 11


class SimulatedRelayChain:
    """
    A pySerial compatible stand-in for a chain of relay cards.

    Reads never block: they return whatever the cards have answered so far,
    like a real port opened with a zero timeout.
    """

    def __init__(self, card_count: int = 1, port: str = "sim://relay-chain",
                 firmware_version: int = DEFAULT_FIRMWARE_VERSION,
                 logger: Optional[logging.Logger] = None):
        if not 1 <= card_count <= 255:
            raise ValueError(f"A chain holds 1-255 cards, got {card_count}")
        self.card_count = card_count
        self.port = port
        self.firmware_version = firmware_version
        self.logger = logger or logging.getLogger("SimulatedRelayChain")
        self.states: List[int] = [0] * card_count
        self.options: List[int] = [0] * card_count
        self.is_open = False
        self.open_count = 0
        self.received_frames: List[bytes] = []
        self._rx = bytearray()   # bytes on their way to the first card
        self._tx = bytearray()   # bytes on their way back to the host
        self._lock = threading.Lock()

    def open(self) -> None:
        if self.is_open:
            raise serial.SerialException("Port is already open.")
        self.is_open = True
        self.open_count += 1
        self.logger.debug("Simulated relay chain opened")

    def close(self) -> None:
        self.is_open = False
        self.logger.debug("Simulated relay chain closed")

    def _check_open(self) -> None:
        if not self.is_open:
            raise serial.SerialException("Attempting to use a port that is not open")

    def write(self, data: bytes) -> int:
        self._check_open()
        with self._lock:
            for byte in bytes(data):
                self._rx.append(byte)
                if len(self._rx) == FRAME_SIZE:
                    frame = bytes(self._rx)
                    self._rx.clear()
                    self._handle_frame(frame)
        return len(data)

    def flush(self) -> None:
        self._check_open()

    def read(self, size: int = 1) -> bytes:
        self._check_open()
        with self._lock:
            data = bytes(self._tx[:size])
            del self._tx[:size]
        return data

    @property
    def in_waiting(self) -> int:
        self._check_open()
        with self._lock:
            return len(self._tx)

    def reset_input_buffer(self) -> None:
        self._check_open()
        with self._lock:
            self._tx.clear()

    def reset_output_buffer(self) -> None:
        self._check_open()

    def inject(self, data: bytes) -> None:
        """Places stray bytes in the host's input queue (line noise, late answers)."""
        with self._lock:
            self._tx.extend(data)

    def relay_state(self, address: int) -> RelayState:
        """Current relay outputs of the card at ``address``."""
        return RelayState.from_byte(self.states[address - 1], address)

    def _answer(self, code: int, address: int, data: int) -> None:
        self._tx.extend([code, address, data, calculate_checksum(code, address, data)])

    def _handle_frame(self, frame: bytes) -> None:
        command, address, data, checksum = frame
        self.received_frames.append(frame)
        self.logger.debug(f"Simulated chain received: {frame.hex(' ')}")

        if checksum != calculate_checksum(command, address, data):
            self._answer(ResponseCommand.NO_OPERATION, address, data)
            return

        if command == RequestCommand.SETUP:
            for offset in range(self.card_count):
                self._answer(ResponseCommand.SETUP, (address + offset) & 0xFF, self.firmware_version)
            returning = (address + self.card_count) & 0xFF
            self._tx.extend([command, returning, data, calculate_checksum(command, returning, data)])
            return

        if command > RequestCommand.TOGGLE:
            self._answer(ResponseCommand.NO_OPERATION, address, data)
            return

        if address == 0:
            for index in range(self.card_count):
                self._execute(RequestCommand(command), index, data)
            self._tx.extend(frame)
            return

        if address > self.card_count:
            self._tx.extend(frame)
            return

        index = address - 1
        answer_data = self._execute(RequestCommand(command), index, data)
        self._answer(RequestCommand(command).response, address, answer_data)

    def _execute(self, command: RequestCommand, index: int, data: int) -> int:
        mask = (1 << NUMBER_OF_PORTS) - 1
        if command == RequestCommand.SET_PORT:
            self.states[index] = data
        elif command == RequestCommand.SET_SINGLE:
            self.states[index] |= data
        elif command == RequestCommand.DEL_SINGLE:
            self.states[index] &= ~data & mask
        elif command == RequestCommand.TOGGLE:
            self.states[index] ^= data
        elif command == RequestCommand.SET_OPTION:
            self.options[index] = data
            return data
        elif command == RequestCommand.GET_OPTION:
            return self.options[index]
        elif command == RequestCommand.NO_OPERATION:
            return data
        return self.states[index]
