"""
relay_communicator.py

Implements the RelayCardController class that runs the chain setup handshake
and the relay commands (set, get, set single, delete single, toggle) against a
daisy chain of 8-relay cards.
"""

import logging
from typing import Optional, Union

from relay_card.communicator.serial_transport import SerialTransport
from relay_card.config import (
    CHAIN_RESPONSE_DELAY,
    MAX_SETUP_SCAN_CHUNKS,
    SETUP_ATTEMPTS,
    SETUP_BYTE,
    SETUP_BYTE_DELAY,
    SETUP_RESPONSE_THRESHOLD,
    SYNC_BYTE,
    SYNC_BYTE_COUNT,
    RelayCardSettings,
)
from relay_card.exceptions import ConfigurationError
from relay_card.models import (
    RelayCardResponse,
    RelayState,
    ResponseFrame,
    validate_address,
    validate_port_index,
)
from relay_card.protocol.commands import RequestCommand
from relay_card.protocol.relay_protocol import decode_response, encode_request, is_setup_echo

# Address byte 0 in the returning setup frame: the address counter wrapped,
# i.e. the chain holds 255 cards.
FULL_CHAIN_SENTINEL = 0
FULL_CHAIN_CARD_COUNT = 255


class RelayCardController:
    """
    Manages the relay card chain on one serial port.

    Every operation opens the port, performs exactly one request/answer
    exchange and closes the port again. Operations from several threads are
    serialized by the transport.
    """

    def __init__(self, settings: RelayCardSettings, transport: Optional[SerialTransport] = None,
                 logger: Optional[logging.Logger] = None):
        """
        Initializes the RelayCardController.

        Args:
            settings: Port and runtime settings.
            transport: Optional transport; by default a SerialTransport on
                ``settings.port``.
            logger: Optional logger for debugging.
        """
        self.settings = settings
        self.logger = logger or logging.getLogger(__name__)
        self.transport = transport or SerialTransport(
            settings.port, timeout=settings.read_timeout, logger=self.logger
        )
        self._detected_card_count = -1
        self._initialized = False

    @property
    def detected_card_count(self) -> int:
        """Number of cards found by the last handshake, -1 if none completed."""
        return self._detected_card_count

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> int:
        """
        Runs the chain setup handshake.

        Each card answers the setup frame and forwards it to the next card
        with the address incremented, so the frame returning to the host
        carries the address of the last card plus one.

        Returns:
            The number of detected cards, or -1 if no setup frame came back.

        Raises:
            TransportError: If the serial port fails.
        """
        self.logger.debug(f"Initializing card chain on {self.settings.port}")
        with self.transport.exclusive() as transport:
            transport.discard_input()

            for _ in range(SETUP_ATTEMPTS):
                transport.write_bytes(bytes([SETUP_BYTE]))
                transport.sleep(SETUP_BYTE_DELAY)
                if transport.bytes_waiting > SETUP_RESPONSE_THRESHOLD:
                    break

            transport.sleep(CHAIN_RESPONSE_DELAY)

            for _ in range(SYNC_BYTE_COUNT):
                transport.write_bytes(bytes([SYNC_BYTE]))

            transport.sleep(CHAIN_RESPONSE_DELAY)

            detected = self._scan_setup_echo(transport)

            transport.discard_input()
            transport.discard_output()

        self._detected_card_count = detected
        self._initialized = detected >= 1
        if detected < 0:
            self.logger.warning("Card chain did not return the setup frame, no cards detected")
        else:
            self.logger.info(f"Found ({detected}) card(s)")
        return detected

    def _scan_setup_echo(self, transport: SerialTransport) -> int:
        for _ in range(MAX_SETUP_SCAN_CHUNKS):
            chunk = transport.read_chunk()
            if not chunk:
                self.logger.debug("Input exhausted while looking for the setup frame")
                break
            if is_setup_echo(chunk):
                reported = chunk[1]
                if reported == FULL_CHAIN_SENTINEL:
                    return FULL_CHAIN_CARD_COUNT
                return reported - 1
        return -1

    def _exchange(self, command: RequestCommand, address: int, data: int) -> ResponseFrame:
        """
        Sends one request frame and reads the answer frame.

        Raises:
            TransportError: If the serial port fails.
            DecodeError: If the answer code is unknown.
        """
        frame = encode_request(command, address, data)
        self.logger.debug(f"Command: {command.name} address: {address} data: {data}")
        with self.transport.exclusive() as transport:
            transport.discard_output()
            transport.write_frame(frame)
            raw = transport.read_frame()
        response = decode_response(raw)
        self.logger.debug(f"Answer: {response}")
        return response

    def _exchange_state(self, command: RequestCommand, address: int, data: int) -> RelayCardResponse:
        frame = self._exchange(command, address, data)
        # The address the card answers with is authoritative.
        state = RelayState.from_byte(frame.data, frame.address)
        return RelayCardResponse(frame=frame, state=state)

    def set_port(self, state: RelayState) -> RelayCardResponse:
        """
        Switches all eight relays of a card to ``state``.

        Returns:
            The answer frame; the answer carries no relay state.
        """
        validate_address(state.address)
        frame = self._exchange(RequestCommand.SET_PORT, state.address, state.to_byte())
        return RelayCardResponse(frame=frame)

    def get_port(self, address: int) -> RelayCardResponse:
        """Reads the relay outputs of the card at ``address``."""
        validate_address(address)
        return self._exchange_state(RequestCommand.GET_PORT, address, 0)

    def set_single(self, state: RelayState) -> RelayCardResponse:
        """Switches on the relays set in ``state``, leaving the others as they are."""
        validate_address(state.address)
        return self._exchange_state(RequestCommand.SET_SINGLE, state.address, state.to_byte())

    def del_single(self, state: RelayState) -> RelayCardResponse:
        """Switches off the relays set in ``state``, leaving the others as they are."""
        validate_address(state.address)
        return self._exchange_state(RequestCommand.DEL_SINGLE, state.address, state.to_byte())

    def toggle(self, state: Union[RelayState, int], port_index: Optional[int] = None) -> RelayCardResponse:
        """
        Inverts the relays set in ``state``.

        Also accepts ``toggle(address, port_index)`` to invert one relay.
        """
        if not isinstance(state, RelayState):
            if port_index is None:
                raise ConfigurationError("toggle(address, port_index) needs a port index")
            return self.toggle_port(state, port_index)
        if port_index is not None:
            raise ConfigurationError("toggle(state) takes no port index")
        validate_address(state.address)
        return self._exchange_state(RequestCommand.TOGGLE, state.address, state.to_byte())

    def toggle_port(self, address: int, port_index: int) -> RelayCardResponse:
        """
        Inverts a single relay.

        Args:
            address: Card address.
            port_index: Relay index, 0 for K1 up to 7 for K8.
        """
        validate_address(address)
        validate_port_index(port_index)
        state = RelayState.from_ports(address, port_index)
        return self._exchange_state(RequestCommand.TOGGLE, state.address, state.to_byte())

    def get_option(self, address: int) -> RelayCardResponse:
        """Reads the option byte of a card; the answer data byte holds it."""
        validate_address(address)
        return RelayCardResponse(frame=self._exchange(RequestCommand.GET_OPTION, address, 0))

    def set_option(self, address: int, option: int) -> RelayCardResponse:
        """Writes the option byte of a card."""
        validate_address(address)
        return RelayCardResponse(frame=self._exchange(RequestCommand.SET_OPTION, address, option))
