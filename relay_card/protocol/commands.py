"""
commands.py

Command codes of the 8-relay card protocol.

Each request code has a matching answer code equal to ``255 - request``;
a card answering a SetPort (3) request replies with 252.
"""

from enum import IntEnum


class RequestCommand(IntEnum):
    """Command byte sent from the host to a card."""
    NO_OPERATION = 0
    SETUP = 1
    GET_PORT = 2
    SET_PORT = 3
    GET_OPTION = 4
    SET_OPTION = 5
    SET_SINGLE = 6
    DEL_SINGLE = 7
    TOGGLE = 8

    @property
    def response(self) -> "ResponseCommand":
        """The answer code a card sends back for this request."""
        return ResponseCommand(0xFF - self.value)


class ResponseCommand(IntEnum):
    """Command byte of a frame sent from a card back to the host."""
    NO_OPERATION = 255
    SETUP = 254
    GET_PORT = 253
    SET_PORT = 252
    GET_OPTION = 251
    SET_OPTION = 250
    SET_SINGLE = 249
    DEL_SINGLE = 248
    TOGGLE = 247

    @property
    def request(self) -> RequestCommand:
        """The request this code answers."""
        return RequestCommand(0xFF - self.value)
