"""
relay_card

Driver for daisy-chained 8-relay cards on a serial line: frame protocol,
chain setup handshake and relay commands.
"""

from relay_card.communicator.relay_communicator import RelayCardController
from relay_card.communicator.serial_transport import SerialTransport
from relay_card.config import RelayCardSettings
from relay_card.exceptions import ConfigurationError, DecodeError, RelayCardError, TransportError
from relay_card.models import RelayCardResponse, RelayState, ResponseFrame
from relay_card.protocol.commands import RequestCommand, ResponseCommand

__version__ = "1.0.0"
__all__ = [
    'ConfigurationError',
    'DecodeError',
    'RelayCardController',
    'RelayCardError',
    'RelayCardResponse',
    'RelayCardSettings',
    'RelayState',
    'RequestCommand',
    'ResponseCommand',
    'ResponseFrame',
    'SerialTransport',
    'TransportError',
]
