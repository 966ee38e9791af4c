"""
exceptions.py

Errors raised by the relay card driver.
"""


class RelayCardError(Exception):
    """Base class for all relay card errors."""
    pass


class TransportError(RelayCardError):
    """The serial channel could not be opened, written or read."""
    pass


class DecodeError(RelayCardError):
    """An answer frame could not be mapped to a known response."""
    pass


class ConfigurationError(RelayCardError, ValueError):
    """Invalid caller input (mask, address, port index), rejected before any I/O."""
    pass
