"""
models.py

Data models exchanged between the relay card controller and its callers.
Utilizes frozen dataclasses so values handed to a caller are never mutated.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from relay_card.config import MAX_ADDRESS, MIN_ADDRESS, NUMBER_OF_PORTS
from relay_card.exceptions import ConfigurationError
from relay_card.protocol.commands import ResponseCommand


def validate_address(address: int) -> int:
    """
    Checks a caller supplied card address.

    Args:
        address: Card address, the first card in the chain is 1.

    Returns:
        The address unchanged.

    Raises:
        ConfigurationError: If the address is outside 1..255.
    """
    if (isinstance(address, bool) or not isinstance(address, int)
            or not MIN_ADDRESS <= address <= MAX_ADDRESS):
        raise ConfigurationError(
            f"Card address must be {MIN_ADDRESS}-{MAX_ADDRESS}, got {address!r}"
        )
    return address


def validate_port_index(port_index: int) -> int:
    """Checks a relay index (0 is relay K1, 7 is relay K8)."""
    if (isinstance(port_index, bool) or not isinstance(port_index, int)
            or not 0 <= port_index < NUMBER_OF_PORTS):
        raise ConfigurationError(
            f"Port index must be 0-{NUMBER_OF_PORTS - 1}, got {port_index!r}"
        )
    return port_index


@dataclass(frozen=True)
class RelayState:
    """
    The eight relay outputs of one card plus the card address.

    ``ports[i]`` is relay K(i+1) and carries bit weight 2**i, so the byte
    49 (0b00110001) switches relays K1, K5 and K6.
    """
    ports: Tuple[bool, ...]
    address: int

    def __post_init__(self):
        if not isinstance(self.ports, (tuple, list)) or not all(isinstance(p, bool) for p in self.ports):
            raise ConfigurationError(f"Relay ports must be a sequence of bools, got {self.ports!r}")
        ports = tuple(self.ports)
        if len(ports) != NUMBER_OF_PORTS:
            raise ConfigurationError(
                f"A relay card has {NUMBER_OF_PORTS} ports, got {len(ports)}"
            )
        if (isinstance(self.address, bool) or not isinstance(self.address, int)
                or not 0 <= self.address <= 0xFF):
            raise ConfigurationError(f"Card address must fit in one byte, got {self.address!r}")
        object.__setattr__(self, "ports", ports)

    @classmethod
    def from_byte(cls, value: int, address: int) -> "RelayState":
        """
        Decodes a data byte, least significant bit first.

        Args:
            value: Data byte (0-255).
            address: Card address the state belongs to.
        """
        if not isinstance(value, int) or not 0 <= value <= 0xFF:
            raise ConfigurationError(f"Relay mask must be a byte value, got {value!r}")
        return cls(tuple(bool(value >> i & 1) for i in range(NUMBER_OF_PORTS)), address)

    @classmethod
    def from_ports(cls, address: int, *indices: int) -> "RelayState":
        """Builds a state with only the given relay indices switched on."""
        selected = {validate_port_index(i) for i in indices}
        return cls(tuple(i in selected for i in range(NUMBER_OF_PORTS)), address)

    @classmethod
    def off(cls, address: int) -> "RelayState":
        """All eight relays switched off."""
        return cls((False,) * NUMBER_OF_PORTS, address)

    def to_byte(self) -> int:
        """Encodes the ports into a data byte, bit i set when ``ports[i]`` is on."""
        value = 0
        for i, on in enumerate(self.ports):
            if on:
                value |= 1 << i
        return value

    @property
    def active_ports(self) -> Tuple[int, ...]:
        return tuple(i for i, on in enumerate(self.ports) if on)

    def __str__(self) -> str:
        value = self.to_byte()
        return f"[byte:{value}] mask:{value:08b}"


@dataclass(frozen=True)
class ResponseFrame:
    """
    A four byte answer frame as received from a card.

    The checksum is carried as received and is not verified.
    """
    command: ResponseCommand
    address: int
    data: int
    checksum: int

    @property
    def expected_checksum(self) -> int:
        """XOR of command, address and data, the way requests are checksummed."""
        return self.command.value ^ self.address ^ self.data

    def to_bytes(self) -> bytes:
        return bytes([self.command.value, self.address, self.data, self.checksum])

    def __str__(self) -> str:
        return f"[CMD:{self.command.name} ADR:{self.address} DAT:{self.data} CRC:{self.checksum}]"


@dataclass(frozen=True)
class RelayCardResponse:
    """
    Result of one controller operation: the raw answer frame and,
    for commands whose answer carries the relay outputs, the decoded state.
    """
    frame: ResponseFrame
    state: Optional[RelayState] = None

    def __str__(self) -> str:
        if self.state is None:
            return f"frame: {self.frame}"
        return f"frame: {self.frame} state: {self.state}"


def parse_address(text: str) -> int:
    """
    Parses the address part of a mask string.

    Args:
        text: Decimal card address, e.g. "1".

    Raises:
        ConfigurationError: If the text is not a number in 1..255.
    """
    try:
        address = int(text.strip(), 10)
    except (AttributeError, ValueError):
        raise ConfigurationError(f"Invalid card address: {text!r}") from None
    return validate_address(address)


def parse_mask(mask: str) -> RelayState:
    """
    Parses a ``"<address>;<8-bit binary>"`` mask into a RelayState.

    The binary pattern is written most significant bit first, so
    ``"1;00110001"`` addresses relays K1, K5 and K6 of card 1 (byte 49).

    Raises:
        ConfigurationError: If the mask is malformed.
    """
    if not mask or ";" not in mask:
        raise ConfigurationError(f"Mask must look like '<address>;<8-bit binary>', got {mask!r}")
    address_text, _, pattern = mask.partition(";")
    address = parse_address(address_text)
    pattern = pattern.strip()
    if not pattern or len(pattern) > NUMBER_OF_PORTS or set(pattern) - {"0", "1"}:
        raise ConfigurationError(f"Relay pattern must be up to 8 binary digits, got {pattern!r}")
    return RelayState.from_byte(int(pattern, 2), address)
