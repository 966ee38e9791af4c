"""
response_handler.py

Defines the ResponseHandler class for converting raw frame bytes and
answer frames into human-readable strings according to an output format.
"""

from typing import Optional

from relay_card.config import OUTPUT_FORMATS
from relay_card.models import RelayCardResponse


class ResponseHandler:
    """
    Formats raw frames and controller results for logs and console output.
    """

    def __init__(self, output_format: str = "Hex"):
        """
        Initializes the ResponseHandler.

        Args:
            output_format: The default output format ("Hex", "Binary" or "Decimal").
        """
        self.output_format = "Hex"
        self.set_output_format(output_format)

    def format_bytes(self, data: Optional[bytes]) -> str:
        """
        Converts raw bytes to a formatted string according to the output format.

        Args:
            data: The raw bytes.

        Returns:
            A formatted string representation.
        """
        if not data:
            return "No data"
        if self.output_format == "Binary":
            return ' '.join(f'{byte:08b}' for byte in data)
        elif self.output_format == "Decimal":
            return ' '.join(str(byte) for byte in data)
        return ' '.join(f'{byte:02x}' for byte in data)

    def format_result(self, result: RelayCardResponse) -> str:
        """
        Renders a controller result: the frame, its bytes and the decoded state.

        Args:
            result: The composite result of a controller operation.

        Returns:
            A multi-line string.
        """
        lines = [
            f"Result frame: {result.frame}",
            f"Raw bytes: {self.format_bytes(result.frame.to_bytes())}",
        ]
        if result.state is not None:
            lines.append(f"Result state: {result.state}")
            active = ', '.join(f"K{i + 1}" for i in result.state.active_ports) or "none"
            lines.append(f"Relays on (card {result.state.address}): {active}")
        return '\n'.join(lines)

    def set_output_format(self, format_type: str) -> None:
        """
        Updates the output format.

        Args:
            format_type: The new output format to use.

        Raises:
            ValueError: If the format is not one of OUTPUT_FORMATS.
        """
        if format_type not in OUTPUT_FORMATS:
            raise ValueError(f"Unknown output format: {format_type}")
        self.output_format = format_type
