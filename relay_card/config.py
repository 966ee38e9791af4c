"""
config.py

Line parameters, hardware timing constants and runtime settings for the
8-relay card chain, plus the logging setup shared by the CLI and the tests.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import serial

# Serial line parameters, fixed by the card firmware.
BAUDRATE = 19200
BYTESIZE = serial.EIGHTBITS
PARITY = serial.PARITY_NONE
STOPBITS = serial.STOPBITS_ONE

# Every command and every answer is exactly four bytes: command, address, data, checksum.
FRAME_SIZE = 4
NUMBER_OF_PORTS = 8

MIN_ADDRESS = 1
MAX_ADDRESS = 255

# Measured card timings (seconds). These are hardware settle times, not retry policy.
RESPONSE_SETTLE_DELAY = 0.020   # card reply latency before reading an answer frame
SETUP_BYTE_DELAY = 0.005        # pause after each single setup byte
CHAIN_RESPONSE_DELAY = 1.023    # time for the whole chain to forward the setup frame

SETUP_ATTEMPTS = 4
SETUP_RESPONSE_THRESHOLD = 3    # more buffered bytes than this means a card is answering
SYNC_BYTE_COUNT = 4
MAX_SETUP_SCAN_CHUNKS = 256

SETUP_BYTE = 0x01
SYNC_BYTE = 0x01

# Output formats understood by the ResponseHandler.
OUTPUT_FORMATS = ["Hex", "Binary", "Decimal"]


@dataclass(frozen=True)
class RelayCardSettings:
    """
    Runtime settings, built once by the caller and handed to the controller.

    Attributes:
        port: Serial device name (e.g. "/dev/ttyUSB0" or "COM3").
        read_timeout: Seconds to wait for a full answer frame. None blocks
            until four bytes arrive, which is what the card protocol expects.
        skip_initialization: Do not run the chain setup handshake.
        verbose: Log at DEBUG level.
    """
    port: str
    read_timeout: Optional[float] = None
    skip_initialization: bool = False
    verbose: bool = False


def setup_logging(name: str, verbose: bool = False) -> logging.Logger:
    """
    Configures logging for the application.
    The level is DEBUG when verbose is set, INFO otherwise.
    """
    logger = logging.getLogger(name)
    level = logging.DEBUG if verbose else logging.INFO
    logger.setLevel(level)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)

    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    console_handler.setFormatter(formatter)

    # Removes old handlers if any
    if logger.hasHandlers():
        logger.handlers.clear()
    logger.addHandler(console_handler)

    return logger
