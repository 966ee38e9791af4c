"""
cli.py

Command-line utility for the 8-relay card chain.

    relay-card -c SETPORT -p /dev/ttyUSB0 -m "1;00110001"
    relay-card -c GETPORT -p /dev/ttyUSB0 -m 1 -n

The mask parameter holds the card address (first card is 1) and, for write
commands, the 8-bit binary relay pattern: relays K6, K5 and K1 are
"00110001" (byte 49). Read-only commands need the address only.
"""

import argparse
import logging
import sys
from typing import Callable, Dict, List, Optional

from relay_card.communicator.relay_communicator import RelayCardController
from relay_card.communicator.response_handler import ResponseHandler
from relay_card.communicator.serial_transport import SerialTransport
from relay_card.config import OUTPUT_FORMATS, RelayCardSettings, setup_logging
from relay_card.device_simulator import SimulatedRelayChain
from relay_card.exceptions import ConfigurationError, RelayCardError
from relay_card.hardware_test import run_hardware_test
from relay_card.models import RelayCardResponse, parse_address, parse_mask

COMMAND_HELP = {
    "SETPORT": "Set ports by mask, requires address and 8-bit mask",
    "GETPORT": "Get ports for address, requires address in mask parameter",
    "SETSINGLE": "Switch on relays without changing the other outputs, requires address and 8-bit mask",
    "DELSINGLE": "Switch off relays without changing the other outputs, requires address and 8-bit mask",
    "TOGGLE": "Invert relays without changing the remaining outputs, requires address and 8-bit mask",
    "HARDWARETEST": "Switch all relays one-by-one, takes the address in the mask parameter (default 1)",
}


def build_parser() -> argparse.ArgumentParser:
    epilog = "Available values for the command option:\n" + "\n".join(
        f"  {name:<13} {text}" for name, text in COMMAND_HELP.items()
    )
    parser = argparse.ArgumentParser(
        prog="relay-card",
        description="Drive a chain of 8-relay cards over a serial port.",
        epilog=epilog,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-c", "--command", required=True, type=str.upper,
                        choices=list(COMMAND_HELP), metavar="COMMAND",
                        help="one of: " + ", ".join(COMMAND_HELP))
    parser.add_argument("-p", "--port", required=True, help="serial port name, e.g. /dev/ttyUSB0")
    parser.add_argument("-m", "--mask",
                        help="'<address>;<8-bit binary>' for write commands, '<address>' for read-only commands")
    parser.add_argument("-n", "--noinit", action="store_true",
                        help="do not initialize the cards; use this if they have been initialized since power on")
    parser.add_argument("-d", "--debug", action="store_true", help="print debug messages")
    parser.add_argument("-f", "--format", choices=OUTPUT_FORMATS, default="Hex",
                        help="rendering of raw frame bytes (default: Hex)")
    parser.add_argument("--simulate", type=int, metavar="CARDS",
                        help="talk to a simulated chain of CARDS cards instead of the serial port")
    return parser


def _require_mask(mask: Optional[str], command: str) -> str:
    if not mask:
        raise ConfigurationError(f"Command {command} requires the mask parameter (-m)")
    return mask


def _address_only(mask: str) -> int:
    return parse_address(mask.split(";", 1)[0])


def _get_port(controller: RelayCardController, mask: Optional[str]) -> RelayCardResponse:
    address = _address_only(_require_mask(mask, "GETPORT"))
    return controller.get_port(address)


def _set_port(controller: RelayCardController, mask: Optional[str]) -> RelayCardResponse:
    return controller.set_port(parse_mask(_require_mask(mask, "SETPORT")))


def _set_single(controller: RelayCardController, mask: Optional[str]) -> RelayCardResponse:
    return controller.set_single(parse_mask(_require_mask(mask, "SETSINGLE")))


def _del_single(controller: RelayCardController, mask: Optional[str]) -> RelayCardResponse:
    return controller.del_single(parse_mask(_require_mask(mask, "DELSINGLE")))


def _toggle(controller: RelayCardController, mask: Optional[str]) -> RelayCardResponse:
    return controller.toggle(parse_mask(_require_mask(mask, "TOGGLE")))


COMMANDS: Dict[str, Callable[[RelayCardController, Optional[str]], RelayCardResponse]] = {
    "SETPORT": _set_port,
    "GETPORT": _get_port,
    "SETSINGLE": _set_single,
    "DELSINGLE": _del_single,
    "TOGGLE": _toggle,
}


def create_controller(settings: RelayCardSettings, simulate: Optional[int] = None,
                      logger: Optional[logging.Logger] = None) -> RelayCardController:
    """
    Creates the controller for the given settings.

    Args:
        settings: Port and runtime settings.
        simulate: Number of simulated cards, None for the real serial port.
        logger: Optional logger instance.
    """
    transport = None
    if simulate is not None:
        chain = SimulatedRelayChain(card_count=simulate, port=settings.port, logger=logger)
        transport = SerialTransport(settings.port, timeout=settings.read_timeout,
                                    device=chain, logger=logger)
    return RelayCardController(settings, transport=transport, logger=logger)


def settings_from_args(args: argparse.Namespace) -> RelayCardSettings:
    return RelayCardSettings(
        port=args.port,
        skip_initialization=args.noinit,
        verbose=args.debug,
    )


def run(args: argparse.Namespace, settings: RelayCardSettings, logger: logging.Logger) -> int:
    handler = ResponseHandler(args.format)

    if args.simulate is not None and not 1 <= args.simulate <= 255:
        raise ConfigurationError(f"--simulate takes 1-255 cards, got {args.simulate}")

    # Validate the mask before touching the port.
    if args.command == "HARDWARETEST":
        address = _address_only(args.mask) if args.mask else 1
    elif args.command == "GETPORT":
        _address_only(_require_mask(args.mask, args.command))
    else:
        parse_mask(_require_mask(args.mask, args.command))

    logger.debug(f"Setting card port to {settings.port}")
    controller = create_controller(settings, args.simulate, logger)

    if not settings.skip_initialization:
        logger.debug("Initializing card(s)")
        controller.initialize()
        if not controller.initialized:
            logger.warning("No card answered the setup handshake, continuing anyway")
    else:
        logger.debug("Option 'noinit' has been set, card not initialized")

    logger.debug(f"Command: {args.command}")
    if args.command == "HARDWARETEST":
        run_hardware_test(controller, address, logger=logger)
        return 0

    result = COMMANDS[args.command](controller, args.mask)
    print(handler.format_result(result))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point of the relay-card command."""
    args = build_parser().parse_args(argv)
    settings = settings_from_args(args)
    logger = setup_logging("relay_card", verbose=settings.verbose)
    try:
        return run(args, settings, logger)
    except RelayCardError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
