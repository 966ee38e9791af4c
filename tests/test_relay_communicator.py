"""Tests for the relay card controller and the chain setup handshake."""

import threading

import pytest

from relay_card.config import (
    CHAIN_RESPONSE_DELAY,
    RESPONSE_SETTLE_DELAY,
    SETUP_BYTE_DELAY,
)
from relay_card.device_simulator import SimulatedRelayChain
from relay_card.exceptions import ConfigurationError, DecodeError, TransportError
from relay_card.models import RelayState
from relay_card.protocol.commands import ResponseCommand

from conftest import ScriptedSerial, SleepRecorder, make_controller

T, F = True, False


def test_get_port_decodes_answer():
    """65 = 0b01000001 switches relays 0 and 6 of card 1."""
    device = ScriptedSerial(bytes([253, 1, 65, 189]))
    controller = make_controller(device)

    result = controller.get_port(1)

    assert device.written == bytes([2, 1, 0, 3])
    assert result.frame.command is ResponseCommand.GET_PORT
    assert result.state == RelayState((T, F, F, F, F, F, T, F), 1)


def test_get_port_uses_answered_address():
    device = ScriptedSerial(bytes([253, 2, 1, 254]))
    result = make_controller(device).get_port(1)
    assert result.state.address == 2


def test_set_port_returns_frame_only(controller, chain):
    result = controller.set_port(RelayState.from_byte(49, 1))
    assert result.frame.command is ResponseCommand.SET_PORT
    assert result.state is None
    assert chain.relay_state(1).to_byte() == 49


def test_set_single_and_del_single(controller, chain):
    controller.set_port(RelayState.from_byte(0b00000001, 1))

    result = controller.set_single(RelayState.from_byte(0b10000000, 1))
    assert result.frame.command is ResponseCommand.SET_SINGLE
    assert result.state.to_byte() == 0b10000001

    result = controller.del_single(RelayState.from_byte(0b00000001, 1))
    assert result.frame.command is ResponseCommand.DEL_SINGLE
    assert result.state.to_byte() == 0b10000000
    assert chain.relay_state(1).to_byte() == 0b10000000


def test_toggle_state(controller):
    controller.set_port(RelayState.off(1))
    pattern = RelayState((T, F, T, F, T, F, T, F), 1)

    assert controller.toggle(pattern).state == pattern
    assert controller.toggle(pattern).state == RelayState.off(1)


def test_toggle_single_port(controller):
    controller.set_port(RelayState.off(1))
    result = controller.toggle(1, 3)
    assert result.frame.command is ResponseCommand.TOGGLE
    assert result.state.active_ports == (3,)
    assert controller.toggle_port(1, 3).state.active_ports == ()


def test_options(controller, chain):
    controller.set_option(1, 2)
    assert chain.options[0] == 2
    result = controller.get_option(1)
    assert result.frame.command is ResponseCommand.GET_OPTION
    assert result.frame.data == 2
    assert result.state is None


def test_each_operation_opens_and_closes(controller, chain):
    controller.get_port(1)
    controller.get_port(1)
    assert chain.open_count == 2
    assert not chain.is_open


def test_exchange_waits_settle_delay(controller, sleeps):
    controller.get_port(1)
    assert sleeps.delays == [RESPONSE_SETTLE_DELAY]


@pytest.mark.parametrize("call", [
    lambda c: c.get_port(0),
    lambda c: c.get_port(256),
    lambda c: c.get_port(True),
    lambda c: c.toggle(1, True),
    lambda c: c.set_port(RelayState.off(0)),
    lambda c: c.toggle(1, 8),
    lambda c: c.toggle(1),
    lambda c: c.set_option(1, 256),
])
def test_bad_input_rejected_before_io(controller, chain, call):
    with pytest.raises(ConfigurationError):
        call(controller)
    assert chain.open_count == 0
    assert chain.received_frames == []


def test_toggle_state_rejects_port_index(controller, chain):
    """A state already names the relays; an extra index would flip the wrong ones."""
    with pytest.raises(ConfigurationError):
        controller.toggle(RelayState.from_byte(0b1, 1), 3)
    assert chain.open_count == 0
    assert chain.received_frames == []


def test_toggle_port_flips_only_that_relay(controller, chain):
    controller.set_port(RelayState.off(1))
    assert controller.toggle(1, 3).state.active_ports == (3,)
    assert chain.relay_state(1).active_ports == (3,)


def test_unknown_answer_code_raises(controller):
    """A frame for a missing card returns unchanged and is not an answer."""
    with pytest.raises(DecodeError):
        controller.get_port(5)


def test_missing_answer_raises():
    controller = make_controller(ScriptedSerial(b""))
    with pytest.raises(TransportError):
        controller.get_port(1)


@pytest.mark.parametrize("card_count", [1, 2, 7, 254])
def test_initialize_counts_cards(card_count):
    chain = SimulatedRelayChain(card_count=card_count)
    controller = make_controller(chain)

    assert controller.initialize() == card_count
    assert controller.detected_card_count == card_count
    assert controller.initialized
    assert not chain.is_open


def test_initialize_full_chain_sentinel():
    """Address byte 0 in the returning setup frame means 255 cards."""
    controller = make_controller(SimulatedRelayChain(card_count=255))
    assert controller.initialize() == 255
    assert controller.initialized


@pytest.mark.parametrize("reported, expected", [(2, 1), (4, 3), (1, 0), (0, 255)])
def test_initialize_reads_setup_echo(reported, expected):
    stream = bytes([254, 1, 11, 244]) + bytes([1, reported, 0x55, 0x66])
    controller = make_controller(ScriptedSerial(stream))
    # The stale input is discarded first; refill after the first flush.
    device = controller.transport.ser
    device.reset_input_buffer = lambda: None

    assert controller.initialize() == expected
    assert controller.initialized == (expected >= 1)


def test_initialize_without_echo():
    device = ScriptedSerial(bytes([254, 1, 11, 244]) * 3)
    device.reset_input_buffer = lambda: None
    controller = make_controller(device)

    assert controller.initialize() == -1
    assert controller.detected_card_count == -1
    assert not controller.initialized
    assert not device.is_open


def test_initialize_writes_setup_and_sync_bytes():
    device = ScriptedSerial()
    sleeps = SleepRecorder()
    controller = make_controller(device, sleeps)

    controller.initialize()

    assert bytes(device.written) == bytes([1] * 8)
    assert sleeps.delays == [SETUP_BYTE_DELAY] * 4 + [CHAIN_RESPONSE_DELAY] * 2


def test_initialize_stops_setup_bytes_when_card_answers():
    """Once a card answers, the remaining setup bytes are skipped."""

    class AnsweringSerial(ScriptedSerial):
        def write(self, data):
            super().write(data)
            if len(self.written) == 2:
                self.incoming.extend(bytes([254, 1, 11, 244, 1, 2, 1, 2]))
            return len(data)

    device = AnsweringSerial()
    device.reset_input_buffer = lambda: None
    sleeps = SleepRecorder()
    controller = make_controller(device, sleeps)

    assert controller.initialize() == 1
    assert bytes(device.written) == bytes([1] * 6)
    assert sleeps.delays.count(SETUP_BYTE_DELAY) == 2


def test_initialize_discards_stale_input():
    chain = SimulatedRelayChain(card_count=3)
    chain.inject(bytes([1, 9, 9, 9]))
    controller = make_controller(chain)
    assert controller.initialize() == 3


def test_concurrent_operations_do_not_interleave():
    """Frames from many threads reach the chain whole and in one piece each."""
    chain = SimulatedRelayChain(card_count=4)
    controller = make_controller(chain)
    errors = []

    def worker(address):
        try:
            for i in range(50):
                mask = (address * 31 + i) & 0xFF
                controller.set_port(RelayState.from_byte(mask, address))
                result = controller.get_port(address)
                assert result.state.address == address
                assert result.state.to_byte() == mask
        except Exception as e:  # collected for the main thread
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(address,)) for address in range(1, 5)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert len(chain.received_frames) == 4 * 50 * 2
    assert all(frame[0] in (2, 3) for frame in chain.received_frames)
