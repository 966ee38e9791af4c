"""Shared fixtures: a simulated card chain and scripted serial stand-ins."""

import pytest

from relay_card.communicator.relay_communicator import RelayCardController
from relay_card.communicator.serial_transport import SerialTransport
from relay_card.config import RelayCardSettings
from relay_card.device_simulator import SimulatedRelayChain


class SleepRecorder:
    """Replaces time.sleep; records the requested delays instead of waiting."""

    def __init__(self):
        self.delays = []

    def __call__(self, seconds):
        self.delays.append(seconds)


class ScriptedSerial:
    """
    Minimal pySerial stand-in that plays back a fixed byte stream.

    Every write is recorded; reads consume ``incoming`` and return fewer
    bytes once it runs dry, like a port with a short timeout.
    """

    def __init__(self, incoming=b"", port="scripted"):
        self.port = port
        self.incoming = bytearray(incoming)
        self.written = bytearray()
        self.is_open = False
        self.open_count = 0
        self.close_count = 0
        self.input_resets = 0

    def open(self):
        self.is_open = True
        self.open_count += 1

    def close(self):
        self.is_open = False
        self.close_count += 1

    def write(self, data):
        self.written.extend(data)
        return len(data)

    def flush(self):
        pass

    def read(self, size=1):
        data = bytes(self.incoming[:size])
        del self.incoming[:size]
        return data

    @property
    def in_waiting(self):
        return len(self.incoming)

    def reset_input_buffer(self):
        self.input_resets += 1
        self.incoming.clear()

    def reset_output_buffer(self):
        pass


@pytest.fixture
def sleeps():
    return SleepRecorder()


@pytest.fixture
def chain():
    return SimulatedRelayChain(card_count=1)


@pytest.fixture
def settings():
    return RelayCardSettings(port="sim://test")


@pytest.fixture
def transport(chain, sleeps):
    return SerialTransport("sim://test", device=chain, sleep=sleeps)


@pytest.fixture
def controller(settings, transport):
    return RelayCardController(settings, transport=transport)


def make_controller(device, sleep=None):
    """Builds a controller on top of any pySerial compatible device."""
    transport = SerialTransport("sim://test", device=device, sleep=sleep or SleepRecorder())
    return RelayCardController(RelayCardSettings(port="sim://test"), transport=transport)
