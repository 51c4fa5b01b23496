"""
Shared fixtures: an in-memory transport with a small studio of devices.

No real MIDI hardware or backend is touched.
"""

import pytest

from midibus.core.config import BusConfig, PlatformPolicy
from midibus.midi.bus import MidiBus
from midibus.midi.midi_testing import MockController, VirtualDevice, VirtualTransport


@pytest.fixture()
def policy() -> PlatformPolicy:
    return PlatformPolicy(skip_input_close=False)


@pytest.fixture()
def config(policy) -> BusConfig:
    return BusConfig(policy=policy)


@pytest.fixture()
def transport() -> VirtualTransport:
    # inputs:  Keys In, Pads In, Interface
    # outputs: Synth Out, Drum Out, Interface
    return VirtualTransport([
        VirtualDevice("Keys In", is_input=True, is_output=False),
        VirtualDevice("Synth Out", is_input=False, is_output=True),
        VirtualDevice("Pads In", is_input=True, is_output=False),
        VirtualDevice("Drum Out", is_input=False, is_output=True),
        VirtualDevice("Interface", is_input=True, is_output=True),
    ])


@pytest.fixture()
def make_bus(transport, config):
    buses = []

    def _make(**kwargs) -> MidiBus:
        kwargs.setdefault("transport", transport)
        kwargs.setdefault("config", config)
        bus = MidiBus(**kwargs)
        buses.append(bus)
        return bus

    yield _make
    for bus in buses:
        bus.close()


@pytest.fixture()
def bus(make_bus) -> MidiBus:
    return make_bus(bus_name="test_bus")


@pytest.fixture()
def controller() -> MockController:
    return MockController(channel=0, seed=1234)
