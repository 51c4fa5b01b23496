"""
MidoTransport against an in-memory stand-in for a mido backend
"""

import mido
import pytest

from midibus.core.config import BusConfig, PlatformPolicy
from midibus.core.errors import DeviceIsInputOnly, DeviceUnavailable
from midibus.hardware.mido_transport import MidoTransport
from midibus.midi.bus import MidiBus
from midibus.midi.listeners import StandardMidiListener
from midibus.midi.messages import MidiMessage


class FakePort:
    def __init__(self, name, callback=None):
        self.name = name
        self.callback = callback
        self.sent = []
        self.closed = False

    def send(self, message):
        self.sent.append(message)

    def close(self):
        self.closed = True


class FakeBackend:
    """Implements the slice of the mido port API the transport uses"""

    def __init__(self, inputs, outputs, broken=()):
        self.inputs = inputs
        self.outputs = outputs
        self.broken = set(broken)
        self.opened_inputs = []
        self.opened_outputs = []

    def get_input_names(self):
        return list(self.inputs)

    def get_output_names(self):
        return list(self.outputs)

    def open_input(self, name, callback=None):
        if name in self.broken:
            raise IOError(f"{name}: in use by another application")
        port = FakePort(name, callback)
        self.opened_inputs.append(port)
        return port

    def open_output(self, name):
        if name in self.broken:
            raise IOError(f"{name}: in use by another application")
        port = FakePort(name)
        self.opened_outputs.append(port)
        return port


@pytest.fixture()
def backend():
    return FakeBackend(inputs=["Keys", "Both"], outputs=["Both", "Synth"])


@pytest.fixture()
def mido_transport(backend):
    transport = MidoTransport()
    transport._mido = backend
    return transport


def descriptor(transport, name):
    return next(d for d in transport.enumerate_devices() if d.name == name)


def test_enumeration_merges_directions(mido_transport):
    devices = mido_transport.enumerate_devices()
    assert [(d.name, d.kind) for d in devices] == [
        ("Keys", "Input"),
        ("Both", "Input/Output"),
        ("Synth", "Output"),
    ]


def test_open_is_idempotent(mido_transport, backend):
    first = mido_transport.open(descriptor(mido_transport, "Both"))
    second = mido_transport.open(descriptor(mido_transport, "Both"))
    assert first is second
    assert len(backend.opened_inputs) == 1
    assert len(backend.opened_outputs) == 1


def test_open_failure(mido_transport, backend):
    backend.broken.add("Synth")
    with pytest.raises(DeviceUnavailable) as info:
        mido_transport.open(descriptor(mido_transport, "Synth"))
    assert isinstance(info.value.__cause__, IOError)
    assert not mido_transport.is_open("Synth")


def test_close_closes_ports(mido_transport, backend):
    handle = mido_transport.open(descriptor(mido_transport, "Both"))
    mido_transport.close(handle)
    assert backend.opened_inputs[0].closed
    assert backend.opened_outputs[0].closed
    assert not mido_transport.is_open("Both")


def test_input_only_has_no_send_channel(mido_transport):
    handle = mido_transport.open(descriptor(mido_transport, "Keys"))
    with pytest.raises(DeviceIsInputOnly):
        mido_transport.get_send_channel(handle)


def test_one_port_feeds_every_transmitter(mido_transport):
    handle = mido_transport.open(descriptor(mido_transport, "Keys"))
    received = []
    first = mido_transport.get_receive_channel(handle)
    second = mido_transport.get_receive_channel(handle)
    first.set_receiver(lambda data, ts: received.append(("first", data)))
    second.set_receiver(lambda data, ts: received.append(("second", data)))

    handle.input_port.callback(mido.Message("control_change", control=1, value=2))
    second.close()
    handle.input_port.callback(mido.Message("control_change", control=1, value=3))

    assert received == [
        ("first", bytes([0xB0, 1, 2])),
        ("second", bytes([0xB0, 1, 2])),
        ("first", bytes([0xB0, 1, 3])),
    ]


def test_bus_end_to_end(mido_transport, backend):
    class Recorder(StandardMidiListener):
        def __init__(self):
            self.messages = []

        def midi_message(self, message):
            self.messages.append(message)

    config = BusConfig(policy=PlatformPolicy(skip_input_close=False))
    bus = MidiBus(bus_name="mido", transport=mido_transport, config=config)
    recorder = Recorder()
    bus.add_midi_listener(recorder)
    try:
        assert bus.add_input("Keys")
        assert bus.add_output("Synth")

        port = next(p for p in backend.opened_inputs if not p.closed)
        port.callback(mido.Message("note_on", channel=2, note=60, velocity=0))
        assert recorder.messages == [MidiMessage([0x82, 60, 0])]

        assert bus.send_note_on(1, 64, 90) == 1
        out = next(p for p in backend.opened_outputs if not p.closed)
        assert out.sent == [mido.Message("note_on", channel=1, note=64, velocity=90)]
    finally:
        bus.close()
    assert all(p.closed for p in backend.opened_inputs + backend.opened_outputs)


def test_unencodable_bytes_fail_one_write(mido_transport):
    config = BusConfig(policy=PlatformPolicy(skip_input_close=False))
    bus = MidiBus(bus_name="mido", transport=mido_transport, config=config)
    try:
        bus.add_output("Synth")
        assert bus.send(MidiMessage([0x90, 60])) == 0
        assert bus.error_count == 1
    finally:
        bus.close()
