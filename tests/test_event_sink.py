from midibus.midi.event_sink import EventSink, EventSinkAdapter
from midibus.midi.messages import MidiMessage


class Sketch:
    """Host with a mix of plain and bus-name callbacks"""

    def __init__(self):
        self.calls = []

    def note_on(self, channel, pitch, velocity):
        self.calls.append(("note_on", channel, pitch, velocity))

    def note_off(self, channel, pitch, velocity, bus_name):
        self.calls.append(("note_off", channel, pitch, velocity, bus_name))

    def raw_midi(self, data):
        self.calls.append(("raw_midi", data))

    def midi_message(self, message, bus_name):
        self.calls.append(("midi_message", message, bus_name))


class FaultySketch(Sketch):
    def note_on(self, channel, pitch, velocity):
        raise ValueError("sketch bug")


def test_from_host_binds_by_signature():
    sink = EventSink.from_host(Sketch())
    assert sorted(sink.bound()) == [
        "midi_message_with_bus_name", "note_off_with_bus_name", "note_on", "raw_midi",
    ]


def test_from_host_ignores_missing_and_non_callable():
    class Host:
        controller_change = 5

    assert EventSink.from_host(Host()).bound() == []
    assert EventSink.from_host(None).bound() == []


def test_optional_bus_name_argument_gets_the_bus_name():
    calls = []

    class Host:
        def raw_midi(self, data, bus_name=None):
            calls.append(bus_name)

    adapter = EventSinkAdapter(EventSink.from_host(Host()))
    adapter.dispatch(MidiMessage([0xF8]), "clock_bus")
    assert calls == ["clock_bus"]


def test_dispatch_note_on():
    host = Sketch()
    adapter = EventSinkAdapter(EventSink.from_host(host))
    msg = MidiMessage([0x91, 60, 100])
    adapter.dispatch(msg, "bus_a")
    assert host.calls == [
        ("note_on", 1, 60, 100),
        ("raw_midi", msg.data),
        ("midi_message", msg, "bus_a"),
    ]


def test_dispatch_note_off_with_bus_name():
    host = Sketch()
    adapter = EventSinkAdapter(EventSink.from_host(host))
    adapter.dispatch(MidiMessage([0x81, 60, 0]), "bus_a")
    assert host.calls[0] == ("note_off", 1, 60, 0, "bus_a")


def test_explicit_sink_calls_both_forms():
    calls = []
    sink = EventSink(
        controller_change=lambda c, n, v: calls.append(("plain", c, n, v)),
        controller_change_with_bus_name=lambda c, n, v, b: calls.append(("named", c, n, v, b)),
    )
    EventSinkAdapter(sink).dispatch(MidiMessage([0xB5, 74, 12]), "knobs")
    assert calls == [("plain", 5, 74, 12), ("named", 5, 74, 12, "knobs")]


def test_faulty_callback_is_disabled_and_others_keep_running():
    host = FaultySketch()
    disabled = []
    adapter = EventSinkAdapter(EventSink.from_host(host), on_disabled=disabled.append)

    for _ in range(2):
        adapter.dispatch(MidiMessage([0x90, 60, 100]), "bus")

    assert disabled == ["note_on"]
    assert "note_on" not in adapter.bound()
    assert [c[0] for c in host.calls] == ["raw_midi", "midi_message", "raw_midi", "midi_message"]


def test_disable_explicitly():
    host = Sketch()
    adapter = EventSinkAdapter(EventSink.from_host(host))
    adapter.disable("raw_midi")
    adapter.dispatch(MidiMessage([0xF8]), "bus")
    assert [c[0] for c in host.calls] == ["midi_message"]


class Opaque:
    """Callable whose signature cannot be introspected"""

    def __init__(self, fn):
        self.fn = fn

    @property
    def __signature__(self):
        raise ValueError("no signature found")

    def __call__(self, *args):
        self.fn(*args)


def test_callbacks_without_signature_bind_to_the_plain_form():
    calls = []

    class Host:
        note_on = Opaque(lambda *args: calls.append(("note_on",) + args))
        raw_midi = Opaque(lambda *args: calls.append(("raw_midi",) + args))

    sink = EventSink.from_host(Host())
    assert sorted(sink.bound()) == ["note_on", "raw_midi"]

    EventSinkAdapter(sink).dispatch(MidiMessage([0x90, 60, 1]), "bus")
    assert calls == [("note_on", 0, 60, 1), ("raw_midi", bytes([0x90, 60, 1]))]
