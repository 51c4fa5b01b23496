import mido
import pytest

from midibus.midi.messages import (
    ControlChange, DecodedEvent, EventKind, MidiMessage, Note, normalize_note_off,
)


def test_short_message_clamps_every_field():
    msg = MidiMessage.short(300, 200, -5)
    assert msg.data == bytes([255, 127, 0])


@pytest.mark.parametrize("args,expected", [
    ((0xF8,), bytes([0xF8])),
    ((0xC0, 5), bytes([0xC0, 5])),
    ((0x90, 60, 100), bytes([0x90, 60, 100])),
])
def test_short_message_length_follows_arguments(args, expected):
    assert MidiMessage.short(*args).data == expected


def test_channel_message_clamps_channel_and_masks_command():
    msg = MidiMessage.channel_message(0x95, 20, 300, 64)
    assert msg.status == 0x9F
    assert msg.channel == 15
    assert msg.data1 == 127
    assert msg.data2 == 64


def test_floats_are_coerced():
    assert MidiMessage.note_on(1.9, 60.2, 100.0).data == bytes([0x91, 60, 100])


def test_zero_velocity_note_on_becomes_note_off_for_all_channels_and_pitches():
    for channel in range(16):
        for pitch in range(128):
            msg = normalize_note_off(MidiMessage([0x90 | channel, pitch, 0]))
            event = msg.event
            assert event.kind is EventKind.NOTE_OFF
            assert event.channel == channel
            assert event.data1 == pitch
            assert event.data2 == 0


def test_normalize_leaves_other_messages_alone():
    sounding = MidiMessage.note_on(3, 60, 1)
    assert normalize_note_off(sounding) is sounding
    truncated = MidiMessage([0x90, 60])
    assert normalize_note_off(truncated) is truncated
    cc_zero = MidiMessage.controller_change(0, 7, 0)
    assert normalize_note_off(cc_zero) is cc_zero


def test_normalize_keeps_timestamp():
    msg = normalize_note_off(MidiMessage([0x92, 40, 0], timestamp=1234))
    assert msg.timestamp == 1234
    assert msg.status == 0x82


@pytest.mark.parametrize("data,kind", [
    ([0x93, 60, 90], EventKind.NOTE_ON),
    ([0x83, 60, 90], EventKind.NOTE_OFF),
    ([0xB3, 7, 90], EventKind.CONTROLLER_CHANGE),
])
def test_event_decoding(data, kind):
    assert MidiMessage(data).event == DecodedEvent(kind, 3, data[1], data[2])


@pytest.mark.parametrize("data", [
    [0xC0, 5],
    [0xE0, 0, 64],
    [0xF8],
    [0xF0, 0x7E, 0x01, 0xF7],
    [0x90, 60],
])
def test_non_triplet_messages_do_not_decode(data):
    assert MidiMessage(data).event is None


def test_sysex_message():
    msg = MidiMessage.from_bytes(b"\xf0\x43\x10\x4c\xf7")
    assert msg.is_sysex
    assert not msg.is_channel_message
    assert msg.channel is None
    assert len(msg) == 5


def test_mido_interop():
    original = mido.Message("note_on", channel=1, note=60, velocity=64)
    msg = MidiMessage.from_mido(original)
    assert msg.data == bytes([0x91, 60, 64])
    assert msg.to_mido() == original


def test_coerce_accepts_common_shapes():
    expected = MidiMessage([0xB0, 1, 2])
    assert MidiMessage.coerce(expected) is expected
    assert MidiMessage.coerce([0xB0, 1, 2]) == expected
    assert MidiMessage.coerce(b"\xb0\x01\x02") == expected
    assert MidiMessage.coerce(mido.Message("control_change", control=1, value=2)) == expected


def test_coerce_rejects_value_objects():
    with pytest.raises(TypeError):
        MidiMessage.coerce(Note(0, 60, 100))


def test_note_helpers():
    note = Note(2, 61, 100)
    assert note.name == "C#"
    assert note.octave == 5
    assert note.relative_pitch == 1
    assert str(note) == "[C#, c:2, p:61, v:100]"
    assert str(Note(0, 60, 0, timestamp=5, bus_name="a")) == "[C, c:0, p:60, v:0, ts:5, b:a]"


def test_value_object_equality():
    assert Note(0, 60, 100, bus_name="x") == Note(0, 60, 100, bus_name="x")
    assert Note(0, 60, 100) != Note(0, 60, 101)
    assert ControlChange(1, 7, 64) == ControlChange(1, 7, 64)
    assert str(ControlChange(1, 7, 64, bus_name="b")) == "[c:1, n:7, v:64, b:b]"


def test_decoded_event_to_object():
    cc = DecodedEvent(EventKind.CONTROLLER_CHANGE, 1, 7, 64).to_object(bus_name="b")
    assert cc == ControlChange(1, 7, 64, bus_name="b")
    note = DecodedEvent(EventKind.NOTE_ON, 1, 60, 64).to_object(timestamp=9)
    assert note == Note(1, 60, 64, timestamp=9)
    assert MidiMessage.from_event(DecodedEvent(EventKind.NOTE_OFF, 2, 60, 0)).data == bytes([0x82, 60, 0])
