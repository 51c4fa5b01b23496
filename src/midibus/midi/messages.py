"""
MIDI Messages - Byte-level message model, decoding and value objects
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Union

import mido

from ..core.config import (
    CHANNEL_RANGE, CONTROL_CHANGE, DATA_RANGE, NOTE_OFF, NOTE_ON, STATUS_RANGE, SYSEX, clamp
)

PITCH_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]


class EventKind(Enum):
    NOTE_ON = "note_on"
    NOTE_OFF = "note_off"
    CONTROLLER_CHANGE = "controller_change"


_COMMAND_TO_KIND = {
    NOTE_ON: EventKind.NOTE_ON,
    NOTE_OFF: EventKind.NOTE_OFF,
    CONTROL_CHANGE: EventKind.CONTROLLER_CHANGE,
}
_KIND_TO_COMMAND = {kind: command for command, kind in _COMMAND_TO_KIND.items()}


@dataclass(frozen=True)
class DecodedEvent:
    """NoteOn / NoteOff / ControllerChange decoded from a 3-byte channel message"""

    kind: EventKind
    channel: int
    data1: int
    data2: int

    def to_object(self, timestamp: int = -1, bus_name: Optional[str] = None):
        """Convert to the Note / ControlChange value object"""
        if self.kind is EventKind.CONTROLLER_CHANGE:
            return ControlChange(self.channel, self.data1, self.data2,
                                 timestamp=timestamp, bus_name=bus_name)
        return Note(self.channel, self.data1, self.data2,
                    timestamp=timestamp, bus_name=bus_name)


class MidiMessage:
    """Immutable MIDI message: a status byte followed by data bytes, or raw sysex"""

    __slots__ = ("_data", "_timestamp")

    def __init__(self, data: Union[bytes, bytearray, Iterable[int]], timestamp: int = -1):
        self._data = bytes(clamp(b, *STATUS_RANGE) for b in data)
        self._timestamp = timestamp

    # -- Constructors --

    @classmethod
    def short(cls, status: int, data1: Optional[int] = None, data2: Optional[int] = None) -> "MidiMessage":
        """Status-only, status + 1 or status + 2 data bytes, all values clamped"""
        data = [clamp(status, *STATUS_RANGE)]
        if data1 is not None:
            data.append(clamp(data1, *DATA_RANGE))
            if data2 is not None:
                data.append(clamp(data2, *DATA_RANGE))
        return cls(data)

    @classmethod
    def channel_message(cls, command: int, channel: int, data1: int = 0, data2: int = 0) -> "MidiMessage":
        """Channel command (top nibble) addressed to a channel, values clamped"""
        status = (clamp(command, *STATUS_RANGE) & 0xF0) | clamp(channel, *CHANNEL_RANGE)
        return cls([status, clamp(data1, *DATA_RANGE), clamp(data2, *DATA_RANGE)])

    @classmethod
    def note_on(cls, channel: int, pitch: int, velocity: int) -> "MidiMessage":
        return cls.channel_message(NOTE_ON, channel, pitch, velocity)

    @classmethod
    def note_off(cls, channel: int, pitch: int, velocity: int) -> "MidiMessage":
        return cls.channel_message(NOTE_OFF, channel, pitch, velocity)

    @classmethod
    def controller_change(cls, channel: int, number: int, value: int) -> "MidiMessage":
        return cls.channel_message(CONTROL_CHANGE, channel, number, value)

    @classmethod
    def from_bytes(cls, data, timestamp: int = -1) -> "MidiMessage":
        return cls(data, timestamp=timestamp)

    @classmethod
    def from_event(cls, event: DecodedEvent) -> "MidiMessage":
        return cls.channel_message(_KIND_TO_COMMAND[event.kind], event.channel, event.data1, event.data2)

    @classmethod
    def from_mido(cls, message: mido.Message) -> "MidiMessage":
        return cls(message.bytes())

    @classmethod
    def coerce(cls, message) -> "MidiMessage":
        """Accept a MidiMessage, mido.Message, bytes or a sequence of ints"""
        if isinstance(message, MidiMessage):
            return message
        if isinstance(message, mido.Message):
            return cls.from_mido(message)
        if isinstance(message, (Note, ControlChange)):
            raise TypeError(f"{type(message).__name__} has no message type, use send_note_on/off "
                            "or send_controller_change")
        return cls(message)

    def to_mido(self) -> mido.Message:
        """Convert to a mido.Message (raises ValueError for bytes mido cannot parse)"""
        return mido.Message.from_bytes(list(self._data))

    def with_timestamp(self, timestamp: int) -> "MidiMessage":
        return MidiMessage(self._data, timestamp=timestamp)

    # -- Accessors --

    @property
    def data(self) -> bytes:
        return self._data

    @property
    def timestamp(self) -> int:
        return self._timestamp

    @property
    def status(self) -> int:
        return self._data[0] if self._data else 0

    @property
    def command(self) -> int:
        return self.status & 0xF0

    @property
    def is_channel_message(self) -> bool:
        return 0x80 <= self.status < 0xF0

    @property
    def is_sysex(self) -> bool:
        return self.status == SYSEX

    @property
    def channel(self) -> Optional[int]:
        return self.status & 0x0F if self.is_channel_message else None

    @property
    def data1(self) -> int:
        return self._data[1] if len(self._data) > 1 else 0

    @property
    def data2(self) -> int:
        return self._data[2] if len(self._data) > 2 else 0

    @property
    def event(self) -> Optional[DecodedEvent]:
        """Decoded NoteOn / NoteOff / ControllerChange, or None"""
        if len(self._data) < 3:
            return None
        kind = _COMMAND_TO_KIND.get(self.command)
        if kind is None:
            return None
        return DecodedEvent(kind, self.status & 0x0F, self.data1, self.data2)

    def __len__(self):
        return len(self._data)

    def __bytes__(self):
        return self._data

    def __iter__(self):
        return iter(self._data)

    def __eq__(self, other):
        if not isinstance(other, MidiMessage):
            return NotImplemented
        return self._data == other._data

    def __hash__(self):
        return hash(self._data)

    def __repr__(self):
        return f"MidiMessage({self._data.hex(' ')})"


def normalize_note_off(message: MidiMessage) -> MidiMessage:
    """Rewrite a zero-velocity NoteOn as the equivalent NoteOff on the same channel"""
    if message.command == NOTE_ON and len(message) >= 3 and message.data2 == 0:
        data = bytearray(message.data)
        data[0] = NOTE_OFF | (message.status & 0x0F)
        return MidiMessage(data, timestamp=message.timestamp)
    return message


class Note:
    """A note event with pitch helpers"""

    def __init__(self, channel: int, pitch: int, velocity: int, ticks: int = 0,
                 timestamp: int = -1, bus_name: Optional[str] = None):
        self.channel = channel
        self.pitch = pitch
        self.velocity = velocity
        self.ticks = ticks
        self.timestamp = timestamp
        self.bus_name = bus_name

    @property
    def relative_pitch(self) -> int:
        return self.pitch % 12

    @property
    def octave(self) -> int:
        return self.pitch // 12

    @property
    def name(self) -> str:
        return PITCH_NAMES[self.pitch % 12]

    def __str__(self):
        result = f"[{self.name}, c:{self.channel}, p:{self.pitch}, v:{self.velocity}"
        if self.ticks != 0:
            result += f", t:{self.ticks}"
        if self.timestamp != -1:
            result += f", ts:{self.timestamp}"
        if self.bus_name is not None:
            result += f", b:{self.bus_name}"
        return result + "]"

    def __repr__(self):
        return (f"Note(channel={self.channel}, pitch={self.pitch}, velocity={self.velocity}, "
                f"ticks={self.ticks}, timestamp={self.timestamp}, bus_name={self.bus_name!r})")

    def _key(self):
        return (self.channel, self.pitch, self.velocity, self.ticks, self.timestamp, self.bus_name)

    def __eq__(self, other):
        if not isinstance(other, Note):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self):
        return hash(self._key())


class ControlChange:
    """A controller change event"""

    def __init__(self, channel: int, number: int, value: int,
                 timestamp: int = -1, bus_name: Optional[str] = None):
        self.channel = channel
        self.number = number
        self.value = value
        self.timestamp = timestamp
        self.bus_name = bus_name

    def __str__(self):
        result = f"[c:{self.channel}, n:{self.number}, v:{self.value}"
        if self.timestamp != -1:
            result += f", ts:{self.timestamp}"
        if self.bus_name is not None:
            result += f", b:{self.bus_name}"
        return result + "]"

    def __repr__(self):
        return (f"ControlChange(channel={self.channel}, number={self.number}, value={self.value}, "
                f"timestamp={self.timestamp}, bus_name={self.bus_name!r})")

    def _key(self):
        return (self.channel, self.number, self.value, self.timestamp, self.bus_name)

    def __eq__(self, other):
        if not isinstance(other, ControlChange):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self):
        return hash(self._key())
