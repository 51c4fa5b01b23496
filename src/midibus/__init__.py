"""
MidiBus - Merge MIDI inputs into one stream and broadcast to many outputs
"""

from .core.config import BusConfig, PlatformPolicy
from .core.errors import (
    DeviceError, DeviceIsInputOnly, DeviceIsOutputOnly, DeviceNotFound, DeviceUnavailable,
    MidiBusError,
)
from .hardware.containers import ContainerState, InputContainer, OutputContainer
from .hardware.directory import AvailableDevices, DeviceDirectory
from .hardware.transport import EndpointDescriptor, Transport
from .midi.bus import MidiBus, default_transport, set_default_transport
from .midi.event_sink import EventSink, EventSinkAdapter
from .midi.listeners import (
    ListenerRegistry, MessageHandler, MidiListener, ObjectHandler, ObjectMidiListener,
    RawHandler, RawMidiListener, SimpleMidiListener, StandardMidiListener, TripletHandler,
)
from .midi.messages import (
    ControlChange, DecodedEvent, EventKind, MidiMessage, Note, normalize_note_off,
)

__version__ = "0.3.0"
