"""
MIDI Listeners - Capability interfaces, tagged handler variants and the listener registry
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, List, Optional, Tuple

from .messages import ControlChange, EventKind, MidiMessage, Note

logger = logging.getLogger(__name__)


# -- Capability interfaces --

class MidiListener(ABC):
    """Marker base for every listener capability"""


class RawMidiListener(MidiListener):
    """Receives the full byte sequence of every inbound message"""

    @abstractmethod
    def raw_midi_message(self, data: bytes):
        pass


class SimpleMidiListener(MidiListener):
    """Receives decoded NoteOn / NoteOff / ControllerChange triplets"""

    @abstractmethod
    def note_on(self, channel: int, pitch: int, velocity: int):
        pass

    @abstractmethod
    def note_off(self, channel: int, pitch: int, velocity: int):
        pass

    @abstractmethod
    def controller_change(self, channel: int, number: int, value: int):
        pass


class StandardMidiListener(MidiListener):
    """Receives every inbound MidiMessage"""

    @abstractmethod
    def midi_message(self, message: MidiMessage):
        pass


class ObjectMidiListener(MidiListener):
    """Receives Note / ControlChange objects"""

    @abstractmethod
    def note_on_event(self, note: Note):
        pass

    @abstractmethod
    def note_off_event(self, note: Note):
        pass

    @abstractmethod
    def controller_change_event(self, change: ControlChange):
        pass


# -- Tagged variants --

@dataclass(frozen=True)
class RawHandler:
    raw: Callable[[bytes], Any]


@dataclass(frozen=True)
class TripletHandler:
    note_on: Optional[Callable[[int, int, int], Any]] = None
    note_off: Optional[Callable[[int, int, int], Any]] = None
    controller_change: Optional[Callable[[int, int, int], Any]] = None

    def for_kind(self, kind: EventKind):
        return getattr(self, kind.value)


@dataclass(frozen=True)
class MessageHandler:
    message: Callable[[MidiMessage], Any]


@dataclass(frozen=True)
class ObjectHandler:
    note_on: Optional[Callable[[Note], Any]] = None
    note_off: Optional[Callable[[Note], Any]] = None
    controller_change: Optional[Callable[[ControlChange], Any]] = None

    def for_kind(self, kind: EventKind):
        return getattr(self, kind.value)


HANDLER_TYPES = (RawHandler, TripletHandler, MessageHandler, ObjectHandler)


def handlers_for(listener) -> List[Any]:
    """Variants a listener provides, in notification order (raw, triplet, message, object)"""
    if isinstance(listener, HANDLER_TYPES):
        return [listener]

    handlers = []
    if isinstance(listener, RawMidiListener):
        handlers.append(RawHandler(listener.raw_midi_message))
    if isinstance(listener, SimpleMidiListener):
        handlers.append(TripletHandler(listener.note_on, listener.note_off, listener.controller_change))
    if isinstance(listener, StandardMidiListener):
        handlers.append(MessageHandler(listener.midi_message))
    if isinstance(listener, ObjectMidiListener):
        handlers.append(ObjectHandler(listener.note_on_event, listener.note_off_event,
                                      listener.controller_change_event))
    return handlers


Subscription = Tuple[Any, Tuple[Any, ...]]


class ListenerRegistry:
    """Ordered set of listeners; callers serialize add/remove, notify may run on many threads"""

    def __init__(self):
        self._subscriptions: List[Subscription] = []
        self.error_count = 0
        self._error_lock = Lock()

    def add(self, listener) -> bool:
        """Register a listener by identity; False if already present or capability-less"""
        if any(current is listener for current, _ in self._subscriptions):
            return False
        handlers = handlers_for(listener)
        if not handlers:
            logger.warning("%r implements no MIDI listener capability and was not added", listener)
            return False
        self._subscriptions.append((listener, tuple(handlers)))
        return True

    def remove(self, listener) -> bool:
        for i, (current, _) in enumerate(self._subscriptions):
            if current is listener:
                del self._subscriptions[i]
                return True
        return False

    def clear(self):
        self._subscriptions = []

    def listeners(self) -> List[Any]:
        return [listener for listener, _ in self._subscriptions]

    def subscriptions(self) -> List[Subscription]:
        """Snapshot for fan-out outside the owner's lock"""
        return list(self._subscriptions)

    def __len__(self):
        return len(self._subscriptions)

    def __contains__(self, listener):
        return any(current is listener for current, _ in self._subscriptions)

    def notify(self, message: MidiMessage, bus_name: Optional[str] = None,
               subscriptions: Optional[List[Subscription]] = None):
        """Deliver one inbound message to every handler; one failure never stops the rest"""
        if subscriptions is None:
            subscriptions = self.subscriptions()
        event = message.event

        for listener, handlers in subscriptions:
            for handler in handlers:
                if isinstance(handler, RawHandler):
                    self._invoke(listener, handler.raw, message.data)
                elif isinstance(handler, TripletHandler):
                    if event is not None:
                        callback = handler.for_kind(event.kind)
                        if callback is not None:
                            self._invoke(listener, callback, event.channel, event.data1, event.data2)
                elif isinstance(handler, MessageHandler):
                    self._invoke(listener, handler.message, message)
                elif isinstance(handler, ObjectHandler):
                    if event is not None:
                        callback = handler.for_kind(event.kind)
                        if callback is not None:
                            self._invoke(listener, callback,
                                         event.to_object(message.timestamp, bus_name))

    def _invoke(self, listener, callback, *args):
        try:
            callback(*args)
        except Exception:
            with self._error_lock:
                self.error_count += 1
            logger.exception("MIDI listener %r raised while handling a message", listener)
