"""
Event Sink - Optional host callbacks fed with every inbound message

A host (sketch, GUI, plain object) may define any of ``note_on``, ``note_off``,
``controller_change``, ``raw_midi`` and ``midi_message``. Each one may take a
trailing bus name argument. Missing callbacks are simply not called, and a
callback that raises is disabled for the rest of the session.
"""

import inspect
import logging
from dataclasses import dataclass, fields
from threading import Lock
from typing import Any, Callable, List, Optional

from .messages import MidiMessage

logger = logging.getLogger(__name__)

CALLBACK_NAMES = ("note_on", "note_off", "controller_change", "raw_midi", "midi_message")

# Positional arguments each callback takes without the bus name
_PLAIN_ARITY = {
    "note_on": 3,
    "note_off": 3,
    "controller_change": 3,
    "raw_midi": 1,
    "midi_message": 1,
}


@dataclass
class EventSink:
    """Explicit set of optional host callbacks"""

    note_on: Optional[Callable] = None
    note_off: Optional[Callable] = None
    controller_change: Optional[Callable] = None
    raw_midi: Optional[Callable] = None
    midi_message: Optional[Callable] = None
    note_on_with_bus_name: Optional[Callable] = None
    note_off_with_bus_name: Optional[Callable] = None
    controller_change_with_bus_name: Optional[Callable] = None
    raw_midi_with_bus_name: Optional[Callable] = None
    midi_message_with_bus_name: Optional[Callable] = None

    @classmethod
    def from_host(cls, host: Any) -> "EventSink":
        """Probe a host object once and bind whichever callbacks it defines"""
        if isinstance(host, EventSink):
            return host
        sink = cls()
        if host is None:
            return sink
        for name in CALLBACK_NAMES:
            callback = getattr(host, name, None)
            if not callable(callback):
                continue
            arity = _PLAIN_ARITY[name]
            # Prefer the bus-name form when the callback can take it
            if _accepts(callback, arity + 1, arity):
                setattr(sink, name + "_with_bus_name", callback)
            elif _accepts(callback, arity, arity):
                setattr(sink, name, callback)
            else:
                logger.warning("Host callback %s() has an unsupported signature and was ignored", name)
        return sink

    def bound(self) -> List[str]:
        return [f.name for f in fields(self) if getattr(self, f.name) is not None]


def _accepts(callback: Callable, count: int, plain_arity: int) -> bool:
    try:
        inspect.signature(callback).bind(*([None] * count))
        return True
    except TypeError:
        return False
    except ValueError:
        # No introspectable signature (some builtins); assume the plain form
        return count == plain_arity


class EventSinkAdapter:
    """Forwards decoded events to an EventSink, unbinding any callback that fails"""

    def __init__(self, sink: Optional[EventSink] = None, on_disabled: Optional[Callable[[str], None]] = None):
        self.sink = sink or EventSink()
        self.on_disabled = on_disabled
        self._lock = Lock()

    def bound(self) -> List[str]:
        with self._lock:
            return self.sink.bound()

    def disable(self, slot: str):
        with self._lock:
            setattr(self.sink, slot, None)

    def dispatch(self, message: MidiMessage, bus_name: str):
        event = message.event
        if event is not None:
            args = (event.channel, event.data1, event.data2)
            self._call(event.kind.value, args, bus_name)
        self._call("raw_midi", (message.data,), bus_name)
        self._call("midi_message", (message,), bus_name)

    def _call(self, name: str, args: tuple, bus_name: str):
        self._invoke(name, args)
        self._invoke(name + "_with_bus_name", args + (bus_name,))

    def _invoke(self, slot: str, args: tuple):
        with self._lock:
            callback = getattr(self.sink, slot)
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.exception("Disabling %s() because it raised an exception", slot)
            with self._lock:
                # Only unbind if it was not rebound meanwhile
                if getattr(self.sink, slot) is callback:
                    setattr(self.sink, slot, None)
            if self.on_disabled is not None:
                try:
                    self.on_disabled(slot)
                except Exception:
                    logger.exception("Error reporting disabled callback %s()", slot)
