"""
MIDI Bus - Merges any number of inputs and broadcasts to any number of outputs
"""

import logging
import time
from threading import Lock, RLock
from typing import Any, List, Optional, Tuple

from PyQt6.QtCore import QObject, pyqtSignal

from .event_sink import EventSink, EventSinkAdapter
from .listeners import ListenerRegistry
from .messages import MidiMessage
from ..core.config import CONTROL_CHANGE, NOTE_OFF, NOTE_ON, BusConfig
from ..core.errors import DeviceError
from ..hardware.containers import InputContainer, OutputContainer
from ..hardware.directory import DeviceDirectory, DeviceRef
from ..hardware.transport import EndpointDescriptor, Transport

logger = logging.getLogger(__name__)

_default_transport: Optional[Transport] = None
_default_transport_lock = Lock()


def default_transport(config: Optional[BusConfig] = None) -> Transport:
    """Process-wide mido transport shared by every bus that is not given one"""
    global _default_transport
    with _default_transport_lock:
        if _default_transport is None:
            from ..hardware.mido_transport import MidoTransport
            config = config or BusConfig.from_env()
            _default_transport = MidoTransport(backend=config.backend)
        return _default_transport


def set_default_transport(transport: Optional[Transport]):
    global _default_transport
    with _default_transport_lock:
        _default_transport = transport


def _default_bus_name() -> str:
    return "MidiBus_%08d" % (int(time.time() * 1000) % 100000000)


class MidiBus(QObject):
    """Named aggregation point: N inputs merged into one stream, M outputs broadcast to"""

    message_received = pyqtSignal(object, str)   # MidiMessage, bus_name
    input_added = pyqtSignal(str)                # device name
    input_removed = pyqtSignal(str)
    output_added = pyqtSignal(str)
    output_removed = pyqtSignal(str)
    callback_disabled = pyqtSignal(str)          # host callback slot name

    def __init__(self, host: Any = None, in_device: Optional[DeviceRef] = None,
                 out_device: Optional[DeviceRef] = None, bus_name: Optional[str] = None,
                 transport: Optional[Transport] = None, config: Optional[BusConfig] = None):
        super().__init__()

        self.config = config or BusConfig.from_env()
        self.transport = transport or default_transport(self.config)
        self.directory = DeviceDirectory(self.transport, self.config.policy)
        self._bus_name = bus_name or _default_bus_name()

        # Host callbacks, probed once
        self.host = host
        self.event_sink = EventSinkAdapter(EventSink.from_host(host),
                                           on_disabled=self._on_callback_disabled)

        # Guards containers, listeners and output writes
        self._lock = RLock()
        self._inputs: List[InputContainer] = []
        self._outputs: List[OutputContainer] = []
        self.listeners = ListenerRegistry()

        # Statistics
        self.message_count = 0
        self.error_count = 0

        if in_device is not None:
            self.add_input(in_device)
        if out_device is not None:
            self.add_output(out_device)

    # -- Naming --

    @property
    def bus_name(self) -> str:
        return self._bus_name

    @bus_name.setter
    def bus_name(self, name: str):
        self._bus_name = name

    def get_bus_name(self) -> str:
        return self._bus_name

    def set_bus_name(self, name: str):
        self._bus_name = name

    # -- Device attachment --

    def add_input(self, device: DeviceRef) -> bool:
        """Attach an input device by index or name"""
        descriptor = self._resolve(device, "input")
        if descriptor is None:
            return False
        if not descriptor.is_input:
            logger.warning('The chosen input device "%s" was not added because it is output only',
                           descriptor.name)
            return False
        if self._has_input(descriptor.name):
            logger.warning('The chosen input device "%s" was not added because it is already attached',
                           descriptor.name)
            return False

        # Opening can be slow: keep it outside the lock that inbound delivery needs
        try:
            container = InputContainer.attach(self.transport, descriptor, self._receive,
                                              self.config.policy)
        except DeviceError as e:
            logger.warning('The chosen input device "%s" was not added: %s', descriptor.name, e)
            return False

        with self._lock:
            if descriptor.name not in (c.name for c in self._inputs):
                self._inputs.append(container)
                container = None
        if container is not None:
            # Lost a race with a concurrent add of the same device
            self._safe_detach(container)
            logger.warning('The chosen input device "%s" was not added because it is already attached',
                           descriptor.name)
            return False

        logger.info('Input "%s" added to %s', descriptor.name, self._bus_name)
        self._emit(self.input_added, descriptor.name)
        return True

    def add_output(self, device: DeviceRef) -> bool:
        """Attach an output device by index or name"""
        descriptor = self._resolve(device, "output")
        if descriptor is None:
            return False
        if not descriptor.is_output:
            logger.warning('The chosen output device "%s" was not added because it is input only',
                           descriptor.name)
            return False
        if self._has_output(descriptor.name):
            logger.warning('The chosen output device "%s" was not added because it is already attached',
                           descriptor.name)
            return False

        try:
            container = OutputContainer.attach(self.transport, descriptor, self.config.policy)
        except DeviceError as e:
            logger.warning('The chosen output device "%s" was not added: %s', descriptor.name, e)
            return False

        with self._lock:
            if descriptor.name not in (c.name for c in self._outputs):
                self._outputs.append(container)
                container = None
        if container is not None:
            self._safe_detach(container)
            logger.warning('The chosen output device "%s" was not added because it is already attached',
                           descriptor.name)
            return False

        logger.info('Output "%s" added to %s', descriptor.name, self._bus_name)
        self._emit(self.output_added, descriptor.name)
        return True

    def remove_input(self, device: DeviceRef) -> bool:
        """Detach an input by position in the attached list or by name"""
        with self._lock:
            container = self._take(self._inputs, device)
        if container is None:
            return False
        self._safe_detach(container)
        self._emit(self.input_removed, container.name)
        return True

    def remove_output(self, device: DeviceRef) -> bool:
        """Detach an output by position in the attached list or by name"""
        with self._lock:
            container = self._take(self._outputs, device)
        if container is None:
            return False
        self._safe_detach(container)
        self._emit(self.output_removed, container.name)
        return True

    def clear_inputs(self):
        with self._lock:
            containers, self._inputs = self._inputs, []
        for container in containers:
            self._safe_detach(container)
            self._emit(self.input_removed, container.name)

    def clear_outputs(self):
        with self._lock:
            containers, self._outputs = self._outputs, []
        for container in containers:
            self._safe_detach(container)
            self._emit(self.output_removed, container.name)

    def clear_all(self):
        self.clear_inputs()
        self.clear_outputs()

    def attached_inputs(self) -> List[str]:
        with self._lock:
            return [c.name for c in self._inputs]

    def attached_outputs(self) -> List[str]:
        with self._lock:
            return [c.name for c in self._outputs]

    def _resolve(self, device: DeviceRef, direction: str) -> Optional[EndpointDescriptor]:
        if device is None or device == -1:
            return None
        if device == "":
            logger.warning("No %s device was added because the device name is empty", direction)
            return None
        available = self.directory.list_available()
        if direction == "input":
            descriptor = available.resolve_input(device)
        else:
            descriptor = available.resolve_output(device)
        if descriptor is None:
            # Right name, wrong direction: report it as such rather than "not found"
            other = available.resolve_output(device) if direction == "input" else available.resolve_input(device)
            if isinstance(device, str) and other is not None:
                return other
            logger.warning('The chosen %s device [%s] was not added because it does not exist',
                           direction, device)
        return descriptor

    def _has_input(self, name: str) -> bool:
        with self._lock:
            return any(c.name == name for c in self._inputs)

    def _has_output(self, name: str) -> bool:
        with self._lock:
            return any(c.name == name for c in self._outputs)

    @staticmethod
    def _take(containers, device: DeviceRef):
        if isinstance(device, bool):
            return None
        if isinstance(device, int):
            if 0 <= device < len(containers):
                return containers.pop(device)
            return None
        for i, container in enumerate(containers):
            if container.name == device:
                return containers.pop(i)
        return None

    def _safe_detach(self, container):
        try:
            container.detach()
        except Exception:
            logger.exception('Error while detaching "%s"', container.name)
        logger.debug('"%s" detached from %s', container.name, self._bus_name)

    # -- MIDI out --

    def send(self, message) -> int:
        """Write a message to every output in attachment order; returns successful writes"""
        try:
            message = MidiMessage.coerce(message)
        except (TypeError, ValueError) as e:
            logger.warning("Message not sent, it could not be converted: %s", e)
            return 0

        written = 0
        with self._lock:
            for container in self._outputs:
                try:
                    container.write(message)
                    written += 1
                except Exception:
                    self.error_count += 1
                    logger.exception('Message %r not sent to "%s"', message, container.name)
        return written

    def send_message(self, status: int, data1: Optional[int] = None, data2: Optional[int] = None) -> int:
        """Send a short message; length follows the arguments given"""
        message = MidiMessage.short(status, data1, data2)
        if message.status < 0x80:
            logger.warning("Message not sent, 0x%02X is not a status byte", message.status)
            return 0
        return self.send(message)

    def send_channel_message(self, command: int, channel: int, data1: int = 0, data2: int = 0) -> int:
        return self.send(MidiMessage.channel_message(command, channel, data1, data2))

    def send_note_on(self, channel: int, pitch: int, velocity: int) -> int:
        return self.send(MidiMessage.channel_message(NOTE_ON, channel, pitch, velocity))

    def send_note_off(self, channel: int, pitch: int, velocity: int = 0) -> int:
        return self.send(MidiMessage.channel_message(NOTE_OFF, channel, pitch, velocity))

    def send_controller_change(self, channel: int, number: int, value: int) -> int:
        return self.send(MidiMessage.channel_message(CONTROL_CHANGE, channel, number, value))

    # -- MIDI in --

    def _receive(self, message: MidiMessage):
        """Inbound entry point, called on transport delivery threads"""
        try:
            with self._lock:
                subscriptions = self.listeners.subscriptions()
                self.message_count += 1
            bus_name = self._bus_name

            self.listeners.notify(message, bus_name, subscriptions)
            self.event_sink.dispatch(message, bus_name)
            self._emit(self.message_received, message, bus_name)
        except Exception:
            with self._lock:
                self.error_count += 1
            logger.exception("Error while dispatching %r on %s", message, self._bus_name)

    def _on_callback_disabled(self, slot: str):
        with self._lock:
            self.error_count += 1
        self._emit(self.callback_disabled, slot)

    def _emit(self, signal, *args):
        if not self.config.emit_qt_signals:
            return
        try:
            signal.emit(*args)
        except Exception:
            logger.exception("Error in a %s signal handler", self._bus_name)

    # -- Listeners --

    def add_midi_listener(self, listener) -> bool:
        with self._lock:
            return self.listeners.add(listener)

    def remove_midi_listener(self, listener) -> bool:
        with self._lock:
            return self.listeners.remove(listener)

    # -- Shutting down --

    def close(self):
        """Detach everything and release every device handle no other bus still uses"""
        self.clear_all()
        try:
            closed = self.transport.close_idle()
        except Exception:
            logger.exception("Error while closing devices for %s", self._bus_name)
            return
        if closed:
            logger.debug("Closed devices %s", closed)

    def stop(self):
        self.close()

    def dispose(self):
        self.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    # -- Object --

    def clone(self) -> "MidiBus":
        """New bus with the same name, host, devices and listeners"""
        clone = MidiBus(self.host, bus_name=self._bus_name,
                        transport=self.transport, config=self.config)
        for name in self.attached_inputs():
            clone.add_input(name)
        for name in self.attached_outputs():
            clone.add_output(name)
        with self._lock:
            listeners = self.listeners.listeners()
        for listener in listeners:
            clone.add_midi_listener(listener)
        return clone

    def __str__(self):
        with self._lock:
            return (f"MidiBus: {self._bus_name} [{len(self._inputs)} input(s), "
                    f"{len(self._outputs)} output(s), {len(self.listeners)} listener(s)]")

    def __repr__(self):
        return f"<{self}>"

    # -- Device listings (default transport) --

    @staticmethod
    def _directory(transport: Optional[Transport] = None) -> DeviceDirectory:
        config = BusConfig.from_env()
        return DeviceDirectory(transport or default_transport(config), config.policy)

    @staticmethod
    def list(transport: Optional[Transport] = None):
        """Print every available device with its index and direction"""
        MidiBus._directory(transport).print_devices()

    @staticmethod
    def return_list(transport: Optional[Transport] = None) -> List[Tuple[int, str, str]]:
        return MidiBus._directory(transport).describe()

    @staticmethod
    def available_inputs(transport: Optional[Transport] = None) -> List[str]:
        return [d.name for d in MidiBus._directory(transport).list_available().inputs]

    @staticmethod
    def available_outputs(transport: Optional[Transport] = None) -> List[str]:
        return [d.name for d in MidiBus._directory(transport).list_available().outputs]

    @staticmethod
    def unavailable_devices(transport: Optional[Transport] = None) -> List[str]:
        return [d.name for d in MidiBus._directory(transport).list_available().unavailable]
