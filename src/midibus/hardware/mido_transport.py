"""
Mido Transport - MIDI transport on top of mido (python-rtmidi backend by default)
"""

import logging
import time
from threading import Lock
from typing import List, Optional

import mido

from .transport import (
    DeviceHandle, EndpointDescriptor, InboundCallback, Receiver, Transmitter, Transport
)
from ..core.errors import DeviceIsInputOnly, DeviceIsOutputOnly
from ..midi.messages import MidiMessage

logger = logging.getLogger(__name__)


class MidoDeviceHandle(DeviceHandle):
    """Opened mido ports for one endpoint (input and/or output)"""

    def __init__(self, descriptor: EndpointDescriptor):
        super().__init__(descriptor)
        self.input_port = None
        self.output_port = None
        self._transmitters: List["MidoTransmitter"] = []
        self._lock = Lock()

    def add_transmitter(self, transmitter: "MidoTransmitter"):
        with self._lock:
            self._transmitters.append(transmitter)

    def remove_transmitter(self, transmitter: "MidoTransmitter"):
        with self._lock:
            if transmitter in self._transmitters:
                self._transmitters.remove(transmitter)

    def deliver(self, message: mido.Message):
        """mido port callback: one port, any number of transmitters"""
        data = bytes(message.bytes())
        timestamp = int(time.time() * 1000)
        with self._lock:
            transmitters = list(self._transmitters)
        for transmitter in transmitters:
            transmitter.deliver(data, timestamp)


class MidoTransmitter(Transmitter):
    """Routes traffic from a mido input port to one receiver"""

    def __init__(self, handle: MidoDeviceHandle):
        self.handle = handle
        self.callback: Optional[InboundCallback] = None
        self.closed = False

    def set_receiver(self, callback: InboundCallback):
        self.callback = callback
        self.handle.add_transmitter(self)

    def deliver(self, data: bytes, timestamp: int):
        callback = self.callback
        if callback is None or self.closed:
            return
        try:
            callback(data, timestamp)
        except Exception:
            logger.exception("Receiver on %r raised", self.handle.name)

    def close(self):
        if not self.closed:
            self.closed = True
            self.handle.remove_transmitter(self)


class MidoReceiver(Receiver):
    """Writes MidiMessages to a mido output port"""

    def __init__(self, port):
        self.port = port
        self.closed = False

    def send(self, message: MidiMessage, timestamp: int = -1):
        if self.closed:
            raise RuntimeError(f"Receiver for {self.port.name!r} is closed")
        self.port.send(message.to_mido())

    def close(self):
        self.closed = True


class MidoTransport(Transport):
    """Platform MIDI through mido"""

    def __init__(self, backend: Optional[str] = None):
        super().__init__()
        self.backend_name = backend
        # mido.Backend exposes the same port API as the mido module itself
        self._mido = mido.Backend(backend) if backend else mido

    def enumerate_devices(self) -> List[EndpointDescriptor]:
        input_names = list(self._mido.get_input_names())
        output_names = list(self._mido.get_output_names())

        devices = []
        seen = set()
        for name in input_names + output_names:
            if name in seen:
                continue
            seen.add(name)
            devices.append(EndpointDescriptor(
                name,
                max_transmitters=-1 if name in input_names else 0,
                max_receivers=-1 if name in output_names else 0,
            ))
        return devices

    def _open_device(self, descriptor: EndpointDescriptor) -> DeviceHandle:
        handle = MidoDeviceHandle(descriptor)
        try:
            if descriptor.is_input:
                handle.input_port = self._mido.open_input(descriptor.name, callback=handle.deliver)
            if descriptor.is_output:
                handle.output_port = self._mido.open_output(descriptor.name)
        except Exception:
            if handle.input_port is not None:
                handle.input_port.close()
            raise
        return handle

    def _close_device(self, handle: DeviceHandle):
        errors = []
        for port in (handle.input_port, handle.output_port):
            if port is None:
                continue
            try:
                port.close()
            except Exception as e:
                errors.append(e)
        if errors:
            raise errors[0]

    def get_receive_channel(self, handle: DeviceHandle) -> Transmitter:
        if handle.input_port is None:
            raise DeviceIsOutputOnly(handle.name, "no input port")
        return MidoTransmitter(handle)

    def get_send_channel(self, handle: DeviceHandle) -> Receiver:
        if handle.output_port is None:
            raise DeviceIsInputOnly(handle.name, "no output port")
        return MidoReceiver(handle.output_port)
