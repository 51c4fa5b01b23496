"""
MIDI Testing - In-memory transport and mock controller for tests and demos
"""

import random
from threading import Lock
from typing import Dict, List, Optional, Tuple

from .messages import MidiMessage
from ..core.config import CONTROL_CHANGE, NOTE_OFF, NOTE_ON
from ..core.errors import DeviceNotFound
from ..hardware.transport import (
    DeviceHandle, EndpointDescriptor, InboundCallback, Receiver, Transmitter, Transport
)


class VirtualDevice:
    """A fake endpoint with switches for every failure the platform can produce"""

    def __init__(self, name: str, is_input: bool = True, is_output: bool = True):
        self.name = name
        self.is_input = is_input
        self.is_output = is_output
        self.fail_open = False
        self.fail_close = False
        self.fail_send = False
        self.open_count = 0
        self.close_count = 0
        self.written: List[MidiMessage] = []

    @property
    def descriptor(self) -> EndpointDescriptor:
        return EndpointDescriptor(self.name,
                                  max_transmitters=-1 if self.is_input else 0,
                                  max_receivers=-1 if self.is_output else 0)


class VirtualHandle(DeviceHandle):
    def __init__(self, device: VirtualDevice):
        super().__init__(device.descriptor)
        self.device = device
        self.transmitters: List["VirtualTransmitter"] = []


class VirtualTransmitter(Transmitter):
    def __init__(self, handle: VirtualHandle):
        self.handle = handle
        self.callback: Optional[InboundCallback] = None
        self.closed = False

    def set_receiver(self, callback: InboundCallback):
        self.callback = callback
        self.handle.transmitters.append(self)

    def close(self):
        self.closed = True
        if self in self.handle.transmitters:
            self.handle.transmitters.remove(self)


class VirtualReceiver(Receiver):
    def __init__(self, handle: VirtualHandle, transport: "VirtualTransport"):
        self.handle = handle
        self.transport = transport
        self.closed = False

    def send(self, message: MidiMessage, timestamp: int = -1):
        device = self.handle.device
        with self.transport.lock:
            self.transport.write_log.append((device.name, message))
        if self.closed:
            raise RuntimeError(f"Receiver for {device.name!r} is closed")
        if device.fail_send:
            raise IOError(f"{device.name}: write failed")
        device.written.append(message)

    def close(self):
        self.closed = True


class VirtualTransport(Transport):
    """Transport whose devices live in memory; inject() simulates inbound traffic"""

    def __init__(self, devices: Optional[List[VirtualDevice]] = None):
        super().__init__()
        self.devices: Dict[str, VirtualDevice] = {}
        self.lock = Lock()
        # Every write attempt, successful or not: (device name, message)
        self.write_log: List[Tuple[str, MidiMessage]] = []
        for device in devices or []:
            self.add_device(device)

    def add_device(self, device: VirtualDevice) -> VirtualDevice:
        self.devices[device.name] = device
        return device

    def remove_device(self, name: str):
        self.devices.pop(name, None)

    def device(self, name: str) -> VirtualDevice:
        return self.devices[name]

    def enumerate_devices(self) -> List[EndpointDescriptor]:
        return [device.descriptor for device in self.devices.values()]

    def _open_device(self, descriptor: EndpointDescriptor) -> DeviceHandle:
        device = self.devices.get(descriptor.name)
        if device is None:
            raise DeviceNotFound(descriptor.name, "no such device")
        if device.fail_open:
            raise IOError(f"{descriptor.name}: device busy")
        device.open_count += 1
        return VirtualHandle(device)

    def _close_device(self, handle: DeviceHandle):
        handle.device.close_count += 1
        if handle.device.fail_close:
            raise IOError(f"{handle.name}: close failed")

    def get_receive_channel(self, handle: DeviceHandle) -> Transmitter:
        return VirtualTransmitter(handle)

    def get_send_channel(self, handle: DeviceHandle) -> Receiver:
        return VirtualReceiver(handle, self)

    def inject(self, name: str, data, timestamp: int = -1) -> int:
        """Deliver bytes as if device `name` had sent them; returns receivers reached"""
        with self._lock:
            handle = self._handles.get(name)
            transmitters = list(handle.transmitters) if handle is not None else []
        delivered = 0
        for transmitter in transmitters:
            if not transmitter.closed and transmitter.callback is not None:
                transmitter.callback(bytes(data), timestamp)
                delivered += 1
        return delivered


class MockController:
    """Generates controller traffic for testing"""

    def __init__(self, channel: int = 0, seed: Optional[int] = None):
        self.channel = channel
        self.random = random.Random(seed)

    def note_on(self, pitch: int, velocity: int = 100) -> bytes:
        return bytes([NOTE_ON | self.channel, pitch, velocity])

    def note_off(self, pitch: int, velocity: int = 0) -> bytes:
        return bytes([NOTE_OFF | self.channel, pitch, velocity])

    def cc(self, number: int, value: int) -> bytes:
        return bytes([CONTROL_CHANGE | self.channel, number, value])

    def transport(self, command: str) -> bytes:
        """Realtime transport messages: play, stop, continue, clock"""
        codes = {'play': 0xFA, 'continue': 0xFB, 'stop': 0xFC, 'clock': 0xF8}
        return bytes([codes[command]])

    def sysex(self, payload: bytes) -> bytes:
        return bytes([0xF0]) + bytes(payload) + bytes([0xF7])

    def random_notes(self, count: int) -> List[bytes]:
        """Random note on/off traffic, including zero-velocity note offs"""
        messages = []
        for _ in range(count):
            pitch = self.random.randint(0, 127)
            velocity = self.random.choice([0, self.random.randint(1, 127)])
            messages.append(self.note_on(pitch, velocity))
        return messages
