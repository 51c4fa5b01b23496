"""
MIDI Transport - Platform device enumeration, open/close bookkeeping and channel ends
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from threading import RLock
from typing import Callable, Dict, List

from ..core.errors import DeviceError, DeviceUnavailable
from ..midi.messages import MidiMessage

logger = logging.getLogger(__name__)

# callback(data, timestamp_ms)
InboundCallback = Callable[[bytes, int], None]


@dataclass(frozen=True)
class EndpointDescriptor:
    """A platform MIDI endpoint as reported by enumeration"""

    name: str
    max_transmitters: int = 0  # inbound channels it can produce (-1 = unlimited)
    max_receivers: int = 0     # outbound channels it accepts (-1 = unlimited)

    @property
    def is_input(self) -> bool:
        return self.max_transmitters != 0

    @property
    def is_output(self) -> bool:
        return self.max_receivers != 0

    @property
    def kind(self) -> str:
        if self.is_input and self.is_output:
            return "Input/Output"
        if self.is_input:
            return "Input"
        return "Output"


class DeviceHandle(ABC):
    """One opened platform device"""

    def __init__(self, descriptor: EndpointDescriptor):
        self.descriptor = descriptor
        self.is_open = False
        self.attachments = 0  # containers currently wired to this handle

    @property
    def name(self) -> str:
        return self.descriptor.name

    def __repr__(self):
        state = "open" if self.is_open else "closed"
        return f"{type(self).__name__}({self.name!r}, {state}, attachments={self.attachments})"


class Transmitter(ABC):
    """Inbound channel end: delivers device traffic to a receiver callback"""

    @abstractmethod
    def set_receiver(self, callback: InboundCallback):
        pass

    @abstractmethod
    def close(self):
        pass


class Receiver(ABC):
    """Outbound channel end: writes messages to a device"""

    @abstractmethod
    def send(self, message: MidiMessage, timestamp: int = -1):
        pass

    @abstractmethod
    def close(self):
        pass


class Transport(ABC):
    """Platform MIDI capability with an idempotent open registry"""

    def __init__(self):
        self._handles: Dict[str, DeviceHandle] = {}
        self._lock = RLock()

    # -- Platform hooks --

    @abstractmethod
    def enumerate_devices(self) -> List[EndpointDescriptor]:
        """All platform-visible endpoints in platform order"""

    @abstractmethod
    def _open_device(self, descriptor: EndpointDescriptor) -> DeviceHandle:
        """Open the device, raising on failure"""

    @abstractmethod
    def _close_device(self, handle: DeviceHandle):
        """Release the device"""

    @abstractmethod
    def get_receive_channel(self, handle: DeviceHandle) -> Transmitter:
        pass

    @abstractmethod
    def get_send_channel(self, handle: DeviceHandle) -> Receiver:
        pass

    # -- Open registry --

    def open(self, descriptor: EndpointDescriptor) -> DeviceHandle:
        """Open a device, or return the handle if this process already has it open"""
        with self._lock:
            handle = self._handles.get(descriptor.name)
            if handle is not None and handle.is_open:
                return handle
            try:
                handle = self._open_device(descriptor)
            except DeviceError:
                raise
            except Exception as e:
                raise DeviceUnavailable(descriptor.name, str(e)) from e
            handle.is_open = True
            self._handles[descriptor.name] = handle
            logger.debug("Opened device %r", descriptor.name)
            return handle

    def close(self, handle: DeviceHandle):
        """Close a device handle and forget it"""
        with self._lock:
            if self._handles.get(handle.name) is handle:
                del self._handles[handle.name]
            if not handle.is_open:
                return
            handle.is_open = False
        self._close_device(handle)
        logger.debug("Closed device %r", handle.name)

    def is_open(self, name: str) -> bool:
        with self._lock:
            handle = self._handles.get(name)
            return handle is not None and handle.is_open

    def opened_handles(self) -> List[DeviceHandle]:
        with self._lock:
            return [handle for handle in self._handles.values() if handle.is_open]

    def close_if_idle(self, handle: DeviceHandle) -> bool:
        """Close a handle only if it is open and nothing is attached to it"""
        with self._lock:
            if not handle.is_open or handle.attachments > 0:
                return False
            self.close(handle)
        return True

    def close_idle(self) -> List[str]:
        """Close every opened handle nothing is attached to; failures are logged"""
        with self._lock:
            idle = [handle for handle in self._handles.values()
                    if handle.is_open and handle.attachments == 0]
        closed = []
        for handle in idle:
            try:
                if self.close_if_idle(handle):
                    closed.append(handle.name)
            except Exception:
                logger.exception("Error closing device %r", handle.name)
        return closed

    def acquire(self, descriptor: EndpointDescriptor) -> DeviceHandle:
        """Open (or reuse) a device and count one attachment on it"""
        with self._lock:
            handle = self.open(descriptor)
            handle.attachments += 1
            return handle

    def release(self, handle: DeviceHandle) -> int:
        with self._lock:
            handle.attachments = max(0, handle.attachments - 1)
            return handle.attachments
