"""
Device Containers - One opened device plus the channel end a bus owns on it
"""

import logging
from enum import Enum
from typing import Callable, Optional

from .transport import DeviceHandle, EndpointDescriptor, Receiver, Transmitter, Transport
from ..core.config import PlatformPolicy
from ..core.errors import DeviceIsInputOnly, DeviceIsOutputOnly
from ..midi.messages import MidiMessage, normalize_note_off

logger = logging.getLogger(__name__)


class ContainerState(Enum):
    ATTACHED = "attached"
    DETACHED = "detached"   # channel end closed, device handle may still be open
    CLOSED = "closed"       # device handle released


class DeviceContainer:
    """Common lifecycle for input and output containers; equality by device name"""

    def __init__(self, transport: Transport, handle: DeviceHandle, policy: PlatformPolicy):
        self.transport = transport
        self.handle = handle
        self.policy = policy
        self.state = ContainerState.ATTACHED

    @property
    def name(self) -> str:
        return self.handle.name

    @property
    def descriptor(self) -> EndpointDescriptor:
        return self.handle.descriptor

    def _close_channel(self):
        raise NotImplementedError

    def detach(self):
        """Close the owned channel end; the shared device handle stays open by default"""
        if self.state is not ContainerState.ATTACHED:
            return
        self.state = ContainerState.DETACHED
        try:
            self._close_channel()
        finally:
            remaining = self.transport.release(self.handle)
            if (self.policy.close_on_detach and remaining == 0
                    and self.policy.may_close(self.descriptor.is_input)):
                self.close_device()

    def close_device(self):
        """Detach (if needed) and release the device handle"""
        if self.state is ContainerState.ATTACHED:
            self.detach()
        if self.state is ContainerState.CLOSED:
            return
        self.state = ContainerState.CLOSED
        self.transport.close_if_idle(self.handle)

    def __eq__(self, other):
        if not isinstance(other, DeviceContainer) or type(self) is not type(other):
            return NotImplemented
        return self.name == other.name

    def __hash__(self):
        return hash((type(self).__name__, self.name))

    def __repr__(self):
        return f"{type(self).__name__}({self.name!r}, {self.state.value})"


class InputContainer(DeviceContainer):
    """Input device wired to a bus receiver through its transmitter"""

    def __init__(self, transport: Transport, handle: DeviceHandle, policy: PlatformPolicy,
                 transmitter: Transmitter, receiver: Callable[[MidiMessage], None]):
        super().__init__(transport, handle, policy)
        self.transmitter = transmitter
        self.receiver = receiver

    @classmethod
    def attach(cls, transport: Transport, descriptor: EndpointDescriptor,
               receiver: Callable[[MidiMessage], None],
               policy: Optional[PlatformPolicy] = None) -> "InputContainer":
        """Open the device (if not already open) and wire its transmitter to the receiver"""
        if not descriptor.is_input:
            raise DeviceIsOutputOnly(descriptor.name, "output only")
        policy = policy or PlatformPolicy.detect()
        handle = transport.acquire(descriptor)
        try:
            transmitter = transport.get_receive_channel(handle)
        except Exception:
            transport.release(handle)
            raise
        container = cls(transport, handle, policy, transmitter, receiver)
        transmitter.set_receiver(container._on_inbound)
        logger.debug("Input %r attached", descriptor.name)
        return container

    def _on_inbound(self, data: bytes, timestamp: int = -1):
        if self.state is not ContainerState.ATTACHED or not data:
            return
        message = normalize_note_off(MidiMessage(data, timestamp=timestamp))
        self.receiver(message)

    def _close_channel(self):
        self.transmitter.close()


class OutputContainer(DeviceContainer):
    """Output device and the receiver used to write to it"""

    def __init__(self, transport: Transport, handle: DeviceHandle, policy: PlatformPolicy,
                 receiver: Receiver):
        super().__init__(transport, handle, policy)
        self.receiver = receiver

    @classmethod
    def attach(cls, transport: Transport, descriptor: EndpointDescriptor,
               policy: Optional[PlatformPolicy] = None) -> "OutputContainer":
        """Open the device (if not already open) and take a send channel on it"""
        if not descriptor.is_output:
            raise DeviceIsInputOnly(descriptor.name, "input only")
        policy = policy or PlatformPolicy.detect()
        handle = transport.acquire(descriptor)
        try:
            receiver = transport.get_send_channel(handle)
        except Exception:
            transport.release(handle)
            raise
        logger.debug("Output %r attached", descriptor.name)
        return cls(transport, handle, policy, receiver)

    def write(self, message: MidiMessage):
        self.receiver.send(message, message.timestamp)

    def _close_channel(self):
        self.receiver.close()
