"""
Device Directory - Lists live MIDI endpoints and resolves indexes and names
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union

from .transport import EndpointDescriptor, Transport
from ..core.config import PlatformPolicy

logger = logging.getLogger(__name__)

DeviceRef = Union[int, str]


@dataclass
class AvailableDevices:
    """Result of one probe pass, in enumeration order"""

    inputs: List[EndpointDescriptor] = field(default_factory=list)
    outputs: List[EndpointDescriptor] = field(default_factory=list)
    unavailable: List[EndpointDescriptor] = field(default_factory=list)

    def resolve_input(self, ref: DeviceRef) -> Optional[EndpointDescriptor]:
        return _resolve(self.inputs, ref)

    def resolve_output(self, ref: DeviceRef) -> Optional[EndpointDescriptor]:
        return _resolve(self.outputs, ref)


def _resolve(devices: List[EndpointDescriptor], ref: DeviceRef) -> Optional[EndpointDescriptor]:
    if isinstance(ref, bool):
        return None
    if isinstance(ref, int):
        if 0 <= ref < len(devices):
            return devices[ref]
        return None
    for device in devices:
        if device.name == ref:
            return device
    return None


class DeviceDirectory:
    """Queries the transport for endpoints and filters out the ones that lie about availability"""

    def __init__(self, transport: Transport, policy: Optional[PlatformPolicy] = None):
        self.transport = transport
        self.policy = policy or PlatformPolicy.detect()

    def list_available(self) -> AvailableDevices:
        """Enumerate and probe every endpoint (open, then close unless policy forbids)"""
        result = AvailableDevices()
        for descriptor in self.transport.enumerate_devices():
            if not self._probe(descriptor):
                result.unavailable.append(descriptor)
                continue
            if descriptor.is_input:
                result.inputs.append(descriptor)
            if descriptor.is_output:
                result.outputs.append(descriptor)
        return result

    def _probe(self, descriptor: EndpointDescriptor) -> bool:
        # Already opened by this process: live, and must stay open
        if self.transport.is_open(descriptor.name):
            return True
        try:
            handle = self.transport.open(descriptor)
        except Exception as e:
            logger.debug("Device %r failed the availability probe: %s", descriptor.name, e)
            return False
        if self.policy.may_close(descriptor.is_input):
            try:
                self.transport.close_if_idle(handle)
            except Exception:
                logger.warning("Device %r opened but could not be closed after probing",
                               descriptor.name, exc_info=True)
        return True

    def resolve_input(self, ref: DeviceRef) -> Optional[EndpointDescriptor]:
        if ref == "":
            logger.warning("An empty input device name was given")
            return None
        return self.list_available().resolve_input(ref)

    def resolve_output(self, ref: DeviceRef) -> Optional[EndpointDescriptor]:
        if ref == "":
            logger.warning("An empty output device name was given")
            return None
        return self.list_available().resolve_output(ref)

    def input_name_to_index(self, name: str) -> int:
        for i, device in enumerate(self.list_available().inputs):
            if device.name == name:
                return i
        logger.warning('No input MIDI devices named "%s" were found', name)
        return -1

    def output_name_to_index(self, name: str) -> int:
        for i, device in enumerate(self.list_available().outputs):
            if device.name == name:
                return i
        logger.warning('No output MIDI devices named "%s" were found', name)
        return -1

    def describe(self, available: Optional[AvailableDevices] = None) -> List[Tuple[int, str, str]]:
        """(index, name, direction) for every live endpoint; index is what add_input/add_output take"""
        available = available or self.list_available()
        entries = [(i, d.name, "Input") for i, d in enumerate(available.inputs)]
        entries += [(i, d.name, "Output") for i, d in enumerate(available.outputs)]
        return entries

    def format_devices(self) -> str:
        available = self.list_available()
        entries = self.describe(available)
        lines = ["", "Available MIDI Devices:", "-----------------------"]
        for direction, title in (("Input", "Inputs:"), ("Output", "Outputs:")):
            lines.append(title)
            for i, name, _ in (e for e in entries if e[2] == direction):
                lines.append(f'[{i}] "{name}"')
        if available.unavailable:
            lines.append("Unavailable:")
            for d in available.unavailable:
                lines.append(f'"{d.name}" [{d.kind}]')
        return "\n".join(lines)

    def print_devices(self):
        print(self.format_devices())
