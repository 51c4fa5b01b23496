"""
MidiBus Errors - Exception hierarchy for the hardware layer
"""


class MidiBusError(Exception):
    """Base class for all MidiBus errors"""


class DeviceError(MidiBusError):
    """An operation on a named MIDI device failed"""

    def __init__(self, device_name: str, reason: str = ""):
        self.device_name = device_name
        self.reason = reason
        message = f'"{device_name}"'
        if reason:
            message += f": {reason}"
        super().__init__(message)


class DeviceNotFound(DeviceError):
    """No device with this index or name is currently available"""


class DeviceUnavailable(DeviceError):
    """The platform refused to open the device"""


class DeviceIsInputOnly(DeviceError):
    """Tried to attach an input-only device as an output"""


class DeviceIsOutputOnly(DeviceError):
    """Tried to attach an output-only device as an input"""
