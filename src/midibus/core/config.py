"""
Bus Configuration - Platform policy, backend selection and MIDI value ranges
"""

import os
import sys
from dataclasses import dataclass, field
from typing import Optional

# MIDI value ranges (inclusive)
STATUS_RANGE = (0, 255)
DATA_RANGE = (0, 127)
CHANNEL_RANGE = (0, 15)

# Channel message command nibbles
NOTE_OFF = 0x80
NOTE_ON = 0x90
POLY_PRESSURE = 0xA0
CONTROL_CHANGE = 0xB0
PROGRAM_CHANGE = 0xC0
CHANNEL_PRESSURE = 0xD0
PITCH_BEND = 0xE0
SYSEX = 0xF0

ENV_SKIP_INPUT_CLOSE = "MIDIBUS_SKIP_INPUT_CLOSE"
ENV_BACKEND = "MIDIBUS_BACKEND"


def _env_flag(name: str) -> Optional[bool]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return None
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class PlatformPolicy:
    """Per-platform device handling quirks"""

    # Closing input endpoints hangs on some platforms (seen on macOS)
    skip_input_close: bool = False
    # Release the device handle as soon as its last container detaches
    close_on_detach: bool = False

    @classmethod
    def detect(cls) -> "PlatformPolicy":
        """Build the policy for the running platform, honouring env overrides"""
        skip_input_close = sys.platform == "darwin"
        override = _env_flag(ENV_SKIP_INPUT_CLOSE)
        if override is not None:
            skip_input_close = override
        return cls(skip_input_close=skip_input_close)

    def may_close(self, is_input: bool) -> bool:
        """Whether a device handle with this direction may be closed outside bulk reclaim"""
        return not (is_input and self.skip_input_close)


@dataclass(frozen=True)
class BusConfig:
    """Settings shared by a bus, its directory and its containers"""

    policy: PlatformPolicy = field(default_factory=PlatformPolicy.detect)
    backend: Optional[str] = None     # mido backend module, None = mido default
    emit_qt_signals: bool = True

    @classmethod
    def from_env(cls) -> "BusConfig":
        backend = os.getenv(ENV_BACKEND) or None
        return cls(policy=PlatformPolicy.detect(), backend=backend)


def clamp(value, low: int, high: int) -> int:
    """Clamp a numeric value into [low, high] as an int"""
    value = int(value)
    if value > high:
        value = high
    if value < low:
        value = low
    return value
