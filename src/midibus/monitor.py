"""
Bus Monitor - Lists devices, or logs (and optionally forwards) traffic from one input
"""

import argparse
import logging
import sys
import time

from .midi.bus import MidiBus
from .midi.listeners import StandardMidiListener
from .midi.messages import MidiMessage

logger = logging.getLogger("midibus.monitor")


class ForwardingMonitor(StandardMidiListener):
    """Logs every inbound message and resends it on the bus outputs"""

    def __init__(self, bus: MidiBus, forward: bool = False):
        self.bus = bus
        self.forward = forward
        self.count = 0

    def midi_message(self, message: MidiMessage):
        self.count += 1
        event = message.event
        if event is not None:
            obj = event.to_object(message.timestamp, self.bus.bus_name)
            logger.info("%s %s", event.kind.value, obj)
        else:
            logger.info("%r", message)
        if self.forward:
            self.bus.send(message)


def _device_ref(value: str):
    return int(value) if value.isdigit() else value


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog="midibus", description=__doc__.strip())
    parser.add_argument("--monitor", metavar="IN", help="input device index or name to monitor")
    parser.add_argument("--out", metavar="OUT", help="output device index or name to forward to")
    parser.add_argument("--name", default=None, help="bus name")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(asctime)s [%(levelname)s] %(message)s")

    if args.monitor is None:
        MidiBus.list()
        return 0

    bus = MidiBus(bus_name=args.name)
    if not bus.add_input(_device_ref(args.monitor)):
        bus.close()
        MidiBus.list()
        return 2
    if args.out is not None and not bus.add_output(_device_ref(args.out)):
        bus.close()
        return 2

    monitor = ForwardingMonitor(bus, forward=args.out is not None)
    bus.add_midi_listener(monitor)
    print(f"🎹 {bus} - press Ctrl-C to stop")
    try:
        while True:
            time.sleep(0.1)
    except KeyboardInterrupt:
        pass
    finally:
        bus.close()
        print(f"🛑 {monitor.count} message(s) received")
    return 0


if __name__ == "__main__":
    sys.exit(main())
