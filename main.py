#!/usr/bin/env python3
"""
MidiBus
Device listing and bus monitor entry point
"""

import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'src'))

from midibus.monitor import main

if __name__ == "__main__":
    sys.exit(main())
