"""
Allow running the package as a module: python -m ecobee_telemetry

Usage:
    python -m ecobee_telemetry poll
    python -m ecobee_telemetry convert --data-path ~/Downloads
    python -m ecobee_telemetry --help
"""

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
