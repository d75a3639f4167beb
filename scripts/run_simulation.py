#!/usr/bin/env python3
"""
Run an SPH fluid simulation from a source checkout.

Usage:
    python scripts/run_simulation.py examples/simConfig.json
    python scripts/run_simulation.py examples/simConfig.json --steps 500 --mode full
    python scripts/run_simulation.py --help
"""

import sys
from pathlib import Path

# Add src to path if running from repository root
src_path = Path(__file__).parent.parent / "src"
if src_path.exists():
    sys.path.insert(0, str(src_path))

from sph_fluid.cli import main


if __name__ == "__main__":
    sys.exit(main())
