#!/usr/bin/env python3
"""
Sniper launcher script.

Arguments are passed through to the sniper CLI, e.g.:

    python scripts/run_snipe.py --mint <MINT> --amount 0.2 --profile paper

The paper profile simulates the buy and the exit sell against live prices.
"""

import asyncio
import sys
from pathlib import Path

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from sniper.runner.snipe import main


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nSniper stopped by user.")
        sys.exit(0)
