"""Allow ``python -m tracker_map`` to launch the client."""

from __future__ import annotations

import sys

from tracker_map.app.main import run

if __name__ == "__main__":
    sys.exit(run())
