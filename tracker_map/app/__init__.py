"""Application wiring and command-line entry point."""

from .controller import TrackerMapApp

__all__ = ["TrackerMapApp"]
