"""EDITLAB: plan, synthesize, gate, apply, undo."""

from editlab.identity import __version__

__all__ = ["__version__"]
