"""Background synchronization engine for a vertical tab panel."""

__version__ = "0.1.0"
