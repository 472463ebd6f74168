"""Version information for objmutex."""

__version__ = "0.3.0"
