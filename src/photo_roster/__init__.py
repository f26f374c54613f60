"""photo-roster: photo resolution and incremental list loading for roster views."""

__version__ = "0.1.0"
