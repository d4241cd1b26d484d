"""digital-team: multi-session assistant console with presentation playback."""

__version__ = "0.1.0"
