"""voice-dj: a voice-channel music bot with a download cache and skip voting."""

__version__ = "0.1.0"
