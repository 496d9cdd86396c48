"""Record every speaker in a voice channel and mix them into one file."""

__version__ = "0.1.0"
