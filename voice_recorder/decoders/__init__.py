"""Decoders from transport packets to PCM."""

from voice_recorder.decoders.opus import OpusDecoder

__all__ = ["OpusDecoder"]
