"""Raw buffer writers and artifact encoders."""

from voice_recorder.writers.encoders import AvEncoder, SoundFileEncoder, create_encoder
from voice_recorder.writers.pcm_writer import PcmFileWriter, read_pcm

__all__ = ["AvEncoder", "PcmFileWriter", "SoundFileEncoder", "create_encoder", "read_pcm"]
