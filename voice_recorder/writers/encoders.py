"""Artifact encoders for the mixed track.

AvEncoder encodes through PyAV (FFmpeg) into a compressed container at a
fixed bitrate. SoundFileEncoder writes formats libsndfile supports natively
(WAV, FLAC, OGG/Vorbis) and is handy when an exact sample count matters.
"""

import logging
from pathlib import Path
from typing import TYPE_CHECKING

import av
import numpy as np
import soundfile as sf
from av.error import FFmpegError
from av.logging import Capture
from numpy.typing import NDArray

from voice_recorder.config import AudioConfig, EncoderConfig
from voice_recorder.exceptions import EncodeFailedError

if TYPE_CHECKING:
    from voice_recorder.core.protocols import ArtifactEncoder

logger = logging.getLogger(__name__)

# Samples per channel handed to the encoder per frame
_CHUNK_SAMPLES = 1024


def _to_int16(data: NDArray[np.float32]) -> NDArray[np.int16]:
    return (np.clip(data, -1.0, 1.0) * 32767.0).astype(np.int16)


class AvEncoder:
    """Encodes audio with PyAV into a compressed container.

    Args:
        audio_config: Sample rate and channel count of the mixed audio.
        config: Codec, container and bitrate.
    """

    def __init__(self, audio_config: AudioConfig, config: EncoderConfig) -> None:
        self._audio = audio_config
        self._config = config

    @property
    def extension(self) -> str:
        return self._config.extension

    def encode(self, data: NDArray[np.float32], path: Path) -> float:
        pcm = _to_int16(data)
        try:
            with Capture() as logs:
                with av.open(str(path), mode="w", format=self._config.container_format) as container:
                    stream = container.add_stream(self._config.codec, rate=self._audio.sample_rate)
                    stream.codec_context.layout = self._audio.layout
                    stream.codec_context.bit_rate = self._config.bit_rate

                    pts = 0
                    for start in range(0, pcm.shape[0], _CHUNK_SAMPLES):
                        chunk = pcm[start : start + _CHUNK_SAMPLES]
                        frame = av.AudioFrame.from_ndarray(
                            np.ascontiguousarray(chunk).reshape(1, -1),
                            format="s16",
                            layout=self._audio.layout,
                        )
                        frame.sample_rate = self._audio.sample_rate
                        frame.pts = pts
                        pts += chunk.shape[0]
                        for packet in stream.encode(frame):
                            container.mux(packet)

                    for packet in stream.encode(None):
                        container.mux(packet)
        except (FFmpegError, OSError, ValueError) as e:
            raise EncodeFailedError(f"Failed to encode {path.name}: {e}") from e

        for log in logs:
            logger.debug("av: %s", log)

        duration = pcm.shape[0] / self._audio.sample_rate
        logger.info(
            "Encoded %s (%s, %d bit/s, %.2f seconds)",
            path,
            self._config.codec,
            self._config.bit_rate,
            duration,
        )
        return duration


class SoundFileEncoder:
    """Encodes audio with soundfile (libsndfile)."""

    def __init__(self, audio_config: AudioConfig, config: EncoderConfig) -> None:
        self._audio = audio_config
        self._config = config

    @property
    def extension(self) -> str:
        return self._config.extension

    def encode(self, data: NDArray[np.float32], path: Path) -> float:
        try:
            sf.write(
                path,
                data,
                self._audio.sample_rate,
                subtype=self._config.subtype,
                format=self._config.container_format,
            )
        except (sf.SoundFileError, OSError, ValueError, TypeError) as e:
            raise EncodeFailedError(f"Failed to encode {path.name}: {e}") from e

        duration = data.shape[0] / self._audio.sample_rate
        logger.info("Encoded %s (%s, %.2f seconds)", path, self._config.container_format, duration)
        return duration


def create_encoder(audio_config: AudioConfig, config: EncoderConfig) -> "ArtifactEncoder":
    """Build the encoder selected by config.backend."""
    if config.backend == "soundfile":
        return SoundFileEncoder(audio_config, config)
    return AvEncoder(audio_config, config)
