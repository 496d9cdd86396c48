"""Opus packet decoding using PyAV.

Voice transports deliver one Opus packet per 20 ms frame without any
container around it. Each packet is fed straight into an FFmpeg decoder
context and the output is resampled to packed 16-bit PCM at the
session-wide rate and layout.
"""

import logging

import av
import numpy as np
from av.error import FFmpegError
from numpy.typing import NDArray

from voice_recorder.config import AudioConfig
from voice_recorder.exceptions import CaptureError

logger = logging.getLogger(__name__)


class OpusDecoder:
    """Decodes raw Opus packets into int16 PCM.

    Args:
        config: Target sample rate and channel count.

    Example:
        decoder = OpusDecoder(AudioConfig())
        pcm = decoder.decode(packet)  # shape (960, 2) for a 20 ms stereo frame
        decoder.close()
    """

    def __init__(self, config: AudioConfig) -> None:
        self._config = config
        self._codec: av.AudioCodecContext | None = av.CodecContext.create("opus", "r")
        self._codec.sample_rate = config.sample_rate
        self._codec.layout = config.layout
        self._resampler = av.AudioResampler(
            format="s16",
            layout=config.layout,
            rate=config.sample_rate,
        )

    def _empty(self) -> NDArray[np.int16]:
        return np.zeros((0, self._config.channels), dtype=np.int16)

    def _collect(self, frames: list[av.AudioFrame]) -> NDArray[np.int16]:
        chunks = [
            frame.to_ndarray().reshape(-1, self._config.channels)
            for frame in frames
            if frame.samples
        ]
        if not chunks:
            return self._empty()
        return np.concatenate(chunks, axis=0)

    def decode(self, packet: bytes) -> NDArray[np.int16]:
        if self._codec is None:
            raise CaptureError("Decoder is closed")

        try:
            out: list[av.AudioFrame] = []
            for frame in self._codec.decode(av.Packet(packet)):
                out.extend(self._resampler.resample(frame))
        except (FFmpegError, ValueError) as e:
            raise CaptureError(f"Failed to decode Opus packet: {e}") from e
        return self._collect(out)

    def flush(self) -> NDArray[np.int16]:
        if self._codec is None:
            return self._empty()
        try:
            out: list[av.AudioFrame] = []
            for frame in self._codec.decode(None):
                out.extend(self._resampler.resample(frame))
            out.extend(self._resampler.resample(None))
        except (FFmpegError, ValueError) as e:
            logger.debug("Ignoring decoder flush error: %s", e)
            return self._empty()
        return self._collect(out)

    def close(self) -> None:
        self._codec = None
