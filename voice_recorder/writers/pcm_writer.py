"""Raw PCM buffer files using the soundfile library.

Each participant's decoded audio is persisted as headerless 16-bit
little-endian PCM, so a buffer can be appended to incrementally and read
back by the mixer without any container finalization.
"""

import logging
import os
from pathlib import Path
from typing import Self

import numpy as np
import soundfile as sf
from numpy.typing import NDArray

from voice_recorder.config import SAMPLE_WIDTH, AudioConfig
from voice_recorder.exceptions import AudioWriteError

logger = logging.getLogger(__name__)

_RAW_FORMAT = {"format": "RAW", "subtype": "PCM_16", "endian": "LITTLE"}


class PcmFileWriter:
    """Writes decoded audio to a raw PCM file.

    The file is opened on construction and supports the context manager
    protocol for safe resource handling.

    Args:
        path: Output file path.
        config: Audio configuration (sample rate, channels).

    Example:
        with PcmFileWriter(Path("1234.pcm"), config) as writer:
            writer.write(decoded_chunk)
        # File is flushed and closed
    """

    def __init__(self, path: Path, config: AudioConfig) -> None:
        self._path = path
        self._config = config
        self._frames_written = 0
        try:
            self._file: sf.SoundFile | None = sf.SoundFile(
                self._path,
                mode="w",
                samplerate=config.sample_rate,
                channels=config.channels,
                **_RAW_FORMAT,
            )
        except (sf.SoundFileError, OSError) as e:
            raise AudioWriteError(f"Failed to open {self._path}: {e}") from e
        logger.debug("Opened %s for writing", self._path)

    @property
    def path(self) -> Path:
        """Path to the output file."""
        return self._path

    @property
    def frames_written(self) -> int:
        """Total number of frames written."""
        return self._frames_written

    @property
    def bytes_written(self) -> int:
        return self._frames_written * self._config.channels * SAMPLE_WIDTH

    @property
    def duration(self) -> float:
        """Duration of audio written in seconds."""
        return self._frames_written / self._config.sample_rate

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: Exception | None,
        exc_tb: object,
    ) -> None:
        self.close()

    def write(self, data: NDArray[np.int16]) -> None:
        """Append audio data to the file.

        Args:
            data: Audio data as int16 array with shape (frames, channels).

        Raises:
            AudioWriteError: If writing fails or the file is closed.
        """
        if self._file is None:
            raise AudioWriteError(f"Writer for {self._path} is closed")

        if data.size == 0:
            return

        try:
            self._file.write(data)
            self._frames_written += data.shape[0]
        except sf.SoundFileError as e:
            raise AudioWriteError(f"Failed to write audio data: {e}") from e

    def close(self) -> None:
        """Flush and close the file. Safe to call more than once."""
        if self._file is None:
            return
        try:
            self._file.flush()
            self._file.close()
            logger.debug(
                "Closed %s (%.2f seconds, %d frames)",
                self._path,
                self.duration,
                self._frames_written,
            )
        except sf.SoundFileError as e:
            logger.error("Error closing %s: %s", self._path, e)
        finally:
            self._file = None


def read_pcm(path: Path, config: AudioConfig) -> NDArray[np.float32]:
    """Load a raw PCM buffer as float32 with shape (frames, channels).

    Missing or empty files load as an empty array.
    """
    if not path.exists() or os.path.getsize(path) == 0:
        return np.zeros((0, config.channels), dtype=np.float32)

    data, _ = sf.read(
        path,
        dtype="float32",
        always_2d=True,
        samplerate=config.sample_rate,
        channels=config.channels,
        **_RAW_FORMAT,
    )
    return data
