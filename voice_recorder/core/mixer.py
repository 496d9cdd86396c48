"""Audio mixing functionality.

This module combines per-participant raw buffers of differing length and
start offset into a single track, averaging overlapping inputs and applying
soft clipping to prevent distortion, then hands the result to an encoder.
"""

import logging
from pathlib import Path

import numpy as np
import soundfile as sf
from numpy.typing import NDArray

from voice_recorder.config import AudioConfig, MixPolicy
from voice_recorder.core.protocols import ArtifactEncoder
from voice_recorder.exceptions import EncodeFailedError, NoInputError
from voice_recorder.models import MixedArtifact, MixInput
from voice_recorder.writers.pcm_writer import read_pcm

logger = logging.getLogger(__name__)


def _output_frames(spans: list[int], policy: MixPolicy) -> int:
    if policy.duration == "first":
        return spans[0]
    if policy.duration == "shortest":
        return min(spans)
    return max(spans)


def mix_tracks(
    tracks: list[tuple[NDArray[np.float32], MixInput]],
    policy: MixPolicy,
    channels: int,
) -> NDArray[np.float32]:
    """Mix decoded tracks into one signal.

    Each track starts at its input's start_offset. At every output frame the
    active tracks are summed and divided by the number of tracks active at
    that frame, so a lone speaker keeps their level and overlapping speakers
    are averaged. Frames beyond a track's end count as silence.

    Args:
        tracks: List of (audio_data, mix_input) tuples in mix order. The
            first entry is the reference track for duration="first".
        policy: Duration and clipping policy.
        channels: Channel count of every track.

    Returns:
        Mixed audio as float32 with shape (frames, channels).

    Raises:
        NoInputError: If every track is empty.
    """
    active_tracks = [(data, config) for data, config in tracks if data is not None and len(data) > 0]
    if not active_tracks:
        raise NoInputError("No captured audio to mix")

    spans = [config.start_offset + data.shape[0] for data, config in active_tracks]
    total = _output_frames(spans, policy)

    mixed = np.zeros((total, channels), dtype=np.float32)
    coverage = np.zeros(total, dtype=np.float32)

    for data, config in active_tracks:
        start = min(config.start_offset, total)
        end = min(config.start_offset + data.shape[0], total)
        if end <= start:
            logger.debug("Input %s lies beyond the output duration", config.name)
            continue
        mixed[start:end] += data[: end - start] * config.volume
        coverage[start:end] += 1.0

    # Average only over the inputs present at each frame
    mixed /= np.maximum(coverage, 1.0)[:, np.newaxis]

    if policy.soft_clip:
        return _soft_clip(mixed)
    return mixed


def _soft_clip(data: NDArray[np.float32]) -> NDArray[np.float32]:
    """Apply soft clipping using tanh to prevent harsh distortion."""
    return np.tanh(data).astype(np.float32)


class AudioMixer:
    """Mixes finished participant buffers into one encoded artifact.

    Args:
        config: Audio parameters shared by every input.
        encoder: Encoder for the mixed track.
        policy: Default mixdown policy.

    Example:
        mixer = AudioMixer(AudioConfig(), AvEncoder(AudioConfig(), EncoderConfig()))
        artifact = mixer.mix(
            [MixInput("ann", Path("1.pcm")), MixInput("bob", Path("2.pcm"))],
            Path("out.aac"),
        )
    """

    def __init__(
        self,
        config: AudioConfig,
        encoder: ArtifactEncoder,
        policy: MixPolicy | None = None,
    ) -> None:
        self._config = config
        self._encoder = encoder
        self._policy = policy or MixPolicy()

    @property
    def extension(self) -> str:
        """File extension of the artifacts this mixer produces."""
        return self._encoder.extension

    def mix(
        self,
        inputs: list[MixInput],
        output_path: Path,
        policy: MixPolicy | None = None,
    ) -> MixedArtifact:
        """Load, mix and encode the inputs.

        Args:
            inputs: Raw buffers in mix order; zero-length buffers are skipped.
            output_path: Where to write the artifact.
            policy: Overrides the mixer's default policy.

        Returns:
            The encoded artifact.

        Raises:
            NoInputError: If no input holds any audio.
            EncodeFailedError: If reading the buffers or encoding fails.
        """
        policy = policy or self._policy

        tracks: list[tuple[NDArray[np.float32], MixInput]] = []
        for mix_input in inputs:
            try:
                data = read_pcm(mix_input.path, self._config)
            except (OSError, RuntimeError, sf.SoundFileError) as e:
                raise EncodeFailedError(f"Failed to read {mix_input.path}: {e}") from e
            if data.shape[0] == 0:
                logger.info("Skipping empty input %s", mix_input.name)
                continue
            tracks.append((data, mix_input))

        if not tracks:
            raise NoInputError("No captured audio to mix")

        logger.info(
            "Mixing %d inputs (duration=%s, alignment=%s)",
            len(tracks),
            policy.duration,
            policy.alignment,
        )
        mixed = mix_tracks(tracks, policy, self._config.channels)
        duration = self._encoder.encode(mixed, output_path)

        return MixedArtifact(
            path=output_path,
            duration=duration,
            participant_names=tuple(config.name for _, config in tracks),
        )
