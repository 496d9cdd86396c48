"""Configuration dataclasses for voice recording."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

SAMPLE_WIDTH = 2  # bytes per 16-bit PCM sample


@dataclass(frozen=True)
class AudioConfig:
    """Configuration for decoded audio parameters.

    All captures in a session share the same configuration.

    Attributes:
        sample_rate: Sample rate in Hz (default: 48000, native Opus rate).
        channels: Number of audio channels (default: 2 for stereo).
        frame_duration_ms: Length of one transport packet in milliseconds.
    """

    sample_rate: int = 48000
    channels: int = 2
    frame_duration_ms: int = 20

    def __post_init__(self) -> None:
        if self.sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {self.sample_rate}")
        if self.channels not in (1, 2):
            raise ValueError(f"channels must be 1 or 2, got {self.channels}")
        if self.frame_duration_ms <= 0:
            raise ValueError(f"frame_duration_ms must be positive, got {self.frame_duration_ms}")

    @property
    def frame_size(self) -> int:
        """Samples per channel in one transport packet (960 at 48 kHz / 20 ms)."""
        return self.sample_rate * self.frame_duration_ms // 1000

    @property
    def layout(self) -> str:
        """Channel layout name understood by PyAV."""
        return "stereo" if self.channels == 2 else "mono"

    @property
    def bytes_per_second(self) -> int:
        return self.sample_rate * self.channels * SAMPLE_WIDTH


@dataclass(frozen=True)
class MixPolicy:
    """How independently-started tracks are combined.

    Attributes:
        duration: Which input governs output length. "first" truncates to
            the first input, "longest" pads everything to the longest input,
            "shortest" truncates to the shortest.
        alignment: "session_start" assumes every track starts when the
            session starts. "first_packet" delays each track by the time
            between session start and its first received packet.
        soft_clip: Apply tanh soft clipping to the mixed signal.
    """

    duration: Literal["first", "longest", "shortest"] = "first"
    alignment: Literal["session_start", "first_packet"] = "session_start"
    soft_clip: bool = True

    def __post_init__(self) -> None:
        if self.duration not in ("first", "longest", "shortest"):
            raise ValueError(f"Unknown duration policy: {self.duration!r}")
        if self.alignment not in ("session_start", "first_packet"):
            raise ValueError(f"Unknown alignment policy: {self.alignment!r}")


@dataclass(frozen=True)
class EncoderConfig:
    """Configuration for the mixed artifact encoder.

    Attributes:
        backend: "av" encodes through PyAV/FFmpeg, "soundfile" through libsndfile.
        codec: Codec name for the av backend (e.g. "aac", "libopus").
        container_format: Container for the av backend ("adts", "ogg") or
            major format for soundfile ("WAV", "FLAC", "OGG").
        subtype: soundfile subtype (e.g. "PCM_16", "VORBIS"); ignored by av.
        bit_rate: Target bitrate in bits per second (av backend).
        extension: File extension of the artifact, without the dot.
    """

    backend: Literal["av", "soundfile"] = "av"
    codec: str = "aac"
    container_format: str = "adts"
    subtype: str | None = None
    bit_rate: int = 128_000
    extension: str = "aac"

    def __post_init__(self) -> None:
        if self.backend not in ("av", "soundfile"):
            raise ValueError(f"Unknown encoder backend: {self.backend!r}")
        if self.bit_rate <= 0:
            raise ValueError(f"bit_rate must be positive, got {self.bit_rate}")
        if self.extension.startswith("."):
            object.__setattr__(self, "extension", self.extension[1:])


@dataclass
class RecorderConfig:
    """Configuration for the recorder.

    Attributes:
        recordings_dir: Directory for raw buffers and mixed artifacts.
        audio: Decoded audio parameters shared by every capture.
        policy: Mixdown policy.
        encoder: Artifact encoder configuration.
        grace_period: Seconds to wait for a capture to drain after its
            stream is closed.
    """

    recordings_dir: Path
    audio: AudioConfig = field(default_factory=AudioConfig)
    policy: MixPolicy = field(default_factory=MixPolicy)
    encoder: EncoderConfig = field(default_factory=EncoderConfig)
    grace_period: float = 1.0

    def __post_init__(self) -> None:
        if isinstance(self.recordings_dir, str):
            self.recordings_dir = Path(self.recordings_dir)
        if self.grace_period < 0:
            raise ValueError(f"grace_period must not be negative, got {self.grace_period}")
