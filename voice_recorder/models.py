"""Plain data types shared across the recorder."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path


@dataclass(frozen=True)
class Participant:
    """A member of a voice channel.

    Attributes:
        id: Transport-level identity of the speaker.
        name: Display name, used for artifact naming.
        is_bot: Bots are never recorded.
    """

    id: str
    name: str
    is_bot: bool = False


@dataclass(frozen=True)
class VoiceChannel:
    """A voice channel that can be recorded.

    Attributes:
        id: Unique channel identity (registry key).
        name: Channel display name.
        group_name: Name of the server/group the channel belongs to.
    """

    id: str
    name: str
    group_name: str


@dataclass(frozen=True)
class MixInput:
    """One finished raw buffer to be mixed.

    Attributes:
        name: Identifier for this input (for logging).
        path: Raw 16-bit little-endian PCM file.
        start_offset: Frames of silence preceding the track.
        volume: Volume multiplier.
    """

    name: str
    path: Path
    start_offset: int = 0
    volume: float = 1.0


@dataclass(frozen=True)
class MixedArtifact:
    """Encoded mixdown produced by the mixer."""

    path: Path
    duration: float
    participant_names: tuple[str, ...] = ()


class ResultStatus(Enum):
    """Outcome of a start or stop trigger."""

    STARTED = "started"
    ALREADY_ACTIVE = "already_active"
    NO_ACTIVE_SESSION = "no_active_session"
    UPLOADED = "uploaded"
    NOTHING_RECORDED = "nothing_recorded"
    MIX_FAILED = "mix_failed"
    UPLOAD_FAILED = "upload_failed"


@dataclass(frozen=True)
class RecordingResult:
    """User-facing result of a trigger.

    Attributes:
        status: What happened.
        message: The single message to show the user.
        locator: Public location of the uploaded artifact, if any.
        error: Error text for failed outcomes.
    """

    status: ResultStatus
    message: str
    locator: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status in (ResultStatus.STARTED, ResultStatus.UPLOADED)


@dataclass
class CaptureResult:
    """What a closed capture leaves behind."""

    participant: Participant
    path: Path
    bytes_captured: int
    first_packet_at: float | None = None
    errored: bool = False
