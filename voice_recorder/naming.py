"""File naming for raw buffers and mixed artifacts."""

from collections.abc import Iterable
from datetime import datetime

from voice_recorder.models import VoiceChannel

TIMESTAMP_FORMAT = "%Y-%m-%d-%H-%M-%S"

_UNSAFE = str.maketrans({"/": "_", "\\": "_", "\0": "_"})


def _safe(text: str) -> str:
    return text.translate(_UNSAFE).strip()


def format_artifact_name(
    channel: VoiceChannel,
    participant_names: Iterable[str],
    started_at: datetime,
    extension: str,
) -> str:
    """Build the artifact file name.

    Format: ``{group} {channel} {name, name, ...} {YYYY-MM-DD-HH-mm-ss}.{ext}``

    Example:
        >>> format_artifact_name(
        ...     VoiceChannel("1", "General", "Guild"), ["ann", "bob"],
        ...     datetime(2024, 3, 5, 9, 7, 1), "aac")
        'Guild General ann, bob 2024-03-05-09-07-01.aac'
    """
    names = ", ".join(_safe(name) for name in participant_names)
    stamp = started_at.strftime(TIMESTAMP_FORMAT)
    return f"{_safe(channel.group_name)} {_safe(channel.name)} {names} {stamp}.{extension}"


def format_buffer_name(participant_id: str, segment: int = 0) -> str:
    """Raw buffer name for a participant; later segments get a numeric suffix."""
    if segment == 0:
        return f"{_safe(participant_id)}.pcm"
    return f"{_safe(participant_id)}.{segment}.pcm"


def format_work_dir_name(channel: VoiceChannel, started_at: datetime) -> str:
    return f"{_safe(channel.id)}-{started_at:%Y%m%d%H%M%S}"
