"""Custom exceptions for the voice recorder."""


class VoiceRecorderError(Exception):
    """Base exception for all voice recorder errors."""


class AlreadyActiveError(VoiceRecorderError):
    """Raised when a recording is started on a channel that already has one."""

    def __init__(self, channel_id: str) -> None:
        self.channel_id = channel_id
        super().__init__(f"A recording is already active in channel '{channel_id}'")


class NoActiveSessionError(VoiceRecorderError):
    """Raised when no recording session exists for a channel."""

    def __init__(self, channel_id: str) -> None:
        self.channel_id = channel_id
        super().__init__(f"No active recording in channel '{channel_id}'")


class SessionError(VoiceRecorderError):
    """Raised when the recording session encounters an error."""


class CaptureError(VoiceRecorderError):
    """Raised when a participant's stream cannot be received or decoded."""


class AudioWriteError(VoiceRecorderError):
    """Raised when writing audio data fails."""


class NoInputError(VoiceRecorderError):
    """Raised when there is no captured audio to mix."""


class EncodeFailedError(VoiceRecorderError):
    """Raised when mixing or encoding the artifact fails."""


class UploadError(VoiceRecorderError):
    """Raised when the upload gateway cannot store an artifact."""
