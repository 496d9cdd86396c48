"""Core recording components."""

from voice_recorder.core.capture import CaptureStatus, ParticipantCapture
from voice_recorder.core.mixer import AudioMixer, mix_tracks
from voice_recorder.core.recorder import VoiceRecorder
from voice_recorder.core.registry import SessionRegistry
from voice_recorder.core.session import RecordingSession, SessionState

__all__ = [
    "AudioMixer",
    "CaptureStatus",
    "ParticipantCapture",
    "RecordingSession",
    "SessionRegistry",
    "SessionState",
    "VoiceRecorder",
    "mix_tracks",
]
