"""Recording session orchestration.

This module provides the RecordingSession class that owns every
participant capture for one voice channel and drives the
Active -> Draining -> Closed lifecycle, including mixdown, upload and
cleanup of every temporary file.
"""

import logging
import shutil
import threading
import time
from collections.abc import Callable
from datetime import datetime
from enum import Enum
from pathlib import Path

from voice_recorder.config import AudioConfig, RecorderConfig
from voice_recorder.core.capture import CaptureStatus, ParticipantCapture
from voice_recorder.core.mixer import AudioMixer
from voice_recorder.core.protocols import Decoder, UploadGateway, VoiceTransport
from voice_recorder.exceptions import EncodeFailedError, NoInputError, SessionError
from voice_recorder.models import (
    CaptureResult,
    MixInput,
    Participant,
    RecordingResult,
    ResultStatus,
    VoiceChannel,
)
from voice_recorder.naming import format_artifact_name, format_buffer_name, format_work_dir_name
from voice_recorder.writers.pcm_writer import PcmFileWriter

logger = logging.getLogger(__name__)

NOTHING_RECORDED_MESSAGE = "No audio was recorded. Make sure someone is speaking and not muted!"


class SessionState(Enum):
    ACTIVE = "active"
    DRAINING = "draining"
    CLOSED = "closed"


class RecordingSession:
    """Orchestrates the recording of one voice channel.

    Captures may be added and removed while the session is ACTIVE. finish()
    drains every capture, mixes the buffers that hold audio, uploads the
    artifact and always ends CLOSED with its temporary files deleted.

    Args:
        channel: The channel being recorded.
        config: Recorder configuration.
        transport: Source of per-participant audio streams.
        decoder_factory: Builds one decoder per capture.
        started_at: Wall-clock start, used for naming (default: now).
        clock: Monotonic clock shared with the captures for alignment.

    Example:
        session = RecordingSession(channel, config, transport, OpusDecoder)
        for member in transport.members(channel):
            session.add_participant(member)
        ...
        result = session.finish(mixer, uploader)
    """

    def __init__(
        self,
        channel: VoiceChannel,
        config: RecorderConfig,
        transport: VoiceTransport,
        decoder_factory: Callable[[AudioConfig], Decoder],
        started_at: datetime | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._channel = channel
        self._config = config
        self._transport = transport
        self._decoder_factory = decoder_factory
        self._started_at = started_at or datetime.now()
        self._clock = clock
        self._started_monotonic = clock()

        self._state = SessionState.ACTIVE
        self._captures: dict[str, ParticipantCapture] = {}
        self._history: list[ParticipantCapture] = []
        self._segments: dict[str, int] = {}
        self._lock = threading.Lock()
        # Set once the starter has finished joining the channel
        self._ready = threading.Event()

        self._work_dir = config.recordings_dir / format_work_dir_name(channel, self._started_at)

    @property
    def channel(self) -> VoiceChannel:
        return self._channel

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def started_at(self) -> datetime:
        return self._started_at

    @property
    def work_dir(self) -> Path:
        """Directory holding this session's raw buffers."""
        return self._work_dir

    @property
    def captures(self) -> dict[str, ParticipantCapture]:
        """Currently open captures by participant id."""
        with self._lock:
            return dict(self._captures)

    @property
    def participant_names(self) -> list[str]:
        """Names of everyone recorded so far, in join order."""
        with self._lock:
            names = [capture.participant.name for capture in self._history]
        return list(dict.fromkeys(names))

    def mark_ready(self) -> None:
        """Signal that setup is over, whether or not it succeeded."""
        self._ready.set()

    def wait_ready(self, timeout: float | None = None) -> bool:
        """Block until mark_ready() has been called.

        Returns:
            False if the timeout expired first.
        """
        return self._ready.wait(timeout)

    def _sink_factory(self, segment: int) -> Callable[[Participant], PcmFileWriter]:
        def factory(participant: Participant) -> PcmFileWriter:
            path = self._work_dir / format_buffer_name(participant.id, segment)
            return PcmFileWriter(path, self._config.audio)

        return factory

    def add_participant(self, participant: Participant) -> ParticipantCapture | None:
        """Start capturing a participant.

        Bots are ignored. A participant who already has an open capture keeps
        it; one who rejoins after leaving gets a new capture segment.

        Returns:
            The participant's capture, or None if none could be opened.

        Raises:
            SessionError: If the session is no longer ACTIVE.
        """
        if participant.is_bot:
            return None

        with self._lock:
            if self._state is not SessionState.ACTIVE:
                raise SessionError(
                    f"Cannot add {participant.name}: session for {self._channel.id} is "
                    f"{self._state.value}"
                )

            existing = self._captures.get(participant.id)
            if existing is not None and existing.status is CaptureStatus.OPEN:
                return existing

            segment = self._segments.get(participant.id, 0)
            try:
                self._work_dir.mkdir(parents=True, exist_ok=True)
                stream = self._transport.subscribe(self._channel, participant.id)
            except Exception as e:
                logger.warning("Could not subscribe to %s: %s", participant.name, e)
                return None

            try:
                capture = ParticipantCapture.open(
                    participant,
                    stream,
                    sink_factory=self._sink_factory(segment),
                    decoder_factory=self._decoder_factory,
                    config=self._config.audio,
                    grace_period=self._config.grace_period,
                    clock=self._clock,
                )
            except Exception as e:
                logger.warning("Could not open capture for %s: %s", participant.name, e)
                stream.close()
                return None

            self._segments[participant.id] = segment + 1
            self._captures[participant.id] = capture
            self._history.append(capture)
        return capture

    def remove_participant(self, participant_id: str) -> int | None:
        """Stop capturing a participant who left. Their audio is kept.

        Returns:
            Bytes captured, or None if the participant had no open capture.
        """
        with self._lock:
            capture = self._captures.pop(participant_id, None)
        if capture is None:
            return None
        return capture.close()

    def drain(self) -> list[CaptureResult]:
        """Move to DRAINING and close every capture.

        Returns:
            One result per capture, in join order.

        Raises:
            SessionError: If the session is not ACTIVE.
        """
        with self._lock:
            if self._state is not SessionState.ACTIVE:
                raise SessionError(f"Session for {self._channel.id} is {self._state.value}")
            self._state = SessionState.DRAINING
            captures = list(self._history)
            self._captures.clear()

        logger.info("Draining %d captures for channel %s", len(captures), self._channel.id)
        for capture in captures:
            capture.end_input()
        for capture in captures:
            capture.close()
        return [capture.result() for capture in captures]

    def mix_inputs(self, results: list[CaptureResult]) -> list[MixInput]:
        """Build mixer inputs from captures that recorded audio."""
        inputs = []
        for result in results:
            if result.bytes_captured == 0:
                logger.info("Excluding %s: nothing captured", result.participant.name)
                continue
            inputs.append(
                MixInput(
                    name=result.participant.name,
                    path=result.path,
                    start_offset=self._start_offset(result),
                )
            )
        return inputs

    def _start_offset(self, result: CaptureResult) -> int:
        if self._config.policy.alignment != "first_packet" or result.first_packet_at is None:
            return 0
        delay = max(0.0, result.first_packet_at - self._started_monotonic)
        return round(delay * self._config.audio.sample_rate)

    def finish(self, mixer: AudioMixer, uploader: UploadGateway) -> RecordingResult:
        """Drain, mix, upload and close the session.

        Returns:
            Exactly one result describing the outcome.

        Raises:
            SessionError: If the session is not ACTIVE (another stop owns it).
        """
        results = self.drain()
        artifact_path: Path | None = None
        try:
            inputs = self.mix_inputs(results)
            if not inputs:
                logger.info("Nothing recorded in channel %s", self._channel.id)
                return RecordingResult(ResultStatus.NOTHING_RECORDED, NOTHING_RECORDED_MESSAGE)

            artifact_path = self._config.recordings_dir / format_artifact_name(
                self._channel,
                self.participant_names,
                self._started_at,
                mixer.extension,
            )
            try:
                artifact = mixer.mix(inputs, artifact_path, self._config.policy)
            except NoInputError:
                return RecordingResult(ResultStatus.NOTHING_RECORDED, NOTHING_RECORDED_MESSAGE)
            except EncodeFailedError as e:
                logger.error("Mixing failed for channel %s: %s", self._channel.id, e)
                return RecordingResult(
                    ResultStatus.MIX_FAILED,
                    f"Error mixing the audio: {e}",
                    error=str(e),
                )
            except Exception as e:
                logger.exception("Unexpected mixing error for channel %s", self._channel.id)
                return RecordingResult(
                    ResultStatus.MIX_FAILED,
                    f"Error mixing the audio: {e}",
                    error=str(e),
                )

            try:
                locator = uploader.upload(artifact.path)
            except Exception as e:
                logger.error("Upload failed for %s: %s", artifact.path.name, e)
                return RecordingResult(
                    ResultStatus.UPLOAD_FAILED,
                    f"Failed to upload recording: {e}",
                    error=str(e),
                )

            logger.info("Uploaded %s to %s", artifact.path.name, locator)
            return RecordingResult(
                ResultStatus.UPLOADED,
                f"Recording finished and uploaded: {locator}",
                locator=locator,
            )
        finally:
            self._cleanup(artifact_path)
            self._state = SessionState.CLOSED

    def close(self) -> None:
        """Abort: release every capture and delete temporary files without mixing."""
        try:
            self.drain()
        except SessionError:
            # Closed already, or a concurrent finish() owns the cleanup
            return
        self._cleanup(None)
        self._state = SessionState.CLOSED

    def _cleanup(self, artifact_path: Path | None) -> None:
        if artifact_path is not None:
            try:
                artifact_path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning("Could not delete %s: %s", artifact_path, e)
        if self._work_dir.exists():
            try:
                shutil.rmtree(self._work_dir)
            except OSError as e:
                logger.warning("Could not delete %s: %s", self._work_dir, e)
