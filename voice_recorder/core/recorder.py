"""Trigger-facing entry point.

VoiceRecorder is what a command layer calls: start and stop a recording on
a channel, and forward membership changes while a recording runs. Every
call returns a RecordingResult carrying the one message to show the user.
"""

import logging
import time
from collections.abc import Callable

from voice_recorder.config import AudioConfig, RecorderConfig
from voice_recorder.core.mixer import AudioMixer
from voice_recorder.core.protocols import Decoder, UploadGateway, VoiceTransport
from voice_recorder.core.registry import SessionRegistry
from voice_recorder.core.session import RecordingSession, SessionState
from voice_recorder.decoders.opus import OpusDecoder
from voice_recorder.exceptions import (
    AlreadyActiveError,
    NoActiveSessionError,
    SessionError,
)
from voice_recorder.models import Participant, RecordingResult, ResultStatus, VoiceChannel
from voice_recorder.writers.encoders import create_encoder

logger = logging.getLogger(__name__)

STARTED_MESSAGE = "🔴 Recording started!"
ALREADY_ACTIVE_MESSAGE = "A recording is already running in this channel."
NO_ACTIVE_SESSION_MESSAGE = "❌ No active recording in this channel."


class VoiceRecorder:
    """Starts and stops channel recordings.

    Args:
        config: Recorder configuration.
        transport: Voice platform connection.
        uploader: Destination for finished artifacts.
        mixer: Mixer to use (default: built from config).
        decoder_factory: Builds one decoder per capture (default: Opus).
        registry: Session registry (default: a new one).
        clock: Monotonic clock for capture alignment.

    Example:
        recorder = VoiceRecorder(config, transport, LocalDirectoryUploader(archive))
        recorder.start(channel).message   # "🔴 Recording started!"
        recorder.stop(channel).message    # "Recording finished and uploaded: ..."
    """

    def __init__(
        self,
        config: RecorderConfig,
        transport: VoiceTransport,
        uploader: UploadGateway,
        mixer: AudioMixer | None = None,
        decoder_factory: Callable[[AudioConfig], Decoder] = OpusDecoder,
        registry: SessionRegistry | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config
        self._transport = transport
        self._uploader = uploader
        self._mixer = mixer or AudioMixer(
            config.audio,
            create_encoder(config.audio, config.encoder),
            config.policy,
        )
        self._decoder_factory = decoder_factory
        self._registry = registry or SessionRegistry()
        self._clock = clock

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    def _new_session(self, channel: VoiceChannel) -> RecordingSession:
        return RecordingSession(
            channel,
            self._config,
            self._transport,
            self._decoder_factory,
            clock=self._clock,
        )

    def start(self, channel: VoiceChannel) -> RecordingResult:
        """Start recording every non-bot member of the channel.

        Raises:
            SessionError: If the transport cannot join the channel.
        """
        try:
            session = self._registry.begin(channel.id, lambda: self._new_session(channel))
        except AlreadyActiveError:
            logger.info("Recording already active in channel %s", channel.id)
            return RecordingResult(ResultStatus.ALREADY_ACTIVE, ALREADY_ACTIVE_MESSAGE)

        # A stop on this channel waits until setup is over
        try:
            try:
                self._config.recordings_dir.mkdir(parents=True, exist_ok=True)
                self._transport.connect(channel)
                members = self._transport.members(channel)
            except Exception as e:
                self._disconnect(channel)
                self._registry.end(channel.id)
                session.close()
                raise SessionError(f"Could not join channel {channel.name}: {e}") from e

            for member in members:
                session.add_participant(member)
        finally:
            session.mark_ready()

        logger.info(
            "Recording started in %s/%s with %d participants",
            channel.group_name,
            channel.name,
            len(session.captures),
        )
        return RecordingResult(ResultStatus.STARTED, STARTED_MESSAGE)

    def stop(self, channel: VoiceChannel) -> RecordingResult:
        """Stop the channel's recording and deliver the mixed artifact.

        Stopping a channel with no recording, or one already being stopped,
        returns NO_ACTIVE_SESSION and does no work. A stop that arrives while
        start() is still joining the channel waits for it to finish.
        """
        try:
            session = self._registry.get(channel.id)
        except NoActiveSessionError:
            self._disconnect(channel)
            return RecordingResult(ResultStatus.NO_ACTIVE_SESSION, NO_ACTIVE_SESSION_MESSAGE)

        session.wait_ready()
        try:
            result = session.finish(self._mixer, self._uploader)
        except SessionError:
            logger.info("Stop already in progress for channel %s", channel.id)
            return RecordingResult(ResultStatus.NO_ACTIVE_SESSION, NO_ACTIVE_SESSION_MESSAGE)
        except Exception:
            self._release(channel)
            raise

        self._release(channel)
        logger.info("Recording stopped in channel %s: %s", channel.id, result.status.value)
        return result

    def _disconnect(self, channel: VoiceChannel) -> None:
        try:
            self._transport.disconnect(channel)
        except Exception as e:
            logger.warning("Error leaving channel %s: %s", channel.name, e)

    def _release(self, channel: VoiceChannel) -> None:
        try:
            self._disconnect(channel)
        finally:
            self._registry.end(channel.id)

    def participant_joined(self, channel_id: str, participant: Participant) -> None:
        """Start capturing a member who joined a recorded channel."""
        try:
            session = self._registry.get(channel_id)
        except NoActiveSessionError:
            return
        try:
            session.add_participant(participant)
        except SessionError:
            logger.debug("Ignoring join of %s: session is stopping", participant.name)

    def participant_left(self, channel_id: str, participant_id: str) -> None:
        """Stop capturing a member who left a recorded channel."""
        try:
            session = self._registry.get(channel_id)
        except NoActiveSessionError:
            return
        session.remove_participant(participant_id)

    def stop_all(self) -> list[RecordingResult]:
        """Finish every active recording, e.g. on shutdown."""
        results = []
        for channel_id in self._registry.channel_ids():
            try:
                session = self._registry.get(channel_id)
            except NoActiveSessionError:
                continue
            if session.state is SessionState.ACTIVE:
                results.append(self.stop(session.channel))
        return results
