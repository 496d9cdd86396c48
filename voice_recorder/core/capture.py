"""Per-participant capture pipeline.

A ParticipantCapture owns one participant's inbound stream, its decoder and
its raw buffer, and runs them on a dedicated worker thread. Captures never
share state, so a stalled or broken stream only affects its own participant.
"""

import logging
import threading
import time
from collections.abc import Callable
from enum import Enum

from voice_recorder.config import AudioConfig
from voice_recorder.core.protocols import Decoder, InboundStream, SampleSink
from voice_recorder.models import CaptureResult, Participant

logger = logging.getLogger(__name__)


class CaptureStatus(Enum):
    OPEN = "open"
    CLOSED = "closed"
    ERRORED = "errored"


class ParticipantCapture:
    """Receives, decodes and buffers one participant's audio.

    Use ParticipantCapture.open() to create a running capture.

    Args:
        participant: The speaker being recorded.
        stream: Compressed audio source, owned by this capture.
        sink: Raw sample buffer, owned by this capture.
        decoder: Codec state, owned by this capture.
        grace_period: Seconds close() waits for in-flight packets to drain.
        clock: Monotonic clock used to timestamp the first packet.

    Example:
        capture = ParticipantCapture.open(participant, stream, sink_factory, decoder_factory)
        ...
        captured = capture.close()
    """

    def __init__(
        self,
        participant: Participant,
        stream: InboundStream,
        sink: SampleSink,
        decoder: Decoder,
        grace_period: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._participant = participant
        self._stream = stream
        self._sink = sink
        self._decoder = decoder
        self._grace_period = grace_period
        self._clock = clock

        self._status = CaptureStatus.OPEN
        self._released = False
        self._first_packet_at: float | None = None
        self._packets = 0
        self._bytes_captured: int | None = None

        # Guards decoder and sink between the worker and close()
        self._lock = threading.Lock()
        self._close_lock = threading.Lock()
        self._thread: threading.Thread | None = None

    @classmethod
    def open(
        cls,
        participant: Participant,
        stream: InboundStream,
        sink_factory: Callable[[Participant], SampleSink],
        decoder_factory: Callable[[AudioConfig], Decoder],
        config: AudioConfig | None = None,
        grace_period: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> "ParticipantCapture":
        """Wire stream -> decoder -> sink and start the worker thread."""
        config = config or AudioConfig()
        sink = sink_factory(participant)
        try:
            decoder = decoder_factory(config)
        except Exception:
            sink.close()
            raise
        capture = cls(participant, stream, sink, decoder, grace_period=grace_period, clock=clock)
        capture.start()
        return capture

    @property
    def participant(self) -> Participant:
        return self._participant

    @property
    def status(self) -> CaptureStatus:
        return self._status

    @property
    def first_packet_at(self) -> float | None:
        """Clock reading when the first packet was decoded, if any."""
        return self._first_packet_at

    @property
    def packets(self) -> int:
        return self._packets

    @property
    def is_closed(self) -> bool:
        return self._bytes_captured is not None

    def start(self) -> None:
        if self._thread is not None:
            logger.warning("Capture for %s already started", self._participant.name)
            return
        self._thread = threading.Thread(
            target=self._run,
            name=f"capture-{self._participant.id}",
            daemon=True,
        )
        self._thread.start()
        logger.info("Started capture for %s (%s)", self._participant.name, self._participant.id)

    def _run(self) -> None:
        """Worker loop: decode every packet until the stream ends."""
        try:
            for packet in self._stream:
                if packet:
                    self._consume(packet)
        except Exception as e:
            self._fail(e)

    def _consume(self, packet: bytes) -> None:
        with self._lock:
            if self._released:
                # Late packet after close; the sink is gone
                return
            samples = self._decoder.decode(packet)
            if self._first_packet_at is None:
                self._first_packet_at = self._clock()
            self._sink.write(samples)
            self._packets += 1

    def _fail(self, error: Exception) -> None:
        logger.warning(
            "Capture for %s failed after %d packets: %s",
            self._participant.name,
            self._packets,
            error,
        )
        with self._lock:
            if self._released:
                return
            try:
                self._release()
            finally:
                self._status = CaptureStatus.ERRORED
        self._close_stream()

    def _release(self) -> None:
        """Close decoder and sink. Caller holds self._lock."""
        if self._released:
            return
        self._released = True
        try:
            self._decoder.close()
        finally:
            self._sink.close()

    def _close_stream(self) -> None:
        try:
            self._stream.close()
        except Exception as e:
            logger.warning("Error closing stream for %s: %s", self._participant.name, e)

    def end_input(self) -> None:
        """Signal end-of-input without waiting for the worker to drain.

        Lets a session signal every capture first and then collect them, so
        the grace periods overlap instead of adding up.
        """
        if self._bytes_captured is None:
            self._close_stream()

    def close(self) -> int:
        """Stop capturing and return the number of bytes captured.

        Ends the inbound stream, waits up to the grace period for packets
        already received to be decoded, flushes the decoder and closes the
        sink. Calling close() again returns the same count.
        """
        with self._close_lock:
            if self._bytes_captured is not None:
                return self._bytes_captured

            self._close_stream()
            if self._thread is not None:
                self._thread.join(timeout=self._grace_period)
                if self._thread.is_alive():
                    logger.warning(
                        "Capture for %s still running after %.1fs grace period",
                        self._participant.name,
                        self._grace_period,
                    )

            with self._lock:
                if not self._released:
                    try:
                        self._sink.write(self._decoder.flush())
                    except Exception as e:
                        logger.warning("Error flushing capture for %s: %s", self._participant.name, e)
                    self._release()
                    self._status = CaptureStatus.CLOSED
                self._bytes_captured = self._sink.bytes_written

            logger.info(
                "Closed capture for %s (%s, %d bytes)",
                self._participant.name,
                self._status.value,
                self._bytes_captured,
            )
            return self._bytes_captured

    def result(self) -> CaptureResult:
        """Summary of a closed capture.

        Raises:
            RuntimeError: If the capture has not been closed.
        """
        if self._bytes_captured is None:
            raise RuntimeError("Capture is still open")
        return CaptureResult(
            participant=self._participant,
            path=self._sink.path,
            bytes_captured=self._bytes_captured,
            first_packet_at=self._first_packet_at,
            errored=self._status is CaptureStatus.ERRORED,
        )
