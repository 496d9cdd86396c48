"""Protocol definitions for the recorder's collaborators.

These protocols define the contracts that the voice transport, decoders,
sinks and upload gateways must implement, so the session and mixer never
depend on a concrete chat platform, codec or storage service.
"""

from collections.abc import Iterator
from pathlib import Path
from typing import Protocol

import numpy as np
from numpy.typing import NDArray

from voice_recorder.models import Participant, VoiceChannel


class InboundStream(Protocol):
    """Live compressed audio from one participant.

    Iterating yields one compressed packet at a time and blocks until the
    next packet arrives. Iteration ends when the transport ends the stream
    or when close() is called.
    """

    def __iter__(self) -> Iterator[bytes]:
        ...

    def close(self) -> None:
        """End the stream and release transport resources.

        Must be safe to call more than once and from another thread.
        """
        ...


class VoiceTransport(Protocol):
    """Connection to a group voice platform."""

    def connect(self, channel: VoiceChannel) -> None:
        """Join the voice channel so audio can be received.

        Raises:
            Exception: Any transport failure; the recorder rolls back.
        """
        ...

    def disconnect(self, channel: VoiceChannel) -> None:
        """Leave the voice channel. Must be a no-op if not connected."""
        ...

    def members(self, channel: VoiceChannel) -> list[Participant]:
        """Participants currently present in the channel."""
        ...

    def subscribe(self, channel: VoiceChannel, participant_id: str) -> InboundStream:
        """Open the compressed audio stream for one participant."""
        ...


class Decoder(Protocol):
    """Stateful decoder from compressed packets to 16-bit PCM.

    Decoded audio is returned as int16 arrays with shape (frames, channels).
    """

    def decode(self, packet: bytes) -> NDArray[np.int16]:
        """Decode one packet.

        Raises:
            CaptureError: If the packet cannot be decoded.
        """
        ...

    def flush(self) -> NDArray[np.int16]:
        """Return any audio still buffered inside the decoder."""
        ...

    def close(self) -> None:
        """Release codec resources."""
        ...


class SampleSink(Protocol):
    """Exclusively owned destination for one capture's decoded samples."""

    @property
    def path(self) -> Path:
        ...

    @property
    def bytes_written(self) -> int:
        ...

    def write(self, data: NDArray[np.int16]) -> None:
        """Append samples.

        Raises:
            AudioWriteError: If writing fails.
        """
        ...

    def close(self) -> None:
        """Flush and close. Returns only once data is on disk."""
        ...


class ArtifactEncoder(Protocol):
    """Encodes mixed audio into the final artifact file."""

    @property
    def extension(self) -> str:
        ...

    def encode(self, data: NDArray[np.float32], path: Path) -> float:
        """Encode float32 audio of shape (frames, channels) to path.

        Returns:
            Duration of the encoded audio in seconds.

        Raises:
            EncodeFailedError: If the encoder fails.
        """
        ...


class UploadGateway(Protocol):
    """External storage for finished artifacts."""

    def upload(self, path: Path) -> str:
        """Store the file and return a public locator.

        Raises:
            UploadError: If the file cannot be stored.
        """
        ...
