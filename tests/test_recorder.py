import threading

import numpy as np
import pytest

from fakes import (
    FakeTransport,
    PassthroughDecoder,
    RecordingUploader,
    SlowJoinTransport,
    SlowUploader,
    tone_packets,
)
from voice_recorder.config import EncoderConfig, RecorderConfig
from voice_recorder.core.recorder import VoiceRecorder
from voice_recorder.exceptions import SessionError, UploadError
from voice_recorder.models import Participant, ResultStatus, VoiceChannel


def _recorder(config, transport, uploader):
    return VoiceRecorder(config, transport, uploader, decoder_factory=PassthroughDecoder)


def _leftovers(config):
    return list(config.recordings_dir.iterdir()) if config.recordings_dir.exists() else []


def test_start_acknowledges_and_records_members(recorder_config, channel, alice, bob, uploader):
    transport = FakeTransport([alice, bob, Participant("999", "music-bot", is_bot=True)])
    recorder = _recorder(recorder_config, transport, uploader)

    result = recorder.start(channel)

    assert result.status is ResultStatus.STARTED
    assert result.message == "🔴 Recording started!"
    assert transport.connected == ["900"]
    assert transport.subscribed == ["111", "222"]
    recorder.stop(channel)


def test_second_start_is_rejected(recorder_config, channel, alice, uploader):
    recorder = _recorder(recorder_config, FakeTransport([alice]), uploader)
    recorder.start(channel)

    result = recorder.start(channel)

    assert result.status is ResultStatus.ALREADY_ACTIVE
    assert len(recorder.registry) == 1
    recorder.stop(channel)


def test_stop_without_start(recorder_config, channel, uploader):
    transport = FakeTransport()
    recorder = _recorder(recorder_config, transport, uploader)

    result = recorder.stop(channel)

    assert result.status is ResultStatus.NO_ACTIVE_SESSION
    assert result.message == "❌ No active recording in this channel."
    assert uploader.calls == []
    assert _leftovers(recorder_config) == []


def test_two_speakers_mix_to_primary_length(recorder_config, audio_config, channel, alice, bob, uploader):
    transport = FakeTransport([alice, bob])
    recorder = _recorder(recorder_config, transport, uploader)
    recorder.start(channel)
    transport.streams["111"].push(*tone_packets(16384, 5.0, audio_config))
    transport.streams["222"].push(*tone_packets(8192, 3.0, audio_config))

    result = recorder.stop(channel)

    assert result.status is ResultStatus.UPLOADED
    assert result.message.startswith("Recording finished and uploaded: https://files.example.com/")
    assert len(uploader.calls) == 1
    name = uploader.calls[0].name
    assert name.startswith("Guild General alice, bob ") and name.endswith(".wav")

    data, rate = uploader.uploaded[name]
    assert rate == 8000
    assert data.shape == (5 * 8000, 1)
    np.testing.assert_allclose(data[: 3 * 8000], np.tanh(0.375), atol=1e-3)
    np.testing.assert_allclose(data[3 * 8000 :], np.tanh(0.5), atol=1e-3)

    assert _leftovers(recorder_config) == []
    assert channel.id not in recorder.registry
    assert transport.disconnected == ["900"]


def test_nobody_speaks(recorder_config, channel, alice, bob, uploader):
    recorder = _recorder(recorder_config, FakeTransport([alice, bob]), uploader)
    recorder.start(channel)

    result = recorder.stop(channel)

    assert result.status is ResultStatus.NOTHING_RECORDED
    assert result.message == "No audio was recorded. Make sure someone is speaking and not muted!"
    assert uploader.calls == []
    assert _leftovers(recorder_config) == []
    assert channel.id not in recorder.registry


def test_upload_failure_is_reported_and_cleaned_up(recorder_config, audio_config, channel, alice):
    uploader = RecordingUploader(error=UploadError("storage quota exceeded"))
    transport = FakeTransport([alice])
    recorder = _recorder(recorder_config, transport, uploader)
    recorder.start(channel)
    transport.streams["111"].push(*tone_packets(1000, 1.0, audio_config))

    result = recorder.stop(channel)

    assert result.status is ResultStatus.UPLOAD_FAILED
    assert result.message == "Failed to upload recording: storage quota exceeded"
    assert len(uploader.calls) == 1
    assert _leftovers(recorder_config) == []
    assert channel.id not in recorder.registry


def test_unexpected_gateway_exception_is_reported(recorder_config, audio_config, channel, alice):
    uploader = RecordingUploader(error=TimeoutError("gateway timed out"))
    transport = FakeTransport([alice])
    recorder = _recorder(recorder_config, transport, uploader)
    recorder.start(channel)
    transport.streams["111"].push(*tone_packets(1000, 0.2, audio_config))

    result = recorder.stop(channel)

    assert result.status is ResultStatus.UPLOAD_FAILED
    assert result.error == "gateway timed out"


def test_mix_failure_is_reported_and_cleaned_up(tmp_path, audio_config, channel, alice, uploader):
    config = RecorderConfig(
        recordings_dir=tmp_path / "recordings",
        audio=audio_config,
        encoder=EncoderConfig(backend="soundfile", container_format="NOPE", extension="nope"),
    )
    transport = FakeTransport([alice])
    recorder = _recorder(config, transport, uploader)
    recorder.start(channel)
    transport.streams["111"].push(*tone_packets(1000, 0.2, audio_config))

    result = recorder.stop(channel)

    assert result.status is ResultStatus.MIX_FAILED
    assert result.message.startswith("Error mixing the audio")
    assert uploader.calls == []
    assert _leftovers(config) == []
    assert channel.id not in recorder.registry


def test_stop_is_idempotent(recorder_config, audio_config, channel, alice, uploader):
    transport = FakeTransport([alice])
    recorder = _recorder(recorder_config, transport, uploader)
    recorder.start(channel)
    transport.streams["111"].push(*tone_packets(1000, 0.2, audio_config))

    first = recorder.stop(channel)
    second = recorder.stop(channel)

    assert first.status is ResultStatus.UPLOADED
    assert second.status is ResultStatus.NO_ACTIVE_SESSION
    assert len(uploader.calls) == 1


def test_concurrent_stops_deliver_one_result(recorder_config, audio_config, channel, alice, uploader):
    transport = FakeTransport([alice])
    recorder = _recorder(recorder_config, transport, uploader)
    recorder.start(channel)
    transport.streams["111"].push(*tone_packets(1000, 0.2, audio_config))

    barrier = threading.Barrier(4)
    statuses = []
    lock = threading.Lock()

    def stop():
        barrier.wait()
        status = recorder.stop(channel).status
        with lock:
            statuses.append(status)

    threads = [threading.Thread(target=stop) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert statuses.count(ResultStatus.UPLOADED) == 1
    assert statuses.count(ResultStatus.NO_ACTIVE_SESSION) == 3
    assert len(uploader.calls) == 1


def test_restart_after_stop(recorder_config, channel, alice, uploader):
    recorder = _recorder(recorder_config, FakeTransport([alice]), uploader)
    recorder.start(channel)
    recorder.stop(channel)

    assert recorder.start(channel).status is ResultStatus.STARTED
    recorder.stop(channel)


def test_mid_session_join_and_leave(recorder_config, audio_config, channel, alice, bob, uploader):
    transport = FakeTransport([alice])
    recorder = _recorder(recorder_config, transport, uploader)
    recorder.start(channel)
    transport.streams["111"].push(*tone_packets(16384, 1.0, audio_config))

    recorder.participant_joined(channel.id, bob)
    transport.streams["222"].push(*tone_packets(16384, 0.5, audio_config))
    recorder.participant_left(channel.id, bob.id)

    result = recorder.stop(channel)

    assert result.status is ResultStatus.UPLOADED
    assert "alice, bob" in uploader.calls[0].name
    data, _ = uploader.uploaded[uploader.calls[0].name]
    assert data.shape[0] == 8000


def test_membership_events_without_session_are_ignored(recorder_config, channel, alice, uploader):
    transport = FakeTransport()
    recorder = _recorder(recorder_config, transport, uploader)

    recorder.participant_joined(channel.id, alice)
    recorder.participant_left(channel.id, alice.id)

    assert transport.subscribed == []


def test_transport_failure_rolls_back_start(recorder_config, channel, uploader):
    transport = FakeTransport()
    transport.connect_error = ConnectionError("voice gateway unreachable")
    recorder = _recorder(recorder_config, transport, uploader)

    with pytest.raises(SessionError):
        recorder.start(channel)

    assert channel.id not in recorder.registry


def test_stop_all(recorder_config, channel, alice, uploader):
    other = VoiceChannel(id="901", name="Lounge", group_name="Guild")
    recorder = _recorder(recorder_config, FakeTransport([alice]), uploader)
    recorder.start(channel)
    recorder.start(other)

    results = recorder.stop_all()

    assert [r.status for r in results] == [ResultStatus.NOTHING_RECORDED] * 2
    assert len(recorder.registry) == 0


def test_stop_without_start_survives_disconnect_error(recorder_config, channel, uploader):
    transport = FakeTransport()
    transport.disconnect_error = ConnectionError("not connected")
    recorder = _recorder(recorder_config, transport, uploader)

    result = recorder.stop(channel)

    assert result.status is ResultStatus.NO_ACTIVE_SESSION


def test_stop_during_start_waits_for_setup(recorder_config, channel, alice, uploader):
    transport = SlowJoinTransport([alice])
    recorder = _recorder(recorder_config, transport, uploader)
    outcomes = {}

    def run(name, call):
        outcomes[name] = call(channel)

    starter = threading.Thread(target=run, args=("start", recorder.start))
    starter.start()
    assert transport.joining.wait(5.0)
    stopper = threading.Thread(target=run, args=("stop", recorder.stop))
    stopper.start()
    stopper.join(0.2)
    assert stopper.is_alive()

    transport.release.set()
    starter.join(5.0)
    stopper.join(5.0)

    assert outcomes["start"].status is ResultStatus.STARTED
    assert outcomes["stop"].status is ResultStatus.NOTHING_RECORDED
    assert transport.subscribed == ["111"]
    assert transport.disconnected == ["900"]
    assert channel.id not in recorder.registry
    assert _leftovers(recorder_config) == []


def test_start_during_teardown_is_rejected(recorder_config, audio_config, channel, alice):
    uploader = SlowUploader()
    transport = FakeTransport([alice])
    recorder = _recorder(recorder_config, transport, uploader)
    recorder.start(channel)
    transport.streams["111"].push(*tone_packets(1000, 0.2, audio_config))
    stopped = []
    stopper = threading.Thread(target=lambda: stopped.append(recorder.stop(channel)))
    stopper.start()
    assert uploader.uploading.wait(5.0)

    result = recorder.start(channel)
    uploader.release.set()
    stopper.join(5.0)

    assert result.status is ResultStatus.ALREADY_ACTIVE
    assert stopped[0].status is ResultStatus.UPLOADED
    assert len(uploader.calls) == 1
    assert recorder.start(channel).status is ResultStatus.STARTED
    recorder.stop(channel)
