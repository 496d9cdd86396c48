import pytest

from fakes import PassthroughDecoder, RecordingUploader
from voice_recorder.config import AudioConfig, EncoderConfig, RecorderConfig
from voice_recorder.models import Participant, VoiceChannel


@pytest.fixture(autouse=True)
def reset_decoders():
    PassthroughDecoder.instances.clear()
    yield
    PassthroughDecoder.instances.clear()


@pytest.fixture
def audio_config():
    return AudioConfig(sample_rate=8000, channels=1, frame_duration_ms=20)


@pytest.fixture
def wav_encoder_config():
    return EncoderConfig(backend="soundfile", container_format="WAV", subtype="PCM_16", extension="wav")


@pytest.fixture
def recorder_config(tmp_path, audio_config, wav_encoder_config):
    return RecorderConfig(
        recordings_dir=tmp_path / "recordings",
        audio=audio_config,
        encoder=wav_encoder_config,
        grace_period=5.0,
    )


@pytest.fixture
def channel():
    return VoiceChannel(id="900", name="General", group_name="Guild")


@pytest.fixture
def alice():
    return Participant(id="111", name="alice")


@pytest.fixture
def bob():
    return Participant(id="222", name="bob")


@pytest.fixture
def uploader():
    return RecordingUploader()
