from pathlib import Path

import numpy as np
import pytest
import soundfile as sf

from fakes import write_pcm
from voice_recorder.config import EncoderConfig, MixPolicy
from voice_recorder.core.mixer import AudioMixer, mix_tracks
from voice_recorder.exceptions import EncodeFailedError, NoInputError
from voice_recorder.models import MixInput
from voice_recorder.writers.encoders import SoundFileEncoder

RAW = MixPolicy(soft_clip=False)


def _track(level, frames, name="t", offset=0, volume=1.0):
    data = np.full((frames, 1), level, dtype=np.float32)
    return data, MixInput(name=name, path=Path(f"{name}.pcm"), start_offset=offset, volume=volume)


def test_duration_first_truncates_to_first_input():
    mixed = mix_tracks([_track(0.5, 100, "a"), _track(0.25, 300, "b")], RAW, channels=1)

    assert mixed.shape == (100, 1)
    np.testing.assert_allclose(mixed[:, 0], 0.375)


def test_duration_first_pads_shorter_inputs_with_silence():
    mixed = mix_tracks([_track(0.5, 300, "a"), _track(0.25, 100, "b")], RAW, channels=1)

    assert mixed.shape == (300, 1)
    np.testing.assert_allclose(mixed[:100, 0], 0.375)
    np.testing.assert_allclose(mixed[100:, 0], 0.5)


@pytest.mark.parametrize(("duration", "expected"), [("longest", 300), ("shortest", 100)])
def test_other_duration_policies(duration, expected):
    policy = MixPolicy(duration=duration, soft_clip=False)
    mixed = mix_tracks([_track(0.5, 200, "a"), _track(0.5, 300, "b"), _track(0.5, 100, "c")], policy, 1)

    assert mixed.shape[0] == expected


def test_start_offset_delays_track():
    mixed = mix_tracks([_track(0.5, 200, "a"), _track(0.1, 100, "b", offset=50)], RAW, channels=1)

    np.testing.assert_allclose(mixed[:50, 0], 0.5)
    np.testing.assert_allclose(mixed[50:150, 0], 0.3)
    np.testing.assert_allclose(mixed[150:, 0], 0.5)


def test_offset_counts_towards_first_track_span():
    mixed = mix_tracks([_track(0.5, 100, "a", offset=40), _track(0.5, 500, "b")], RAW, channels=1)

    assert mixed.shape[0] == 140


def test_volume_scales_input():
    mixed = mix_tracks([_track(0.8, 10, "a", volume=0.5)], RAW, channels=1)

    np.testing.assert_allclose(mixed[:, 0], 0.4)


def test_soft_clip_keeps_output_in_range():
    mixed = mix_tracks([_track(3.0, 10, "a")], MixPolicy(), channels=1)

    assert np.all(np.abs(mixed) < 1.0)
    np.testing.assert_allclose(mixed[:, 0], np.tanh(3.0), rtol=1e-6)


def test_mix_tracks_without_audio():
    with pytest.raises(NoInputError):
        mix_tracks([], RAW, channels=1)
    with pytest.raises(NoInputError):
        mix_tracks([_track(0.5, 0, "a")], RAW, channels=1)


@pytest.fixture
def mixer(audio_config, wav_encoder_config):
    return AudioMixer(audio_config, SoundFileEncoder(audio_config, wav_encoder_config), RAW)


def test_mix_empty_list_is_no_input(mixer, tmp_path):
    with pytest.raises(NoInputError):
        mixer.mix([], tmp_path / "out.wav")


def test_mix_all_empty_buffers_is_no_input(mixer, tmp_path):
    inputs = [
        MixInput("a", write_pcm(tmp_path / "a.pcm", 1000, 0)),
        MixInput("b", tmp_path / "missing.pcm"),
    ]
    with pytest.raises(NoInputError):
        mixer.mix(inputs, tmp_path / "out.wav")
    assert not (tmp_path / "out.wav").exists()


def test_mix_writes_artifact_following_first_input(mixer, tmp_path):
    inputs = [
        MixInput("empty", write_pcm(tmp_path / "e.pcm", 0, 0)),
        MixInput("alice", write_pcm(tmp_path / "a.pcm", 16384, 4000)),
        MixInput("bob", write_pcm(tmp_path / "b.pcm", 8192, 8000)),
    ]

    artifact = mixer.mix(inputs, tmp_path / "out.wav")

    assert artifact.path == tmp_path / "out.wav"
    assert artifact.duration == pytest.approx(0.5)
    assert artifact.participant_names == ("alice", "bob")
    data, rate = sf.read(artifact.path, dtype="float32")
    assert rate == 8000
    assert data.shape[0] == 4000
    np.testing.assert_allclose(data, 0.375, atol=1e-3)


def test_policy_argument_overrides_default(mixer, tmp_path):
    inputs = [
        MixInput("alice", write_pcm(tmp_path / "a.pcm", 16384, 4000)),
        MixInput("bob", write_pcm(tmp_path / "b.pcm", 8192, 8000)),
    ]

    artifact = mixer.mix(inputs, tmp_path / "out.wav", MixPolicy(duration="longest"))

    assert artifact.duration == pytest.approx(1.0)


def test_encoder_failure_surfaces_as_encode_failed(audio_config, tmp_path):
    broken = SoundFileEncoder(audio_config, EncoderConfig(backend="soundfile", container_format="NOPE"))
    mixer = AudioMixer(audio_config, broken)

    with pytest.raises(EncodeFailedError):
        mixer.mix([MixInput("a", write_pcm(tmp_path / "a.pcm", 1000, 100))], tmp_path / "out.nope")
