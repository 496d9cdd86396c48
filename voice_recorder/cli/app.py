"""Command-line interface for the voice recorder.

Live recording is driven by a chat-platform integration through
VoiceRecorder; this tool covers the offline part of the pipeline: mixing
raw per-participant buffers left on disk into one encoded file.
"""

import argparse
import logging
import sys
from pathlib import Path

from voice_recorder import __version__
from voice_recorder.config import AudioConfig, EncoderConfig, MixPolicy
from voice_recorder.core.mixer import AudioMixer
from voice_recorder.exceptions import NoInputError, VoiceRecorderError
from voice_recorder.models import MixInput
from voice_recorder.writers.encoders import create_encoder


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbosity setting."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="voice-recorder",
        description="Mix raw per-participant voice buffers into one encoded file.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Mix two 48 kHz stereo buffers into AAC, length set by the first
  voice-recorder mix 1111.pcm 2222.pcm -o meeting.aac

  # Keep everything, even past the end of the first buffer
  voice-recorder mix 1111.pcm 2222.pcm -o meeting.aac --duration longest

  # Lossless output through libsndfile
  voice-recorder mix *.pcm -o meeting.flac --backend soundfile --format FLAC
""",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    mix = subparsers.add_parser("mix", help="Mix raw PCM buffers into one file")
    mix.add_argument("inputs", nargs="+", type=Path, metavar="INPUT", help="Raw s16le PCM files")
    mix.add_argument("-o", "--output", type=Path, required=True, help="Output file path")

    audio_group = mix.add_argument_group("Input Format")
    audio_group.add_argument(
        "--sample-rate",
        type=int,
        default=48000,
        metavar="HZ",
        help="Sample rate in Hz (default: 48000)",
    )
    audio_group.add_argument(
        "--channels",
        type=int,
        choices=[1, 2],
        default=2,
        help="Channel count (default: 2)",
    )

    mix_group = mix.add_argument_group("Mixing")
    mix_group.add_argument(
        "--duration",
        choices=["first", "longest", "shortest"],
        default="first",
        help="Which input sets the output length (default: first)",
    )
    mix_group.add_argument(
        "--no-soft-clip",
        action="store_true",
        help="Disable tanh soft clipping",
    )

    output_group = mix.add_argument_group("Output Encoding")
    output_group.add_argument(
        "--backend",
        choices=["av", "soundfile"],
        default="av",
        help="Encoder backend (default: av)",
    )
    output_group.add_argument(
        "--codec",
        default="aac",
        help="Codec for the av backend (default: aac)",
    )
    output_group.add_argument(
        "--format",
        default=None,
        help="Container (av: adts, ogg...) or soundfile format (WAV, FLAC, OGG)",
    )
    output_group.add_argument(
        "--bitrate",
        type=int,
        default=128,
        metavar="KBPS",
        help="Bitrate in kbit/s for the av backend (default: 128)",
    )

    return parser


def build_encoder_config(args: argparse.Namespace) -> EncoderConfig:
    """Build the encoder configuration from arguments."""
    extension = args.output.suffix.lstrip(".") or "aac"
    if args.backend == "soundfile":
        return EncoderConfig(
            backend="soundfile",
            container_format=args.format or extension.upper(),
            extension=extension,
        )
    return EncoderConfig(
        backend="av",
        codec=args.codec,
        container_format=args.format or "adts",
        bit_rate=args.bitrate * 1000,
        extension=extension,
    )


def run_mix(args: argparse.Namespace) -> int:
    logger = logging.getLogger(__name__)

    missing = [path for path in args.inputs if not path.exists()]
    if missing:
        print(f"Error: input not found: {', '.join(map(str, missing))}", file=sys.stderr)
        return 1

    audio = AudioConfig(sample_rate=args.sample_rate, channels=args.channels)
    policy = MixPolicy(duration=args.duration, soft_clip=not args.no_soft_clip)
    mixer = AudioMixer(audio, create_encoder(audio, build_encoder_config(args)), policy)
    inputs = [MixInput(name=path.stem, path=path) for path in args.inputs]

    try:
        artifact = mixer.mix(inputs, args.output)
    except NoInputError:
        logger.warning("All inputs are empty, nothing to mix")
        return 2
    except VoiceRecorderError as e:
        logger.error("Mixing failed: %s", e)
        return 1

    print(f"{artifact.path} ({artifact.duration:.2f} seconds)")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI.

    Returns:
        Exit code (0 for success, 1 for errors, 2 when nothing was mixed).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose)

    try:
        return run_mix(args)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
