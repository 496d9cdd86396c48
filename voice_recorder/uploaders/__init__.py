"""Upload gateway implementations."""

from voice_recorder.uploaders.local import LocalDirectoryUploader

__all__ = ["LocalDirectoryUploader"]
