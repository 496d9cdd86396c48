"""Upload gateway that archives artifacts into a local or mounted directory."""

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

from voice_recorder.exceptions import UploadError

logger = logging.getLogger(__name__)


@dataclass
class LocalDirectoryUploader:
    """Copies finished artifacts into target_dir.

    Suitable for a network share or a directory served over HTTP. When
    base_url is set the locator is base_url joined with the file name,
    otherwise it is the file:// URI of the copy.
    """

    target_dir: Path
    base_url: str | None = None

    def upload(self, path: Path) -> str:
        if not path.exists():
            raise UploadError(f"Artifact not found: {path}")

        dest = self.target_dir / path.name
        try:
            self.target_dir.mkdir(parents=True, exist_ok=True)
            shutil.copy2(path, dest)
        except OSError as e:
            raise UploadError(f"Copy failed for {path} -> {dest}: {e}") from e

        logger.info("Copied %s -> %s", path, dest)
        if self.base_url:
            return f"{self.base_url.rstrip('/')}/{dest.name}"
        return dest.resolve().as_uri()
