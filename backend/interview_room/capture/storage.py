import logging
from pathlib import Path
import time

from core.config import VIDEO_DIR

logger = logging.getLogger("interview_room.capture.storage")


class VideoStorage:
    def __init__(self, root: Path | str = VIDEO_DIR):
        self.root = Path(root)

    def _ensure_root(self) -> None:
        if not self.root.exists():
            self.root.mkdir(parents=True, exist_ok=True)
            logger.info("Created videos directory: %s", self.root)

    def recording_path(self, session_id: str, suffix: str = ".mp4") -> Path:
        """Where the in-progress recording for ``session_id`` is written."""
        self._ensure_root()
        return self.root / f".recording-{session_id}{suffix}"

    def persist(self, recorded: Path, session_id: str) -> Path:
        self._ensure_root()
        recorded = Path(recorded)
        timestamp = int(time.time() * 1000)
        final_path = self.root / f"interview-{session_id}-{timestamp}{recorded.suffix or '.mp4'}"
        recorded.replace(final_path)
        logger.info("Video saved: %s", final_path.name)
        return final_path
