"""Time-named snapshots of failing response bodies."""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class SnapshotStore:
    """Writes ``<base>/<monitor_id>/snapshot-<epoch-ms>.html``.

    Returned paths are relative to ``relative_to`` (the data directory)
    so stored references survive moving the data directory.
    """

    def __init__(self, base_dir: str | Path, relative_to: str | Path = None):
        self.base_dir = Path(base_dir)
        self.relative_to = Path(relative_to) if relative_to else self.base_dir.parent

    def save(self, monitor_id: str, body: bytes, now: datetime = None) -> Optional[str]:
        """Store ``body`` (empty when there was no response); None if the write fails."""
        now = now or datetime.now(timezone.utc)
        target_dir = self.base_dir / monitor_id
        path = target_dir / f"snapshot-{int(now.timestamp() * 1000)}.html"
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            path.write_bytes(body or b"")
        except OSError as exc:
            logger.warning("Could not write snapshot for monitor %s: %s", monitor_id, exc)
            return None
        try:
            return path.relative_to(self.relative_to).as_posix()
        except ValueError:
            return path.as_posix()

    def resolve(self, relative_path: str) -> Path:
        return self.relative_to / relative_path
