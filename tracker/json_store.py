"""JSON-file persistence shared by the registries and the check log."""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Callable

from sslcert.errors import PersistenceFailure

logger = logging.getLogger(__name__)


class JsonListStore:
    """A JSON file holding one list, loaded and rewritten whole.

    One store object per file: its lock serialises loads, saves and
    read-modify-write updates across threads.
    """

    def __init__(self, path: str | Path):
        self._path = Path(path)
        self.lock = threading.RLock()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> list[dict]:
        """Read the list; a missing file is empty, a corrupt one is logged and treated as empty."""
        with self.lock:
            if not self._path.exists():
                return []
            try:
                data = json.loads(self._path.read_text())
            except (json.JSONDecodeError, OSError) as exc:
                logger.warning("Could not read %s: %s", self._path, exc)
                return []
        if not isinstance(data, list):
            logger.warning("Ignoring %s: expected a JSON list", self._path)
            return []
        return data

    def save(self, data: list[dict]) -> None:
        """Atomically replace the file.

        Raises:
            PersistenceFailure: if the directory or file cannot be written.
        """
        with self.lock:
            self._write(data)

    def update(self, change: Callable[[list[dict]], list[dict]]) -> list[dict]:
        """Load, apply ``change`` and save, with no other writer in between."""
        with self.lock:
            data = change(self.load())
            self._write(data)
            return data

    def _write(self, data: list[dict]) -> None:
        tmp_name = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w") as fh:
                fh.write(json.dumps(data, indent=2, default=str))
            os.replace(tmp_name, self._path)
        except OSError as exc:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise PersistenceFailure(f"cannot write {self._path}: {exc}") from exc
