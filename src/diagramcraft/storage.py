import json
import logging
import os
import tempfile
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)

ProjectRecord = Dict[str, Any]

DEFAULT_RECORD_KEY = "diagramcraft.projects"


class ProjectStorage(Protocol):
    def load(self) -> Optional[List[ProjectRecord]]:
        ...

    def save(self, records: List[ProjectRecord]) -> None:
        ...


class JsonFileStorage:
    """One JSON file per record key, replaced whole on every save."""

    def __init__(self, base_dir: Path, key: str = DEFAULT_RECORD_KEY) -> None:
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.key = key
        self._record_file = self.base_dir / f"{key}.json"

    @property
    def path(self) -> Path:
        return self._record_file

    def load(self) -> Optional[List[ProjectRecord]]:
        if not self._record_file.exists():
            return None
        with self._record_file.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
        if not isinstance(data, list):
            raise ValueError(f"Stored record {self.key!r} is not a list")
        return data

    def save(self, records: List[ProjectRecord]) -> None:
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.key}.", suffix=".tmp", dir=str(self.base_dir)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(records, handle, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self._record_file)
        except OSError:
            logger.exception("Failed to write %s", self._record_file)
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug("Saved %d project(s) to %s", len(records), self._record_file)


class MemoryStorage:
    """Keeps the serialized record in process; used for ephemeral sessions."""

    def __init__(self, initial: Optional[str] = None) -> None:
        self.raw: Optional[str] = initial
        self.save_count = 0

    def load(self) -> Optional[List[ProjectRecord]]:
        if self.raw is None:
            return None
        data = json.loads(self.raw)
        if not isinstance(data, list):
            raise ValueError("Stored record is not a list")
        return data

    def save(self, records: List[ProjectRecord]) -> None:
        self.raw = json.dumps(deepcopy(records), ensure_ascii=False)
        self.save_count += 1
