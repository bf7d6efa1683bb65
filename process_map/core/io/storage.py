from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Optional, Protocol

from process_map.core.errors import StateLoadError
from process_map.core.io.codec import decode_record, unwrap_record, wrap_record
from process_map.core.model import ProcessState


logger = logging.getLogger(__name__)

STORAGE_KEY = "process-map-storage"
HOME_ENV_VAR = "PROCESS_MAP_HOME"


class KeyValueStorage(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryStorage:
    def __init__(self, initial: Optional[dict[str, str]] = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class JsonFileStorage:
    """One JSON file per key under a home directory.

    Writes go through a temp file and os.replace so a reader never sees a
    partially written record.
    """

    def __init__(self, home: str | Path) -> None:
        self.home = Path(home)

    def path_for(self, key: str) -> Path:
        return self.home / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        p = self.path_for(key)
        if not p.exists():
            return None
        return p.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        self.home.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=str(self.home), prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(value)
            os.replace(tmp, self.path_for(key))
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise


def resolve_home(home: Optional[str] = None) -> Path:
    if home:
        return Path(home).expanduser()
    env = os.getenv(HOME_ENV_VAR)
    if env:
        return Path(env).expanduser()
    return Path.home() / ".process-map"


def load_state(storage: KeyValueStorage, key: str = STORAGE_KEY) -> ProcessState:
    """Restore the persisted snapshot; any failure falls back to the empty state."""
    try:
        text = storage.get(key)
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Could not read persisted state %r: %s", key, e)
        return ProcessState()

    if text is None:
        return ProcessState()

    try:
        doc = json.loads(text)
    except ValueError as e:
        logger.warning("Persisted state %r is not valid JSON, starting empty: %s", key, e)
        return ProcessState()

    state, errors = decode_record(doc, file=key)
    if state is None:
        for err in errors[:5]:
            logger.warning("Discarding persisted state: %s", err)
        return ProcessState()
    return state


def save_state(storage: KeyValueStorage, state: ProcessState, key: str = STORAGE_KEY) -> None:
    storage.set(key, json.dumps(wrap_record(state), indent=2))


def load_state_file(path: str) -> dict[str, Any]:
    """Load a standalone JSON state document.

    Returns the raw {currentView, stakeholders} dict plus "__file__".
    Does not coerce types; validator owns shape checking.
    """

    p = Path(path)
    if not p.exists():
        raise StateLoadError(
            code="E_FILE_NOT_FOUND",
            message="file does not exist",
            file=str(p),
        )

    if p.suffix.lower() != ".json":
        raise StateLoadError(
            code="E_UNSUPPORTED_FORMAT",
            message="supported format is .json",
            file=str(p),
        )

    try:
        raw_text = p.read_text(encoding="utf-8")
    except Exception as e:  # pragma: no cover
        raise StateLoadError(code="E_FILE_READ", message=str(e), file=str(p)) from e

    try:
        data = json.loads(raw_text)
    except Exception as e:
        raise StateLoadError(code="E_JSON_PARSE", message=str(e), file=str(p)) from e

    normalized = dict(unwrap_record(data, file=str(p)))
    normalized["__file__"] = str(p)
    return normalized
