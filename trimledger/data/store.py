"""
Persistence store contract and two implementations.
"""
import copy
import json
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional, Union

from loguru import logger

from ..config import DATA_DIR


class Store(ABC):
    """Key/value persistence for plain records."""

    @abstractmethod
    def load(self, key: str) -> Optional[Any]:
        """Return the stored value, or None if absent."""
        pass

    @abstractmethod
    def save(self, key: str, value: Any) -> None:
        pass


class MemoryStore(Store):
    """Keeps deep copies so callers can't mutate stored state."""

    def __init__(self):
        self._data: Dict[str, Any] = {}
        self.saves = 0

    def load(self, key: str) -> Optional[Any]:
        if key not in self._data:
            return None
        return copy.deepcopy(self._data[key])

    def save(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)
        self.saves += 1


class JsonFileStore(Store):
    """One JSON document per key under ``directory``."""

    def __init__(self, directory: Union[str, Path] = DATA_DIR):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def __repr__(self) -> str:
        return f"JsonFileStore({self.directory})"

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def load(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None
        with path.open("r", encoding="utf-8") as f:
            return json.load(f)

    def save(self, key: str, value: Any) -> None:
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        with tmp.open("w", encoding="utf-8") as f:
            json.dump(value, f, indent=2)
        os.replace(tmp, path)
        logger.debug(f"Saved {key} to {path}")
