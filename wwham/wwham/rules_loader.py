from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from .config import BUNDLED_DATASET
from .errors import DatasetUnavailable
from .logging_config import get_logger
from .schema import Dataset

logger = get_logger(__name__)


def load_dataset(path: str | Path | None = None) -> Dataset:
    dataset_path = Path(path) if path else BUNDLED_DATASET
    if not dataset_path.exists():
        raise FileNotFoundError(f"dataset not found: {dataset_path}")
    with dataset_path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, list):
        data = {"conditions": data}
    return Dataset(**data)


class DatasetStore:
    """Owns the one-time dataset load.

    ``get()`` is the only way to reach the data and raises
    ``DatasetUnavailable`` until a load has succeeded.
    """

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path) if path else BUNDLED_DATASET
        self._dataset: Optional[Dataset] = None
        self._error: Optional[BaseException] = None

    @classmethod
    def from_dataset(cls, dataset: Dataset) -> "DatasetStore":
        store = cls()
        store._dataset = dataset
        return store

    @property
    def ready(self) -> bool:
        return self._dataset is not None

    def load(self) -> Dataset:
        try:
            self._dataset = load_dataset(self.path)
        except (OSError, json.JSONDecodeError, ValidationError, TypeError) as e:
            self._dataset = None
            self._error = e
            logger.error("dataset_load_failed", path=str(self.path), error_type=type(e).__name__)
            raise DatasetUnavailable(f"Data not loaded: {self.path.name}", cause=e) from e
        self._error = None
        logger.info(
            "dataset_loaded",
            path=str(self.path),
            version=self._dataset.version,
            conditions=len(self._dataset.conditions),
            global_rules=len(self._dataset.global_rules),
        )
        return self._dataset

    def try_load(self) -> bool:
        try:
            self.load()
        except DatasetUnavailable:
            return False
        return True

    def get(self) -> Dataset:
        if self._dataset is None:
            if self._error is not None:
                raise DatasetUnavailable("Data not loaded", cause=self._error)
            raise DatasetUnavailable("Data not loaded")
        return self._dataset
