"""
Ground truth loaders keyed by dataset identifier.
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, List, Union

logger = logging.getLogger(__name__)


def read_jsonl(path: Union[str, Path], field: str) -> List[Any]:
    """Read one value per non-blank JSONL line.

    Objects contribute their `field` entry; any other JSON value is used as-is.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Dataset file not found: {path}")

    entries: List[Any] = []

    with open(path, 'r', encoding='utf-8') as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue

            try:
                data = json.loads(line)
                if isinstance(data, dict):
                    data = data[field]
                entries.append(data)
            except (json.JSONDecodeError, KeyError) as e:
                raise ValueError(
                    f"Error parsing line {line_num} in {path}: {e}"
                ) from e

    logger.info(f"Loaded {len(entries)} entries from {path}")
    return entries


class DatasetLoader(ABC):
    """Resolves ground truth for a dataset identifier."""

    @abstractmethod
    def load(self, dataset_id: str) -> List[Any]:
        """Return ground truth entries in sample order."""
        pass


class JsonlDatasetLoader(DatasetLoader):
    """Loads ground truth from <base_dir>/<dataset_id>.jsonl."""

    def __init__(self, base_dir: Union[str, Path], field: str = "target"):
        self.base_dir = Path(base_dir)
        self.field = field
        logger.info(f"Initialized JSONL dataset loader at {self.base_dir} (field='{field}')")

    def path_for(self, dataset_id: str) -> Path:
        return self.base_dir / f"{dataset_id}.jsonl"

    def load(self, dataset_id: str) -> List[Any]:
        path = self.path_for(dataset_id)
        logger.info(f"Loading ground truth for '{dataset_id}' from {path}")
        return read_jsonl(path, self.field)
