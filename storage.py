from __future__ import annotations

import json
import logging
import os
import tempfile
from typing import Any, Dict, Optional, Protocol

from errors import StorageError

logger = logging.getLogger(__name__)


class SnapshotStore(Protocol):
    """スナップショット1件を保持する永続化ストアの契約。失敗は StorageError で知らせる"""

    def load(self) -> Optional[Dict[str, Any]]: ...

    def save(self, document: Dict[str, Any]) -> None: ...

    def clear(self) -> None: ...


class MemoryStore:
    """プロセス内だけで保持するストア（テスト・永続化なし運用向け）"""

    def __init__(self, document: Optional[Dict[str, Any]] = None) -> None:
        self._document = json.loads(json.dumps(document)) if document is not None else None

    def load(self) -> Optional[Dict[str, Any]]:
        if self._document is None:
            return None
        return json.loads(json.dumps(self._document))

    def save(self, document: Dict[str, Any]) -> None:
        self._document = json.loads(json.dumps(document))

    def clear(self) -> None:
        self._document = None


class JsonFileStore:
    """スナップショット1件を JSON ファイルに保存する"""

    def __init__(self, path: str) -> None:
        self.path = path

    def load(self) -> Optional[Dict[str, Any]]:
        if not os.path.exists(self.path):
            return None
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as exc:
            raise StorageError(f"Failed to load parking data from {self.path}: {exc}") from exc

    def save(self, document: Dict[str, Any]) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        tmp_path = None
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2)
            os.replace(tmp_path, self.path)
        except (OSError, TypeError, ValueError) as exc:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise StorageError(f"Failed to save parking data to {self.path}: {exc}") from exc
        logger.debug("Saved parking data to %s", self.path)

    def clear(self) -> None:
        try:
            os.remove(self.path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            raise StorageError(f"Failed to remove {self.path}: {exc}") from exc
