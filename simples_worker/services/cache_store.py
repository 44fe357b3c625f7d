from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Mapping
from pathlib import Path

from simples_worker.schemas.job import ResultStatus

logger = logging.getLogger(__name__)

_CACHEABLE = {ResultStatus.YES.value, ResultStatus.NO.value}


class CacheStore:
    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def load(self) -> dict[str, ResultStatus]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            logger.warning("cache unreadable at %s: %s", self.path, exc)
            return {}

        try:
            decoded = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("cache at %s is not valid JSON; starting empty", self.path)
            return {}
        if not isinstance(decoded, dict):
            return {}

        return {
            key: ResultStatus(value)
            for key, value in decoded.items()
            if isinstance(key, str) and isinstance(value, str) and value in _CACHEABLE
        }

    def save(self, entries: Mapping[str, ResultStatus | str]) -> int:
        data: dict[str, str] = {}
        for key, value in entries.items():
            text = value.value if isinstance(value, ResultStatus) else value
            if text in _CACHEABLE:
                data[key] = text

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        return len(data)
