"""Response Cache - reuse generated messages for an unchanged staged diff."""

import hashlib
import json
import logging
import time
from pathlib import Path
from typing import Callable

from aicommit.prompts import GenerateOptions

logger = logging.getLogger(__name__)

DEFAULT_CACHE_DIR = Path.home() / ".aicommit" / "cache"
DEFAULT_TTL = 24 * 60 * 60


class ResponseCache:
    """Commit message candidates, one JSON file per diff.

    Entries are keyed by a SHA-256 of the diff together with the options
    that change the answer (count, format, language, hint...), and expire
    after `ttl` seconds. Files are mirrored in memory for the process
    lifetime. An unreadable or unwritable cache is logged and acts as a miss.
    """

    def __init__(self, directory: str | Path | None = None, ttl: int = DEFAULT_TTL,
                 clock: Callable[[], float] = time.time):
        self.directory = Path(directory).expanduser() if directory else DEFAULT_CACHE_DIR
        self.ttl = ttl
        self._clock = clock
        self._memory: dict[str, dict] = {}

    @staticmethod
    def make_key(diff: str, options: GenerateOptions) -> str:
        material = {
            "diff": diff,
            "count": options.count,
            "conventional": options.conventional,
            "language": options.language,
            "model": options.model,
            "type": options.forced_type,
            "hint": options.hint,
            "max_length": options.max_length,
        }
        encoded = json.dumps(material, sort_keys=True).encode("utf-8")
        return hashlib.sha256(encoded).hexdigest()

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, diff: str, options: GenerateOptions) -> list[str] | None:
        key = self.make_key(diff, options)
        entry = self._memory.get(key) or self._read(key)
        if entry is None:
            return None

        timestamp = entry.get("timestamp")
        messages = entry.get("messages")
        if not isinstance(timestamp, (int, float)) or self._clock() - timestamp >= self.ttl:
            self._forget(key)
            return None
        if not isinstance(messages, list) or not messages or not all(isinstance(m, str) for m in messages):
            self._forget(key)
            return None

        self._memory[key] = entry
        return list(messages)

    def set(self, diff: str, options: GenerateOptions, messages: list[str]) -> None:
        if not messages:
            return
        key = self.make_key(diff, options)
        entry = {"timestamp": self._clock(), "messages": list(messages)}
        self._memory[key] = entry
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            self._path(key).write_text(json.dumps(entry), encoding="utf-8")
        except OSError as e:
            logger.warning("Could not write cache entry %s: %s", key[:12], e)

    def clear(self) -> int:
        """Delete every entry. Returns how many files were removed."""
        self._memory.clear()
        removed = 0
        if not self.directory.is_dir():
            return removed
        for path in self.directory.glob("*.json"):
            try:
                path.unlink()
            except OSError as e:
                logger.warning("Could not remove %s: %s", path, e)
            else:
                removed += 1
        return removed

    def _read(self, key: str) -> dict | None:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            with open(path, 'r', encoding='utf-8') as f:
                entry = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable cache entry %s: %s", path, e)
            return None
        return entry if isinstance(entry, dict) else None

    def _forget(self, key: str) -> None:
        self._memory.pop(key, None)
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            logger.debug("Could not remove stale cache entry %s: %s", key[:12], e)
