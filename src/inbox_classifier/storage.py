"""Local key-value persistence for API keys and results.

Objective:
    Keep the user's API keys, preferred provider and the last classified
    batch between CLI runs. The core pipeline never touches storage; the CLI
    passes a store explicitly.

Key points:
    - :class:`JsonFileStore` keeps one JSON document on disk and replaces it
      atomically on every write.
    - :class:`MemoryStore` is the in-process equivalent used by tests.
    - Storage failures are logged and reported as ``False``/``None``. They
      never raise, so a broken store cannot fail a classification run.

Operational notes:
    - The store file contains API keys. It is written with mode ``0o600``.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Protocol

from pydantic import ValidationError as PydanticValidationError

from .config import AIProvider
from .models import ClassifiedMessage

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """Minimal key-value store interface."""

    def get(self, key: str) -> Optional[Any]:
        ...

    def put(self, key: str, value: Any) -> bool:
        ...

    def delete(self, key: str) -> bool:
        ...

    def clear(self) -> bool:
        ...


class MemoryStore:
    """Dict-backed store."""

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}

    def get(self, key: str) -> Optional[Any]:
        return self._data.get(key)

    def put(self, key: str, value: Any) -> bool:
        self._data[key] = value
        return True

    def delete(self, key: str) -> bool:
        self._data.pop(key, None)
        return True

    def clear(self) -> bool:
        self._data.clear()
        return True


class JsonFileStore:
    """Store values in a single JSON document on disk.

    Every write reads the current document, applies the change and replaces
    the file through a temporary sibling, so readers never see a partial
    document.
    """

    def __init__(self, path: Path) -> None:
        """Initialize the file store.

        Args:
            path: JSON document location. Created on first write.
        """

        self.path = Path(path)

    def _load(self) -> dict[str, Any]:
        """Read the whole document.

        Returns:
            dict[str, Any]: Stored values; empty if the file does not exist.

        Raises:
            OSError: If the file cannot be read.
            ValueError: If the file is not a JSON object.
        """

        if not self.path.exists():
            return {}

        data = json.loads(self.path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"Store file {self.path} does not contain a JSON object")
        return data

    def _save(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        content = json.dumps(data, indent=2)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        # The document holds API keys: owner read/write only.
        tmp_path.unlink(missing_ok=True)
        fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp_path, self.path)

    def get(self, key: str) -> Optional[Any]:
        try:
            return self._load().get(key)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to read {key} from store: {e}")
            return None

    def put(self, key: str, value: Any) -> bool:
        try:
            data = self._load()
            data[key] = value
            self._save(data)
            return True
        except (OSError, ValueError, TypeError) as e:
            logger.error(f"Failed to save {key} to store: {e}")
            return False

    def delete(self, key: str) -> bool:
        try:
            data = self._load()
            if key in data:
                del data[key]
                self._save(data)
            return True
        except (OSError, ValueError) as e:
            logger.error(f"Failed to remove {key} from store: {e}")
            return False

    def clear(self) -> bool:
        try:
            self._save({})
            return True
        except OSError as e:
            logger.error(f"Failed to clear store: {e}")
            return False


class ResultStore:
    """Typed access to the application keys of a :class:`KeyValueStore`.

    Keys:
        - ``openai_api_key``, ``gemini_api_key``, ``groq_api_key``
        - ``ai_provider``
        - ``classified_emails``
        - ``last_fetch_time``
    """

    AI_PROVIDER = "ai_provider"
    CLASSIFIED_EMAILS = "classified_emails"
    LAST_FETCH_TIME = "last_fetch_time"

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    @staticmethod
    def api_key_name(provider: AIProvider) -> str:
        return f"{AIProvider(provider).value}_api_key"

    def save_api_key(self, provider: AIProvider, api_key: str) -> bool:
        return self.store.put(self.api_key_name(provider), api_key)

    def get_api_key(self, provider: AIProvider) -> Optional[str]:
        value = self.store.get(self.api_key_name(provider))
        return value if isinstance(value, str) and value else None

    def remove_api_key(self, provider: AIProvider) -> bool:
        return self.store.delete(self.api_key_name(provider))

    def save_provider(self, provider: AIProvider) -> bool:
        return self.store.put(self.AI_PROVIDER, AIProvider(provider).value)

    def get_provider(self) -> Optional[AIProvider]:
        """Return the saved provider preference, ignoring unknown values."""

        value = self.store.get(self.AI_PROVIDER)
        try:
            return AIProvider(value) if value else None
        except ValueError:
            logger.warning(f"Ignoring unknown stored provider: {value!r}")
            return None

    def save_classified(self, messages: list[ClassifiedMessage]) -> bool:
        """Persist a classified batch.

        Args:
            messages: Classified messages in display order.

        Returns:
            bool: True if the batch was stored.
        """

        payload = [m.model_dump(mode="json", by_alias=True) for m in messages]
        return self.store.put(self.CLASSIFIED_EMAILS, payload)

    def get_classified(self) -> Optional[list[ClassifiedMessage]]:
        """Load the last classified batch.

        Returns:
            Optional[list[ClassifiedMessage]]: Messages, or None if nothing is
            stored or the stored data is unreadable.
        """

        payload = self.store.get(self.CLASSIFIED_EMAILS)
        if payload is None:
            return None

        try:
            return [ClassifiedMessage.model_validate(item) for item in payload]
        except (PydanticValidationError, TypeError) as e:
            logger.error(f"Stored classified emails are invalid: {e}")
            return None

    def remove_classified(self) -> bool:
        return self.store.delete(self.CLASSIFIED_EMAILS)

    def save_last_fetch_time(self, when: datetime) -> bool:
        return self.store.put(self.LAST_FETCH_TIME, when.isoformat())

    def get_last_fetch_time(self) -> Optional[datetime]:
        value = self.store.get(self.LAST_FETCH_TIME)
        if not isinstance(value, str):
            return None
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            logger.warning(f"Ignoring invalid stored fetch time: {value!r}")
            return None

    def remove_last_fetch_time(self) -> bool:
        return self.store.delete(self.LAST_FETCH_TIME)

    def clear_all(self) -> bool:
        """Remove every application key."""

        return self.store.clear()
