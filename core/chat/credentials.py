# Path: core/chat/credentials.py
# Purpose: Load the chat API key from the environment or a local secrets file.
# Layer: core/chat.
# Details: Absence of a key raises MissingCredential so callers can surface it instead of crashing.

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Mapping, Optional

from core.errors import MissingCredential

logger = logging.getLogger(__name__)

SECRETS_KEY = "OpenAIAPIKey"


class CredentialSource:
    """Resolve the API key once per call; environment wins over the secrets file."""

    def __init__(
        self,
        env_var: str = "OPENAI_API_KEY",
        secrets_path: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.env_var = env_var
        self.secrets_path = Path(secrets_path) if secrets_path is not None else None
        self._environ = environ

    def load_api_key(self) -> str:
        """Return the API key or raise :class:`MissingCredential`."""

        environ = os.environ if self._environ is None else self._environ
        key = (environ.get(self.env_var) or "").strip()
        if key:
            return key

        key = self._read_secrets_file()
        if key:
            return key

        logger.error("No API key found in $%s or %s", self.env_var, self.secrets_path)
        raise MissingCredential(f"API key not found. Set {self.env_var} or add {SECRETS_KEY} to the secrets file.")

    def _read_secrets_file(self) -> Optional[str]:
        if self.secrets_path is None or not self.secrets_path.exists():
            return None
        raw = self.secrets_path.read_text(encoding="utf-8").strip()
        if not raw:
            return None
        if self.secrets_path.suffix.lower() == ".json":
            try:
                payload = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning("Secrets file %s is not valid JSON", self.secrets_path)
                return None
            value = payload.get(SECRETS_KEY) if isinstance(payload, dict) else None
            return str(value).strip() if value else None
        return raw


class StaticCredentials:
    """Fixed key, used by tests and by callers that resolve the key themselves."""

    def __init__(self, api_key: Optional[str]) -> None:
        self.api_key = api_key

    def load_api_key(self) -> str:
        if not self.api_key:
            raise MissingCredential("API key not found.")
        return self.api_key
