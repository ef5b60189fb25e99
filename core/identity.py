# Path: core/identity.py
# Purpose: Provide the per-install device identity used to namespace stored solutions.
# Layer: core.
# Details: Constructed once by the entry point and injected; unknown identities disable persistence.

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

UNKNOWN_PREFIX = "unknown-"


@dataclass(frozen=True)
class DeviceIdentity:
    """Identifier of this installation."""

    device_id: str

    @property
    def is_known(self) -> bool:
        return bool(self.device_id) and not self.device_id.startswith(UNKNOWN_PREFIX)

    @classmethod
    def unknown(cls) -> "DeviceIdentity":
        return cls(f"{UNKNOWN_PREFIX}{uuid.uuid4()}")

    @classmethod
    def load_or_create(cls, path: Path | str) -> "DeviceIdentity":
        """Read the id stored at ``path``, creating it on first run.

        If the file can neither be read nor written a fallback ``unknown-`` id
        is returned so the app keeps working without persistence.
        """

        target = Path(path)
        try:
            if target.exists():
                stored = target.read_text(encoding="utf-8").strip()
                if stored:
                    return cls(stored)
            device_id = str(uuid.uuid4()).upper()
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(device_id, encoding="utf-8")
            logger.info("Device ID initialized: %s", device_id)
            return cls(device_id)
        except OSError as exc:
            fallback = cls.unknown()
            logger.warning("Could not read or store device id at %s (%s); using %s", target, exc, fallback.device_id)
            return fallback
