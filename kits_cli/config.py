"""Configuration constants, .env loading, and API key storage.

WHY: Timeouts, the upload ceiling and the polling budget are tuning knobs
that belong in one place, away from the code that obeys them. The API key
is the only persistent state the CLI owns, so its storage lives here too
rather than inside the HTTP layer.

HOW: python-dotenv loads the .env file on import. Constants are plain
module-level values. The API key is exposed through the CredentialSource
protocol: ConfigStore reads a JSON file (with an environment override),
StaticCredential wraps a key passed on the command line. The transport
receives one of these at construction instead of reaching for a global.

RULES:
- API key is loaded from KITS_API_KEY or ~/.kits-cli/config.json, never hardcoded
- KITS_API_KEY in the environment overrides the stored key
- KITS_CONFIG_DIR relocates the config directory (used by tests)
- set/remove never raise on I/O failure; they log and return False
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional, Protocol

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Load .env from the directory the CLI is run from
load_dotenv()

# ---------------------------------------------------------------------------
# API configuration defaults
# ---------------------------------------------------------------------------

KITS_BASE_URL = os.getenv("KITS_BASE_URL", "https://arpeggi.io/api/kits/v1")
API_KEY_ENV_VAR = "KITS_API_KEY"
CONFIG_DIR_ENV_VAR = "KITS_CONFIG_DIR"

METADATA_TIMEOUT_S = 300.0
UPLOAD_TIMEOUT_S = 600.0
CONNECT_TIMEOUT_S = 30.0

MAX_UPLOAD_BYTES = 100 * 1024 * 1024  # 100 MiB

POLL_INTERVAL_S = 5.0
MAX_POLL_ATTEMPTS = 60  # ~5 minutes at the fixed interval

SUPPORTED_AUDIO_FORMATS: set[str] = {".wav", ".mp3", ".flac", ".m4a", ".ogg"}
"""Input extensions accepted by the CLI (lowercase, with dot)."""


def default_config_dir() -> Path:
    """Return the config directory, honouring KITS_CONFIG_DIR."""
    override = os.getenv(CONFIG_DIR_ENV_VAR, "").strip()
    if override:
        return Path(override).expanduser()
    return Path.home() / ".kits-cli"


# ---------------------------------------------------------------------------
# Credential sources
# ---------------------------------------------------------------------------


class CredentialSource(Protocol):
    """Anything that can hand the transport an API key.

    WHY: The transport needs a key but should not know where it lives.
    Passing a small capability object lets tests inject a fake without
    touching the real config file.

    RULES:
    - get_credential returns None (or "") when no key is configured
    - set/remove return True on success
    """

    def get_credential(self) -> Optional[str]: ...

    def set_credential(self, token: str) -> bool: ...

    def remove_credential(self) -> bool: ...


class StaticCredential:
    """A fixed key, e.g. from ``--api-key``. Set/remove are not supported."""

    def __init__(self, token: str) -> None:
        self._token = token.strip()

    def get_credential(self) -> Optional[str]:
        return self._token or None

    def set_credential(self, token: str) -> bool:
        return False

    def remove_credential(self) -> bool:
        return False


class ConfigStore:
    """JSON-file backed key-value config holding the API key.

    WHY: Users run ``kits-cli setup`` once and expect the key to be
    remembered across invocations.

    HOW: Reads and rewrites ``config.json`` in the config directory on
    every call. The file is tiny and only touched by setup, so there is no
    caching. The directory is created lazily on first write.

    RULES:
    - Environment variable KITS_API_KEY wins over the stored apiKey
    - A corrupt or unreadable file is treated as empty (logged at WARNING)
    - Other keys in the file are preserved on write
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = Path(path) if path else default_config_dir() / "config.json"

    def load(self) -> dict:
        """Return the parsed config file, or an empty dict."""
        if not self.path.is_file():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Error reading config file %s: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def save(self, data: dict) -> bool:
        """Write the config dict, creating the directory if needed."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            logger.warning("Error writing config file %s: %s", self.path, e)
            return False
        return True

    def get_credential(self) -> Optional[str]:
        env_key = os.getenv(API_KEY_ENV_VAR, "").strip()
        if env_key:
            return env_key
        stored = self.load().get("apiKey")
        if isinstance(stored, str) and stored.strip():
            return stored.strip()
        return None

    def set_credential(self, token: str) -> bool:
        data = self.load()
        data["apiKey"] = token.strip()
        return self.save(data)

    def remove_credential(self) -> bool:
        data = self.load()
        data.pop("apiKey", None)
        return self.save(data)
