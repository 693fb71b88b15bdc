from __future__ import annotations

import hashlib
from typing import Final, Protocol

from offboardly.core.config import Settings
from offboardly.services.crypto.utils import decode_key_material, ensure_32_bytes


class SecretConfigurationError(RuntimeError):
    """Raised when credential encryption key material is missing or invalid."""


class SecretProvider(Protocol):
    provider: str

    def get_encryption_key(self) -> bytes:
        ...


class StaticSecretProvider:
    provider: Final[str] = "static"

    def __init__(self, key: bytes) -> None:
        self._key = ensure_32_bytes(key)

    def get_encryption_key(self) -> bytes:
        return self._key


class SettingsSecretProvider:
    provider: Final[str] = "settings"

    def __init__(self, settings: Settings) -> None:
        self._key = _load_key(settings)

    def get_encryption_key(self) -> bytes:
        return self._key


def _load_key(settings: Settings) -> bytes:
    source = (settings.credential_encryption_key or "").strip()
    if source:
        try:
            return ensure_32_bytes(decode_key_material(source))
        except ValueError as exc:
            raise SecretConfigurationError("CREDENTIAL_ENCRYPTION_KEY must be base64 or hex") from exc
    if settings.credential_encryption_key_required:
        raise SecretConfigurationError("CREDENTIAL_ENCRYPTION_KEY is required")
    # Deterministic fallback for dev/test to avoid breaking local workflows.
    seed = f"{settings.app_name}-credential-key".encode("utf-8")
    return hashlib.sha256(seed).digest()
