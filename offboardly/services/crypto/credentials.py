from __future__ import annotations

from dataclasses import dataclass
import binascii
import json
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from offboardly.core.errors import CredentialDecryptionError
from offboardly.services.crypto.secrets import SecretProvider
from offboardly.services.crypto.utils import b64decode_str, b64encode_bytes


_NONCE_BYTES = 12
_BUNDLE_VERSION = "v1"


@dataclass(frozen=True)
class DirectoryCredentials:
    client_id: str
    tenant_id: str
    client_secret: str | None = None

    def __repr__(self) -> str:
        # Keep secrets out of tracebacks and log lines.
        masked = "***" if self.client_secret else None
        return f"DirectoryCredentials(client_id={self.client_id!r}, tenant_id={self.tenant_id!r}, client_secret={masked!r})"


def _aad(tenant_id: str) -> bytes:
    # Bind ciphertext to its tenant so bundles cannot be swapped across tenants.
    return f"offboardly:credentials:{tenant_id}".encode("utf-8")


class CredentialCipher:
    def __init__(self, secret_provider: SecretProvider) -> None:
        self._secret_provider = secret_provider

    def encrypt(self, credentials: DirectoryCredentials, *, tenant_id: str) -> str:
        payload = json.dumps(
            {
                "clientId": credentials.client_id,
                "tenantId": credentials.tenant_id,
                "clientSecret": credentials.client_secret,
            },
            separators=(",", ":"),
        ).encode("utf-8")
        nonce = os.urandom(_NONCE_BYTES)
        ciphertext = AESGCM(self._secret_provider.get_encryption_key()).encrypt(nonce, payload, _aad(tenant_id))
        return f"{_BUNDLE_VERSION}:{b64encode_bytes(nonce + ciphertext)}"

    def decrypt(self, bundle: str, *, tenant_id: str) -> DirectoryCredentials:
        version, _, body = bundle.partition(":")
        if version != _BUNDLE_VERSION or not body:
            raise CredentialDecryptionError("Stored credentials use an unsupported format")
        try:
            raw = b64decode_str(body)
            nonce, ciphertext = raw[:_NONCE_BYTES], raw[_NONCE_BYTES:]
            plaintext = AESGCM(self._secret_provider.get_encryption_key()).decrypt(
                nonce, ciphertext, _aad(tenant_id)
            )
            data = json.loads(plaintext)
        except (InvalidTag, binascii.Error, ValueError) as exc:
            raise CredentialDecryptionError("Stored credentials could not be decrypted") from exc
        if not isinstance(data, dict):
            raise CredentialDecryptionError("Stored credentials are not a credential bundle")
        client_id = data.get("clientId")
        directory_tenant = data.get("tenantId")
        if not client_id or not directory_tenant:
            raise CredentialDecryptionError("Stored credentials are missing application or tenant id")
        return DirectoryCredentials(
            client_id=str(client_id),
            tenant_id=str(directory_tenant),
            client_secret=data.get("clientSecret") or None,
        )
