from __future__ import annotations

import pytest

from offboardly.core.config import Settings
from offboardly.core.errors import CredentialDecryptionError, CredentialsNotFound
from offboardly.services.crypto.credentials import CredentialCipher, DirectoryCredentials
from offboardly.services.crypto.secrets import (
    SecretConfigurationError,
    SettingsSecretProvider,
    StaticSecretProvider,
)


def _credentials(secret: str | None = "s3cret") -> DirectoryCredentials:
    return DirectoryCredentials(client_id="app-1", tenant_id="dir-1", client_secret=secret)


def test_bundle_decrypts_for_its_tenant(cipher: CredentialCipher) -> None:
    bundle = cipher.encrypt(_credentials(), tenant_id="tenant-a")
    assert "s3cret" not in bundle
    assert cipher.decrypt(bundle, tenant_id="tenant-a") == _credentials()


def test_bundle_is_bound_to_tenant(cipher: CredentialCipher) -> None:
    # A bundle copied to another tenant's session must not decrypt.
    bundle = cipher.encrypt(_credentials(), tenant_id="tenant-a")
    with pytest.raises(CredentialDecryptionError):
        cipher.decrypt(bundle, tenant_id="tenant-b")


def test_wrong_key_is_reported_as_missing_credentials(cipher: CredentialCipher) -> None:
    bundle = cipher.encrypt(_credentials(), tenant_id="tenant-a")
    other = CredentialCipher(StaticSecretProvider(b"another-key"))
    with pytest.raises(CredentialsNotFound):
        other.decrypt(bundle, tenant_id="tenant-a")


@pytest.mark.parametrize("bundle", ["", "plain-text", "v1:", "v1:not-base64!!", "v2:AAAA"])
def test_malformed_bundles_are_rejected(cipher: CredentialCipher, bundle: str) -> None:
    with pytest.raises(CredentialDecryptionError):
        cipher.decrypt(bundle, tenant_id="tenant-a")


def test_missing_secret_survives_round_trip(cipher: CredentialCipher) -> None:
    bundle = cipher.encrypt(_credentials(secret=None), tenant_id="tenant-a")
    assert cipher.decrypt(bundle, tenant_id="tenant-a").client_secret is None


def test_repr_masks_client_secret() -> None:
    assert "s3cret" not in repr(_credentials())


def test_settings_provider_requires_key_when_configured() -> None:
    settings = Settings(credential_encryption_key=None, credential_encryption_key_required=True)
    with pytest.raises(SecretConfigurationError):
        SettingsSecretProvider(settings)


def test_settings_provider_accepts_hex_key() -> None:
    settings = Settings(credential_encryption_key="00" * 32)
    assert SettingsSecretProvider(settings).get_encryption_key() == bytes(32)


def test_settings_provider_rejects_garbage_key() -> None:
    settings = Settings(credential_encryption_key="not a key!")
    with pytest.raises(SecretConfigurationError):
        SettingsSecretProvider(settings)
