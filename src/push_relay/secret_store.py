"""Credential storage in the system keyring."""

from enum import Enum

import keyring
import structlog
from keyring.errors import KeyringError, PasswordDeleteError

from push_relay.errors import SecretStoreError
from push_relay.models import Credentials

log = structlog.get_logger()

SERVICE_NAME = "push-relay"


class SecretKind(Enum):
    """The two values stored per device."""

    SECRET = "secret"
    DEVICE_ID = "device_id"


class SecretStore:
    """Keyring-backed store for the session secret and device id.

    Values never touch the config file or the log.
    """

    def __init__(self, service_name: str = SERVICE_NAME):
        self.service_name = service_name

    def load(self, kind: SecretKind) -> str | None:
        """Return the stored value, or None if absent."""
        try:
            return keyring.get_password(self.service_name, kind.value)
        except KeyringError as e:
            raise SecretStoreError(f"Unable to read {kind.value} from the keyring: {e}") from e

    def store(self, kind: SecretKind, value: str) -> None:
        """Store (or overwrite) a value."""
        try:
            keyring.set_password(self.service_name, kind.value, value)
        except KeyringError as e:
            raise SecretStoreError(f"Unable to save {kind.value} to the keyring: {e}") from e
        log.info("secret_stored", kind=kind.value)

    def delete(self, kind: SecretKind) -> bool:
        """Delete a value. Returns False if it was not stored."""
        try:
            keyring.delete_password(self.service_name, kind.value)
        except PasswordDeleteError:
            return False
        except KeyringError as e:
            raise SecretStoreError(f"Unable to remove {kind.value} from the keyring: {e}") from e
        log.info("secret_deleted", kind=kind.value)
        return True

    def has_any(self) -> bool:
        """Whether either half of the credentials is stored."""
        return any(self.load(kind) is not None for kind in SecretKind)

    def load_credentials(self) -> Credentials | None:
        """Both stored values as Credentials, or None unless both are present."""
        secret = self.load(SecretKind.SECRET)
        device_id = self.load(SecretKind.DEVICE_ID)
        if secret is None or device_id is None:
            return None
        return Credentials(secret=secret, device_id=device_id)

    def store_credentials(self, credentials: Credentials) -> None:
        """Store both values."""
        self.store(SecretKind.SECRET, credentials.secret)
        self.store(SecretKind.DEVICE_ID, credentials.device_id)

    def delete_credentials(self) -> int:
        """Delete both values. Returns how many were actually removed."""
        return sum(self.delete(kind) for kind in SecretKind)
