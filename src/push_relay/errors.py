"""Error taxonomy for the relay.

Every failure the session loop can report is one of these classes, so the
supervisor classifies with a plain pattern match instead of inspecting
foreign exception types.
"""


class RelayError(Exception):
    """Base class for all relay errors."""


class ReadTimeout(RelayError):
    """No frame arrived within the read wait. Expected while idle."""


class TransportError(RelayError):
    """I/O-level failure on the streaming transport (refused, reset, closed)."""


class RecoverableProtocolError(RelayError):
    """Server sent an error frame; reconnect with the same credentials."""


class FatalProtocolError(RelayError):
    """Server aborted the session; the device must be registered again."""


class ApiError(RelayError):
    """Non-success response (or network failure) from the HTTP API."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class FetchError(ApiError):
    """Icon download did not return success."""


class TwoFactorRequired(ApiError):
    """Login needs a two-factor code (HTTP 412)."""


class CacheWriteError(RelayError):
    """Icon bytes could not be persisted to the cache directory."""


class SecretStoreError(RelayError):
    """The system keyring could not be read or written."""
