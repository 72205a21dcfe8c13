"""TelegraDB exception classes."""

class TelegraDBError(Exception):
    """Base exception for all TelegraDB errors."""
    pass


class NetworkError(TelegraDBError):
    """Raised when network operations fail."""
    pass


class APIError(TelegraDBError):
    """Raised when the remote service rejects a request."""

    def __init__(self, message: str, code: str = None):
        super().__init__(message)
        self.code = code


class AuthenticationError(APIError):
    """Raised when the access token is rejected."""
    pass


class ValidationError(TelegraDBError):
    """Raised when input validation fails."""
    pass


class LockError(TelegraDBError):
    """Raised when lock operations fail."""
    pass


class LockTimeoutError(LockError):
    """Raised when the lock could not be acquired within the acquire budget."""

    def __init__(self, message: str, holder: str = None, elapsed: float = None):
        super().__init__(message)
        self.holder = holder
        self.elapsed = elapsed


class DecryptionError(TelegraDBError):
    """Raised when an encrypted blob cannot be decoded or decrypted."""
    pass
