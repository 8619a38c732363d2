"""
DriftGuard Custom Exceptions

Error taxonomy shared by the core library and the HTTP layer.
"""


class DriftGuardError(Exception):
    """Base exception for DriftGuard."""

    pass


class ConfigurationError(DriftGuardError):
    """Configuration is invalid."""

    pass


class AuthConfigError(ConfigurationError):
    """A required secret or credential is not configured."""

    pass


class AuthRejected(DriftGuardError):
    """Caller credential or callback signature was rejected."""

    pass


class VendorAPIError(DriftGuardError):
    """Netatmo returned a non-2xx response."""

    def __init__(self, message: str, status_code: int | None = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class VendorDecodeError(VendorAPIError):
    """Netatmo response did not have the expected shape."""

    pass


class PayloadError(DriftGuardError):
    """Reset callback body is malformed."""

    pass
