"""Error taxonomy shared across services and adapters."""


class CastboothError(Exception):
    """Base class for application errors."""


class ConfigError(CastboothError):
    """Backend configuration is missing or invalid."""


class AuthError(CastboothError):
    """Identity could not be resolved."""


class DeviceError(CastboothError):
    """The capture device could not be acquired."""


class StoreError(CastboothError):
    """The record store rejected a read or write."""


class RecordExistsError(StoreError):
    """A record with the same id has already been written."""
