"""Custom exception hierarchy for microfin."""


class MicrofinError(Exception):
    """Base exception for all microfin errors."""


class EntityNotFoundError(MicrofinError):
    """Raised when a referenced entity does not exist."""


class InvalidEntityStateError(MicrofinError):
    """Raised when an entity is in an invalid state for the operation."""


class InvalidAmountError(InvalidEntityStateError):
    """Raised when a payment amount is not positive or exceeds what is owed."""


class ConfigurationError(MicrofinError):
    """Raised when configuration is invalid or missing."""


class StorageError(MicrofinError):
    """Raised when a data-access call fails."""


class ForeignKeyViolationError(StorageError):
    """Raised when a write would leave a dangling foreign key."""
