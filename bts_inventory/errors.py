class InventoryError(Exception):
    """Base class for errors raised by the local store."""


class MigrationError(InventoryError):
    """A schema script failed; startup must not continue."""

    def __init__(self, version: int, cause: Exception):
        super().__init__(f"Migration {version} failed: {cause}")
        self.version = version
        self.cause = cause


class UnknownFieldError(InventoryError, ValueError):
    """find_by was asked for a field outside the entity's queryable set."""


class PayloadError(InventoryError, ValueError):
    """An outbox payload or a server change could not be decoded."""
