class StoreError(Exception):
    """Base class for everything the store raises."""


class ConflictError(StoreError):
    """A write violated a unique or foreign-key constraint."""


class DecodeError(StoreError):
    """A JSON payload does not match its tagged variant."""


class MigrationError(StoreError):
    def __init__(self, filename: str, message: str):
        super().__init__(f"migration {filename} failed: {message}")
        self.filename = filename


class StorageUnavailableError(StoreError):
    """Connection or IO failure; callers decide whether to retry."""
