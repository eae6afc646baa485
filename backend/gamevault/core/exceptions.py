"""Exception types raised across the library core.

Messages never include folder paths; callers may surface them to users as-is.
"""

from __future__ import annotations


class GameVaultError(Exception):
    """Base class for all GameVault errors."""


class StorageError(GameVaultError):
    """A single store operation failed and was rolled back."""

    def __init__(self, operation: str, detail: str | None = None) -> None:
        self.operation = operation
        self.detail = detail
        message = f"Storage operation '{operation}' failed"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class EntryNotFoundError(GameVaultError):
    """No library entry exists with the given id."""

    def __init__(self, entry_id: str) -> None:
        self.entry_id = entry_id
        super().__init__(f"Library entry not found: {entry_id}")


class InvalidCatalogInputError(GameVaultError, ValueError):
    """User supplied catalog id / URL could not be parsed."""

    def __init__(self, value: str) -> None:
        self.value = value
        super().__init__(
            "Invalid catalog input. Use a store URL like "
            "https://store.steampowered.com/app/292030/ or a bare app id like 292030"
        )


class CatalogEntryNotFoundError(GameVaultError):
    """The catalog has no entry (or no usable details) for the given id."""

    def __init__(self, catalog_id: int) -> None:
        self.catalog_id = catalog_id
        super().__init__(f"Catalog entry not found: {catalog_id}")


class SidecarFormatError(GameVaultError):
    """A sidecar document could not be decoded."""
