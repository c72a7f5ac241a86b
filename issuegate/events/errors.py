"""Failure types raised by the webhook event store."""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    from .store import StoreState


class StorageError(RuntimeError):
    """Raised when the backing database fails to complete a read or write.

    The original driver exception is chained as ``__cause__``. Callers log
    it and decide whether to surface a transient failure; it is never a
    validation problem with the event itself.
    """

    def __init__(self, message: str, *, delivery_id: str | None = None) -> None:
        """Record the failing operation and, for writes, the delivery id."""
        self.delivery_id = delivery_id
        super().__init__(message)

    @classmethod
    def schema_creation_failed(cls) -> StorageError:
        """Return an error for a store whose schema could not be created."""
        return cls("failed to create webhook event schema")

    @classmethod
    def write_failed(cls, delivery_id: str) -> StorageError:
        """Return an error for a rejected upsert."""
        return cls(
            f"failed to store webhook event {delivery_id!r}",
            delivery_id=delivery_id,
        )

    @classmethod
    def read_failed(cls, operation: str) -> StorageError:
        """Return an error for a failed query."""
        return cls(f"failed to read webhook events during {operation}")

    @classmethod
    def unsupported_dialect(cls, dialect: str) -> StorageError:
        """Return an error for databases without an atomic upsert."""
        return cls(f"database dialect {dialect!r} does not support event upserts")


class LifecycleError(RuntimeError):
    """Raised when the store is used outside its ``OPEN`` state.

    This signals an integration bug in the caller and is not meant to be
    recovered from at runtime.
    """

    def __init__(self, operation: str, state: StoreState) -> None:
        """Describe the rejected operation and the store's current state."""
        self.operation = operation
        self.state = state
        super().__init__(f"cannot {operation} an event store that is {state.value}")
