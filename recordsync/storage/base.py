"""Store capabilities the synchronizer depends on.

The synchronizer only ever reads from the source and only ever writes to the
target. Any storage technology can back either side as long as it offers
these coroutine methods.
"""

from typing import Any, Protocol, runtime_checkable

Record = dict[str, Any]
Filter = dict[str, Any]


@runtime_checkable
class SourceStore(Protocol):
    """Read-only query capability."""

    async def find(
        self, query: Filter, *, skip: int = 0, limit: int | None = None
    ) -> list[Record]:
        """
        Return records matching query in a stable order.

        Args:
            query: Equality filter; an empty dict matches every record
            skip: Number of matching records to skip
            limit: Maximum number of records to return, None for no limit

        Returns:
            Matching records, ordered the same way on every call
        """
        ...

    async def find_one(self, query: Filter) -> Record | None:
        """Return the first record matching query, or None."""
        ...

    async def count(self, query: Filter) -> int:
        """Return the number of records matching query."""
        ...


@runtime_checkable
class TargetStore(Protocol):
    """Write-only capability."""

    async def insert(self, record: Record) -> Record:
        """Insert a record and return it as stored."""
        ...

    async def update(self, query: Filter, patch: Record) -> int:
        """
        Apply an operator patch ({"$set": {...}}) to records matching query.

        Returns:
            Number of records matched
        """
        ...
