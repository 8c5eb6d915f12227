"""Host session seam.

The host owns work items between processing stages. A processor only takes
one item from its session (or creates one) and transfers it to a destination.
"""

from __future__ import annotations

from typing import Iterable, Protocol

from jsonpost.models import RoutingOutcome, WorkItem


class SessionError(Exception):
    """Raised when a session is used incorrectly."""


class Session(Protocol):
    """What the processor needs from the host."""

    def get(self) -> WorkItem | None:
        ...

    def create(self) -> WorkItem:
        ...

    def transfer(self, item: WorkItem, destination: RoutingOutcome) -> None:
        ...


class InMemorySession:
    """Queue-backed session used by the CLI and tests.

    Usage:
        session = InMemorySession([WorkItem(attributes={"id": "42"})])
        processor.on_trigger(session)
        [item] = session.transferred(RoutingOutcome.SUCCESS)
    """

    def __init__(self, items: Iterable[WorkItem] = ()) -> None:
        self._queue: list[WorkItem] = list(items)
        self._transfers: dict[RoutingOutcome, list[WorkItem]] = {
            outcome: [] for outcome in RoutingOutcome
        }
        self._transferred_ids: set[str] = set()

    def get(self) -> WorkItem | None:
        if not self._queue:
            return None
        return self._queue.pop(0)

    def create(self) -> WorkItem:
        return WorkItem()

    def enqueue(self, item: WorkItem) -> None:
        self._queue.append(item)

    def transfer(self, item: WorkItem, destination: RoutingOutcome) -> None:
        """Record a transfer. Each item may be transferred once.

        Raises:
            SessionError: If the item was already transferred.
        """
        if item.id in self._transferred_ids:
            raise SessionError(f"Work item {item.id} was already transferred")
        self._transferred_ids.add(item.id)
        self._transfers[destination].append(item)

    def transferred(self, destination: RoutingOutcome) -> list[WorkItem]:
        """Items transferred to a destination, in transfer order."""
        return list(self._transfers[destination])

    @property
    def pending(self) -> int:
        """Number of items not yet taken."""
        return len(self._queue)
