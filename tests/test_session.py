"""Tests for jsonpost.session.InMemorySession."""

import pytest

from jsonpost.models import RoutingOutcome, WorkItem
from jsonpost.session import InMemorySession, SessionError


class TestInMemorySession:
    def test_get_returns_items_in_order(self) -> None:
        first = WorkItem(attributes={"n": "1"})
        second = WorkItem(attributes={"n": "2"})
        session = InMemorySession([first, second])

        assert session.pending == 2
        assert session.get() is first
        assert session.get() is second
        assert session.get() is None
        assert session.pending == 0

    def test_enqueue(self) -> None:
        session = InMemorySession()
        item = WorkItem()
        session.enqueue(item)
        assert session.get() is item

    def test_create_returns_fresh_item(self) -> None:
        session = InMemorySession()
        a = session.create()
        b = session.create()

        assert a.id != b.id
        assert a.attributes == {}
        assert a.content == b""

    def test_transfer_recorded_by_destination(self) -> None:
        session = InMemorySession()
        ok = WorkItem()
        bad = WorkItem()

        session.transfer(ok, RoutingOutcome.SUCCESS)
        session.transfer(bad, RoutingOutcome.FAILURE)

        assert session.transferred(RoutingOutcome.SUCCESS) == [ok]
        assert session.transferred(RoutingOutcome.FAILURE) == [bad]

    def test_second_transfer_rejected(self) -> None:
        session = InMemorySession()
        item = WorkItem()
        session.transfer(item, RoutingOutcome.SUCCESS)

        with pytest.raises(SessionError, match="already transferred"):
            session.transfer(item.with_attributes({"x": "y"}), RoutingOutcome.FAILURE)

        assert session.transferred(RoutingOutcome.FAILURE) == []

    def test_transferred_returns_copy(self) -> None:
        session = InMemorySession()
        session.transfer(WorkItem(), RoutingOutcome.SUCCESS)

        session.transferred(RoutingOutcome.SUCCESS).clear()

        assert len(session.transferred(RoutingOutcome.SUCCESS)) == 1
