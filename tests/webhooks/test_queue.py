"""Tests for the failed delivery queue."""

from __future__ import annotations

import threading

from ucp_connector.storage import MemoryOptionStore
from ucp_connector.webhooks.models import FailedDelivery
from ucp_connector.webhooks.queue import FAILED_WEBHOOKS_OPTION, FailedDeliveryQueue


def record(delivery_id: str, failed_at: int = 1_735_689_600) -> FailedDelivery:
    return FailedDelivery(
        url="https://agent.example.com/webhooks",
        payload={"id": delivery_id, "event_type": "order.created"},
        signature="t=1,v1=ab",
        error="HTTP 500: oops",
        failed_at=failed_at,
    )


class TestFailedDeliveryQueue:
    """Tests for FailedDeliveryQueue."""

    def test_push_and_list(self, failed_queue: FailedDeliveryQueue) -> None:
        failed_queue.push(record("a"))
        failed_queue.push(record("b"))

        records = failed_queue.list()

        assert [r.delivery_id for r in records] == ["a", "b"]
        assert records[0].error == "HTTP 500: oops"
        assert failed_queue.count() == 2

    def test_stored_as_option(
        self, options: MemoryOptionStore, failed_queue: FailedDeliveryQueue
    ) -> None:
        """Records live in a single list option."""
        failed_queue.push(record("a"))

        stored = options.get(FAILED_WEBHOOKS_OPTION)

        assert isinstance(stored, list)
        assert stored[0]["payload"]["id"] == "a"
        assert set(stored[0]) == {"url", "payload", "signature", "error", "failed_at"}

    def test_101st_record_evicts_oldest(self, failed_queue: FailedDeliveryQueue) -> None:
        """The queue holds at most 100 records, dropping the oldest first."""
        for i in range(101):
            failed_queue.push(record(f"d{i}"))

        records = failed_queue.list()

        assert len(records) == 100
        assert records[0].delivery_id == "d1"
        assert records[-1].delivery_id == "d100"

    def test_custom_limit(self, options: MemoryOptionStore) -> None:
        queue = FailedDeliveryQueue(options, limit=2)
        for i in range(5):
            queue.push(record(f"d{i}"))

        assert [r.delivery_id for r in queue.list()] == ["d3", "d4"]

    def test_remove_by_delivery_id(self, failed_queue: FailedDeliveryQueue) -> None:
        for i in range(3):
            failed_queue.push(record(f"d{i}"))

        removed = failed_queue.remove(["d0", "d2", "missing"])

        assert removed == 2
        assert [r.delivery_id for r in failed_queue.list()] == ["d1"]

    def test_remove_nothing(self, failed_queue: FailedDeliveryQueue) -> None:
        failed_queue.push(record("a"))

        assert failed_queue.remove([]) == 0
        assert failed_queue.count() == 1

    def test_clear(self, failed_queue: FailedDeliveryQueue) -> None:
        failed_queue.push(record("a"))
        failed_queue.push(record("b"))

        assert failed_queue.clear() == 2
        assert failed_queue.list() == []

    def test_is_expired(self, failed_queue: FailedDeliveryQueue) -> None:
        now = 1_735_689_600
        assert failed_queue.is_expired(record("a", now - 25 * 3600), now)
        assert not failed_queue.is_expired(record("b", now - 3600), now)

    def test_concurrent_pushes_are_not_lost(self, options: MemoryOptionStore) -> None:
        """Parallel writers never overwrite each other's records."""
        queue = FailedDeliveryQueue(options, limit=1000)

        def worker(offset: int) -> None:
            for i in range(50):
                queue.push(record(f"w{offset}-{i}"))

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert queue.count() == 200

    def test_clear_counts_every_removed_record(self, options: MemoryOptionStore) -> None:
        """Failures recorded while clearing are either counted or kept."""
        queue = FailedDeliveryQueue(options, limit=1000)
        cleared: list[int] = []

        def pusher(offset: int) -> None:
            for i in range(100):
                queue.push(record(f"p{offset}-{i}"))

        def clearer() -> None:
            for _ in range(50):
                cleared.append(queue.clear())

        threads = [threading.Thread(target=pusher, args=(n,)) for n in range(3)]
        threads.append(threading.Thread(target=clearer))
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sum(cleared) + queue.count() == 300
