"""
Tests for new-intent backfill
"""

import unittest

from intentsync.core.intent_backfill import IntentBackfillSynchronizer
from intentsync.core.intent_repository import IntentRepository
from intentsync.core.types import BackfillResult
from intentsync.tests.utils import (
    TEST_NETWORK,
    FakeLedgerClient,
    GrowingLedgerClient,
    create_test_database,
    make_intent,
)


class FailingIntentRepository(IntentRepository):
    """Intent repository that refuses to store some ids."""

    def __init__(self, db, failing_ids):
        super().__init__(db)
        self.failing_ids = set(failing_ids)
        self.upserted = []

    def upsert_intent(self, intent, session=None):
        if intent.id in self.failing_ids:
            raise ValueError(f"constraint violation on intent {intent.id}")
        super().upsert_intent(intent, session)
        self.upserted.append(intent.id)


class TestIntentBackfill(unittest.TestCase):
    def setUp(self):
        self.db = create_test_database()
        self.repo = FailingIntentRepository(self.db, [])
        self.ledger = FakeLedgerClient([make_intent(i) for i in range(1, 101)])
        self.sync = IntentBackfillSynchronizer(
            self.ledger, self.repo, TEST_NETWORK, page_delay=0
        )

    def tearDown(self):
        self.db.dispose()

    def _store(self, first, last):
        for i in range(first, last + 1):
            IntentRepository.upsert_intent(self.repo, make_intent(i))

    def test_compare(self):
        self._store(1, 100)
        for i in range(101, 104):
            self.ledger.put(make_intent(i))

        comparison = self.sync.compare()
        assert comparison.local_max == 100
        assert comparison.remote_max == 103
        assert comparison.gap == 3
        assert comparison.needs_sync

    def test_backfill_gap(self):
        """Only the intents above the local maximum are fetched and stored."""
        self._store(1, 100)
        for i in range(101, 104):
            self.ledger.put(make_intent(i))

        result = self.sync.backfill()

        assert result == BackfillResult(fetched=3, inserted=3, failed=0)
        assert self.repo.upserted == [101, 102, 103]
        assert self.ledger.paged_calls == [(3, 100)]
        assert self.repo.get_max_intent_id() == 103

    def test_backfill_while_ledger_grows(self):
        """An intent created between two pages does not push the oldest new ones out."""
        self._store(100, 100)
        ledger = GrowingLedgerClient(
            [make_intent(i) for i in range(100, 104)], arrivals={2: [make_intent(104)]}
        )
        sync = IntentBackfillSynchronizer(
            ledger, self.repo, TEST_NETWORK, page_size=2, page_delay=0
        )

        result = sync.backfill()

        assert result == BackfillResult(fetched=3, inserted=3, failed=0)
        assert self.repo.upserted == [101, 102, 103]
        # The second page re-serves 102 after the shift; paging goes on down to 101.
        assert ledger.requests == [(1, 0), (2, 0), (1, 2), (1, 3)]

        assert sync.backfill() == BackfillResult(fetched=1, inserted=1, failed=0)
        assert all(self.repo.get_intent_by_id(i) for i in range(100, 105))

    def test_backfill_without_gap_is_noop(self):
        self._store(1, 100)
        assert self.sync.backfill() == BackfillResult()
        assert self.ledger.paged_calls == []

    def test_backfill_with_empty_ledger(self):
        self.ledger.intents.clear()
        assert self.sync.backfill() == BackfillResult()

    def test_failed_upsert_does_not_stop_batch(self):
        self._store(1, 100)
        for i in range(101, 106):
            self.ledger.put(make_intent(i))
        self.repo.failing_ids = {102}

        result = self.sync.backfill()

        assert result == BackfillResult(fetched=5, inserted=4, failed=1)
        assert self.repo.upserted == [101, 103, 104, 105]
        assert self.repo.get_intent_by_id(102) is None

    def test_sync_all(self):
        """A full sync stores every intent on the ledger, oldest first."""
        self._store(1, 10)
        result = self.sync.sync_all()
        assert result == BackfillResult(fetched=100, inserted=100, failed=0)
        assert self.repo.upserted == list(range(1, 101))
        assert self.repo.count_intents() == 100

    def test_sync_all_with_empty_ledger(self):
        self.ledger.intents.clear()
        assert self.sync.sync_all() == BackfillResult()


if __name__ == "__main__":
    unittest.main()
