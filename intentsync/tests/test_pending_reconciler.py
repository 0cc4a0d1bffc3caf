"""
Tests for pending intent reconciliation
"""

import unittest
from unittest.mock import Mock

from intentsync.core.intent_repository import IntentRepository
from intentsync.core.pending_reconciler import (
    PendingIntentReconciler,
    has_intent_changed,
    now_unix_seconds,
)
from intentsync.core.types import ReconcileResult
from intentsync.tests.utils import (
    HOUR,
    NOW,
    SOLVER_ADDRESS,
    TEST_NETWORK,
    FakeLedgerClient,
    GrowingLedgerClient,
    create_test_database,
    make_intent,
)


class TestHasIntentChanged(unittest.TestCase):
    def test_status_fields(self):
        stored = make_intent(1)
        assert not has_intent_changed(stored, make_intent(1))
        assert has_intent_changed(stored, make_intent(1, deposited=True))
        assert has_intent_changed(stored, make_intent(1, refunded=True))
        assert has_intent_changed(stored, make_intent(1, fulfilled_at=NOW))
        assert has_intent_changed(stored, make_intent(1, fulfilled_by=SOLVER_ADDRESS))

    def test_other_fields_ignored(self):
        assert not has_intent_changed(make_intent(1), make_intent(1, expiry=NOW + 5))

    def test_default_clock(self):
        """The default clock reads the current unix time."""
        assert now_unix_seconds() > NOW


class TestPendingIntentReconciler(unittest.TestCase):
    def setUp(self):
        self.db = create_test_database()
        self.repo = IntentRepository(self.db)
        for i in range(100, 104):
            self.repo.upsert_intent(make_intent(i))
        self.ledger = FakeLedgerClient([make_intent(i) for i in range(1, 104)])

    def tearDown(self):
        self.db.dispose()

    def _reconciler(self, now_fn=lambda: NOW, refetch_missing=False):
        return PendingIntentReconciler(
            self.ledger,
            self.repo,
            TEST_NETWORK,
            refetch_missing=refetch_missing,
            page_delay=0,
            now_fn=now_fn,
        )

    def test_fulfilled_intent_is_updated(self):
        """A status change on the ledger is written back, the rest untouched."""
        self.ledger.put(
            make_intent(
                102,
                deposited=True,
                fulfilled=True,
                fulfilled_by=SOLVER_ADDRESS,
                fulfilled_at=NOW - 10,
            )
        )

        result = self._reconciler().reconcile()

        assert result == ReconcileResult(checked=4, updated=1, expired=0, not_found=0)
        stored = self.repo.get_intent_by_id(102)
        assert stored.fulfilled
        assert stored.fulfilled_by == SOLVER_ADDRESS
        assert [i.id for i in self.repo.get_pending_intents(NOW)] == [100, 101, 103]

    def test_snapshot_covers_oldest_pending(self):
        self._reconciler().reconcile()
        assert self.ledger.paged_calls == [(4, 99)]

    def test_snapshot_while_ledger_grows(self):
        """The oldest pending intent stays in the snapshot when intents arrive mid-fetch."""
        intents = [make_intent(i) for i in range(1, 104)]
        intents[99] = make_intent(100, deposited=True)
        ledger = GrowingLedgerClient(intents, arrivals={2: [make_intent(104)]})
        reconciler = PendingIntentReconciler(
            ledger,
            self.repo,
            TEST_NETWORK,
            page_size=2,
            page_delay=0,
            now_fn=lambda: NOW,
        )

        result = reconciler.reconcile()

        assert result == ReconcileResult(checked=4, updated=1, expired=0, not_found=0)
        assert self.repo.get_intent_by_id(100).deposited
        assert ledger.requests == [(1, 0), (2, 0), (2, 2), (1, 4)]

    def test_no_pending_intents(self):
        for i in range(100, 104):
            self.repo.upsert_intent(make_intent(i, refunded=True))

        assert self._reconciler().reconcile() == ReconcileResult()
        assert self.ledger.paged_calls == []

    def test_unchanged_intents_are_not_written(self):
        self.repo.upsert_intent = Mock(wraps=self.repo.upsert_intent)
        result = self._reconciler().reconcile()
        assert result == ReconcileResult(checked=4)
        self.repo.upsert_intent.assert_not_called()

    def test_expiry_is_rechecked_per_intent(self):
        """An intent crossing its expiry during the pass is counted as expired."""
        self.repo.upsert_intent(make_intent(99, expiry=NOW + 10))
        self.ledger.put(make_intent(99, deposited=True))
        clock = Mock(side_effect=[NOW] + [NOW + 20] * 5)

        result = self._reconciler(now_fn=clock).reconcile()

        assert result.expired == 1
        assert result.checked == 5
        assert result.updated == 0
        assert not self.repo.get_intent_by_id(99).deposited

    def test_intent_missing_from_snapshot(self):
        self.ledger.missing_ids = {101}
        result = self._reconciler().reconcile()
        assert result.not_found == 1
        assert self.ledger.lookups == []

    def test_refetch_missing(self):
        """With refetch enabled a missing intent is looked up one by one."""
        self.ledger.missing_ids = {101}
        self.ledger.put(make_intent(101, deposited=True))

        result = self._reconciler(refetch_missing=True).reconcile()

        assert self.ledger.lookups == [101]
        assert result.not_found == 0
        assert result.updated == 1
        assert self.repo.get_intent_by_id(101).deposited

    def test_failing_intent_does_not_stop_pass(self):
        for i in (101, 102):
            self.ledger.put(make_intent(i, deposited=True))
        original = self.repo.upsert_intent

        def upsert(intent, session=None):
            if intent.id == 101:
                raise ValueError("write failed")
            return original(intent, session)

        self.repo.upsert_intent = upsert
        result = self._reconciler().reconcile()

        assert result.updated == 1
        assert self.repo.get_intent_by_id(102).deposited
        assert not self.repo.get_intent_by_id(101).deposited

    def test_ledger_behind_store(self):
        """Nothing newer than the oldest pending intent on the ledger: all not found."""
        self.ledger.intents = {i: make_intent(i) for i in range(1, 50)}
        result = self._reconciler().reconcile()
        assert result.not_found == 4
        assert self.ledger.paged_calls == []

    def test_expired_before_pass_not_selected(self):
        result = self._reconciler(now_fn=lambda: NOW + 2 * HOUR).reconcile()
        assert result == ReconcileResult()


if __name__ == "__main__":
    unittest.main()
