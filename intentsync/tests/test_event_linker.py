"""
Tests for linking EVM events to intents by request hash
"""

import unittest

from intentsync.core.event_linker import EventLinker
from intentsync.core.evm_event_repository import EvmEventRepository
from intentsync.core.intent_repository import IntentRepository
from intentsync.core.types import LinkResult
from intentsync.tests.utils import (
    TEST_NETWORK,
    create_test_database,
    make_deposit_event,
    make_fill_event,
    make_intent,
    request_hash,
)


class TestEventLinker(unittest.TestCase):
    def setUp(self):
        self.db = create_test_database()
        self.intents = IntentRepository(self.db)
        self.events = EvmEventRepository(self.db)
        self.linker = EventLinker(self.events, self.intents, TEST_NETWORK)

    def tearDown(self):
        self.db.dispose()

    def test_link_matching_events(self):
        self.intents.upsert_intent(make_intent(1))
        self.intents.upsert_intent(make_intent(2))
        self.events.upsert_fill_events(
            [make_fill_event(1, 1), make_fill_event(2, 2), make_fill_event(3, 3)]
        )
        self.events.upsert_deposit_events([make_deposit_event(4, 1)])

        result = self.linker.link()

        assert result == LinkResult(
            linked_fills=2,
            linked_deposits=1,
            remaining_unlinked_fills=1,
            remaining_unlinked_deposits=0,
        )
        assert [e.tx_hash for e in self.events.get_fill_events_by_intent_id(2)] == [
            make_fill_event(2, 2).tx_hash
        ]
        assert len(self.events.get_deposit_events_by_intent_id(1)) == 1

    def test_unmatched_event_is_linked_later(self):
        """An event seen before its intent is linked once the intent arrives."""
        self.events.upsert_fill_events([make_fill_event(1, 5)])
        assert self.linker.link().linked_fills == 0

        self.intents.upsert_intent(make_intent(5))
        result = self.linker.link()
        assert result.linked_fills == 1
        assert result.remaining_unlinked_fills == 0

    def test_any_signature_hash_matches(self):
        """An intent with several signatures links events for each hash."""
        self.intents.upsert_intent(
            make_intent(1, hashes=[request_hash(1), request_hash(100)])
        )
        self.events.upsert_fill_events([make_fill_event(1, 100)])
        assert self.linker.link().linked_fills == 1

    def test_batch_limit(self):
        for i in range(1, 6):
            self.intents.upsert_intent(make_intent(i))
        self.events.upsert_fill_events([make_fill_event(i, i) for i in range(1, 6)])
        linker = EventLinker(self.events, self.intents, TEST_NETWORK, batch_limit=2)

        result = linker.link()

        assert result.linked_fills == 2
        assert result.remaining_unlinked_fills == 3

    def test_failed_link_is_isolated(self):
        self.intents.upsert_intent(make_intent(1))
        self.intents.upsert_intent(make_intent(2))
        self.events.upsert_fill_events([make_fill_event(1, 1), make_fill_event(2, 2)])
        original = self.events.link_fill_event
        failing_event_id = self.events.get_fill_event(make_fill_event(1, 1).tx_hash, 0).id

        def link(event_id, intent_id):
            if event_id == failing_event_id:
                raise RuntimeError("lock timeout")
            original(event_id, intent_id)

        self.events.link_fill_event = link
        linker = EventLinker(self.events, self.intents, TEST_NETWORK)

        result = linker.link()

        assert result.linked_fills == 1
        assert result.remaining_unlinked_fills == 1

    def test_nothing_to_link(self):
        assert self.linker.link() == LinkResult()


if __name__ == "__main__":
    unittest.main()
