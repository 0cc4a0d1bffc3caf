"""
Detects and fills the gap between the ledger's newest intent and the mirror's.
"""

import logging
from typing import Dict, List, Optional

from intentsync.core.intent_ledger_client import (
    DEFAULT_PAGE_DELAY,
    DEFAULT_PAGE_SIZE,
    IntentLedgerClient,
)
from intentsync.core.intent_repository import IntentRepository
from intentsync.core.types import BackfillResult, Intent, IntentComparison
from intentsync.utils.log import get_context_logger

# Progress is logged every N intents during a full sync.
PROGRESS_LOG_INTERVAL = 50


class IntentBackfillSynchronizer:
    """
    Compares local and remote maximum intent ids and upserts missing intents.
    Re-running it without a gap is a no-op.
    """

    def __init__(
        self,
        ledger_client: IntentLedgerClient,
        intent_repo: IntentRepository,
        network: str,
        page_size: int = DEFAULT_PAGE_SIZE,
        page_delay: float = DEFAULT_PAGE_DELAY,
    ):
        self.ledger_client = ledger_client
        self.intent_repo = intent_repo
        self.page_size = page_size
        self.page_delay = page_delay
        self.log = get_context_logger(__name__, network)

    def compare(self) -> IntentComparison:
        """
        Compare the highest stored intent id with the ledger's.

        :return: The local and remote maxima.
        """
        return IntentComparison(
            local_max=self.intent_repo.get_max_intent_id(),
            remote_max=self.ledger_client.get_max_intent_id(),
        )

    def _upsert_all(self, intents: List[Intent]) -> BackfillResult:
        inserted = 0
        failed = 0
        for intent in intents:
            try:
                self.intent_repo.upsert_intent(intent)
                inserted += 1
            except Exception as e:  # pylint: disable=broad-except
                failed += 1
                self.log.error("Failed to upsert intent %s: %s", intent.id, e)
                continue
            if inserted % PROGRESS_LOG_INTERVAL == 0:
                self.log.info("Progress: %d/%d intents stored", inserted, len(intents))
        return BackfillResult(fetched=len(intents), inserted=inserted, failed=failed)

    @staticmethod
    def _ascending_unique(intents: List[Intent], above_id: int) -> List[Intent]:
        by_id: Dict[int, Intent] = {}
        for intent in intents:
            if intent.id > above_id:
                by_id.setdefault(intent.id, intent)
        return [by_id[intent_id] for intent_id in sorted(by_id)]

    def backfill(self, comparison: Optional[IntentComparison] = None) -> BackfillResult:
        """
        Fetch and store every intent above the local maximum.
        Intents are stored in increasing id order; a failed upsert is counted
        and does not stop the rest of the batch.

        :param comparison: A comparison from compare(); computed when omitted.
        :return: Fetched, inserted and failed counts.
        """
        if comparison is None:
            comparison = self.compare()
        if not comparison.needs_sync:
            return BackfillResult()

        self.log.info(
            "Found %d new intents (%d to %d)",
            comparison.gap,
            comparison.local_max + 1,
            comparison.remote_max,
        )
        fetched = self.ledger_client.query_intents_paged(
            comparison.gap,
            page_size=self.page_size,
            page_delay=self.page_delay,
            min_id=comparison.local_max,
        )
        new_intents = self._ascending_unique(fetched, comparison.local_max)
        if not new_intents:
            self.log.info("No new intents to insert")
            return BackfillResult()

        result = self._upsert_all(new_intents)
        self.log.info(
            "New intents: %d inserted, %d failed", result.inserted, result.failed
        )
        return result

    def sync_all(self) -> BackfillResult:
        """
        Fetch every intent on the ledger and upsert it,
        used to (re)build the mirror from scratch.

        :return: Fetched, inserted and failed counts.
        """
        remote_max = self.ledger_client.get_max_intent_id()
        if remote_max == 0:
            self.log.info("No intents to sync")
            return BackfillResult()

        self.log.info("Fetching all %d intents from the ledger", remote_max)
        intents = self._ascending_unique(
            self.ledger_client.query_intents_paged(
                remote_max, page_size=self.page_size, page_delay=self.page_delay
            ),
            0,
        )
        result = self._upsert_all(intents)
        self.log.info(
            "Full intent sync: fetched %d, inserted %d, failed %d",
            result.fetched,
            result.inserted,
            result.failed,
        )
        return result
