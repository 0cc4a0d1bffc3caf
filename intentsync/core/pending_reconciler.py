"""
Re-polls locally open intents to pick up deposit / fill / refund transitions.
"""

from typing import Callable, Dict, List, Optional

import pandas as pd

from intentsync.core.intent_ledger_client import (
    DEFAULT_PAGE_DELAY,
    DEFAULT_PAGE_SIZE,
    IntentLedgerClient,
)
from intentsync.core.intent_repository import IntentRepository
from intentsync.core.models import derive_intent_status, is_intent_expired
from intentsync.core.types import Intent, ReconcileResult
from intentsync.utils.log import get_context_logger

# Fields the ledger mutates after an intent is created.
MUTABLE_INTENT_FIELDS = (
    "deposited",
    "fulfilled",
    "refunded",
    "fulfilled_by",
    "fulfilled_at",
)


def now_unix_seconds() -> float:
    return pd.Timestamp.now(tz="UTC").timestamp()


def has_intent_changed(stored: Intent, remote: Intent) -> bool:
    """
    :return: True if any mutable status field differs.
    """
    return any(
        getattr(stored, name) != getattr(remote, name) for name in MUTABLE_INTENT_FIELDS
    )


class PendingIntentReconciler:
    """
    Compares pending intents against a fresh ledger snapshot
    and stores the ones whose status changed.
    """

    def __init__(
        self,
        ledger_client: IntentLedgerClient,
        intent_repo: IntentRepository,
        network: str,
        refetch_missing: bool = False,
        page_size: int = DEFAULT_PAGE_SIZE,
        page_delay: float = DEFAULT_PAGE_DELAY,
        now_fn: Callable[[], float] = now_unix_seconds,
    ):
        self.ledger_client = ledger_client
        self.intent_repo = intent_repo
        self.refetch_missing = refetch_missing
        self.page_size = page_size
        self.page_delay = page_delay
        self.now_fn = now_fn
        self.log = get_context_logger(__name__, network)

    def _now(self) -> int:
        return int(self.now_fn())

    def _fetch_snapshot(self, pending: List[Intent]) -> Dict[int, Intent]:
        remote_max = self.ledger_client.get_max_intent_id()
        oldest_pending = pending[0].id
        if remote_max < oldest_pending:
            return {}
        # Reverse pages from the newest intent down to the oldest pending one.
        intents = self.ledger_client.query_intents_paged(
            remote_max - oldest_pending + 1,
            page_size=self.page_size,
            page_delay=self.page_delay,
            min_id=oldest_pending - 1,
        )
        snapshot: Dict[int, Intent] = {}
        for intent in intents:
            snapshot.setdefault(intent.id, intent)
        if snapshot:
            self.log.info(
                "Ledger snapshot covers intents %d to %d (%d total)",
                min(snapshot),
                max(snapshot),
                len(snapshot),
            )
        return snapshot

    def _lookup_missing(self, intent_id: int) -> Optional[Intent]:
        if not self.refetch_missing:
            return None
        return self.ledger_client.query_intent(intent_id)

    def reconcile(self) -> ReconcileResult:
        """
        Check every pending intent against the ledger.

        :return: Checked, updated, expired and not-found counts.
        """
        pending = self.intent_repo.get_pending_intents(self._now())
        if not pending:
            return ReconcileResult()

        self.log.info("Checking %d pending intents", len(pending))
        snapshot = self._fetch_snapshot(pending)

        updated = 0
        expired = 0
        not_found = 0
        for stored in pending:
            try:
                now = self._now()
                if is_intent_expired(stored.expiry, now):
                    expired += 1
                    continue

                remote = snapshot.get(stored.id)
                if remote is None:
                    remote = self._lookup_missing(stored.id)
                if remote is None:
                    self.log.warning(
                        "Intent %d not found on the ledger (snapshot has %d intents)",
                        stored.id,
                        len(snapshot),
                    )
                    not_found += 1
                    continue

                if has_intent_changed(stored, remote):
                    self.intent_repo.upsert_intent(remote)
                    updated += 1
                    self.log.info(
                        "Updated intent %d: %s",
                        stored.id,
                        derive_intent_status(
                            remote.deposited,
                            remote.fulfilled,
                            remote.refunded,
                            remote.expiry,
                            now,
                        ).value,
                    )
            except Exception as e:  # pylint: disable=broad-except
                self.log.error("Failed to reconcile intent %d: %s", stored.id, e)

        if updated or expired or not_found:
            self.log.info(
                "Pending intents: %d updated, %d expired, %d not found",
                updated,
                expired,
                not_found,
            )
        return ReconcileResult(
            checked=len(pending), updated=updated, expired=expired, not_found=not_found
        )
