"""
Mirrors Cosmos settlement transactions (fills and deposits).
"""

from typing import Callable, List, Sequence

from intentsync.core.transaction_repository import TransactionRepository
from intentsync.core.tx_search_client import DEFAULT_SEARCH_LIMIT, TransactionSearchClient
from intentsync.core.types import TransactionCounts, TransactionScanResult
from intentsync.utils.log import get_context_logger

PROGRESS_LOG_INTERVAL = 50


class CosmosTransactionScanner:
    """
    Inserts settlement transactions not yet in the mirror.
    Existing hashes are re-read from the store on every scan.
    """

    def __init__(
        self,
        search_client: TransactionSearchClient,
        transaction_repo: TransactionRepository,
        network: str,
        search_limit: int = DEFAULT_SEARCH_LIMIT,
    ):
        self.search_client = search_client
        self.transaction_repo = transaction_repo
        self.search_limit = search_limit
        self.log = get_context_logger(__name__, network)

    def _insert_each(self, kind: str, items: Sequence, insert_one: Callable) -> int:
        inserted = 0
        for item in items:
            try:
                if insert_one(item):
                    inserted += 1
                    self.log.info(
                        "Inserted %s: intent %d, hash %s",
                        kind,
                        item.intent_id,
                        item.cosmos_hash,
                    )
            except Exception as e:  # pylint: disable=broad-except
                self.log.error("Failed to insert %s %s: %s", kind, item.cosmos_hash, e)
        return inserted

    def scan(self) -> TransactionScanResult:
        """
        Fetch recent fills and deposits and insert the new ones.

        :return: Checked and inserted counts per kind.
        """
        fills, deposits = self.search_client.query_transactions(limit=self.search_limit)

        existing_fills = self.transaction_repo.get_existing_fill_hashes(
            f.cosmos_hash for f in fills
        )
        new_fills = [f for f in fills if f.cosmos_hash not in existing_fills]
        existing_deposits = self.transaction_repo.get_existing_deposit_hashes(
            d.cosmos_hash for d in deposits
        )
        new_deposits = [d for d in deposits if d.cosmos_hash not in existing_deposits]

        if new_fills:
            self.log.info("Found %d new fill transactions", len(new_fills))
        if new_deposits:
            self.log.info("Found %d new deposit transactions", len(new_deposits))

        return TransactionScanResult(
            fills=TransactionCounts(
                checked=len(fills),
                inserted=self._insert_each(
                    "fill", new_fills, self.transaction_repo.insert_fill
                ),
            ),
            deposits=TransactionCounts(
                checked=len(deposits),
                inserted=self._insert_each(
                    "deposit", new_deposits, self.transaction_repo.insert_deposit
                ),
            ),
        )

    def _sync_kind(
        self,
        kind: str,
        items: List,
        existing: set,
        insert_batch: Callable,
        insert_one: Callable,
    ) -> TransactionCounts:
        new_items = [item for item in items if item.cosmos_hash not in existing]
        self.log.info(
            "Fetched %d %s transactions, %d new", len(items), kind, len(new_items)
        )
        if not new_items:
            return TransactionCounts(checked=len(items))

        try:
            inserted = insert_batch(new_items)
            self.log.info("Inserted %d %s transactions in batch", inserted, kind)
            return TransactionCounts(checked=len(items), inserted=inserted)
        except Exception as e:  # pylint: disable=broad-except
            self.log.error(
                "Batch insert of %s transactions failed, retrying one by one: %s",
                kind,
                e,
            )

        inserted = 0
        failed = 0
        for item in new_items:
            try:
                if insert_one(item):
                    inserted += 1
                    if inserted % PROGRESS_LOG_INTERVAL == 0:
                        self.log.info(
                            "Progress: %d/%d %s transactions inserted",
                            inserted,
                            len(new_items),
                            kind,
                        )
            except Exception as e:  # pylint: disable=broad-except
                failed += 1
                self.log.error("Failed to insert %s %s: %s", kind, item.cosmos_hash, e)
        return TransactionCounts(checked=len(items), inserted=inserted, failed=failed)

    def sync_all(self) -> TransactionScanResult:
        """
        Full start-up sync: insert all new transactions in one batch per kind,
        falling back to one-by-one inserts when the batch fails.

        :return: Fetched (as `checked`), inserted and failed counts per kind.
        """
        fills, deposits = self.search_client.query_transactions(limit=self.search_limit)
        fill_counts = self._sync_kind(
            "fill",
            fills,
            self.transaction_repo.get_existing_fill_hashes(f.cosmos_hash for f in fills),
            self.transaction_repo.insert_fills,
            self.transaction_repo.insert_fill,
        )
        deposit_counts = self._sync_kind(
            "deposit",
            deposits,
            self.transaction_repo.get_existing_deposit_hashes(
                d.cosmos_hash for d in deposits
            ),
            self.transaction_repo.insert_deposits,
            self.transaction_repo.insert_deposit,
        )
        return TransactionScanResult(fills=fill_counts, deposits=deposit_counts)
