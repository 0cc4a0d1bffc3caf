"""
Links EVM events to intents by request hash.
"""

from intentsync.core.evm_event_repository import UNLINKED_BATCH_LIMIT, EvmEventRepository
from intentsync.core.intent_repository import IntentRepository
from intentsync.core.types import LinkResult
from intentsync.utils.log import get_context_logger


class EventLinker:
    """
    Sets intent_id on events whose request hash matches a stored signature hash.
    Unmatched events stay unlinked and are retried on the next run.
    """

    def __init__(
        self,
        event_repo: EvmEventRepository,
        intent_repo: IntentRepository,
        network: str,
        batch_limit: int = UNLINKED_BATCH_LIMIT,
    ):
        self.event_repo = event_repo
        self.intent_repo = intent_repo
        self.batch_limit = batch_limit
        self.log = get_context_logger(__name__, network)

    def _link_events(self, events, link_one) -> int:
        matches = self.intent_repo.find_intent_ids_by_hashes(
            [event.request_hash for event in events]
        )
        linked = 0
        for event in events:
            intent_id = matches.get(event.request_hash)
            if intent_id is None:
                continue
            try:
                link_one(event.id, intent_id)
                linked += 1
            except Exception as e:  # pylint: disable=broad-except
                self.log.error("Failed to link event %s: %s", event.id, e)
        return linked

    def link(self) -> LinkResult:
        """
        Link one bounded batch of unlinked fill and deposit events.

        :return: Linked counts and the number of events still unlinked.
        """
        linked_fills = self._link_events(
            self.event_repo.get_unlinked_fill_events(self.batch_limit),
            self.event_repo.link_fill_event,
        )
        linked_deposits = self._link_events(
            self.event_repo.get_unlinked_deposit_events(self.batch_limit),
            self.event_repo.link_deposit_event,
        )
        result = LinkResult(
            linked_fills=linked_fills,
            linked_deposits=linked_deposits,
            remaining_unlinked_fills=self.event_repo.count_unlinked_fill_events(),
            remaining_unlinked_deposits=self.event_repo.count_unlinked_deposit_events(),
        )
        if linked_fills or linked_deposits:
            self.log.info(
                "Linked %d fill events and %d deposit events to intents",
                linked_fills,
                linked_deposits,
            )
        return result
