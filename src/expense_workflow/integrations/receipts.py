"""Best-effort receipt cleanup after database deletions.

The database row is the source of truth. Purging runs after the deleting
transaction has committed, and a storage failure leaves orphaned files
rather than undoing the deletion.
"""

from __future__ import annotations

import logging
from typing import Iterable
from uuid import UUID

from expense_workflow.events import EventEmitter, EventMetadata, ReceiptPurgeFailed
from expense_workflow.integrations.base import ReceiptStorage

logger = logging.getLogger(__name__)


def purge_receipts(
    storage: ReceiptStorage,
    references: Iterable[str],
    emitter: EventEmitter | None = None,
    actor_id: UUID | None = None,
) -> bool:
    """Delete receipt objects, returning False if storage refused.

    Never raises for storage errors and never retries.
    """
    refs = list(dict.fromkeys(r for r in references if r))
    if not refs:
        return True

    try:
        storage.delete(refs)
    except Exception as e:
        logger.error(
            "Failed to purge %d receipt object(s); leaving orphans: %s",
            len(refs),
            e,
        )
        if emitter is not None:
            emitter.emit(
                ReceiptPurgeFailed(
                    metadata=EventMetadata.create(actor_id=actor_id),
                    references=tuple(refs),
                    error=str(e),
                )
            )
        return False

    logger.info("Purged %d receipt object(s)", len(refs))
    return True
